"""
Hotmart webhook processing.

Turns one verified, JSON-decoded delivery into at most one entitlement
change and exactly one subscription_events row.

Every outcome is reported to Hotmart as success. Errors are recorded in
the event log with an error_* status and recovered by an operator
(see AdminAccessService.redrive_event), never by provider retries.

Flow:
    idempotency check -> reference parse -> dispatch on event kind
    -> entitlement write + event row, committed together
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from vendafacil.api.schemas.hotmart import (
    HotmartEventKind,
    HotmartWebhookPayload,
    payload_as_dict,
)
from vendafacil.config.plan_catalog import PlanCatalogLoader
from vendafacil.config.settings import Settings, get_settings
from vendafacil.models.store_access import AccessOrigin
from vendafacil.models.subscription_event import SubscriptionEventStatus
from vendafacil.services.entitlement_writer import EntitlementWriteError, EntitlementWriter
from vendafacil.services.external_reference import (
    ReferenceParseFailure,
    ReferenceParseResult,
    parse_external_reference,
)
from vendafacil.services.plan_resolver import UnknownPlanError, resolve_plan
from vendafacil.services.subscription_event_log import SubscriptionEventLog

logger = logging.getLogger(__name__)

MSG_ALREADY_PROCESSED = "Already processed"


def _reference_details(
    details: Optional[Dict[str, Any]],
    parsed: Optional[ReferenceParseResult],
) -> Optional[Dict[str, Any]]:
    """Add ignored reference segments to the event details."""
    if parsed is None or not parsed.extra_segments:
        return details
    return {**(details or {}), "reference_extra_segments": list(parsed.extra_segments)}


@dataclass
class WebhookProcessingResult:
    """Outcome of one delivery. success is what the provider is told."""
    success: bool
    message: str
    status: Optional[SubscriptionEventStatus] = None
    event_id: Optional[str] = None


class HotmartWebhookHandler:
    """Processes Hotmart deliveries against the entitlement store."""

    def __init__(
        self,
        db_session: Session,
        settings: Optional[Settings] = None,
        catalog: Optional[PlanCatalogLoader] = None,
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db_session
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.event_log = SubscriptionEventLog(db_session)
        self.writer = EntitlementWriter(db_session, now_fn=now_fn)

    def handle(self, body: Any, event_id: Optional[str] = None) -> WebhookProcessingResult:
        """
        Process one delivery. Never raises.

        Args:
            body: Decoded JSON body
            event_id: Idempotency key to use instead of the payload id
                (operator re-drives)
        """
        try:
            if not isinstance(body, dict):
                raise ValueError(f"Webhook body must be a JSON object, got {type(body).__name__}")
            return self._process(body, event_id)
        except Exception as e:
            self.db.rollback()
            logger.exception("Unhandled error processing Hotmart webhook", extra={
                "event_id": event_id or (body.get("id") if isinstance(body, dict) else None),
            })
            return self._log_outcome(
                payload_as_dict(body),
                SubscriptionEventStatus.ERROR_EXCEPTION,
                details={"error": str(e)},
                event_id=event_id,
            )

    def _process(self, body: Dict[str, Any], event_id_override: Optional[str]) -> WebhookProcessingResult:
        payload = HotmartWebhookPayload.model_validate(body)
        event_id = event_id_override or payload.event_id
        event_type = payload.event

        if event_id is None:
            if self.settings.hotmart_require_event_id:
                logger.warning("Rejecting Hotmart event without id", extra={
                    "event_type": event_type,
                })
                return self._log_outcome(
                    body,
                    SubscriptionEventStatus.ERROR_INVALID_REF,
                    details={"error": "Missing event id"},
                )
            logger.warning("Hotmart event without id, idempotency check skipped", extra={
                "event_type": event_type,
            })
        elif self.event_log.has_processed(event_id):
            logger.info("Duplicate Hotmart event ignored", extra={
                "event_id": event_id,
                "event_type": event_type,
            })
            return WebhookProcessingResult(True, MSG_ALREADY_PROCESSED, event_id=event_id)

        parsed = parse_external_reference(payload.external_reference)
        kind = payload.kind

        logger.info("Hotmart event received", extra={
            "event_id": event_id,
            "event_type": event_type,
            "kind": kind.value,
            "store_id": parsed.reference.store_id,
        })

        if kind == HotmartEventKind.ANALYTICS:
            return self._log_outcome(
                body, SubscriptionEventStatus.LOGGED_FOR_ANALYTICS,
                event_id=event_id, parsed=parsed,
            )

        if not parsed.ok:
            return self._log_reference_failure(body, event_id, parsed)

        if kind == HotmartEventKind.GRANT:
            return self._grant(body, event_id, event_type, parsed)
        return self._revoke(body, event_id, parsed)

    def _grant(
        self,
        body: Dict[str, Any],
        event_id: Optional[str],
        event_type: str,
        parsed: ReferenceParseResult,
    ) -> WebhookProcessingResult:
        reference = parsed.reference
        try:
            plan = resolve_plan(
                event_type,
                reference.plan_id,
                catalog=self.catalog,
                allow_fallback=self.settings.hotmart_unknown_plan_fallback,
            )
        except UnknownPlanError as e:
            logger.warning("Unknown plan in Hotmart event", extra={
                "event_id": event_id,
                "plan_id": reference.plan_id,
            })
            return self._log_outcome(
                body, SubscriptionEventStatus.ERROR_UNKNOWN_PLAN,
                details={"error": str(e)}, event_id=event_id, parsed=parsed,
            )

        if plan.is_fallback:
            logger.warning("Unrecognised plan id, granting fallback plan", extra={
                "event_id": event_id,
                "plan_id": reference.plan_id,
                "fallback_plan": plan.plan_type,
            })

        try:
            self.writer.grant_access(reference.store_id, plan, AccessOrigin.HOTMART, renewable=True)
        except EntitlementWriteError as e:
            return self._log_db_failure(body, event_id, parsed, e.db_message)

        return self._commit_with_event(
            body,
            SubscriptionEventStatus.PROCESSED_ACCESS_GRANTED,
            details={
                "plano_tipo": plan.plan_type,
                "plano_nome": plan.plan_name,
                "duration_days": plan.duration_days,
                "plan_fallback": plan.is_fallback,
            },
            event_id=event_id,
            parsed=parsed,
            message="Access granted",
        )

    def _revoke(
        self,
        body: Dict[str, Any],
        event_id: Optional[str],
        parsed: ReferenceParseResult,
    ) -> WebhookProcessingResult:
        try:
            found = self.writer.revoke_access(parsed.reference.store_id)
        except EntitlementWriteError as e:
            return self._log_db_failure(body, event_id, parsed, e.db_message)

        return self._commit_with_event(
            body,
            SubscriptionEventStatus.PROCESSED_ACCESS_REVOKED,
            details={"store_access_found": found},
            event_id=event_id,
            parsed=parsed,
            message="Access revoked",
        )

    def _commit_with_event(
        self,
        body: Dict[str, Any],
        status: SubscriptionEventStatus,
        details: Dict[str, Any],
        event_id: Optional[str],
        parsed: ReferenceParseResult,
        message: str,
    ) -> WebhookProcessingResult:
        """Commit the pending entitlement write together with its event row."""
        event = self.event_log.add_event(
            payload=body,
            status=status,
            details=_reference_details(details, parsed),
            event_id=event_id,
            reference=parsed.reference,
        )
        try:
            self.db.commit()
        except IntegrityError:
            # Another delivery of the same event committed first
            self.db.rollback()
            logger.warning("Concurrent delivery already processed event", extra={
                "event_id": event.event_id,
            })
            return WebhookProcessingResult(True, MSG_ALREADY_PROCESSED, event_id=event.event_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            return self._log_db_failure(body, event_id, parsed, str(e))

        logger.info("Hotmart event processed", extra={
            "event_id": event.event_id,
            "status": status.value,
            "store_id": parsed.reference.store_id,
        })
        return WebhookProcessingResult(True, message, status, event.event_id)

    def _log_reference_failure(
        self,
        body: Dict[str, Any],
        event_id: Optional[str],
        parsed: ReferenceParseResult,
    ) -> WebhookProcessingResult:
        if parsed.failure == ReferenceParseFailure.MISSING:
            status = SubscriptionEventStatus.ERROR_MISSING_REF
            error = "Missing external_reference"
        else:
            status = SubscriptionEventStatus.ERROR_INVALID_REF
            error = f"Invalid external_reference ({parsed.failure.value})"

        logger.warning("Hotmart event with unusable reference", extra={
            "event_id": event_id,
            "failure": parsed.failure.value,
        })
        return self._log_outcome(
            body, status, details={"error": error}, event_id=event_id, parsed=parsed,
        )

    def _log_db_failure(
        self,
        body: Dict[str, Any],
        event_id: Optional[str],
        parsed: ReferenceParseResult,
        db_message: str,
    ) -> WebhookProcessingResult:
        self.db.rollback()
        logger.error("Entitlement update failed", extra={
            "event_id": event_id,
            "store_id": parsed.reference.store_id,
            "error": db_message,
        })
        return self._log_outcome(
            body, SubscriptionEventStatus.ERROR_DB_UPDATE,
            details={"error": db_message}, event_id=event_id, parsed=parsed,
        )

    def _log_outcome(
        self,
        body: Dict[str, Any],
        status: SubscriptionEventStatus,
        details: Optional[Dict[str, Any]] = None,
        event_id: Optional[str] = None,
        parsed: Optional[ReferenceParseResult] = None,
    ) -> WebhookProcessingResult:
        """Record a no-mutation outcome in its own transaction."""
        event = self.event_log.record_event(
            payload=body,
            status=status,
            details=_reference_details(details, parsed),
            event_id=event_id,
            reference=parsed.reference if parsed else None,
        )
        if event is None:
            # Log write failed or lost a race; the provider is still answered
            return WebhookProcessingResult(True, "Event received", status, event_id)

        if status == SubscriptionEventStatus.LOGGED_FOR_ANALYTICS:
            message = "Event logged"
        else:
            message = f"Event logged with status {status.value}"
        return WebhookProcessingResult(True, message, status, event.event_id)
