"""
Idempotent event log for billing webhooks.

Every delivery that gets past signature and JSON checks leaves exactly one
row in subscription_events. The row's event_id is unique at the storage
layer, which is what actually guarantees single processing when two
deliveries of the same event race; has_processed() is only the fast path.
"""

import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from vendafacil.models.subscription_event import (
    BillingProvider,
    SubscriptionEvent,
    SubscriptionEventStatus,
)
from vendafacil.services.external_reference import ExternalReference, parse_external_reference

logger = logging.getLogger(__name__)


def _legacy_event_id() -> str:
    """Synthetic id for deliveries that carry none."""
    return f"legacy_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def extract_external_reference(payload: Dict[str, Any]) -> Optional[str]:
    """
    Read data.purchase.external_reference, else data.subscription.external_reference.

    Tolerates any payload shape: the log must accept deliveries that failed
    schema validation.
    """
    data = payload.get("data")
    if not isinstance(data, dict):
        return None
    for key in ("purchase", "subscription"):
        holder = data.get(key)
        if isinstance(holder, dict):
            reference = holder.get("external_reference")
            if isinstance(reference, str) and reference:
                return reference
    return None


class SubscriptionEventLog:
    """Append-only access to subscription_events."""

    def __init__(self, db_session: Session, provider: BillingProvider = BillingProvider.HOTMART):
        self.db = db_session
        self.provider = provider

    def has_processed(self, event_id: Optional[str]) -> bool:
        """
        Check whether an event has already been logged.

        An absent event id cannot be checked and is reported as unprocessed.
        """
        if not event_id:
            return False

        existing = self.db.query(SubscriptionEvent.id).filter(
            SubscriptionEvent.event_id == event_id
        ).first()
        return existing is not None

    def build_event(
        self,
        payload: Dict[str, Any],
        status: SubscriptionEventStatus,
        details: Optional[Dict[str, Any]] = None,
        event_id: Optional[str] = None,
        event_type: Optional[str] = None,
        reference: Optional[ExternalReference] = None,
    ) -> SubscriptionEvent:
        """Build (but do not add) the log row for a delivery."""
        if reference is None:
            reference = parse_external_reference(extract_external_reference(payload)).reference

        raw_event_id = event_id or payload.get("id")
        resolved_event_id = str(raw_event_id).strip() if raw_event_id else ""

        raw_payload = dict(payload)
        if details:
            raw_payload.update(details)

        return SubscriptionEvent(
            provider=self.provider.value,
            event_type=event_type or str(payload.get("event") or "UNKNOWN"),
            event_id=resolved_event_id or _legacy_event_id(),
            store_id=reference.store_id,
            plan_id=reference.plan_id,
            user_id=reference.user_id,
            status=SubscriptionEventStatus(status).value,
            raw_payload=raw_payload,
        )

    def add_event(self, **kwargs) -> SubscriptionEvent:
        """
        Add the log row to the current transaction without committing.

        Used when the row must commit atomically with an entitlement write.
        """
        event = self.build_event(**kwargs)
        self.db.add(event)
        return event

    def record_event(self, **kwargs) -> Optional[SubscriptionEvent]:
        """
        Append a log row in its own transaction.

        Never raises: a failed write is logged and swallowed so the webhook
        can still answer the provider. Returns None when nothing was written.
        """
        event = self.build_event(**kwargs)
        try:
            self.db.add(event)
            self.db.commit()
            return event
        except IntegrityError:
            self.db.rollback()
            logger.warning("Event already logged by a concurrent delivery", extra={
                "event_id": event.event_id,
                "status": event.status,
            })
            return None
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to write subscription event", extra={
                "event_id": event.event_id,
                "status": event.status,
                "error": str(e),
            })
            return None

    def get_event(self, event_pk: int) -> Optional[SubscriptionEvent]:
        return self.db.query(SubscriptionEvent).filter(
            SubscriptionEvent.id == event_pk
        ).first()

    def list_events(
        self,
        status: Optional[str] = None,
        store_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[SubscriptionEvent]:
        """Most recent events first, optionally filtered."""
        query = self.db.query(SubscriptionEvent)
        if status:
            query = query.filter(SubscriptionEvent.status == status)
        if store_id:
            query = query.filter(SubscriptionEvent.store_id == store_id)
        return query.order_by(SubscriptionEvent.id.desc()).limit(limit).all()

    def count_with_prefix(self, event_id_prefix: str) -> int:
        """Number of events whose id starts with a prefix (redrive numbering)."""
        return self.db.query(SubscriptionEvent).filter(
            SubscriptionEvent.event_id.startswith(event_id_prefix, autoescape=True)
        ).count()
