"""
Admin override surface for store access.

Platform operators can grant a plan by hand, inspect the billing event log
and re-drive failed webhook deliveries. Every operation checks
users.is_admin first; the entitlement writer itself trusts its callers.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from vendafacil.config.plan_catalog import PlanCatalogLoader
from vendafacil.config.settings import Settings
from vendafacil.models.store import Store
from vendafacil.models.store_access import AccessOrigin, PlanType, StoreAccess
from vendafacil.models.subscription_event import (
    BillingProvider,
    SubscriptionEvent,
    SubscriptionEventStatus,
)
from vendafacil.models.user import User
from vendafacil.services.entitlement_writer import EntitlementWriter
from vendafacil.services.external_reference import ExternalReference
from vendafacil.services.hotmart_webhook_handler import (
    HotmartWebhookHandler,
    WebhookProcessingResult,
)
from vendafacil.services.plan_resolver import ResolvedPlan, get_plan_label
from vendafacil.services.subscription_event_log import SubscriptionEventLog

logger = logging.getLogger(__name__)

ADMIN_GRANT_EVENT_TYPE = "ADMIN_GRANT"
MAX_EVENTS_LIMIT = 500


class AdminAccessError(Exception):
    """Base class for admin access errors."""


class AdminPermissionError(AdminAccessError):
    """Caller is not a platform administrator."""


class AdminValidationError(AdminAccessError):
    """Grant request is invalid."""


class StoreNotFoundError(AdminAccessError):
    pass


class EventNotFoundError(AdminAccessError):
    pass


class RedriveNotAllowedError(AdminAccessError):
    """Only failed Hotmart events can be re-driven."""


class AdminAccessService:
    """Operator actions on store access and the event log."""

    def __init__(
        self,
        db_session: Session,
        settings: Optional[Settings] = None,
        catalog: Optional[PlanCatalogLoader] = None,
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db_session
        self.settings = settings
        self.catalog = catalog
        self.now_fn = now_fn
        self.writer = EntitlementWriter(db_session, now_fn=now_fn)
        self.audit_log = SubscriptionEventLog(db_session, provider=BillingProvider.ADMIN)
        self.hotmart_log = SubscriptionEventLog(db_session, provider=BillingProvider.HOTMART)

    def require_admin(self, user_id: str) -> User:
        """
        Raises:
            AdminPermissionError: If the user is unknown, blocked or not an admin
        """
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None or not user.is_admin or user.is_blocked:
            logger.warning("Admin action denied", extra={"user_id": user_id})
            raise AdminPermissionError("not admin")
        return user

    def grant_plan(
        self,
        admin_user_id: str,
        store_id: Optional[str],
        plano_tipo: Optional[str],
        duracao_dias: Optional[int],
        renovavel: Optional[bool],
        origem: Optional[str] = None,
    ) -> StoreAccess:
        """
        Grant a plan to a store by hand.

        duracao_dias may be omitted only for the lifetime plan (vitalicio),
        which never expires. The grant and its audit row commit together.

        Raises:
            AdminPermissionError: Caller is not an admin
            AdminValidationError: Invalid request
            StoreNotFoundError: Unknown store
            EntitlementWriteError: Database failure
        """
        self.require_admin(admin_user_id)

        plan_type = (plano_tipo or "").strip().lower()
        if not store_id:
            raise AdminValidationError("storeId is required")
        if plan_type not in {p.value for p in PlanType}:
            raise AdminValidationError(f"Unknown planoTipo: {plano_tipo}")
        if duracao_dias is None:
            if plan_type != PlanType.VITALICIO.value:
                raise AdminValidationError("duracaoDias is required")
        elif isinstance(duracao_dias, bool) or not isinstance(duracao_dias, int) or duracao_dias <= 0:
            raise AdminValidationError("duracaoDias must be a positive integer")
        if not isinstance(renovavel, bool):
            raise AdminValidationError("renovavel must be a boolean")
        try:
            origin = AccessOrigin(origem or AccessOrigin.MANUAL_ADMIN.value)
        except ValueError:
            raise AdminValidationError(f"Unknown origem: {origem}")

        if self.db.query(Store.id).filter(Store.id == store_id).first() is None:
            raise StoreNotFoundError(f"Store {store_id} not found")

        plan = ResolvedPlan(
            duration_days=duracao_dias,
            plan_name=get_plan_label(plan_type),
            plan_type=plan_type,
        )
        access = self.writer.grant_access(store_id, plan, origin, renewable=renovavel)

        self.audit_log.add_event(
            payload={
                "storeId": store_id,
                "planoTipo": plan_type,
                "duracaoDias": duracao_dias,
                "renovavel": renovavel,
                "origem": origin.value,
                "admin_user_id": admin_user_id,
            },
            status=SubscriptionEventStatus.PROCESSED_ACCESS_GRANTED,
            event_id=f"admin_grant_{uuid.uuid4().hex}",
            event_type=ADMIN_GRANT_EVENT_TYPE,
            reference=ExternalReference(store_id, plan_type, admin_user_id),
        )
        self.db.commit()

        logger.info("Admin granted store access", extra={
            "admin_user_id": admin_user_id,
            "store_id": store_id,
            "plan_type": plan_type,
            "duration_days": duracao_dias,
        })
        return access

    def list_events(
        self,
        admin_user_id: str,
        status: Optional[str] = None,
        store_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[SubscriptionEvent]:
        self.require_admin(admin_user_id)
        if status is not None:
            try:
                SubscriptionEventStatus(status)
            except ValueError:
                raise AdminValidationError(f"Unknown status: {status}")
        limit = max(1, min(limit, MAX_EVENTS_LIMIT))
        return self.hotmart_log.list_events(status=status, store_id=store_id, limit=limit)

    def redrive_event(self, admin_user_id: str, event_pk: int) -> WebhookProcessingResult:
        """
        Re-run a failed event's stored payload through the webhook handler.

        The original row stays as it is; the new attempt is logged under
        "<event_id>:redrive:<n>".

        Raises:
            AdminPermissionError: Caller is not an admin
            EventNotFoundError: Unknown event
            RedriveNotAllowedError: Event is not a failed Hotmart delivery
        """
        self.require_admin(admin_user_id)

        event = self.hotmart_log.get_event(event_pk)
        if event is None:
            raise EventNotFoundError(f"Event {event_pk} not found")
        if event.provider != BillingProvider.HOTMART.value:
            raise RedriveNotAllowedError(f"Cannot re-drive {event.provider} events")
        if not SubscriptionEventStatus(event.status).is_error:
            raise RedriveNotAllowedError(f"Event {event_pk} has status {event.status}")

        prefix = f"{event.event_id}:redrive:"
        attempt = self.hotmart_log.count_with_prefix(prefix) + 1
        redrive_id = f"{prefix}{attempt}"

        logger.info("Re-driving billing event", extra={
            "admin_user_id": admin_user_id,
            "event_pk": event_pk,
            "redrive_event_id": redrive_id,
        })

        handler = HotmartWebhookHandler(
            self.db,
            settings=self.settings,
            catalog=self.catalog,
            now_fn=self.now_fn,
        )
        return handler.handle(dict(event.raw_payload or {}), event_id=redrive_id)
