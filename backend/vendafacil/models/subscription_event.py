"""
SubscriptionEvent model - audit record of every inbound billing notification.

CRITICAL: This table is APPEND-ONLY. Rows are never updated or deleted.
The unique index on event_id is the idempotency boundary: once a row with
a given provider event ID exists, the event is never processed again.
"""

from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, JSON, Index, func

from vendafacil.db_base import Base


class BillingProvider(str, Enum):
    """Payment providers (and the admin surface) that write to the event log."""
    HOTMART = "hotmart"
    KIWIFY = "kiwify"
    PERFECTPAY = "perfectpay"
    ADMIN = "admin"


class SubscriptionEventStatus(str, Enum):
    """Outcome recorded for one webhook delivery."""
    PROCESSED_ACCESS_GRANTED = "processed_access_granted"
    PROCESSED_ACCESS_REVOKED = "processed_access_revoked"
    LOGGED_FOR_ANALYTICS = "logged_for_analytics"
    ERROR_MISSING_REF = "error_missing_ref"
    ERROR_INVALID_REF = "error_invalid_ref"
    ERROR_UNKNOWN_PLAN = "error_unknown_plan"
    ERROR_DB_UPDATE = "error_db_update"
    ERROR_EXCEPTION = "error_exception"

    @property
    def is_error(self) -> bool:
        return self.value.startswith("error_")


class SubscriptionEvent(Base):
    """
    Immutable record of one inbound billing event.

    store_id, plan_id and user_id come from the pipe-delimited external
    reference echoed back by the provider and may be NULL when the
    reference is absent or malformed.
    """

    __tablename__ = "subscription_events"

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    provider = Column(
        String(32),
        nullable=False,
        default=BillingProvider.HOTMART.value,
        comment="Billing provider that sent the event"
    )

    event_type = Column(
        String(100),
        nullable=False,
        index=True,
        comment="Provider event type (e.g. PURCHASE_APPROVED)"
    )

    event_id = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Provider-unique event ID (idempotency key)"
    )

    store_id = Column(String(36), nullable=True, index=True)
    plan_id = Column(String(64), nullable=True)
    user_id = Column(String(36), nullable=True)

    status = Column(
        String(64),
        nullable=False,
        index=True,
        comment="Processing outcome (SubscriptionEventStatus)"
    )

    raw_payload = Column(
        JSON,
        nullable=False,
        default=dict,
        comment="Original payload merged with diagnostic details"
    )

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="When the event was logged"
    )

    __table_args__ = (
        Index("idx_subscription_events_store_created", "store_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<SubscriptionEvent(id={self.id}, event_id={self.event_id}, "
            f"type={self.event_type}, status={self.status})>"
        )
