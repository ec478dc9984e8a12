"""
Database models for stores, entitlements and the billing event log.
"""

from vendafacil.models.base import TimestampMixin
from vendafacil.models.user import User
from vendafacil.models.store import Store, StoreMember, MemberRole
from vendafacil.models.store_access import StoreAccess, PlanType, AccessState, AccessOrigin
from vendafacil.models.subscription_event import (
    SubscriptionEvent,
    SubscriptionEventStatus,
    BillingProvider,
)

__all__ = [
    "TimestampMixin",
    "User",
    "Store",
    "StoreMember",
    "MemberRole",
    "StoreAccess",
    "PlanType",
    "AccessState",
    "AccessOrigin",
    "SubscriptionEvent",
    "SubscriptionEventStatus",
    "BillingProvider",
]
