"""
Hotmart webhook payload schemas.

Payloads are validated here before any field access. Only the fields the
entitlement flow reads are modelled; everything else is kept as extra
data so the full payload can still be stored in the event log.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HotmartEventType(str, Enum):
    """Event types the entitlement flow acts on."""
    PURCHASE_APPROVED = "PURCHASE_APPROVED"
    SUBSCRIPTION_RENEWED = "SUBSCRIPTION_RENEWED"
    PLAN_CHANGED = "PLAN_CHANGED"
    PURCHASE_CANCELED = "PURCHASE_CANCELED"
    PURCHASE_REFUNDED = "PURCHASE_REFUNDED"
    SUBSCRIPTION_CANCELED = "SUBSCRIPTION_CANCELED"
    CHARGEBACK = "CHARGEBACK"


class HotmartEventKind(str, Enum):
    """What an event does to the store's entitlement."""
    GRANT = "grant"
    REVOKE = "revoke"
    ANALYTICS = "analytics"


GRANTING_EVENT_TYPES = frozenset({
    HotmartEventType.PURCHASE_APPROVED.value,
    HotmartEventType.SUBSCRIPTION_RENEWED.value,
    HotmartEventType.PLAN_CHANGED.value,
})

REVOKING_EVENT_TYPES = frozenset({
    HotmartEventType.PURCHASE_CANCELED.value,
    HotmartEventType.PURCHASE_REFUNDED.value,
    HotmartEventType.SUBSCRIPTION_CANCELED.value,
    HotmartEventType.CHARGEBACK.value,
})


def classify_event(event_type: Optional[str]) -> HotmartEventKind:
    """Map a raw event type to its entitlement effect. Unknown types are analytics-only."""
    if event_type in GRANTING_EVENT_TYPES:
        return HotmartEventKind.GRANT
    if event_type in REVOKING_EVENT_TYPES:
        return HotmartEventKind.REVOKE
    return HotmartEventKind.ANALYTICS


class HotmartReferenceHolder(BaseModel):
    """data.purchase / data.subscription - only the external reference is read."""
    model_config = ConfigDict(extra="allow")

    external_reference: Optional[str] = None


class HotmartEventData(BaseModel):
    model_config = ConfigDict(extra="allow")

    purchase: Optional[HotmartReferenceHolder] = None
    subscription: Optional[HotmartReferenceHolder] = None


class HotmartWebhookPayload(BaseModel):
    """
    Top-level Hotmart webhook body.

    {"id": "...", "event": "PURCHASE_APPROVED",
     "data": {"purchase": {"external_reference": "storeId|planId|userId"}}}
    """
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = Field(None, description="Provider event ID (idempotency key)")
    event: Optional[str] = Field(None, description="Provider event type")
    data: HotmartEventData = Field(default_factory=HotmartEventData)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        # Numeric ids are accepted as their string form
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("data", mode="before")
    @classmethod
    def default_data(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def event_id(self) -> Optional[str]:
        if self.id is None:
            return None
        value = str(self.id).strip()
        return value or None

    @property
    def external_reference(self) -> Optional[str]:
        """Reference from the purchase block, else from the subscription block."""
        for holder in (self.data.purchase, self.data.subscription):
            if holder is not None and holder.external_reference:
                return holder.external_reference
        return None

    @property
    def kind(self) -> HotmartEventKind:
        return classify_event(self.event)


class WebhookResponse(BaseModel):
    """Body returned to the provider."""
    success: bool = True
    message: Optional[str] = None


def payload_as_dict(payload: Any) -> Dict[str, Any]:
    """Raw JSON value as a dict suitable for the event log."""
    if isinstance(payload, dict):
        return payload
    return {"body": payload}
