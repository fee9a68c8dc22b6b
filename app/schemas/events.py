"""Payment processor event types.

Incoming events are narrowed to a closed set of kinds the service knows how
to handle, plus an explicit ``UNKNOWN`` variant for everything else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    """Known payment event types."""

    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
    UNKNOWN = "unknown"

    @classmethod
    def from_type(cls, event_type: str) -> "EventKind":
        try:
            return cls(event_type)
        except ValueError:
            return cls.UNKNOWN


class DispatchOutcome(str, Enum):
    """What dispatch did with an authenticated event."""

    APPLIED = "applied"
    IGNORED = "ignored-unknown-type"
    DUPLICATE = "duplicate"


class EventData(BaseModel):
    model_config = ConfigDict(extra="allow")

    object: dict[str, Any] = Field(..., description="The API object the event is about.")


class PaymentEventEnvelope(BaseModel):
    """Wire shape of a webhook event body."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    created: int | None = None
    livemode: bool = False
    data: EventData


@dataclass(frozen=True)
class VerifiedEvent:
    """An event whose signature has been checked."""

    id: str
    type: str
    kind: EventKind
    data_object: dict[str, Any] = field(default_factory=dict)
    created: int | None = None
    livemode: bool = False

    @classmethod
    def from_envelope(cls, envelope: PaymentEventEnvelope) -> "VerifiedEvent":
        return cls(
            id=envelope.id,
            type=envelope.type,
            kind=EventKind.from_type(envelope.type),
            data_object=envelope.data.object,
            created=envelope.created,
            livemode=envelope.livemode,
        )


class WebhookAck(BaseModel):
    """Acknowledgment returned for every authenticated event."""

    received: bool = True
