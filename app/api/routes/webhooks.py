from fastapi import APIRouter, Depends

from app.api.dependencies import get_dispatcher
from app.core.rate_limit import rate_limit
from app.core.signatures import verified_event
from app.schemas.events import VerifiedEvent, WebhookAck
from app.services.event_dispatcher import EventDispatcher
from app.services.rate_limiter import RateLimitScope

router = APIRouter(tags=["Webhooks"])


@router.post(
    "/webhooks/payment-events",
    response_model=WebhookAck,
    dependencies=[Depends(rate_limit(RateLimitScope.GENERAL))],
)
async def payment_events(
    event: VerifiedEvent = Depends(verified_event),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> WebhookAck:
    """Receive a signed payment processor event.

    Every authenticated event is acknowledged, including types this service
    does not handle and redeliveries, so the sender stops retrying.

    Raises:
        SignatureVerificationError: 400 for a missing/invalid signature.
        InvalidEventPayloadError: 400 for an unparseable body.
        EventProcessingError: 500 when dispatch fails.
    """
    await dispatcher.dispatch(event)
    return WebhookAck()
