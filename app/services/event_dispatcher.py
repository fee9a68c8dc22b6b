"""Dispatch of authenticated payment events to per-kind handlers.

Every known kind runs inside one transaction that first records the external
event id in ``processed_events``. A redelivered id finds the marker (or hits
the primary key when two deliveries race) and is acknowledged without
running the handler again. The marker commits together with the handler's
writes, so a failed handler leaves no marker and the sender's retry gets a
fresh attempt.

Kinds without a handler (``EventKind.UNKNOWN``) are acknowledged with no
store write at all.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AppError, EventProcessingError
from app.db.models import ProcessedEvent
from app.db.session import DatabaseSessionManager
from app.schemas.events import DispatchOutcome, EventKind, VerifiedEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[VerifiedEvent, AsyncSession], Awaitable[None]]


class _AlreadyProcessed(Exception):
    """The event id was committed by an earlier or concurrent delivery."""


async def handle_checkout_completed(event: VerifiedEvent, session: AsyncSession) -> None:
    checkout = event.data_object

    if checkout.get("payment_status") != "paid":
        logger.info(
            "webhook.checkout_unpaid",
            extra={"event_id": event.id, "payment_status": checkout.get("payment_status")},
        )
        return

    user_id = (checkout.get("metadata") or {}).get("userId")
    if not user_id:
        logger.error(
            "webhook.checkout_missing_user",
            extra={"event_id": event.id, "checkout_id": checkout.get("id")},
        )
        return

    # TODO: grant paid access once the account/subscription transitions are defined.
    logger.info(
        "webhook.checkout_completed",
        extra={"event_id": event.id, "user_id": user_id, "checkout_id": checkout.get("id")},
    )


async def handle_subscription_change(event: VerifiedEvent, session: AsyncSession) -> None:
    logger.info(
        "webhook.subscription_changed",
        extra={
            "event_id": event.id,
            "event_type": event.type,
            "subscription_id": event.data_object.get("id"),
            "status": event.data_object.get("status"),
        },
    )


async def handle_invoice_paid(event: VerifiedEvent, session: AsyncSession) -> None:
    logger.info(
        "webhook.invoice_paid",
        extra={"event_id": event.id, "invoice_id": event.data_object.get("id")},
    )


async def handle_invoice_failed(event: VerifiedEvent, session: AsyncSession) -> None:
    logger.warning(
        "webhook.invoice_payment_failed",
        extra={"event_id": event.id, "invoice_id": event.data_object.get("id")},
    )


DEFAULT_HANDLERS: Mapping[EventKind, EventHandler] = {
    EventKind.CHECKOUT_SESSION_COMPLETED: handle_checkout_completed,
    EventKind.SUBSCRIPTION_CREATED: handle_subscription_change,
    EventKind.SUBSCRIPTION_UPDATED: handle_subscription_change,
    EventKind.SUBSCRIPTION_DELETED: handle_subscription_change,
    EventKind.INVOICE_PAYMENT_SUCCEEDED: handle_invoice_paid,
    EventKind.INVOICE_PAYMENT_FAILED: handle_invoice_failed,
}


class EventDispatcher:
    """Routes verified events to handlers, at most once per event id."""

    def __init__(
        self,
        db: DatabaseSessionManager,
        handlers: Mapping[EventKind, EventHandler] | None = None,
    ) -> None:
        self._db = db
        self._handlers = dict(DEFAULT_HANDLERS if handlers is None else handlers)
        self._handlers.pop(EventKind.UNKNOWN, None)

    async def dispatch(self, event: VerifiedEvent) -> DispatchOutcome:
        """Apply ``event`` through its handler unless already processed.

        Args:
            event: Authenticated event.

        Returns:
            DispatchOutcome: APPLIED, IGNORED (no handler) or DUPLICATE.

        Raises:
            EventProcessingError: If the store or the handler fails.
        """
        handler = self._handlers.get(event.kind)
        if handler is None:
            logger.info(
                "webhook.event_ignored",
                extra={"event_id": event.id, "event_type": event.type},
            )
            return DispatchOutcome.IGNORED

        try:
            async with self._db.transaction() as session:
                if await session.get(ProcessedEvent, event.id) is not None:
                    raise _AlreadyProcessed()

                session.add(ProcessedEvent(event_id=event.id, event_type=event.type))
                try:
                    await session.flush()
                except IntegrityError as exc:
                    raise _AlreadyProcessed() from exc

                await handler(event, session)
        except _AlreadyProcessed:
            return self._duplicate(event)
        except EventProcessingError:
            raise
        except Exception as exc:
            logger.error(
                "webhook.dispatch_failed",
                extra={
                    "event_id": event.id,
                    "event_type": event.type,
                    "error_type": type(exc).__name__,
                    "error_msg": exc.message if isinstance(exc, AppError) else str(exc),
                },
            )
            raise EventProcessingError(
                code="webhook_processing_failed",
                message="Failed to process webhook",
            ) from exc

        logger.info(
            "webhook.event_applied",
            extra={"event_id": event.id, "event_type": event.type},
        )
        return DispatchOutcome.APPLIED

    @staticmethod
    def _duplicate(event: VerifiedEvent) -> DispatchOutcome:
        logger.info(
            "webhook.event_duplicate",
            extra={"event_id": event.id, "event_type": event.type},
        )
        return DispatchOutcome.DUPLICATE
