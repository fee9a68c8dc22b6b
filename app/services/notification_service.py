"""Post-enrollment confirmation message.

Enrollment and notification are two separate stages. The route commits the
enrollment and fixes its response first; ``NotificationTrigger.notify`` runs
afterwards as a background task. Everything that can go wrong in the second
stage (rendering, provider errors, transport errors, timeout) is contained
in ``notify`` and only logged, so it can neither undo the enrollment nor
alter the response.
"""

from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass
from string import Template

from app.adapters.notifications.base import AbstractDeliveryClient
from app.core.errors import NotificationDeliveryError
from app.core.logging import hash_identifier
from app.db.models import EnrollmentRecord

logger = logging.getLogger(__name__)

CONFIRMATION_TEMPLATE = Template(
    """<!DOCTYPE html>
<html>
  <body style="font-family: -apple-system, Segoe UI, Helvetica, Arial, sans-serif; color: #111;">
    <h1 style="font-size: 22px;">You're on the list$greeting</h1>
    <p>Thanks for joining the $project waitlist.</p>
    <p style="font-size: 18px;">Your position: <strong>#$position</strong></p>
    <p>We'll email $email as soon as your spot opens up.</p>
  </body>
</html>
"""
)


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    html: str


def render_confirmation(record: EnrollmentRecord, project_name: str) -> RenderedMessage:
    """Render the waitlist confirmation for ``record``.

    All interpolated values are HTML-escaped.
    """
    greeting = f", {html.escape(record.name)}" if record.name else ""
    body = CONFIRMATION_TEMPLATE.substitute(
        greeting=greeting,
        project=html.escape(project_name),
        position=record.position,
        email=html.escape(record.email),
    )
    return RenderedMessage(
        subject=f"You're on the {project_name} waitlist!",
        html=body,
    )


class NotificationTrigger:
    """Best-effort, single-attempt confirmation sender."""

    def __init__(
        self,
        client: AbstractDeliveryClient,
        *,
        project_name: str,
        timeout_seconds: float,
    ) -> None:
        self._client = client
        self._project_name = project_name
        self._timeout = timeout_seconds

    async def deliver(self, record: EnrollmentRecord) -> None:
        """Render and send the confirmation.

        Raises:
            NotificationDeliveryError: If the provider reports an error.
        """
        message = render_confirmation(record, self._project_name)
        result = await self._client.send(record.email, message.subject, message.html)
        if not result.ok:
            raise NotificationDeliveryError(
                code="email_send_failed",
                message=result.error or "Delivery failed",
            )

    async def notify(self, record: EnrollmentRecord) -> None:
        """Send the confirmation; never raises."""
        recipient_hash = hash_identifier(record.email)
        try:
            await asyncio.wait_for(self.deliver(record), timeout=self._timeout)
        except Exception as exc:
            logger.error(
                "notification.failed",
                extra={
                    "recipient_hash": recipient_hash,
                    "position": record.position,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return

        logger.info(
            "notification.sent",
            extra={"recipient_hash": recipient_hash, "position": record.position},
        )
