"""Delivery client that only logs (development and tests)."""

import logging

from app.adapters.notifications.base import AbstractDeliveryClient, DeliveryResult
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)


class LogDeliveryClient(AbstractDeliveryClient):
    """Records messages in the log instead of sending them."""

    async def send(self, to: str, subject: str, content: str) -> DeliveryResult:
        logger.info(
            "notification.logged",
            extra={
                "recipient_hash": hash_identifier(to),
                "subject": subject,
                "content_chars": len(content),
            },
        )
        return DeliveryResult()
