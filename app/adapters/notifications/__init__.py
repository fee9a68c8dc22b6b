"""Outbound message delivery adapters."""

from app.adapters.notifications.base import AbstractDeliveryClient, DeliveryResult
from app.adapters.notifications.factory import create_delivery_client
from app.adapters.notifications.log_client import LogDeliveryClient
from app.adapters.notifications.resend_client import ResendDeliveryClient

__all__ = [
    "AbstractDeliveryClient",
    "DeliveryResult",
    "LogDeliveryClient",
    "ResendDeliveryClient",
    "create_delivery_client",
]
