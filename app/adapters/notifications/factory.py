"""Factory pattern for creating delivery client instances."""

from app.adapters.notifications.base import AbstractDeliveryClient
from app.adapters.notifications.log_client import LogDeliveryClient
from app.adapters.notifications.resend_client import ResendDeliveryClient
from app.core.config import EmailSettings
from app.core.errors import ValidationAppError


def create_delivery_client(cfg: EmailSettings) -> AbstractDeliveryClient:
    """Instantiate the delivery client named by ``EMAIL_PROVIDER``.

    Returns:
        AbstractDeliveryClient: Configured client instance.

    Raises:
        ValidationAppError: If provider-specific requirements are not met.
    """
    provider = cfg.provider.lower()

    if provider == "resend":
        if not cfg.api_key:
            raise ValidationAppError(
                code="email_missing_api_key",
                message="Resend provider requires EMAIL_API_KEY environment variable",
            )
        return ResendDeliveryClient(
            api_key=cfg.api_key,
            from_address=cfg.from_address,
            base_url=cfg.base_url,
            timeout_seconds=cfg.timeout_seconds,
        )

    if provider == "log":
        return LogDeliveryClient()

    raise ValidationAppError(
        code="email_unknown_provider",
        message=f"Unknown email provider: '{provider}'. Supported providers: resend, log",
    )
