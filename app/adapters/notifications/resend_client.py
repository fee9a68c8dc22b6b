"""Resend transactional email adapter."""

from typing import Any

import httpx

from app.adapters.notifications.base import AbstractDeliveryClient, DeliveryResult


class ResendDeliveryClient(AbstractDeliveryClient):
    """Client for the Resend ``POST /emails`` API.

    Uses a shared ``httpx.AsyncClient`` with a bounded timeout.
    """

    def __init__(
        self,
        api_key: str,
        from_address: str,
        base_url: str = "https://api.resend.com",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            api_key: Resend API key.
            from_address: Sender address.
            base_url: API endpoint (overridable for tests and proxies).
            timeout_seconds: Per-request timeout in seconds.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).
        """
        self.from_address = from_address
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout_seconds,
            transport=transport,
        )

    async def send(self, to: str, subject: str, content: str) -> DeliveryResult:
        """Send one email; non-2xx answers come back as ``DeliveryResult.error``."""
        payload: dict[str, Any] = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": content,
        }

        response = await self.client.post("/emails", json=payload)

        if response.is_success:
            body = response.json() if response.content else {}
            return DeliveryResult(message_id=body.get("id"))

        try:
            detail = response.json().get("message") or response.reason_phrase
        except ValueError:
            detail = response.reason_phrase
        return DeliveryResult(error=f"{response.status_code}: {detail}")

    async def close(self) -> None:
        await self.client.aclose()
