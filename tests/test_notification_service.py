"""Tests for the confirmation message stage and its delivery adapters."""

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from app.adapters.notifications import (
    AbstractDeliveryClient,
    DeliveryResult,
    LogDeliveryClient,
    ResendDeliveryClient,
    create_delivery_client,
)
from app.core.config import EmailSettings
from app.core.errors import NotificationDeliveryError, ValidationAppError
from app.db.models import EnrollmentRecord
from app.services.notification_service import NotificationTrigger, render_confirmation


def _record(email: str = "ada@example.com", name: str | None = "Ada", position: int = 3) -> EnrollmentRecord:
    return EnrollmentRecord(
        id=position,
        email=email,
        name=name,
        position=position,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class _RecordingClient(AbstractDeliveryClient):
    def __init__(self, result: DeliveryResult | None = None, exc: Exception | None = None, delay: float = 0):
        self.result = result or DeliveryResult(message_id="msg_1")
        self.exc = exc
        self.delay = delay
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, to: str, subject: str, content: str) -> DeliveryResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        self.sent.append((to, subject, content))
        return self.result


class TestRenderConfirmation:

    def test_includes_position_and_project(self) -> None:
        message = render_confirmation(_record(position=42), "Launchpad")

        assert message.subject == "You're on the Launchpad waitlist!"
        assert "#42" in message.html
        assert "Launchpad" in message.html
        assert ", Ada" in message.html

    def test_escapes_user_supplied_values(self) -> None:
        message = render_confirmation(
            _record(name="<script>alert(1)</script>"), "Launchpad"
        )

        assert "<script>" not in message.html
        assert "&lt;script&gt;" in message.html

    def test_omits_greeting_without_name(self) -> None:
        message = render_confirmation(_record(name=None), "Launchpad")

        assert "You're on the list</h1>" in message.html


class TestNotificationTrigger:

    def _trigger(self, client: AbstractDeliveryClient, timeout: float = 1.0) -> NotificationTrigger:
        return NotificationTrigger(client, project_name="Launchpad", timeout_seconds=timeout)

    @pytest.mark.asyncio
    async def test_notify_sends_to_enrolled_address(self) -> None:
        client = _RecordingClient()

        await self._trigger(client).notify(_record())

        assert len(client.sent) == 1
        to, subject, content = client.sent[0]
        assert to == "ada@example.com"
        assert "Launchpad" in subject
        assert "#3" in content

    @pytest.mark.asyncio
    async def test_deliver_raises_on_provider_error(self) -> None:
        client = _RecordingClient(result=DeliveryResult(error="422: invalid from"))

        with pytest.raises(NotificationDeliveryError) as exc_info:
            await self._trigger(client).deliver(_record())

        assert exc_info.value.code == "email_send_failed"
        assert exc_info.value.message == "422: invalid from"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "client",
        [
            _RecordingClient(result=DeliveryResult(error="500: provider down")),
            _RecordingClient(exc=httpx.ConnectError("refused")),
            _RecordingClient(exc=RuntimeError("boom")),
        ],
    )
    async def test_notify_never_raises(self, client) -> None:
        await self._trigger(client).notify(_record())

    @pytest.mark.asyncio
    async def test_notify_gives_up_after_timeout(self) -> None:
        client = _RecordingClient(delay=5)

        await asyncio.wait_for(self._trigger(client, timeout=0.05).notify(_record()), timeout=2)

        assert client.sent == []


class TestResendDeliveryClient:

    @pytest.mark.asyncio
    async def test_posts_email_payload(self) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "re_123"})

        client = ResendDeliveryClient(
            api_key="re_key",
            from_address="hello@launchpad.dev",
            base_url="https://api.resend.test",
            transport=httpx.MockTransport(handler),
        )

        result = await client.send("ada@example.com", "Hi", "<p>x</p>")
        await client.close()

        assert result.ok
        assert result.message_id == "re_123"
        assert captured["url"] == "https://api.resend.test/emails"
        assert captured["auth"] == "Bearer re_key"
        assert captured["body"] == {
            "from": "hello@launchpad.dev",
            "to": ["ada@example.com"],
            "subject": "Hi",
            "html": "<p>x</p>",
        }

    @pytest.mark.asyncio
    async def test_provider_error_is_returned_not_raised(self) -> None:
        transport = httpx.MockTransport(
            lambda request: httpx.Response(422, json={"message": "Invalid `from` field"})
        )
        client = ResendDeliveryClient(api_key="k", from_address="x@y.z", transport=transport)

        result = await client.send("ada@example.com", "Hi", "<p>x</p>")
        await client.close()

        assert not result.ok
        assert result.error == "422: Invalid `from` field"

    @pytest.mark.asyncio
    async def test_non_json_error_body_uses_reason_phrase(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))
        client = ResendDeliveryClient(api_key="k", from_address="x@y.z", transport=transport)

        result = await client.send("ada@example.com", "Hi", "<p>x</p>")
        await client.close()

        assert result.error == "502: Bad Gateway"


class TestDeliveryClientFactory:

    def test_log_provider(self) -> None:
        assert isinstance(create_delivery_client(EmailSettings(provider="log")), LogDeliveryClient)

    def test_resend_provider(self) -> None:
        client = create_delivery_client(EmailSettings(provider="Resend", api_key="re_key"))
        assert isinstance(client, ResendDeliveryClient)

    def test_resend_requires_api_key(self) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            create_delivery_client(EmailSettings(provider="resend", api_key=None))

        assert exc_info.value.code == "email_missing_api_key"

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            create_delivery_client(EmailSettings(provider="carrier-pigeon"))

        assert exc_info.value.code == "email_unknown_provider"
