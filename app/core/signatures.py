"""Webhook signature verification.

Payment events arrive with a header of the form::

    Stripe-Signature: t=1700000000,v1=<hex hmac>[,v1=<hex hmac>]

``v1`` is HMAC-SHA256 over ``"{t}." + raw_body`` keyed with the shared
signing secret. Verification always hashes the exact bytes received; the body
is parsed only after the signature checks out.

Design principles:
- Fail closed: every doubt (no header, no secret, bad format, mismatch,
  stale timestamp) is a rejection
- Constant-time comparison of digests
- Clients get a generic message; the precise reason is only logged
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

from fastapi import Request
from pydantic import ValidationError

from app.core.errors import InvalidEventPayloadError, SignatureVerificationError
from app.schemas.events import PaymentEventEnvelope, VerifiedEvent

logger = logging.getLogger(__name__)

SIGNATURE_SCHEME = "v1"
MISSING_SIGNATURE_MESSAGE = "Missing webhook signature"
INVALID_PAYLOAD_MESSAGE = "Invalid webhook payload"


def parse_signature_header(header: str) -> tuple[int | None, list[str]]:
    """Split a signature header into its timestamp and ``v1`` signatures.

    Args:
        header: Raw header value.

    Returns:
        Tuple of (timestamp or None, list of v1 hex digests).

    Examples:
        >>> parse_signature_header("t=12,v1=ab,v0=cd")
        (12, ['ab'])
        >>> parse_signature_header("garbage")
        (None, [])
    """
    timestamp: int | None = None
    signatures: list[str] = []

    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep or not value:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                return None, signatures
        elif key == SIGNATURE_SCHEME:
            signatures.append(value)

    return timestamp, signatures


def compute_signature(raw_body: bytes, secret: str, timestamp: int) -> str:
    """HMAC-SHA256 hex digest of ``"{timestamp}." + raw_body``."""
    signed_payload = f"{timestamp}.".encode("utf-8") + raw_body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def sign_payload(raw_body: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a valid signature header for ``raw_body`` (tests and local tooling)."""
    ts = int(time.time()) if timestamp is None else timestamp
    return f"t={ts},{SIGNATURE_SCHEME}={compute_signature(raw_body, secret, ts)}"


def _reject(reason: str, message: str = INVALID_PAYLOAD_MESSAGE, **extra) -> SignatureVerificationError:
    logger.warning(
        "webhook.signature_rejected",
        extra={"reason": reason, **extra},
    )
    return SignatureVerificationError(code="invalid_signature", message=message)


def verify_signature(
    raw_body: bytes,
    signature_header: str | None,
    secret: str | None,
    *,
    tolerance_seconds: int,
    now: float | None = None,
) -> VerifiedEvent:
    """Authenticate a webhook body and parse it into a ``VerifiedEvent``.

    Args:
        raw_body: Request body exactly as received.
        signature_header: Value of the signature header, if present.
        secret: Configured signing secret, if any.
        tolerance_seconds: Allowed distance between the signed timestamp and now.
        now: Current UNIX time (injectable for tests).

    Returns:
        VerifiedEvent: The authenticated event.

    Raises:
        SignatureVerificationError: If authentication fails for any reason.
        InvalidEventPayloadError: If the authenticated body is not a valid event.
    """
    if not signature_header:
        raise _reject("missing_header", MISSING_SIGNATURE_MESSAGE)

    if not secret:
        logger.error(
            "webhook.secret_not_configured",
            extra={"hint": "Set WEBHOOK_SIGNING_SECRET"},
        )
        raise _reject("secret_not_configured")

    timestamp, signatures = parse_signature_header(signature_header)
    if timestamp is None:
        raise _reject("missing_timestamp")
    if not signatures:
        raise _reject("missing_v1_signature")

    expected = compute_signature(raw_body, secret, timestamp)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise _reject("signature_mismatch", candidates=len(signatures))

    current = time.time() if now is None else now
    skew = abs(current - timestamp)
    if skew > tolerance_seconds:
        raise _reject("timestamp_outside_tolerance", skew_s=int(skew))

    try:
        envelope = PaymentEventEnvelope.model_validate_json(raw_body)
    except ValidationError as exc:
        logger.warning(
            "webhook.payload_invalid",
            extra={"error_count": exc.error_count()},
        )
        raise InvalidEventPayloadError(
            code="invalid_payload",
            message=INVALID_PAYLOAD_MESSAGE,
        ) from exc

    event = VerifiedEvent.from_envelope(envelope)
    logger.info(
        "webhook.verified",
        extra={"event_id": event.id, "event_type": event.type, "livemode": event.livemode},
    )
    return event


async def verified_event(request: Request) -> VerifiedEvent:
    """FastAPI dependency returning the authenticated event of a webhook request.

    Reads the raw body (never a parsed/re-serialized form) and the configured
    signature header.

    Raises:
        SignatureVerificationError: 400 via the global handler.
        InvalidEventPayloadError: 400 via the global handler.
    """
    cfg = request.app.state.settings.webhook
    raw_body = await request.body()
    return verify_signature(
        raw_body,
        request.headers.get(cfg.signature_header),
        cfg.signing_secret,
        tolerance_seconds=cfg.tolerance_seconds,
    )
