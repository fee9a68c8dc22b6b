"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: float
    field: str
    errors: list[dict[str, Any]]
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class InvalidEventPayloadError(ValidationAppError):
    """Raised when an authenticated webhook body cannot be parsed."""


class ConflictAppError(AppError):
    """Raised when a write conflicts with existing state."""


class DuplicateEnrollmentError(ConflictAppError):
    """Raised when an email is already on the waitlist."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class SignatureVerificationError(AuthenticationAppError):
    """Raised when a webhook signature is missing, invalid or stale."""


class DependencyAppError(AppError):
    """Raised when a backing store or remote provider fails.

    Messages of these errors are never returned to clients.
    """


class StoreUnavailableError(DependencyAppError):
    """Raised when the durable store rejects or cannot run an operation."""


class RateLimitUnavailableError(DependencyAppError):
    """Raised when the rate-limit store cannot answer in time."""


class EventProcessingError(DependencyAppError):
    """Raised when an authenticated event fails during dispatch."""


class NotificationDeliveryError(DependencyAppError):
    """Raised when an outbound message cannot be rendered or delivered."""


class StoreIntegrityError(DependencyAppError):
    """Raised when a write violates a store constraint (unique key, FK)."""
