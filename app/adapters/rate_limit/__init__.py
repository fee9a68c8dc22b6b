"""Rate limiting adapters.

This package keeps the counter storage behind a small abstraction so the
API layer does not care whether windows live in Redis (shared across all
workers) or in process memory (development and tests only).
"""

from app.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitResult
from app.adapters.rate_limit.factory import create_rate_limit_store

__all__ = [
    "AbstractRateLimitStore",
    "RateLimitResult",
    "create_rate_limit_store",
]
