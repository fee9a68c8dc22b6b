"""Pydantic schemas for waitlist enrollment."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field


class EnrollRequest(BaseModel):
    """Body of ``POST /enroll``."""

    email: EmailStr = Field(..., description="Email address to put on the waitlist.")
    name: str | None = Field(
        default=None,
        min_length=2,
        max_length=200,
        description="Optional display name (at least 2 characters, taken as sent).",
    )


class EnrollResponse(BaseModel):
    """Successful enrollment."""

    success: bool = Field(True, description="Always true for a created enrollment.")
    position: int = Field(..., ge=1, description="Assigned waitlist position.")
    message: str = Field(
        "You've been added to the waitlist!",
        description="Human-readable confirmation.",
    )
