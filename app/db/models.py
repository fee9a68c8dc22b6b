"""ORM models for the intake pipeline.

Invariants:
    - waitlist_entries.email and waitlist_entries.position are unique
    - waitlist_sequence holds one row per sequence; last_position always equals
      the number of committed entries (incremented in the same transaction
      as the insert)
    - processed_events.event_id is the idempotency key for webhook effects
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

WAITLIST_SEQUENCE = "waitlist"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EnrollmentRecord(Base):
    """A waitlist enrollment with its immutable position."""
    __tablename__ = "waitlist_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )

    def __repr__(self) -> str:
        return f"EnrollmentRecord(id={self.id!r}, position={self.position!r})"


class EnrollmentSequence(Base):
    """Counter row serialising position assignment."""
    __tablename__ = "waitlist_sequence"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    last_position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ProcessedEvent(Base):
    """Marker for a webhook event whose effect has been applied."""
    __tablename__ = "processed_events"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
