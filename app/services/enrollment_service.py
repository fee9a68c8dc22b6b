"""Waitlist enrollment with gapless position assignment.

A position is taken by incrementing the sequence row inside the same
transaction that inserts the record:

1. ``UPDATE waitlist_sequence SET last_position = last_position + 1
   RETURNING last_position`` locks the row (the database on SQLite), so
   concurrent enrollments queue behind each other and every one sees all
   previously committed inserts.
2. The duplicate-email check runs under that lock; a hit raises
   ``DuplicateEnrollmentError`` and the rollback returns the increment.
3. The record is inserted and the transaction commits.

Either everything commits or nothing does, so positions stay exactly
``{1..N}``.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    DuplicateEnrollmentError,
    StoreIntegrityError,
    StoreUnavailableError,
)
from app.core.logging import hash_identifier
from app.db.models import WAITLIST_SEQUENCE, EnrollmentRecord, EnrollmentSequence
from app.db.session import DatabaseSessionManager

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "Email already on waitlist"


def _duplicate(email: str) -> DuplicateEnrollmentError:
    return DuplicateEnrollmentError(
        code="duplicate_enrollment",
        message=DUPLICATE_MESSAGE,
        details={"field": "email"},
    )


class EnrollmentSequencer:
    """Assigns unique, gapless waitlist positions."""

    def __init__(self, db: DatabaseSessionManager) -> None:
        self._db = db

    async def ensure_sequence(self) -> None:
        """Seed the sequence row at the current record count if it is missing."""
        try:
            async with self._db.transaction() as session:
                existing = await session.get(EnrollmentSequence, WAITLIST_SEQUENCE)
                if existing is not None:
                    return
                count = await self._count(session)
                session.add(
                    EnrollmentSequence(name=WAITLIST_SEQUENCE, last_position=count)
                )
            logger.info("enrollment.sequence_seeded", extra={"last_position": count})
        except StoreIntegrityError:
            # Another worker seeded it first.
            logger.info("enrollment.sequence_already_seeded")

    async def enroll(self, email: str, name: str | None = None) -> EnrollmentRecord:
        """Create an enrollment and assign the next position.

        Args:
            email: Validated email address (unique across all records).
            name: Optional display name.

        Returns:
            EnrollmentRecord: The committed record.

        Raises:
            DuplicateEnrollmentError: If the email is already enrolled.
            StoreUnavailableError: If the store fails; nothing is written.
        """
        email_hash = hash_identifier(email)

        try:
            async with self._db.transaction() as session:
                position = await self._next_position(session)

                existing = await session.scalar(
                    select(EnrollmentRecord.id).where(EnrollmentRecord.email == email)
                )
                if existing is not None:
                    logger.info(
                        "enrollment.duplicate",
                        extra={"email_hash": email_hash},
                    )
                    raise _duplicate(email)

                record = EnrollmentRecord(email=email, name=name, position=position)
                session.add(record)
                await session.flush()
        except StoreIntegrityError as exc:
            # Unique key caught what the check could not (weaker isolation).
            if await self._email_exists(email):
                logger.info(
                    "enrollment.duplicate",
                    extra={"email_hash": email_hash, "detected_by": "constraint"},
                )
                raise _duplicate(email) from exc
            raise

        logger.info(
            "enrollment.created",
            extra={"email_hash": email_hash, "position": record.position},
        )
        return record

    async def count(self) -> int:
        """Return the number of committed enrollments."""
        async with self._db.transaction() as session:
            return await self._count(session)

    async def _next_position(self, session: AsyncSession) -> int:
        result = await session.execute(
            update(EnrollmentSequence)
            .where(EnrollmentSequence.name == WAITLIST_SEQUENCE)
            .values(last_position=EnrollmentSequence.last_position + 1)
            .returning(EnrollmentSequence.last_position)
            .execution_options(synchronize_session=False)
        )
        position = result.scalar_one_or_none()
        if position is None:
            raise StoreUnavailableError(
                code="sequence_not_initialized",
                message="Waitlist sequence row is missing",
            )
        return position

    async def _email_exists(self, email: str) -> bool:
        async with self._db.transaction() as session:
            found = await session.scalar(
                select(EnrollmentRecord.id).where(EnrollmentRecord.email == email)
            )
        return found is not None

    @staticmethod
    async def _count(session: AsyncSession) -> int:
        total = await session.scalar(
            select(func.count()).select_from(EnrollmentRecord)
        )
        return int(total or 0)
