"""Database session manager: async engine, transactional sessions, health checks.

Invariants:
    - Every transaction rolls back on any exception, cancellation included,
      so a half-written row is never committed
    - SQLAlchemy exceptions surface as StoreIntegrityError (constraint
      violations) or StoreUnavailableError (everything else)

Design Decisions:
    - One manager per application, created in the FastAPI lifespan
    - expire_on_commit=False: returned ORM objects stay readable after commit
    - SQLite (development/tests) gets NullPool and a busy timeout so concurrent
      writers queue on the database lock instead of failing
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.core.errors import StoreIntegrityError, StoreUnavailableError
from app.db.base import Base

logger = logging.getLogger(__name__)


def _engine_options(database_url: str, pool_size: int, max_overflow: int) -> dict[str, Any]:
    if database_url.startswith("sqlite"):
        return {"poolclass": NullPool, "connect_args": {"timeout": 30}}
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


class DatabaseSessionManager:
    """Owns the async engine and hands out transactional sessions."""

    def __init__(
        self,
        database_url: str,
        *,
        pool_size: int = 10,
        max_overflow: int = 10,
        echo: bool = False,
    ):
        self.engine = create_async_engine(
            database_url,
            echo=echo,
            **_engine_options(database_url, pool_size, max_overflow),
        )
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session inside one transaction; commit on success, roll back otherwise."""
        session = self._session_factory()
        try:
            async with session.begin():
                yield session
        except IntegrityError as e:
            logger.warning(
                "db.integrity_error",
                extra={"error_msg": str(e.orig) if e.orig else str(e)},
            )
            raise StoreIntegrityError(
                code="store_integrity_error",
                message="Integrity constraint violated",
            ) from e
        except SQLAlchemyError as e:
            logger.error(
                "db.operation_failed",
                extra={"error_type": type(e).__name__, "error_msg": str(e)},
            )
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Database operation failed",
            ) from e
        finally:
            await session.close()

    async def create_schema(self) -> None:
        """Create missing tables (development and tests; production uses migrations)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.transaction() as session:
                await session.execute(text("SELECT 1"))
            return True
        except StoreUnavailableError:
            return False

    async def close(self) -> None:
        await self.engine.dispose()
