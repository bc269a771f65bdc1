"""Database Session Manager - async connection pool with automatic rollback and health checks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Connection pool uses pool_pre_ping for stale connection detection
    - All SQLAlchemy exceptions mapped to DatabaseError (core/errors.py)
    - Serialization failures (40001) and deadlocks (40P01) map to DatabaseError(retryable=True)
    - transaction() sessions run at the configured isolation level (SERIALIZABLE in production)

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
    - expire_on_commit=False: entities are converted to snapshots after commit
    - from_engine() for tests: wraps an existing engine without pool arguments
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)

from pairing.core.errors import DatabaseError

logger = logging.getLogger(__name__)

_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


def is_retryable(exc: DBAPIError) -> bool:
    """True when the driver reports a serialization failure or deadlock."""
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code in _RETRYABLE_SQLSTATES:
            return True
    return False


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
        isolation_level: str | None = "SERIALIZABLE",
    ):
        engine = create_async_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
        self._bind(engine, isolation_level)

    @classmethod
    def from_engine(
        cls, engine: AsyncEngine, isolation_level: str | None = None,
    ) -> "DatabaseSessionManager":
        manager = cls.__new__(cls)
        manager._bind(engine, isolation_level)
        return manager

    def _bind(self, engine: AsyncEngine, isolation_level: str | None) -> None:
        self.engine = engine
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False,
        )
        tx_engine = (
            engine.execution_options(isolation_level=isolation_level)
            if isolation_level else engine
        )
        self._tx_session_factory = async_sessionmaker(
            tx_engine, class_=AsyncSession, expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        async with self._guard(self._session_factory()) as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session inside one transaction, committed on clean exit."""
        async with self._guard(self._tx_session_factory()) as session:
            async with session.begin():
                yield session

    @asynccontextmanager
    async def _guard(self, session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
        try:
            yield session
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise DatabaseError("Integrity constraint violated", "commit")
        except OperationalError as e:
            await session.rollback()
            retryable = is_retryable(e)
            log = logger.warning if retryable else logger.error
            log(f"DB operational error: {e}")
            raise DatabaseError(
                "Connection or operational error", "execute", retryable=retryable,
            )
        except DBAPIError as e:
            await session.rollback()
            retryable = is_retryable(e)
            log = logger.warning if retryable else logger.error
            log(f"DB driver error: {e}")
            raise DatabaseError("Database driver error", "query", retryable=retryable)
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise DatabaseError("Database operation failed", "unknown")
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness checks)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)
    return db_manager
