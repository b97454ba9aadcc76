"""
Database Service - Core Infrastructure Layer

Purpose
-------
Centralized async database engine and session management for the saga
core. Provides atomic transactions, pessimistic locking, per-user advisory
locks and health checks.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine with connection pooling
- Provide async context managers for read sessions and atomic transactions
- Enforce transaction discipline: commit on success, rollback on exception
- Serialize per-user mutations with `pg_advisory_xact_lock(user_id)`
- Support pessimistic row locking via `with_for_update=True`
- Configure statement timeouts for PostgreSQL transactions
- Create the schema for tests and bootstrap

Non-Responsibilities
--------------------
- Migrations (outside the core)
- Domain logic or event emission

LES 2025 Compliance
-------------------
- Transaction-safe with pessimistic locking support
- Structured logging with error context
- Config-driven (all tunables from Config)

Architecture Notes
------------------
- `get_transaction()` is the interface for every state mutation. Services
  never call `commit()` or `rollback()` themselves.
- Domain exceptions raised inside a transaction roll it back and are logged
  at INFO; anything else is logged at ERROR.
- NullPool is used when ENVIRONMENT=testing so each test gets fresh
  connections on the current event loop.

Usage Example
-------------
>>> async with DatabaseService.get_transaction() as session:
...     await DatabaseService.acquire_user_lock(session, user_id)
...     profile = await DatabaseService.get_locked_entity(session, Profile, user_id)
...     profile.balance -= 250
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, Pool

from src.core.config.config import Config
from src.core.database.base import Base
from src.core.logging.logger import get_logger
from src.modules.shared.exceptions import SagaDomainException

logger = get_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable view of database configuration for the engine's lifetime."""

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    pool_timeout: int
    statement_timeout_ms: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    - initialize(database_url=None) / shutdown()
    - get_session() / get_transaction()
    - acquire_user_lock(session, user_id)
    - get_locked_entity(session, model, pk)
    - health_check()
    - create_schema() / drop_schema()
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _build_config_snapshot(cls, database_url: Optional[str] = None) -> _DatabaseConfigSnapshot:
        url = database_url or getattr(Config, "DATABASE_URL", None)
        if not url or not isinstance(url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        pool_class: Type[Pool] = NullPool if Config.is_testing() else AsyncAdaptedQueuePool

        return _DatabaseConfigSnapshot(
            url=url,
            echo=bool(Config.DATABASE_ECHO),
            pool_class=pool_class,
            pool_size=int(Config.DATABASE_POOL_SIZE),
            max_overflow=int(Config.DATABASE_MAX_OVERFLOW),
            pool_recycle=int(Config.DATABASE_POOL_RECYCLE),
            pool_timeout=int(Config.DATABASE_POOL_TIMEOUT),
            statement_timeout_ms=int(Config.DATABASE_STATEMENT_TIMEOUT_MS),
        )

    @classmethod
    async def initialize(cls, database_url: Optional[str] = None) -> None:
        """
        Initialize the engine and session factory (idempotent).

        Parameters
        ----------
        database_url:
            Overrides Config.DATABASE_URL (used by the test container).

        Raises
        ------
        DatabaseInitializationError
            If configuration is invalid or engine creation fails.
        """
        async with cls._init_lock:
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            try:
                config = cls._build_config_snapshot(database_url)
                cls._config_snapshot = config

                engine_kwargs: dict[str, Any] = {
                    "echo": config.echo,
                    "poolclass": config.pool_class,
                }
                if config.pool_class is not NullPool:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_timeout": config.pool_timeout,
                            "pool_pre_ping": True,
                        }
                    )

                cls._engine = create_async_engine(config.url, **engine_kwargs)
                cls._session_factory = async_sessionmaker(
                    bind=cls._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )

                logger.info(
                    "DatabaseService initialized",
                    extra={
                        "url_scheme": config.url_scheme,
                        "pool_class": config.pool_class.__name__,
                    },
                )

            except Exception as exc:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                if isinstance(exc, DatabaseInitializationError):
                    raise
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call repeatedly."""
        async with cls._init_lock:
            if cls._engine is None:
                return

            logger.info("Shutting down DatabaseService")
            try:
                await cls._engine.dispose()
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    def get_engine(cls) -> AsyncEngine:
        cls._ensure_initialized()
        assert cls._engine is not None
        return cls._engine

    # ========================================================================
    # Schema
    # ========================================================================

    @classmethod
    async def create_schema(cls) -> None:
        """Create every table registered on Base.metadata."""
        import src.database.models  # noqa: F401  (registers mappers)

        engine = cls.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema created", extra={"tables": len(Base.metadata.tables)})

    @classmethod
    async def drop_schema(cls) -> None:
        import src.database.models  # noqa: F401

        engine = cls.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """
        Lightweight `SELECT 1` probe.

        Returns
        -------
        bool
            True if the database answered; never raises.
        """
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _ensure_initialized(cls) -> None:
        if cls._session_factory is None or cls._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )

    @classmethod
    def _get_config_snapshot(cls) -> _DatabaseConfigSnapshot:
        if cls._config_snapshot is None:
            raise DatabaseNotInitializedError("DatabaseService is not initialized")
        return cls._config_snapshot

    @classmethod
    async def _apply_statement_timeout(cls, session: AsyncSession) -> None:
        config = cls._get_config_snapshot()
        if config.is_postgres and config.statement_timeout_ms > 0:
            await session.execute(
                text(f"SET LOCAL statement_timeout = {int(config.statement_timeout_ms)}")
            )

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session without automatic commit, for reads.

        Yields
        ------
        AsyncSession
            Closed on exit; uncommitted work is discarded.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        async with cls._session_factory() as session:
            await cls._apply_statement_timeout(session)
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in an atomic transaction.

        Commits on success. On any exception rolls back, logs with context
        and re-raises the original exception.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                await cls._apply_statement_timeout(session)
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )
            except SagaDomainException as exc:
                await session.rollback()
                logger.info(
                    "Transaction rolled back on domain rule",
                    extra={"error_code": exc.error_code, "reason": exc.message},
                )
                raise
            except (OperationalError, DBAPIError) as exc:
                await session.rollback()
                logger.error(
                    f"{type(exc).__name__} in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                    exc_info=True,
                )
                raise
            except Exception as exc:
                await session.rollback()
                logger.error(
                    "Error in transaction; rolled back",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise

    # ========================================================================
    # Locking Helpers
    # ========================================================================

    @classmethod
    async def acquire_user_lock(cls, session: AsyncSession, user_id: int) -> None:
        """
        Take the transaction-scoped advisory lock for a user.

        Must be the first statement of per-user mutating transactions so
        concurrent hires, recruits, rerolls and party edits serialize.
        """
        await session.execute(
            text("SELECT pg_advisory_xact_lock(:uid)"),
            {"uid": int(user_id)},
        )

    @classmethod
    async def get_locked_entity(
        cls,
        session: AsyncSession,
        model: Type[T],
        primary_key: Any,
    ) -> Optional[T]:
        """
        Fetch an entity with `SELECT ... FOR UPDATE`.

        Parameters
        ----------
        session:
            Active session from get_transaction().
        model:
            ORM model class.
        primary_key:
            Primary key value (tuple for composite keys).
        """
        return await session.get(model, primary_key, with_for_update=True)
