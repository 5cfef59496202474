"""
Database engine, sessions and the unit-of-work helper

The API initializes the session manager at startup. Anything else that asks
for a session (CLI runs, alembic helpers) gets a lazily built manager
configured from Settings.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from packages.common.config import get_settings
from packages.common.errors import TransactionError

Base = declarative_base()

logger = structlog.get_logger()


def _configure_sqlite_connection(dbapi_connection, connection_record):
    # Driver-level transaction handling off so SAVEPOINT nests correctly
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_transaction(conn):
    conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, **engine_kwargs) -> AsyncEngine:
    """Create an async engine for PostgreSQL (asyncpg) or SQLite (aiosqlite)"""
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    is_sqlite = database_url.startswith("sqlite")

    options = {"echo": engine_kwargs.pop("echo", False)}
    if not is_sqlite:
        options.update(
            pool_size=20,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=3600,
            isolation_level="READ COMMITTED",
        )
    options.update(engine_kwargs)

    engine = create_async_engine(database_url, **options)

    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _configure_sqlite_connection)
        event.listen(engine.sync_engine, "begin", _begin_sqlite_transaction)

    return engine


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    """Sessions keep loaded attributes after commit and never autoflush"""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


class DatabaseSessionManager:
    """Owns the engine and hands out request-scoped sessions"""

    def __init__(self):
        self._engine = None
        self._sessionmaker = None
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._sessionmaker is not None

    @property
    def engine(self):
        return self._engine

    async def init(self, database_url: str, **engine_kwargs):
        """Build the engine once; later calls are no-ops"""
        async with self._init_lock:
            if self.initialized:
                return
            self._engine = build_engine(database_url, **engine_kwargs)
            self._sessionmaker = make_sessionmaker(self._engine)

        logger.info("database_initialized", dialect=self._engine.dialect.name)

    async def close(self):
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session for one request.

        Services commit their own units of work; whatever is still pending
        when the request ends is committed here, or rolled back on error.
        """
        if not self.initialized:
            raise RuntimeError("DatabaseSessionManager not initialized")

        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


# Global session manager instance
sessionmanager = DatabaseSessionManager()


@asynccontextmanager
async def unit_of_work(db: AsyncSession, operation: str) -> AsyncGenerator[AsyncSession, None]:
    """
    Run a block of writes as one transaction.

    Commits when the block finishes, rolls back on any error. Database
    failures surface as TransactionError; domain errors propagate unchanged.
    """
    try:
        yield db
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.error("transaction_constraint_violation",
                     operation=operation,
                     error=str(e.orig))
        raise TransactionError(f"{operation} violated a constraint: {e.orig}") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("transaction_failed",
                     operation=operation,
                     error=str(e),
                     exc_info=True)
        raise TransactionError(f"{operation} failed: {e}") from e
    except Exception:
        await db.rollback()
        raise


async def _ensure_initialized():
    """Initialize from Settings on first use unless DB_LAZY_INIT is off"""
    if sessionmanager.initialized:
        return

    settings = get_settings()
    if not settings.db_lazy_init:
        raise RuntimeError(
            "Session manager not initialized and DB_LAZY_INIT is off. "
            "Call sessionmanager.init() during startup."
        )

    await sessionmanager.init(settings.database_url, echo=settings.sql_echo)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request"""
    await _ensure_initialized()
    async with sessionmanager.session() as session:
        yield session
