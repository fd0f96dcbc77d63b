from typing import AsyncGenerator, Awaitable, Callable, List, Optional
from contextlib import asynccontextmanager
import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from ibms.core.config import settings

logger = logging.getLogger(__name__)

# Base model
Base = declarative_base()

SessionFactory = Callable[[], AsyncSession]
AfterCommitCallback = Callable[[], Awaitable[None]]


def _serialize_sqlite_writers(sqlite_engine: AsyncEngine) -> None:
    """Open every SQLite transaction with BEGIN IMMEDIATE.

    SQLite ignores SELECT ... FOR UPDATE, so transactions take the write lock
    up front and concurrent writers queue on the busy timeout instead of
    failing with "database is locked" halfway through.
    """
    @event.listens_for(sqlite_engine.sync_engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        # Leave BEGIN to the listener below
        dbapi_conn.isolation_level = None

    @event.listens_for(sqlite_engine.sync_engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine for ``database_url``"""
    if "sqlite" in database_url.lower():
        engine_kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url:
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
        sqlite_engine = create_async_engine(database_url, echo=echo, **engine_kwargs)
        _serialize_sqlite_writers(sqlite_engine)
        return sqlite_engine

    return create_async_engine(
        database_url,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=echo,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
AsyncSessionLocal = build_session_factory(engine)


class UnitOfWork:
    """One database transaction.

    Commits when the block exits cleanly and rolls back when it raises; the
    session is always closed. Callbacks registered with ``after_commit`` run
    only once the transaction is durably committed, so real-time
    notifications never fire for work that was rolled back.
    """

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None
        self._after_commit: List[AfterCommitCallback] = []

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("Unit of work has not been started")
        return self._session

    def after_commit(self, callback: AfterCommitCallback) -> None:
        self._after_commit.append(callback)

    async def __aenter__(self) -> "UnitOfWork":
        self._session = self._session_factory()
        await self._session.begin()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        committed = False
        try:
            if exc_type is None:
                await self._session.commit()
                committed = True
            else:
                await self._session.rollback()
        finally:
            await self._session.close()
            self._session = None

        callbacks, self._after_commit = self._after_commit, []
        if committed:
            for callback in callbacks:
                try:
                    await callback()
                except Exception as e:
                    logger.error(f"After-commit callback failed: {e}")
        return False


@asynccontextmanager
async def unit_of_work(
    session_factory: SessionFactory,
    external: Optional[UnitOfWork] = None,
) -> AsyncGenerator[UnitOfWork, None]:
    """Join ``external`` when given, otherwise open and own a new unit of work.

    A joined unit of work is never committed or rolled back here; the caller
    that opened it owns the boundary and its after-commit callbacks.
    """
    if external is not None:
        yield external
        return

    async with UnitOfWork(session_factory) as uow:
        yield uow


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Initialize database tables"""
    # Register every mapped table on Base.metadata
    import ibms.domain.beds.models  # noqa: F401
    import ibms.domain.admissions.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections"""
    await engine.dispose()
