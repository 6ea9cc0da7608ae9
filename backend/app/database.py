"""
Travel Admin Backend — Database Handle & Session Management
=============================================================

What:  Process-scoped async SQLAlchemy handle with a supervised reconnect
       loop, the declarative Base, and the per-request session dependency.
Why:   One long-lived engine per process; a lost connection must be retried
       forever at a fixed interval without any request having to care.
How:   `Database` owns the engine and session factory. `start()` launches a
       background task that connects (tenacity, wait_fixed, never stops) and
       then pings periodically; a failed ping drops the state back to
       DISCONNECTED and re-enters the reconnect loop.
Who:   Created by the application factory and stored on `app.state.database`;
       route handlers receive sessions via `Depends(get_db_session)`.

Connection states (codes kept compatible with the status endpoint):
    0 DISCONNECTED → 2 CONNECTING → 1 CONNECTED
    1 CONNECTED → (ping fails) → 0 DISCONNECTED → 2 CONNECTING ...
    any → 3 DISCONNECTING → 0 DISCONNECTED   (shutdown)

Connection Pooling:
    Server databases (PostgreSQL/asyncpg) use a sized pool with pre-ping so a
    stale connection is replaced transparently on checkout. SQLite (tests and
    local development) uses SQLAlchemy's default pool for the dialect.
"""

import asyncio
import contextlib
import logging
from enum import IntEnum
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    wait_fixed,
)

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models (shared metadata for Alembic)."""
    pass


class ConnectionState(IntEnum):
    DISCONNECTED = 0
    CONNECTED = 1
    CONNECTING = 2
    DISCONNECTING = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


class Database:
    """
    Long-lived database handle for one process.

    Lifecycle:
        db = Database(url)          # engine created lazily, no I/O yet
        db.start()                  # supervisor task: connect + watch
        ...                         # sessions via db.session_factory
        await db.close()            # cancel supervisor, dispose the pool

    Requests never wait for the supervisor. While it is reconnecting, a
    request that needs the database fails on its own and is reported through
    the usual read/write failure envelopes.
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 10,
        max_overflow: int = 5,
        pool_pre_ping: bool = True,
        reconnect_interval: float = 5.0,
        health_interval: float = 30.0,
        echo: bool = False,
    ):
        self.url = url
        self.reconnect_interval = reconnect_interval
        self.health_interval = health_interval

        options = {"echo": echo}
        if make_url(url).get_backend_name() != "sqlite":
            options.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=pool_pre_ping,
                pool_recycle=3600,
            )
        self.engine = create_async_engine(url, **options)

        # expire_on_commit=False: records stay readable after the store commits
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        self.state = ConnectionState.DISCONNECTED
        self._supervisor: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            reconnect_interval=settings.db_reconnect_interval,
            health_interval=settings.db_health_interval,
            echo=settings.log_level == "DEBUG",
        )

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    async def ping(self) -> bool:
        """Run `SELECT 1`; True when the database answered."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.debug("Database ping failed: %s", str(e))
            return False

    async def connect(self) -> None:
        """
        Connect, retrying at a fixed interval until the database answers.

        Never gives up; cancellation (shutdown) is the only way out.
        """
        self.state = ConnectionState.CONNECTING
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((SQLAlchemyError, OSError)),
            wait=wait_fixed(self.reconnect_interval),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                async with self.engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
        self.state = ConnectionState.CONNECTED
        logger.info("Database connected (%s)", make_url(self.url).render_as_string(hide_password=True))

    async def _supervise(self) -> None:
        while True:
            if self.state != ConnectionState.CONNECTED:
                await self.connect()
            await asyncio.sleep(self.health_interval)
            if not await self.ping():
                logger.warning("Database disconnected. Attempting to reconnect...")
                self.state = ConnectionState.DISCONNECTED

    def start(self) -> None:
        """Launch the connection supervisor on the running event loop."""
        if self._supervisor is None or self._supervisor.done():
            self._supervisor = asyncio.create_task(
                self._supervise(), name="database-supervisor"
            )

    async def close(self) -> None:
        """Stop supervising and close every pooled connection."""
        if self._supervisor is not None:
            self._supervisor.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._supervisor
            self._supervisor = None
        self.state = ConnectionState.DISCONNECTING
        await self.engine.dispose()
        self.state = ConnectionState.DISCONNECTED
        logger.info("Database connections closed")

    async def create_schema(self) -> None:
        """Create every table known to the ORM (tests and local development)."""
        # Importing registers the models with Base.metadata
        from app import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    The record store commits its own writes (so reclamation only ever runs
    after the new state is durable); the commit here flushes anything left
    over, and any error rolls the session back before it is returned to the
    pool.
    """
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
