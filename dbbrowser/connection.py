"""Holder of the single active database engine."""

import asyncio
import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from dbbrowser.config import get_settings
from dbbrowser.core.exceptions import NotConnectedError, QueryExecutionError

settings = get_settings()
logger = logging.getLogger(__name__)

DRIVER = "mysql+aiomysql"

# TIMESTAMP values are read back in the session zone; pin it to UTC
SESSION_INIT = "SET time_zone = '+00:00'"

CONNECTED = "connected"
DISCONNECTED = "disconnected"

Listener = Callable[[], None]


def build_url(
    hostname: str, port: int, username: str, password: str, database: str
) -> URL:
    """Build a connection URL from discrete login fields."""
    return URL.create(
        DRIVER,
        username=username,
        password=password,
        host=hostname,
        port=port,
        database=database,
    )


class ConnectionHolder:
    """
    Owns at most one pooled engine at a time.

    The lock guards only reads and replacements of the engine reference;
    queries run on a snapshot outside of it, so they proceed in parallel up
    to the pool size.
    """

    def __init__(self, pool_size: int = settings.DB_POOL_SIZE):
        self.pool_size = pool_size
        self._engine: Optional[AsyncEngine] = None
        self._lock = asyncio.Lock()
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, event: str, listener: Listener) -> None:
        """Register a no-payload callback for ``connected``/``disconnected``."""
        self._listeners[event].append(listener)

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners[event]):
            listener()

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def database(self) -> Optional[str]:
        if self._engine is None:
            return None
        return self._engine.url.database

    async def connect(
        self,
        hostname: str,
        port: int,
        username: str,
        password: str,
        database: str,
    ) -> None:
        """Connect with discrete login fields, replacing any prior engine."""
        await self.connect_url(build_url(hostname, port, username, password, database))

    async def connect_url(self, url) -> None:
        """
        Create a pooled engine for ``url``, verify it, and make it current.

        Raises:
            QueryExecutionError: If the server cannot be reached; the
                previous engine, if any, stays in place
        """
        url = make_url(url)
        engine = create_async_engine(
            url,
            echo=settings.DEBUG,
            pool_size=self.pool_size,
            max_overflow=0,
            pool_pre_ping=True,
            pool_recycle=settings.DB_POOL_RECYCLE,
            connect_args={"init_command": SESSION_INIT},
        )
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            await engine.dispose()
            logger.error(f"Connection to {url.host}:{url.port} failed: {exc}")
            raise QueryExecutionError("connect", str(exc)) from exc

        async with self._lock:
            previous, self._engine = self._engine, engine

        if previous is not None:
            await previous.dispose()
            self._emit(DISCONNECTED)
        logger.info(f"Connected to {url.host}:{url.port}/{url.database}")
        self._emit(CONNECTED)

    async def disconnect(self) -> None:
        """Close and clear the current engine; no-op when not connected."""
        async with self._lock:
            engine, self._engine = self._engine, None

        if engine is None:
            return
        await engine.dispose()
        logger.info(f"Disconnected from {engine.url.database}")
        self._emit(DISCONNECTED)

    async def snapshot(self) -> AsyncEngine:
        """Return the current engine; raise when not connected."""
        async with self._lock:
            engine = self._engine
        if engine is None:
            raise NotConnectedError()
        return engine
