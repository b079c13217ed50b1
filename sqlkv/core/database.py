"""Async database bootstrap with SQLAlchemy 2.0.

``StoreBuilder`` collects the connection target and table name,
``Database`` owns the async engine and makes sure the key-value table
exists before anything reads or writes it.
"""

import asyncio
from pathlib import Path
from typing import Optional
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from sqlkv.core.config import DEFAULT_TABLE_NAME, MEMORY_TARGET, Settings
from sqlkv.core.errors import SchemaError, StoreConnectionError
from sqlkv.core.logging import get_logger

logger = get_logger(__name__)

CREATE_TABLE_SQL = (
    "CREATE TABLE IF NOT EXISTS {table_name} (\n"
    "  key TEXT PRIMARY KEY,\n"
    "  value TEXT NOT NULL,\n"
    "  expiration INTEGER\n"
    ")"
)


def resolve_database_url(target: Optional[str], auth_token: Optional[str] = None) -> URL:
    """Turn a connection target into an async SQLAlchemy URL.

    ``":memory:"`` (or nothing) selects an in-memory SQLite database, a
    string containing ``://`` is taken as a SQLAlchemy URL, and anything
    else is a path to a local SQLite file. ``auth_token`` fills the URL
    password when the URL does not carry one.
    """
    if not target or target == MEMORY_TARGET:
        return make_url(f"sqlite+aiosqlite:///{MEMORY_TARGET}")

    try:
        if "://" in target:
            url = make_url(target)
        else:
            path = Path(target).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            url = make_url(f"sqlite+aiosqlite:///{path}")
    except (ArgumentError, OSError) as e:
        raise StoreConnectionError(f"Invalid connection target {target!r}: {e}") from e

    if auth_token and url.password is None:
        url = url.set(password=auth_token)
    return url


def is_memory_url(url: URL) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", MEMORY_TARGET)


class Database:
    """Async engine bound to one key-value table."""

    def __init__(self, url: URL, table_name: str = DEFAULT_TABLE_NAME,
                 echo: bool = False, pool_size: Optional[int] = None,
                 max_overflow: Optional[int] = None):
        self.url = url
        self.table_name = table_name
        self.echo = echo
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.engine: Optional[AsyncEngine] = None
        self._lock: Optional[asyncio.Lock] = None

    @property
    def is_started(self) -> bool:
        return self.engine is not None

    def _engine_options(self) -> dict:
        options = {"echo": self.echo}
        if is_memory_url(self.url):
            # One shared connection, otherwise every checkout sees an empty database
            options["poolclass"] = StaticPool
        elif self.url.get_backend_name() != "sqlite":
            if self.pool_size is not None:
                options["pool_size"] = self.pool_size
            if self.max_overflow is not None:
                options["max_overflow"] = self.max_overflow
        return options

    async def startup(self) -> "Database":
        """Open the engine and create the table if it does not exist."""
        if self.engine is not None:
            return self

        safe_url = self.url.render_as_string(hide_password=True)
        try:
            engine = create_async_engine(self.url, **self._engine_options())
        except (ArgumentError, SQLAlchemyError, ImportError) as e:
            logger.error("Database engine creation failed", url=safe_url, error=str(e))
            raise StoreConnectionError(f"Cannot open database {safe_url}: {e}") from e

        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            await engine.dispose()
            logger.error("Database connection failed", url=safe_url, error=str(e))
            raise StoreConnectionError(f"Cannot connect to database {safe_url}: {e}") from e

        try:
            async with engine.begin() as conn:
                await conn.execute(text(CREATE_TABLE_SQL.format(table_name=self.table_name)))
        except SQLAlchemyError as e:
            await engine.dispose()
            logger.error("Table bootstrap failed", table=self.table_name, error=str(e))
            raise SchemaError(f"Cannot create table {self.table_name}: {e}") from e

        self.engine = engine
        if is_memory_url(self.url):
            # StaticPool shares one connection, so transactions must not interleave
            self._lock = asyncio.Lock()
        logger.info("Database initialized", url=safe_url, table=self.table_name)
        return self

    async def shutdown(self) -> None:
        """Close database connections."""
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self._lock = None
            logger.info("Database connections closed", table=self.table_name)

    @asynccontextmanager
    async def begin(self):
        """Yield a connection inside a transaction that commits on exit.

        Transactions on an in-memory database run one at a time.
        """
        if self.engine is None:
            raise StoreConnectionError(f"Database for table {self.table_name} is not open")

        conn: AsyncConnection
        if self._lock is None:
            async with self.engine.begin() as conn:
                yield conn
        else:
            async with self._lock:
                async with self.engine.begin() as conn:
                    yield conn

    async def __aenter__(self) -> "Database":
        return await self.startup()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()


class StoreBuilder:
    """Fluent builder for a ready ``Database``.

    Example::

        database = await (
            StoreBuilder()
            .uri(":memory:")
            .table_name("custom_table_name")
            .build()
        )
    """

    def __init__(self):
        self._uri: str = MEMORY_TARGET
        self._table_name: str = DEFAULT_TABLE_NAME
        self._auth_token: Optional[str] = None
        self._echo: bool = False
        self._pool_size: Optional[int] = None
        self._max_overflow: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "StoreBuilder":
        builder = (
            cls()
            .uri(settings.database_url)
            .table_name(settings.table_name)
            .echo(settings.database_echo)
            .pool_size(settings.database_pool_size, settings.database_max_overflow)
        )
        if settings.auth_token:
            builder.auth_token(settings.auth_token)
        return builder

    def uri(self, target) -> "StoreBuilder":
        """In-memory marker, local file path or SQLAlchemy URL."""
        self._uri = str(target) if target is not None else MEMORY_TARGET
        return self

    def table_name(self, name: str) -> "StoreBuilder":
        if not name:
            raise ValueError("Table name must not be empty")
        self._table_name = name
        return self

    def auth_token(self, token: str) -> "StoreBuilder":
        self._auth_token = token
        return self

    def echo(self, enabled: bool = True) -> "StoreBuilder":
        self._echo = enabled
        return self

    def pool_size(self, size: int, max_overflow: Optional[int] = None) -> "StoreBuilder":
        self._pool_size = size
        self._max_overflow = max_overflow
        return self

    def database(self) -> Database:
        """Build the ``Database`` without opening it."""
        return Database(
            resolve_database_url(self._uri, self._auth_token),
            table_name=self._table_name,
            echo=self._echo,
            pool_size=self._pool_size,
            max_overflow=self._max_overflow,
        )

    async def build(self) -> Database:
        """Open the database and bootstrap the table."""
        return await self.database().startup()


async def configure(target: str = MEMORY_TARGET, table_name: str = DEFAULT_TABLE_NAME,
                    auth_token: Optional[str] = None, echo: bool = False) -> Database:
    """Open ``target`` and make sure ``table_name`` exists."""
    builder = StoreBuilder().uri(target).table_name(table_name).echo(echo)
    if auth_token:
        builder.auth_token(auth_token)
    return await builder.build()
