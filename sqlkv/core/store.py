"""Key-value facade over a single SQL table.

Values are stored as JSON text next to an optional expiration in epoch
milliseconds. Expiration is lazy: an expired row stays in the table until
it is overwritten, removed or purged, but every read treats it as absent.
"""

import math
import time
from datetime import timedelta
from typing import Any, Iterable, List, Optional, Union

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError

from sqlkv.core.codec import decode_value, encode_value
from sqlkv.core.config import DEFAULT_TABLE_NAME, MEMORY_TARGET
from sqlkv.core.database import Database, configure
from sqlkv.core.errors import StorageError
from sqlkv.core.logging import get_logger, log_store_operation
from sqlkv.models.entry import KeyValueEntry

logger = get_logger(__name__)

TTL = Union[timedelta, int, float]


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def ttl_to_ms(ttl: TTL) -> int:
    """Convert a ttl (``timedelta`` or seconds) to whole milliseconds."""
    if isinstance(ttl, bool) or not isinstance(ttl, (timedelta, int, float)):
        raise TypeError(f"ttl must be a timedelta or a number of seconds, not {type(ttl).__name__}")
    seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
    if not seconds > 0 or math.isinf(seconds):
        raise ValueError(f"ttl must be a positive, finite duration, got {ttl!r}")
    return math.ceil(seconds * 1000)


class KeyValueStore:
    """Async get/set/remove API over a configured ``Database``.

    Example::

        async with await KeyValueStore.connect(":memory:") as store:
            await store.set("array", ["hola", "test"])
            assert await store.get("array") == ["hola", "test"]
    """

    def __init__(self, database: Database):
        self.database = database
        table = database.table_name
        self._upsert = text(
            f"INSERT INTO {table} (key, value, expiration) "
            "VALUES (:key, :value, :expiration) "
            "ON CONFLICT(key) DO UPDATE SET "
            "value = excluded.value, expiration = excluded.expiration"
        )
        self._select = text(f"SELECT value, expiration FROM {table} WHERE key = :key")
        self._select_all = text(f"SELECT key, value, expiration FROM {table} ORDER BY key")
        self._delete_one = text(f"DELETE FROM {table} WHERE key = :key")
        self._delete_many = text(
            f"DELETE FROM {table} WHERE key IN :keys"
        ).bindparams(bindparam("keys", expanding=True))
        self._delete_all = text(f"DELETE FROM {table}")
        self._delete_expired = text(
            f"DELETE FROM {table} WHERE expiration IS NOT NULL AND expiration <= :now"
        )

    @classmethod
    async def connect(cls, target: str = MEMORY_TARGET, table_name: str = DEFAULT_TABLE_NAME,
                      auth_token: Optional[str] = None, echo: bool = False) -> "KeyValueStore":
        """Open ``target``, bootstrap ``table_name`` and wrap it in a store."""
        return cls(await configure(target, table_name, auth_token=auth_token, echo=echo))

    @classmethod
    async def in_memory(cls, table_name: str = DEFAULT_TABLE_NAME) -> "KeyValueStore":
        """Store backed by a private in-memory SQLite database."""
        return await cls.connect(MEMORY_TARGET, table_name)

    @property
    def table_name(self) -> str:
        return self.database.table_name

    async def close(self) -> None:
        await self.database.shutdown()

    async def __aenter__(self) -> "KeyValueStore":
        await self.database.startup()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _execute(self, operation: str, key: str, statement, params: Optional[dict] = None):
        try:
            async with self.database.begin() as conn:
                result = await conn.execute(statement, params or {})
                if result.returns_rows:
                    return result.all()
                return result.rowcount
        except SQLAlchemyError as e:
            logger.error("Store operation failed", operation=operation, key=key, error=str(e))
            raise StorageError(f"{operation} failed for {key!r}: {e}") from e

    # ============================================================================
    # Writes
    # ============================================================================

    async def set(self, key: str, value: Any, ttl: Optional[TTL] = None) -> None:
        """Store ``value`` under ``key``, replacing any previous value and ttl.

        ``ttl`` is a ``timedelta`` or a number of seconds; without it the
        entry never expires.
        """
        serialized = encode_value(value)
        expiration = now_ms() + ttl_to_ms(ttl) if ttl is not None else None

        await self._execute("set", key, self._upsert, {
            "key": key,
            "value": serialized,
            "expiration": expiration,
        })
        log_store_operation(logger, "set", key, expiration=expiration)

    async def set_with_ttl(self, key: str, value: Any, ttl: TTL) -> None:
        """Store ``value`` under ``key`` for ``ttl`` (``timedelta`` or seconds)."""
        if ttl is None:
            raise ValueError("set_with_ttl requires a ttl")
        await self.set(key, value, ttl)

    async def remove(self, key: str) -> None:
        """Delete ``key``. Removing a missing key is a no-op."""
        deleted = await self._execute("remove", key, self._delete_one, {"key": key})
        log_store_operation(logger, "remove", key, deleted=deleted)

    async def remove_many(self, keys: Iterable[str]) -> None:
        """Delete every key in ``keys`` with one statement; missing keys are ignored."""
        if isinstance(keys, (str, bytes)):
            raise TypeError("remove_many expects a collection of keys, not a single key")
        unique = sorted(set(keys))
        if not unique:
            return
        deleted = await self._execute("remove_many", ",".join(unique), self._delete_many,
                                      {"keys": unique})
        log_store_operation(logger, "remove_many", ",".join(unique), deleted=deleted)

    async def clear(self) -> None:
        """Delete every row in the table."""
        deleted = await self._execute("clear", "*", self._delete_all)
        logger.info("Store cleared", table=self.table_name, deleted=deleted)

    async def purge_expired(self) -> int:
        """Delete rows whose expiration has passed. Returns the number removed."""
        deleted = await self._execute("purge_expired", "*", self._delete_expired,
                                      {"now": now_ms()})
        if deleted:
            logger.info("Purged expired entries", table=self.table_name, count=deleted)
        return deleted

    # ============================================================================
    # Reads
    # ============================================================================

    async def _fetch(self, key: str, decode: bool = True) -> Optional[KeyValueEntry]:
        rows = await self._execute("get", key, self._select, {"key": key})
        if not rows:
            return None

        value, expiration = rows[0]
        if expiration is not None and expiration <= now_ms():
            return None
        return KeyValueEntry(
            key=key,
            value=decode_value(value) if decode else None,
            expiration=expiration,
        )

    async def get(self, key: str) -> Optional[Any]:
        """Return the decoded value for ``key``, or ``None`` if missing or expired."""
        entry = await self._fetch(key)
        log_store_operation(logger, "get", key, hit=entry is not None)
        return entry.value if entry else None

    async def exists(self, key: str) -> bool:
        """Check if ``key`` is present and not expired."""
        entry = await self._fetch(key, decode=False)
        return entry is not None

    async def list(self) -> List[KeyValueEntry]:
        """All unexpired entries, ordered by key."""
        rows = await self._execute("list", "*", self._select_all)
        now = now_ms()
        entries = []
        for key, value, expiration in rows:
            entry = KeyValueEntry(key=key, expiration=expiration)
            if entry.is_expired(now):
                continue
            entry.value = decode_value(value)
            entries.append(entry)
        return entries
