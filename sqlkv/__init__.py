"""Async key-value store on a SQL table with JSON values and lazy expiration."""

from sqlkv.core.config import DEFAULT_TABLE_NAME
from sqlkv.core.database import Database, StoreBuilder, configure
from sqlkv.core.errors import (
    SchemaError,
    SerializationError,
    StorageError,
    StoreConnectionError,
    StoreError,
)
from sqlkv.core.store import KeyValueStore
from sqlkv.models.entry import KeyValueEntry

__version__ = "0.1.2"

__all__ = [
    "DEFAULT_TABLE_NAME",
    "Database",
    "KeyValueEntry",
    "KeyValueStore",
    "SchemaError",
    "SerializationError",
    "StorageError",
    "StoreBuilder",
    "StoreConnectionError",
    "StoreError",
    "configure",
]
