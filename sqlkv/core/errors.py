"""Typed failures raised by the store.

Every error wraps the driver or codec exception that caused it as
``__cause__``. A missing key is never an error.
"""


class StoreError(Exception):
    """Base class for all store failures."""


class StoreConnectionError(StoreError, ConnectionError):
    """The backing database could not be opened or reached."""


class SchemaError(StoreError):
    """Bootstrapping the key-value table failed."""


class SerializationError(StoreError, ValueError):
    """A value could not be encoded to, or decoded from, JSON text."""


class StorageError(StoreError):
    """A statement failed while reading or writing the table."""
