"""SQLModel models shared by the store."""

from sqlkv.models.entry import KeyValueEntry

__all__ = ["KeyValueEntry"]
