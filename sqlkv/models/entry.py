"""Key-value entry model."""

from typing import Any, Optional
from sqlmodel import SQLModel, Field


class KeyValueEntry(SQLModel):
    """One row of the key-value table with its value already decoded.

    ``expiration`` is epoch milliseconds; ``None`` means the entry never
    expires. The table itself is created from raw DDL because its name is
    chosen at runtime, so this model is not mapped (``table=False``).
    """

    key: str
    value: Any = None
    expiration: Optional[int] = Field(default=None)

    def is_expired(self, now_ms: int) -> bool:
        return self.expiration is not None and self.expiration <= now_ms
