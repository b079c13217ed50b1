"""JSON encoding of stored values.

Values cross the storage boundary as JSON text. Anything ``json`` can
represent is accepted (null, booleans, numbers, strings, sequences and
string-keyed mappings); pydantic and SQLModel models are dumped in JSON
mode first. NaN and infinities are rejected since they are not JSON.
"""

import json
from typing import Any

from pydantic import BaseModel

from sqlkv.core.errors import SerializationError


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_value(value: Any) -> str:
    """Encode ``value`` to compact JSON text."""
    try:
        return json.dumps(
            value,
            default=_to_jsonable,
            allow_nan=False,
            ensure_ascii=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError, RecursionError) as e:
        raise SerializationError(f"Cannot encode value: {e}") from e


def decode_value(text: str) -> Any:
    """Decode JSON text read back from the table."""
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cannot decode stored value: {e}") from e
