import asyncio

import pytest

from sqlkv import KeyValueStore


def run(coro):
    """Drive a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "data" / "kv.db"


async def open_store(target=":memory:", table_name="kv_store") -> KeyValueStore:
    return await KeyValueStore.connect(target, table_name)
