"""Dependency injection container for the store."""

from dependency_injector import containers, providers

from sqlkv.core.config import Settings
from sqlkv.core.database import Database, StoreBuilder
from sqlkv.core.logging import configure_logging
from sqlkv.core.store import KeyValueStore


def build_database(settings: Settings) -> Database:
    """Unopened ``Database`` for the configured target and table."""
    return StoreBuilder.from_settings(settings).database()


class Container(containers.DeclarativeContainer):
    """Store dependency injection container.

    The database is created unopened; entering the store as an async
    context manager opens it and bootstraps the table::

        async with container.store() as store:
            await store.set("key", "value")
    """

    settings = providers.Singleton(
        Settings,
    )

    # Installed by container.init_resources()
    log_setup = providers.Resource(
        configure_logging,
        settings=settings
    )

    database = providers.Singleton(
        build_database,
        settings=settings
    )

    store = providers.Singleton(
        KeyValueStore,
        database=database
    )
