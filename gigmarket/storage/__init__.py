"""Storage backends.

Each backend is one object implementing JobStorage, ApplicationStorage and
WalletStorage.
"""

from typing import Protocol

from gigmarket.applications.storage import ApplicationStorage
from gigmarket.config import MarketplaceConfig
from gigmarket.jobs.storage import JobStorage
from gigmarket.storage.memory import InMemoryMarketplaceStorage
from gigmarket.storage.sqlite import SQLiteMarketplaceStorage
from gigmarket.wallet.storage import WalletStorage


class MarketplaceStorage(JobStorage, ApplicationStorage, WalletStorage, Protocol):
    """Combined protocol implemented by every backend."""

    def close(self) -> None:
        ...


def open_storage(config: MarketplaceConfig) -> MarketplaceStorage:
    """Build the backend named by ``config.storage_backend``."""
    if config.storage_backend == "memory":
        return InMemoryMarketplaceStorage()
    if config.storage_backend == "sqlite":
        return SQLiteMarketplaceStorage(config.resolved_db_path)
    if config.storage_backend == "supabase":
        from gigmarket.storage.supabase import SupabaseMarketplaceStorage

        return SupabaseMarketplaceStorage.from_credentials(
            config.supabase_url, config.supabase_key
        )
    raise ValueError(f"Unknown storage backend: {config.storage_backend}")


__all__ = [
    "InMemoryMarketplaceStorage",
    "MarketplaceStorage",
    "SQLiteMarketplaceStorage",
    "open_storage",
]
