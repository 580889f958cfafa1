"""urban_offline storage layer."""

from __future__ import annotations

from urban_offline.config import ConfigError, OfflineConfig
from urban_offline.storage.base import StorageAdapter
from urban_offline.storage.document import DocumentStorage
from urban_offline.storage.relational import RelationalStorage
from urban_offline.storage.stores import CONTENT_STORES, STORES, KeyMode, StoreSpec, store_spec


def create_storage(config: OfflineConfig) -> StorageAdapter:
    """Return the storage backend selected by ``storage.backend``.

    The backend is chosen once here; nothing else branches on it.
    """
    backend = config.storage.backend
    quota = config.storage.quota_bytes
    if backend == "document":
        return DocumentStorage(config.data_path, quota_bytes=quota)
    if backend == "relational":
        return RelationalStorage(config.data_path, quota_bytes=quota)
    raise ConfigError(f"Unknown storage backend '{backend}'.")


async def open_storage(config: OfflineConfig) -> StorageAdapter:
    """Create and initialise the configured storage backend."""
    storage = create_storage(config)
    await storage.init()
    return storage


__all__ = [
    "CONTENT_STORES",
    "STORES",
    "DocumentStorage",
    "KeyMode",
    "RelationalStorage",
    "StorageAdapter",
    "StoreSpec",
    "create_storage",
    "open_storage",
    "store_spec",
]
