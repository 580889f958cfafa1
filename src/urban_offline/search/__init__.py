"""Dual-mode offline search: SQLite FTS5 or an in-memory inverted index."""

from __future__ import annotations

from urban_offline.config import ConfigError, OfflineConfig
from urban_offline.search.base import SearchEngine
from urban_offline.search.fts import FtsSearchEngine
from urban_offline.search.inverted import InvertedIndex, InvertedIndexSearchEngine
from urban_offline.search.models import SearchDocument, SearchResult
from urban_offline.storage.base import StorageAdapter
from urban_offline.storage.relational import RelationalStorage


def create_search_engine(config: OfflineConfig, storage: StorageAdapter) -> SearchEngine:
    """Pick the search mode for *storage*.

    ``auto`` uses FTS5 when the relational backend is active and the
    inverted index otherwise.
    """
    mode = config.search.mode
    limit = config.search.result_limit
    if mode == "auto":
        mode = "fts" if isinstance(storage, RelationalStorage) else "inverted"
    if mode == "fts":
        if not isinstance(storage, RelationalStorage):
            raise ConfigError("search.mode 'fts' requires storage.backend 'relational'.")
        return FtsSearchEngine(storage, result_limit=limit)
    if mode == "inverted":
        return InvertedIndexSearchEngine(storage, result_limit=limit)
    raise ConfigError(f"Unknown search mode '{mode}'.")


__all__ = [
    "FtsSearchEngine",
    "InvertedIndex",
    "InvertedIndexSearchEngine",
    "SearchDocument",
    "SearchEngine",
    "SearchResult",
    "create_search_engine",
]
