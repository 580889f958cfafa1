"""Exception hierarchy shared by every urban_offline component.

Absent data (datasets, articles, tiles, saved stories) is never an exception:
lookups return ``None`` or an empty list. Everything below signals a condition
the caller has to react to.
"""

from __future__ import annotations


class OfflineError(Exception):
    """Base class for all urban_offline errors."""


class StorageError(OfflineError):
    """A storage backend failed to read or write."""


class QuotaExceededError(StorageError):
    """A write could not complete because the on-device storage budget is exhausted."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "Storage quota exceeded. Free up space by uninstalling regions or packs."
        )


class InvalidInputError(OfflineError, ValueError):
    """A caller broke an input contract (missing key, unknown store, bad id)."""


class TransientFetchError(OfflineError):
    """A network fetch failed in a way that may succeed on retry."""


class TileDownloadError(OfflineError):
    """A region download finished with more failed tiles than the tolerated fraction."""


class IndexCorruptError(OfflineError):
    """A persisted search index blob could not be deserialised."""


class DownloadCancelledError(OfflineError):
    """A download was cancelled through its abort signal."""


class PackError(OfflineError):
    """A content pack could not be installed (dependency, checksum, archive)."""
