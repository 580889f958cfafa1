"""Key-value storage contract shared by both persistence backends.

``StorageAdapter`` owns the public async API, key resolution, value encoding,
quota accounting and error translation. Backends only implement the small set
of synchronous primitives below, so the two engines cannot drift apart in
behaviour.
"""

from __future__ import annotations

import errno
import json
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from urban_offline.errors import InvalidInputError, QuotaExceededError, StorageError
from urban_offline.storage.stores import StoreSpec, normalize_key, resolve_key, store_spec

KIND_JSON = "json"
KIND_BYTES = "bytes"

# OS errno values meaning "no space left" / "disk quota exceeded".
_QUOTA_ERRNOS = frozenset(
    code for code in (getattr(errno, "ENOSPC", None), getattr(errno, "EDQUOT", None)) if code
)

_SQLITE_FULL = 13


# ------------------------------------------------------------------
# Value encoding
# ------------------------------------------------------------------


def encode_value(value: Any) -> tuple[str, bytes]:
    """Encode *value* as (kind, payload). Bytes are stored raw, everything else as JSON."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return KIND_BYTES, bytes(value)
    try:
        text = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Value is not JSON-serialisable: {exc}") from exc
    return KIND_JSON, text.encode("utf-8")


def decode_value(kind: str, payload: bytes) -> Any:
    if kind == KIND_BYTES:
        return bytes(payload)
    return json.loads(bytes(payload).decode("utf-8"))


# ------------------------------------------------------------------
# Error translation
# ------------------------------------------------------------------


def _is_quota_error(exc: BaseException) -> bool:
    if isinstance(exc, OSError) and exc.errno in _QUOTA_ERRNOS:
        return True
    if isinstance(exc, sqlite3.Error):
        if getattr(exc, "sqlite_errorcode", None) == _SQLITE_FULL:
            return True
        return "database or disk is full" in str(exc).lower()
    return False


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Translate backend exceptions into StorageError / QuotaExceededError."""
    try:
        yield
    except (QuotaExceededError, InvalidInputError):
        raise
    except (OSError, sqlite3.Error) as exc:
        if _is_quota_error(exc):
            raise QuotaExceededError() from exc
        raise StorageError(f"Storage {action} failed: {exc}") from exc


# ------------------------------------------------------------------
# Adapter
# ------------------------------------------------------------------


class StorageAdapter(ABC):
    """Uniform get/put/get_all/get_all_keys/delete over a persistence backend.

    Keys are normalised to ``str``. Values are JSON-serialisable objects or
    ``bytes``. Writes beyond the optional ``quota_bytes`` ceiling raise
    QuotaExceededError before anything is written.
    """

    backend_name: str = ""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._quota_bytes = quota_bytes
        self._used_bytes = 0
        self._opened = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> None:
        """Open the backend and compute current usage. Idempotent."""
        if self._opened:
            return
        with storage_errors("init"):
            self._open()
            self._used_bytes = self._total_size()
        self._opened = True

    async def close(self) -> None:
        if self._opened:
            self._close()
            self._opened = False

    def usage_bytes(self) -> int:
        """Bytes currently held across every store."""
        return self._used_bytes

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def get(self, store: str, key: Any) -> Any | None:
        """Return the value stored under *key*, or None if absent."""
        spec = store_spec(store)
        await self.init()
        with storage_errors("read"):
            found = self._read(spec, normalize_key(key))
        return decode_value(*found) if found is not None else None

    async def put(self, store: str, value: Any, key: Any | None = None) -> str:
        """Insert or replace *value* and return its key.

        Raises:
            InvalidInputError: Missing key for an out-of-line store, missing
                key field for an in-line store, or a non-serialisable value.
            QuotaExceededError: The write would exceed the storage budget or
                the device ran out of space.
        """
        spec = store_spec(store)
        resolved = resolve_key(spec, value, key)
        kind, payload = encode_value(value)
        await self.init()
        with storage_errors("write"):
            previous = self._size(spec, resolved)
            self._check_quota(len(payload) - previous)
            self._write(spec, resolved, kind, payload)
        self._used_bytes += len(payload) - previous
        return resolved

    async def get_all(self, store: str) -> list[Any]:
        spec = store_spec(store)
        await self.init()
        with storage_errors("read"):
            rows = self._scan(spec)
        return [decode_value(kind, payload) for _, kind, payload in rows]

    async def get_all_keys(self, store: str) -> list[str]:
        spec = store_spec(store)
        await self.init()
        with storage_errors("read"):
            return self._keys(spec)

    async def delete(self, store: str, key: Any) -> None:
        """Delete *key* from *store*. Deleting an absent key is a no-op."""
        spec = store_spec(store)
        await self.init()
        with storage_errors("delete"):
            freed = self._remove(spec, normalize_key(key))
        self._used_bytes -= freed

    async def clear(self, store: str) -> None:
        spec = store_spec(store)
        await self.init()
        with storage_errors("delete"):
            for key in self._keys(spec):
                self._used_bytes -= self._remove(spec, key)

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    def _check_quota(self, delta: int) -> None:
        if self._quota_bytes is None or delta <= 0:
            return
        if self._used_bytes + delta > self._quota_bytes:
            raise QuotaExceededError(
                f"Storage quota exceeded ({self._used_bytes + delta} > "
                f"{self._quota_bytes} bytes). Free up space by uninstalling regions or packs."
            )

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _open(self) -> None: ...

    @abstractmethod
    def _close(self) -> None: ...

    @abstractmethod
    def _read(self, spec: StoreSpec, key: str) -> tuple[str, bytes] | None:
        """Return (kind, payload) for *key*, or None."""

    @abstractmethod
    def _write(self, spec: StoreSpec, key: str, kind: str, payload: bytes) -> None: ...

    @abstractmethod
    def _remove(self, spec: StoreSpec, key: str) -> int:
        """Delete *key* and return the number of payload bytes freed."""

    @abstractmethod
    def _scan(self, spec: StoreSpec) -> list[tuple[str, str, bytes]]:
        """Return (key, kind, payload) rows ordered by key."""

    @abstractmethod
    def _keys(self, spec: StoreSpec) -> list[str]: ...

    @abstractmethod
    def _size(self, spec: StoreSpec, key: str) -> int:
        """Payload size of *key* in bytes (0 if absent)."""

    @abstractmethod
    def _total_size(self) -> int: ...
