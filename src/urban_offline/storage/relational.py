"""Backend B: relational engine plus hierarchical file store.

Small structured metadata goes to the generic ``kv_store`` attribute table.
Bulk payloads (tiles, article JSON, guide content, the serialised search
index) go to ``<data_dir>/files/<store>/<key>.<json|bin>`` because multi-hundred
KB rows are a poor fit for the engine's pages, while the filesystem offers no
metadata scans. The same database file hosts the FTS5 table used by
``FtsSearchEngine``.
"""

from __future__ import annotations

import os
import sqlite3
import urllib.parse
from pathlib import Path

from urban_offline.storage.base import KIND_BYTES, KIND_JSON, StorageAdapter
from urban_offline.storage.connection import Database
from urban_offline.storage.migrations import RELATIONAL_MIGRATIONS
from urban_offline.storage.stores import STORES, StoreSpec

DB_FILENAME = "offline.db"
FILES_DIRNAME = "files"

_EXTENSIONS = {KIND_JSON: ".json", KIND_BYTES: ".bin"}
_KINDS = {ext: kind for kind, ext in _EXTENSIONS.items()}


class RelationalStorage(StorageAdapter):
    """kv_store attribute table for metadata, filesystem for bulk stores."""

    backend_name = "relational"

    def __init__(self, data_dir: Path | str, quota_bytes: int | None = None) -> None:
        super().__init__(quota_bytes=quota_bytes)
        self._data_dir = Path(data_dir)
        self._files_dir = self._data_dir / FILES_DIRNAME
        self._db = Database(self._data_dir / DB_FILENAME, RELATIONAL_MIGRATIONS)

    @property
    def conn(self) -> sqlite3.Connection:
        """The open engine connection (shared with the FTS search engine)."""
        return self._db.conn

    @property
    def files_dir(self) -> Path:
        return self._files_dir

    def _open(self) -> None:
        self._files_dir.mkdir(parents=True, exist_ok=True)
        self._db.open()

    def _close(self) -> None:
        self._db.close()

    # ------------------------------------------------------------------
    # Filesystem helpers
    # ------------------------------------------------------------------

    def _store_dir(self, spec: StoreSpec) -> Path:
        return self._files_dir / spec.name

    def _file_for(self, spec: StoreSpec, key: str) -> Path | None:
        """Return the existing payload file for *key*, whichever kind it was written as."""
        base = self._store_dir(spec) / urllib.parse.quote(key, safe="")
        for ext in _EXTENSIONS.values():
            candidate = base.with_name(base.name + ext)
            if candidate.exists():
                return candidate
        return None

    def _bulk_files(self, spec: StoreSpec) -> list[Path]:
        directory = self._store_dir(spec)
        if not directory.is_dir():
            return []
        return sorted(
            (p for p in directory.iterdir() if p.suffix in _KINDS),
            key=lambda p: urllib.parse.unquote(p.stem),
        )

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def _read(self, spec: StoreSpec, key: str) -> tuple[str, bytes] | None:
        if spec.bulk:
            path = self._file_for(spec, key)
            return (_KINDS[path.suffix], path.read_bytes()) if path else None
        row = self.conn.execute(
            "SELECT kind, value FROM kv_store WHERE store_name = ? AND key = ?",
            (spec.name, key),
        ).fetchone()
        return (row["kind"], row["value"]) if row else None

    def _write(self, spec: StoreSpec, key: str, kind: str, payload: bytes) -> None:
        if spec.bulk:
            directory = self._store_dir(spec)
            directory.mkdir(parents=True, exist_ok=True)
            stale = self._file_for(spec, key)
            target = directory / (urllib.parse.quote(key, safe="") + _EXTENSIONS[kind])
            # Write-then-rename so a key is either absent or complete.
            tmp = target.with_name(target.name + ".tmp")
            try:
                tmp.write_bytes(payload)
                os.replace(tmp, target)
            finally:
                tmp.unlink(missing_ok=True)
            if stale is not None and stale != target:
                stale.unlink(missing_ok=True)
            return
        self.conn.execute(
            """
            INSERT INTO kv_store (store_name, key, kind, value) VALUES (?, ?, ?, ?)
            ON CONFLICT(store_name, key) DO UPDATE SET
                kind = excluded.kind,
                value = excluded.value
            """,
            (spec.name, key, kind, payload),
        )
        self.conn.commit()

    def _remove(self, spec: StoreSpec, key: str) -> int:
        freed = self._size(spec, key)
        if spec.bulk:
            path = self._file_for(spec, key)
            if path is not None:
                path.unlink(missing_ok=True)
            return freed
        self.conn.execute(
            "DELETE FROM kv_store WHERE store_name = ? AND key = ?", (spec.name, key)
        )
        self.conn.commit()
        return freed

    def _scan(self, spec: StoreSpec) -> list[tuple[str, str, bytes]]:
        if spec.bulk:
            return [
                (urllib.parse.unquote(p.stem), _KINDS[p.suffix], p.read_bytes())
                for p in self._bulk_files(spec)
            ]
        rows = self.conn.execute(
            "SELECT key, kind, value FROM kv_store WHERE store_name = ? ORDER BY key",
            (spec.name,),
        ).fetchall()
        return [(r["key"], r["kind"], r["value"]) for r in rows]

    def _keys(self, spec: StoreSpec) -> list[str]:
        if spec.bulk:
            return [urllib.parse.unquote(p.stem) for p in self._bulk_files(spec)]
        rows = self.conn.execute(
            "SELECT key FROM kv_store WHERE store_name = ? ORDER BY key", (spec.name,)
        ).fetchall()
        return [r["key"] for r in rows]

    def _size(self, spec: StoreSpec, key: str) -> int:
        if spec.bulk:
            path = self._file_for(spec, key)
            return path.stat().st_size if path else 0
        row = self.conn.execute(
            "SELECT length(value) FROM kv_store WHERE store_name = ? AND key = ?",
            (spec.name, key),
        ).fetchone()
        return row[0] if row and row[0] is not None else 0

    def _total_size(self) -> int:
        row = self.conn.execute(
            "SELECT COALESCE(SUM(length(value)), 0) FROM kv_store"
        ).fetchone()
        total = row[0]
        for spec in STORES.values():
            if spec.bulk:
                total += sum(p.stat().st_size for p in self._bulk_files(spec))
        return total
