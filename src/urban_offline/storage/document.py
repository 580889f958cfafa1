"""Backend A: embedded document store.

Every logical store is its own object-store table inside a single SQLite file,
holding (key, kind, value) rows. Bulk and metadata stores are treated alike.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from urban_offline.storage.base import StorageAdapter
from urban_offline.storage.connection import Database
from urban_offline.storage.migrations import DOCUMENT_MIGRATIONS, object_table
from urban_offline.storage.stores import STORES, StoreSpec

DB_FILENAME = "documents.db"


class DocumentStorage(StorageAdapter):
    """Object-store tables in one embedded database file."""

    backend_name = "document"

    def __init__(self, data_dir: Path | str, quota_bytes: int | None = None) -> None:
        super().__init__(quota_bytes=quota_bytes)
        self._db = Database(Path(data_dir) / DB_FILENAME, DOCUMENT_MIGRATIONS)

    @property
    def conn(self) -> sqlite3.Connection:
        return self._db.conn

    def _open(self) -> None:
        self._db.open()

    def _close(self) -> None:
        self._db.close()

    def _read(self, spec: StoreSpec, key: str) -> tuple[str, bytes] | None:
        row = self.conn.execute(
            f"SELECT kind, value FROM {object_table(spec.name)} WHERE key = ?", (key,)
        ).fetchone()
        return (row["kind"], row["value"]) if row else None

    def _write(self, spec: StoreSpec, key: str, kind: str, payload: bytes) -> None:
        self.conn.execute(
            f"""
            INSERT INTO {object_table(spec.name)} (key, kind, value) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET kind = excluded.kind, value = excluded.value
            """,
            (key, kind, payload),
        )
        self.conn.commit()

    def _remove(self, spec: StoreSpec, key: str) -> int:
        freed = self._size(spec, key)
        self.conn.execute(f"DELETE FROM {object_table(spec.name)} WHERE key = ?", (key,))
        self.conn.commit()
        return freed

    def _scan(self, spec: StoreSpec) -> list[tuple[str, str, bytes]]:
        rows = self.conn.execute(
            f"SELECT key, kind, value FROM {object_table(spec.name)} ORDER BY key"
        ).fetchall()
        return [(r["key"], r["kind"], r["value"]) for r in rows]

    def _keys(self, spec: StoreSpec) -> list[str]:
        rows = self.conn.execute(
            f"SELECT key FROM {object_table(spec.name)} ORDER BY key"
        ).fetchall()
        return [r["key"] for r in rows]

    def _size(self, spec: StoreSpec, key: str) -> int:
        row = self.conn.execute(
            f"SELECT length(value) FROM {object_table(spec.name)} WHERE key = ?", (key,)
        ).fetchone()
        return row[0] if row and row[0] is not None else 0

    def _total_size(self) -> int:
        total = 0
        for name in STORES:
            row = self.conn.execute(
                f"SELECT COALESCE(SUM(length(value)), 0) FROM {object_table(name)}"
            ).fetchone()
            total += row[0]
        return total
