"""SQLite database file shared by both storage backends."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from pathlib import Path

from urban_offline.errors import StorageError
from urban_offline.storage.migrations import Migration, run_migrations

BUSY_TIMEOUT_MS = 5000


class Database:
    """One embedded database file: opened once, migrated, closed with its adapter.

    Args:
        db_path: Database file, created with its parent directory if missing.
        migrations: Forward-only schema steps applied on open().
    """

    def __init__(self, db_path: Path | str, migrations: Sequence[Migration] = ()) -> None:
        self.db_path = Path(db_path)
        self._migrations = migrations
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError(f"{self.db_path.name} is not open; call init() first.")
        return self._conn

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def connect(self) -> sqlite3.Connection:
        """Return a new WAL-mode connection without touching the schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    def open(self) -> sqlite3.Connection:
        if self._conn is None:
            conn = self.connect()
            try:
                run_migrations(conn, self._migrations)
            except sqlite3.Error:
                conn.close()
                raise
            self._conn = conn
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
