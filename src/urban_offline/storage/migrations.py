"""Forward-only migration runner for both storage backends.

Each backend owns an append-only migration list; the runner records applied
versions in ``schema_version`` inside the backend's own database file.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence

from urban_offline.storage.stores import STORES

Migration = tuple[int, str]

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""


def object_table(store: str) -> str:
    """Return the document-backend table name for *store*."""
    return f"store_{store}"


_DOCUMENT_V1_SQL = "\n".join(
    f"""
CREATE TABLE IF NOT EXISTS {object_table(name)} (
    key     TEXT PRIMARY KEY,
    kind    TEXT NOT NULL,
    value   BLOB NOT NULL
);"""
    for name in sorted(STORES)
)

_RELATIONAL_V1_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    store_name  TEXT NOT NULL,
    key         TEXT NOT NULL,
    kind        TEXT NOT NULL,
    value       BLOB NOT NULL,
    PRIMARY KEY (store_name, key)
);

CREATE VIRTUAL TABLE IF NOT EXISTS search_fts USING fts5(
    doc_id UNINDEXED,
    slug UNINDEXED,
    title,
    content,
    description,
    category UNINDEXED,
    tokenize='porter unicode61'
);
"""

# Append-only.
# executescript() issues an implicit COMMIT before running.
DOCUMENT_MIGRATIONS: list[Migration] = [
    (1, _DOCUMENT_V1_SQL),
]

RELATIONAL_MIGRATIONS: list[Migration] = [
    (1, _RELATIONAL_V1_SQL),
]


def run_migrations(conn: sqlite3.Connection, migrations: Sequence[Migration]) -> None:
    """Apply all pending *migrations* in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in migrations:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
