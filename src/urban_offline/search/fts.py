"""Mode A: SQLite FTS5 search over the relational backend."""

from __future__ import annotations

import logging
import re
import sqlite3

from urban_offline.search.base import SearchEngine
from urban_offline.search.documents import documents_from_storage
from urban_offline.search.models import SearchDocument, SearchResult
from urban_offline.storage.relational import RelationalStorage

logger = logging.getLogger(__name__)

SNIPPET_TOKENS = 16


def build_match_query(query: str) -> str:
    """Turn free text into an FTS5 prefix query: every word must match a term prefix.

    FTS5 MATCH rejects punctuation like commas as syntax errors, so it is
    stripped before quoting.
    """
    words = re.sub(r"[^\w\s]", " ", query).split()
    return " ".join(f'"{word}"*' for word in words)


class FtsSearchEngine(SearchEngine):
    """Rows in the ``search_fts`` virtual table, ranked by FTS5's bm25 ``rank``."""

    mode = "fts"

    def __init__(self, storage: RelationalStorage, result_limit: int = 20) -> None:
        super().__init__(storage, result_limit)
        self._relational = storage

    @property
    def _conn(self) -> sqlite3.Connection:
        return self._relational.conn

    async def _load(self) -> None:
        await self._storage.init()
        if await self.count() == 0:
            await self._rebuild()

    async def _rebuild(self) -> None:
        await self._storage.init()
        documents = await documents_from_storage(self._storage)
        with self._conn:
            self._conn.execute("DELETE FROM search_fts")
            for doc in documents:
                self._insert(doc)
        logger.info("Rebuilt full-text index with %d documents", len(documents))

    async def _add(self, doc: SearchDocument) -> None:
        with self._conn:
            # 1 and "1" are the same document.
            self._conn.execute(
                "DELETE FROM search_fts WHERE CAST(doc_id AS TEXT) = ?", (str(doc.id),)
            )
            self._insert(doc)

    def _insert(self, doc: SearchDocument) -> None:
        self._conn.execute(
            """INSERT INTO search_fts (doc_id, slug, title, content, description, category)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (doc.id, doc.slug, doc.title, doc.content, doc.description, doc.category),
        )

    async def _search(self, query: str) -> list[SearchResult]:
        match = build_match_query(query)
        if not match:
            return []
        try:
            rows = self._conn.execute(
                f"""SELECT doc_id, slug, title, description, category,
                           snippet(search_fts, -1, '<mark>', '</mark>', '…', {SNIPPET_TOKENS}) AS snippet
                    FROM search_fts
                    WHERE search_fts MATCH ?
                    ORDER BY rank
                    LIMIT ?""",
                (match, self._limit),
            ).fetchall()
        except sqlite3.OperationalError as exc:
            logger.warning("Full-text query %r failed: %s", query, exc)
            return []

        results: list[SearchResult] = []
        seen: set[str] = set()
        for row in rows:
            if str(row["doc_id"]) in seen:
                continue
            seen.add(str(row["doc_id"]))
            results.append(
                SearchResult(
                    id=row["doc_id"],
                    slug=row["slug"] or str(row["doc_id"]),
                    title=row["title"] or "",
                    description=row["description"] or "",
                    category=row["category"] or "",
                    snippet=row["snippet"] or "",
                )
            )
        return results

    async def count(self) -> int:
        await self._storage.init()
        return self._conn.execute("SELECT COUNT(*) FROM search_fts").fetchone()[0]
