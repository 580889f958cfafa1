"""Mode B: in-memory inverted index persisted as a blob in generic storage.

The index keeps per-field postings (term -> {doc key: term frequency}) and a
sorted vocabulary per field, so a query word matches every indexed term it is
a prefix of. The whole index is re-serialised after each add; at a few
thousand documents that is cheap enough.
"""

from __future__ import annotations

import json
import logging
import re
from bisect import bisect_left
from typing import Any

from urban_offline.errors import IndexCorruptError
from urban_offline.search.base import SearchEngine
from urban_offline.search.documents import documents_from_storage
from urban_offline.search.models import SearchDocument, SearchResult
from urban_offline.storage.base import StorageAdapter
from urban_offline.storage.stores import SEARCH_INDEX

logger = logging.getLogger(__name__)

INDEX_KEY = "main_index"
FORMAT_VERSION = 1
FIELDS: tuple[str, ...] = ("title", "content", "description")
FIELD_WEIGHTS = {"title": 3, "description": 2, "content": 1}
EXCERPT_CHARS = 200
_DOC_KEYS = frozenset({"id", "slug", "title", "description", "category", "excerpt"})

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def tokenize(text: str) -> list[str]:
    return [token.casefold() for token in _TOKEN_RE.findall(text or "")]


class InvertedIndex:
    """Field-aware inverted index over SearchDocuments."""

    def __init__(self) -> None:
        self._docs: dict[str, dict[str, Any]] = {}
        self._postings: dict[str, dict[str, dict[str, int]]] = {f: {} for f in FIELDS}
        self._vocab: dict[str, list[str]] = {}

    def __len__(self) -> int:
        return len(self._docs)

    def __contains__(self, doc_id: object) -> bool:
        return str(doc_id) in self._docs

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, doc: SearchDocument) -> None:
        """Index *doc*, replacing any document with the same id."""
        key = str(doc.id)
        self.remove(key)
        excerpt = "" if doc.description else doc.content[:EXCERPT_CHARS]
        self._docs[key] = {
            "id": doc.id,
            "slug": doc.slug,
            "title": doc.title,
            "description": doc.description,
            "category": doc.category,
            "excerpt": excerpt,
        }
        for field in FIELDS:
            counts: dict[str, int] = {}
            for token in tokenize(getattr(doc, field)):
                counts[token] = counts.get(token, 0) + 1
            postings = self._postings[field]
            for token, tf in counts.items():
                postings.setdefault(token, {})[key] = tf
        self._vocab.clear()

    def remove(self, doc_id: object) -> bool:
        key = str(doc_id)
        if self._docs.pop(key, None) is None:
            return False
        for postings in self._postings.values():
            for term in [t for t, docs in postings.items() if key in docs]:
                del postings[term][key]
                if not postings[term]:
                    del postings[term]
        self._vocab.clear()
        return True

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def search(self, query: str, limit: int = 20) -> list[SearchResult]:
        """Match every query word as a term prefix in any indexed field.

        A document qualifies when each word hits at least one of its fields,
        so a title word and a content word can match together. Results are
        ranked by field-weighted term frequency (title over description over
        content), ties broken by id.
        """
        words = list(dict.fromkeys(tokenize(query)))
        if not words:
            return []
        combined: dict[str, int] | None = None
        for word in words:
            matched = self._match_word(word)
            if combined is None:
                combined = matched
            else:
                combined = {k: combined[k] + v for k, v in matched.items() if k in combined}
            if not combined:
                return []
        ranked = sorted(combined.items(), key=lambda item: (-item[1], item[0]))
        return [self._result(key) for key, _ in ranked[:limit]]

    def _match_word(self, word: str) -> dict[str, int]:
        """Weighted score per document for one word, summed over every field."""
        matched: dict[str, int] = {}
        for field in FIELDS:
            postings = self._postings[field]
            vocab = self._sorted_vocab(field)
            weight = FIELD_WEIGHTS[field]
            i = bisect_left(vocab, word)
            while i < len(vocab) and vocab[i].startswith(word):
                for key, tf in postings[vocab[i]].items():
                    matched[key] = matched.get(key, 0) + tf * weight
                i += 1
        return matched

    def _sorted_vocab(self, field: str) -> list[str]:
        if field not in self._vocab:
            self._vocab[field] = sorted(self._postings[field])
        return self._vocab[field]

    def _result(self, key: str) -> SearchResult:
        stored = self._docs[key]
        return SearchResult(
            id=stored["id"],
            slug=stored["slug"] or key,
            title=stored["title"],
            description=stored["description"],
            category=stored["category"],
            snippet=stored["description"] or stored["excerpt"],
        )

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def dumps(self) -> bytes:
        data = {"version": FORMAT_VERSION, "docs": self._docs, "postings": self._postings}
        return json.dumps(data, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    @classmethod
    def loads(cls, blob: Any) -> InvertedIndex:
        """Rebuild an index from :meth:`dumps` output.

        Raises:
            IndexCorruptError: *blob* is not a readable index of this format version.
        """
        if not isinstance(blob, (bytes, bytearray)):
            raise IndexCorruptError(f"Expected index bytes, got {type(blob).__name__}")
        try:
            data = json.loads(bytes(blob).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise IndexCorruptError(f"Index blob is not valid JSON: {exc}") from exc
        if not isinstance(data, dict) or data.get("version") != FORMAT_VERSION:
            raise IndexCorruptError("Index blob has an unknown format version")

        docs = data.get("docs")
        postings = data.get("postings")
        if not isinstance(docs, dict) or not isinstance(postings, dict):
            raise IndexCorruptError("Index blob is missing docs or postings")
        if set(postings) != set(FIELDS) or not all(isinstance(p, dict) for p in postings.values()):
            raise IndexCorruptError("Index blob postings do not match the indexed fields")
        for key, stored in docs.items():
            if not isinstance(stored, dict) or not _DOC_KEYS <= stored.keys():
                raise IndexCorruptError(f"Index blob document {key!r} is malformed")
        for field, terms in postings.items():
            for term, hits in terms.items():
                if not isinstance(hits, dict) or not all(
                    k in docs and isinstance(tf, int) for k, tf in hits.items()
                ):
                    raise IndexCorruptError(f"Index blob postings for {field}:{term!r} are malformed")

        index = cls()
        index._docs = docs
        index._postings = postings
        return index


class InvertedIndexSearchEngine(SearchEngine):
    """Search over an InvertedIndex kept in memory and persisted to ``search_index``."""

    mode = "inverted"

    def __init__(self, storage: StorageAdapter, result_limit: int = 20) -> None:
        super().__init__(storage, result_limit)
        self._index = InvertedIndex()

    async def _load(self) -> None:
        blob = await self._storage.get(SEARCH_INDEX, INDEX_KEY)
        if blob is not None:
            try:
                self._index = InvertedIndex.loads(blob)
                logger.debug("Loaded search index with %d documents", len(self._index))
                return
            except IndexCorruptError as exc:
                logger.warning("Search index is unreadable, rebuilding: %s", exc)
        await self._rebuild()

    async def _rebuild(self) -> None:
        index = InvertedIndex()
        for doc in await documents_from_storage(self._storage):
            index.add(doc)
        self._index = index
        await self._persist()
        logger.info("Rebuilt search index with %d documents", len(index))

    async def _add(self, doc: SearchDocument) -> None:
        self._index.add(doc)
        await self._persist()

    async def _search(self, query: str) -> list[SearchResult]:
        return self._index.search(query, self._limit)

    async def _persist(self) -> None:
        await self._storage.put(SEARCH_INDEX, self._index.dumps(), INDEX_KEY)

    async def count(self) -> int:
        return len(self._index)

    def _reset(self) -> None:
        self._index = InvertedIndex()
