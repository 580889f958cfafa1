"""Search engine contract shared by the FTS and inverted-index modes.

The base class owns the initialisation guard: one build at a time, concurrent
callers wait on the build already in flight instead of starting another.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from urban_offline.search.models import SearchDocument, SearchResult
from urban_offline.storage.base import StorageAdapter

logger = logging.getLogger(__name__)


class SearchEngine(ABC):
    """``init`` / ``add_document`` / ``search`` / ``rebuild_index`` over one storage backend."""

    mode: str = ""

    def __init__(self, storage: StorageAdapter, result_limit: int = 20) -> None:
        self._storage = storage
        self._limit = result_limit
        self._ready = False
        self._build: asyncio.Task[None] | None = None

    @property
    def ready(self) -> bool:
        return self._ready

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> None:
        """Load or build the index. Idempotent and safe to call concurrently."""
        while not self._ready:
            if self._build is None:
                self._start_build(self._load)
            await asyncio.shield(self._build)

    async def rebuild_index(self) -> int:
        """Discard the current index and rebuild it from every content store.

        Returns:
            Number of documents indexed.
        """
        await self._wait_for_build()
        self._start_build(self._rebuild)
        await asyncio.shield(self._build)
        return await self.count()

    async def close(self) -> None:
        await self._wait_for_build()
        self._ready = False
        self._reset()

    def _start_build(self, work: Callable[[], Awaitable[None]]) -> None:
        self._build = asyncio.ensure_future(self._run_build(work))

    async def _run_build(self, work: Callable[[], Awaitable[None]]) -> None:
        try:
            await work()
            self._ready = True
        finally:
            if self._build is asyncio.current_task():
                self._build = None

    async def _wait_for_build(self) -> None:
        """Let any in-flight build settle without raising its error here."""
        while self._build is not None:
            await asyncio.wait({self._build})

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def add_document(self, doc: SearchDocument) -> None:
        """Index *doc*, replacing any earlier document with the same id."""
        await self._wait_for_build()
        await self.init()
        await self._add(doc)

    async def search(self, query: str) -> list[SearchResult]:
        """Return at most ``result_limit`` results; empty for blank queries or an empty index."""
        if not query or not query.strip():
            return []
        await self._wait_for_build()
        await self.init()
        return await self._search(query.strip())

    # ------------------------------------------------------------------
    # Mode hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _load(self) -> None:
        """Make the index usable, building it from storage if needed."""

    @abstractmethod
    async def _rebuild(self) -> None: ...

    @abstractmethod
    async def _add(self, doc: SearchDocument) -> None: ...

    @abstractmethod
    async def _search(self, query: str) -> list[SearchResult]: ...

    @abstractmethod
    async def count(self) -> int:
        """Number of indexed documents."""

    def _reset(self) -> None:
        """Drop process-local index state on close."""
