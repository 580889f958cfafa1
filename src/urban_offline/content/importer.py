"""Write content items into their stores and index them for search."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from urban_offline.errors import InvalidInputError
from urban_offline.search.base import SearchEngine
from urban_offline.search.documents import document_for
from urban_offline.storage.base import StorageAdapter
from urban_offline.storage.stores import (
    GUIDE_CONTENT,
    HEALTH_CONTENT,
    LAW_CONTENT,
    SURVIVAL_CONTENT,
)

logger = logging.getLogger(__name__)

SUMMARY_CHARS = 200


@dataclass
class SyncResult:
    synced: bool
    count: int = 0


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def category_for(categories: list[str] | None) -> str:
    """Classify a manifest article: Legal/Rights -> law, Survival/Flood -> survival, else health."""
    names = categories or []
    if any("Legal" in c or "Rights" in c for c in names):
        return "law"
    if any("Survival" in c or "Flood" in c for c in names):
        return "survival"
    return "health"


class ContentImporter:
    """Store articles, survival items, legal texts and guides, keeping search in step.

    Args:
        storage: Initialised storage adapter.
        search: Engine that receives every searchable item. None skips indexing.
    """

    def __init__(self, storage: StorageAdapter, search: SearchEngine | None = None) -> None:
        self._storage = storage
        self._search = search

    async def import_health(self, article: dict[str, Any]) -> str:
        """Import a health article ``{id, title, summary, content, tags}``."""
        return await self._import(HEALTH_CONTENT, article)

    async def import_survival(self, item: dict[str, Any]) -> str:
        """Import a survival item. Only items with ``searchableText`` are indexed."""
        return await self._import(SURVIVAL_CONTENT, item)

    async def import_law(self, doc: dict[str, Any]) -> str:
        """Import a legal text ``{id, title, summary, fullText}``."""
        return await self._import(LAW_CONTENT, doc)

    async def import_guide(self, guide: dict[str, Any]) -> str:
        """Import guide body ``{id, title, content}`` into ``guide_content``."""
        return await self._import(GUIDE_CONTENT, guide)

    async def import_item(self, store: str, item: dict[str, Any]) -> str:
        """Import *item* into one of the content stores by name."""
        if store not in (HEALTH_CONTENT, SURVIVAL_CONTENT, LAW_CONTENT, GUIDE_CONTENT):
            raise InvalidInputError(f"'{store}' is not a content store")
        return await self._import(store, item)

    async def remove(self, store: str, item_id: str | int) -> None:
        """Delete an item from *store*. The search index is refreshed by the caller's rebuild."""
        await self._storage.delete(store, item_id)

    async def _import(self, store: str, item: dict[str, Any]) -> str:
        if not isinstance(item, dict) or item.get("id") in (None, ""):
            raise InvalidInputError(f"Cannot import into '{store}': item is missing an 'id'")
        record = {**item, "importedAt": _now()}
        key = await self._storage.put(store, record)
        doc = document_for(store, record)
        if doc is not None and self._search is not None:
            await self._search.add_document(doc)
        return key

    async def sync_from_manifest(self, manifest: dict[str, Any]) -> SyncResult:
        """Import every article of a content manifest ``{articles: [...]}``.

        Each article carries ``slug``, ``title``, ``body_html``, ``body_plain``
        and optional ``categories``, ``source`` and ``source_url``.
        """
        articles = manifest.get("articles") if isinstance(manifest, dict) else None
        if not articles:
            return SyncResult(synced=False)

        count = 0
        for article in articles:
            slug = article.get("slug")
            if not slug:
                logger.warning("Skipping manifest article without a slug: %r", article.get("title"))
                continue
            plain = str(article.get("body_plain") or "")
            record: dict[str, Any] = {
                "id": slug,
                "slug": slug,
                "title": article.get("title") or slug,
                "summary": plain[:SUMMARY_CHARS],
                "content": article.get("body_html") or "",
                "source": article.get("source") or "wikipedia",
                "source_url": article.get("source_url") or "",
            }
            category = category_for(article.get("categories"))
            if category == "law":
                await self.import_law({**record, "fullText": plain})
            elif category == "survival":
                await self.import_survival(
                    {**record, "searchableText": plain, "description": record["summary"]}
                )
            else:
                await self.import_health(record)
            count += 1

        logger.info("Synced %d articles from manifest", count)
        return SyncResult(synced=True, count=count)
