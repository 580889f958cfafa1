"""Map stored content items to search documents.

Both the import path and the rebuild path go through ``document_for()``, so a
rebuilt index holds exactly what incremental adds produced.
"""

from __future__ import annotations

from typing import Any

from urban_offline.content.html import plain_text
from urban_offline.search.models import SearchDocument
from urban_offline.storage.base import StorageAdapter
from urban_offline.storage.stores import (
    CONTENT_STORES,
    GUIDE_CONTENT,
    HEALTH_CONTENT,
    LAW_CONTENT,
    SURVIVAL_CONTENT,
)

CATEGORY_BY_STORE: dict[str, str] = {
    HEALTH_CONTENT: "health",
    SURVIVAL_CONTENT: "survival",
    LAW_CONTENT: "law",
    GUIDE_CONTENT: "guide",
}


def document_for(store: str, item: dict[str, Any]) -> SearchDocument | None:
    """Build the search document for *item* in *store*, or None if it is not searchable.

    Survival items without ``searchableText`` are data records (flood zones,
    GeoJSON features) and stay out of the index.
    """
    if not isinstance(item, dict) or item.get("id") is None:
        return None
    doc_id = item["id"]
    slug = item.get("slug") or str(doc_id)
    category = CATEGORY_BY_STORE[store]

    if store == HEALTH_CONTENT:
        summary = str(item.get("summary") or "")
        body = plain_text(item.get("content"))
        return SearchDocument(
            id=doc_id,
            slug=slug,
            title=str(item.get("title") or ""),
            content=f"{summary} {body}".strip(),
            description=summary,
            category=category,
        )

    if store == SURVIVAL_CONTENT:
        if not item.get("searchableText"):
            return None
        return SearchDocument(
            id=doc_id,
            slug=slug,
            title=str(item.get("title") or item.get("name") or ""),
            content=plain_text(item["searchableText"]),
            description=str(item.get("description") or ""),
            category=category,
        )

    if store == LAW_CONTENT:
        return SearchDocument(
            id=doc_id,
            slug=slug,
            title=str(item.get("title") or ""),
            content=plain_text(item.get("fullText")),
            description=str(item.get("summary") or ""),
            category=category,
        )

    return SearchDocument(
        id=doc_id,
        slug=slug,
        title=str(item.get("title") or doc_id),
        content=plain_text(item.get("content")),
        description=str(item.get("description") or ""),
        category=category,
    )


async def documents_from_storage(storage: StorageAdapter) -> list[SearchDocument]:
    """Scan every content store and return its searchable documents.

    Returns an empty list when no content has ever been imported.
    """
    documents: list[SearchDocument] = []
    for store in CONTENT_STORES:
        for item in await storage.get_all(store):
            doc = document_for(store, item)
            if doc is not None:
                documents.append(doc)
    return documents
