"""Slug lookup across the content stores."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from urban_offline.content.html import html_to_text
from urban_offline.storage.base import StorageAdapter
from urban_offline.storage.stores import (
    CONTENT_STORES,
    HEALTH_CONTENT,
    LAW_CONTENT,
    SURVIVAL_CONTENT,
)

logger = logging.getLogger(__name__)


@dataclass
class Article:
    """A content item normalised for display, whichever store it came from."""

    slug: str
    title: str
    body_html: str
    body_plain: str
    source: str
    last_updated: str


def _article_from(store: str, item: dict[str, Any]) -> Article:
    updated = item.get("importedAt") or datetime.now(timezone.utc).isoformat()
    slug = str(item.get("slug") or item["id"])

    if store == HEALTH_CONTENT:
        html = str(item.get("content") or "")
        plain = str(item.get("summary") or "") or html_to_text(html)
        title = item.get("title")
    elif store == SURVIVAL_CONTENT:
        html = str(item.get("description") or "")
        plain = str(item.get("searchableText") or "")
        title = item.get("title") or item.get("name")
    elif store == LAW_CONTENT:
        html = str(item.get("fullText") or "")
        plain = str(item.get("summary") or "")
        title = item.get("title")
    else:
        html = str(item.get("content") or "")
        plain = html
        title = item.get("title")

    return Article(
        slug=slug,
        title=str(title or slug),
        body_html=html,
        body_plain=plain,
        source=store,
        last_updated=str(updated),
    )


async def get_article_by_slug(storage: StorageAdapter, slug: str) -> Article | None:
    """Find *slug* in the health, survival, law and guide stores, in that order.

    Returns:
        The first match as an Article, or None if no store holds it.
    """
    if not slug:
        return None
    for store in CONTENT_STORES:
        item = await storage.get(store, slug)
        if isinstance(item, dict):
            return _article_from(store, item)
    logger.debug("No article with slug %r", slug)
    return None

