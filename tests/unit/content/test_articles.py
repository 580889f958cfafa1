"""Tests for slug lookup and HTML conversion."""

from __future__ import annotations

from urban_offline.content import get_article_by_slug, html_to_text, plain_text
from urban_offline.storage.stores import (
    GUIDE_CONTENT,
    HEALTH_CONTENT,
    LAW_CONTENT,
    SURVIVAL_CONTENT,
)

# ---------------------------------------------------------------------------
# get_article_by_slug
# ---------------------------------------------------------------------------


async def test_health_article_uses_summary_as_plain_text(storage) -> None:
    await storage.put(
        HEALTH_CONTENT,
        {
            "id": "wiki-hypothermia",
            "title": "Hypothermia",
            "summary": "Low body temperature.",
            "content": "<p>Full body</p>",
            "importedAt": "2024-01-01T00:00:00+00:00",
        },
    )

    article = await get_article_by_slug(storage, "wiki-hypothermia")

    assert article.slug == "wiki-hypothermia"
    assert article.title == "Hypothermia"
    assert article.body_html == "<p>Full body</p>"
    assert article.body_plain == "Low body temperature."
    assert article.source == HEALTH_CONTENT
    assert article.last_updated == "2024-01-01T00:00:00+00:00"


async def test_health_article_without_summary_converts_html(storage) -> None:
    await storage.put(HEALTH_CONTENT, {"id": "a", "title": "A", "content": "<p>Stay <b>warm</b></p>"})
    article = await get_article_by_slug(storage, "a")
    assert article.body_plain == "Stay **warm**"


async def test_survival_item_title_falls_back_to_name(storage) -> None:
    await storage.put(
        SURVIVAL_CONTENT,
        {"id": "water-1", "name": "Boiling water", "searchableText": "Boil it."},
    )
    article = await get_article_by_slug(storage, "water-1")
    assert article.title == "Boiling water"
    assert article.body_plain == "Boil it."
    assert article.last_updated


async def test_law_and_guide_lookup(storage) -> None:
    await storage.put(LAW_CONTENT, {"id": "pace", "title": "PACE", "fullText": "<p>t</p>", "summary": "s"})
    await storage.put(GUIDE_CONTENT, {"id": "first-aid-basic", "title": "First Aid", "content": "# CPR"})

    law = await get_article_by_slug(storage, "pace")
    guide = await get_article_by_slug(storage, "first-aid-basic")

    assert (law.source, law.body_html, law.body_plain) == (LAW_CONTENT, "<p>t</p>", "s")
    assert (guide.source, guide.body_plain) == (GUIDE_CONTENT, "# CPR")


async def test_health_store_wins_over_later_stores(storage) -> None:
    await storage.put(LAW_CONTENT, {"id": "dup", "title": "Law"})
    await storage.put(HEALTH_CONTENT, {"id": "dup", "title": "Health"})
    article = await get_article_by_slug(storage, "dup")
    assert article.title == "Health"


async def test_unknown_slug_is_none(storage) -> None:
    assert await get_article_by_slug(storage, "nope") is None
    assert await get_article_by_slug(storage, "") is None


# ---------------------------------------------------------------------------
# HTML helpers
# ---------------------------------------------------------------------------


def test_html_to_text_strips_scripts_and_links() -> None:
    html = (
        "<html><head><title>t</title></head><body>"
        "<script>alert(1)</script><p>See <a href='/x'>the guide</a>.</p>"
        "</body></html>"
    )
    assert html_to_text(html) == "See the guide."


def test_html_to_text_decodes_entities() -> None:
    assert html_to_text("<p>Below 35&deg;C</p>") == "Below 35°C"


def test_plain_text_passes_non_html_through() -> None:
    assert plain_text("# Heading") == "# Heading"
    assert plain_text(None) == ""
    assert html_to_text("") == ""
