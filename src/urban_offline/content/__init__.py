"""Content helpers: HTML conversion and article lookup.

The importer lives in ``urban_offline.content.importer``; it depends on the
search package, which itself uses ``content.html``.
"""

from urban_offline.content.articles import Article, get_article_by_slug
from urban_offline.content.html import html_to_text, plain_text

__all__ = ["Article", "get_article_by_slug", "html_to_text", "plain_text"]
