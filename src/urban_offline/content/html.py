"""HTML article bodies to plain text (BeautifulSoup + html2text)."""

from __future__ import annotations

import html2text
from bs4 import BeautifulSoup

# html2text converter
_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0

_STRIP_TAGS = ["script", "style", "nav", "footer", "head"]


def looks_like_html(text: str) -> bool:
    return "<" in text and ">" in text


def html_to_text(html: str) -> str:
    """Convert an HTML article body to plain text for display and indexing."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(_STRIP_TAGS):
        tag.decompose()
    return _h2t.handle(str(soup)).strip()


def plain_text(text: object) -> str:
    """Return *text* as plain text, converting it first if it looks like HTML."""
    value = str(text or "")
    return html_to_text(value) if looks_like_html(value) else value
