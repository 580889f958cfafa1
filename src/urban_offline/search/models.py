"""Search document and result types shared by both search modes."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

DocumentId = str | int


@dataclass
class SearchDocument:
    """One indexed content item. ``id`` is stable: re-adding it replaces the old entry."""

    id: DocumentId
    title: str
    content: str = ""
    description: str = ""
    category: str = ""
    slug: str | None = None

    def __post_init__(self) -> None:
        if self.slug is None:
            self.slug = str(self.id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchDocument:
        return cls(
            id=data["id"],
            title=str(data.get("title") or ""),
            content=str(data.get("content") or ""),
            description=str(data.get("description") or ""),
            category=str(data.get("category") or ""),
            slug=data.get("slug"),
        )


@dataclass
class SearchResult:
    id: DocumentId
    slug: str
    title: str
    description: str = ""
    category: str = ""
    snippet: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
