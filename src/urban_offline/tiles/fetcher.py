"""Tile sources: the fetch capability consumed by the tile cache."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import httpx

from urban_offline.errors import TransientFetchError
from urban_offline.tiles.geometry import TileCoord

USER_AGENT = "urban-offline/0.1 (offline map cache)"

# Leading bytes of the raster formats tile servers and packs ship.
_IMAGE_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF8", "image/gif"),
)


@dataclass(frozen=True)
class TilePayload:
    content: bytes
    content_type: str


class TileFetcher(Protocol):
    async def fetch(self, coord: TileCoord) -> TilePayload:
        """Fetch one tile. Raise TransientFetchError on any retryable failure."""
        ...


def sniff_image_type(content: bytes) -> str | None:
    """Return the image MIME type implied by *content*'s signature, or None."""
    for signature, mime in _IMAGE_SIGNATURES:
        if content.startswith(signature):
            return mime
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    return None


def is_image(payload: TilePayload) -> bool:
    """True when *payload* is image data worth persisting.

    A declared content type is authoritative. Payloads without one (tiles
    unpacked from an archive) are accepted on their magic bytes.
    """
    if not payload.content:
        return False
    declared = payload.content_type.split(";")[0].strip().lower()
    if declared:
        return declared.startswith("image/")
    return sniff_image_type(payload.content) is not None


class HttpTileFetcher:
    """Fetch tiles from a ``{z}/{x}/{y}`` URL template over HTTP.

    The caller owns *client* and closes it.
    """

    def __init__(self, client: httpx.AsyncClient, url_template: str) -> None:
        self._client = client
        self._url_template = url_template

    def url_for(self, coord: TileCoord) -> str:
        return self._url_template.format(z=coord.z, x=coord.x, y=coord.y)

    async def fetch(self, coord: TileCoord) -> TilePayload:
        url = self.url_for(coord)
        try:
            response = await self._client.get(url, headers={"User-Agent": USER_AGENT})
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"Failed to fetch tile '{url}': {exc}") from exc
        if not response.is_success:
            raise TransientFetchError(
                f"Tile server returned {response.status_code} for '{url}'"
            )
        return TilePayload(
            content=response.content,
            content_type=response.headers.get("Content-Type", ""),
        )
