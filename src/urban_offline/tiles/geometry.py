"""Slippy-map tile math: geographic bounding boxes to (z, x, y) tile coordinates."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

# Web-Mercator cannot represent the poles; tile math is only defined inside this band.
MAX_LATITUDE = 85.05112878


@dataclass(frozen=True)
class TileCoord:
    z: int
    x: int
    y: int

    @property
    def key(self) -> str:
        return tile_key(self.x, self.y, self.z)


@dataclass(frozen=True)
class BoundingBox:
    north: float
    south: float
    east: float
    west: float

    @classmethod
    def around(
        cls, lat: float, lon: float, lat_padding: float = 0.05, lon_padding: float = 0.08
    ) -> BoundingBox:
        """Box centred on (*lat*, *lon*) extending by the given paddings in degrees."""
        return cls(
            north=lat + lat_padding,
            south=lat - lat_padding,
            east=lon + lon_padding,
            west=lon - lon_padding,
        )


def tile_key(x: int, y: int, z: int) -> str:
    """Storage key for a tile: ``"{z}-{x}-{y}"``."""
    return f"{z}-{x}-{y}"


def lon_to_tile_x(lon: float, zoom: int) -> int:
    n = 2**zoom
    x = math.floor((lon + 180.0) / 360.0 * n)
    return min(max(x, 0), n - 1)


def lat_to_tile_y(lat: float, zoom: int) -> int:
    n = 2**zoom
    lat = min(max(lat, -MAX_LATITUDE), MAX_LATITUDE)
    rad = math.radians(lat)
    y = math.floor((1.0 - math.log(math.tan(rad) + 1.0 / math.cos(rad)) / math.pi) / 2.0 * n)
    return min(max(y, 0), n - 1)


def tiles_for_bbox(bbox: BoundingBox, zoom_levels: Iterable[int]) -> list[TileCoord]:
    """Every tile covering *bbox* at each zoom level, in zoom, x, y order.

    Tile y grows southwards, so the north edge gives the smallest y.
    """
    tiles: list[TileCoord] = []
    for z in zoom_levels:
        top = lat_to_tile_y(bbox.north, z)
        bottom = lat_to_tile_y(bbox.south, z)
        left = lon_to_tile_x(bbox.west, z)
        right = lon_to_tile_x(bbox.east, z)
        for x in range(left, right + 1):
            for y in range(top, bottom + 1):
                tiles.append(TileCoord(z=z, x=x, y=y))
    return tiles
