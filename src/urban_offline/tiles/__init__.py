"""Map tile math, fetching and caching."""

from urban_offline.tiles.cache import MapRegion, TileCache, TileDownloadReport, TileOutcome
from urban_offline.tiles.fetcher import HttpTileFetcher, TileFetcher, TilePayload, is_image
from urban_offline.tiles.geometry import (
    BoundingBox,
    TileCoord,
    lat_to_tile_y,
    lon_to_tile_x,
    tile_key,
    tiles_for_bbox,
)

__all__ = [
    "BoundingBox",
    "HttpTileFetcher",
    "MapRegion",
    "TileCache",
    "TileCoord",
    "TileDownloadReport",
    "TileFetcher",
    "TileOutcome",
    "TilePayload",
    "is_image",
    "lat_to_tile_y",
    "lon_to_tile_x",
    "tile_key",
    "tiles_for_bbox",
]
