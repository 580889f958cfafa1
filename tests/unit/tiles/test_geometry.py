"""Tests for slippy-map tile math."""

from __future__ import annotations

from urban_offline.tiles.geometry import (
    BoundingBox,
    TileCoord,
    lat_to_tile_y,
    lon_to_tile_x,
    tile_key,
    tiles_for_bbox,
)


def test_tile_key_format() -> None:
    assert tile_key(2046, 1361, 12) == "12-2046-1361"
    assert TileCoord(z=12, x=2046, y=1361).key == "12-2046-1361"


def test_zoom_zero_is_single_tile() -> None:
    assert lon_to_tile_x(-0.1278, 0) == 0
    assert lat_to_tile_y(51.5074, 0) == 0


def test_known_london_tile() -> None:
    # Standard OSM tile for central London at zoom 10.
    assert lon_to_tile_x(-0.1278, 10) == 511
    assert lat_to_tile_y(51.5074, 10) == 340


def test_extremes_are_clamped() -> None:
    assert lon_to_tile_x(180.0, 4) == 15
    assert lon_to_tile_x(-180.0, 4) == 0
    assert lat_to_tile_y(90.0, 4) == 0
    assert lat_to_tile_y(-90.0, 4) == 15


def test_bbox_around() -> None:
    box = BoundingBox.around(51.5, -0.1, lat_padding=0.05, lon_padding=0.08)
    assert round(box.north, 2) == 51.55
    assert round(box.south, 2) == 51.45
    assert round(box.east, 2) == -0.02
    assert round(box.west, 2) == -0.18


def test_tiles_for_bbox_covers_every_zoom_in_order() -> None:
    box = BoundingBox.around(51.5074, -0.1278)
    tiles = tiles_for_bbox(box, [10, 11])
    assert [t.z for t in tiles] == sorted(t.z for t in tiles)
    assert {t.z for t in tiles} == {10, 11}
    assert len(tiles) == len(set(tiles))


def test_tiles_for_bbox_rectangle_size() -> None:
    box = BoundingBox.around(40.7128, -74.0060)
    z = 13
    tiles = tiles_for_bbox(box, [z])
    width = lon_to_tile_x(box.east, z) - lon_to_tile_x(box.west, z) + 1
    height = lat_to_tile_y(box.south, z) - lat_to_tile_y(box.north, z) + 1
    assert len(tiles) == width * height


def test_higher_zoom_has_more_tiles() -> None:
    box = BoundingBox.around(37.7749, -122.4194)
    assert len(tiles_for_bbox(box, [14])) > len(tiles_for_bbox(box, [10]))
