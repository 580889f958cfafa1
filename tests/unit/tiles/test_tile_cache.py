"""Tests for TileCache region downloads, retries, validation and deletion."""

from __future__ import annotations

import asyncio

import pytest

from urban_offline.errors import DownloadCancelledError, QuotaExceededError, TileDownloadError
from urban_offline.storage.document import DocumentStorage
from urban_offline.storage.stores import MAP_TILES
from urban_offline.tiles.cache import MapRegion, TileCache
from urban_offline.tiles.geometry import BoundingBox, TileCoord


class QuotaOnNthTile(DocumentStorage):
    """Document storage that runs out of space on the Nth tile write."""

    def __init__(self, data_dir, fail_on: int) -> None:
        super().__init__(data_dir)
        self.fail_on = fail_on
        self.tile_writes = 0

    async def put(self, store, value, key=None):
        if store == MAP_TILES:
            self.tile_writes += 1
            if self.tile_writes == self.fail_on:
                raise QuotaExceededError()
        return await super().put(store, value, key)


@pytest.fixture
def london() -> MapRegion:
    return MapRegion(id="region-london", name="London", bbox=BoundingBox.around(51.5074, -0.1278))


@pytest.fixture
def cache(storage, fetcher, make_tiles_cfg) -> TileCache:
    return TileCache(storage, fetcher, make_tiles_cfg())


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------


async def test_download_region_stores_every_tile(cache, fetcher, london, png_bytes) -> None:
    expected = cache.region_tiles(london)
    report = await cache.download_region(london)

    assert report.total == len(expected)
    assert report.downloaded == len(expected)
    assert report.failed == 0
    assert len(fetcher.calls) == len(expected)
    first = expected[0]
    assert await cache.get_tile(first.x, first.y, first.z) == png_bytes
    assert await cache.tile_count() == len(expected)


async def test_download_region_is_idempotent(cache, fetcher, london) -> None:
    await cache.download_region(london)
    calls = len(fetcher.calls)

    report = await cache.download_region(london)

    assert report.skipped == report.total
    assert report.downloaded == 0
    assert len(fetcher.calls) == calls


async def test_resume_fetches_only_missing_tiles(cache, storage, fetcher, london) -> None:
    tiles = cache.region_tiles(london)
    await cache.download_region(london)
    await storage.delete(MAP_TILES, tiles[0].key)
    fetcher.calls.clear()

    report = await cache.download_region(london)

    assert fetcher.calls == [tiles[0].key]
    assert report.downloaded == 1


async def test_transient_failure_is_retried(storage, make_fetcher, make_tiles_cfg, london) -> None:
    cfg = make_tiles_cfg()
    probe = TileCache(storage, make_fetcher(), cfg)
    flaky = probe.region_tiles(london)[1].key
    fetcher = make_fetcher(fail_first={flaky})
    cache = TileCache(storage, fetcher, cfg)

    report = await cache.download_region(london)

    assert report.failed == 0
    assert fetcher.calls.count(flaky) == 2
    assert await storage.get(MAP_TILES, flaky) is not None


async def test_tile_abandoned_after_max_attempts_within_threshold(
    storage, make_fetcher, make_tiles_cfg, london
) -> None:
    cfg = make_tiles_cfg(zoom_levels=[12, 13])
    tiles = TileCache(storage, make_fetcher(), cfg).region_tiles(london)
    dead = tiles[0].key
    fetcher = make_fetcher(always_fail={dead})
    cache = TileCache(storage, fetcher, cfg)

    report = await cache.download_region(london)

    assert report.failed == 1
    assert report.downloaded == len(tiles) - 1
    assert fetcher.calls.count(dead) == cfg.max_attempts
    assert await storage.get(MAP_TILES, dead) is None


async def test_too_many_failures_raise(storage, make_fetcher, make_tiles_cfg, london) -> None:
    cfg = make_tiles_cfg()
    tiles = TileCache(storage, make_fetcher(), cfg).region_tiles(london)
    fetcher = make_fetcher(always_fail={t.key for t in tiles})
    cache = TileCache(storage, fetcher, cfg)

    with pytest.raises(TileDownloadError, match="Too many tile downloads failed"):
        await cache.download_region(london)


async def test_non_image_payload_is_never_stored(storage, make_fetcher, make_tiles_cfg, london) -> None:
    cache = TileCache(storage, make_fetcher(content_type="text/html"), make_tiles_cfg())

    with pytest.raises(TileDownloadError):
        await cache.download_region(london)
    assert await cache.tile_count() == 0


async def test_cancel_before_start(cache, fetcher, london) -> None:
    abort = asyncio.Event()
    abort.set()

    with pytest.raises(DownloadCancelledError):
        await cache.download_region(london, abort=abort)
    assert fetcher.calls == []


async def test_cancel_between_batches(storage, make_fetcher, make_tiles_cfg, london) -> None:
    cfg = make_tiles_cfg(zoom_levels=[12, 13], batch_size=2)
    abort = asyncio.Event()
    cache = TileCache(storage, make_fetcher(), cfg)
    total = len(cache.region_tiles(london))

    def on_progress(percent: int) -> None:
        abort.set()

    with pytest.raises(DownloadCancelledError):
        await cache.download_region(london, on_progress=on_progress, abort=abort)
    assert 0 < await cache.tile_count() < total


async def test_progress_is_monotonic_and_ends_at_100(cache, london) -> None:
    seen: list[int] = []
    await cache.download_region(london, on_progress=seen.append)
    assert seen == sorted(seen)
    assert seen[-1] == 100


async def test_progress_reaches_100_only_after_last_tile(storage, fetcher, make_tiles_cfg) -> None:
    region = MapRegion(
        id="region-wide",
        name="Wide",
        bbox=BoundingBox.around(51.5074, -0.1278, lat_padding=0.15, lon_padding=0.25),
    )
    cache = TileCache(storage, fetcher, make_tiles_cfg(zoom_levels=[14], batch_size=1))
    total = len(cache.region_tiles(region))
    assert total >= 200

    fetched_at: list[tuple[int, int]] = []

    def on_progress(percent: int) -> None:
        fetched_at.append((percent, len(fetcher.calls)))

    await cache.download_region(region, on_progress=on_progress)

    hundreds = [calls for percent, calls in fetched_at if percent == 100]
    assert hundreds == [total]
    assert fetched_at[-2][0] == 99


async def test_quota_error_propagates_after_batch(tmp_path, fetcher, make_tiles_cfg, london) -> None:
    storage = QuotaOnNthTile(tmp_path / "quota", fail_on=3)
    await storage.init()
    try:
        cache = TileCache(storage, fetcher, make_tiles_cfg())
        assert len(cache.region_tiles(london)) >= 3

        with pytest.raises(QuotaExceededError):
            await cache.download_region(london)
        # Only the first batch ran; its other tiles settled before the error surfaced.
        assert await cache.tile_count() == min(5, len(cache.region_tiles(london))) - 1
    finally:
        await storage.close()


# ---------------------------------------------------------------------------
# Direct writes and reads
# ---------------------------------------------------------------------------


async def test_store_tile_rejects_non_image(cache) -> None:
    stored = await cache.store_tile(TileCoord(12, 1, 1), b"<html>nope</html>")
    assert stored is False
    assert await cache.get_tile(1, 1, 12) is None


async def test_store_tile_accepts_png_without_content_type(cache, png_bytes) -> None:
    assert await cache.store_tile(TileCoord(12, 1, 1), png_bytes) is True
    assert await cache.get_tile(1, 1, 12) == png_bytes


async def test_missing_tile_falls_back_to_live_url(cache) -> None:
    assert await cache.get_tile(5, 6, 7) is None
    assert cache.live_url(5, 6, 7) == "https://tile.openstreetmap.org/7/5/6.png"


async def test_estimated_usage(cache, png_bytes) -> None:
    for x in range(1024 // 20 + 1):
        await cache.store_tile(TileCoord(12, x, 0), png_bytes)
    assert await cache.estimated_usage_mb() == pytest.approx(1.0, abs=0.1)


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


async def test_clear_region_tiles(cache, london, png_bytes) -> None:
    await cache.download_region(london)
    outside = TileCoord(12, 0, 0)
    await cache.store_tile(outside, png_bytes)

    removed = await cache.clear_region_tiles(london)

    assert removed == len(cache.region_tiles(london))
    assert await cache.tile_count() == 1
    assert await cache.get_tile(0, 0, 12) == png_bytes


async def test_clear_region_with_nothing_cached(cache, london) -> None:
    assert await cache.clear_region_tiles(london) == 0


async def test_clear_all_tiles(cache, london) -> None:
    await cache.download_region(london)
    removed = await cache.clear_all_tiles()
    assert removed > 0
    assert await cache.tile_count() == 0
