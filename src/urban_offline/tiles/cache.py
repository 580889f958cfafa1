"""Offline raster tile cache with bounded-concurrency region downloads."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass

from urban_offline.config import TilesCfg
from urban_offline.errors import (
    DownloadCancelledError,
    QuotaExceededError,
    TileDownloadError,
    TransientFetchError,
)
from urban_offline.storage.base import StorageAdapter
from urban_offline.storage.stores import MAP_TILES
from urban_offline.tiles.fetcher import TileFetcher, TilePayload, is_image
from urban_offline.tiles.geometry import BoundingBox, TileCoord, tile_key, tiles_for_bbox

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class MapRegion:
    """A named area whose tiles can be cached."""

    id: str
    name: str
    bbox: BoundingBox


class TileOutcome(str, enum.Enum):
    DOWNLOADED = "downloaded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class TileDownloadReport:
    """Per-region download tally. ``total`` covers every tile attempted."""

    total: int = 0
    downloaded: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: TileOutcome) -> None:
        if outcome is TileOutcome.DOWNLOADED:
            self.downloaded += 1
        elif outcome is TileOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1


def _check_abort(abort: asyncio.Event | None) -> None:
    if abort is not None and abort.is_set():
        raise DownloadCancelledError("Tile download cancelled")


class TileCache:
    """Fetch, validate and persist map tiles keyed by ``{z}-{x}-{y}``.

    Tiles are shared between regions: they are addressed by coordinate, not
    by owner. Region deletion recomputes the region's coordinate set, so
    removing one region also removes tiles an overlapping region still uses.
    """

    def __init__(
        self,
        storage: StorageAdapter,
        fetcher: TileFetcher,
        config: TilesCfg | None = None,
    ) -> None:
        self._storage = storage
        self._fetcher = fetcher
        self._cfg = config or TilesCfg()

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def bbox_around(self, lat: float, lon: float) -> BoundingBox:
        return BoundingBox.around(lat, lon, self._cfg.lat_padding, self._cfg.lon_padding)

    def region_tiles(self, region: MapRegion) -> list[TileCoord]:
        return tiles_for_bbox(region.bbox, self._cfg.zoom_levels)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_tile(self, x: int, y: int, z: int) -> bytes | None:
        """Cached tile bytes, or None so the map layer can fall back to live_url()."""
        return await self._storage.get(MAP_TILES, tile_key(x, y, z))

    def live_url(self, x: int, y: int, z: int) -> str:
        return self._cfg.url_template.format(z=z, x=x, y=y)

    async def tile_count(self) -> int:
        return len(await self._storage.get_all_keys(MAP_TILES))

    async def estimated_usage_mb(self) -> float:
        """Approximate tile storage from the average tile size."""
        return round(await self.tile_count() * self._cfg.avg_tile_kb / 1024, 1)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def store_tile(self, coord: TileCoord, content: bytes, content_type: str = "") -> bool:
        """Persist *content* for *coord* if it is image data. Returns whether it was stored."""
        if not is_image(TilePayload(content=content, content_type=content_type)):
            logger.warning("Rejected non-image payload for tile %s", coord.key)
            return False
        await self._storage.put(MAP_TILES, content, coord.key)
        return True

    async def download_region(
        self,
        region: MapRegion,
        on_progress: ProgressCallback | None = None,
        abort: asyncio.Event | None = None,
    ) -> TileDownloadReport:
        """Download every missing tile of *region* in bounded concurrent batches.

        Already cached tiles are skipped, so a repeated or resumed call only
        fetches what is missing. A tile that keeps failing is abandoned after
        ``max_attempts`` without aborting the batch. Progress is reported after
        each batch as a percentage of tiles attempted.

        Raises:
            QuotaExceededError: A tile write hit the storage budget. The
                batch in flight settles before this propagates.
            DownloadCancelledError: *abort* was set.
            TileDownloadError: More than ``max_failed_fraction`` of tiles failed.
        """
        tiles = self.region_tiles(region)
        total = len(tiles)
        report = TileDownloadReport(total=total)
        batch_size = self._cfg.batch_size

        logger.info("Downloading %d tiles for %s", total, region.name)

        processed = 0
        for start in range(0, total, batch_size):
            _check_abort(abort)
            batch = tiles[start : start + batch_size]
            outcomes = await asyncio.gather(
                *(self._fetch_and_store(coord, abort) for coord in batch),
                return_exceptions=True,
            )
            errors = [o for o in outcomes if isinstance(o, BaseException)]
            for outcome in outcomes:
                if isinstance(outcome, TileOutcome):
                    report.record(outcome)
            if errors:
                raise _most_significant(errors)

            processed += len(batch)
            if on_progress is not None:
                on_progress(processed * 100 // total)

            if start + batch_size < total and self._cfg.batch_delay_seconds > 0:
                await asyncio.sleep(self._cfg.batch_delay_seconds)

        if total == 0 and on_progress is not None:
            on_progress(100)

        logger.info(
            "Region %s complete: %d downloaded, %d already cached, %d failed of %d",
            region.name,
            report.downloaded,
            report.skipped,
            report.failed,
            total,
        )

        if report.failed > total * self._cfg.max_failed_fraction:
            raise TileDownloadError(
                f"Too many tile downloads failed ({report.failed}/{total}) for {region.name}"
            )
        return report

    async def _fetch_and_store(
        self, coord: TileCoord, abort: asyncio.Event | None
    ) -> TileOutcome:
        if await self._storage.get(MAP_TILES, coord.key) is not None:
            return TileOutcome.SKIPPED

        payload: TilePayload | None = None
        attempts = self._cfg.max_attempts
        for attempt in range(1, attempts + 1):
            _check_abort(abort)
            try:
                payload = await self._fetcher.fetch(coord)
                break
            except TransientFetchError as exc:
                logger.debug("Attempt %d/%d failed for tile %s: %s", attempt, attempts, coord.key, exc)
                if attempt < attempts and self._cfg.backoff_seconds > 0:
                    await asyncio.sleep(self._cfg.backoff_seconds * attempt)

        if payload is None:
            logger.warning("Giving up on tile %s after %d attempts", coord.key, attempts)
            return TileOutcome.FAILED

        if not is_image(payload):
            logger.warning(
                "Discarding tile %s with non-image content type '%s'",
                coord.key,
                payload.content_type,
            )
            return TileOutcome.FAILED

        await self._storage.put(MAP_TILES, payload.content, coord.key)
        return TileOutcome.DOWNLOADED

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def clear_region_tiles(self, region: MapRegion) -> int:
        """Delete every cached tile inside *region*'s bounding box. Returns tiles removed."""
        removed = 0
        existing = set(await self._storage.get_all_keys(MAP_TILES))
        for coord in self.region_tiles(region):
            if coord.key in existing:
                await self._storage.delete(MAP_TILES, coord.key)
                removed += 1
        logger.info("Cleared %d tiles for region %s", removed, region.id)
        return removed

    async def clear_all_tiles(self) -> int:
        keys = await self._storage.get_all_keys(MAP_TILES)
        for key in keys:
            await self._storage.delete(MAP_TILES, key)
        logger.info("Cleared all %d cached tiles", len(keys))
        return len(keys)


def _most_significant(errors: list[BaseException]) -> BaseException:
    """Pick the error to surface from a settled batch: quota, then cancellation, then first."""
    for kind in (QuotaExceededError, DownloadCancelledError):
        for err in errors:
            if isinstance(err, kind):
                return err
    return errors[0]
