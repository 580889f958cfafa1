"""Dataset lifecycle: install, uninstall and status queries for regions and guides.

Every install writes a ``downloading`` record and waits for that write before
doing any work, so a crash mid-install leaves a record that is visible for
retry but never counted as installed. When the install settles the record is
rewritten as ``installed`` or ``failed``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from urban_offline.config import DatasetsCfg
from urban_offline.content.importer import ContentImporter
from urban_offline.datasets.catalog import MAP_TILES_MODULE, Catalog, DatasetDescriptor
from urban_offline.datasets.models import (
    DatasetRecord,
    DatasetStatus,
    DatasetType,
    StorageUsage,
)
from urban_offline.errors import InvalidInputError, OfflineError, QuotaExceededError
from urban_offline.search.base import SearchEngine
from urban_offline.storage.base import StorageAdapter
from urban_offline.storage.stores import CONTENT_PACKS, DATASETS, GUIDE_CONTENT, GUIDES
from urban_offline.tiles.cache import MapRegion, TileCache

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

RECORD_STORES: dict[DatasetType, str] = {
    DatasetType.REGION: DATASETS,
    DatasetType.GUIDE: GUIDES,
    DatasetType.PACK: CONTENT_PACKS,
}

INTERRUPTED_MESSAGE = "Install interrupted"


@dataclass
class AvailableDataset:
    """A catalog entry joined with its install record, if any."""

    descriptor: DatasetDescriptor
    record: DatasetRecord | None = None

    @property
    def status(self) -> str:
        return self.record.status.value if self.record else "not-installed"

    @property
    def is_installed(self) -> bool:
        return self.record is not None and self.record.is_installed


class DatasetManager:
    """Install state machine for catalog datasets.

    Args:
        storage: Initialised storage adapter holding the records.
        tile_cache: Used for regions with the ``map-tiles`` module.
        search: Receives guide content on install. None skips indexing.
        config: Storage budget for the usage estimate.
        catalog: Installable descriptors. Defaults to the built-in regions and guides.
    """

    def __init__(
        self,
        storage: StorageAdapter,
        tile_cache: TileCache,
        search: SearchEngine | None = None,
        config: DatasetsCfg | None = None,
        catalog: Catalog | None = None,
    ) -> None:
        self._storage = storage
        self._tiles = tile_cache
        self._search = search
        self._cfg = config or DatasetsCfg()
        self._catalog = catalog or Catalog()
        self._importer = ContentImporter(storage, search)
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, dataset_id: str) -> asyncio.Lock:
        return self._locks.setdefault(dataset_id, asyncio.Lock())

    # ------------------------------------------------------------------
    # Install / uninstall
    # ------------------------------------------------------------------

    async def install(
        self,
        dataset_id: str,
        on_progress: ProgressCallback | None = None,
        abort: asyncio.Event | None = None,
    ) -> DatasetRecord:
        """Install *dataset_id* and return its ``installed`` record.

        Raises:
            InvalidInputError: *dataset_id* is not in the catalog.
            QuotaExceededError: Storage ran out; the record is left ``failed``.
            OfflineError: Any other install failure; the record is left ``failed``.
        """
        descriptor = self._catalog.get(dataset_id)
        if descriptor is None:
            raise InvalidInputError(f"Unknown dataset '{dataset_id}'")
        store = RECORD_STORES[descriptor.type]

        async with self._lock(dataset_id):
            record = descriptor.new_record().downloading()
            await self._storage.put(store, record.to_dict())
            logger.info("Installing %s (%s)", descriptor.name, dataset_id)

            try:
                await self._install_content(descriptor, on_progress, abort)
                installed = record.installed()
                await self._storage.put(store, installed.to_dict())
            except (Exception, asyncio.CancelledError) as exc:
                await self._record_failure(store, record, exc)
                raise

        logger.info("Installed %s", descriptor.name)
        return installed

    async def _install_content(
        self,
        descriptor: DatasetDescriptor,
        on_progress: ProgressCallback | None,
        abort: asyncio.Event | None,
    ) -> None:
        if descriptor.type is DatasetType.GUIDE:
            await self._importer.import_guide(
                {
                    "id": descriptor.id,
                    "title": descriptor.name,
                    "description": descriptor.description,
                    "content": descriptor.content or "",
                    "format": descriptor.content_format,
                }
            )
        elif descriptor.has_map_tiles:
            region = self._map_region(descriptor.id, descriptor.name, descriptor.coordinates)
            await self._tiles.download_region(region, on_progress=on_progress, abort=abort)
            return

        for module in descriptor.modules:
            if module != MAP_TILES_MODULE:
                logger.debug("Module %s of %s has no offline payload yet", module, descriptor.id)
        if on_progress is not None:
            on_progress(100)

    async def _record_failure(
        self, store: str, record: DatasetRecord, exc: BaseException
    ) -> None:
        """Rewrite *record* as failed, then clean up. Never raises over *exc*."""
        failed = record.failed(str(exc) or type(exc).__name__)
        logger.error("Install of %s failed: %s", record.id, failed.error_message)

        try:
            await self._storage.put(store, failed.to_dict())
        except QuotaExceededError:
            # No room for the failed record: free the partial content first.
            logger.warning("No space to record failure of %s; cleaning up first", record.id)
            await self._cleanup(failed)
            try:
                await self._storage.put(store, failed.to_dict())
            except OfflineError:
                logger.error("Could not record failed install of %s", record.id, exc_info=True)
            return
        except OfflineError:
            logger.error("Could not record failed install of %s", record.id, exc_info=True)

        await self._cleanup(failed)

    async def uninstall(self, dataset_id: str) -> bool:
        """Remove *dataset_id*'s content, then its record.

        The record is deleted even when content cleanup fails, so uninstall
        never gets stuck on orphaned bytes.

        Returns:
            False when there was nothing to uninstall.
        """
        async with self._lock(dataset_id):
            found = await self._find_record(dataset_id)
            if found is None:
                return False
            store, record = found
            await self._cleanup(record)
            await self._storage.delete(store, dataset_id)
        logger.info("Uninstalled %s", dataset_id)
        return True

    async def _cleanup(self, record: DatasetRecord) -> None:
        """Best-effort removal of content written for *record*. Errors are logged only."""
        try:
            if record.type is DatasetType.GUIDE:
                await self._storage.delete(GUIDE_CONTENT, record.id)
                if self._search is not None:
                    await self._search.rebuild_index()
            elif MAP_TILES_MODULE in record.modules and record.coordinates:
                region = self._map_region(record.id, record.name, record.coordinates)
                await self._tiles.clear_region_tiles(region)
        except Exception:
            logger.warning("Cleanup of %s failed", record.id, exc_info=True)

    def _map_region(
        self, dataset_id: str, name: str, coordinates: Sequence[float]
    ) -> MapRegion:
        lat, lon = coordinates
        return MapRegion(id=dataset_id, name=name, bbox=self._tiles.bbox_around(lat, lon))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def _records(self, store: str) -> list[DatasetRecord]:
        records: list[DatasetRecord] = []
        for raw in await self._storage.get_all(store):
            try:
                records.append(DatasetRecord.from_dict(raw))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping unreadable record in %s: %r", store, raw)
        return records

    async def _find_record(self, dataset_id: str) -> tuple[str, DatasetRecord] | None:
        descriptor = self._catalog.get(dataset_id)
        stores = [RECORD_STORES[descriptor.type]] if descriptor else list(RECORD_STORES.values())
        for store in stores:
            raw = await self._storage.get(store, dataset_id)
            if raw is not None:
                return store, DatasetRecord.from_dict(raw)
        return None

    async def get_record(self, dataset_id: str) -> DatasetRecord | None:
        found = await self._find_record(dataset_id)
        return found[1] if found else None

    async def get_installed_regions(self) -> list[DatasetRecord]:
        """Regions whose status is ``installed``; downloading and failed ones never appear."""
        return [r for r in await self._records(DATASETS) if r.is_installed]

    async def get_installed_guides(self) -> list[DatasetRecord]:
        return [r for r in await self._records(GUIDES) if r.is_installed]

    async def get_available(self, dataset_type: DatasetType | None = None) -> list[AvailableDataset]:
        """Catalog entries joined with their current records."""
        records: dict[str, DatasetRecord] = {}
        for store in (DATASETS, GUIDES):
            records.update({r.id: r for r in await self._records(store)})
        return [
            AvailableDataset(descriptor=d, record=records.get(d.id))
            for d in self._catalog.of_type(dataset_type)
        ]

    async def get_guide_content(self, guide_id: str) -> str | None:
        """Body of an installed guide, or None if it is not installed."""
        found = await self._find_record(guide_id)
        if found is None or not found[1].is_installed:
            return None
        item = await self._storage.get(GUIDE_CONTENT, guide_id)
        return item.get("content") if isinstance(item, dict) else None

    async def get_storage_usage(self) -> StorageUsage:
        """Sum of declared sizes of installed regions and guides against the budget."""
        used = sum(r.size for r in await self.get_installed_regions())
        used += sum(r.size for r in await self.get_installed_guides())
        return StorageUsage(used_mb=round(used, 1), total_mb=self._cfg.storage_budget_mb)

    # ------------------------------------------------------------------
    # Crash recovery
    # ------------------------------------------------------------------

    async def list_incomplete(self) -> list[DatasetRecord]:
        """Records left ``downloading`` or ``failed``, across every record store."""
        incomplete: list[DatasetRecord] = []
        for store in RECORD_STORES.values():
            incomplete.extend(r for r in await self._records(store) if not r.is_installed)
        return incomplete

    async def recover_interrupted(self) -> list[DatasetRecord]:
        """Mark records still ``downloading`` at startup as failed.

        Only call this before any install starts in this process.
        """
        recovered: list[DatasetRecord] = []
        for store in RECORD_STORES.values():
            for record in await self._records(store):
                if record.status is DatasetStatus.DOWNLOADING:
                    failed = record.failed(INTERRUPTED_MESSAGE)
                    await self._storage.put(store, failed.to_dict())
                    recovered.append(failed)
        if recovered:
            logger.warning(
                "Marked %d interrupted install(s) as failed: %s",
                len(recovered),
                ", ".join(r.id for r in recovered),
            )
        return recovered
