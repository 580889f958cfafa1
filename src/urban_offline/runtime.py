"""Explicit wiring of every offline service from one configuration."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from urban_offline.config import OfflineConfig
from urban_offline.content.importer import ContentImporter
from urban_offline.datasets.manager import DatasetManager
from urban_offline.datasets.packs import ContentPackManager
from urban_offline.narrative import NarrativeStateStore
from urban_offline.search import SearchEngine, create_search_engine
from urban_offline.storage import StorageAdapter, open_storage
from urban_offline.tiles.cache import TileCache
from urban_offline.tiles.fetcher import USER_AGENT, HttpTileFetcher

logger = logging.getLogger(__name__)


@dataclass
class OfflineRuntime:
    """Every service of one data directory, built once and closed together."""

    config: OfflineConfig
    storage: StorageAdapter
    client: httpx.AsyncClient
    search: SearchEngine
    tiles: TileCache
    datasets: DatasetManager
    packs: ContentPackManager
    importer: ContentImporter
    narrative: NarrativeStateStore

    @classmethod
    @asynccontextmanager
    async def open(cls, config: OfflineConfig) -> AsyncIterator[OfflineRuntime]:
        """Open storage, build the services and recover interrupted installs.

        Usage::

            async with OfflineRuntime.open(load_config()) as rt:
                await rt.search.search("hypothermia")
        """
        storage = await open_storage(config)
        client = httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            timeout=config.tiles.timeout_seconds,
            follow_redirects=True,
        )
        runtime: OfflineRuntime | None = None
        try:
            search = create_search_engine(config, storage)
            tiles = TileCache(storage, HttpTileFetcher(client, config.tiles.url_template), config.tiles)
            runtime = cls(
                config=config,
                storage=storage,
                client=client,
                search=search,
                tiles=tiles,
                datasets=DatasetManager(storage, tiles, search=search, config=config.datasets),
                packs=ContentPackManager(
                    storage,
                    tiles,
                    client,
                    search=search,
                    config=config.packs,
                    data_dir=config.data_path,
                ),
                importer=ContentImporter(storage, search),
                narrative=NarrativeStateStore(storage),
            )
            await runtime.datasets.recover_interrupted()
            yield runtime
        finally:
            if runtime is not None:
                await runtime.close()
            else:
                await client.aclose()
                await storage.close()

    async def close(self) -> None:
        """Release the search index, the HTTP client and storage."""
        await self.search.close()
        await self.client.aclose()
        await self.storage.close()
        logger.debug("Runtime for %s closed", self.config.data_path)
