"""Tests for OfflineRuntime wiring and startup recovery."""

from __future__ import annotations

from urban_offline.datasets.manager import INTERRUPTED_MESSAGE
from urban_offline.datasets.models import DatasetRecord, DatasetStatus, DatasetType
from urban_offline.runtime import OfflineRuntime
from urban_offline.search import FtsSearchEngine, InvertedIndexSearchEngine
from urban_offline.storage.document import DocumentStorage
from urban_offline.storage.relational import RelationalStorage
from urban_offline.storage.stores import DATASETS


async def test_open_wires_document_backend(offline_config) -> None:
    async with OfflineRuntime.open(offline_config) as rt:
        assert isinstance(rt.storage, DocumentStorage)
        assert isinstance(rt.search, InvertedIndexSearchEngine)

        await rt.datasets.install("first-aid-basic")
        results = await rt.search.search("burns")

    assert [r.id for r in results] == ["first-aid-basic"]
    assert rt.client.is_closed


async def test_open_wires_relational_backend(offline_config) -> None:
    offline_config.storage.backend = "relational"
    async with OfflineRuntime.open(offline_config) as rt:
        assert isinstance(rt.storage, RelationalStorage)
        assert isinstance(rt.search, FtsSearchEngine)
        await rt.narrative.save_state("story", "{}")
        assert await rt.narrative.get_state("story") == "{}"


async def test_open_recovers_interrupted_installs(offline_config) -> None:
    async with OfflineRuntime.open(offline_config) as rt:
        stale = DatasetRecord(id="region-nyc", name="NYC", type=DatasetType.REGION).downloading()
        await rt.storage.put(DATASETS, stale.to_dict())

    async with OfflineRuntime.open(offline_config) as rt:
        record = await rt.datasets.get_record("region-nyc")

    assert record.status is DatasetStatus.FAILED
    assert record.error_message == INTERRUPTED_MESSAGE


async def test_data_persists_across_runtimes(offline_config) -> None:
    async with OfflineRuntime.open(offline_config) as rt:
        await rt.importer.import_health({"id": "wiki-burns", "title": "Burns", "summary": "Cool it."})

    async with OfflineRuntime.open(offline_config) as rt:
        assert [r.id for r in await rt.search.search("burns")] == ["wiki-burns"]
