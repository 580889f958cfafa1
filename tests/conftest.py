"""Shared pytest fixtures."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from rich.logging import RichHandler

from urban_offline.config import OfflineConfig, TilesCfg
from urban_offline.errors import TransientFetchError
from urban_offline.storage.document import DocumentStorage
from urban_offline.storage.relational import RelationalStorage
from urban_offline.tiles.fetcher import TilePayload
from urban_offline.tiles.geometry import TileCoord

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeTileFetcher:
    """In-memory tile source that records every fetch.

    Args:
        fail_first: Tile keys whose first fetch attempt raises TransientFetchError.
        always_fail: Tile keys that never succeed.
        content_type: Content type returned for successful fetches.
    """

    def __init__(
        self,
        fail_first: set[str] | None = None,
        always_fail: set[str] | None = None,
        content_type: str = "image/png",
    ) -> None:
        self.fail_first = set(fail_first or ())
        self.always_fail = set(always_fail or ())
        self.content_type = content_type
        self.calls: list[str] = []

    async def fetch(self, coord: TileCoord) -> TilePayload:
        self.calls.append(coord.key)
        if coord.key in self.always_fail:
            raise TransientFetchError(f"boom {coord.key}")
        if coord.key in self.fail_first:
            self.fail_first.discard(coord.key)
            raise TransientFetchError(f"first attempt {coord.key}")
        if self.content_type.startswith("image/"):
            return TilePayload(content=PNG_BYTES, content_type=self.content_type)
        return TilePayload(content=b"<html>rate limited</html>", content_type=self.content_type)


def fast_tiles_cfg(**overrides) -> TilesCfg:
    """Tile policy with no sleeps and a single low zoom level."""
    values = {
        "zoom_levels": [12],
        "batch_size": 5,
        "max_attempts": 3,
        "backoff_seconds": 0,
        "batch_delay_seconds": 0,
    }
    values.update(overrides)
    return TilesCfg(**values)


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """CLI commands install a RichHandler with propagate=False; undo it for caplog."""
    yield
    logger = logging.getLogger("urban_offline")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture(params=["document", "relational"])
async def storage(request, data_dir: Path):
    """Initialised storage adapter, once per backend."""
    cls = DocumentStorage if request.param == "document" else RelationalStorage
    adapter = cls(data_dir)
    await adapter.init()
    yield adapter
    await adapter.close()


@pytest.fixture
async def document_storage(data_dir: Path):
    adapter = DocumentStorage(data_dir)
    await adapter.init()
    yield adapter
    await adapter.close()


@pytest.fixture
async def relational_storage(data_dir: Path):
    adapter = RelationalStorage(data_dir)
    await adapter.init()
    yield adapter
    await adapter.close()


@pytest.fixture
def fetcher() -> FakeTileFetcher:
    return FakeTileFetcher()


@pytest.fixture
def offline_config(data_dir: Path) -> OfflineConfig:
    cfg = OfflineConfig()
    cfg.storage.data_dir = str(data_dir)
    cfg.tiles = fast_tiles_cfg()
    return cfg


@pytest.fixture
def make_fetcher():
    """FakeTileFetcher class, for tests that configure failures."""
    return FakeTileFetcher


@pytest.fixture
def make_tiles_cfg():
    return fast_tiles_cfg


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Empty working directory with no URBAN_OFFLINE_* overrides, for CLI runs."""
    for name in (
        "URBAN_OFFLINE_BACKEND",
        "URBAN_OFFLINE_DATA_DIR",
        "URBAN_OFFLINE_LOG_LEVEL",
        "URBAN_OFFLINE_TILE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("urban_offline.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    monkeypatch.chdir(tmp_path)
    return tmp_path
