"""Tests for the urban_offline config loader."""

from __future__ import annotations

import warnings
from pathlib import Path

import pytest
import yaml

from urban_offline.config import (
    ConfigError,
    OfflineConfig,
    StorageCfg,
    ensure_project_config,
    load_config,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "URBAN_OFFLINE_BACKEND",
        "URBAN_OFFLINE_DATA_DIR",
        "URBAN_OFFLINE_LOG_LEVEL",
        "URBAN_OFFLINE_TILE_URL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def no_global(tmp_path: Path) -> Path:
    return tmp_path / "nonexistent" / "config.yaml"


# ---------------------------------------------------------------------------
# Defaults — no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path, no_global: Path) -> None:
    """No config files → all hardcoded defaults."""
    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)

    assert cfg.storage.backend == "document"
    assert cfg.storage.data_dir == ".urban-offline"
    assert cfg.storage.quota_mb is None
    assert cfg.tiles.url_template == "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
    assert cfg.tiles.zoom_levels == [10, 11, 12, 13, 14]
    assert cfg.tiles.batch_size == 5
    assert cfg.tiles.max_attempts == 3
    assert cfg.search.mode == "auto"
    assert cfg.datasets.storage_budget_mb == 500
    assert cfg.packs.registry_url is None
    assert cfg.logging.level == "INFO"
    assert cfg.data_path == Path(".urban-offline")


def test_quota_bytes() -> None:
    assert StorageCfg().quota_bytes is None
    assert StorageCfg(quota_mb=2).quota_bytes == 2 * 1024 * 1024


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------


def test_global_config_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"tiles": {"zoom_levels": [12, 13]}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)

    assert cfg.tiles.zoom_levels == [12, 13]
    assert cfg.tiles.batch_size == 5


def test_global_config_empty_file(tmp_path: Path) -> None:
    """Empty global config file → defaults (no crash)."""
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("", encoding="utf-8")

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.storage.backend == "document"


def test_project_config_overrides_global(tmp_path: Path) -> None:
    global_cfg = tmp_path / "global.yaml"
    _write_yaml(global_cfg, {"storage": {"backend": "relational", "data_dir": "/g"}})
    _write_yaml(tmp_path / "urban-offline.yaml", {"storage": {"data_dir": "/p"}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)

    # Deep merge keeps the global backend.
    assert cfg.storage.backend == "relational"
    assert cfg.storage.data_dir == "/p"


def test_env_overrides_files(tmp_path: Path, no_global: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "urban-offline.yaml", {"logging": {"level": "warning"}})
    monkeypatch.setenv("URBAN_OFFLINE_BACKEND", "relational")
    monkeypatch.setenv("URBAN_OFFLINE_DATA_DIR", "/env/data")
    monkeypatch.setenv("URBAN_OFFLINE_LOG_LEVEL", "debug")
    monkeypatch.setenv("URBAN_OFFLINE_TILE_URL", "https://tiles.local/{z}/{x}/{y}.png")

    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)

    assert cfg.storage.backend == "relational"
    assert cfg.storage.data_dir == "/env/data"
    assert cfg.logging.level == "DEBUG"
    assert cfg.tiles.url_template == "https://tiles.local/{z}/{x}/{y}.png"


def test_all_sections_parsed(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(
        tmp_path / "urban-offline.yaml",
        {
            "storage": {"backend": "relational", "quota_mb": 64},
            "tiles": {"batch_size": 2, "max_failed_fraction": 0.5, "avg_tile_kb": 15},
            "search": {"mode": "fts", "result_limit": 5},
            "datasets": {"storage_budget_mb": 250},
            "packs": {"registry_url": "https://packs.test/registry.json", "timeout_seconds": 5},
        },
    )

    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)

    assert cfg.storage.quota_mb == 64.0
    assert cfg.tiles.batch_size == 2
    assert cfg.tiles.max_failed_fraction == 0.5
    assert cfg.tiles.avg_tile_kb == 15.0
    assert cfg.search.mode == "fts"
    assert cfg.search.result_limit == 5
    assert cfg.datasets.storage_budget_mb == 250.0
    assert cfg.packs.registry_url == "https://packs.test/registry.json"
    assert cfg.packs.timeout_seconds == 5.0


def test_unknown_top_level_key_warns(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(tmp_path / "urban-offline.yaml", {"indexeddb": {"name": "x"}})

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        load_config(project_dir=tmp_path, global_config_path=no_global)

    assert any("indexeddb" in str(w.message) for w in caught)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("data", "match"),
    [
        ({"storage": {"backend": "sqlite"}}, "storage.backend"),
        ({"storage": {"quota_mb": 0}}, "quota_mb"),
        ({"search": {"mode": "bm25"}}, "search.mode"),
        ({"search": {"mode": "fts"}}, "requires storage.backend 'relational'"),
        ({"tiles": {"url_template": "ftp://tiles/{z}/{x}/{y}.png"}}, "http"),
        ({"tiles": {"batch_size": 0}}, "batch_size"),
        ({"tiles": {"max_attempts": 0}}, "max_attempts"),
        ({"tiles": {"max_failed_fraction": 1.5}}, "max_failed_fraction"),
    ],
)
def test_invalid_values_raise(tmp_path: Path, no_global: Path, data: dict, match: str) -> None:
    _write_yaml(tmp_path / "urban-offline.yaml", data)
    with pytest.raises(ConfigError, match=match):
        load_config(project_dir=tmp_path, global_config_path=no_global)


def test_config_error_is_value_error() -> None:
    assert issubclass(ConfigError, ValueError)


# ---------------------------------------------------------------------------
# ensure_project_config
# ---------------------------------------------------------------------------


def test_ensure_project_config_creates_loadable_file(tmp_path: Path, no_global: Path) -> None:
    target = ensure_project_config(tmp_path / "proj")

    assert target.name == "urban-offline.yaml"
    cfg = load_config(project_dir=target.parent, global_config_path=no_global)
    assert cfg == OfflineConfig()


def test_ensure_project_config_keeps_existing(tmp_path: Path) -> None:
    existing = tmp_path / "urban-offline.yaml"
    existing.write_text("storage:\n  backend: relational\n", encoding="utf-8")

    ensure_project_config(tmp_path)

    assert existing.read_text(encoding="utf-8") == "storage:\n  backend: relational\n"
