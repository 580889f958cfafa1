"""urban_offline configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (URBAN_OFFLINE_BACKEND, URBAN_OFFLINE_DATA_DIR,
     URBAN_OFFLINE_LOG_LEVEL, URBAN_OFFLINE_TILE_URL)
  3. Per-project urban-offline.yaml
  4. Global ~/.urban-offline/config.yaml
  5. Hardcoded defaults

All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import urllib.parse
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".urban-offline"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "urban-offline.yaml"

BACKENDS: frozenset[str] = frozenset(["document", "relational"])
SEARCH_MODES: frozenset[str] = frozenset(["auto", "fts", "inverted"])

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["storage", "tiles", "search", "datasets", "packs", "logging"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StorageCfg:
    """Persistence backend (urban-offline.yaml: storage:).

    Attributes:
        backend: 'document' (object-store tables in one embedded file) or
            'relational' (attribute table + filesystem for bulk payloads).
        data_dir: Directory holding every persisted file.
        quota_mb: Optional storage ceiling in MB; None means only the real
            device limit applies.
    """

    backend: str = "document"
    data_dir: str = ".urban-offline"
    quota_mb: float | None = None

    @property
    def quota_bytes(self) -> int | None:
        return None if self.quota_mb is None else int(self.quota_mb * 1024 * 1024)


@dataclass
class TilesCfg:
    """Tile download policy (urban-offline.yaml: tiles:)."""

    url_template: str = "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
    zoom_levels: list[int] = field(default_factory=lambda: [10, 11, 12, 13, 14])
    batch_size: int = 5
    max_attempts: int = 3
    backoff_seconds: float = 0.5
    batch_delay_seconds: float = 0.2
    timeout_seconds: float = 30.0
    lat_padding: float = 0.05
    lon_padding: float = 0.08
    max_failed_fraction: float = 0.2
    avg_tile_kb: float = 20.0


@dataclass
class SearchCfg:
    """Search engine selection (urban-offline.yaml: search:)."""

    mode: str = "auto"  # auto | fts | inverted
    result_limit: int = 20


@dataclass
class DatasetsCfg:
    """Dataset lifecycle settings (urban-offline.yaml: datasets:)."""

    storage_budget_mb: float = 500.0


@dataclass
class PacksCfg:
    """Content pack registry (urban-offline.yaml: packs:).

    Attributes:
        registry_url: JSON registry listing available packs. When unset or
            unreachable the built-in example manifests are used.
        base_url: Prefix for relative pack download URLs.
        timeout_seconds: Per-request timeout for registry and pack downloads.
    """

    registry_url: str | None = None
    base_url: str | None = None
    timeout_seconds: float = 60.0


@dataclass
class LoggingCfg:
    level: str = "INFO"


@dataclass
class OfflineConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    storage: StorageCfg = field(default_factory=StorageCfg)
    tiles: TilesCfg = field(default_factory=TilesCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    datasets: DatasetsCfg = field(default_factory=DatasetsCfg)
    packs: PacksCfg = field(default_factory=PacksCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)

    @property
    def data_path(self) -> Path:
        return Path(self.storage.data_dir)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}'; ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: OfflineConfig) -> None:
    """Raise ConfigError if *cfg* holds a value no component can work with."""
    if cfg.storage.backend not in BACKENDS:
        raise ConfigError(
            f"storage.backend must be one of {', '.join(sorted(BACKENDS))}, "
            f"got '{cfg.storage.backend}'."
        )
    if cfg.search.mode not in SEARCH_MODES:
        raise ConfigError(
            f"search.mode must be one of {', '.join(sorted(SEARCH_MODES))}, "
            f"got '{cfg.search.mode}'."
        )
    if cfg.search.mode == "fts" and cfg.storage.backend != "relational":
        raise ConfigError(
            "search.mode 'fts' requires storage.backend 'relational'.\n"
            "  Use search.mode: auto to pick the engine matching the backend."
        )
    scheme = urllib.parse.urlparse(cfg.tiles.url_template).scheme
    if scheme not in ("http", "https"):
        raise ConfigError(
            f"tiles.url_template must be an http(s) URL, got '{cfg.tiles.url_template}'."
        )
    if cfg.tiles.batch_size < 1:
        raise ConfigError(f"tiles.batch_size must be >= 1, got {cfg.tiles.batch_size}")
    if cfg.tiles.max_attempts < 1:
        raise ConfigError(f"tiles.max_attempts must be >= 1, got {cfg.tiles.max_attempts}")
    if not 0.0 <= cfg.tiles.max_failed_fraction <= 1.0:
        raise ConfigError("tiles.max_failed_fraction must be in [0.0, 1.0]")
    if cfg.storage.quota_mb is not None and cfg.storage.quota_mb <= 0:
        raise ConfigError(f"storage.quota_mb must be > 0, got {cfg.storage.quota_mb}")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> OfflineConfig:
    """Build an *OfflineConfig* from a merged raw YAML dict."""
    cfg = OfflineConfig()

    if "storage" in data:
        s = data["storage"]
        quota = s.get("quota_mb", cfg.storage.quota_mb)
        cfg.storage = StorageCfg(
            backend=str(s.get("backend", cfg.storage.backend)),
            data_dir=str(s.get("data_dir", cfg.storage.data_dir)),
            quota_mb=float(quota) if quota is not None else None,
        )

    if "tiles" in data:
        t = data["tiles"]
        d = cfg.tiles
        cfg.tiles = TilesCfg(
            url_template=str(t.get("url_template", d.url_template)),
            zoom_levels=[int(z) for z in t.get("zoom_levels", d.zoom_levels)],
            batch_size=int(t.get("batch_size", d.batch_size)),
            max_attempts=int(t.get("max_attempts", d.max_attempts)),
            backoff_seconds=float(t.get("backoff_seconds", d.backoff_seconds)),
            batch_delay_seconds=float(t.get("batch_delay_seconds", d.batch_delay_seconds)),
            timeout_seconds=float(t.get("timeout_seconds", d.timeout_seconds)),
            lat_padding=float(t.get("lat_padding", d.lat_padding)),
            lon_padding=float(t.get("lon_padding", d.lon_padding)),
            max_failed_fraction=float(t.get("max_failed_fraction", d.max_failed_fraction)),
            avg_tile_kb=float(t.get("avg_tile_kb", d.avg_tile_kb)),
        )

    if "search" in data:
        se = data["search"]
        cfg.search = SearchCfg(
            mode=str(se.get("mode", cfg.search.mode)),
            result_limit=int(se.get("result_limit", cfg.search.result_limit)),
        )

    if "datasets" in data:
        ds = data["datasets"]
        cfg.datasets = DatasetsCfg(
            storage_budget_mb=float(
                ds.get("storage_budget_mb", cfg.datasets.storage_budget_mb)
            ),
        )

    if "packs" in data:
        p = data["packs"]
        cfg.packs = PacksCfg(
            registry_url=p.get("registry_url") or cfg.packs.registry_url,
            base_url=p.get("base_url") or cfg.packs.base_url,
            timeout_seconds=float(p.get("timeout_seconds", cfg.packs.timeout_seconds)),
        )

    if "logging" in data:
        cfg.logging = LoggingCfg(
            level=str(data["logging"].get("level", cfg.logging.level)).upper()
        )

    return cfg


def _apply_env_overrides(cfg: OfflineConfig) -> OfflineConfig:
    """Apply URBAN_OFFLINE_* environment variable overrides."""
    if backend := os.environ.get("URBAN_OFFLINE_BACKEND"):
        cfg.storage.backend = backend
    if data_dir := os.environ.get("URBAN_OFFLINE_DATA_DIR"):
        cfg.storage.data_dir = data_dir
    if level := os.environ.get("URBAN_OFFLINE_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    if tile_url := os.environ.get("URBAN_OFFLINE_TILE_URL"):
        cfg.tiles.url_template = tile_url
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> OfflineConfig:
    """Load and return a merged *OfflineConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *urban-offline.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged and validated *OfflineConfig*.

    Raises:
        ConfigError: If a merged value is invalid (unknown backend or search
            mode, non-http tile URL, non-positive batch size).
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def ensure_project_config(project_dir: Path) -> Path:
    """Create *urban-offline.yaml* in *project_dir* with defaults if missing.

    Returns:
        Path to the project config file.
    """
    project_dir.mkdir(parents=True, exist_ok=True)
    target = project_dir / _PROJECT_CONFIG_NAME

    if not target.exists():
        content = (
            "# urban-offline configuration.\n"
            "# backend: document (single embedded file) or relational\n"
            "# (attribute table + filesystem, enables native full-text search).\n"
            "\n"
            "storage:\n"
            "  backend: document\n"
            "  data_dir: .urban-offline\n"
            "\n"
            "tiles:\n"
            "  url_template: https://tile.openstreetmap.org/{z}/{x}/{y}.png\n"
            "  zoom_levels: [10, 11, 12, 13, 14]\n"
            "\n"
            "datasets:\n"
            "  storage_budget_mb: 500\n"
        )
        target.write_text(content, encoding="utf-8")

    return target
