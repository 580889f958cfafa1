"""Tests for urban-offline regions / guides / packs / tiles commands.

Only offline paths are exercised: guide installs, catalog listings, the
built-in pack examples and tile cache maintenance.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from urban_offline.cli.main import app

runner = CliRunner()


@pytest.fixture
def data(workdir: Path) -> str:
    return str(workdir / "data")


# ---------------------------------------------------------------------------
# guides
# ---------------------------------------------------------------------------


def test_guides_list_shows_catalog(data: str) -> None:
    result = runner.invoke(app, ["guides", "list", "--data-dir", data])

    assert result.exit_code == 0, result.output
    assert "first-aid-basic" in result.output
    assert "survival-urban" in result.output
    assert "0/2 installed" in result.output


def test_guides_install_show_uninstall(data: str) -> None:
    result = runner.invoke(app, ["guides", "install", "first-aid-basic", "--data-dir", data])
    assert result.exit_code == 0, result.output
    assert "Installed Basic First Aid" in result.output

    shown = runner.invoke(app, ["guides", "show", "first-aid-basic", "--data-dir", data])
    assert shown.exit_code == 0, shown.output
    assert "# Basic First Aid" in shown.output

    listed = runner.invoke(app, ["guides", "list", "--data-dir", data])
    assert "1/2 installed" in listed.output

    removed = runner.invoke(app, ["guides", "uninstall", "first-aid-basic", "--data-dir", data])
    assert removed.exit_code == 0, removed.output
    assert "Uninstalled first-aid-basic" in removed.output

    missing = runner.invoke(app, ["guides", "show", "first-aid-basic", "--data-dir", data])
    assert missing.exit_code == 1
    assert "not installed" in missing.output


def test_uninstall_not_installed_is_not_an_error(data: str) -> None:
    result = runner.invoke(app, ["guides", "uninstall", "survival-urban", "--data-dir", data])
    assert result.exit_code == 0
    assert "Nothing to uninstall" in result.output


def test_install_unknown_guide(data: str) -> None:
    result = runner.invoke(app, ["guides", "install", "knitting", "--data-dir", data])
    assert result.exit_code == 1
    assert "Unknown guide 'knitting'" in result.output


def test_install_region_id_as_guide_is_rejected(data: str) -> None:
    result = runner.invoke(app, ["guides", "install", "region-london", "--data-dir", data])
    assert result.exit_code == 1
    assert "Unknown guide" in result.output


# ---------------------------------------------------------------------------
# regions
# ---------------------------------------------------------------------------


def test_regions_list(data: str) -> None:
    result = runner.invoke(app, ["regions", "list", "--data-dir", data])

    assert result.exit_code == 0, result.output
    for region_id in ("region-london", "region-nyc", "region-sf"):
        assert region_id in result.output


def test_regions_install_unknown(data: str) -> None:
    result = runner.invoke(app, ["regions", "install", "region-atlantis", "--data-dir", data])
    assert result.exit_code == 1
    assert "urban-offline regions list" in result.output


# ---------------------------------------------------------------------------
# packs
# ---------------------------------------------------------------------------


def test_packs_list_falls_back_to_builtin_packs(data: str) -> None:
    result = runner.invoke(app, ["packs", "list", "--data-dir", data])

    assert result.exit_code == 0, result.output
    assert "medical-core-v1" in result.output
    assert "ai-phi3-mini-v1" in result.output


def test_packs_list_category_filter(data: str) -> None:
    result = runner.invoke(app, ["packs", "list", "-c", "legal", "--data-dir", data])

    assert result.exit_code == 0, result.output
    assert "legal-uk-v1" in result.output
    assert "medical-core-v1" not in result.output


def test_packs_list_empty_category(data: str) -> None:
    result = runner.invoke(app, ["packs", "list", "-c", "cooking", "--data-dir", data])
    assert result.exit_code == 0
    assert "No content packs available" in result.output


def test_packs_install_unknown(data: str) -> None:
    result = runner.invoke(app, ["packs", "install", "nope-v1", "--data-dir", data])
    assert result.exit_code == 1
    assert "Unknown pack 'nope-v1'" in result.output


def test_packs_install_relative_url_without_base(data: str) -> None:
    result = runner.invoke(app, ["packs", "install", "medical-core-v1", "--data-dir", data])
    assert result.exit_code == 1
    assert "base_url" in result.output


def test_packs_uninstall_not_installed(data: str) -> None:
    result = runner.invoke(app, ["packs", "uninstall", "medical-core-v1", "--data-dir", data])
    assert result.exit_code == 0
    assert "Nothing to uninstall" in result.output


# ---------------------------------------------------------------------------
# tiles
# ---------------------------------------------------------------------------


def test_tiles_info_on_empty_cache(data: str) -> None:
    result = runner.invoke(app, ["tiles", "info", "--data-dir", data])

    assert result.exit_code == 0, result.output
    assert "region-london" in result.output
    assert "0 tile(s) cached" in result.output


def test_tiles_clear_all(data: str) -> None:
    result = runner.invoke(app, ["tiles", "clear", "--data-dir", data])
    assert result.exit_code == 0, result.output
    assert "Removed 0 tile(s) from all regions" in result.output


def test_tiles_clear_region(data: str) -> None:
    result = runner.invoke(app, ["tiles", "clear", "-r", "region-sf", "--data-dir", data])
    assert result.exit_code == 0, result.output
    assert "region region-sf" in result.output


def test_tiles_clear_unknown_region(data: str) -> None:
    result = runner.invoke(app, ["tiles", "clear", "-r", "first-aid-basic", "--data-dir", data])
    assert result.exit_code == 1
    assert "Unknown region" in result.output
