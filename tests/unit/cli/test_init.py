"""Tests for urban-offline init, version and status commands."""

from __future__ import annotations

import re
from pathlib import Path

import yaml
from typer.testing import CliRunner

from urban_offline.cli.main import app
from urban_offline.datasets.catalog import Catalog

runner = CliRunner()


# ---------------------------------------------------------------------------
# --version
# ---------------------------------------------------------------------------


def test_version_flag_exits_zero() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "urban-offline" in result.output


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("urban-offline ")


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


def test_init_creates_config_and_store(workdir: Path) -> None:
    project = workdir / "proj"

    result = runner.invoke(app, ["init", str(project)])

    assert result.exit_code == 0, result.output
    assert "urban-offline initialized" in result.output
    cfg = yaml.safe_load((project / "urban-offline.yaml").read_text(encoding="utf-8"))
    assert cfg["storage"]["backend"] == "document"
    assert (project / ".urban-offline" / "documents.db").exists()
    # The caller's working directory is restored.
    assert Path.cwd() == workdir.resolve()


def test_init_is_idempotent(workdir: Path) -> None:
    assert runner.invoke(app, ["init", str(workdir)]).exit_code == 0
    (workdir / "urban-offline.yaml").write_text(
        "storage:\n  backend: relational\n", encoding="utf-8"
    )

    result = runner.invoke(app, ["init", str(workdir)])

    assert result.exit_code == 0, result.output
    assert "relational" in result.output
    assert (workdir / ".urban-offline" / "offline.db").exists()


def test_init_with_invalid_config_exits_one(workdir: Path) -> None:
    (workdir / "urban-offline.yaml").write_text("storage:\n  backend: indexeddb\n", encoding="utf-8")

    result = runner.invoke(app, ["init", str(workdir)])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


def test_status_on_empty_store(workdir: Path) -> None:
    result = runner.invoke(app, ["status", "--data-dir", str(workdir / "data")])

    assert result.exit_code == 0, result.output
    assert "Storage" in result.output
    assert "Nothing installed yet" in result.output
    assert "Search mode" in result.output


def test_status_lists_installed_guide(workdir: Path) -> None:
    data = str(workdir / "data")
    assert runner.invoke(app, ["guides", "install", "first-aid-basic", "--data-dir", data]).exit_code == 0

    result = runner.invoke(app, ["status", "--data-dir", data])

    assert result.exit_code == 0, result.output
    assert "first-aid-basic" in result.output
    assert "Nothing installed yet" not in result.output


# ---------------------------------------------------------------------------
# help
# ---------------------------------------------------------------------------


def test_help_examples_name_catalog_ids() -> None:
    examples = re.findall(r"urban-offline (?:regions|guides) install (\S+)", app.info.help)

    assert examples
    for dataset_id in examples:
        assert Catalog().get(dataset_id) is not None, dataset_id
