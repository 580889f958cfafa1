"""urban-offline init: write a project config and create the data store.

Creates:
  urban-offline.yaml   project config with the default backend and tile policy
  <data_dir>/          storage for the configured backend, schema applied
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel

from urban_offline.cli.common import cli_errors, load_cli_config, with_runtime
from urban_offline.config import ensure_project_config

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
) -> None:
    """Create urban-offline.yaml and an empty offline data store."""
    project_dir = project_dir.resolve()
    config_path = ensure_project_config(project_dir)

    # Config paths are relative to the project directory.
    previous = Path.cwd()
    os.chdir(project_dir)
    try:
        cfg = load_cli_config()

        async def _open(runtime):
            return runtime.storage.usage_bytes()

        with cli_errors(cfg):
            used = with_runtime(cfg, _open)
        data_path = cfg.data_path.resolve()
    finally:
        os.chdir(previous)

    console.print(
        Panel(
            f"Config:   {config_path}\n"
            f"Backend:  {cfg.storage.backend}\n"
            f"Data dir: {data_path}\n"
            f"Used:     {used / 1024:.1f} KB\n\n"
            "Next:\n"
            "  urban-offline regions list\n"
            "  urban-offline guides install first-aid-basic",
            title="[bold green]urban-offline initialized[/]",
            expand=False,
        )
    )
