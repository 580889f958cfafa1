"""urban-offline regions / guides commands.

Commands:
  urban-offline regions list               catalog regions with install status
  urban-offline regions install <id>       download a region (map tiles included)
  urban-offline regions uninstall <id>     remove a region and its tiles
  urban-offline guides list|install|uninstall
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from urban_offline.cli.common import DataDirOption, cli_errors, load_cli_config, with_runtime
from urban_offline.cli.errors import err_not_installed, err_unknown_dataset
from urban_offline.datasets.catalog import Catalog
from urban_offline.datasets.models import DatasetRecord, DatasetType
from urban_offline.runtime import OfflineRuntime

console = Console()

regions_app = typer.Typer(
    name="regions",
    help="Download and remove offline map regions.",
    add_completion=False,
)

guides_app = typer.Typer(
    name="guides",
    help="Install and remove offline survival guides.",
    add_completion=False,
)

_STATUS_STYLE = {
    "installed": "[green]✓ installed[/]",
    "downloading": "[yellow]… downloading[/]",
    "failed": "[red]✗ failed[/]",
    "not-installed": "[dim]not installed[/]",
}


# ------------------------------------------------------------------
# Shared implementations
# ------------------------------------------------------------------


def _list(dataset_type: DatasetType, data_dir: Path | None) -> None:
    cfg = load_cli_config(data_dir)

    async def _run(runtime: OfflineRuntime):
        return await runtime.datasets.get_available(dataset_type)

    with cli_errors(cfg):
        available = with_runtime(cfg, _run)

    table = Table(title=f"Available {dataset_type.value}s", show_header=True, header_style="bold")
    table.add_column("Id", style="bold", no_wrap=True)
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Status")
    for entry in available:
        table.add_row(
            entry.descriptor.id,
            entry.descriptor.name,
            f"{entry.descriptor.size_mb:.1f} MB",
            _STATUS_STYLE.get(entry.status, entry.status),
        )
    console.print(table)

    installed = sum(1 for entry in available if entry.is_installed)
    console.print(f"\n  {installed}/{len(available)} installed")


def _install(dataset_type: DatasetType, dataset_id: str, data_dir: Path | None) -> None:
    kind = dataset_type.value
    descriptor = Catalog().get(dataset_id)
    if descriptor is None or descriptor.type is not dataset_type:
        console.print(err_unknown_dataset(dataset_id, kind))
        raise typer.Exit(1)

    cfg = load_cli_config(data_dir)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task(f"Installing {descriptor.name}…", total=100)

        def _on_progress(percent: int) -> None:
            prog.update(task, completed=percent)

        async def _run(runtime: OfflineRuntime) -> DatasetRecord:
            return await runtime.datasets.install(dataset_id, on_progress=_on_progress)

        with cli_errors(cfg, dataset_id):
            record = with_runtime(cfg, _run)

    console.print(f"  [green]✓[/] Installed {record.name} ({record.size:.1f} MB)")


def _uninstall(dataset_type: DatasetType, dataset_id: str, data_dir: Path | None) -> None:
    cfg = load_cli_config(data_dir)

    async def _run(runtime: OfflineRuntime) -> bool:
        return await runtime.datasets.uninstall(dataset_id)

    with cli_errors(cfg, dataset_id):
        removed = with_runtime(cfg, _run)

    if not removed:
        console.print(err_not_installed(dataset_id, dataset_type.value))
        raise typer.Exit(0)
    console.print(f"  [green]✓[/] Uninstalled {dataset_id}")


_IdArgument = Annotated[str, typer.Argument(help="Dataset id, as shown by the list command.")]


# ------------------------------------------------------------------
# regions
# ------------------------------------------------------------------


@regions_app.command("list")
def regions_list_cmd(data_dir: DataDirOption = None) -> None:
    """List catalog regions and their install status."""
    _list(DatasetType.REGION, data_dir)


@regions_app.command("install")
def regions_install_cmd(region_id: _IdArgument, data_dir: DataDirOption = None) -> None:
    """Download a region for offline use."""
    _install(DatasetType.REGION, region_id, data_dir)


@regions_app.command("uninstall")
def regions_uninstall_cmd(region_id: _IdArgument, data_dir: DataDirOption = None) -> None:
    """Remove a region and its cached tiles."""
    _uninstall(DatasetType.REGION, region_id, data_dir)


# ------------------------------------------------------------------
# guides
# ------------------------------------------------------------------


@guides_app.command("list")
def guides_list_cmd(data_dir: DataDirOption = None) -> None:
    """List catalog guides and their install status."""
    _list(DatasetType.GUIDE, data_dir)


@guides_app.command("install")
def guides_install_cmd(guide_id: _IdArgument, data_dir: DataDirOption = None) -> None:
    """Install a guide and index it for search."""
    _install(DatasetType.GUIDE, guide_id, data_dir)


@guides_app.command("uninstall")
def guides_uninstall_cmd(guide_id: _IdArgument, data_dir: DataDirOption = None) -> None:
    """Remove a guide and drop it from the search index."""
    _uninstall(DatasetType.GUIDE, guide_id, data_dir)


@guides_app.command("show")
def guides_show_cmd(guide_id: _IdArgument, data_dir: DataDirOption = None) -> None:
    """Print the body of an installed guide."""
    cfg = load_cli_config(data_dir)

    async def _run(runtime: OfflineRuntime) -> str | None:
        return await runtime.datasets.get_guide_content(guide_id)

    with cli_errors(cfg, guide_id):
        content = with_runtime(cfg, _run)

    if content is None:
        console.print(
            f"[yellow]Guide '{guide_id}' is not installed.[/]\n"
            f"  Run:  urban-offline guides install {guide_id}"
        )
        raise typer.Exit(1)
    console.print(content, markup=False)
