"""urban-offline packs commands.

Commands:
  urban-offline packs list [--category C]   registry packs with install status
  urban-offline packs install <id>          download, verify and install a pack
  urban-offline packs uninstall <id>        remove a pack and its content
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from urban_offline.cli.common import DataDirOption, cli_errors, load_cli_config, with_runtime
from urban_offline.cli.errors import err_not_installed, err_unknown_dataset
from urban_offline.datasets.models import DatasetRecord
from urban_offline.datasets.pack_schema import PackStatus
from urban_offline.runtime import OfflineRuntime

console = Console()

packs_app = typer.Typer(
    name="packs",
    help="Browse, install and remove downloadable content packs.",
    add_completion=False,
)

_STATUS_STYLE = {
    PackStatus.INSTALLED: "[green]✓ installed[/]",
    PackStatus.UPDATE_AVAILABLE: "[yellow]↑ update available[/]",
    PackStatus.NOT_INSTALLED: "[dim]not installed[/]",
}


@packs_app.command("list")
def packs_list_cmd(
    category: Annotated[
        str | None,
        typer.Option("--category", "-c", help="Only show packs of this category."),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """List available content packs and their install status."""
    cfg = load_cli_config(data_dir)

    async def _run(runtime: OfflineRuntime):
        return await runtime.packs.get_available_packs(category)

    with cli_errors(cfg):
        packs = with_runtime(cfg, _run)

    if not packs:
        console.print("[yellow]No content packs available.[/]")
        raise typer.Exit(0)

    table = Table(title="Content Packs", show_header=True, header_style="bold")
    table.add_column("Id", style="bold", no_wrap=True)
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Version")
    table.add_column("Size", justify="right")
    table.add_column("Status")
    for pack in packs:
        manifest = pack.manifest
        version = manifest.version
        if pack.status is PackStatus.UPDATE_AVAILABLE and pack.installed_version:
            version = f"{pack.installed_version} → {manifest.version}"
        table.add_row(
            manifest.id,
            manifest.name,
            manifest.category.value,
            version,
            manifest.display_size,
            _STATUS_STYLE.get(pack.status, pack.status.value),
        )
    console.print(table)


@packs_app.command("install")
def packs_install_cmd(
    pack_id: Annotated[str, typer.Argument(help="Pack id, as shown by 'packs list'.")],
    data_dir: DataDirOption = None,
) -> None:
    """Download, verify and install a content pack (also updates an installed one)."""
    cfg = load_cli_config(data_dir)

    async def _known(runtime: OfflineRuntime) -> bool:
        return any(p.manifest.id == pack_id for p in await runtime.packs.get_available_packs())

    with cli_errors(cfg, pack_id):
        known = with_runtime(cfg, _known)
    if not known:
        console.print(err_unknown_dataset(pack_id, "pack"))
        raise typer.Exit(1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task(f"Downloading {pack_id}…", total=100)

        def _on_progress(percent: int, message: str) -> None:
            prog.update(task, completed=percent, description=message)

        async def _run(runtime: OfflineRuntime) -> DatasetRecord:
            return await runtime.packs.download_pack(pack_id, on_progress=_on_progress)

        with cli_errors(cfg, pack_id):
            record = with_runtime(cfg, _run)

    console.print(
        f"  [green]✓[/] Installed {record.name} {record.version or ''} "
        f"({len(record.content_ids)} item(s))"
    )


@packs_app.command("uninstall")
def packs_uninstall_cmd(
    pack_id: Annotated[str, typer.Argument(help="Installed pack id.")],
    data_dir: DataDirOption = None,
) -> None:
    """Remove a content pack and everything it installed."""
    cfg = load_cli_config(data_dir)

    async def _run(runtime: OfflineRuntime) -> bool:
        return await runtime.packs.uninstall_pack(pack_id)

    with cli_errors(cfg, pack_id):
        removed = with_runtime(cfg, _run)

    if not removed:
        console.print(err_not_installed(pack_id, "pack"))
        raise typer.Exit(0)
    console.print(f"  [green]✓[/] Uninstalled {pack_id}")
