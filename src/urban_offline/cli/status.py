"""urban-offline status command.

Shows storage usage, installed regions, guides and packs, the tile cache,
the search index, and installs that did not complete.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from urban_offline.cli.common import DataDirOption, cli_errors, load_cli_config, with_runtime
from urban_offline.datasets.models import DatasetRecord, StorageUsage
from urban_offline.datasets.packs import PackStorageUsage
from urban_offline.runtime import OfflineRuntime

console = Console()


@dataclass
class _Snapshot:
    backend: str
    data_dir: str
    used_bytes: int
    usage: StorageUsage
    packs_usage: PackStorageUsage
    search_mode: str
    indexed: int
    tile_count: int
    tile_mb: float
    regions: list[DatasetRecord] = field(default_factory=list)
    guides: list[DatasetRecord] = field(default_factory=list)
    packs: list[DatasetRecord] = field(default_factory=list)
    incomplete: list[DatasetRecord] = field(default_factory=list)


async def _collect(runtime: OfflineRuntime) -> _Snapshot:
    await runtime.search.init()
    return _Snapshot(
        backend=runtime.config.storage.backend,
        data_dir=str(runtime.config.data_path),
        used_bytes=runtime.storage.usage_bytes(),
        usage=await runtime.datasets.get_storage_usage(),
        packs_usage=await runtime.packs.get_storage_usage(),
        search_mode=runtime.search.mode,
        indexed=await runtime.search.count(),
        tile_count=await runtime.tiles.tile_count(),
        tile_mb=await runtime.tiles.estimated_usage_mb(),
        regions=await runtime.datasets.get_installed_regions(),
        guides=await runtime.datasets.get_installed_guides(),
        packs=await runtime.packs.get_installed_packs(),
        incomplete=await runtime.datasets.list_incomplete(),
    )


def status_cmd(data_dir: DataDirOption = None) -> None:
    """Show storage, installed datasets, tile cache and search index status."""
    cfg = load_cli_config(data_dir)
    with cli_errors(cfg):
        snap = with_runtime(cfg, _collect)

    # ---- Panel 1: Storage ----
    console.print(
        Panel(
            f"Backend:   {snap.backend}\n"
            f"Data dir:  {snap.data_dir}\n"
            f"On disk:   {snap.used_bytes / (1024 * 1024):.1f} MB\n"
            f"Datasets:  {snap.usage.used_mb:.1f} / {snap.usage.total_mb:.0f} MB "
            f"({snap.usage.percent:.0f}%)\n"
            f"Packs:     {snap.packs_usage.display} in {snap.packs_usage.pack_count} pack(s)",
            title="[bold]Storage[/]",
            expand=False,
        )
    )

    # ---- Panel 2: Installed ----
    if snap.regions or snap.guides or snap.packs:
        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("Kind")
        table.add_column("Id", style="bold", no_wrap=True)
        table.add_column("Name")
        table.add_column("Size", justify="right")
        for kind, records in (("region", snap.regions), ("guide", snap.guides), ("pack", snap.packs)):
            for record in records:
                table.add_row(kind, record.id, record.name, f"{record.size:.1f} MB")
        console.print(Panel(table, title="[bold]Installed[/]", expand=False))
    else:
        console.print(
            Panel(
                "[yellow]Nothing installed yet.[/]\n"
                "  Run:  urban-offline regions list",
                title="[bold]Installed[/]",
                expand=False,
            )
        )

    # ---- Panel 3: Tiles + search ----
    console.print(
        Panel(
            f"Cached tiles:  {snap.tile_count} (~{snap.tile_mb:.1f} MB)\n"
            f"Search mode:   {snap.search_mode}\n"
            f"Indexed docs:  {snap.indexed}",
            title="[bold]Tiles & Search[/]",
            expand=False,
        )
    )

    # ---- Panel 4: Incomplete installs ----
    if snap.incomplete:
        lines = [
            f"[red]✗[/] {r.id}  {r.error_message or r.status.value}" for r in snap.incomplete
        ]
        lines.append("\n  Retry with the matching install command, or uninstall to clean up.")
        console.print(
            Panel("\n".join(lines), title="[bold]Incomplete Installs[/]", expand=False)
        )
