"""urban-offline tiles commands: inspect and clear the map tile cache."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from urban_offline.cli.common import DataDirOption, cli_errors, load_cli_config, with_runtime
from urban_offline.cli.errors import err_unknown_dataset
from urban_offline.datasets.catalog import Catalog
from urban_offline.datasets.models import DatasetType
from urban_offline.runtime import OfflineRuntime
from urban_offline.storage.stores import MAP_TILES
from urban_offline.tiles.cache import MapRegion

console = Console()

tiles_app = typer.Typer(
    name="tiles",
    help="Inspect or clear cached map tiles.",
    add_completion=False,
)


def _region(runtime: OfflineRuntime, region_id: str) -> MapRegion:
    descriptor = Catalog().get(region_id)
    lat, lon = descriptor.coordinates
    return MapRegion(id=region_id, name=descriptor.name, bbox=runtime.tiles.bbox_around(lat, lon))


@tiles_app.command("info")
def tiles_info_cmd(data_dir: DataDirOption = None) -> None:
    """Show cached tile counts per catalog region."""
    cfg = load_cli_config(data_dir)
    regions = Catalog().of_type(DatasetType.REGION)

    async def _run(runtime: OfflineRuntime):
        cached = set(await runtime.storage.get_all_keys(MAP_TILES))
        rows = []
        for descriptor in regions:
            coords = runtime.tiles.region_tiles(_region(runtime, descriptor.id))
            rows.append((descriptor, sum(1 for c in coords if c.key in cached), len(coords)))
        return rows, len(cached), await runtime.tiles.estimated_usage_mb()

    with cli_errors(cfg):
        rows, total, usage_mb = with_runtime(cfg, _run)

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Region", style="bold", no_wrap=True)
    table.add_column("Cached", justify="right")
    table.add_column("Of", justify="right")
    for descriptor, cached, expected in rows:
        table.add_row(descriptor.id, str(cached), str(expected))
    console.print(table)
    console.print(f"\n  {total} tile(s) cached, ~{usage_mb:.1f} MB")


@tiles_app.command("clear")
def tiles_clear_cmd(
    region_id: Annotated[
        str | None,
        typer.Option("--region", "-r", help="Only clear tiles inside this region."),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Delete cached tiles, for one region or all of them."""
    if region_id is not None:
        descriptor = Catalog().get(region_id)
        if descriptor is None or descriptor.type is not DatasetType.REGION:
            console.print(err_unknown_dataset(region_id, "region"))
            raise typer.Exit(1)

    cfg = load_cli_config(data_dir)

    async def _run(runtime: OfflineRuntime) -> int:
        if region_id is None:
            return await runtime.tiles.clear_all_tiles()
        return await runtime.tiles.clear_region_tiles(_region(runtime, region_id))

    with cli_errors(cfg):
        removed = with_runtime(cfg, _run)

    scope = f"region {region_id}" if region_id else "all regions"
    console.print(f"  [green]✓[/] Removed {removed} tile(s) from {scope}")
