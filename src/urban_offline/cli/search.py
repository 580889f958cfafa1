"""urban-offline search command."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from urban_offline.cli.common import DataDirOption, cli_errors, load_cli_config, with_runtime
from urban_offline.runtime import OfflineRuntime
from urban_offline.search.models import SearchResult

console = Console()


def search_cmd(
    query: Annotated[str, typer.Argument(help="Words to look for (prefix matches count).")],
    rebuild: Annotated[
        bool,
        typer.Option("--rebuild", help="Rebuild the index from stored content before searching."),
    ] = False,
    data_dir: DataDirOption = None,
) -> None:
    """Search installed articles, survival items, laws and guides."""
    cfg = load_cli_config(data_dir)

    async def _run(runtime: OfflineRuntime) -> list[SearchResult]:
        if rebuild:
            indexed = await runtime.search.rebuild_index()
            console.print(f"  [green]✓[/] Rebuilt {runtime.search.mode} index ({indexed} docs)")
        return await runtime.search.search(query)

    with cli_errors(cfg):
        results = with_runtime(cfg, _run)

    if not results:
        console.print(f"[yellow]No results for '{query}'.[/]")
        raise typer.Exit(0)

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Slug", style="bold", no_wrap=True)
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Snippet")
    for result in results:
        snippet = escape(result.snippet).replace("<mark>", "[bold]").replace("</mark>", "[/bold]")
        table.add_row(escape(result.slug), escape(result.title), result.category, snippet)
    console.print(table)
    console.print(f"\n  {len(results)} result(s)")
