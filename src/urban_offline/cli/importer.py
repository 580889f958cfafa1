"""urban-offline import / article commands.

  urban-offline import manifest.json   import a content manifest {"articles": [...]}
  urban-offline article <slug>         print a stored article by slug
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from urban_offline.attribution import MIXED, attribution_for
from urban_offline.cli.common import DataDirOption, cli_errors, load_cli_config, with_runtime
from urban_offline.cli.errors import err_manifest_unreadable
from urban_offline.content.articles import Article, get_article_by_slug
from urban_offline.content.importer import SyncResult
from urban_offline.runtime import OfflineRuntime

console = Console()


def import_cmd(
    manifest: Annotated[
        Path,
        typer.Argument(help="JSON content manifest with an 'articles' list."),
    ],
    data_dir: DataDirOption = None,
) -> None:
    """Import articles from a content manifest and index them for search."""
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        console.print(err_manifest_unreadable(str(manifest), str(exc)))
        raise typer.Exit(1) from exc

    cfg = load_cli_config(data_dir)

    async def _run(runtime: OfflineRuntime) -> SyncResult:
        return await runtime.importer.sync_from_manifest(data)

    with cli_errors(cfg):
        result = with_runtime(cfg, _run)

    if not result.synced:
        console.print(f"[yellow]No articles found in {manifest}.[/]")
        raise typer.Exit(0)
    console.print(f"  [green]✓[/] Imported {result.count} article(s) from {manifest.name}")


def article_cmd(
    slug: Annotated[str, typer.Argument(help="Article slug or id.")],
    data_dir: DataDirOption = None,
) -> None:
    """Show a stored article with its source and licence."""
    cfg = load_cli_config(data_dir)

    async def _run(runtime: OfflineRuntime) -> Article | None:
        return await get_article_by_slug(runtime.storage, slug)

    with cli_errors(cfg):
        article = with_runtime(cfg, _run)

    if article is None:
        console.print(f"[yellow]No article with slug '{slug}'.[/]")
        raise typer.Exit(1)

    console.print(
        Panel(
            escape(article.body_plain),
            title=f"[bold]{escape(article.title)}[/]",
            subtitle=f"[dim]{article.source}[/]",
            expand=False,
        )
    )
    credit = attribution_for(article.slug)
    if credit is not MIXED:
        console.print(f"[dim]{credit.license}: {escape(credit.attribution_text)}[/]")
