"""urban-offline CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from urban_offline.cli.datasets import guides_app, regions_app
from urban_offline.cli.importer import article_cmd, import_cmd
from urban_offline.cli.init import init_cmd
from urban_offline.cli.packs import packs_app
from urban_offline.cli.search import search_cmd
from urban_offline.cli.status import status_cmd
from urban_offline.cli.tiles import tiles_app


def _installed_version() -> str:
    try:
        return importlib.metadata.version("urban-offline")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"urban-offline {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="urban-offline",
    help=(
        "urban-offline: offline maps, survival guides and searchable content.\n\n"
        "  urban-offline regions install region-london   Cache a region's map tiles.\n"
        "  urban-offline search hypothermia              Search everything installed."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """urban-offline: offline content cache and search."""


app.command("init")(init_cmd)
app.command("status")(status_cmd)
app.command("search")(search_cmd)
app.command("import")(import_cmd)
app.command("article")(article_cmd)
app.add_typer(regions_app, name="regions")
app.add_typer(guides_app, name="guides")
app.add_typer(packs_app, name="packs")
app.add_typer(tiles_app, name="tiles")


@app.command("version")
def version_cmd() -> None:
    """Show the installed urban-offline version."""
    typer.echo(f"urban-offline {_installed_version()}")


if __name__ == "__main__":
    app()
