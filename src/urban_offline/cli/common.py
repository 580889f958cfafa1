"""Shared CLI plumbing: config loading, runtime lifecycle, error mapping."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from rich.console import Console

from urban_offline.cli.errors import (
    err_cancelled,
    err_config,
    err_install_failed,
    err_network,
    err_pack,
    err_quota,
    err_storage,
)
from urban_offline.config import ConfigError, OfflineConfig, load_config
from urban_offline.errors import (
    DownloadCancelledError,
    InvalidInputError,
    OfflineError,
    PackError,
    QuotaExceededError,
    StorageError,
    TileDownloadError,
    TransientFetchError,
)
from urban_offline.logging_config import setup_logging
from urban_offline.runtime import OfflineRuntime

console = Console()

T = TypeVar("T")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", help="Directory holding offline data (overrides config)."),
]


def load_cli_config(data_dir: Path | None = None) -> OfflineConfig:
    """Load config, apply ``--data-dir`` and configure logging. Exits on bad config."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if data_dir is not None:
        cfg.storage.data_dir = str(data_dir)
    setup_logging(cfg.logging.level)
    return cfg


@contextmanager
def cli_errors(cfg: OfflineConfig, dataset_id: str = "") -> Iterator[None]:
    """Turn library errors into actionable messages and exit code 1."""
    try:
        yield
    except QuotaExceededError as exc:
        console.print(err_quota())
        raise typer.Exit(1) from exc
    except DownloadCancelledError as exc:
        console.print(err_cancelled(dataset_id))
        raise typer.Exit(1) from exc
    except (TransientFetchError, TileDownloadError) as exc:
        console.print(err_network(str(exc)))
        raise typer.Exit(1) from exc
    except PackError as exc:
        console.print(err_pack(str(exc)))
        raise typer.Exit(1) from exc
    except StorageError as exc:
        console.print(err_storage(str(exc), cfg.storage.data_dir))
        raise typer.Exit(1) from exc
    except InvalidInputError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1) from exc
    except OfflineError as exc:
        if dataset_id:
            console.print(err_install_failed(dataset_id, str(exc)))
        else:
            console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1) from exc


def with_runtime(cfg: OfflineConfig, work: Callable[[OfflineRuntime], Awaitable[T]]) -> T:
    """Open a runtime for *cfg*, run *work* on it and close everything."""

    async def _main() -> T:
        async with OfflineRuntime.open(cfg) as runtime:
            return await work(runtime)

    return asyncio.run(_main())
