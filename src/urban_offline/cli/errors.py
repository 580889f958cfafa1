"""urban-offline rich error messages.

Every error shown to the user says what went wrong and the exact action that
fixes it.

Usage:
    from urban_offline.cli.errors import err_quota
    console.print(err_quota())
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_config(message: str) -> str:
    """Config file or environment holds an invalid value."""
    return (
        f"[red]Error:[/] Invalid configuration: {message}\n"
        "  Fix urban-offline.yaml (or the URBAN_OFFLINE_* variables) and retry."
    )


def err_quota(message: str = "") -> str:
    """Storage budget exhausted during a write."""
    detail = f" ({message})" if message else ""
    return (
        f"[red]Error:[/] Not enough storage space{detail}.\n"
        "  Free up space:  urban-offline regions uninstall <id>\n"
        "             or:  urban-offline packs uninstall <id>"
    )


def err_unknown_dataset(dataset_id: str, kind: str) -> str:
    """Dataset id not in the catalog / registry."""
    return (
        f"[red]Error:[/] Unknown {kind} '{dataset_id}'.\n"
        f"  List what is available:  urban-offline {kind}s list"
    )


def err_not_installed(dataset_id: str, kind: str) -> str:
    return (
        f"[yellow]Nothing to uninstall:[/] {kind} '{dataset_id}' is not installed.\n"
        f"  See installed {kind}s:  urban-offline {kind}s list"
    )


def err_install_failed(dataset_id: str, message: str) -> str:
    """Install ended in the failed state; the record is kept for retry."""
    return (
        f"[red]Error:[/] Install of '{dataset_id}' failed: {message}\n"
        f"  The failed install is recorded. Retry with the same install command."
    )


def err_network(message: str) -> str:
    return (
        f"[red]Error:[/] Download failed: {message}\n"
        "  Check your connection (or packs.base_url / tiles.url_template) and retry."
    )


def err_cancelled(dataset_id: str) -> str:
    return f"[yellow]Download of '{dataset_id}' cancelled.[/]"


def err_pack(message: str) -> str:
    """Pack-level problem: dependency, checksum or archive."""
    return (
        f"[red]Error:[/] {message}\n"
        "  Install required packs first, or re-download the pack."
    )


def err_storage(message: str, data_dir: str) -> str:
    return (
        f"[red]Error:[/] Storage failure: {message}\n"
        f"  Check that '{data_dir}' is writable, or run:  urban-offline init"
    )


def err_manifest_unreadable(path: str, reason: str) -> str:
    return (
        f"[red]Error:[/] Cannot read content manifest '{path}': {reason}\n"
        '  Provide a JSON file of the form {"articles": [...]}.'
    )
