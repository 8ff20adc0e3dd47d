"""Show which patches an installation needs."""

from __future__ import annotations

from pathlib import Path

import click
import structlog
from rich.table import Table

from game_updater.commands.common import (
    get_context_objects,
    load_update_context,
    manifest_options,
    output_json,
)
from game_updater.core.utils import format_size

logger = structlog.get_logger()


@click.command("resolve")
@manifest_options
@click.pass_context
def resolve_command(
    ctx: click.Context,
    manifest_url: str | None,
    manifest_file: Path | None,
    metadata_file: Path | None,
) -> None:
    """Show the installed version, the latest version and the patch chain."""
    config, console, verbose = get_context_objects(ctx)
    context = load_update_context(config, manifest_url, manifest_file, metadata_file)
    resolution = context.resolution

    if config.output_format == "json":
        output_json({
            "installed": str(resolution.installed) if resolution.installed else None,
            "latest": str(resolution.latest) if resolution.latest else None,
            "full_install_required": resolution.full_install_required,
            "up_to_date": resolution.up_to_date,
            "chain": [
                {
                    "from": str(patch.from_version),
                    "to": str(patch.to_version),
                    "parts": len(patch.payload_refs),
                    "size": patch.uncompressed_size,
                }
                for patch in resolution.chain
            ],
        })
        return

    if resolution.full_install_required:
        console.print("[yellow]Game is not installed. A full installation is required.[/yellow]")
        console.print(f"Latest version available: {resolution.latest}")
        return

    console.print(f"Current game version: [cyan]{resolution.installed}[/cyan]")
    console.print(f"Latest version available: [cyan]{resolution.latest}[/cyan]")

    if resolution.up_to_date:
        console.print("[green]Game is up-to-date.[/green]")
        return

    table = Table(title="Patch Chain")
    table.add_column("#", justify="right")
    table.add_column("From", style="cyan")
    table.add_column("To", style="green")
    table.add_column("Parts", justify="right")
    table.add_column("Size", justify="right")
    for index, patch in enumerate(resolution.chain, 1):
        table.add_row(
            str(index),
            str(patch.from_version),
            str(patch.to_version),
            str(len(patch.payload_refs)),
            format_size(patch.uncompressed_size),
        )
    console.print(table)
    console.print(f"Total download: {format_size(resolution.download_size)}")

    if verbose:
        for patch in resolution.chain:
            for url in patch.payload_refs:
                console.print(f"  [dim]{patch.label}: {url}[/dim]")
