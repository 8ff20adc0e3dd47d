"""Bring an installation up to date."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
import structlog

from game_updater.commands.common import (
    get_context_objects,
    load_update_context,
    manifest_options,
    output_json,
)
from game_updater.core.updater import GameUpdater

logger = structlog.get_logger()


@click.command("update")
@manifest_options
@click.option("--skip-dlc", is_flag=True, help="Do not verify or install DLC sections")
@click.pass_context
def update_command(
    ctx: click.Context,
    manifest_url: str | None,
    manifest_file: Path | None,
    metadata_file: Path | None,
    skip_dlc: bool,
) -> None:
    """Apply pending patches (or install the game) and install missing DLCs."""
    config, console, _ = get_context_objects(ctx)
    context = load_update_context(config, manifest_url, manifest_file, metadata_file)
    updater = GameUpdater(context)

    if config.output_format != "json":
        if context.full_install_required:
            console.print("[yellow]Game is not installed. Performing a full installation...[/yellow]")
        else:
            console.print(f"Current game version: [cyan]{context.installed}[/cyan]")
            console.print(f"Latest version available: [cyan]{context.latest}[/cyan]")
            if context.chain:
                console.print(f"Found {len(context.chain)} patches to apply.")
            else:
                console.print("[green]Game is up-to-date.[/green]")

    async def _run() -> bool:
        if not skip_dlc:
            return await updater.run()
        try:
            if context.full_install_required:
                return await updater.perform_full_installation()
            return (await updater.perform_patches()).success
        finally:
            await updater.downloader.aclose()

    success = asyncio.run(_run())

    if config.output_format == "json":
        output_json({
            "success": success,
            "installed": str(context.installed) if context.installed else None,
            "latest": str(context.latest) if context.latest else None,
            "patches": len(context.chain),
        })
    elif success:
        console.print("[green]Game updated successfully.[/green]")
    else:
        console.print("[red]Update failed. See the log for details.[/red]")

    if not success:
        sys.exit(1)
