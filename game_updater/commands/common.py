"""Helpers shared by the CLI commands."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import click
import structlog
from rich.console import Console

from game_updater.core.config import UpdaterConfig
from game_updater.core.context import UpdateContext, build_update_context, fetch_manifest
from game_updater.core.download import SectionDownloader
from game_updater.core.errors import UpdaterError
from game_updater.core.game_version import detect_game_version
from game_updater.formats.manifest import GameManifest, parse_manifest

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


def get_context_objects(ctx: click.Context) -> tuple[UpdaterConfig, Console, bool]:
    """Extract common context objects."""
    config: UpdaterConfig = ctx.obj["config"]
    console: Console = ctx.obj["console"]
    verbose: bool = ctx.obj["verbose"]
    return config, console, verbose


def output_json(data: dict[str, Any]) -> None:
    """Output data as JSON."""
    print(json.dumps(data, indent=2, default=str))


def manifest_options(func: F) -> F:
    """Add the options selecting where the manifest is read from."""
    func = click.option(
        "--metadata-file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Local metadata document (requires --manifest-file)",
    )(func)
    func = click.option(
        "--manifest-file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Local main manifest document instead of --manifest-url",
    )(func)
    func = click.option(
        "--manifest-url",
        type=str,
        help="Main manifest URL (overrides the configuration)",
    )(func)
    return func


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise click.ClickException(f"{path} does not contain a JSON object")
    return data


def load_manifest(
    config: UpdaterConfig,
    manifest_url: str | None,
    manifest_file: Path | None,
    metadata_file: Path | None,
) -> GameManifest:
    """Load the manifest from local files or over HTTP.

    Raises:
        click.ClickException: If no source is configured or loading fails
    """
    try:
        if manifest_file is not None:
            if metadata_file is None:
                raise click.ClickException("--manifest-file requires --metadata-file")
            return parse_manifest(_read_json(manifest_file), _read_json(metadata_file))

        url = manifest_url or config.manifest_url
        if not url:
            raise click.ClickException(
                "No manifest source: pass --manifest-url or --manifest-file, "
                "or set manifest_url in the configuration"
            )

        async def _fetch() -> GameManifest:
            downloader = SectionDownloader(timeout=config.http_timeout)
            try:
                return await fetch_manifest(downloader, url)
            finally:
                await downloader.aclose()

        return asyncio.run(_fetch())
    except UpdaterError as e:
        logger.error("manifest_load_failed", error=str(e))
        raise click.ClickException(f"Cannot load manifest: {e}") from e


def load_update_context(
    config: UpdaterConfig,
    manifest_url: str | None,
    manifest_file: Path | None,
    metadata_file: Path | None,
) -> UpdateContext:
    """Load the manifest, detect the installed version and resolve the chain.

    Raises:
        click.ClickException: If any input cannot be loaded
    """
    manifest = load_manifest(config, manifest_url, manifest_file, metadata_file)
    try:
        installed = detect_game_version(config.install_dir)
        return build_update_context(config, manifest, installed)
    except UpdaterError as e:
        logger.error("context_build_failed", error=str(e))
        raise click.ClickException(str(e)) from e
