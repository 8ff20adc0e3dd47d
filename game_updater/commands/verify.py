"""Verify installed sections against their checksum lists."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
import structlog
from rich.table import Table

from game_updater.commands.common import (
    get_context_objects,
    load_manifest,
    manifest_options,
    output_json,
)
from game_updater.core.checksum_cache import ChecksumCache
from game_updater.core.errors import ManifestError
from game_updater.core.integrity import IntegrityVerifier, VerificationReport
from game_updater.core.utils import format_checksum

logger = structlog.get_logger()


@click.command("verify")
@click.argument("prefixes", nargs=-1)
@manifest_options
@click.option("--show-files", "-f", is_flag=True, help="List every failed file")
@click.pass_context
def verify_command(
    ctx: click.Context,
    prefixes: tuple[str, ...],
    manifest_url: str | None,
    manifest_file: Path | None,
    metadata_file: Path | None,
    show_files: bool,
) -> None:
    """Verify installed sections whose names start with PREFIXES (default: DLC)."""
    config, console, verbose = get_context_objects(ctx)
    manifest = load_manifest(config, manifest_url, manifest_file, metadata_file)

    sections = []
    for prefix in prefixes or ("DLC",):
        sections.extend(s for s in manifest.sections_matching(prefix) if s not in sections)
    if not sections:
        raise click.ClickException(f"No section matches {', '.join(prefixes or ('DLC',))}")

    cache = ChecksumCache.from_file(config.cache_path)
    verifier = IntegrityVerifier(cache, chunk_size=config.chunk_size)

    reports: dict[str, VerificationReport | None] = {}
    for section in sections:
        try:
            expectations = manifest.expected_files(section.name, config.install_dir)
        except ManifestError as e:
            logger.warning("section_check_unavailable", section=section.name, error=str(e))
            reports[section.display_name] = None
            continue
        reports[section.display_name] = asyncio.run(verifier.verify_detailed(expectations))

    all_verified = all(r is not None and r.verified for r in reports.values())

    if config.output_format == "json":
        output_json({
            "verified": all_verified,
            "sections": {
                name: None if report is None else {
                    "verified": report.verified,
                    "files": len(report.results),
                    "failures": [
                        {
                            "path": str(r.path),
                            "status": r.status.value,
                            "expected": format_checksum(r.expected),
                            "actual": None if r.actual is None else format_checksum(r.actual),
                        }
                        for r in report.failures
                    ],
                }
                for name, report in reports.items()
            },
        })
    else:
        table = Table(title="Section Verification")
        table.add_column("Section", style="cyan")
        table.add_column("Files", justify="right")
        table.add_column("Status")
        for name, report in reports.items():
            if report is None:
                table.add_row(name, "-", "[yellow]no checksum list[/yellow]")
            elif report.verified:
                table.add_row(name, f"{len(report.results):,}", "[green]verified[/green]")
            else:
                table.add_row(name, f"{len(report.results):,}", "[red]failed[/red]")
        console.print(table)

        if show_files or verbose:
            for name, report in reports.items():
                if report is None:
                    continue
                for r in report.failures:
                    actual = "-" if r.actual is None else format_checksum(r.actual)
                    console.print(
                        f"  [red]{r.status.value}[/red] {r.path} "
                        f"(expected {format_checksum(r.expected)}, got {actual})"
                    )

    if not all_verified:
        sys.exit(1)
