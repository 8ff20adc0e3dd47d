"""Immutable state shared by one update run.

Everything the update components need to know up front (configuration,
manifest, installed version, resolved patch chain) is gathered once by
``build_update_context`` and passed around read-only.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from game_updater.core.config import UpdaterConfig
from game_updater.core.download import SectionDownloader
from game_updater.core.errors import ManifestError
from game_updater.core.patch_chain import PatchResolution, resolve_patch_chain
from game_updater.core.types import PatchDescriptor
from game_updater.core.version import Version
from game_updater.formats.manifest import GameManifest, parse_manifest

logger = structlog.get_logger()


@dataclass(frozen=True)
class UpdateContext:
    """Inputs of an update run."""

    config: UpdaterConfig
    manifest: GameManifest
    resolution: PatchResolution

    @property
    def installed(self) -> Version | None:
        return self.resolution.installed

    @property
    def latest(self) -> Version | None:
        return self.resolution.latest

    @property
    def chain(self) -> tuple[PatchDescriptor, ...]:
        return self.resolution.chain

    @property
    def full_install_required(self) -> bool:
        return self.resolution.full_install_required


def build_update_context(
    config: UpdaterConfig,
    manifest: GameManifest,
    installed: Version | str | None,
) -> UpdateContext:
    """Resolve the patch chain and freeze the run's inputs.

    Args:
        config: Updater configuration
        manifest: Parsed manifest
        installed: Installed version, None if the game is not installed

    Raises:
        MalformedVersion: If the installed version cannot be parsed
        ManifestError: If a patch section lacks metadata
    """
    resolution = resolve_patch_chain(installed, manifest.patch_descriptors())
    return UpdateContext(config=config, manifest=manifest, resolution=resolution)


async def fetch_manifest(downloader: SectionDownloader, manifest_url: str) -> GameManifest:
    """Fetch the main document and the metadata document it points to.

    Raises:
        DownloadError: If either document cannot be fetched
        ManifestError: If the documents are malformed
    """
    main = await downloader.fetch_json(manifest_url)
    metadata_url = main.get("metadata")
    if not isinstance(metadata_url, str):
        raise ManifestError("Main manifest has no 'metadata' URL")

    metadata = await downloader.fetch_json(metadata_url)
    logger.info("manifest_fetched", url=manifest_url)
    return parse_manifest(main, metadata)
