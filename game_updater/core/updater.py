"""Sequencing of a complete update run.

An installed game is brought up to date by applying its patch chain; a
missing game gets the base sections installed instead. Every DLC section is
then verified against its checksum list and only (re)installed when the
verification fails.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import structlog

from game_updater.core.archive import extract_archive
from game_updater.core.checksum_cache import ChecksumCache
from game_updater.core.context import UpdateContext
from game_updater.core.delta import ChainResult, DeltaApplier, DeltaTool, XDelta3Tool
from game_updater.core.download import SectionDownloader
from game_updater.core.errors import ManifestError, UpdaterError
from game_updater.core.integrity import IntegrityVerifier, VerificationReport
from game_updater.core.types import PatchDescriptor, PatchEntry
from game_updater.formats.manifest import ManifestSection

logger = structlog.get_logger()

FULL_INSTALL_SECTIONS = ("Base Game", "Full Patch", "Extra tools")
DLC_PREFIX = "DLC"


def _remove_parts(parts: list[Path]) -> None:
    for part in parts:
        try:
            part.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("part_cleanup_failed", path=str(part), error=str(e))


class DownloadingPayloadProvider:
    """Downloads a patch's archive parts and extracts them for application.

    Args:
        downloader: Section downloader
        download_dir: Directory the archive parts are saved in
        temp_dir: Root for extracted payloads, one subdirectory per patch
    """

    def __init__(self, downloader: SectionDownloader, download_dir: Path, temp_dir: Path):
        self.downloader = downloader
        self.download_dir = download_dir
        self.temp_dir = temp_dir
        self._parts: dict[PatchDescriptor, list[Path]] = {}

    def extraction_dir(self, patch: PatchDescriptor) -> Path:
        return self.temp_dir / str(patch.to_version)

    async def fetch(self, patch: PatchDescriptor) -> list[PatchEntry]:
        parts = await self.downloader.download_parts(
            patch.payload_refs,
            self.download_dir,
            patch.compressed_size,
            patch.uncompressed_size,
            label=patch.label,
        )
        self._parts[patch] = parts
        logger.info("patch_downloaded", patch=patch.label, parts=len(parts))
        return await asyncio.to_thread(extract_archive, parts, self.extraction_dir(patch))

    def cleanup(self, patch: PatchDescriptor) -> None:
        _remove_parts(self._parts.pop(patch, []))
        shutil.rmtree(self.extraction_dir(patch), ignore_errors=True)


class GameUpdater:
    """Runs the update steps for one installation.

    Args:
        context: Inputs of the run
        downloader: Section downloader, created from the config when omitted
        cache: Checksum cache, backed by the configured cache file when omitted
        tool: Diff tool, the configured xdelta3 executable when omitted
    """

    def __init__(
        self,
        context: UpdateContext,
        downloader: SectionDownloader | None = None,
        cache: ChecksumCache | None = None,
        tool: DeltaTool | None = None,
    ):
        config = context.config
        self.context = context
        self.install_dir = config.install_dir
        self.downloader = downloader or SectionDownloader(
            timeout=config.http_timeout,
            progress_interval=config.progress_interval,
        )
        self.cache = cache if cache is not None else ChecksumCache.from_file(config.cache_path)
        self.verifier = IntegrityVerifier(self.cache, chunk_size=config.chunk_size)
        self.applier = DeltaApplier(
            self.install_dir, tool if tool is not None else XDelta3Tool(config.delta_tool)
        )
        self.provider = DownloadingPayloadProvider(
            self.downloader, self.install_dir, config.temp_dir
        )

    async def perform_patches(self) -> ChainResult:
        """Apply the resolved patch chain, in order."""
        chain = self.context.chain
        if not chain:
            logger.info("no_patches_available", installed=str(self.context.installed))
            return ChainResult()

        logger.info("patches_found", count=len(chain))
        result = await self.applier.apply_chain(chain, self.provider)
        if result.success:
            logger.info("patches_installed", count=len(result.applied))
        return result

    async def install_section(self, section: ManifestSection) -> None:
        """Download a section's archive and extract it over the installation.

        Raises:
            UpdaterError: If the download or the extraction fails
        """
        metadata = self.context.manifest.section_metadata(section.name)
        logger.info("section_installing", section=section.display_name)

        parts = await self.downloader.download_parts(
            section.urls,
            self.install_dir,
            section.split_size,
            metadata.total_size,
            label=section.display_name,
        )
        await asyncio.to_thread(extract_archive, parts, self.install_dir)

        _remove_parts(parts)
        logger.info("section_installed", section=section.display_name)

    async def perform_full_installation(self) -> bool:
        """Install the base game sections, stopping at the first failure."""
        for prefix in FULL_INSTALL_SECTIONS:
            try:
                await self.install_section(self.context.manifest.section(prefix))
            except UpdaterError as e:
                logger.error("section_install_failed", section=prefix, error=str(e))
                return False
        return True

    async def check_section(self, name: str) -> VerificationReport | None:
        """Verify the installed files of section ``name``.

        Returns:
            Verification report, None if the section has no checksum list
        """
        try:
            expectations = self.context.manifest.expected_files(name, self.install_dir)
        except ManifestError as e:
            logger.warning("section_check_unavailable", section=name, error=str(e))
            return None

        logger.info("section_checking", section=name, files=len(expectations))
        return await self.verifier.verify_detailed(expectations)

    async def perform_dlc_installation(self) -> bool:
        """Install every DLC section whose installed files do not verify.

        Sections without a checksum list cannot be verified and are skipped.
        """
        for section in self.context.manifest.sections_matching(DLC_PREFIX):
            report = await self.check_section(section.name)
            if report is None:
                logger.warning("dlc_unverifiable_skipped", dlc=section.display_name)
                continue
            if report.verified:
                logger.info("dlc_already_installed", dlc=section.display_name)
                continue

            try:
                await self.install_section(section)
            except UpdaterError as e:
                logger.error("dlc_install_failed", dlc=section.display_name, error=str(e))
                return False
        return True

    async def run(self) -> bool:
        """Bring the game and its DLCs up to date.

        Returns:
            True if every step succeeded
        """
        try:
            if self.context.full_install_required:
                logger.info("game_not_installed", latest=str(self.context.latest))
                if not await self.perform_full_installation():
                    return False
            else:
                logger.info(
                    "game_installed",
                    installed=str(self.context.installed),
                    latest=str(self.context.latest),
                )
                if not (await self.perform_patches()).success:
                    return False

            return await self.perform_dlc_installation()
        finally:
            await self.downloader.aclose()
