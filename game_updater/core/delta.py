"""Application of incremental patches to an installed game.

A patch archive is extracted into a per-patch temp directory by the payload
provider, keeping archive paths. Each extracted entry is either:

- a binary-diff payload, recognised by a final extension starting with
  ``p-`` (``Game/Bin/TS4_x64.exe.p-1``), applied to the installed file with
  the external diff tool, or
- a verbatim replacement, moved straight into the installation.

A non-zero exit from the diff tool or a failed move/delete aborts the patch
and the rest of the chain. Entries applied before the failure stay applied;
there is no rollback.
"""

from __future__ import annotations

import asyncio
import errno
import os
import shutil
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import structlog

from game_updater.core.errors import (
    DeltaToolFailure,
    PatchApplicationIOError,
    UpdaterError,
)
from game_updater.core.types import PatchDescriptor, PatchEntry

logger = structlog.get_logger()

UPDATED_SUFFIX = ".updated"


class DeltaTool(Protocol):
    """External binary-diff tool."""

    async def apply_delta(self, original: Path, payload: Path, output: Path) -> int:
        """Write ``original`` patched with ``payload`` to ``output``.

        Returns:
            Process exit status, zero on success
        """
        ...


class XDelta3Tool:
    """Runs ``xdelta3`` to decode VCDIFF payloads.

    Args:
        executable: xdelta3 binary name or path
    """

    def __init__(self, executable: str = "xdelta3"):
        self.executable = executable

    def command(self, original: Path, payload: Path, output: Path) -> list[str]:
        return [
            self.executable, "-d", "-f",
            "-s", str(original), str(payload), str(output),
        ]

    async def apply_delta(self, original: Path, payload: Path, output: Path) -> int:
        cmd = self.command(original, payload, output)
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("delta_tool_start_failed", executable=self.executable, error=str(e))
            return 127

        _, stderr = await process.communicate()
        exit_code = process.returncode if process.returncode is not None else -1
        if exit_code != 0:
            logger.error(
                "delta_tool_failed",
                original=str(original),
                exit_code=exit_code,
                stderr=stderr.decode(errors="replace").strip()[:500],
            )
        return exit_code


class PatchPayloadProvider(Protocol):
    """Fetches and extracts the payload of a patch."""

    async def fetch(self, patch: PatchDescriptor) -> list[PatchEntry]:
        """Download and extract ``patch``, returning its entries.

        Raises:
            UpdaterError: If the payload cannot be downloaded or extracted
        """
        ...

    def cleanup(self, patch: PatchDescriptor) -> None:
        """Delete the downloaded payload of a fully applied patch."""
        ...


def _descriptor_list() -> list[PatchDescriptor]:
    return []


@dataclass
class ChainResult:
    """Outcome of applying a patch chain.

    Attributes:
        applied: Patches applied successfully, in order
        failed: Patch whose application failed, if any
        error: Error that aborted the chain
    """

    applied: list[PatchDescriptor] = field(default_factory=_descriptor_list)
    failed: PatchDescriptor | None = None
    error: UpdaterError | None = None

    @property
    def success(self) -> bool:
        return self.failed is None


def _move_into_place(source: Path, dest: Path) -> None:
    """Move ``source`` to ``dest``, overwriting it, across filesystems if needed."""
    try:
        os.replace(source, dest)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        shutil.copy2(source, dest)
        source.unlink()


class DeltaApplier:
    """Applies extracted patch entries to an installation directory.

    Args:
        install_dir: Game installation root
        tool: Diff tool used for binary-diff payloads
    """

    def __init__(self, install_dir: Path, tool: DeltaTool | None = None):
        self.install_dir = install_dir
        self.tool: DeltaTool = tool if tool is not None else XDelta3Tool()

    def target_path(self, entry: PatchEntry) -> Path:
        """Installed path updated by ``entry``.

        Raises:
            PatchApplicationIOError: If the entry points outside the installation
        """
        target = self.install_dir / entry.target_key
        root = self.install_dir.resolve()
        if not target.resolve().is_relative_to(root):
            raise PatchApplicationIOError(target, "entry escapes the installation directory")
        return target

    async def apply_entry(self, entry: PatchEntry) -> Path:
        """Apply a single extracted entry.

        Returns:
            The installed path that was updated

        Raises:
            DeltaToolFailure: If the diff tool exits non-zero
            PatchApplicationIOError: If a file cannot be moved or deleted
        """
        target = self.target_path(entry)
        if entry.is_delta:
            await self._apply_delta(entry, target)
        else:
            self._replace(entry, target)
        return target

    async def _apply_delta(self, entry: PatchEntry, target: Path) -> None:
        output = target.with_name(target.name + UPDATED_SUFFIX)
        exit_code = await self.tool.apply_delta(target, entry.payload_path, output)
        if exit_code != 0:
            try:
                output.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("delta_output_cleanup_failed", path=str(output), error=str(e))
            raise DeltaToolFailure(target, entry.payload_path, exit_code)

        try:
            os.replace(output, target)
        except OSError as e:
            raise PatchApplicationIOError(target, str(e)) from e

        try:
            entry.payload_path.unlink(missing_ok=True)
        except OSError as e:
            raise PatchApplicationIOError(entry.payload_path, str(e)) from e

        logger.debug("delta_applied", path=str(target))

    def _replace(self, entry: PatchEntry, target: Path) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            _move_into_place(entry.payload_path, target)
        except OSError as e:
            raise PatchApplicationIOError(target, str(e)) from e
        logger.debug("file_replaced", path=str(target))

    async def apply_patch(
        self, patch: PatchDescriptor, entries: Iterable[PatchEntry]
    ) -> int:
        """Apply every entry of one patch, in order.

        Returns:
            Number of entries applied

        Raises:
            DeltaToolFailure: If the diff tool fails on any entry
            PatchApplicationIOError: If any file operation fails
        """
        applied = 0
        deltas = 0
        for entry in entries:
            await self.apply_entry(entry)
            applied += 1
            deltas += int(entry.is_delta)

        logger.info(
            "patch_applied",
            patch=patch.label,
            files=applied,
            deltas=deltas,
            replaced=applied - deltas,
        )
        return applied

    async def apply_chain(
        self,
        chain: Sequence[PatchDescriptor],
        provider: PatchPayloadProvider,
    ) -> ChainResult:
        """Fetch and apply each patch of ``chain`` sequentially.

        Stops at the first patch that cannot be fetched or applied; later
        patches are left unattempted.
        """
        result = ChainResult()
        for patch in chain:
            logger.info("patch_started", patch=patch.label)
            try:
                entries = await provider.fetch(patch)
                await self.apply_patch(patch, entries)
            except UpdaterError as e:
                logger.error("patch_failed", patch=patch.label, error=str(e))
                result.failed = patch
                result.error = e
                return result

            provider.cleanup(patch)
            result.applied.append(patch)

        return result
