"""Selection of the patches needed to bring an installation up to date.

The manifest lists every incremental patch ever published, each taking the
game from one specific version to the next. Resolution is a filter rather
than a path search: a patch is selected when the installed version is at or
below its ``from_version``. Selected patches are applied in ascending
``from_version`` order.

Chain contiguity (each ``to_version`` equal to the next ``from_version``) is
not checked; a manifest with gaps or overlaps is applied as listed.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from game_updater.core.types import PatchDescriptor
from game_updater.core.version import Version, compare_versions, parse_version

logger = structlog.get_logger()


@dataclass(frozen=True)
class PatchResolution:
    """Result of resolving the patch chain for an installation.

    Attributes:
        installed: Installed version, None when the game is not installed
        latest: Highest ``to_version`` across all known patches
        chain: Patches to apply, ascending by ``from_version``
        full_install_required: True when there is no installed version
    """

    installed: Version | None
    latest: Version | None
    chain: tuple[PatchDescriptor, ...]
    full_install_required: bool

    @property
    def up_to_date(self) -> bool:
        """True when the game is installed and no patch applies."""
        return not self.full_install_required and not self.chain

    @property
    def download_size(self) -> int:
        return sum(patch.uncompressed_size for patch in self.chain)


def latest_version(descriptors: Iterable[PatchDescriptor]) -> Version | None:
    """Return the highest ``to_version`` of ``descriptors``, None if empty."""
    latest: Version | None = None
    for descriptor in descriptors:
        if latest is None or compare_versions(latest, descriptor.to_version) <= 0:
            latest = descriptor.to_version
    return latest


def select_patches(
    installed: Version, descriptors: Iterable[PatchDescriptor]
) -> tuple[PatchDescriptor, ...]:
    """Select the patches reachable from ``installed``, in application order.

    Args:
        installed: Currently installed version
        descriptors: Every patch known to the manifest

    Returns:
        Patches with ``installed <= from_version``, ascending by
        ``from_version`` (stable for equal versions)
    """
    selected = [
        d for d in descriptors if compare_versions(installed, d.from_version) <= 0
    ]
    selected.sort(key=lambda d: d.from_version)
    return tuple(selected)


def resolve_patch_chain(
    installed: Version | str | None,
    descriptors: Iterable[PatchDescriptor],
) -> PatchResolution:
    """Resolve which patches to apply for an installation.

    Args:
        installed: Installed version, or None if the game is not installed
        descriptors: Every patch known to the manifest

    Returns:
        PatchResolution; an empty chain on an installed game means it is
        already up to date

    Raises:
        MalformedVersion: If ``installed`` is a string that cannot be parsed
    """
    known = list(descriptors)
    latest = latest_version(known)

    if installed is None:
        logger.info("full_install_required", latest=str(latest) if latest else None)
        return PatchResolution(
            installed=None,
            latest=latest,
            chain=(),
            full_install_required=True,
        )

    current = parse_version(installed)
    chain = select_patches(current, known)

    logger.info(
        "patch_chain_resolved",
        installed=str(current),
        latest=str(latest) if latest else None,
        patches=len(chain),
    )
    return PatchResolution(
        installed=current,
        latest=latest,
        chain=chain,
        full_install_required=False,
    )
