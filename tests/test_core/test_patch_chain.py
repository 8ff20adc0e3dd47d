"""Tests for game_updater.core.patch_chain module."""

import pytest

from game_updater.core.errors import MalformedVersion
from game_updater.core.patch_chain import (
    latest_version,
    resolve_patch_chain,
    select_patches,
)
from game_updater.core.types import PatchDescriptor
from game_updater.core.version import Version


def _patch(from_version: str, to_version: str, size: int = 100) -> PatchDescriptor:
    return PatchDescriptor(
        from_version=from_version,
        to_version=to_version,
        payload_refs=(f"https://example.com/{to_version}.zip",),
        compressed_size=size,
        uncompressed_size=size,
    )


@pytest.fixture
def manifest_patches() -> list[PatchDescriptor]:
    return [
        _patch("1.0.0.0", "1.1.0.0"),
        _patch("1.1.0.0", "1.2.0.0"),
        _patch("1.2.0.0", "1.3.0.0"),
    ]


class TestPatchDescriptor:
    """Test PatchDescriptor model."""

    def test_versions_parsed_from_strings(self):
        """Test version strings are parsed."""
        patch = _patch("1.0.0.0", "1.1.0.0")
        assert patch.from_version == Version.parse("1.0.0.0")
        assert patch.label == "1.0.0.0 -> 1.1.0.0"

    def test_invalid_version_rejected(self):
        """Test a malformed version fails model validation."""
        with pytest.raises(ValueError):
            _patch("1.x", "1.1")

    def test_frozen(self):
        """Test descriptors are read-only."""
        patch = _patch("1.0", "1.1")
        with pytest.raises(ValueError):
            patch.compressed_size = 5


class TestResolvePatchChain:
    """Test resolve_patch_chain."""

    def test_selects_patches_from_installed_version(self, manifest_patches):
        """Test the documented end-to-end scenario."""
        resolution = resolve_patch_chain("1.2.0.0", manifest_patches)

        assert [p.label for p in resolution.chain] == ["1.2.0.0 -> 1.3.0.0"]
        assert resolution.latest == Version.parse("1.3.0.0")
        assert resolution.full_install_required is False
        assert resolution.up_to_date is False

    def test_older_install_gets_every_later_patch(self, manifest_patches):
        """Test an old install selects all forward patches in order."""
        resolution = resolve_patch_chain("1.0.0.0", manifest_patches)
        assert [str(p.from_version) for p in resolution.chain] == [
            "1.0.0.0", "1.1.0.0", "1.2.0.0"
        ]

    def test_up_to_date(self, manifest_patches):
        """Test that no applicable patch means up to date, not an error."""
        resolution = resolve_patch_chain("1.3.0.0", manifest_patches)
        assert resolution.chain == ()
        assert resolution.up_to_date is True
        assert resolution.latest == Version.parse("1.3.0.0")

    def test_not_installed_bypasses_selection(self, manifest_patches):
        """Test a missing installation selects the full install path."""
        resolution = resolve_patch_chain(None, manifest_patches)
        assert resolution.full_install_required is True
        assert resolution.chain == ()
        assert resolution.up_to_date is False
        assert resolution.latest == Version.parse("1.3.0.0")

    def test_sorted_by_from_version(self):
        """Test the chain is ordered numerically regardless of manifest order."""
        patches = [
            _patch("1.10.0.0", "1.11.0.0"),
            _patch("1.2.0.0", "1.3.0.0"),
            _patch("1.9.0.0", "1.10.0.0"),
        ]
        resolution = resolve_patch_chain("1.0.0.0", patches)
        assert [str(p.from_version) for p in resolution.chain] == [
            "1.2.0.0", "1.9.0.0", "1.10.0.0"
        ]
        for current, following in zip(resolution.chain, resolution.chain[1:]):
            assert current.from_version <= following.from_version

    def test_latest_over_all_descriptors(self):
        """Test latest ignores whether the install qualifies for a patch."""
        patches = [_patch("1.0", "1.1"), _patch("1.1", "1.2")]
        resolution = resolve_patch_chain("5.0", patches)
        assert resolution.chain == ()
        assert resolution.latest == Version.parse("1.2")

    def test_idempotent(self, manifest_patches):
        """Test resolving twice gives the same chain."""
        first = resolve_patch_chain("1.1.0.0", manifest_patches)
        second = resolve_patch_chain("1.1.0.0", manifest_patches)
        assert first == second

    def test_contiguity_not_checked(self):
        """Test gaps in the manifest are selected as listed."""
        patches = [_patch("1.0", "1.1"), _patch("1.5", "1.6")]
        resolution = resolve_patch_chain("1.0", patches)
        assert [p.label for p in resolution.chain] == ["1.0 -> 1.1", "1.5 -> 1.6"]

    def test_download_size(self, manifest_patches):
        """Test download size sums the selected patches."""
        resolution = resolve_patch_chain("1.1.0.0", manifest_patches)
        assert resolution.download_size == 200

    def test_malformed_installed_version(self, manifest_patches):
        """Test an unparseable installed version raises."""
        with pytest.raises(MalformedVersion):
            resolve_patch_chain("not-a-version", manifest_patches)

    def test_empty_manifest(self):
        """Test resolution with no known patches."""
        resolution = resolve_patch_chain("1.0", [])
        assert resolution.chain == ()
        assert resolution.latest is None


class TestHelpers:
    """Test select_patches and latest_version."""

    def test_select_is_stable_for_equal_from_versions(self):
        """Test equal from_versions keep manifest order."""
        a = _patch("1.0", "1.1", size=1)
        b = _patch("1.0", "1.2", size=2)
        assert select_patches(Version.parse("1.0"), [a, b]) == (a, b)

    def test_latest_version_empty(self):
        """Test latest_version of nothing."""
        assert latest_version([]) is None
