"""Pytest configuration and shared fixtures for game_updater tests."""

import base64
import json
import tempfile
import zipfile
import zlib
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from game_updater.core.config import UpdaterConfig
from game_updater.formats.checksum_list import (
    ChecksumList,
    ChecksumListEntry,
    ChecksumListParser,
)

DLC_FILES = {
    "EP01/ClientFullBuild0.package": b"expansion pack one",
    "EP01/ClientDeltaBuild0.package": b"expansion pack one delta",
}


def crc32(data: bytes) -> int:
    """Unsigned CRC32 helper for building expectations."""
    return zlib.crc32(data) & 0xFFFFFFFF


def checksum_blob(files: dict[str, bytes]) -> str:
    """Base64 checksum list describing ``files``."""
    checksum_list = ChecksumList(entries=[
        ChecksumListEntry(name=name, crc32=crc32(data), size=len(data))
        for name, data in files.items()
    ])
    return base64.b64encode(ChecksumListParser().build(checksum_list)).decode("ascii")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def make_zip() -> Callable[[Path, dict[str, bytes]], Path]:
    """Factory writing a zip archive with the given members."""
    def _make(path: Path, members: dict[str, bytes]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            for name, data in members.items():
                zf.writestr(name, data)
        return path
    return _make


@pytest.fixture
def sample_main_document() -> dict[str, Any]:
    """Main manifest document with base sections, a DLC and three patches."""
    return {
        "metadata": "https://example.com/metadata.json",
        "links": {
            "Base Game 1": [1000, ["https://example.com/base/base.zip"]],
            "Full Patch 1": [1000, ["https://example.com/base/full.zip"]],
            "Extra tools 1": [1000, ["https://example.com/base/tools.zip"]],
            "DLC EP01 Get to Work 2": [1000, ["https://example.com/dlc/ep01.zip"]],
            "Patch 1.1.0.0 from 1.0.0.0": [100, [["https://example.com/p/p110.zip.001",
                                                  "https://example.com/p/p110.zip.002"]]],
            "Patch 1.2.0.0 from 1.1.0.0": [100, [["https://example.com/p/p120.zip"]]],
            "Patch 1.3.0.0 from 1.2.0.0": [100, [["https://example.com/p/p130.zip"]]],
        },
    }


@pytest.fixture
def sample_metadata_document() -> dict[str, Any]:
    """Metadata document matching ``sample_main_document``."""
    return {
        "Base Game 1": [500, None, checksum_blob({"Game/Bin/TS4_x64.exe": b"base"})],
        "Full Patch 1": [500, None],
        "Extra tools 1": [500, None],
        "DLC EP01 Get to Work 2": [700, None, checksum_blob(DLC_FILES)],
        "Patch 1.1.0.0 from 1.0.0.0": [150, None],
        "Patch 1.2.0.0 from 1.1.0.0": [80, None],
        "Patch 1.3.0.0 from 1.2.0.0": [90, None],
    }


@pytest.fixture
def dlc_files() -> dict[str, bytes]:
    """Installed contents of the sample DLC section."""
    return dict(DLC_FILES)


@pytest.fixture
def sample_config(temp_dir: Path) -> UpdaterConfig:
    """Updater configuration rooted in a temporary installation directory."""
    return UpdaterConfig(install_dir=temp_dir)


@pytest.fixture
def manifest_files(
    temp_dir: Path,
    sample_main_document: dict[str, Any],
    sample_metadata_document: dict[str, Any],
) -> tuple[Path, Path]:
    """Sample manifest documents written to JSON files."""
    main_path = temp_dir / "manifest" / "main.json"
    metadata_path = temp_dir / "manifest" / "metadata.json"
    main_path.parent.mkdir()
    main_path.write_text(json.dumps(sample_main_document), encoding="utf-8")
    metadata_path.write_text(json.dumps(sample_metadata_document), encoding="utf-8")
    return main_path, metadata_path


@pytest.fixture
def cli_config_file(temp_dir: Path) -> Path:
    """Configuration file pointing the CLI at ``<temp_dir>/game``."""
    install_dir = temp_dir / "game"
    install_dir.mkdir()
    config_file = temp_dir / "config.json"
    config_file.write_text(json.dumps({"install_dir": str(install_dir)}), encoding="utf-8")
    return config_file


@pytest.fixture
def write_game_version() -> Callable[[Path, str], Path]:
    """Factory writing ``Game/Bin/Default.ini`` recording a version."""
    def _write(install_dir: Path, version: str) -> Path:
        ini_path = install_dir / "Game" / "Bin" / "Default.ini"
        ini_path.parent.mkdir(parents=True, exist_ok=True)
        ini_path.write_text(f"[Version]\ngameversion = {version}\n", encoding="utf-8")
        return ini_path
    return _write


# Pytest configuration
def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest settings."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    """Modify test collection to add markers automatically."""
    for item in items:
        # Add unit marker to all tests by default
        if not any(marker.name in ['integration', 'slow'] for marker in item.iter_markers()):
            item.add_marker(pytest.mark.unit)
