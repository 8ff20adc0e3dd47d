"""Detection of the installed game version.

The version recorded in ``Game/Bin/Default.ini`` wins. Installations that
lack the ini file fall back to the FileVersion resource of the game
executable.
"""

from __future__ import annotations

import configparser
from pathlib import Path

import pefile
import structlog

from game_updater.core.errors import UpdaterError
from game_updater.core.version import Version

logger = structlog.get_logger()

GAME_INI_PATH = Path("Game") / "Bin" / "Default.ini"
GAME_EXE_PATH = Path("Game") / "Bin" / "TS4_x64.exe"


def _read_ini_version(ini_path: Path) -> Version:
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    try:
        with open(ini_path, encoding="utf-8-sig") as f:
            parser.read_file(f)
    except (OSError, configparser.Error, UnicodeDecodeError) as e:
        raise UpdaterError(f"Cannot read {ini_path}: {e}") from e

    text = parser.get("Version", "gameversion", fallback=None)
    if not text:
        raise UpdaterError(f"{ini_path} has no [Version] gameversion entry")
    return Version.parse(text)


def _string_file_version(pe: pefile.PE) -> str | None:
    for info in getattr(pe, "FileInfo", []):
        for entry in info:
            if getattr(entry, "Key", b"") != b"StringFileInfo":
                continue
            for table in entry.StringTable:
                value = table.entries.get(b"FileVersion")
                if value:
                    return value.decode("utf-8", "replace").strip()
    return None


def _fixed_file_version(pe: pefile.PE) -> str | None:
    fixed = getattr(pe, "VS_FIXEDFILEINFO", None)
    if not fixed:
        return None
    ms, ls = fixed[0].FileVersionMS, fixed[0].FileVersionLS
    return f"{ms >> 16}.{ms & 0xFFFF}.{ls >> 16}.{ls & 0xFFFF}"


def read_exe_version(exe_path: Path) -> Version:
    """Read the FileVersion resource of a Windows executable.

    The string table entry is preferred; the fixed file info is used when
    the executable has no string table.

    Raises:
        UpdaterError: If the file is not a PE image or has no version resource
        MalformedVersion: If the recorded version cannot be parsed
    """
    try:
        pe = pefile.PE(str(exe_path), fast_load=True)
    except (OSError, pefile.PEFormatError) as e:
        raise UpdaterError(f"Cannot read {exe_path}: {e}") from e

    try:
        pe.parse_data_directories(
            directories=[pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_RESOURCE"]]
        )
        text = _string_file_version(pe) or _fixed_file_version(pe)
    finally:
        pe.close()

    if not text:
        raise UpdaterError(f"{exe_path} has no FileVersion resource")
    # Windows builds sometimes write "1, 2, 0, 0".
    return Version.parse(text.replace(",", ".").replace(" ", ""))


def detect_game_version(install_dir: Path) -> Version | None:
    """Read the installed version of the game under ``install_dir``.

    Args:
        install_dir: Game installation root

    Returns:
        Installed version, or None if the game is not installed

    Raises:
        UpdaterError: If the ini file or executable has no readable version
        MalformedVersion: If the recorded version cannot be parsed
    """
    ini_path = install_dir / GAME_INI_PATH
    exe_path = install_dir / GAME_EXE_PATH

    if ini_path.is_file():
        version = _read_ini_version(ini_path)
        source = ini_path
    elif exe_path.is_file():
        logger.info("game_ini_missing", path=str(ini_path), fallback=str(exe_path))
        version = read_exe_version(exe_path)
        source = exe_path
    else:
        logger.debug("game_not_found", path=str(install_dir))
        return None

    logger.debug("game_version_detected", version=str(version), source=str(source))
    return version
