"""Extraction of downloaded zip archives.

Archives split into raw parts (``.001``, ``.002``, ...) are joined into one
file next to the first part before being opened.
"""

from __future__ import annotations

import shutil
import zipfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

import structlog

from game_updater.core.errors import ArchiveError
from game_updater.core.types import PatchEntry

logger = structlog.get_logger()


@contextmanager
def joined_archive(parts: Sequence[Path]) -> Iterator[Path]:
    """Yield a single archive path for ``parts``.

    A single part is yielded as-is. Several parts are concatenated into a
    temporary file that is removed on exit.

    Raises:
        ArchiveError: If no part is given or the parts cannot be joined
    """
    if not parts:
        raise ArchiveError("No archive parts to extract")
    if len(parts) == 1:
        yield parts[0]
        return

    joined = parts[0].with_name(parts[0].name + ".joined")
    try:
        with open(joined, "wb") as out:
            for part in parts:
                with open(part, "rb") as f:
                    shutil.copyfileobj(f, out, 1024 * 1024)
    except OSError as e:
        joined.unlink(missing_ok=True)
        raise ArchiveError(f"Cannot join archive parts of {parts[0].name}: {e}") from e

    try:
        yield joined
    finally:
        joined.unlink(missing_ok=True)


def extract_archive(parts: Sequence[Path], dest_dir: Path) -> list[PatchEntry]:
    """Extract every file of an archive under ``dest_dir``.

    Member paths are kept; ``zipfile`` strips absolute and ``..`` components.

    Args:
        parts: Archive parts, in order
        dest_dir: Extraction root

    Returns:
        One PatchEntry per extracted file, in archive order

    Raises:
        ArchiveError: If the archive is corrupt or cannot be written out
    """
    entries: list[PatchEntry] = []
    with joined_archive(parts) as archive_path:
        try:
            with zipfile.ZipFile(archive_path) as zf:
                for info in zf.infolist():
                    if info.is_dir():
                        continue
                    extracted = Path(zf.extract(info, dest_dir))
                    entries.append(PatchEntry(archive_key=info.filename, payload_path=extracted))
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveError(f"Cannot extract {archive_path.name}: {e}") from e

    logger.info("archive_extracted", archive=parts[0].name, files=len(entries))
    return entries
