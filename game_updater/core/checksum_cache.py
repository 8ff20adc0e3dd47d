"""Persistent checksum cache keyed by file path and modification time.

Each record stores the CRC32 computed for a file together with the file's
modification time in epoch milliseconds. A record is only trusted while the
modification time still matches; the verifier recomputes otherwise.

The backing store is a flat text file, one ``path|modifiedAtMillis|checksumHex``
record per line. It is rewritten in full after every update, using a temp
file and ``os.replace`` so readers never observe a partial write.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

import structlog

from game_updater.core.errors import CachePersistenceError
from game_updater.core.types import ChecksumRecord

logger = structlog.get_logger()

CACHE_FILENAME = "crc_caches.txt"


def parse_record_line(line: str) -> ChecksumRecord | None:
    """Parse one store line, returning None when it is malformed.

    The path is everything before the last two separators, so paths that
    contain ``|`` survive a round trip.
    """
    parts = line.rstrip("\r\n").rsplit("|", 2)
    if len(parts) != 3 or not parts[0]:
        return None

    path, modified_text, checksum_text = parts
    try:
        modified_at = int(modified_text)
        checksum = int(checksum_text, 16)
    except ValueError:
        return None

    if not 0 <= checksum <= 0xFFFFFFFF:
        return None
    return ChecksumRecord(path=path, checksum=checksum, modified_at=modified_at)


class ChecksumStore(Protocol):
    """Persistence backend for the checksum cache."""

    def load(self) -> list[ChecksumRecord]:
        """Return all persisted records.

        Raises:
            CachePersistenceError: If the backing storage cannot be read
        """
        ...

    def save(self, records: Iterable[ChecksumRecord]) -> None:
        """Replace the persisted records with ``records``.

        Raises:
            CachePersistenceError: If the backing storage cannot be written
        """
        ...


class FileChecksumStore:
    """Line-oriented checksum store on disk."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> list[ChecksumRecord]:
        if not self.path.exists():
            return []

        try:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise CachePersistenceError(f"Cannot read {self.path}: {e}") from e

        records: list[ChecksumRecord] = []
        skipped = 0
        for line in lines:
            record = parse_record_line(line)
            if record is None:
                skipped += 1
                continue
            records.append(record)

        if skipped:
            logger.debug("checksum_cache_lines_skipped", path=str(self.path), skipped=skipped)
        return records

    def save(self, records: Iterable[ChecksumRecord]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8", newline="\n") as f:
                for record in records:
                    f.write(record.to_line())
                    f.write("\n")
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise CachePersistenceError(f"Cannot write {self.path}: {e}") from e


class MemoryChecksumStore:
    """In-memory checksum store, used when no cache file is configured."""

    def __init__(self, records: Iterable[ChecksumRecord] = ()):
        self.records: list[ChecksumRecord] = list(records)
        self.save_count = 0

    def load(self) -> list[ChecksumRecord]:
        return list(self.records)

    def save(self, records: Iterable[ChecksumRecord]) -> None:
        self.records = list(records)
        self.save_count += 1


class ChecksumCache:
    """Concurrent checksum cache with write-through persistence.

    The in-memory table may be read and written from several verification
    threads at once. Persistence is serialized by a separate lock so that
    only one full rewrite of the store runs at a time.

    Args:
        store: Persistence backend, in-memory when omitted
    """

    def __init__(self, store: ChecksumStore | None = None):
        self.store: ChecksumStore = store if store is not None else MemoryChecksumStore()
        self._records: dict[str, ChecksumRecord] = {}
        self._table_lock = threading.Lock()
        self._store_lock = threading.Lock()
        self.load()

    @classmethod
    def from_file(cls, path: Path) -> ChecksumCache:
        """Create a cache backed by the line store at ``path``."""
        return cls(FileChecksumStore(path))

    def load(self) -> int:
        """(Re)load records from the store.

        Failures are logged and leave the cache empty.

        Returns:
            Number of records loaded
        """
        with self._store_lock:
            try:
                records = self.store.load()
            except CachePersistenceError as e:
                logger.warning("checksum_cache_load_failed", error=str(e))
                records = []

        with self._table_lock:
            self._records = {record.path: record for record in records}
            count = len(self._records)

        logger.debug("checksum_cache_loaded", records=count)
        return count

    def lookup(self, path: Path | str) -> ChecksumRecord | None:
        """Return the cached record for ``path``, if any."""
        with self._table_lock:
            return self._records.get(str(path))

    def record(self, path: Path | str, checksum: int, modified_at: int) -> ChecksumRecord:
        """Store a checksum and persist the whole cache.

        Args:
            path: File identity
            checksum: Actual CRC32 of the file
            modified_at: File modification time in epoch milliseconds

        Returns:
            The stored record
        """
        entry = ChecksumRecord(path=str(path), checksum=checksum, modified_at=modified_at)
        with self._table_lock:
            self._records[entry.path] = entry
        self.save()
        return entry

    def save(self) -> bool:
        """Rewrite the backing store with every cached record.

        Returns:
            True if the store was written, False if persistence failed
        """
        with self._store_lock:
            with self._table_lock:
                snapshot = list(self._records.values())
            try:
                self.store.save(snapshot)
            except CachePersistenceError as e:
                logger.warning("checksum_cache_save_failed", error=str(e))
                return False
        return True

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._records)

    def __contains__(self, path: object) -> bool:
        with self._table_lock:
            return str(path) in self._records
