"""Tests for game_updater.formats.checksum_list module."""

import io
import zipfile
import zlib
from pathlib import Path

import pytest

from game_updater.formats.checksum_list import (
    CENTRAL_HEADER,
    CENTRAL_SIGNATURE,
    ChecksumList,
    ChecksumListEntry,
    ChecksumListParser,
)


def _zip_bytes(members: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return buffer.getvalue()


class TestChecksumListParser:
    """Test ChecksumListParser."""

    def test_parse_whole_archive(self):
        """Test CRCs are read from a complete zip archive."""
        members = {
            "Data/Client/ClientFullBuild0.package": b"client data" * 50,
            "Game/Bin/TS4_x64.exe": b"executable",
        }
        result = ChecksumListParser().parse(_zip_bytes(members))

        assert [e.name for e in result.entries] == list(members)
        for entry, data in zip(result.entries, members.values()):
            assert entry.crc32 == zlib.crc32(data) & 0xFFFFFFFF
            assert entry.size == len(data)

    def test_parse_central_directory_only(self):
        """Test a blob that starts at the central directory."""
        data = _zip_bytes({"a.bin": b"a", "b.bin": b"b"})
        central = data[data.find(CENTRAL_SIGNATURE):]

        result = ChecksumListParser().parse(central)
        assert [e.name for e in result.entries] == ["a.bin", "b.bin"]

    def test_directories_skipped(self):
        """Test directory records are not listed."""
        data = _zip_bytes({"Data/": b"", "Data/a.bin": b"a"})
        result = ChecksumListParser().parse(data)
        assert [e.name for e in result.entries] == ["Data/a.bin"]

    def test_build_then_parse(self):
        """Test built lists parse back, including non-ASCII names."""
        original = ChecksumList(entries=[
            ChecksumListEntry(name="Data/Simulation/SimulationFullBuild0.package", crc32=0xDEADBEEF, size=12),
            ChecksumListEntry(name="Delta/EP01/Straße.package", crc32=1, size=0),
        ])
        parser = ChecksumListParser()
        assert parser.parse(parser.build(original)) == original

    def test_parse_stream(self):
        """Test parsing from a binary stream."""
        data = ChecksumListParser().build(ChecksumList(entries=[
            ChecksumListEntry(name="a.bin", crc32=7, size=1)
        ]))
        assert ChecksumListParser().parse(io.BytesIO(data)).entries[0].crc32 == 7

    def test_parse_file(self, temp_dir):
        """Test parsing from a file on disk."""
        path = temp_dir / "list.bin"
        path.write_bytes(_zip_bytes({"a.bin": b"a"}))
        assert ChecksumListParser().parse_file(str(path)).entries[0].name == "a.bin"

    def test_backslash_names_normalised(self):
        """Test Windows separators become forward slashes."""
        data = ChecksumListParser().build(ChecksumList(entries=[
            ChecksumListEntry(name="Game\\Bin\\TS4_x64.exe", crc32=1)
        ]))
        assert ChecksumListParser().parse(data).entries[0].name == "Game/Bin/TS4_x64.exe"

    def test_no_records(self):
        """Test data without a central directory is rejected."""
        with pytest.raises(ValueError, match="No central directory"):
            ChecksumListParser().parse(b"not a checksum list")

    def test_truncated_record(self):
        """Test a truncated record is rejected."""
        data = ChecksumListParser().build(ChecksumList(entries=[
            ChecksumListEntry(name="a.bin", crc32=1)
        ]))
        with pytest.raises(ValueError, match="Truncated"):
            ChecksumListParser().parse(data[:CENTRAL_HEADER.size - 4])

    def test_truncated_name(self):
        """Test a record whose name runs past the data is rejected."""
        data = ChecksumListParser().build(ChecksumList(entries=[
            ChecksumListEntry(name="a-long-file-name.bin", crc32=1)
        ]))
        with pytest.raises(ValueError, match="Truncated file name"):
            ChecksumListParser().parse(data[:CENTRAL_HEADER.size + 3])


class TestToExpectations:
    """Test ChecksumList.to_expectations."""

    def test_paths_under_base_dir(self):
        """Test expectations resolve names under the installation root."""
        checksum_list = ChecksumList(entries=[
            ChecksumListEntry(name="EP01/a.package", crc32=5),
        ])
        expectations = checksum_list.to_expectations(Path("/games/sims4"))

        assert expectations[0].path == Path("/games/sims4/EP01/a.package")
        assert expectations[0].expected_checksum == 5
