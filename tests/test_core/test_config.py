"""Tests for config.py module."""

import json
from pathlib import Path

import pytest

from game_updater.core.config import UpdaterConfig


class TestUpdaterConfig:
    """Test UpdaterConfig class."""

    def test_default_values(self):
        """Test default configuration values."""
        config = UpdaterConfig()

        assert config.install_dir == Path.cwd()
        assert config.temp_dir_name == "_Temp"
        assert config.cache_file == "crc_caches.txt"
        assert config.manifest_url is None
        assert config.http_timeout == 60.0
        assert config.progress_interval == 10.0
        assert config.delta_tool == "xdelta3"
        assert config.chunk_size == 1024 * 1024  # 1MB
        assert config.output_format == "rich"
        assert config.log_level == "INFO"

    def test_derived_paths(self):
        """Test temp and cache paths hang off the install directory."""
        config = UpdaterConfig(install_dir=Path("/games/sims4"))

        assert config.temp_dir == Path("/games/sims4/_Temp")
        assert config.cache_path == Path("/games/sims4/crc_caches.txt")

    def test_absolute_cache_file(self):
        """Test an absolute cache file is used as-is."""
        config = UpdaterConfig(install_dir=Path("/games/sims4"), cache_file="/var/cache/crc.txt")
        assert config.cache_path == Path("/var/cache/crc.txt")

    def test_output_format_validation(self):
        """Test output format validation."""
        for output_format in ["rich", "json", "plain"]:
            UpdaterConfig(output_format=output_format)

        with pytest.raises(ValueError, match="Invalid output format"):
            UpdaterConfig(output_format="xml")

    def test_log_level_validation(self):
        """Test log level validation."""
        UpdaterConfig(log_level="DEBUG")

        with pytest.raises(ValueError, match="Invalid log level"):
            UpdaterConfig(log_level="verbose")

    @pytest.mark.parametrize("field", ["http_timeout", "progress_interval"])
    def test_positive_seconds(self, field):
        """Test timeouts and intervals must be positive."""
        with pytest.raises(ValueError):
            UpdaterConfig(**{field: 0})

    def test_chunk_size_validation(self):
        """Test hashing window must be positive."""
        with pytest.raises(ValueError):
            UpdaterConfig(chunk_size=0)

    @pytest.mark.parametrize("field", ["temp_dir_name", "cache_file", "delta_tool"])
    def test_names_not_empty(self, field):
        """Test required names cannot be blank."""
        with pytest.raises(ValueError):
            UpdaterConfig(**{field: "  "})


class TestConfigPersistence:
    """Test loading and saving configuration files."""

    def test_load_missing_file_gives_defaults(self, temp_dir):
        """Test a missing config file falls back to defaults."""
        config = UpdaterConfig.load(temp_dir / "absent.json")
        assert config.delta_tool == "xdelta3"

    def test_save_and_load(self, temp_dir):
        """Test saved configuration loads back."""
        config_file = temp_dir / "nested" / "config.json"
        original = UpdaterConfig(
            install_dir=temp_dir / "game",
            manifest_url="https://example.com/manifest.json",
            delta_tool="/opt/xdelta3",
            output_format="json",
        )
        original.save(config_file)

        data = json.loads(config_file.read_text())
        assert data["manifest_url"] == "https://example.com/manifest.json"

        loaded = UpdaterConfig.load(config_file)
        assert loaded == original

    def test_load_invalid_values(self, temp_dir):
        """Test invalid values in the file are rejected."""
        config_file = temp_dir / "config.json"
        config_file.write_text(json.dumps({"chunk_size": -1}))

        with pytest.raises(ValueError):
            UpdaterConfig.load(config_file)
