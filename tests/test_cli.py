"""Integration tests for the main CLI entry point."""

from __future__ import annotations

import json
import re
from pathlib import Path

from click.testing import CliRunner

from game_updater.__main__ import main


class TestMainCLI:
    """Test main CLI functionality."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_main_help(self) -> None:
        """Test main help command loads correctly."""
        result = self.runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Incremental game updater" in result.output
        assert "Commands:" in result.output
        for command in ["resolve", "update", "verify", "version"]:
            assert command in result.output

    def test_version_option(self) -> None:
        """Test --version option."""
        result = self.runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_version_command(self) -> None:
        """Test version command."""
        result = self.runner.invoke(main, ["version"])
        assert result.exit_code == 0
        # Remove ANSI color codes for testing
        clean_output = re.sub(r'\x1b\[[0-9;]*m', '', result.output)
        assert "game-updater 0.1.0" in clean_output

    def test_version_command_verbose(self) -> None:
        """Test version command with verbose flag."""
        result = self.runner.invoke(main, ["--verbose", "--output", "plain", "version"])
        assert result.exit_code == 0
        assert "Python" in result.output
        assert "Platform:" in result.output

    def test_version_command_json_output(self) -> None:
        """Test version command with JSON output."""
        result = self.runner.invoke(main, ["--output", "json", "version"])
        assert result.exit_code == 0

        json_output = json.loads(result.stdout.strip())
        assert json_output["name"] == "game-updater"
        assert json_output["version"] == "0.1.0"
        assert "python_version" in json_output

    def test_debug_flag(self) -> None:
        """Test debug flag is accepted."""
        result = self.runner.invoke(main, ["--debug", "version"])
        assert result.exit_code == 0

    def test_invalid_output_format(self) -> None:
        """Test unknown output formats are rejected."""
        result = self.runner.invoke(main, ["--output", "xml", "version"])
        assert result.exit_code != 0

    def test_config_file(self, temp_dir: Path) -> None:
        """Test the configuration file is loaded."""
        config_file = temp_dir / "config.json"
        config_file.write_text(json.dumps({"delta_tool": "/opt/xdelta3"}))

        result = self.runner.invoke(main, ["--config", str(config_file), "version"])
        assert result.exit_code == 0

    def test_invalid_config_file(self, temp_dir: Path) -> None:
        """Test an invalid configuration file aborts."""
        config_file = temp_dir / "config.json"
        config_file.write_text(json.dumps({"chunk_size": 0}))

        result = self.runner.invoke(main, ["--config", str(config_file), "version"])
        assert result.exit_code == 1

    def test_install_dir_override(
        self, temp_dir: Path, manifest_files: tuple[Path, Path], write_game_version
    ) -> None:
        """Test --install-dir selects the installation that is resolved."""
        write_game_version(temp_dir / "elsewhere", "1.1.0.0")
        config_file = temp_dir / "config.json"
        config_file.write_text("{}")

        result = self.runner.invoke(main, [
            "--config", str(config_file),
            "--install-dir", str(temp_dir / "elsewhere"),
            "--output", "json",
            "resolve",
            "--manifest-file", str(manifest_files[0]),
            "--metadata-file", str(manifest_files[1]),
        ])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["installed"] == "1.1.0.0"
