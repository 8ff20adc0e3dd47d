"""Configuration management for game-updater."""

from __future__ import annotations

import json
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationInfo, field_validator

logger = structlog.get_logger()

DEFAULT_CONFIG_FILE = Path.home() / ".config" / "game-updater" / "config.json"

_CHOICES = {
    "output_format": ("rich", "json", "plain"),
    "log_level": ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
}


class UpdaterConfig(BaseModel):
    """Updater configuration."""

    # Installation settings
    install_dir: Path = Field(
        default_factory=Path.cwd,
        description="Game installation directory"
    )
    temp_dir_name: str = Field(
        default="_Temp",
        description="Directory under install_dir for extracted patch payloads"
    )
    cache_file: str = Field(
        default="crc_caches.txt",
        description="Checksum cache file, relative to install_dir unless absolute"
    )

    # Manifest settings
    manifest_url: str | None = Field(
        default=None,
        description="URL of the main manifest document"
    )
    http_timeout: float = Field(default=60.0, description="HTTP request timeout in seconds")
    progress_interval: float = Field(
        default=10.0,
        description="Seconds between download progress log lines"
    )

    # Patch application settings
    delta_tool: str = Field(
        default="xdelta3",
        description="Binary-diff tool executable"
    )
    chunk_size: int = Field(
        default=1024 * 1024,
        description="Checksum hashing window in bytes"
    )

    # Output settings
    output_format: str = Field(
        default="rich",
        description="Output format (rich, json, plain)"
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    @property
    def temp_dir(self) -> Path:
        return self.install_dir / self.temp_dir_name

    @property
    def cache_path(self) -> Path:
        path = Path(self.cache_file)
        if path.is_absolute():
            return path
        return self.install_dir / path

    @classmethod
    def load(cls, config_file: Path | None = None) -> UpdaterConfig:
        """Read ``config_file`` (the per-user file when None).

        A file that does not exist yields the defaults; a file with invalid
        values raises ``ValueError``.
        """
        path = config_file or DEFAULT_CONFIG_FILE
        if not path.is_file():
            logger.debug("config_defaults", path=str(path))
            return cls()
        return cls.model_validate(json.loads(path.read_text(encoding="utf-8")))

    def save(self, config_file: Path | None = None) -> None:
        path = config_file or DEFAULT_CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        logger.info("config_saved", path=str(path))

    @field_validator("output_format", "log_level")
    @classmethod
    def validate_choice(cls, v: str, info: ValidationInfo) -> str:
        """Restrict output format and log level to the known names."""
        choices = _CHOICES[info.field_name]
        if v not in choices:
            label = info.field_name.replace("_", " ")
            raise ValueError(f"Invalid {label}: {v} (expected one of {', '.join(choices)})")
        return v

    @field_validator("http_timeout", "progress_interval")
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        """Validate timeouts and intervals."""
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Validate hashing window size."""
        if v <= 0:
            raise ValueError("Chunk size must be positive")
        return v

    @field_validator("temp_dir_name", "cache_file", "delta_tool")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Validate required names."""
        if not v.strip():
            raise ValueError("Value cannot be empty")
        return v
