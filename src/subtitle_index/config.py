"""Configuration loading for subtitle-index.

Settings come from the environment (optionally seeded from a ``.env`` file)
and are frozen into a single ``IndexerConfig`` value that every pipeline
stage receives explicitly.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from subtitle_index.errors import ConfigurationError
from subtitle_index.ffmpeg_binary import FFmpegConfig

DEFAULT_CONVERSATION_GAP_SECONDS = 1.5

_TRUE_VALUES = {"1", "true", "yes", "on"}


def split_library_list(value: str | None) -> tuple[str, ...]:
    """Split a comma-separated library list, dropping empty entries."""
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


class IndexerConfig(BaseModel):
    """Immutable settings for one indexing run."""

    model_config = ConfigDict(frozen=True)

    # All library paths are relative to this directory
    root_directory: Path = Path(".")
    default_libraries: tuple[str, ...] = ()
    nondefault_libraries: tuple[str, ...] = ()
    # Skip first-run discovery of libraries under the root
    skip_setup: bool = False
    database_path: Path = Path("./data/subtitles.db")
    # Used by the static asset server, not by the indexer
    output_directory: Path = Path("./data/output")
    api_port: int | None = None
    conversation_gap_seconds: float = Field(default=DEFAULT_CONVERSATION_GAP_SECONDS, ge=0.0)
    probe_timeout: float = Field(default=30.0, gt=0.0)
    demux_timeout: float = Field(default=300.0, gt=0.0)
    existence_check_workers: int = Field(default=8, ge=1)
    ffmpeg: FFmpegConfig = Field(default_factory=FFmpegConfig)

    @field_validator("default_libraries", "nondefault_libraries", mode="before")
    @classmethod
    def _split_lists(cls, value):
        if isinstance(value, str):
            return split_library_list(value)
        return value

    @property
    def has_explicit_libraries(self) -> bool:
        """True when library lists are configured rather than discovered."""
        return bool(self.default_libraries or self.nondefault_libraries)

    @property
    def configured_libraries(self) -> tuple[str, ...]:
        return self.default_libraries + self.nondefault_libraries

    def library_root(self, library_path: str) -> Path:
        """Absolute path of a library's directory."""
        return (self.root_directory / library_path).resolve()


# Environment variable -> IndexerConfig field
_ENV_FIELDS = {
    "ROOT_DIRECTORY": "root_directory",
    "DEFAULT_LIBRARIES": "default_libraries",
    "NONDEFAULT_LIBRARIES": "nondefault_libraries",
    "DATABASE_PATH": "database_path",
    "OUTPUT_DIRECTORY": "output_directory",
    "API_PORT": "api_port",
    "CONVERSATION_GAP_SECONDS": "conversation_gap_seconds",
    "PROBE_TIMEOUT": "probe_timeout",
    "DEMUX_TIMEOUT": "demux_timeout",
    "EXISTENCE_CHECK_WORKERS": "existence_check_workers",
}


def config_from_env(environ: Mapping[str, str]) -> IndexerConfig:
    """Build a config from an environment mapping.

    Args:
        environ: Mapping of environment variables

    Returns:
        IndexerConfig

    Raises:
        ConfigurationError: If a value fails validation
    """
    values: dict = {}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = environ.get(env_name)
        if raw is not None and raw != "":
            values[field_name] = raw

    values["skip_setup"] = environ.get("SKIP_SETUP", "").strip().lower() in _TRUE_VALUES

    ffmpeg_values = {}
    if environ.get("FFMPEG_PATH"):
        ffmpeg_values["custom_ffmpeg_path"] = environ["FFMPEG_PATH"]
    if environ.get("FFPROBE_PATH"):
        ffmpeg_values["custom_ffprobe_path"] = environ["FFPROBE_PATH"]
    if ffmpeg_values:
        values["ffmpeg"] = FFmpegConfig(**ffmpeg_values)

    try:
        return IndexerConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(env_file: Path | None = None) -> IndexerConfig:
    """Load configuration from ``.env`` files and the process environment.

    Priority: process environment > explicit env_file > local .env

    Args:
        env_file: Optional extra dotenv file

    Returns:
        IndexerConfig
    """
    if env_file is not None:
        load_dotenv(env_file)
    load_dotenv()
    return config_from_env(os.environ)
