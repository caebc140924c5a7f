"""
scribeline.config - YAML config loading and validation.

Handles loading scribeline.yaml, validating the whisper settings and the
optional remote server block, and exposing them to the transcription
pipeline through a config provider that re-reads the file for every job.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from scribeline.exceptions import ConfigurationError

CONFIG_FILENAME = "scribeline.yaml"


class TranscriptionSettings(BaseModel):
    """Whisper decoding settings for a single transcription job.

    Numeric settings left as None fall back to the engine's own defaults
    and are not passed on the command line.
    """

    model_config = ConfigDict(frozen=True)

    model: str = "base"
    language: str = "auto"
    threads: int | None = Field(default=None, gt=0)
    processors: int | None = Field(default=None, gt=0)
    max_context: int | None = Field(default=None, ge=-1)
    max_len: int | None = Field(default=None, ge=0)
    split_on_word: bool = False
    best_of: int | None = Field(default=None, gt=0)
    beam_size: int | None = Field(default=None, ge=-1)
    audio_ctx: int | None = Field(default=None, ge=0)
    word_thold: float | None = None
    entropy_thold: float | None = None
    logprob_thold: float | None = None
    translate: bool = False
    diarize: bool = False
    no_fallback: bool = False

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("language must be a language code or 'auto'")
        return v


class RemoteTranscriptionConfig(BaseModel):
    """Connection settings for a remote Whisper server."""

    model_config = ConfigDict(frozen=True)

    server_url: str
    auth_token: str | None = None
    timeout: int = Field(default=300_000, gt=0, description="Request timeout in milliseconds")

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("server_url must start with http:// or https://")
        return v

    @field_validator("auth_token")
    @classmethod
    def empty_token_is_none(cls, v: str | None) -> str | None:
        return v or None


class ScribelineConfig(BaseModel):
    """Resolved configuration for Scribeline."""

    whisper: TranscriptionSettings = Field(default_factory=TranscriptionSettings)
    remote_whisper: RemoteTranscriptionConfig | None = None
    use_remote_whisper: bool = False

    whisper_executable: str = "whisper-cli"
    models_dir: Path = Path("models")

    config_path: Path | None = None


class ConfigProvider(Protocol):
    """Source of configuration, resolved fresh for every job."""

    def get_settings(self) -> ScribelineConfig: ...


class YamlConfigProvider:
    """Config provider that reads scribeline.yaml on every call."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def get_settings(self) -> ScribelineConfig:
        return load_config(self.path)


class StaticConfigProvider:
    """Config provider wrapping an already-built config."""

    def __init__(self, config: ScribelineConfig) -> None:
        self.config = config

    def get_settings(self) -> ScribelineConfig:
        return self.config


def find_config_file(start: Path | None = None) -> Path | None:
    """Find scribeline.yaml in the given directory or one of its parents."""
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        if current == current.parent:
            return None
        current = current.parent


def load_config(path: Path) -> ScribelineConfig:
    """Load and validate configuration from a YAML file.

    Relative ``models_dir`` values are resolved against the config file's
    directory.

    Raises:
        ConfigurationError: If the file is missing, unparsable, or invalid
    """
    if not path.exists():
        raise ConfigurationError(f"No {CONFIG_FILENAME} found at {path}")

    try:
        with open(path) as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")

    raw_config["config_path"] = path

    try:
        config = ScribelineConfig(**raw_config)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e

    if not config.models_dir.is_absolute():
        config = config.model_copy(update={"models_dir": path.parent / config.models_dir})
    return config


def create_default_config(model: str = "base", language: str = "auto") -> dict[str, Any]:
    """Create a default config dict for a new setup."""
    return {
        "use_remote_whisper": False,
        "whisper_executable": "whisper-cli",
        "models_dir": "models",
        "whisper": {
            "model": model,
            "language": language,
            "threads": 4,
            "processors": 1,
            "split_on_word": False,
            "translate": False,
            "diarize": False,
            "no_fallback": False,
        },
        "remote_whisper": None,
    }


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
