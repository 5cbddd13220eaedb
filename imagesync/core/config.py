"""
imagesync configuration.

Loads settings from IMAGESYNC_* environment variables (and an optional .env
file) into a pydantic-settings model. The model is built once by the CLI and
passed down explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from imagesync.core.manifest import DEFAULT_MANIFEST_PATH

ORIGINS = ("source", "target")
DEFAULT_RUN_TIMEOUT_SECONDS = 30 * 60


class SyncConfig(BaseSettings):
    """
    Settings for a synchronization run.
    """

    MANIFEST_PATH: str = Field(default=DEFAULT_MANIFEST_PATH, description="Image manifest path")
    RUN_TIMEOUT_SECONDS: float = Field(
        default=DEFAULT_RUN_TIMEOUT_SECONDS,
        gt=0,
        description="Wall-clock budget shared by every phase of a run (seconds)",
    )
    MAX_WORKERS: int = Field(
        default=1, ge=1, le=32, description="Concurrent registry operations per phase"
    )
    DOCKER_CONFIG: str | None = Field(
        default=None, description="Docker CLI config directory used for credentials"
    )
    DOCKER_HOST_TIMEOUT: float = Field(
        default=120.0, gt=0, description="Per-request Docker daemon socket timeout (seconds)"
    )

    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_FORMAT: Literal["console", "json"] = Field(default="console", description="Log format")

    model_config = SettingsConfigDict(
        env_prefix="IMAGESYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return level


def load_config(**overrides: Any) -> SyncConfig:
    """Build the config from the environment, letting explicit values win."""
    values = {key: value for key, value in overrides.items() if value is not None}
    return SyncConfig(**values)


@dataclass(frozen=True)
class PullRequest:
    """Input for building the desired state of one pull run."""

    origin: str = "source"
    images: tuple[str, ...] = field(default_factory=tuple)
    manifest_path: str = DEFAULT_MANIFEST_PATH

    def __post_init__(self) -> None:
        if self.origin.lower() not in ORIGINS:
            raise ValueError(f"origin must be one of {', '.join(ORIGINS)}: {self.origin!r}")
