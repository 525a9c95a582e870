"""Environment driven settings for the autotuner process."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TunerSettings(BaseSettings):
    """Process level settings loaded from ``KERNEL_AUTOTUNER_*`` variables."""

    log_level: str = Field(default="INFO", description="Minimum log level name")
    log_format: str = Field(
        default="json",
        description="Log renderer: json, console or plain",
    )
    log_file_path: str | None = Field(
        default=None,
        description="Optional file receiving a copy of every log record",
    )
    max_sampling_attempts: int = Field(
        default=1000,
        gt=0,
        description="Rejection sampling retry bound before SpaceExhaustedError",
    )
    max_perturbation_attempts: int = Field(
        default=100,
        gt=0,
        description="Attempts at a valid single-parameter move in annealing",
    )

    model_config = SettingsConfigDict(
        env_prefix="KERNEL_AUTOTUNER_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, value: str) -> str:
        """Restrict the renderer to the supported formats."""
        normalized = value.lower()
        if normalized not in {"json", "console", "plain"}:
            msg = "log_format must be one of: json, console, plain"
            raise ValueError(msg)
        return normalized

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        """Normalise the log level name."""
        normalized = value.upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Unsupported log level: {value}"
            raise ValueError(msg)
        return normalized


@lru_cache(maxsize=1)
def get_settings() -> TunerSettings:
    """Return the cached process settings."""
    return TunerSettings()


def reset_settings() -> None:
    """Clear the settings cache so the environment is read again."""
    get_settings.cache_clear()


__all__ = ["TunerSettings", "get_settings", "reset_settings"]
