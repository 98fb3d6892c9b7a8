"""Configuration management for Island Monitor."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class IslandSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    socket_path: Path = Field(
        default=Path("/tmp/claude-island.sock"), validation_alias="ISLAND_SOCKET_PATH"
    )
    sweep_interval_seconds: float = Field(default=10.0, validation_alias="ISLAND_SWEEP_INTERVAL")
    ended_grace_seconds: float = Field(default=60.0, validation_alias="ISLAND_ENDED_GRACE")
    ready_window_seconds: float = Field(default=30.0, validation_alias="ISLAND_READY_WINDOW")
    read_timeout_seconds: float = Field(default=5.0, validation_alias="ISLAND_READ_TIMEOUT")
    max_event_bytes: int = Field(default=1024 * 1024, validation_alias="ISLAND_MAX_EVENT_BYTES")
    log_level: str = Field(default="INFO", validation_alias="ISLAND_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "ISLAND_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("sweep_interval_seconds", "ready_window_seconds", "read_timeout_seconds")
    @classmethod
    def _positive_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Intervals and timeouts must be > 0 seconds")
        return value

    @field_validator("ended_grace_seconds")
    @classmethod
    def _non_negative_grace(cls, value: float) -> float:
        if value < 0:
            raise ValueError("ISLAND_ENDED_GRACE must be >= 0")
        return value

    @field_validator("max_event_bytes")
    @classmethod
    def _validate_max_event_bytes(cls, value: int) -> int:
        if value < 1024:
            raise ValueError("ISLAND_MAX_EVENT_BYTES must be >= 1024")
        return value


@lru_cache(maxsize=1)
def get_settings() -> IslandSettings:
    """Return cached settings instance."""

    settings = IslandSettings()
    settings.socket_path = settings.socket_path.expanduser()
    return settings


__all__ = ["IslandSettings", "get_settings"]
