"""Configuration management for Switchboard."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .profiles import CONFIG_JSON, CONFIG_YAML, INSTANCES_DIR, PROFILES_JSON


class SwitchboardSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    home: Path = Field(default=Path("~/.switchboard"), validation_alias="SWITCHBOARD_HOME")
    claude_path: str | None = Field(default=None, validation_alias="SWITCHBOARD_CLAUDE_PATH")
    debug: bool = Field(default=False, validation_alias="SWITCHBOARD_DEBUG")
    quiet: bool = Field(default=False, validation_alias="SWITCHBOARD_QUIET")
    log_level: str = Field(default="WARNING", validation_alias="SWITCHBOARD_LOG_LEVEL")
    timeout_seconds: float = Field(default=600.0, validation_alias="SWITCHBOARD_TIMEOUT")
    max_retries: int = Field(default=2, validation_alias="SWITCHBOARD_MAX_RETRIES")
    retry_base_delay: float = Field(default=1.0, validation_alias="SWITCHBOARD_RETRY_DELAY")
    session_retention_days: int = Field(
        default=30, validation_alias="SWITCHBOARD_SESSION_RETENTION_DAYS"
    )
    session_sweep_probability: float = Field(
        default=0.1, validation_alias="SWITCHBOARD_SWEEP_PROBABILITY"
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "SWITCHBOARD_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("debug", "quiet", mode="before")
    @classmethod
    def _parse_flag(cls, value):
        # Presence-style flags: an exported-but-empty variable means off.
        if value is None or (isinstance(value, str) and not value.strip()):
            return False
        return value

    @field_validator("claude_path", mode="before")
    @classmethod
    def _blank_path_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("max_retries")
    @classmethod
    def _validate_max_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("SWITCHBOARD_MAX_RETRIES must be >= 0")
        return value

    @field_validator("session_retention_days")
    @classmethod
    def _validate_retention(cls, value: int) -> int:
        if value < 1:
            raise ValueError("SWITCHBOARD_SESSION_RETENTION_DAYS must be >= 1")
        return value

    @field_validator("session_sweep_probability")
    @classmethod
    def _validate_probability(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("SWITCHBOARD_SWEEP_PROBABILITY must be between 0 and 1")
        return value

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level

    @property
    def config_yaml(self) -> Path:
        return self.home / CONFIG_YAML

    @property
    def config_json(self) -> Path:
        return self.home / CONFIG_JSON

    @property
    def profiles_json(self) -> Path:
        return self.home / PROFILES_JSON

    @property
    def instances_dir(self) -> Path:
        return self.home / INSTANCES_DIR

    @property
    def sessions_path(self) -> Path:
        return self.home / "delegation-sessions.json"

    def settings_file(self, name: str) -> Path:
        """Return the conventional settings artifact path for a profile or provider."""

        return self.home / f"{name}.settings.json"


@lru_cache(maxsize=1)
def get_settings() -> SwitchboardSettings:
    """Return cached settings instance."""

    settings = SwitchboardSettings()
    settings.home = settings.home.expanduser().resolve()
    return settings


__all__ = ["SwitchboardSettings", "get_settings"]
