"""Profile configuration and resolution models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

OAUTH_PROVIDERS: tuple[str, ...] = ("gemini", "codex", "agy", "qwen")

OAuthProvider = Literal["gemini", "codex", "agy", "qwen"]


class ProfileKind(str, Enum):
    """Category a profile name resolved to."""

    SETTINGS = "settings"
    ACCOUNT = "account"
    OAUTH = "oauth"
    DEFAULT = "default"


class SettingsProfileEntry(BaseModel):
    """API profile that injects environment through a settings file."""

    type: Literal["api"] = "api"
    settings: str = Field(..., description="Path to the *.settings.json artifact.")

    @field_validator("settings")
    @classmethod
    def _normalize_settings(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Settings profile path must not be empty")
        return normalized


class AccountEntry(BaseModel):
    """Account profile backed by an isolated CLI config directory."""

    type: str = "account"
    created: datetime | str | None = None
    last_used: datetime | str | None = None


class OAuthVariantEntry(BaseModel):
    """Named alias over a fixed OAuth provider."""

    provider: OAuthProvider
    account: str | None = Field(default=None, description="Account nickname for the provider.")
    settings: str | None = Field(default=None, description="Optional settings override path.")


class ProfileConfig(BaseModel):
    """Merged view over every persisted profile category."""

    default: str | None = None
    profiles: dict[str, SettingsProfileEntry] = Field(default_factory=dict)
    accounts: dict[str, AccountEntry] = Field(default_factory=dict)
    oauth_variants: dict[str, OAuthVariantEntry] = Field(default_factory=dict)

    @field_validator("profiles", mode="before")
    @classmethod
    def _accept_bare_paths(cls, value: Any):  # type: ignore[override]
        # Legacy config.json maps profile names straight to a settings path.
        if value is None:
            return {}
        if isinstance(value, dict):
            return {
                name: {"settings": entry} if isinstance(entry, str) else entry
                for name, entry in value.items()
            }
        raise TypeError("profiles must be a mapping of name to settings path")

    @field_validator("accounts", "oauth_variants", mode="before")
    @classmethod
    def _ensure_mapping(cls, value: Any):  # type: ignore[override]
        if value is None:
            return {}
        return value

    def merged_with(self, other: "ProfileConfig") -> "ProfileConfig":
        """Return a config where entries from ``other`` override this one."""

        return ProfileConfig(
            default=other.default or self.default,
            profiles={**self.profiles, **other.profiles},
            accounts={**self.accounts, **other.accounts},
            oauth_variants={**self.oauth_variants, **other.oauth_variants},
        )


class LaunchParams(BaseModel):
    """Concrete parameters needed to start the external CLI for a profile."""

    model_config = ConfigDict(frozen=True)

    executable_path: Path | None = None
    environment_overrides: dict[str, StrictStr] = Field(default_factory=dict)
    extra_args: tuple[str, ...] = ()
    working_directory: Path | None = None
    settings_path: Path | None = None


class ProfileReference(BaseModel):
    """Outcome of resolving a profile name; immutable once built."""

    model_config = ConfigDict(frozen=True)

    kind: ProfileKind
    name: str
    launch: LaunchParams = Field(default_factory=LaunchParams)
    provider: str | None = None
    account: str | None = None
    message: str | None = None


__all__ = [
    "AccountEntry",
    "LaunchParams",
    "OAUTH_PROVIDERS",
    "OAuthVariantEntry",
    "ProfileConfig",
    "ProfileKind",
    "ProfileReference",
    "SettingsProfileEntry",
]
