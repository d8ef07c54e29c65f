"""Profile configuration loading utilities."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import ProfileConfig

logger = logging.getLogger(__name__)

CONFIG_JSON = "config.json"
PROFILES_JSON = "profiles.json"
CONFIG_YAML = "config.yaml"


class ProfileLoadError(ConfigurationError):
    """Raised when one or more profile configuration files cannot be parsed."""


def _legacy_config(document: dict[str, Any]) -> dict[str, Any]:
    return {
        "profiles": document.get("profiles"),
        "oauth_variants": document.get("cliproxy"),
    }


def _legacy_accounts(document: dict[str, Any]) -> dict[str, Any]:
    return {
        "accounts": document.get("profiles"),
        "default": document.get("default"),
    }


def _unified_config(document: dict[str, Any]) -> dict[str, Any]:
    cliproxy = document.get("cliproxy") or {}
    return {
        "default": document.get("default"),
        "profiles": document.get("profiles"),
        "accounts": document.get("accounts"),
        "oauth_variants": cliproxy.get("variants") if isinstance(cliproxy, dict) else None,
    }


class ProfileConfigLoader:
    """Loads profile configuration from the Switchboard home directory.

    Sources are read oldest format first: the legacy ``config.json`` and
    ``profiles.json`` files, then the unified ``config.yaml``. Later sources
    override earlier ones when names collide within a category.
    """

    def __init__(self, home: Path) -> None:
        self._home = Path(home)

    @property
    def home(self) -> Path:
        return self._home

    @property
    def sources(self) -> list[tuple[Path, Callable[[dict[str, Any]], dict[str, Any]]]]:
        return [
            (self._home / CONFIG_JSON, _legacy_config),
            (self._home / PROFILES_JSON, _legacy_accounts),
            (self._home / CONFIG_YAML, _unified_config),
        ]

    def load(self) -> ProfileConfig:
        """Load and merge every available configuration source."""

        merged = ProfileConfig()
        errors: list[str] = []

        for path, adapter in self.sources:
            if not path.exists():
                continue

            try:
                document = self._read_document(path)
            except (OSError, ValueError, yaml.YAMLError) as exc:
                errors.append(f"Failed to parse {path}: {exc}")
                continue

            if document is None:
                continue
            if not isinstance(document, dict):
                errors.append(f"Expected a mapping at the top of {path}")
                continue

            try:
                config = ProfileConfig.model_validate(adapter(document))
            except ValidationError as exc:
                errors.append(f"Profile validation error in {path}: {exc}")
                continue

            logger.debug(
                "Loaded %s: %d settings, %d accounts, %d oauth variants",
                path.name,
                len(config.profiles),
                len(config.accounts),
                len(config.oauth_variants),
            )
            merged = merged.merged_with(config)

        if errors:
            raise ProfileLoadError("; ".join(errors))

        return merged

    @staticmethod
    def _read_document(path: Path) -> Any:
        text = path.read_text(encoding="utf-8")
        if path.suffix in {".yaml", ".yml"}:
            return yaml.safe_load(text)
        if not text.strip():
            return None
        return json.loads(text)


__all__ = [
    "CONFIG_JSON",
    "CONFIG_YAML",
    "PROFILES_JSON",
    "ProfileConfigLoader",
    "ProfileLoadError",
]
