"""Profile-type resolution with layered precedence."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

from ..errors import ConfigurationError
from .loader import ProfileConfigLoader
from .models import (
    OAUTH_PROVIDERS,
    LaunchParams,
    ProfileConfig,
    ProfileKind,
    ProfileReference,
)

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"
PROFILE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
SUGGESTION_MAX_DISTANCE = 2
SUGGESTION_LIMIT = 3
INSTANCES_DIR = "instances"


class InvalidProfileNameError(ConfigurationError):
    """Raised when a profile name contains characters outside ``[A-Za-z0-9_-]``."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Invalid profile name: {name!r}. Use letters, digits, '-' and '_' only."
        )
        self.profile_name = name


class ProfileNotFoundError(ConfigurationError):
    """Raised when a name matches no profile in any category."""

    def __init__(self, name: str, suggestions: list[str], available_profiles: str) -> None:
        super().__init__(f"Profile not found: {name}")
        self.profile_name = name
        self.suggestions = suggestions
        self.available_profiles = available_profiles

    def describe(self) -> str:
        """Return the full user-facing message with suggestions and listing."""

        lines = [str(self)]
        if self.suggestions:
            lines.append(f"Did you mean: {', '.join(self.suggestions)}?")
        if self.available_profiles:
            lines.append("")
            lines.append("Available profiles:")
            lines.append(self.available_profiles)
        return "\n".join(lines)


def levenshtein_distance(left: str, right: str) -> int:
    """Return the edit distance between two strings."""

    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)

    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            cost = 0 if left_char == right_char else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def find_similar(
    target: str,
    candidates: Iterable[str],
    *,
    max_distance: int = SUGGESTION_MAX_DISTANCE,
    limit: int = SUGGESTION_LIMIT,
) -> list[str]:
    """Return up to ``limit`` candidates within ``max_distance`` edits, closest first.

    Comparison ignores case, so a candidate differing from ``target`` only in
    case is the closest possible suggestion. An exact match is never suggested.
    """

    lowered = target.lower()
    scored: list[tuple[int, str]] = []
    seen: set[str] = set()
    for candidate in candidates:
        if candidate in seen or candidate == target:
            continue
        seen.add(candidate)
        distance = levenshtein_distance(lowered, candidate.lower())
        if distance <= max_distance:
            scored.append((distance, candidate))
    # sorted() is stable, so equal distances keep category order
    scored.sort(key=lambda item: item[0])
    return [candidate for _, candidate in scored[:limit]]


def instance_dir_name(name: str) -> str:
    """Return the filesystem-safe directory name for an account instance."""

    return re.sub(r"[^a-zA-Z0-9_-]", "-", name).lower()


def _is_native_settings(path: str) -> bool:
    return ".claude" in path and path.endswith("settings.json")


class ProfileResolver:
    """Resolve profile names to launch parameters.

    Precedence, first match wins: the configured default, fixed OAuth
    providers, user-defined OAuth variants, settings-based profiles, then
    account-based profiles.
    """

    def __init__(self, home: Path, loader: ProfileConfigLoader | None = None) -> None:
        self._home = Path(home)
        self._loader = loader or ProfileConfigLoader(self._home)

    def load_config(self) -> ProfileConfig:
        return self._loader.load()

    def resolve(self, name: str | None = None) -> ProfileReference:
        """Resolve ``name`` to a :class:`ProfileReference`."""

        config = self.load_config()
        if name is None or name == DEFAULT_PROFILE:
            return self._resolve_default(config)

        if not PROFILE_NAME_PATTERN.match(name):
            raise InvalidProfileNameError(name)

        reference = self._lookup(name, config)
        if reference is not None:
            logger.debug("Resolved profile %s as %s", name, reference.kind.value)
            return reference

        suggestions = find_similar(name, self.all_profile_names(config))
        raise ProfileNotFoundError(name, suggestions, self.format_available(config))

    def has_profile(self, name: str) -> bool:
        try:
            self.resolve(name)
        except ConfigurationError:
            return False
        return True

    def all_profile_names(self, config: ProfileConfig | None = None) -> list[str]:
        config = config or self.load_config()
        return [
            *OAUTH_PROVIDERS,
            *config.oauth_variants,
            *config.profiles,
            *config.accounts,
        ]

    def format_available(self, config: ProfileConfig | None = None) -> str:
        """Return a listing of every profile category for error messages."""

        config = config or self.load_config()
        lines = ["OAuth providers (zero config):"]
        lines.extend(f"  - {name}" for name in OAUTH_PROVIDERS)

        def marker(name: str) -> str:
            return " [DEFAULT]" if name == config.default else ""

        if config.oauth_variants:
            lines.append("OAuth variants:")
            lines.extend(
                f"  - {name} ({variant.provider})"
                for name, variant in config.oauth_variants.items()
            )
        if config.profiles:
            lines.append("Settings-based profiles:")
            lines.extend(f"  - {name}{marker(name)}" for name in config.profiles)
        if config.accounts:
            lines.append("Account-based profiles:")
            lines.extend(f"  - {name}{marker(name)}" for name in config.accounts)
        return "\n".join(lines)

    def _lookup(self, name: str, config: ProfileConfig) -> ProfileReference | None:
        if name in OAUTH_PROVIDERS:
            return ProfileReference(
                kind=ProfileKind.OAUTH,
                name=name,
                provider=name,
                launch=LaunchParams(settings_path=self._home / f"{name}.settings.json"),
            )

        variant = config.oauth_variants.get(name)
        if variant is not None:
            settings_path = (
                self._expand(variant.settings)
                if variant.settings
                else self._home / f"{variant.provider}.settings.json"
            )
            return ProfileReference(
                kind=ProfileKind.OAUTH,
                name=name,
                provider=variant.provider,
                account=variant.account,
                launch=LaunchParams(settings_path=settings_path),
            )

        entry = config.profiles.get(name)
        if entry is not None:
            return ProfileReference(
                kind=ProfileKind.SETTINGS,
                name=name,
                launch=LaunchParams(settings_path=self._expand(entry.settings)),
            )

        if name in config.accounts:
            return self._account_reference(name)

        return None

    def _resolve_default(self, config: ProfileConfig) -> ProfileReference:
        default_name = config.default
        if default_name and default_name in config.accounts:
            return self._account_reference(default_name)

        if default_name and PROFILE_NAME_PATTERN.match(default_name):
            reference = self._lookup(default_name, config)
            if reference is not None:
                return reference
            logger.warning("Configured default profile %r does not exist", default_name)

        entry = config.profiles.get(DEFAULT_PROFILE)
        if entry is not None:
            if _is_native_settings(entry.settings):
                return ProfileReference(
                    kind=ProfileKind.DEFAULT,
                    name=DEFAULT_PROFILE,
                    message="Using native CLI auth (no custom env vars)",
                )
            return ProfileReference(
                kind=ProfileKind.SETTINGS,
                name=DEFAULT_PROFILE,
                launch=LaunchParams(settings_path=self._expand(entry.settings)),
            )

        return ProfileReference(
            kind=ProfileKind.DEFAULT,
            name=DEFAULT_PROFILE,
            message="No profile configured. Using CLI defaults.",
        )

    def _account_reference(self, name: str) -> ProfileReference:
        instance = self._home / INSTANCES_DIR / instance_dir_name(name)
        return ProfileReference(
            kind=ProfileKind.ACCOUNT,
            name=name,
            launch=LaunchParams(environment_overrides={"CLAUDE_CONFIG_DIR": str(instance)}),
        )

    @staticmethod
    def _expand(path: str) -> Path:
        return Path(path).expanduser()


__all__ = [
    "INSTANCES_DIR",
    "InvalidProfileNameError",
    "ProfileNotFoundError",
    "ProfileResolver",
    "find_similar",
    "instance_dir_name",
    "levenshtein_distance",
]
