from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest

from switchboard.profiles import (
    InvalidProfileNameError,
    ProfileKind,
    ProfileNotFoundError,
    ProfileResolver,
    find_similar,
)
from switchboard.profiles.resolver import levenshtein_distance


def write_config(home: Path, body: str) -> None:
    (home / "config.yaml").write_text(textwrap.dedent(body).strip(), encoding="utf-8")


@pytest.fixture
def populated_home(home: Path) -> Path:
    write_config(
        home,
        """
        profiles:
          glm:
            settings: ~/.switchboard/glm.settings.json
          kimi:
            settings: /opt/kimi.settings.json
        accounts:
          glm: {}
          work: {}
          personal: {}
        cliproxy:
          variants:
            gemini-work:
              provider: gemini
              account: work
            kimi:
              provider: qwen
        """,
    )
    return home


def test_settings_profile_wins_over_account_with_same_name(populated_home: Path) -> None:
    reference = ProfileResolver(populated_home).resolve("glm")

    assert reference.kind is ProfileKind.SETTINGS
    assert reference.launch.settings_path == Path("~/.switchboard/glm.settings.json").expanduser()


def test_oauth_variant_wins_over_settings_profile(populated_home: Path) -> None:
    reference = ProfileResolver(populated_home).resolve("kimi")

    assert reference.kind is ProfileKind.OAUTH
    assert reference.provider == "qwen"
    assert reference.launch.settings_path == populated_home / "qwen.settings.json"


def test_fixed_oauth_provider_needs_no_configuration(home: Path) -> None:
    reference = ProfileResolver(home).resolve("codex")

    assert reference.kind is ProfileKind.OAUTH
    assert reference.provider == "codex"
    assert reference.launch.settings_path == home / "codex.settings.json"


def test_variant_carries_account(populated_home: Path) -> None:
    reference = ProfileResolver(populated_home).resolve("gemini-work")

    assert reference.kind is ProfileKind.OAUTH
    assert reference.provider == "gemini"
    assert reference.account == "work"


def test_account_profile_uses_isolated_config_dir(populated_home: Path) -> None:
    reference = ProfileResolver(populated_home).resolve("work")

    assert reference.kind is ProfileKind.ACCOUNT
    assert reference.launch.environment_overrides == {
        "CLAUDE_CONFIG_DIR": str(populated_home / "instances" / "work")
    }


def test_default_without_configuration_falls_back_to_cli_defaults(home: Path) -> None:
    resolver = ProfileResolver(home)

    for name in (None, "default"):
        reference = resolver.resolve(name)
        assert reference.kind is ProfileKind.DEFAULT
        assert reference.name == "default"
        assert reference.message


def test_default_prefers_account_default(home: Path) -> None:
    (home / "profiles.json").write_text(
        json.dumps({"profiles": {"work": {"type": "account"}}, "default": "work"}),
        encoding="utf-8",
    )
    (home / "config.json").write_text(
        json.dumps({"profiles": {"default": "/opt/default.settings.json"}}), encoding="utf-8"
    )

    reference = ProfileResolver(home).resolve("default")

    assert reference.kind is ProfileKind.ACCOUNT
    assert reference.name == "work"


def test_default_uses_settings_default(home: Path) -> None:
    (home / "config.json").write_text(
        json.dumps({"profiles": {"default": "/opt/default.settings.json"}}), encoding="utf-8"
    )

    reference = ProfileResolver(home).resolve(None)

    assert reference.kind is ProfileKind.SETTINGS
    assert reference.launch.settings_path == Path("/opt/default.settings.json")


def test_default_pointing_at_native_settings_is_pass_through(home: Path) -> None:
    (home / "config.json").write_text(
        json.dumps({"profiles": {"default": "~/.claude/settings.json"}}), encoding="utf-8"
    )

    reference = ProfileResolver(home).resolve("default")

    assert reference.kind is ProfileKind.DEFAULT


def test_dangling_configured_default_does_not_raise(home: Path) -> None:
    write_config(home, "default: ghost")

    assert ProfileResolver(home).resolve("default").kind is ProfileKind.DEFAULT


def test_invalid_name_is_not_a_lookup_miss(home: Path) -> None:
    with pytest.raises(InvalidProfileNameError):
        ProfileResolver(home).resolve("../etc/passwd")


def test_unknown_profile_suggests_close_names(populated_home: Path) -> None:
    with pytest.raises(ProfileNotFoundError) as excinfo:
        ProfileResolver(populated_home).resolve("wrk")

    error = excinfo.value
    assert error.profile_name == "wrk"
    assert error.suggestions == ["work"]
    assert "Account-based profiles:" in error.available_profiles
    assert "  - gemini-work (gemini)" in error.available_profiles
    assert "Did you mean: work?" in error.describe()


def test_unknown_profile_without_close_names(populated_home: Path) -> None:
    with pytest.raises(ProfileNotFoundError) as excinfo:
        ProfileResolver(populated_home).resolve("completely-different")

    assert excinfo.value.suggestions == []


def test_find_similar_orders_by_distance_and_caps_results() -> None:
    candidates = ["glm", "glmt", "gl", "GLM4", "glx", "kimi", "glmtx"]

    suggestions = find_similar("glmx", candidates)

    assert len(suggestions) == 3
    distances = [levenshtein_distance("glmx", name.lower()) for name in suggestions]
    assert distances == sorted(distances)
    assert all(distance <= 2 for distance in distances)


def test_find_similar_suggests_case_only_difference_first() -> None:
    assert find_similar("GLM", ["glmt", "glm", "kimi"]) == ["glm", "glmt"]
    assert find_similar("glm", ["glm", "glmt"]) == ["glmt"]


def test_wrong_case_profile_suggests_configured_name(populated_home: Path) -> None:
    with pytest.raises(ProfileNotFoundError) as excinfo:
        ProfileResolver(populated_home).resolve("GLM")

    assert excinfo.value.suggestions[0] == "glm"


def test_levenshtein_distance() -> None:
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("same", "same") == 0


def test_has_profile(populated_home: Path) -> None:
    resolver = ProfileResolver(populated_home)

    assert resolver.has_profile("personal")
    assert not resolver.has_profile("nobody")
