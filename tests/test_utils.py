from __future__ import annotations

from pathlib import Path

import pytest

from switchboard.delegation.project_settings import ProjectSettings
from switchboard.delegation.utils import (
    locate_executable,
    process_slash_command,
    sanitize_environment,
)


def test_sanitize_environment_strips_virtualenv(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PYTHONPATH", "value")
    monkeypatch.setenv("VIRTUAL_ENV", "/venv")

    env = sanitize_environment({"CLAUDE_CONFIG_DIR": "/instances/work"})

    assert "PYTHONPATH" not in env
    assert "VIRTUAL_ENV" not in env
    assert env["CLAUDE_CONFIG_DIR"] == "/instances/work"


def test_locate_executable_prefers_explicit_path(tmp_path: Path) -> None:
    assert locate_executable(tmp_path / "claude") == tmp_path / "claude"


def test_locate_executable_searches_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PATH", "")

    assert locate_executable(None, name="definitely-not-installed") is None


@pytest.mark.parametrize(
    ("prompt", "expected"),
    [
        ("/plan fix the login bug", "/plan fix the login bug"),
        ("/cook", "/cook"),
        ("use the skill /cook add caching", "/cook add caching\n\nContext: use the skill"),
        ("run this: /review", "/review\n\nContext: run this:"),
        ("edit src/app.py please", "edit src/app.py please"),
        ("look in /home/user/project", "look in /home/user/project"),
        ("no command here", "no command here"),
    ],
)
def test_process_slash_command(prompt: str, expected: str) -> None:
    assert process_slash_command(prompt) == expected


def test_project_settings_merge(tmp_path: Path) -> None:
    settings_dir = tmp_path / ".claude"
    settings_dir.mkdir()
    (settings_dir / "settings.json").write_text(
        '{"permissions": {"allow": ["Bash"], "deny": ["WebFetch"], "defaultMode": "plan"}}',
        encoding="utf-8",
    )
    (settings_dir / "settings.local.json").write_text(
        '{"permissions": {"allow": ["Read"], "defaultMode": "bypassPermissions"}}',
        encoding="utf-8",
    )

    project = ProjectSettings.load(tmp_path)

    assert project.tools.allowed_tools == ("Bash", "Read")
    assert project.tools.disallowed_tools == ("WebFetch",)
    assert project.permission_mode == "bypassPermissions"


def test_project_settings_fallbacks(tmp_path: Path) -> None:
    (tmp_path / ".claude").mkdir()
    (tmp_path / ".claude" / "settings.json").write_text("{broken", encoding="utf-8")

    project = ProjectSettings.load(tmp_path)

    assert project.tools.allowed_tools == ()
    assert project.permission_mode == "acceptEdits"
