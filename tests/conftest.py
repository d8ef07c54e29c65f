from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest

from switchboard.config import SwitchboardSettings


def write_script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + textwrap.dedent(body).lstrip(), encoding="utf-8")
    path.chmod(0o755)
    return path


@pytest.fixture
def home(tmp_path: Path) -> Path:
    directory = tmp_path / "home"
    directory.mkdir()
    return directory


@pytest.fixture
def glm_home(home: Path) -> Path:
    """Home directory with a settings-based ``glm`` profile configured."""

    settings_file = home / "glm.settings.json"
    settings_file.write_text(
        json.dumps({"env": {"ANTHROPIC_AUTH_TOKEN": "token", "ANTHROPIC_MODEL": "glm-4.6"}}),
        encoding="utf-8",
    )
    (home / "config.yaml").write_text(
        textwrap.dedent(
            f"""
            version: 2
            profiles:
              glm:
                type: api
                settings: {settings_file}
            """
        ),
        encoding="utf-8",
    )
    return home


@pytest.fixture
def make_settings(home: Path):
    def factory(**overrides) -> SwitchboardSettings:
        values = {
            "home": home,
            "quiet": True,
            "retry_base_delay": 0.0,
            "session_sweep_probability": 0.0,
        }
        values.update(overrides)
        return SwitchboardSettings(**values)

    return factory


@pytest.fixture
def make_script(tmp_path: Path):
    def factory(body: str, name: str = "claude") -> Path:
        return write_script(tmp_path / name, body)

    return factory
