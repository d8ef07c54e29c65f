"""Project-level CLI settings: tool restrictions and default permission mode."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

FALLBACK_PERMISSION_MODE = "acceptEdits"


@dataclass(slots=True, frozen=True)
class ToolRestrictions:
    allowed_tools: tuple[str, ...] = ()
    disallowed_tools: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class ProjectSettings:
    """Merged ``.claude/settings.json`` and ``.claude/settings.local.json``.

    Tool lists are concatenated (shared first); the local ``defaultMode``
    overrides the shared one.
    """

    tools: ToolRestrictions
    default_mode: str | None = None

    @classmethod
    def load(cls, project_dir: Path) -> "ProjectSettings":
        settings_dir = Path(project_dir) / ".claude"
        shared = _permissions(_read_json(settings_dir / "settings.json"))
        local = _permissions(_read_json(settings_dir / "settings.local.json"))

        tools = ToolRestrictions(
            allowed_tools=(*_strings(shared.get("allow")), *_strings(local.get("allow"))),
            disallowed_tools=(*_strings(shared.get("deny")), *_strings(local.get("deny"))),
        )
        default_mode = local.get("defaultMode") or shared.get("defaultMode") or None
        logger.debug(
            "Tool restrictions: %d allowed, %d denied",
            len(tools.allowed_tools),
            len(tools.disallowed_tools),
        )
        return cls(tools=tools, default_mode=default_mode if isinstance(default_mode, str) else None)

    @property
    def permission_mode(self) -> str:
        return self.default_mode or FALLBACK_PERMISSION_MODE


def _read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Failed to read settings %s: %s", path, exc)
        return {}
    return document if isinstance(document, dict) else {}


def _permissions(document: dict[str, Any]) -> dict[str, Any]:
    permissions = document.get("permissions")
    return permissions if isinstance(permissions, dict) else {}


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


__all__ = ["FALLBACK_PERMISSION_MODE", "ProjectSettings", "ToolRestrictions"]
