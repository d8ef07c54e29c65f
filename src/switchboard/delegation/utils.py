"""Utility helpers for the delegated CLI process."""

from __future__ import annotations

import os
import re
import shutil
from pathlib import Path
from typing import Mapping

_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "PIP_RESPECT_VIRTUALENV",
}

_LEADING_COMMAND = re.compile(r"^/[\w:-]+(\s|$)")
_EMBEDDED_COMMAND = re.compile(r"(?:^|[^\w/])(/[\w:-]+)(\s+[\s\S]*)?$")


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a sanitized environment suitable for subprocess execution."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    if additional:
        env.update(additional)
    return env


def locate_executable(explicit: str | Path | None = None, name: str = "claude") -> Path | None:
    """Return the CLI path from an explicit override or ``PATH``."""

    if explicit:
        return Path(explicit).expanduser()
    found = shutil.which(name)
    return Path(found) if found else None


def process_slash_command(prompt: str) -> str:
    """Move a slash command embedded in ``prompt`` to the front.

    Prompts that already start with a ``/command`` token are returned as-is.
    Otherwise the first standalone ``/command`` (not part of a file path) is
    hoisted and the preceding text is appended as context.
    """

    trimmed = prompt.strip()
    if _LEADING_COMMAND.match(trimmed):
        return prompt

    match = _EMBEDDED_COMMAND.search(trimmed)
    if match is None:
        return prompt

    command = match.group(1)
    args = (match.group(2) or "").strip()
    before = trimmed[: match.start(1)].strip()

    head = f"{command} {args}" if args else command
    if before:
        return f"{head}\n\nContext: {before}"
    return head


__all__ = ["locate_executable", "process_slash_command", "sanitize_environment"]
