"""Incremental interpreter for the CLI's ``stream-json`` (jsonl) output."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping

logger = logging.getLogger(__name__)


class RecordKind(str, Enum):
    ASSISTANT = "assistant"
    TOOL_USE = "tool_use"
    RESULT = "result"
    UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class ToolInvocation:
    name: str
    input: Mapping[str, Any]

    def progress_line(self) -> str:
        return format_tool_progress(self.name, self.input)


@dataclass(slots=True, frozen=True)
class StreamRecord:
    """One decoded JSON object from the output stream."""

    kind: RecordKind
    payload: dict[str, Any]
    tools: tuple[ToolInvocation, ...] = ()

    @property
    def type(self) -> str | None:
        value = self.payload.get("type")
        return value if isinstance(value, str) else None


@dataclass(slots=True, frozen=True)
class StreamState:
    """Bytes of a line that has not been terminated yet."""

    pending: bytes = b""


def _truncate(text: str, limit: int, keep: int) -> str:
    return text[:keep] + "..." if len(text) > limit else text


def _bash(args: Mapping[str, Any]) -> str | None:
    command = args.get("command")
    return _truncate(command, 80, 77) if isinstance(command, str) and command else None


def _field(name: str) -> Callable[[Mapping[str, Any]], str | None]:
    def formatter(args: Mapping[str, Any]) -> str | None:
        value = args.get(name)
        return str(value) if value else None

    return formatter


def _grep(args: Mapping[str, Any]) -> str | None:
    pattern = args.get("pattern")
    if not pattern:
        return None
    detail = f'searching for "{pattern}"'
    if args.get("path"):
        detail += f" in {args['path']}"
    return detail


def _task(args: Mapping[str, Any]) -> str | None:
    if args.get("description"):
        return str(args["description"])
    prompt = args.get("prompt")
    return _truncate(prompt, 60, 57) if isinstance(prompt, str) and prompt else None


def _todo_write(args: Mapping[str, Any]) -> str | None:
    todos = args.get("todos")
    if not isinstance(todos, list):
        return None
    for todo in todos:
        if isinstance(todo, dict) and todo.get("status") == "in_progress" and todo.get("activeForm"):
            return str(todo["activeForm"])
    return f"{len(todos)} task(s)"


def _web_search(args: Mapping[str, Any]) -> str | None:
    query = args.get("query")
    return f'"{query}"' if query else None


def _first_short_argument(args: Mapping[str, Any]) -> str | None:
    if not args:
        return None
    first = next(iter(args.values()))
    if isinstance(first, str) and len(first) < 60:
        return first
    return None


TOOL_FORMATTERS: dict[str, Callable[[Mapping[str, Any]], str | None]] = {
    "Bash": _bash,
    "Edit": _field("file_path"),
    "Write": _field("file_path"),
    "Read": _field("file_path"),
    "NotebookEdit": _field("notebook_path"),
    "NotebookRead": _field("notebook_path"),
    "Grep": _grep,
    "Glob": _field("pattern"),
    "SlashCommand": _field("command"),
    "Task": _task,
    "TodoWrite": _todo_write,
    "WebFetch": _field("url"),
    "WebSearch": _web_search,
}


def format_tool_progress(name: str, args: Mapping[str, Any]) -> str:
    """Return the ``[Tool] Name: detail`` line shown while a run is in progress."""

    formatter = TOOL_FORMATTERS.get(name, _first_short_argument)
    detail = formatter(args or {})
    line = f"[Tool] {name}"
    return f"{line}: {detail}" if detail else line


def classify(payload: dict[str, Any]) -> StreamRecord:
    record_type = payload.get("type")
    if record_type == "result":
        return StreamRecord(RecordKind.RESULT, payload)
    if record_type != "assistant":
        return StreamRecord(RecordKind.UNKNOWN, payload)

    message = payload.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    tools: list[ToolInvocation] = []
    if isinstance(content, list):
        for entry in content:
            if isinstance(entry, dict) and entry.get("type") == "tool_use":
                tool_input = entry.get("input")
                tools.append(
                    ToolInvocation(
                        name=str(entry.get("name") or "unknown"),
                        input=tool_input if isinstance(tool_input, dict) else {},
                    )
                )
    if tools:
        return StreamRecord(RecordKind.TOOL_USE, payload, tuple(tools))
    return StreamRecord(RecordKind.ASSISTANT, payload)


def _decode_line(raw: bytes) -> StreamRecord | None:
    line = raw.strip()
    if not line:
        return None
    try:
        payload = json.loads(line.decode("utf-8", errors="replace"))
    except ValueError as exc:
        logger.debug("Failed to parse stream-json line: %s", exc)
        return None
    if not isinstance(payload, dict):
        logger.debug("Skipping non-object stream-json line: %r", payload)
        return None
    return classify(payload)


def feed(state: StreamState, chunk: bytes) -> tuple[StreamState, list[StreamRecord]]:
    """Split ``chunk`` into complete lines, carrying any unterminated tail forward."""

    *lines, pending = (state.pending + chunk).split(b"\n")
    records = [record for record in map(_decode_line, lines) if record is not None]
    return StreamState(pending=pending), records


def flush(state: StreamState) -> tuple[StreamState, list[StreamRecord]]:
    """Decode whatever is left once the stream is closed."""

    record = _decode_line(state.pending)
    return StreamState(), [record] if record is not None else []


@dataclass(slots=True)
class StreamInterpreter:
    """Stateful wrapper around :func:`feed` for a single execution."""

    state: StreamState = field(default_factory=StreamState)
    messages: list[StreamRecord] = field(default_factory=list)

    def feed(self, chunk: bytes) -> list[StreamRecord]:
        self.state, records = feed(self.state, chunk)
        self.messages.extend(records)
        return records

    def finish(self) -> list[StreamRecord]:
        self.state, records = flush(self.state)
        self.messages.extend(records)
        return records

    @property
    def result(self) -> StreamRecord | None:
        for record in reversed(self.messages):
            if record.kind is RecordKind.RESULT:
                return record
        return None


__all__ = [
    "RecordKind",
    "StreamInterpreter",
    "StreamRecord",
    "StreamState",
    "TOOL_FORMATTERS",
    "ToolInvocation",
    "classify",
    "feed",
    "flush",
    "format_tool_progress",
]
