"""Human-readable progress written to the diagnostic stream."""

from __future__ import annotations

import sys
from typing import TextIO

CLEAR_LINE = "\r\x1b[K"


class ProgressReporter:
    """Writes progress to stderr so that stdout stays clean for piping."""

    def __init__(self, stream: TextIO | None = None, *, enabled: bool = True) -> None:
        self._stream = stream
        self.enabled = enabled
        self._line_dirty = False

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    def _write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def clear_line(self) -> None:
        if self._line_dirty:
            self._write(CLEAR_LINE)
            self._line_dirty = False

    def started(self, profile: str) -> None:
        if self.enabled:
            self._write(f"[i] Delegating to {profile}...\n")

    def heartbeat(self, elapsed: float) -> None:
        if self.enabled:
            self._write(f"[i] Still running... {elapsed:.1f}s elapsed\r")
            self._line_dirty = True

    def tool(self, line: str) -> None:
        if self.enabled:
            self.clear_line()
            self._write(f"{line}\n")

    def passthrough(self, text: str) -> None:
        self.clear_line()
        self._write(text)

    def finished(self, duration: float, *, timed_out: bool) -> None:
        """Always report how the run ended, even when progress is disabled."""

        self.clear_line()
        if timed_out:
            self._write(f"[i] Execution timed out after {duration:.1f}s\n")
        else:
            self._write(f"[i] Execution completed in {duration:.1f}s\n")
        if self.enabled:
            self._write("\n")

    def warning(self, message: str) -> None:
        self.clear_line()
        self._write(f"[!] {message}\n")


__all__ = ["CLEAR_LINE", "ProgressReporter"]
