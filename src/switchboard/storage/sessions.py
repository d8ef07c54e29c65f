"""JSON-file registry of the last delegated session per profile."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from .models import SessionRecord

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=30)


def atomic_write_text(path: Path, content: str, *, mode: int = 0o600) -> None:
    """Write ``content`` through a sibling temp file and rename it over ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


class SessionStore:
    """Track at most one session per profile so a later run can resume it.

    The registry is shared by independent processes, so every write replaces
    the whole file atomically instead of relying on in-process locks.
    """

    def __init__(
        self,
        path: Path,
        *,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._path = Path(path)
        self._retention = retention
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def path(self) -> Path:
        return self._path

    def get_last(self, profile: str) -> SessionRecord | None:
        return self._load().get(profile)

    def store(
        self,
        profile: str,
        session_id: str,
        *,
        total_cost: float | None = None,
        cwd: str | Path | None = None,
    ) -> SessionRecord:
        """Record ``session_id`` as the latest session for ``profile``."""

        now = self._clock()
        record = SessionRecord(
            profile=profile,
            session_id=session_id,
            total_cost=total_cost or 0.0,
            turns=1,
            cwd=str(cwd or Path.cwd()),
            started_at=now,
            last_updated=now,
        )
        sessions = self._load()
        sessions[profile] = record
        self._save(sessions)
        logger.debug("Stored session %s for %s", session_id, profile)
        return record

    def update(
        self, profile: str, session_id: str, *, total_cost: float | None = None
    ) -> SessionRecord | None:
        """Add a turn to the tracked session; returns ``None`` when the id is not tracked."""

        sessions = self._load()
        existing = sessions.get(profile)
        if existing is None or existing.session_id != session_id:
            return None

        record = existing.model_copy(
            update={
                "last_updated": self._clock(),
                "total_cost": existing.total_cost + (total_cost or 0.0),
                "turns": existing.turns + 1,
            }
        )
        sessions[profile] = record
        self._save(sessions)
        logger.debug(
            "Updated session %s, total: $%.4f, turns: %d",
            session_id,
            record.total_cost,
            record.turns,
        )
        return record

    def clear(self, profile: str) -> bool:
        sessions = self._load()
        if sessions.pop(profile, None) is None:
            return False
        self._save(sessions)
        return True

    def sweep_expired(self) -> int:
        """Drop records not touched within the retention window."""

        sessions = self._load()
        cutoff = self._clock() - self._retention
        expired = [name for name, record in sessions.items() if record.last_updated < cutoff]
        for name in expired:
            del sessions[name]
        if expired:
            self._save(sessions)
            logger.debug("Cleaned %d expired sessions", len(expired))
        return len(expired)

    def _load(self) -> dict[str, SessionRecord]:
        if not self._path.exists():
            return {}
        try:
            document = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load sessions from %s: %s", self._path, exc)
            return {}
        if not isinstance(document, dict):
            logger.warning("Ignoring session registry %s: expected a JSON object", self._path)
            return {}

        sessions: dict[str, SessionRecord] = {}
        for profile, payload in document.items():
            try:
                sessions[profile] = SessionRecord.model_validate(self._with_profile(profile, payload))
            except (ValidationError, TypeError) as exc:
                logger.warning("Skipping invalid session entry %r: %s", profile, exc)
        return sessions

    def _save(self, sessions: dict[str, SessionRecord]) -> None:
        payload = {
            profile: record.model_dump(mode="json", by_alias=True)
            for profile, record in sessions.items()
        }
        atomic_write_text(self._path, json.dumps(payload, indent=2))

    @staticmethod
    def _with_profile(profile: str, payload: Any) -> dict[str, Any]:
        if not isinstance(payload, dict):
            raise TypeError("session entry must be an object")
        return {"profile": profile, **payload}


__all__ = ["SessionStore", "atomic_write_text"]
