from __future__ import annotations

import json
import stat
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from switchboard.storage import SessionStore, atomic_write_text


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path, clock: FakeClock) -> SessionStore:
    return SessionStore(tmp_path / "state" / "delegation-sessions.json", clock=clock)


def test_store_and_get_last(store: SessionStore, tmp_path: Path) -> None:
    store.store("glm", "session-1", total_cost=0.5, cwd=tmp_path)

    record = store.get_last("glm")

    assert record is not None
    assert record.session_id == "session-1"
    assert record.total_cost == 0.5
    assert record.turns == 1
    assert record.cwd == str(tmp_path)
    assert store.get_last("kimi") is None


def test_registry_uses_camel_case_keys(store: SessionStore) -> None:
    store.store("glm", "session-1", cwd="/work")

    document = json.loads(store.path.read_text(encoding="utf-8"))

    assert set(document["glm"]) == {
        "profile",
        "sessionId",
        "totalCost",
        "turns",
        "cwd",
        "startTime",
        "lastTurnTime",
    }


def test_registry_file_permissions(store: SessionStore) -> None:
    store.store("glm", "session-1", cwd="/work")

    assert stat.S_IMODE(store.path.stat().st_mode) == 0o600
    assert stat.S_IMODE(store.path.parent.stat().st_mode) == 0o700


def test_update_accumulates_cost_and_turns(store: SessionStore, clock: FakeClock) -> None:
    store.store("glm", "session-1", total_cost=0.5, cwd="/work")
    clock.advance(minutes=5)

    record = store.update("glm", "session-1", total_cost=0.25)

    assert record is not None
    assert record.turns == 2
    assert record.total_cost == pytest.approx(0.75)
    assert record.last_updated == clock.now
    assert record.started_at == clock.now - timedelta(minutes=5)
    assert store.get_last("glm").turns == 2


def test_update_ignores_untracked_session(store: SessionStore) -> None:
    store.store("glm", "session-1", cwd="/work")

    assert store.update("glm", "other") is None
    assert store.update("kimi", "session-1") is None
    assert store.get_last("glm").turns == 1


def test_store_replaces_previous_session(store: SessionStore) -> None:
    store.store("glm", "session-1", cwd="/work")
    store.store("glm", "session-2", cwd="/work")

    assert store.get_last("glm").session_id == "session-2"


def test_clear(store: SessionStore) -> None:
    store.store("glm", "session-1", cwd="/work")

    assert store.clear("glm") is True
    assert store.clear("glm") is False
    assert store.get_last("glm") is None


def test_sweep_expired(store: SessionStore, clock: FakeClock) -> None:
    store.store("old", "session-old", cwd="/work")
    clock.advance(days=31)
    store.store("fresh", "session-fresh", cwd="/work")

    assert store.sweep_expired() == 1
    assert store.get_last("old") is None
    assert store.get_last("fresh") is not None
    assert store.sweep_expired() == 0


def test_corrupt_registry_is_treated_as_empty(store: SessionStore) -> None:
    store.path.parent.mkdir(parents=True)
    store.path.write_text("{broken", encoding="utf-8")

    assert store.get_last("glm") is None

    store.store("glm", "session-1", cwd="/work")

    assert store.get_last("glm").session_id == "session-1"


def test_invalid_entries_are_skipped(store: SessionStore) -> None:
    store.path.parent.mkdir(parents=True)
    store.path.write_text(
        json.dumps(
            {
                "glm": {
                    "sessionId": "session-1",
                    "totalCost": 0.1,
                    "turns": 3,
                    "cwd": "/work",
                    "startTime": 1767225600000,
                    "lastTurnTime": 1767225600000,
                },
                "broken": {"sessionId": "x"},
                "scalar": 42,
            }
        ),
        encoding="utf-8",
    )

    record = store.get_last("glm")

    assert record is not None
    assert record.turns == 3
    assert record.last_updated == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert store.get_last("broken") is None
    assert store.get_last("scalar") is None


def test_atomic_write_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "out.json"
    target.write_text("old", encoding="utf-8")

    atomic_write_text(target, "new")

    assert target.read_text(encoding="utf-8") == "new"
    assert [path.name for path in tmp_path.iterdir()] == ["out.json"]
