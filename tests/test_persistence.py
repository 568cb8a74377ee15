"""Tests for the JSON session store and the debounced persistence adapter."""

import json
import time

import pytest

from guided_exercise.catalog import CYCLIC_SIGH
from guided_exercise.engine import SessionStateMachine, Stage
from guided_exercise.persistence import JsonSessionStore, SessionPersistenceAdapter, format_duration


@pytest.fixture
def store(tmp_path) -> JsonSessionStore:
    return JsonSessionStore(save_directory=tmp_path / "sessions")


def _snapshot(session_id: str = "s1", **fields) -> dict:
    return {
        "session_id": session_id,
        "config_id": "cyclic-sigh",
        "status": "active",
        "current_stage": "pre_rating",
        "total_duration": 0.0,
        "started_at": "2025-01-01T10:00:00+00:00",
        **fields,
    }


class FlakyStore:
    """Store that fails a set number of times, then records writes."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.writes: list[tuple[dict, int, bool]] = []

    def save(self, snapshot: dict, version: int, final: bool = False) -> bool:
        if self.failures > 0:
            self.failures -= 1
            raise OSError("storage unavailable")
        self.writes.append((snapshot, version, final))
        return True


# ---------------------------------------------------------------------------
# JsonSessionStore
# ---------------------------------------------------------------------------


def test_save_and_load(store) -> None:
    assert store.save(_snapshot(pre_rating=6), version=1) is True

    loaded = store.load_session("s1")
    assert loaded["pre_rating"] == 6
    assert loaded["version"] == 1
    assert loaded["final"] is False


def test_stale_version_is_discarded(store) -> None:
    store.save(_snapshot(current_stage="exercise"), version=3)

    assert store.save(_snapshot(current_stage="instructions"), version=2) is False
    assert store.save(_snapshot(current_stage="instructions"), version=3) is False
    assert store.load_session("s1")["current_stage"] == "exercise"
    assert store.last_version("s1") == 3


def test_final_snapshot_is_never_replaced(store) -> None:
    store.save(_snapshot(status="completed"), version=2, final=True)

    assert store.save(_snapshot(status="active"), version=3) is False
    assert store.save(_snapshot(status="abandoned"), version=4, final=True) is False
    assert store.load_session("s1")["status"] == "completed"

    reopened = JsonSessionStore(save_directory=store.save_directory)
    assert reopened.save(_snapshot(status="active"), version=9) is False


def test_new_store_honours_versions_on_disk(store) -> None:
    store.save(_snapshot(), version=5)

    reopened = JsonSessionStore(save_directory=store.save_directory)
    assert reopened.last_version("s1") == 5
    assert reopened.save(_snapshot(), version=4) is False


def test_list_sessions(store) -> None:
    store.save(_snapshot("old", started_at="2025-01-01T08:00:00+00:00"), version=1)
    store.save(_snapshot("new", started_at="2025-01-02T08:00:00+00:00", status="completed"), version=1)
    (store.save_directory / "broken.json").write_text("{not json")

    sessions = store.list_sessions()

    assert [s["session_id"] for s in sessions] == ["new", "old"]
    assert sessions[0]["status"] == "completed"


def test_load_open_session_skips_finished(store) -> None:
    store.save(_snapshot("done", status="completed", started_at="2025-01-03T08:00:00+00:00"), version=1)
    store.save(_snapshot("open", status="paused", started_at="2025-01-02T08:00:00+00:00"), version=1)
    store.save(_snapshot("other", config_id="grounding-5-4-3-2-1"), version=1)

    assert store.load_open_session("cyclic-sigh")["session_id"] == "open"
    assert store.load_open_session("breathing-4-7-8") is None


def test_delete_session(store) -> None:
    store.save(_snapshot(), version=1)

    assert store.delete_session("s1") is True
    assert store.load_session("s1") is None
    assert store.delete_session("s1") is False


def test_missing_session(store) -> None:
    assert store.load_session("nope") is None


# ---------------------------------------------------------------------------
# SessionPersistenceAdapter
# ---------------------------------------------------------------------------


def test_immediate_mode_writes_every_snapshot() -> None:
    backend = FlakyStore()
    adapter = SessionPersistenceAdapter(backend, debounce_sec=0)

    adapter.snapshot(_snapshot(pre_rating=1))
    adapter.snapshot(_snapshot(pre_rating=2))

    assert [(s["pre_rating"], v) for s, v, _ in backend.writes] == [(1, 1), (2, 2)]


def test_debounce_collapses_burst_into_latest() -> None:
    backend = FlakyStore()
    adapter = SessionPersistenceAdapter(backend, debounce_sec=60)

    for rating in range(1, 6):
        adapter.snapshot(_snapshot(pre_rating=rating))
    assert backend.writes == []

    adapter.flush()

    assert len(backend.writes) == 1
    snapshot, version, final = backend.writes[0]
    assert snapshot["pre_rating"] == 5
    assert version == 5
    assert final is False
    adapter.close()


def test_debounce_waits_for_quiet_period() -> None:
    backend = FlakyStore()
    adapter = SessionPersistenceAdapter(backend, debounce_sec=0.2)

    # Each snapshot lands inside the previous one's quiet period
    for rating in range(1, 6):
        adapter.snapshot(_snapshot(pre_rating=rating))
        time.sleep(0.05)
    assert backend.writes == []

    time.sleep(0.5)

    assert [(s["pre_rating"], v) for s, v, _ in backend.writes] == [(5, 5)]
    adapter.close()
    assert len(backend.writes) == 1


def test_commit_replaces_pending_snapshot() -> None:
    backend = FlakyStore()
    adapter = SessionPersistenceAdapter(backend, debounce_sec=60)

    adapter.snapshot(_snapshot(status="active"))
    adapter.commit(_snapshot(status="completed"))
    adapter.flush()

    assert len(backend.writes) == 1
    snapshot, version, final = backend.writes[0]
    assert snapshot["status"] == "completed"
    assert final is True
    assert version == 2


def test_commit_forgets_the_session(store) -> None:
    adapter = SessionPersistenceAdapter(store, debounce_sec=0)

    adapter.snapshot(_snapshot(status="active"))
    adapter.commit(_snapshot(status="completed"))

    assert adapter._versions == {}
    assert adapter._pending == {}
    assert adapter._timers == {}


def test_writes_after_commit_leave_final_snapshot(store) -> None:
    adapter = SessionPersistenceAdapter(store, debounce_sec=0)

    adapter.commit(_snapshot(status="completed"))
    adapter.commit(_snapshot(status="abandoned"))
    adapter.snapshot(_snapshot(status="active"))

    saved = store.load_session("s1")
    assert saved["final"] is True
    assert saved["status"] == "completed"
    assert saved["version"] == 1


def test_store_failures_are_swallowed() -> None:
    backend = FlakyStore(failures=1)
    adapter = SessionPersistenceAdapter(backend, debounce_sec=0)

    adapter.snapshot(_snapshot(pre_rating=1))
    adapter.snapshot(_snapshot(pre_rating=2))

    assert [v for _, v, _ in backend.writes] == [2]


def test_adapter_continues_versions_from_store(store) -> None:
    store.save(_snapshot(), version=7)
    adapter = SessionPersistenceAdapter(store, debounce_sec=0)

    adapter.snapshot(_snapshot(current_stage="instructions"))

    assert store.last_version("s1") == 8
    assert store.load_session("s1")["current_stage"] == "instructions"


def test_session_with_real_store(store, clock) -> None:
    adapter = SessionPersistenceAdapter(store, debounce_sec=0)
    machine = SessionStateMachine.start(CYCLIC_SIGH, persistence=adapter, clock=clock)

    machine.set_pre_rating(8)
    while machine.current_stage != Stage.COMPLETE:
        machine.go_to_next_stage()
    machine.complete()

    path = store.save_directory / f"{machine.session.session_id}.json"
    saved = json.loads(path.read_text())
    assert saved["final"] is True
    assert saved["status"] == "completed"
    assert saved["pre_rating"] == 8
    assert store.load_open_session("cyclic-sigh") is None


def test_format_duration() -> None:
    assert format_duration(42) == "42s"
    assert format_duration(330) == "5m 30s"
    assert format_duration(4500) == "1h 15m"
