"""Shared fixtures for engine tests."""

import pytest

from guided_exercise.catalog import CYCLIC_SIGH, GROUNDING_5_4_3_2_1
from guided_exercise.engine import (
    BreathingDefaults,
    ExerciseConfig,
    ExerciseKind,
    SessionStateMachine,
    build_stages,
)


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingPersistence:
    """Captures snapshots and final commits."""

    def __init__(self):
        self.snapshots: list[dict] = []
        self.commits: list[dict] = []

    def snapshot(self, data: dict) -> None:
        self.snapshots.append(data)

    def commit(self, data: dict) -> None:
        self.commits.append(data)


class RecordingAnalytics:
    """Captures tracked events and terminal records."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []
        self.records = []

    def track(self, event: str, properties: dict) -> None:
        self.events.append((event, properties))

    def record_session(self, record) -> None:
        self.records.append(record)

    def event_names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def persistence() -> RecordingPersistence:
    return RecordingPersistence()


@pytest.fixture
def analytics() -> RecordingAnalytics:
    return RecordingAnalytics()


@pytest.fixture
def breathing_config() -> ExerciseConfig:
    """Breathing exercise with every stage, three cycles."""
    return ExerciseConfig(
        id="test-breathing",
        title="Test Breathing",
        kind=ExerciseKind.BREATHING,
        stages=build_stages(require_trigger_log=True),
        breathing=BreathingDefaults(protocol="cyclic-sigh", target_cycles=3),
    )


@pytest.fixture
def grounding_config() -> ExerciseConfig:
    return GROUNDING_5_4_3_2_1


@pytest.fixture
def start_session(clock, persistence, analytics):
    """Start a session wired to the fake clock and recording collaborators."""

    def _start(config=CYCLIC_SIGH, **kwargs) -> SessionStateMachine:
        return SessionStateMachine.start(
            config,
            persistence=persistence,
            analytics=analytics,
            clock=clock,
            **kwargs,
        )

    return _start
