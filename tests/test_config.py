"""Tests for YAML configuration loading and the exercise catalog."""

from pathlib import Path

import pytest

from guided_exercise import catalog
from guided_exercise.catalog import (
    CYCLIC_SIGH,
    GROUNDING_5_4_3_2_1,
    all_exercise_configs,
    get_exercise_config,
    register_exercise_configs,
)
from guided_exercise.config import Config, load_config
from guided_exercise.engine import ConfigError, ExerciseKind, Stage


@pytest.fixture
def isolated_registry(monkeypatch):
    monkeypatch.setattr(catalog, "_REGISTRY", dict(catalog._REGISTRY))


def test_missing_file_gives_defaults(tmp_path) -> None:
    config = load_config(tmp_path / "absent.yaml")

    assert config == Config()
    assert config.engine.strict is True
    assert config.persistence.debounce_sec == 2.0
    assert config.analytics.sinks == ["log"]


def test_load_config_overrides_and_env(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("TEST_ANALYTICS_URL", "https://collector.test")
    monkeypatch.delenv("TEST_ANALYTICS_KEY", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        "engine:\n"
        "  strict: false\n"
        "persistence:\n"
        "  debounce_sec: 0.5\n"
        "analytics:\n"
        "  sinks: [log, http]\n"
        "  endpoint: ${TEST_ANALYTICS_URL}\n"
        "  api_key: ${TEST_ANALYTICS_KEY}\n"
        "logging:\n"
        "  level: DEBUG\n"
    )

    config = load_config(path)

    assert config.engine.strict is False
    assert config.engine.module_context == "standalone"
    assert config.persistence.debounce_sec == 0.5
    assert config.persistence.save_directory == "sessions"
    assert config.analytics.sinks == ["log", "http"]
    assert config.analytics.endpoint == "https://collector.test"
    assert config.analytics.api_key is None
    assert config.logging.level == "DEBUG"


def test_load_config_exercises(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "exercises:\n"
        "  - id: quick-ground\n"
        "    title: Quick Grounding\n"
        "    kind: grounding\n"
        "    require_pre_rating: false\n"
        "    grounding: {see: 3, touch: 2, hear: 1, smell: 0, taste: 0}\n"
    )

    config = load_config(path)

    assert len(config.exercises) == 1
    exercise = config.exercises[0]
    assert exercise.kind == ExerciseKind.GROUNDING
    assert exercise.stages[0] == Stage.INSTRUCTIONS
    assert exercise.grounding.see == 3


def test_load_config_rejects_bad_exercise(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("exercises:\n  - id: broken\n    kind: juggling\n")

    with pytest.raises(ConfigError):
        load_config(path)


def test_shipped_default_config_loads() -> None:
    path = Path(__file__).parent.parent / "config" / "default.yaml"

    config = load_config(path)

    assert [e.id for e in config.exercises] == ["box-breathing"]
    assert config.exercises[0].breathing.rest == 4


def test_catalog_lookup() -> None:
    assert get_exercise_config("cyclic-sigh") is CYCLIC_SIGH
    assert {c.id for c in all_exercise_configs()} >= {
        "cyclic-sigh",
        "breathing-4-7-8",
        "grounding-5-4-3-2-1",
        "emotion-wheel",
        "brain-dump",
        "mind-clear",
    }


def test_load_config_new_exercise_kinds(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "exercises:\n"
        "  - id: quick-clear\n"
        "    kind: mind_clear\n"
        "    mind_clear: {target_thoughts: 3}\n"
        "  - id: long-dump\n"
        "    kind: brain_dump\n"
        "    brain_dump: {min_words: 50}\n"
    )

    quick_clear, long_dump = load_config(path).exercises

    assert quick_clear.kind == ExerciseKind.MIND_CLEAR
    assert quick_clear.mind_clear.target_thoughts == 3
    assert long_dump.brain_dump.min_words == 50


def test_load_config_rejects_negative_target(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("exercises:\n  - id: bad\n    kind: emotion\n    emotion: {target_selections: -1}\n")

    with pytest.raises(ConfigError):
        load_config(path)


def test_catalog_unknown_id() -> None:
    with pytest.raises(ConfigError, match="Unknown exercise"):
        get_exercise_config("juggling")


def test_builtin_stage_lists() -> None:
    assert Stage.TRIGGER_LOG not in CYCLIC_SIGH.stages
    assert len(CYCLIC_SIGH.stages) == 5
    assert Stage.TRIGGER_LOG in GROUNDING_5_4_3_2_1.stages
    assert len(GROUNDING_5_4_3_2_1.stages) == 6


def test_register_exercise_configs(isolated_registry, tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "exercises:\n"
        "  - id: slow-breath\n"
        "    kind: breathing\n"
        "    breathing: {target_cycles: 2, inhale: 5, exhale: 5}\n"
    )

    register_exercise_configs(load_config(path).exercises)

    assert get_exercise_config("slow-breath").breathing.target_cycles == 2
