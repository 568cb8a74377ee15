"""Tests for the stage model and exercise config validation."""

import pytest

from guided_exercise.engine import (
    BreathingDefaults,
    ConfigError,
    ExerciseConfig,
    ExerciseKind,
    GroundingDefaults,
    Stage,
    build_stages,
    exercise_config_from_dict,
)
from guided_exercise.engine.stages import validate_stages


def test_build_stages_full_sequence() -> None:
    assert build_stages(require_trigger_log=True) == (
        Stage.PRE_RATING,
        Stage.INSTRUCTIONS,
        Stage.EXERCISE,
        Stage.POST_RATING,
        Stage.TRIGGER_LOG,
        Stage.COMPLETE,
    )


def test_build_stages_without_pre_rating_opens_on_instructions() -> None:
    stages = build_stages(require_pre_rating=False, require_post_rating=False)
    assert stages == (Stage.INSTRUCTIONS, Stage.EXERCISE, Stage.COMPLETE)


def test_build_stages_needs_an_entry_stage() -> None:
    with pytest.raises(ConfigError):
        build_stages(require_pre_rating=False, show_instructions=False)


@pytest.mark.parametrize(
    "stages",
    [
        (),
        (Stage.EXERCISE, Stage.COMPLETE),
        (Stage.PRE_RATING, Stage.EXERCISE),
        (Stage.PRE_RATING, Stage.INSTRUCTIONS, Stage.COMPLETE),
        (Stage.PRE_RATING, Stage.EXERCISE, Stage.EXERCISE, Stage.COMPLETE),
        (Stage.PRE_RATING, Stage.POST_RATING, Stage.EXERCISE, Stage.COMPLETE),
        (Stage.PRE_RATING, Stage.EXERCISE, Stage.POST_RATING, Stage.POST_RATING, Stage.COMPLETE),
    ],
)
def test_validate_stages_rejects_malformed_lists(stages) -> None:
    with pytest.raises(ConfigError):
        validate_stages(stages)


def test_validate_stages_rejects_raw_strings() -> None:
    with pytest.raises(ConfigError):
        validate_stages(["pre_rating", "exercise", "complete"])


def test_config_rejects_missing_exercise_stage() -> None:
    with pytest.raises(ConfigError):
        ExerciseConfig(
            id="broken",
            title="Broken",
            kind=ExerciseKind.BREATHING,
            stages=(Stage.PRE_RATING, Stage.COMPLETE),
        )


def test_config_fills_variant_defaults() -> None:
    config = ExerciseConfig(
        id="g",
        title="G",
        kind=ExerciseKind.GROUNDING,
        stages=build_stages(),
    )
    assert config.grounding == GroundingDefaults()
    assert config.breathing is None


def test_config_rejects_zero_target_cycles() -> None:
    with pytest.raises(ConfigError):
        ExerciseConfig(
            id="b",
            title="B",
            kind=ExerciseKind.BREATHING,
            stages=build_stages(),
            breathing=BreathingDefaults(target_cycles=0),
        )


def test_next_stage() -> None:
    config = ExerciseConfig(
        id="b",
        title="B",
        kind=ExerciseKind.BREATHING,
        stages=build_stages(show_instructions=False),
    )
    assert config.next_stage(Stage.PRE_RATING) == Stage.EXERCISE
    assert config.next_stage(Stage.POST_RATING) == Stage.COMPLETE
    assert config.next_stage(Stage.COMPLETE) is None


def test_exercise_config_from_dict_with_flags() -> None:
    config = exercise_config_from_dict({
        "id": "box",
        "title": "Box Breathing",
        "kind": "breathing",
        "require_trigger_log": True,
        "breathing": {"protocol": "box", "target_cycles": 4, "inhale": 4, "hold": 4, "exhale": 4},
        "instructions": ["Inhale", "Hold", "Exhale"],
    })

    assert config.kind == ExerciseKind.BREATHING
    assert Stage.TRIGGER_LOG in config.stages
    assert config.breathing.hold == 4
    assert config.instructions == ("Inhale", "Hold", "Exhale")


def test_exercise_config_from_dict_with_explicit_stages() -> None:
    config = exercise_config_from_dict({
        "id": "quick-ground",
        "kind": "grounding",
        "stages": ["instructions", "exercise", "complete"],
        "grounding": {"see": 1, "touch": 1, "hear": 0, "smell": 0, "taste": 0},
    })

    assert config.title == "quick-ground"
    assert config.stages == (Stage.INSTRUCTIONS, Stage.EXERCISE, Stage.COMPLETE)
    assert config.grounding.targets()["hear"] == 0


@pytest.mark.parametrize(
    "data",
    [
        {"kind": "breathing"},
        {"id": "x", "kind": "yoga"},
        {"id": "x", "kind": "breathing", "stages": ["pre_rating", "stretch", "complete"]},
        {"id": "x", "kind": "breathing", "breathing": {"tempo": 3}},
    ],
)
def test_exercise_config_from_dict_rejects_bad_input(data) -> None:
    with pytest.raises(ConfigError):
        exercise_config_from_dict(data)
