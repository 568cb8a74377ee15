"""Guided exercise session engine."""

from .errors import (
    ExerciseEngineError,
    ConfigError,
    ValidationError,
    TypeMismatchError,
    PrematureCompletionError,
    SessionClosedError,
)
from .stages import (
    Stage,
    SessionStatus,
    ExerciseKind,
    ExerciseConfig,
    BreathingDefaults,
    GroundingDefaults,
    EmotionDefaults,
    BrainDumpDefaults,
    MindClearDefaults,
    build_stages,
    exercise_config_from_dict,
)
from .timer import StageTimer
from .exercise_data import (
    BreathingData,
    GroundingData,
    EmotionWheelData,
    BrainDumpData,
    MindClearData,
    ExerciseData,
    SENSE_ORDER,
    THOUGHT_CATEGORIES,
    advance_phase,
    complete_cycle,
    identify_item,
    select_emotion,
    count_words,
    record_word_count,
    record_autosave,
    clear_thought,
    set_focus_score,
)
from .session import SessionStateMachine, ExerciseSession, TerminalRecord, TriggerEntry

__all__ = [
    "ExerciseEngineError",
    "ConfigError",
    "ValidationError",
    "TypeMismatchError",
    "PrematureCompletionError",
    "SessionClosedError",
    "Stage",
    "SessionStatus",
    "ExerciseKind",
    "ExerciseConfig",
    "BreathingDefaults",
    "GroundingDefaults",
    "EmotionDefaults",
    "BrainDumpDefaults",
    "MindClearDefaults",
    "build_stages",
    "exercise_config_from_dict",
    "StageTimer",
    "BreathingData",
    "GroundingData",
    "EmotionWheelData",
    "BrainDumpData",
    "MindClearData",
    "ExerciseData",
    "SENSE_ORDER",
    "THOUGHT_CATEGORIES",
    "advance_phase",
    "complete_cycle",
    "identify_item",
    "select_emotion",
    "count_words",
    "record_word_count",
    "record_autosave",
    "clear_thought",
    "set_focus_score",
    "SessionStateMachine",
    "ExerciseSession",
    "TerminalRecord",
    "TriggerEntry",
]
