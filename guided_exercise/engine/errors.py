"""Errors raised by the guided exercise engine."""


class ExerciseEngineError(Exception):
    """Base class for all engine errors."""


class ConfigError(ExerciseEngineError):
    """Exercise config is malformed; the session cannot be created."""


class ValidationError(ExerciseEngineError):
    """User input was rejected (e.g. a rating outside 1-10)."""


class TypeMismatchError(ExerciseEngineError):
    """Exercise data of the wrong variant was passed to a session."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected!r} exercise data, got {actual!r}")


class PrematureCompletionError(ExerciseEngineError):
    """complete() was called before the session reached its final stage."""

    def __init__(self, current_stage: str):
        self.current_stage = current_stage
        super().__init__(
            f"Cannot complete session at stage {current_stage!r}; "
            "advance to 'complete' first"
        )


class SessionClosedError(ExerciseEngineError):
    """A mutation was attempted on a completed or abandoned session."""
