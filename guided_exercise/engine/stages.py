"""Stage model and static exercise configuration.

An exercise walks a fixed, forward-only list of stages:

    pre_rating -> instructions -> exercise -> post_rating -> trigger_log -> complete

Each ExerciseConfig picks a subset of these (in this order). Configs are
immutable and may be shared between any number of open sessions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .errors import ConfigError


class Stage(str, Enum):
    """One step of a guided exercise."""

    PRE_RATING = "pre_rating"
    INSTRUCTIONS = "instructions"
    EXERCISE = "exercise"
    POST_RATING = "post_rating"
    TRIGGER_LOG = "trigger_log"
    COMPLETE = "complete"


CANONICAL_ORDER: tuple[Stage, ...] = tuple(Stage)

# A session may open on either of these
ENTRY_STAGES = (Stage.PRE_RATING, Stage.INSTRUCTIONS)


class SessionStatus(str, Enum):
    """Lifecycle status of a session. Paused is orthogonal to the stage."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ABANDONED)


class ExerciseKind(str, Enum):
    """Discriminant for the exercise data variant."""

    BREATHING = "breathing"
    GROUNDING = "grounding"
    EMOTION = "emotion"
    BRAIN_DUMP = "brain_dump"
    MIND_CLEAR = "mind_clear"


@dataclass(frozen=True)
class BreathingDefaults:
    """Defaults for a cyclic breathing protocol."""

    protocol: str = "cyclic-sigh"
    target_cycles: int = 3

    # Phase durations in seconds; None means the protocol skips that phase
    inhale: float = 2.5
    hold: float | None = None
    exhale: float = 6.0
    rest: float | None = None


@dataclass(frozen=True)
class GroundingDefaults:
    """Items to name per sense for 5-4-3-2-1 grounding."""

    see: int = 5
    touch: int = 4
    hear: int = 3
    smell: int = 2
    taste: int = 1

    def targets(self) -> dict[str, int]:
        """Targets keyed by sense, in fixed sense order."""
        return {
            "see": self.see,
            "touch": self.touch,
            "hear": self.hear,
            "smell": self.smell,
            "taste": self.taste,
        }


@dataclass(frozen=True)
class EmotionDefaults:
    # Named emotions before the exercise stage ends; 0 leaves it to the screen
    target_selections: int = 1


@dataclass(frozen=True)
class BrainDumpDefaults:
    # Words the screen asks for before it offers to continue
    min_words: int = 10


@dataclass(frozen=True)
class MindClearDefaults:
    # Cleared thoughts before the exercise stage ends; 0 leaves it to the screen
    target_thoughts: int = 5


@dataclass(frozen=True)
class ExerciseConfig:
    """Static description of one guided exercise."""

    id: str
    title: str
    kind: ExerciseKind
    stages: tuple[Stage, ...]

    breathing: BreathingDefaults | None = None
    grounding: GroundingDefaults | None = None
    emotion: EmotionDefaults | None = None
    brain_dump: BrainDumpDefaults | None = None
    mind_clear: MindClearDefaults | None = None

    allow_pause: bool = True

    # Copy; opaque to the engine
    short_title: str = ""
    description: str = ""
    category: str = ""
    instructions: tuple[str, ...] = ()
    tips: tuple[str, ...] = ()
    copy: Mapping[str, str] = field(default_factory=dict, hash=False, compare=False)

    def __post_init__(self):
        validate_stages(self.stages)
        if self.kind == ExerciseKind.BREATHING:
            defaults = self.breathing or BreathingDefaults()
            if defaults.target_cycles < 1:
                raise ConfigError(f"{self.id}: target_cycles must be at least 1")
            if defaults.inhale <= 0 or defaults.exhale <= 0:
                raise ConfigError(f"{self.id}: inhale and exhale durations must be positive")
            object.__setattr__(self, "breathing", defaults)
        elif self.kind == ExerciseKind.GROUNDING:
            defaults = self.grounding or GroundingDefaults()
            targets = defaults.targets()
            if any(t < 0 for t in targets.values()) or sum(targets.values()) < 1:
                raise ConfigError(f"{self.id}: grounding targets must be non-negative and not all zero")
            object.__setattr__(self, "grounding", defaults)
        elif self.kind == ExerciseKind.EMOTION:
            defaults = self.emotion or EmotionDefaults()
            if defaults.target_selections < 0:
                raise ConfigError(f"{self.id}: target_selections must not be negative")
            object.__setattr__(self, "emotion", defaults)
        elif self.kind == ExerciseKind.BRAIN_DUMP:
            defaults = self.brain_dump or BrainDumpDefaults()
            if defaults.min_words < 0:
                raise ConfigError(f"{self.id}: min_words must not be negative")
            object.__setattr__(self, "brain_dump", defaults)
        elif self.kind == ExerciseKind.MIND_CLEAR:
            defaults = self.mind_clear or MindClearDefaults()
            if defaults.target_thoughts < 0:
                raise ConfigError(f"{self.id}: target_thoughts must not be negative")
            object.__setattr__(self, "mind_clear", defaults)

    def collects_pre_rating(self) -> bool:
        return Stage.PRE_RATING in self.stages

    def next_stage(self, stage: Stage) -> Stage | None:
        """Stage that follows `stage`, or None at the end."""
        index = self.stages.index(stage)
        if index + 1 < len(self.stages):
            return self.stages[index + 1]
        return None


def validate_stages(stages: tuple[Stage, ...] | list[Stage]) -> None:
    """Check a stage list against the fixed stage order.

    Raises:
        ConfigError: If the list is empty, doesn't open on pre_rating or
            instructions, doesn't end at complete, lacks exactly one
            exercise stage, or has repeated or out-of-order stages.
    """
    if not stages:
        raise ConfigError("Stage list is empty")

    unknown = [s for s in stages if not isinstance(s, Stage)]
    if unknown:
        raise ConfigError(f"Unknown stages: {unknown}")

    if stages[0] not in ENTRY_STAGES:
        raise ConfigError(f"Stage list must begin at pre_rating or instructions, not {stages[0].value}")

    if stages[-1] != Stage.COMPLETE:
        raise ConfigError(f"Stage list must end at complete, not {stages[-1].value}")

    exercise_count = sum(1 for s in stages if s == Stage.EXERCISE)
    if exercise_count != 1:
        raise ConfigError(f"Stage list must contain exactly one exercise stage, found {exercise_count}")

    if len(set(stages)) != len(stages):
        raise ConfigError("Stage list repeats a stage")

    positions = [CANONICAL_ORDER.index(s) for s in stages]
    if positions != sorted(positions):
        raise ConfigError("Stage list is out of order")


def build_stages(
    require_pre_rating: bool = True,
    show_instructions: bool = True,
    require_post_rating: bool = True,
    require_trigger_log: bool = False,
) -> tuple[Stage, ...]:
    """Build a stage list from per-stage flags.

    At least one of pre-rating or instructions must be enabled, since a
    session has to open on one of them.
    """
    stages = []
    if require_pre_rating:
        stages.append(Stage.PRE_RATING)
    if show_instructions:
        stages.append(Stage.INSTRUCTIONS)
    stages.append(Stage.EXERCISE)
    if require_post_rating:
        stages.append(Stage.POST_RATING)
    if require_trigger_log:
        stages.append(Stage.TRIGGER_LOG)
    stages.append(Stage.COMPLETE)

    result = tuple(stages)
    validate_stages(result)
    return result


_VARIANT_DEFAULTS = {
    "breathing": BreathingDefaults,
    "grounding": GroundingDefaults,
    "emotion": EmotionDefaults,
    "brain_dump": BrainDumpDefaults,
    "mind_clear": MindClearDefaults,
}


def exercise_config_from_dict(data: Mapping[str, Any]) -> ExerciseConfig:
    """Build an ExerciseConfig from a plain mapping (e.g. parsed YAML).

    Stages come either from an explicit `stages` list or from the
    `require_pre_rating`/`show_instructions`/... flags.
    """
    try:
        config_id = data["id"]
        kind = ExerciseKind(data["kind"])
    except KeyError as e:
        raise ConfigError(f"Exercise config is missing {e.args[0]!r}") from e
    except ValueError as e:
        raise ConfigError(f"Unknown exercise kind: {data.get('kind')!r}") from e

    if "stages" in data:
        try:
            stages = tuple(Stage(s) for s in data["stages"])
        except ValueError as e:
            raise ConfigError(f"{config_id}: {e}") from e
    else:
        stages = build_stages(
            require_pre_rating=data.get("require_pre_rating", True),
            show_instructions=data.get("show_instructions", True),
            require_post_rating=data.get("require_post_rating", True),
            require_trigger_log=data.get("require_trigger_log", False),
        )

    variant_defaults = {}
    try:
        for key, defaults_class in _VARIANT_DEFAULTS.items():
            if key in data:
                variant_defaults[key] = defaults_class(**data[key])
    except TypeError as e:
        raise ConfigError(f"{config_id}: {e}") from e

    return ExerciseConfig(
        id=config_id,
        title=data.get("title", config_id),
        kind=kind,
        stages=stages,
        **variant_defaults,
        allow_pause=data.get("allow_pause", True),
        short_title=data.get("short_title", ""),
        description=data.get("description", ""),
        category=data.get("category", ""),
        instructions=tuple(data.get("instructions", ())),
        tips=tuple(data.get("tips", ())),
        copy=dict(data.get("copy", {})),
    )
