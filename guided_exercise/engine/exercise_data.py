"""Exercise-type payloads and their transition functions.

Each variant is a frozen dataclass tagged by a `type` field. Transitions are
pure: they take the current payload plus an event and return the next
payload, leaving auto-advance decisions to the session.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Literal, Union

from .errors import TypeMismatchError, ValidationError
from .stages import ExerciseConfig, ExerciseKind

SENSE_ORDER: tuple[str, ...] = ("see", "touch", "hear", "smell", "taste")

BREATH_PHASES: tuple[str, ...] = ("inhale", "hold", "exhale", "rest")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Breathing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BreathDurations:
    """Phase lengths in seconds. Optional phases are None when skipped."""

    inhale: float
    exhale: float
    hold: float | None = None
    rest: float | None = None

    def phases(self) -> tuple[str, ...]:
        """Phases this protocol actually uses, in breathing order."""
        return tuple(p for p in BREATH_PHASES if getattr(self, p))


@dataclass(frozen=True)
class CycleRecord:
    """One completed breathing cycle."""

    cycle_number: int
    started_at: str
    completed_at: str
    duration_seconds: float


@dataclass(frozen=True)
class BreathingData:
    protocol: str
    target_cycles: int
    breath_durations: BreathDurations
    completed_cycles: int = 0
    current_phase: str = "inhale"
    cycle_history: tuple[CycleRecord, ...] = ()
    type: Literal["breathing"] = "breathing"

    @property
    def is_finished(self) -> bool:
        return self.completed_cycles >= self.target_cycles


def complete_cycle(
    data: BreathingData,
    started_at: str | None = None,
    completed_at: str | None = None,
    duration_seconds: float | None = None,
) -> BreathingData:
    """Record one finished breathing cycle.

    Once the target is reached further cycles are ignored, so
    completed_cycles never exceeds target_cycles.
    """
    if data.is_finished:
        return data

    completed_at = completed_at or _utc_now()
    started_at = started_at or completed_at
    if duration_seconds is None:
        duration_seconds = _seconds_between(started_at, completed_at)

    record = CycleRecord(
        cycle_number=data.completed_cycles + 1,
        started_at=started_at,
        completed_at=completed_at,
        duration_seconds=duration_seconds,
    )
    return replace(
        data,
        completed_cycles=data.completed_cycles + 1,
        cycle_history=data.cycle_history + (record,),
        current_phase=data.breath_durations.phases()[0],
    )


def advance_phase(data: BreathingData) -> BreathingData:
    """Move to the next breathing phase, wrapping back to inhale."""
    phases = data.breath_durations.phases()
    if data.current_phase not in phases:
        return replace(data, current_phase=phases[0])
    index = phases.index(data.current_phase)
    return replace(data, current_phase=phases[(index + 1) % len(phases)])


def _seconds_between(started_at: str, completed_at: str) -> float:
    try:
        start = datetime.fromisoformat(started_at)
        end = datetime.fromisoformat(completed_at)
    except ValueError:
        return 0.0
    return max((end - start).total_seconds(), 0.0)


# ---------------------------------------------------------------------------
# Grounding (5-4-3-2-1)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SenseProgress:
    target: int
    identified: int = 0
    items: tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        return self.identified >= self.target


@dataclass(frozen=True)
class GroundingData:
    senses: dict[str, SenseProgress] = field(hash=False)
    current_sense: str | None
    total_identified: int = 0
    total_target: int = 0
    type: Literal["grounding"] = "grounding"

    @property
    def is_finished(self) -> bool:
        return self.current_sense is None


def first_incomplete_sense(senses: dict[str, SenseProgress]) -> str | None:
    """First sense in fixed order that hasn't reached its target."""
    for sense in SENSE_ORDER:
        progress = senses.get(sense)
        if progress is not None and not progress.is_complete:
            return sense
    return None


def identify_item(data: GroundingData, text: str) -> GroundingData:
    """Record one item the user named for the current sense.

    Blank input, or input after every sense is done, leaves the data
    unchanged.
    """
    item = text.strip()
    if not item or data.current_sense is None:
        return data

    sense = data.current_sense
    progress = data.senses[sense]
    senses = dict(data.senses)
    senses[sense] = replace(
        progress,
        identified=progress.identified + 1,
        items=progress.items + (item,),
    )

    return replace(
        data,
        senses=senses,
        total_identified=data.total_identified + 1,
        current_sense=first_incomplete_sense(senses),
    )


# ---------------------------------------------------------------------------
# Emotion wheel
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EmotionSelection:
    primary: str
    secondary: str
    intensity: int
    timestamp: str
    tertiary: str | None = None


@dataclass(frozen=True)
class EmotionWheelData:
    target_selections: int = 1
    selected_emotions: tuple[EmotionSelection, ...] = ()
    dominant_emotion: str | None = None
    emotion_family: str | None = None
    notes: str | None = None
    type: Literal["emotion"] = "emotion"

    @property
    def is_finished(self) -> bool:
        # A zero target means the screen decides when naming is done
        return 0 < self.target_selections <= len(self.selected_emotions)


def select_emotion(
    data: EmotionWheelData,
    primary: str,
    secondary: str,
    intensity: int,
    tertiary: str | None = None,
    timestamp: str | None = None,
) -> EmotionWheelData:
    """Record an emotion the user named, most specific word last.

    Blank names, or a selection after the target is met, leave the data
    unchanged.

    Raises:
        ValidationError: If intensity is outside 1-10
    """
    primary = primary.strip()
    secondary = secondary.strip()
    tertiary = tertiary.strip() if tertiary and tertiary.strip() else None
    if not primary or not secondary or data.is_finished:
        return data
    if isinstance(intensity, bool) or not isinstance(intensity, int) or not 1 <= intensity <= 10:
        raise ValidationError(f"Emotion intensity must be between 1 and 10, got {intensity!r}")

    selection = EmotionSelection(
        primary=primary,
        secondary=secondary,
        tertiary=tertiary,
        intensity=intensity,
        timestamp=timestamp or _utc_now(),
    )
    return replace(
        data,
        selected_emotions=data.selected_emotions + (selection,),
        dominant_emotion=tertiary or secondary,
        emotion_family=primary,
    )


# ---------------------------------------------------------------------------
# Brain dump
#
# Only metadata is kept. The text itself never enters the payload, so it
# never reaches snapshots or analytics.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BrainDumpData:
    min_words: int = 10
    word_count: int = 0
    session_duration: float = 0.0
    autosave_count: int = 0
    type: Literal["brain_dump"] = "brain_dump"

    @property
    def is_finished(self) -> bool:
        # Writing has no natural end; the user decides when it's out
        return False

    @property
    def can_continue(self) -> bool:
        return self.word_count >= self.min_words


def count_words(text: str) -> int:
    return len(text.split())


def record_word_count(
    data: BrainDumpData,
    word_count: int,
    session_duration: float | None = None,
) -> BrainDumpData:
    """Update the running word count (and optionally time spent writing)."""
    changes: dict[str, Any] = {"word_count": max(int(word_count), 0)}
    if session_duration is not None:
        changes["session_duration"] = max(float(session_duration), 0.0)
    return replace(data, **changes)


def record_autosave(data: BrainDumpData, word_count: int) -> BrainDumpData:
    """Note that the draft was saved on the device."""
    updated = record_word_count(data, word_count)
    return replace(updated, autosave_count=data.autosave_count + 1)


# ---------------------------------------------------------------------------
# Mind clear
# ---------------------------------------------------------------------------

THOUGHT_CATEGORIES: tuple[str, ...] = ("worry", "task", "memory", "decision", "other")


@dataclass(frozen=True)
class ThoughtCategory:
    count: int = 0
    cleared: bool = False


@dataclass(frozen=True)
class MindClearData:
    thought_categories: dict[str, ThoughtCategory] = field(hash=False)
    target_thoughts: int = 5
    total_thoughts: int = 0
    cleared_thoughts: int = 0
    focus_score: int | None = None
    type: Literal["mind_clear"] = "mind_clear"

    @property
    def is_finished(self) -> bool:
        return 0 < self.target_thoughts <= self.cleared_thoughts


def clear_thought(data: MindClearData, category: str) -> MindClearData:
    """Count one thought the user wrote down under a category.

    A thought after the target is met leaves the data unchanged.

    Raises:
        ValidationError: If the category isn't one of THOUGHT_CATEGORIES
    """
    if category not in THOUGHT_CATEGORIES:
        raise ValidationError(
            f"Unknown thought category {category!r}; expected one of {', '.join(THOUGHT_CATEGORIES)}"
        )
    if data.is_finished:
        return data

    categories = dict(data.thought_categories)
    current = categories.get(category, ThoughtCategory())
    categories[category] = replace(current, count=current.count + 1, cleared=True)

    return replace(
        data,
        thought_categories=categories,
        total_thoughts=data.total_thoughts + 1,
        cleared_thoughts=data.cleared_thoughts + 1,
    )


def set_focus_score(data: MindClearData, score: int) -> MindClearData:
    """Record how focused the user feels afterwards (1-10).

    Raises:
        ValidationError: If score is outside 1-10
    """
    if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 10:
        raise ValidationError(f"Focus score must be between 1 and 10, got {score!r}")
    return replace(data, focus_score=score)


ExerciseData = Union[BreathingData, GroundingData, EmotionWheelData, BrainDumpData, MindClearData]


def should_auto_advance(data: ExerciseData) -> bool:
    """Whether the payload says the exercise stage is finished."""
    return data.is_finished


def initial_exercise_data(config: ExerciseConfig) -> ExerciseData:
    """Fresh payload for a new session, from the config's defaults."""
    if config.kind == ExerciseKind.BREATHING:
        defaults = config.breathing
        durations = BreathDurations(
            inhale=defaults.inhale,
            exhale=defaults.exhale,
            hold=defaults.hold,
            rest=defaults.rest,
        )
        return BreathingData(
            protocol=defaults.protocol,
            target_cycles=defaults.target_cycles,
            breath_durations=durations,
            current_phase=durations.phases()[0],
        )

    if config.kind == ExerciseKind.GROUNDING:
        targets = config.grounding.targets()
        senses = {sense: SenseProgress(target=targets[sense]) for sense in SENSE_ORDER}
        return GroundingData(
            senses=senses,
            current_sense=first_incomplete_sense(senses),
            total_target=sum(targets.values()),
        )

    if config.kind == ExerciseKind.EMOTION:
        return EmotionWheelData(target_selections=config.emotion.target_selections)

    if config.kind == ExerciseKind.BRAIN_DUMP:
        return BrainDumpData(min_words=config.brain_dump.min_words)

    return MindClearData(
        thought_categories={category: ThoughtCategory() for category in THOUGHT_CATEGORIES},
        target_thoughts=config.mind_clear.target_thoughts,
    )


def exercise_data_to_dict(data: ExerciseData) -> dict:
    """Convert to a JSON-friendly dictionary."""
    if isinstance(data, BreathingData):
        return {
            "type": data.type,
            "protocol": data.protocol,
            "current_phase": data.current_phase,
            "completed_cycles": data.completed_cycles,
            "target_cycles": data.target_cycles,
            "breath_durations": {
                "inhale": data.breath_durations.inhale,
                "hold": data.breath_durations.hold,
                "exhale": data.breath_durations.exhale,
                "rest": data.breath_durations.rest,
            },
            "cycle_history": [
                {
                    "cycle_number": c.cycle_number,
                    "started_at": c.started_at,
                    "completed_at": c.completed_at,
                    "duration_seconds": c.duration_seconds,
                }
                for c in data.cycle_history
            ],
        }

    if isinstance(data, GroundingData):
        return {
            "type": data.type,
            "senses": {
                sense: {
                    "target": p.target,
                    "identified": p.identified,
                    "items": list(p.items),
                }
                for sense, p in data.senses.items()
            },
            "current_sense": data.current_sense,
            "total_identified": data.total_identified,
            "total_target": data.total_target,
        }

    if isinstance(data, EmotionWheelData):
        return {
            "type": data.type,
            "target_selections": data.target_selections,
            "selected_emotions": [
                {
                    "primary": e.primary,
                    "secondary": e.secondary,
                    "tertiary": e.tertiary,
                    "intensity": e.intensity,
                    "timestamp": e.timestamp,
                }
                for e in data.selected_emotions
            ],
            "dominant_emotion": data.dominant_emotion,
            "emotion_family": data.emotion_family,
            "notes": data.notes,
        }

    if isinstance(data, BrainDumpData):
        return {
            "type": data.type,
            "min_words": data.min_words,
            "word_count": data.word_count,
            "session_duration": data.session_duration,
            "autosave_count": data.autosave_count,
        }

    return {
        "type": data.type,
        "thought_categories": {
            category: {"count": c.count, "cleared": c.cleared}
            for category, c in data.thought_categories.items()
        },
        "target_thoughts": data.target_thoughts,
        "total_thoughts": data.total_thoughts,
        "cleared_thoughts": data.cleared_thoughts,
        "focus_score": data.focus_score,
    }


def exercise_data_from_dict(data: dict[str, Any]) -> ExerciseData:
    """Rebuild a payload saved with exercise_data_to_dict."""
    kind = data.get("type")

    if kind == "breathing":
        return BreathingData(
            protocol=data["protocol"],
            target_cycles=data["target_cycles"],
            breath_durations=BreathDurations(**data["breath_durations"]),
            completed_cycles=data["completed_cycles"],
            current_phase=data["current_phase"],
            cycle_history=tuple(CycleRecord(**c) for c in data["cycle_history"]),
        )

    if kind == "grounding":
        senses = {
            sense: SenseProgress(
                target=p["target"],
                identified=p["identified"],
                items=tuple(p["items"]),
            )
            for sense, p in data["senses"].items()
        }
        return GroundingData(
            senses=senses,
            current_sense=data["current_sense"],
            total_identified=data["total_identified"],
            total_target=data["total_target"],
        )

    if kind == "emotion":
        return EmotionWheelData(
            target_selections=data["target_selections"],
            selected_emotions=tuple(EmotionSelection(**e) for e in data["selected_emotions"]),
            dominant_emotion=data.get("dominant_emotion"),
            emotion_family=data.get("emotion_family"),
            notes=data.get("notes"),
        )

    if kind == "brain_dump":
        return BrainDumpData(
            min_words=data["min_words"],
            word_count=data["word_count"],
            session_duration=data["session_duration"],
            autosave_count=data["autosave_count"],
        )

    if kind == "mind_clear":
        return MindClearData(
            thought_categories={
                category: ThoughtCategory(count=c["count"], cleared=c["cleared"])
                for category, c in data["thought_categories"].items()
            },
            target_thoughts=data["target_thoughts"],
            total_thoughts=data["total_thoughts"],
            cleared_thoughts=data["cleared_thoughts"],
            focus_score=data.get("focus_score"),
        )

    raise TypeMismatchError(
        expected=" or ".join(k.value for k in ExerciseKind),
        actual=str(kind),
    )
