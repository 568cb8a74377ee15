"""Session state and the guided exercise state machine."""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from loguru import logger

from .errors import (
    ConfigError,
    PrematureCompletionError,
    SessionClosedError,
    TypeMismatchError,
    ValidationError,
)
from .exercise_data import (
    BrainDumpData,
    BreathingData,
    EmotionWheelData,
    ExerciseData,
    GroundingData,
    MindClearData,
    clear_thought,
    complete_cycle,
    exercise_data_from_dict,
    exercise_data_to_dict,
    identify_item,
    initial_exercise_data,
    record_autosave,
    record_word_count,
    select_emotion,
    set_focus_score,
    should_auto_advance,
)
from .stages import ExerciseConfig, SessionStatus, Stage, validate_stages
from .timer import StageTimer

RATING_MIN = 1
RATING_MAX = 10


class SnapshotSink(Protocol):
    """Receives session snapshots (see persistence.SessionPersistenceAdapter)."""

    def snapshot(self, data: dict) -> None: ...

    def commit(self, data: dict) -> None: ...


class EventSink(Protocol):
    """Receives analytics events (see analytics.AnalyticsDispatcher)."""

    def track(self, event: str, properties: dict) -> None: ...

    def record_session(self, record: "TerminalRecord") -> None: ...


@dataclass(frozen=True)
class TriggerEntry:
    """Something the user says set off their anxiety."""

    category: str
    timestamp: str
    custom_text: str | None = None

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "custom_text": self.custom_text,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class Progress:
    current_step: int
    total_steps: int
    percentage: int


@dataclass(frozen=True)
class TerminalRecord:
    """Summary handed to analytics and insights when a session ends."""

    session_id: str
    config_id: str
    status: SessionStatus
    pre_rating: int | None
    post_rating: int | None
    total_duration: float
    triggers: tuple[TriggerEntry, ...]
    final_stage: Stage
    module_context: str
    module_screen: str | None = None
    started_at: str = ""
    ended_at: str = ""
    progress_percentage: int = 0

    @property
    def anxiety_reduction(self) -> int | None:
        if self.pre_rating is None or self.post_rating is None:
            return None
        return self.pre_rating - self.post_rating

    @property
    def reduction_percentage(self) -> int | None:
        reduction = self.anxiety_reduction
        if reduction is None:
            return None
        return round(reduction / self.pre_rating * 100)

    @property
    def abandoned_at_percentage(self) -> int | None:
        if self.status != SessionStatus.ABANDONED:
            return None
        return self.progress_percentage

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "config_id": self.config_id,
            "status": self.status.value,
            "pre_rating": self.pre_rating,
            "post_rating": self.post_rating,
            "anxiety_reduction": self.anxiety_reduction,
            "reduction_percentage": self.reduction_percentage,
            "total_duration": self.total_duration,
            "triggers": [t.to_dict() for t in self.triggers],
            "final_stage": self.final_stage.value,
            "abandoned_at_percentage": self.abandoned_at_percentage,
            "module_context": self.module_context,
            "module_screen": self.module_screen,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
        }


@dataclass
class ExerciseSession:
    """Runtime state of one guided exercise."""

    # Session metadata
    session_id: str
    config: ExerciseConfig
    timer: StageTimer = field(repr=False)
    started_at: str = ""
    ended_at: str | None = None
    module_context: str = "standalone"
    module_screen: str | None = None

    # Flow
    current_stage: Stage = Stage.PRE_RATING
    status: SessionStatus = SessionStatus.ACTIVE

    # Outcomes
    pre_rating: int | None = None
    post_rating: int | None = None
    exercise_data: ExerciseData | None = None
    triggers: list[TriggerEntry] = field(default_factory=list)

    @property
    def current_stage_duration(self) -> float:
        """Active seconds spent in the current stage."""
        return self.timer.stage_elapsed

    @property
    def total_duration(self) -> float:
        """Active seconds across the session."""
        return self.timer.total_elapsed

    @property
    def is_paused(self) -> bool:
        return self.status == SessionStatus.PAUSED

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def progress(self) -> Progress:
        stages = self.config.stages
        index = stages.index(self.current_stage)
        return Progress(
            current_step=index + 1,
            total_steps=len(stages),
            percentage=round(index / (len(stages) - 1) * 100),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for persistence."""
        progress = self.progress
        return {
            "session_id": self.session_id,
            "config_id": self.config.id,
            "exercise_kind": self.config.kind.value,
            "current_stage": self.current_stage.value,
            "status": self.status.value,
            "pre_rating": self.pre_rating,
            "post_rating": self.post_rating,
            "exercise_data": exercise_data_to_dict(self.exercise_data),
            "triggers": [t.to_dict() for t in self.triggers],
            "current_stage_duration": self.current_stage_duration,
            "total_duration": self.total_duration,
            "progress": {
                "current_step": progress.current_step,
                "total_steps": progress.total_steps,
                "percentage": progress.percentage,
            },
            "module_context": self.module_context,
            "module_screen": self.module_screen,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
        }


class SessionStateMachine:
    """Drives one exercise session through its configured stages.

    A machine is owned by the screen that started it. Every operation is
    synchronous; persistence and analytics are notified but never allowed
    to fail an operation.
    """

    def __init__(
        self,
        session: ExerciseSession,
        persistence: SnapshotSink | None = None,
        analytics: EventSink | None = None,
        clock: Callable[[], float] = time.time,
        strict: bool = True,
    ):
        """Wrap an existing session. Use start() or restore() instead.

        Args:
            session: Session to drive
            persistence: Snapshot sink, notified after every mutation
            analytics: Event sink, also receives the terminal record
            clock: Wall clock in seconds, shared with the session's timer
            strict: Raise TypeMismatchError on wrong-variant data; when
                False it is logged and the data dropped
        """
        self.session = session
        self.persistence = persistence
        self.analytics = analytics
        self.strict = strict
        self._clock = clock
        self._cycle_started_at = self._timestamp()

    @classmethod
    def start(
        cls,
        config: ExerciseConfig,
        module_context: str = "standalone",
        module_screen: str | None = None,
        *,
        persistence: SnapshotSink | None = None,
        analytics: EventSink | None = None,
        clock: Callable[[], float] = time.time,
        strict: bool = True,
        session_id: str | None = None,
    ) -> "SessionStateMachine":
        """Start a new session on the config's first stage.

        Raises:
            ConfigError: If the config's stage list is malformed
        """
        validate_stages(config.stages)

        timer = StageTimer(clock=clock)
        session = ExerciseSession(
            session_id=session_id or uuid.uuid4().hex,
            config=config,
            timer=timer,
            started_at=_iso(clock()),
            module_context=module_context,
            module_screen=module_screen,
            current_stage=config.stages[0],
            exercise_data=initial_exercise_data(config),
        )

        machine = cls(session, persistence, analytics, clock=clock, strict=strict)
        logger.debug(f"Started {config.id} session {session.session_id}")
        machine._emit(
            "EXERCISE_STARTED",
            exercise_name=config.title,
            exercise_category=config.category,
            module_context=module_context,
        )
        machine._publish()
        return machine

    @classmethod
    def restore(
        cls,
        config: ExerciseConfig,
        snapshot: dict[str, Any],
        *,
        persistence: SnapshotSink | None = None,
        analytics: EventSink | None = None,
        clock: Callable[[], float] = time.time,
        strict: bool = True,
    ) -> "SessionStateMachine":
        """Rebuild an unfinished session from a saved snapshot.

        The session comes back paused, with its saved durations carried
        over; call resume() when the user is back on the screen.

        Raises:
            ConfigError: If the snapshot belongs to another exercise or
                its stage isn't in the config
            SessionClosedError: If the snapshot is of a finished session
        """
        if snapshot.get("config_id") != config.id:
            raise ConfigError(
                f"Snapshot is for {snapshot.get('config_id')!r}, not {config.id!r}"
            )

        status = SessionStatus(snapshot["status"])
        if status.is_terminal:
            raise SessionClosedError(f"Session {snapshot['session_id']} is already {status.value}")

        try:
            stage = Stage(snapshot["current_stage"])
        except ValueError as e:
            raise ConfigError(str(e)) from e
        if stage not in config.stages:
            raise ConfigError(f"Stage {stage.value} is not part of {config.id}")

        exercise_data = exercise_data_from_dict(snapshot["exercise_data"])
        if exercise_data.type != config.kind.value:
            raise TypeMismatchError(expected=config.kind.value, actual=exercise_data.type)

        try:
            pre_rating = _optional_rating(snapshot.get("pre_rating"))
            post_rating = _optional_rating(snapshot.get("post_rating"))
        except ValidationError as e:
            raise ConfigError(f"Snapshot {snapshot['session_id']} has a bad rating: {e}") from e
        if post_rating is not None and pre_rating is None and config.collects_pre_rating():
            raise ConfigError(f"Snapshot {snapshot['session_id']} has a post rating but no pre rating")

        stage_duration = snapshot.get("current_stage_duration", 0.0)
        # A finished exercise whose advance was never saved resumes on the next stage
        if stage == Stage.EXERCISE and should_auto_advance(exercise_data):
            stage = config.next_stage(stage)
            stage_duration = 0.0

        timer = StageTimer(
            clock=clock,
            initial_total=snapshot.get("total_duration", 0.0),
            initial_stage=stage_duration,
        )
        timer.pause()

        session = ExerciseSession(
            session_id=snapshot["session_id"],
            config=config,
            timer=timer,
            started_at=snapshot.get("started_at", ""),
            module_context=snapshot.get("module_context", "standalone"),
            module_screen=snapshot.get("module_screen"),
            current_stage=stage,
            status=SessionStatus.PAUSED,
            pre_rating=pre_rating,
            post_rating=post_rating,
            exercise_data=exercise_data,
            triggers=[
                TriggerEntry(
                    category=t["category"],
                    timestamp=t["timestamp"],
                    custom_text=t.get("custom_text"),
                )
                for t in snapshot.get("triggers", [])
            ],
        )

        logger.info(f"Restored session {session.session_id} at stage {stage.value}")
        return cls(session, persistence, analytics, clock=clock, strict=strict)

    # ------------------------------------------------------------------
    # Stage flow
    # ------------------------------------------------------------------

    @property
    def current_stage(self) -> Stage:
        return self.session.current_stage

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    def go_to_next_stage(self, expected_stage: Stage | None = None) -> bool:
        """Advance to the next configured stage.

        Args:
            expected_stage: If given, only advance when the session is
                still at this stage. Lets a screen advance after an event
                the engine may already have auto-advanced on.

        Returns:
            True if the stage changed
        """
        self._ensure_open()
        session = self.session
        current = session.current_stage

        if expected_stage is not None and expected_stage != current:
            logger.debug(
                f"Session {session.session_id}: skip advance from {expected_stage.value}, "
                f"already at {current.value}"
            )
            return False

        next_stage = session.config.next_stage(current)
        if next_stage is None:
            logger.warning(f"Session {session.session_id}: no stage after {current.value}")
            return False

        previous_duration = session.current_stage_duration
        session.current_stage = next_stage
        session.timer.restart_stage()
        if next_stage == Stage.EXERCISE:
            self._cycle_started_at = self._timestamp()

        self._emit(
            "EXERCISE_STAGE_TRANSITION",
            from_stage=current.value,
            to_stage=next_stage.value,
            duration_in_previous_stage=previous_duration,
        )
        self._publish()

        # Data finished before the exercise stage was reached has nothing left to drive it
        if next_stage == Stage.EXERCISE and should_auto_advance(session.exercise_data):
            logger.debug(f"Session {session.session_id}: exercise already finished, advancing")
            self.go_to_next_stage()
        return True

    # ------------------------------------------------------------------
    # Ratings and triggers
    # ------------------------------------------------------------------

    def set_pre_rating(self, rating: int) -> None:
        """Record how anxious the user feels before the exercise (1-10)."""
        self._ensure_open()
        self.session.pre_rating = _validate_rating(rating)
        self._emit("EXERCISE_RATING_PRE", pre_anxiety_rating=rating)
        self._publish()

    def set_post_rating(self, rating: int) -> None:
        """Record how anxious the user feels after the exercise (1-10).

        Raises:
            ValidationError: If the rating is out of range, or the exercise
                collects a pre-rating and it hasn't been given yet
        """
        self._ensure_open()
        rating = _validate_rating(rating)
        session = self.session
        if session.config.collects_pre_rating() and session.pre_rating is None:
            raise ValidationError("Post-rating requires a pre-rating first")

        session.post_rating = rating
        self._emit(
            "EXERCISE_RATING_POST",
            post_anxiety_rating=rating,
            pre_anxiety_rating=session.pre_rating,
        )
        self._publish()

    def log_trigger(
        self,
        category: str,
        custom_text: str | None = None,
        timestamp: str | None = None,
    ) -> TriggerEntry:
        """Append a trigger to the session's log."""
        self._ensure_open()
        if not category or not category.strip():
            raise ValidationError("Trigger category is required")

        entry = TriggerEntry(
            category=category,
            custom_text=custom_text,
            timestamp=timestamp or self._timestamp(),
        )
        self.session.triggers.append(entry)
        self._emit("EXERCISE_TRIGGER_LOGGED", trigger_category=category)
        self._publish()
        return entry

    # ------------------------------------------------------------------
    # Exercise data
    # ------------------------------------------------------------------

    def update_exercise_data(self, data: ExerciseData) -> bool:
        """Replace the exercise payload, then check for auto-advance.

        While at the exercise stage, a finished payload (all cycles done,
        every sense named) moves the session on to the next stage.

        Returns:
            True if the data was applied

        Raises:
            TypeMismatchError: In strict mode, if the variant doesn't match
                the session's exercise kind
        """
        self._ensure_open()
        session = self.session
        expected = session.exercise_data.type

        if data.type != expected:
            self._reject_variant(expected, data.type)
            return False

        session.exercise_data = data
        self._publish()

        if session.current_stage == Stage.EXERCISE and should_auto_advance(data):
            logger.debug(f"Session {session.session_id}: exercise finished, advancing")
            self.go_to_next_stage()
        return True

    def complete_breathing_cycle(
        self,
        started_at: str | None = None,
        completed_at: str | None = None,
    ) -> ExerciseData:
        """Record one finished breathing cycle.

        Timestamps default to the end of the previous cycle (or the start
        of the exercise stage) and now.
        """
        self._ensure_open()
        data = self.session.exercise_data
        if not isinstance(data, BreathingData):
            self._reject_variant(data.type, "breathing")
            return data

        completed_at = completed_at or self._timestamp()
        updated = complete_cycle(
            data,
            started_at=started_at or self._cycle_started_at,
            completed_at=completed_at,
        )
        self._cycle_started_at = completed_at

        if updated is not data:
            self._emit(
                "EXERCISE_CYCLE_COMPLETED",
                cycle_number=updated.completed_cycles,
                target_cycles=updated.target_cycles,
            )
            self.update_exercise_data(updated)
        return updated

    def identify_grounding_item(self, text: str) -> ExerciseData:
        """Record one item the user named for the current sense."""
        self._ensure_open()
        data = self.session.exercise_data
        if not isinstance(data, GroundingData):
            self._reject_variant(data.type, "grounding")
            return data

        updated = identify_item(data, text)
        if updated is not data:
            self.update_exercise_data(updated)
        return updated

    def select_emotion(
        self,
        primary: str,
        secondary: str,
        intensity: int | None = None,
        tertiary: str | None = None,
    ) -> ExerciseData:
        """Record an emotion the user named on the wheel.

        Intensity defaults to the pre rating (or 5 without one).
        """
        self._ensure_open()
        data = self.session.exercise_data
        if not isinstance(data, EmotionWheelData):
            self._reject_variant(data.type, "emotion")
            return data

        if intensity is None:
            intensity = self.session.pre_rating or 5
        updated = select_emotion(
            data,
            primary,
            secondary,
            intensity,
            tertiary=tertiary,
            timestamp=self._timestamp(),
        )
        if updated is not data:
            self.update_exercise_data(updated)
        return updated

    def record_brain_dump(self, word_count: int, autosave: bool = False) -> ExerciseData:
        """Update the brain dump's word count; the text itself stays with the caller."""
        self._ensure_open()
        data = self.session.exercise_data
        if not isinstance(data, BrainDumpData):
            self._reject_variant(data.type, "brain_dump")
            return data

        updated = record_word_count(
            data,
            word_count,
            session_duration=self.session.current_stage_duration,
        )
        if autosave:
            updated = record_autosave(updated, word_count)
        self.update_exercise_data(updated)
        return updated

    def clear_thought(self, category: str) -> ExerciseData:
        """Count one thought the user offloaded under a category."""
        self._ensure_open()
        data = self.session.exercise_data
        if not isinstance(data, MindClearData):
            self._reject_variant(data.type, "mind_clear")
            return data

        updated = clear_thought(data, category)
        if updated is not data:
            self.update_exercise_data(updated)
        return updated

    def set_focus_score(self, score: int) -> ExerciseData:
        """Record how focused the user feels after clearing (1-10)."""
        self._ensure_open()
        data = self.session.exercise_data
        if not isinstance(data, MindClearData):
            self._reject_variant(data.type, "mind_clear")
            return data

        updated = set_focus_score(data, score)
        self.update_exercise_data(updated)
        return updated

    # ------------------------------------------------------------------
    # Pause / resume
    # ------------------------------------------------------------------

    def pause(self) -> bool:
        """Pause the session, freezing both durations.

        Returns:
            True if the session was paused by this call
        """
        self._ensure_open()
        session = self.session
        if session.status == SessionStatus.PAUSED:
            return False
        if not session.config.allow_pause:
            logger.warning(f"Session {session.session_id}: {session.config.id} can't be paused")
            return False

        session.status = SessionStatus.PAUSED
        session.timer.pause()
        self._emit("EXERCISE_PAUSED", stage=session.current_stage.value)
        self._publish()
        return True

    def resume(self) -> bool:
        """Resume a paused session; the paused gap is not counted.

        Returns:
            True if the session was resumed by this call
        """
        self._ensure_open()
        session = self.session
        if session.status != SessionStatus.PAUSED:
            return False

        session.status = SessionStatus.ACTIVE
        session.timer.resume()
        self._emit("EXERCISE_RESUMED", stage=session.current_stage.value)
        self._publish()
        return True

    # ------------------------------------------------------------------
    # Ending
    # ------------------------------------------------------------------

    def complete(self) -> TerminalRecord:
        """Finish the session. Only valid at the complete stage.

        Raises:
            PrematureCompletionError: If the session hasn't reached the
                complete stage yet
        """
        self._ensure_open()
        session = self.session
        if session.current_stage != Stage.COMPLETE:
            raise PrematureCompletionError(session.current_stage.value)

        self._finish(SessionStatus.COMPLETED)
        record = self.terminal_record()
        self._emit(
            "EXERCISE_COMPLETED",
            exercise_name=session.config.title,
            duration_seconds=record.total_duration,
            pre_anxiety_rating=record.pre_rating,
            post_anxiety_rating=record.post_rating,
            anxiety_reduction=record.anxiety_reduction,
            reduction_percentage=record.reduction_percentage,
        )
        self._hand_off(record)
        return record

    def abandon(self) -> TerminalRecord:
        """End the session early. Safe to call at any point.

        An abandoned session is still recorded, with whatever was
        collected so far. Calling this on an already finished session
        returns its record without notifying anyone again.
        """
        session = self.session
        if session.is_terminal:
            return self.terminal_record()

        progress = session.progress.percentage
        self._finish(SessionStatus.ABANDONED)
        record = self.terminal_record()
        self._emit(
            "EXERCISE_ABANDONED",
            abandoned_at_percentage=progress,
            stage=session.current_stage.value,
            duration_seconds=record.total_duration,
        )
        self._hand_off(record)
        return record

    def terminal_record(self) -> TerminalRecord:
        """Summary of the session as it stands."""
        session = self.session
        return TerminalRecord(
            session_id=session.session_id,
            config_id=session.config.id,
            status=session.status,
            pre_rating=session.pre_rating,
            post_rating=session.post_rating,
            total_duration=session.total_duration,
            triggers=tuple(session.triggers),
            final_stage=session.current_stage,
            module_context=session.module_context,
            module_screen=session.module_screen,
            started_at=session.started_at,
            ended_at=session.ended_at or "",
            progress_percentage=session.progress.percentage,
        )

    def _finish(self, status: SessionStatus) -> None:
        session = self.session
        session.timer.stop()
        session.status = status
        session.ended_at = self._timestamp()
        logger.info(
            f"Session {session.session_id} {status.value} at {session.current_stage.value} "
            f"after {session.total_duration:.1f}s"
        )

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self.session.is_terminal:
            raise SessionClosedError(
                f"Session {self.session.session_id} is {self.session.status.value}"
            )

    def _reject_variant(self, expected: str, actual: str) -> None:
        error = TypeMismatchError(expected=expected, actual=actual)
        if self.strict:
            raise error
        logger.error(f"Session {self.session.session_id}: {error}; data not applied")

    def _timestamp(self) -> str:
        return _iso(self._clock())

    def _emit(self, event: str, **properties) -> None:
        if self.analytics is None:
            return
        properties = {
            "exercise_type": self.session.config.kind.value,
            "exercise_id": self.session.config.id,
            "session_id": self.session.session_id,
            **properties,
        }
        try:
            self.analytics.track(event, properties)
        except Exception:
            logger.exception(f"Analytics event {event} failed")

    def _publish(self) -> None:
        if self.persistence is None:
            return
        try:
            self.persistence.snapshot(self.session.to_dict())
        except Exception:
            logger.exception(f"Snapshot of session {self.session.session_id} failed")

    def _hand_off(self, record: TerminalRecord) -> None:
        if self.persistence is not None:
            try:
                self.persistence.commit(self.session.to_dict())
            except Exception:
                logger.exception(f"Final save of session {record.session_id} failed")

        if self.analytics is not None:
            try:
                self.analytics.record_session(record)
            except Exception:
                logger.exception(f"Terminal record for session {record.session_id} was not delivered")


def _validate_rating(rating: int) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError(f"Rating must be a whole number, got {rating!r}")
    if not RATING_MIN <= rating <= RATING_MAX:
        raise ValidationError(f"Rating must be between {RATING_MIN} and {RATING_MAX}, got {rating}")
    return rating


def _optional_rating(rating: int | None) -> int | None:
    if rating is None:
        return None
    return _validate_rating(rating)


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
