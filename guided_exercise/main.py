"""Terminal entry point: run a guided exercise and browse saved sessions."""

import argparse
import sys
import time

from loguru import logger

from .analytics import AnalyticsDispatcher, create_analytics
from .catalog import (
    DEFAULT_TRIGGER_CATEGORIES,
    EMOTION_FAMILIES,
    all_exercise_configs,
    get_exercise_config,
    register_exercise_configs,
)
from .config import Config, load_config
from .engine import (
    THOUGHT_CATEGORIES,
    BrainDumpData,
    BreathingData,
    ConfigError,
    EmotionWheelData,
    ExerciseConfig,
    GroundingData,
    MindClearData,
    SessionClosedError,
    SessionStateMachine,
    Stage,
    TypeMismatchError,
    ValidationError,
    advance_phase,
    count_words,
)
from .log import setup_logger
from .persistence import JsonSessionStore, SessionPersistenceAdapter, format_duration

SENSE_PROMPTS = {
    "see": "Name something you can see",
    "touch": "Name something you can touch or feel",
    "hear": "Name something you can hear",
    "smell": "Name something you can smell",
    "taste": "Name something you can taste",
}


class _Quit(Exception):
    """User asked to leave the exercise."""


class TerminalExercise:
    """Drives one exercise session from the terminal, stage by stage.

    Stands in for a screen controller: it renders whatever stage the
    engine is on and feeds the user's answers back in.
    """

    def __init__(self, config: Config, exercise: ExerciseConfig):
        self.config = config
        self.exercise = exercise

        self._init_persistence()
        self._init_analytics()

        self.machine: SessionStateMachine | None = None

    def _init_persistence(self) -> None:
        """Initialize session storage."""
        self.store = JsonSessionStore(save_directory=self.config.persistence.save_directory)
        self.persistence = None
        if self.config.persistence.auto_save:
            self.persistence = SessionPersistenceAdapter(
                self.store,
                debounce_sec=self.config.persistence.debounce_sec,
            )

    def _init_analytics(self) -> None:
        """Initialize analytics sinks."""
        self.analytics: AnalyticsDispatcher = create_analytics(
            sinks=self.config.analytics.sinks,
            endpoint=self.config.analytics.endpoint,
            api_key=self.config.analytics.api_key,
            timeout=self.config.analytics.timeout,
        )

    def run(self) -> None:
        """Run the exercise until it's completed or abandoned."""
        print("\n" + "=" * 60)
        print(f"  {self.exercise.title}")
        print("=" * 60)
        if self.exercise.description:
            print(f"\n{self.exercise.description}")
        print("\n(Type 'p' at any prompt to pause, 'q' to stop.)\n")

        self.machine = self._open_session()

        try:
            while self.machine.current_stage != Stage.COMPLETE:
                self._run_stage(self.machine.current_stage)
            self._finish()
        except (_Quit, KeyboardInterrupt, EOFError):
            record = self.machine.abandon()
            print(f"\n\nExercise stopped after {format_duration(record.total_duration)}.")
        finally:
            self._cleanup()

    def _open_session(self) -> SessionStateMachine:
        """Resume an unfinished session for this exercise, or start a new one."""
        snapshot = self.store.load_open_session(self.exercise.id)
        if snapshot is not None:
            answer = input(f"Resume your unfinished session ({snapshot['current_stage']})? [y/N] ")
            if answer.strip().lower().startswith("y"):
                try:
                    machine = SessionStateMachine.restore(
                        self.exercise,
                        snapshot,
                        persistence=self.persistence,
                        analytics=self.analytics,
                        strict=self.config.engine.strict,
                    )
                    machine.resume()
                    return machine
                except (ConfigError, SessionClosedError, TypeMismatchError) as e:
                    logger.warning(f"Could not restore session {snapshot['session_id']}: {e}")

        return SessionStateMachine.start(
            self.exercise,
            module_context=self.config.engine.module_context,
            module_screen="cli",
            persistence=self.persistence,
            analytics=self.analytics,
            strict=self.config.engine.strict,
        )

    def _run_stage(self, stage: Stage) -> None:
        if stage == Stage.PRE_RATING:
            rating = self._ask_rating("How anxious do you feel right now? (1-10) ")
            self.machine.set_pre_rating(rating)
            self.machine.go_to_next_stage()

        elif stage == Stage.INSTRUCTIONS:
            for i, line in enumerate(self.exercise.instructions, 1):
                print(f"  {i}. {line}")
            for tip in self.exercise.tips:
                print(f"  - {tip}")
            self._prompt("\nPress Enter to begin. ")
            self.machine.go_to_next_stage()

        elif stage == Stage.EXERCISE:
            data = self.machine.session.exercise_data
            if isinstance(data, BreathingData):
                self._run_breathing()
            elif isinstance(data, GroundingData):
                self._run_grounding()
            elif isinstance(data, EmotionWheelData):
                self._run_emotion_wheel()
            elif isinstance(data, BrainDumpData):
                self._run_brain_dump()
            elif isinstance(data, MindClearData):
                self._run_mind_clear()

        elif stage == Stage.POST_RATING:
            rating = self._ask_rating("\nHow anxious do you feel now? (1-10) ")
            self.machine.set_post_rating(rating)
            self.machine.go_to_next_stage()

        elif stage == Stage.TRIGGER_LOG:
            self._ask_trigger()
            self.machine.go_to_next_stage()

    def _run_breathing(self) -> None:
        """Pace the user through breathing cycles until the target is met."""
        while self.machine.current_stage == Stage.EXERCISE:
            data = self.machine.session.exercise_data
            print(f"\nCycle {data.completed_cycles + 1} of {data.target_cycles}")

            for phase in data.breath_durations.phases():
                seconds = getattr(data.breath_durations, phase)
                print(f"  {phase.capitalize()}... ({seconds:g}s)")
                time.sleep(seconds)
                self.machine.update_exercise_data(advance_phase(self.machine.session.exercise_data))

            self.machine.complete_breathing_cycle()

    def _run_grounding(self) -> None:
        """Collect sensory items until every sense reaches its target."""
        while self.machine.current_stage == Stage.EXERCISE:
            data = self.machine.session.exercise_data
            sense = data.current_sense
            progress = data.senses[sense]
            remaining = progress.target - progress.identified
            text = self._prompt(f"{SENSE_PROMPTS[sense]} ({remaining} to go): ")
            self.machine.identify_grounding_item(text)

    def _run_emotion_wheel(self) -> None:
        """Narrow a feeling down from its family to a specific word."""
        while self.machine.current_stage == Stage.EXERCISE:
            print("\nWhich family is the feeling closest to?")
            family = self._choose(list(EMOTION_FAMILIES), "> ")
            if family is None:
                continue

            print(f"\nWhat kind of {family.lower()}?")
            emotion = self._choose(list(EMOTION_FAMILIES[family]), "> ")
            if emotion is None:
                continue

            self.machine.select_emotion(family, emotion)
            print(f"  You named it: {emotion}")
            if not self.machine.session.exercise_data.target_selections:
                self._offer_to_finish("Name another feeling? [y/N] ")

    def _run_brain_dump(self) -> None:
        """Take free text line by line; only the word count is kept."""
        data = self.machine.session.exercise_data
        print("\nWrite it all out. Enter an empty line when you're done.")
        word_count = data.word_count

        while self.machine.current_stage == Stage.EXERCISE:
            line = self._prompt("")
            if line.strip():
                word_count += count_words(line)
                self.machine.record_brain_dump(word_count)
                continue

            data = self.machine.session.exercise_data
            if data.can_continue:
                self.machine.go_to_next_stage(expected_stage=Stage.EXERCISE)
            else:
                print(f"  Write at least {data.min_words - data.word_count} more words to continue.")

    def _run_mind_clear(self) -> None:
        """Offload thoughts one at a time, each under a category."""
        while self.machine.current_stage == Stage.EXERCISE:
            data = self.machine.session.exercise_data
            if data.target_thoughts:
                print(f"\nThought {data.cleared_thoughts + 1} of {data.target_thoughts}")
            print("What kind of thought is it?")
            category = self._choose(list(THOUGHT_CATEGORIES), "> ")
            if category is None:
                continue

            if not self._prompt("Write it down: ").strip():
                continue
            self.machine.clear_thought(category)
            print("  Cleared.")
            if not self.machine.session.exercise_data.target_thoughts:
                self._offer_to_finish("Clear another thought? [y/N] ")

        while True:
            answer = self._prompt("How focused do you feel now? (1-10, Enter to skip) ").strip()
            if not answer:
                return
            try:
                self.machine.set_focus_score(_parse_rating(answer))
                return
            except ValidationError as e:
                print(f"  {e}")

    def _offer_to_finish(self, question: str) -> None:
        """Let the user end an exercise stage that has no target of its own."""
        if self.machine.current_stage != Stage.EXERCISE:
            return
        if not self._prompt(question).strip().lower().startswith("y"):
            self.machine.go_to_next_stage(expected_stage=Stage.EXERCISE)

    def _choose(self, options: list[str], question: str) -> str | None:
        """Pick an option by number or name; None if the answer matches nothing."""
        for i, option in enumerate(options, 1):
            print(f"  {i}. {option}")
        answer = self._prompt(question).strip()
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        for option in options:
            if option.lower() == answer.lower():
                return option
        if answer:
            print("  Pick one of the options above.")
        return None

    def _ask_rating(self, question: str) -> int:
        while True:
            answer = self._prompt(question)
            try:
                return _parse_rating(answer)
            except ValidationError as e:
                print(f"  {e}")

    def _ask_trigger(self) -> None:
        print("\nWhat set this off? (Enter to skip)")
        for i, category in enumerate(DEFAULT_TRIGGER_CATEGORIES, 1):
            print(f"  {i}. {category}")

        answer = self._prompt("> ").strip()
        if not answer:
            return
        try:
            category = DEFAULT_TRIGGER_CATEGORIES[int(answer) - 1]
        except (ValueError, IndexError):
            category = answer

        custom_text = None
        if category == "custom":
            custom_text = self._prompt("Describe it: ").strip() or None
        self.machine.log_trigger(category, custom_text=custom_text)

    def _prompt(self, question: str) -> str:
        """Read a line, handling the pause and quit commands."""
        while True:
            answer = input(question)
            command = answer.strip().lower()
            if command == "q":
                raise _Quit()
            if command == "p":
                self.machine.pause()
                input("Paused. Press Enter to continue. ")
                self.machine.resume()
                continue
            return answer

    def _finish(self) -> None:
        record = self.machine.complete()
        print("\n" + "-" * 60)
        print(self.exercise.copy.get("completion_message", "Exercise complete."))
        if record.anxiety_reduction is not None:
            print(
                f"Anxiety: {record.pre_rating} -> {record.post_rating} "
                f"({record.reduction_percentage}% lower)"
            )
        print(f"Time: {format_duration(record.total_duration)}")
        print("-" * 60 + "\n")

    def _cleanup(self) -> None:
        if self.persistence is not None:
            self.persistence.close()
        self.analytics.close()


def _parse_rating(answer: str) -> int:
    try:
        rating = int(answer.strip())
    except ValueError:
        raise ValidationError("Please enter a number from 1 to 10") from None
    if not 1 <= rating <= 10:
        raise ValidationError("Please enter a number from 1 to 10")
    return rating


def list_exercises() -> None:
    """List available exercises."""
    print("\nExercises:")
    print("-" * 60)
    for exercise in all_exercise_configs():
        stages = " -> ".join(s.value for s in exercise.stages)
        print(f"  {exercise.id}")
        print(f"    {exercise.title} ({exercise.kind.value})")
        print(f"    Stages: {stages}")
        print()


def list_sessions(config: Config) -> None:
    """List all saved sessions."""
    store = JsonSessionStore(save_directory=config.persistence.save_directory)
    sessions = store.list_sessions()

    if not sessions:
        print("No saved sessions found.")
        return

    print("\nSaved Sessions:")
    print("-" * 60)

    for session in sessions:
        duration = session.get("total_duration")
        duration_str = format_duration(duration) if duration is not None else "unknown"

        print(f"  {session['session_id']}")
        print(f"    Exercise: {session['config_id']}, Status: {session['status']}")
        print(f"    Stage: {session['current_stage']}, Duration: {duration_str}")
        print()


def view_session(session_id: str, config: Config) -> None:
    """View a specific session."""
    store = JsonSessionStore(save_directory=config.persistence.save_directory)
    session = store.load_session(session_id)

    if not session:
        print(f"Session not found: {session_id}")
        return

    print("\n" + "=" * 60)
    print(f"  Session: {session_id}")
    print("=" * 60)
    print()
    print(f"Exercise: {session['config_id']}")
    print(f"Status: {session['status']} (stage: {session['current_stage']})")
    print(f"Started: {session.get('started_at', 'unknown')}")
    print(f"Duration: {format_duration(session.get('total_duration') or 0)}")
    print(f"Anxiety before: {session.get('pre_rating') or '-'}, after: {session.get('post_rating') or '-'}")

    for trigger in session.get("triggers", []):
        text = f" ({trigger['custom_text']})" if trigger.get("custom_text") else ""
        print(f"Trigger: {trigger['category']}{text}")

    data = session.get("exercise_data", {})
    if data.get("type") == "breathing":
        print(f"Cycles: {data['completed_cycles']} of {data['target_cycles']} ({data['protocol']})")
    elif data.get("type") == "grounding":
        for sense, progress in data["senses"].items():
            items = ", ".join(progress["items"]) or "-"
            print(f"{sense.capitalize()}: {items}")
    elif data.get("type") == "emotion":
        for emotion in data["selected_emotions"]:
            print(f"Named: {emotion['secondary']} ({emotion['primary']}), intensity {emotion['intensity']}")
    elif data.get("type") == "brain_dump":
        print(f"Words written: {data['word_count']}")
    elif data.get("type") == "mind_clear":
        print(f"Thoughts cleared: {data['cleared_thoughts']}")
        for category, counts in data["thought_categories"].items():
            if counts["count"]:
                print(f"  {category}: {counts['count']}")
        if data.get("focus_score"):
            print(f"Focus afterwards: {data['focus_score']}/10")
    print()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Guided anxiety-relief exercises"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--exercise", "-e",
        type=str,
        default="cyclic-sigh",
        help="Exercise to run (see --list-exercises)",
    )
    parser.add_argument(
        "--list-exercises",
        action="store_true",
        help="List available exercises",
    )
    parser.add_argument(
        "--list-sessions",
        action="store_true",
        help="List all saved sessions",
    )
    parser.add_argument(
        "--view-session",
        type=str,
        metavar="SESSION_ID",
        help="View a specific saved session",
    )

    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Invalid configuration: {e}")
        sys.exit(1)

    setup_logger(
        level=config.logging.level,
        log_file=config.logging.log_file,
        rotation=config.logging.rotation,
        retention=config.logging.retention,
    )
    register_exercise_configs(config.exercises)

    if args.list_exercises:
        list_exercises()
        return

    if args.list_sessions:
        list_sessions(config)
        return

    if args.view_session:
        view_session(args.view_session, config)
        return

    try:
        exercise = get_exercise_config(args.exercise)
    except ConfigError as e:
        print(e)
        sys.exit(1)

    TerminalExercise(config, exercise).run()


if __name__ == "__main__":
    main()
