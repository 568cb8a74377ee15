"""Tests for the terminal exercise runner."""

import pytest

from guided_exercise.catalog import BRAIN_DUMP, GROUNDING_5_4_3_2_1, MIND_CLEAR
from guided_exercise.config import Config
from guided_exercise.engine import SessionStatus, ValidationError
from guided_exercise.main import TerminalExercise, _parse_rating, view_session
from guided_exercise.persistence import JsonSessionStore


@pytest.fixture
def config(tmp_path) -> Config:
    config = Config()
    config.persistence.save_directory = str(tmp_path / "sessions")
    config.persistence.debounce_sec = 0
    return config


def _feed(monkeypatch, answers):
    answers = iter(answers)
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))


def test_parse_rating() -> None:
    assert _parse_rating(" 7 ") == 7
    for bad in ("", "seven", "0", "11"):
        with pytest.raises(ValidationError):
            _parse_rating(bad)


def test_grounding_run_to_completion(config, monkeypatch, capsys) -> None:
    items = [f"thing {i}" for i in range(15)]
    _feed(monkeypatch, ["eleven", "8", "", *items, "3", "1"])

    runner = TerminalExercise(config, GROUNDING_5_4_3_2_1)
    runner.run()

    session = runner.machine.session
    assert session.status == SessionStatus.COMPLETED
    assert session.pre_rating == 8
    assert session.post_rating == 3
    assert [t.category for t in session.triggers] == ["work"]
    assert session.exercise_data.total_identified == 15

    out = capsys.readouterr().out
    assert "Please enter a number from 1 to 10" in out
    assert "Anxiety: 8 -> 3 (62% lower)" in out

    saved = JsonSessionStore(config.persistence.save_directory).load_session(session.session_id)
    assert saved["final"] is True
    assert saved["status"] == "completed"


def test_quit_abandons_session(config, monkeypatch, capsys) -> None:
    _feed(monkeypatch, ["6", "q"])

    runner = TerminalExercise(config, GROUNDING_5_4_3_2_1)
    runner.run()

    assert runner.machine.status == SessionStatus.ABANDONED
    assert "Exercise stopped" in capsys.readouterr().out


def test_unfinished_session_is_offered_for_resume(config, monkeypatch, capsys) -> None:
    _feed(monkeypatch, ["6", "p"])
    first = TerminalExercise(config, GROUNDING_5_4_3_2_1)
    # Leave mid-exercise without abandoning
    with pytest.raises(StopIteration):
        first.run()
    first_id = first.machine.session.session_id

    _feed(monkeypatch, ["y", "q"])
    second = TerminalExercise(config, GROUNDING_5_4_3_2_1)
    second.run()

    assert second.machine.session.session_id == first_id
    assert second.machine.session.pre_rating == 6

    view_session(first_id, config)
    assert "Status: abandoned" in capsys.readouterr().out


def test_mind_clear_run(config, monkeypatch, capsys) -> None:
    thoughts = ["1", "rent", "task", "email", "9", "memory", "old photo", "decision", "job offer", "5", "noise"]
    _feed(monkeypatch, ["7", "", *thoughts, "8", "4"])

    runner = TerminalExercise(config, MIND_CLEAR)
    runner.run()

    session = runner.machine.session
    assert session.status == SessionStatus.COMPLETED
    data = session.exercise_data
    assert data.cleared_thoughts == 5
    assert all(c.count == 1 for c in data.thought_categories.values())
    assert data.focus_score == 8
    assert session.post_rating == 4
    assert "Pick one of the options above." in capsys.readouterr().out


def test_brain_dump_run_keeps_only_word_count(config, monkeypatch, capsys) -> None:
    _feed(monkeypatch, ["6", "", "too much to do", "", "the landlord the email the call", "", "2"])

    runner = TerminalExercise(config, BRAIN_DUMP)
    runner.run()

    session = runner.machine.session
    assert session.status == SessionStatus.COMPLETED
    assert session.exercise_data.word_count == 10
    assert "Write at least 6 more words to continue." in capsys.readouterr().out

    path = JsonSessionStore(config.persistence.save_directory).save_directory / f"{session.session_id}.json"
    assert "landlord" not in path.read_text()
