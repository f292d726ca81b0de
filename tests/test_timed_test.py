# tests/test_timed_test.py
import pytest

from course_tutor.errors import InvalidState
from course_tutor.models import Question
from course_tutor.timed_test import (
    FinishReason, TestOutcome, TestState, TimedTest,
    format_remaining, grade_band, remaining_color,
)


def questions(n=3):
    return [Question(text=f"q{i}", variants=("a", "b", "c"), correct_index=0) for i in range(n)]


def test_start_returns_first_question(clock):
    test = TimedTest(clock=clock)
    assert test.state is TestState.NOT_STARTED
    first = test.start(questions(), time_limit_minutes=5)
    assert first.text == "q0"
    assert test.is_running
    assert test.remaining_seconds() == 300


def test_start_rejects_empty_question_list(clock):
    with pytest.raises(InvalidState):
        TimedTest(clock=clock).start([], 5)


def test_start_rejects_non_positive_limit(clock):
    with pytest.raises(ValueError):
        TimedTest(clock=clock).start(questions(), 0)


def test_start_twice_while_running(clock):
    test = TimedTest(clock=clock)
    test.start(questions(), 5)
    with pytest.raises(InvalidState):
        test.start(questions(), 5)


def test_submit_before_start(clock):
    with pytest.raises(InvalidState):
        TimedTest(clock=clock).submit_answer(0)


def test_all_answered_completes(clock):
    test = TimedTest(clock=clock)
    test.start(questions(3), 5)
    assert test.submit_answer(0).text == "q1"
    assert test.submit_answer(1).text == "q2"
    assert test.submit_answer(0) is None
    assert test.is_finished
    assert test.reason is FinishReason.COMPLETED
    assert test.user_answers == [0, 1, 0]
    assert test.outcome() == TestOutcome(score=2, max_score=3, timed_out=False)


def test_submit_after_finish_rejected(clock):
    test = TimedTest(clock=clock)
    test.start(questions(1), 5)
    test.submit_answer(0)
    with pytest.raises(InvalidState):
        test.submit_answer(0)


def test_deadline_after_one_answer(clock):
    test = TimedTest(clock=clock)
    test.start(questions(3), 1)
    test.submit_answer(0)
    clock.advance(61)
    assert test.is_expired()
    test.time_expired()
    outcome = test.finish()
    assert outcome.score in (0, 1)
    assert outcome.max_score == 3
    assert outcome.timed_out


def test_time_expired_after_completion_is_noop(clock):
    test = TimedTest(clock=clock)
    test.start(questions(1), 1)
    test.submit_answer(0)
    clock.advance(120)
    test.time_expired()
    assert test.reason is FinishReason.COMPLETED
    assert not test.outcome().timed_out


def test_time_expired_before_start_is_noop(clock):
    test = TimedTest(clock=clock)
    test.time_expired()
    assert test.state is TestState.NOT_STARTED


def test_finish_is_idempotent(clock):
    test = TimedTest(clock=clock)
    test.start(questions(3), 5)
    test.submit_answer(0)
    first = test.finish()
    second = test.finish()
    assert first == second == TestOutcome(score=1, max_score=3, timed_out=False)


def test_finish_before_start(clock):
    with pytest.raises(InvalidState):
        TimedTest(clock=clock).finish()


def test_outcome_while_running(clock):
    test = TimedTest(clock=clock)
    test.start(questions(), 5)
    with pytest.raises(InvalidState):
        test.outcome()


def test_remaining_seconds_counts_down(clock):
    test = TimedTest(clock=clock)
    assert test.remaining_seconds() == 0.0
    test.start(questions(), 2)
    clock.advance(30)
    assert test.remaining_seconds() == 90
    clock.advance(500)
    assert test.remaining_seconds() == 0.0


def test_restart_after_finish(clock):
    test = TimedTest(clock=clock)
    test.start(questions(1), 1)
    test.submit_answer(2)
    test.start(questions(2), 1)
    assert test.is_running
    assert test.correct_answers == 0
    assert test.user_answers == []


@pytest.mark.parametrize("percentage,label", [
    (95, "Excellent"), (90, "Excellent"), (100, "Excellent"),
    (89.9, "Good"), (80, "Good"), (75, "Good"),
    (74.9, "Satisfactory"), (65, "Satisfactory"), (60, "Satisfactory"),
    (59.9, "Unsatisfactory"), (40, "Unsatisfactory"), (0, "Unsatisfactory"),
    (150, "Excellent"), (-10, "Unsatisfactory"),
])
def test_grade_band(percentage, label):
    assert grade_band(percentage) == label


def test_outcome_percentage_with_no_questions():
    outcome = TestOutcome(score=0, max_score=0, timed_out=True)
    assert outcome.percentage() == 0.0
    assert outcome.grade() == "Unsatisfactory"


@pytest.mark.parametrize("seconds,text", [(1200, "20:00"), (65, "01:05"), (0, "00:00"), (-3, "00:00"), (59.7, "00:59")])
def test_format_remaining(seconds, text):
    assert format_remaining(seconds) == text


@pytest.mark.parametrize("seconds,color", [(100, "red"), (299, "red"), (300, "dark_orange"), (599, "dark_orange"), (600, "green")])
def test_remaining_color(seconds, color):
    assert remaining_color(seconds) == color
