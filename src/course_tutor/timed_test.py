"""Timed multi-question test with a single deadline."""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from course_tutor.errors import InvalidState
from course_tutor.models import Question

DEFAULT_TIME_LIMIT_MINUTES = 20

logger = logging.getLogger(__name__)


class TestState(Enum):
    __test__ = False

    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHED = "finished"


class FinishReason(Enum):
    COMPLETED = "completed"
    TIME_EXPIRED = "time_expired"


def grade_band(percentage: float) -> str:
    """Map a 0-100 percentage to a grade label; values outside are clamped."""
    percentage = min(max(percentage, 0.0), 100.0)
    if percentage >= 90:
        return "Excellent"
    elif percentage >= 75:
        return "Good"
    elif percentage >= 60:
        return "Satisfactory"
    return "Unsatisfactory"


def format_remaining(seconds: float) -> str:
    seconds = max(int(seconds), 0)
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def remaining_color(seconds: float) -> str:
    if seconds < 300:
        return "red"
    elif seconds < 600:
        return "dark_orange"
    return "green"


@dataclass(frozen=True)
class TestOutcome:
    __test__ = False

    score: int
    max_score: int
    timed_out: bool

    def percentage(self) -> float:
        if self.max_score == 0:
            return 0.0
        return self.score / self.max_score * 100

    def grade(self) -> str:
        return grade_band(self.percentage())


class TimedTest:
    """NOT_STARTED -> RUNNING -> FINISHED, ended by the last answer or the deadline.

    Unlike SessionEngine, wrong answers never restart the test; every
    question is asked exactly once.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.state = TestState.NOT_STARTED
        self.reason: Optional[FinishReason] = None
        self.questions: tuple = ()
        self.time_limit_minutes = DEFAULT_TIME_LIMIT_MINUTES
        self.current_question_index = 0
        self.correct_answers = 0
        self.user_answers: list[int] = []
        self._deadline: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self.state is TestState.RUNNING

    @property
    def is_finished(self) -> bool:
        return self.state is TestState.FINISHED

    @property
    def max_score(self) -> int:
        return len(self.questions)

    def start(self, questions: Sequence[Question], time_limit_minutes: int = DEFAULT_TIME_LIMIT_MINUTES) -> Question:
        if self.is_running:
            raise InvalidState("A test is already running")
        if not questions:
            raise InvalidState("Cannot start a test without questions")
        if time_limit_minutes <= 0:
            raise ValueError("time_limit_minutes must be positive")
        self.questions = tuple(questions)
        self.time_limit_minutes = time_limit_minutes
        self.current_question_index = 0
        self.correct_answers = 0
        self.user_answers = []
        self.reason = None
        self._deadline = self._clock() + time_limit_minutes * 60
        self.state = TestState.RUNNING
        logger.info("Test started: %d questions, %d min", len(self.questions), time_limit_minutes)
        return self.questions[0]

    def current_question(self) -> Optional[Question]:
        if not self.is_running or self.current_question_index >= len(self.questions):
            return None
        return self.questions[self.current_question_index]

    def submit_answer(self, answer_index: int) -> Optional[Question]:
        """Record an answer; return the next question, or None once finished."""
        if not self.is_running:
            raise InvalidState(f"Cannot submit answer: test is {self.state.value}")
        question = self.questions[self.current_question_index]
        self.user_answers.append(answer_index)
        if question.is_correct(answer_index):
            self.correct_answers += 1
        self.current_question_index += 1
        if self.current_question_index >= len(self.questions):
            self._finish(FinishReason.COMPLETED)
            return None
        return self.questions[self.current_question_index]

    def remaining_seconds(self) -> float:
        if self._deadline is None or not self.is_running:
            return 0.0
        return max(self._deadline - self._clock(), 0.0)

    def is_expired(self) -> bool:
        return self.is_running and self._clock() >= self._deadline

    def time_expired(self) -> None:
        """Deadline reached. Does nothing unless the test is still running."""
        if self.is_running:
            self._finish(FinishReason.TIME_EXPIRED)

    def finish(self) -> TestOutcome:
        """End the test now; repeated calls return the same outcome."""
        if self.state is TestState.NOT_STARTED:
            raise InvalidState("Test has not been started")
        if self.is_running:
            self._finish(FinishReason.COMPLETED)
        return self.outcome()

    def outcome(self) -> TestOutcome:
        if not self.is_finished:
            raise InvalidState("Test is not finished")
        return TestOutcome(
            score=self.correct_answers,
            max_score=self.max_score,
            timed_out=self.reason is FinishReason.TIME_EXPIRED,
        )

    def _finish(self, reason: FinishReason) -> None:
        self.state = TestState.FINISHED
        self.reason = reason
        logger.info(
            "Test finished (%s): %d/%d", reason.value, self.correct_answers, len(self.questions)
        )
