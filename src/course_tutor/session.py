"""Per-learner session engine: topic navigation and the relearn rule.

The engine tracks which topic and question a learner is on and how many
mistakes they have made in the current topic. It performs no I/O; callers
persist progress based on the SubmitResult it returns.
"""
import logging
from enum import Enum
from typing import Optional

from course_tutor.errors import InvalidIndex, InvalidState
from course_tutor.models import Course, Question, Topic

# Wrong answers allowed in one topic before it must be restarted.
MAX_ERRORS = 3

logger = logging.getLogger(__name__)


class SubmitResult(Enum):
    CORRECT = "correct"
    WRONG = "wrong"
    FAIL_RELEARN = "fail_relearn"
    TOPIC_FINISHED = "topic_finished"
    COURSE_FINISHED = "course_finished"

    @property
    def is_correct(self) -> bool:
        return self in (SubmitResult.CORRECT, SubmitResult.TOPIC_FINISHED, SubmitResult.COURSE_FINISHED)

    @property
    def is_finished(self) -> bool:
        return self in (SubmitResult.TOPIC_FINISHED, SubmitResult.COURSE_FINISHED)


class SessionEngine:
    """State machine for one learner working through a course."""

    def __init__(self, course: Optional[Course] = None, max_errors: int = MAX_ERRORS):
        if max_errors < 1:
            raise ValueError("max_errors must be at least 1")
        self.max_errors = max_errors
        self._course = None
        self._topic_index = -1
        self._question_index = -1
        self._errors = 0
        if course is not None:
            self.load_course(course)

    def load_course(self, course: Course) -> None:
        self._course = course
        self.reset()

    def is_course_loaded(self) -> bool:
        return self._course is not None

    @property
    def course(self) -> Optional[Course]:
        return self._course

    @property
    def topic_count(self) -> int:
        return len(self._course) if self._course is not None else 0

    @property
    def current_topic_index(self) -> int:
        return self._topic_index

    @property
    def current_question_index(self) -> int:
        return self._question_index

    @property
    def errors_in_topic(self) -> int:
        return self._errors

    @property
    def errors_left(self) -> int:
        return self.max_errors - self._errors

    def reset(self) -> None:
        """Forget the active topic (used on logout and course reload)."""
        self._topic_index = -1
        self._question_index = -1
        self._errors = 0

    def start_topic(self, topic_index: int) -> Topic:
        if self._course is None:
            raise InvalidState("Course not loaded")
        if not 0 <= topic_index < len(self._course):
            raise InvalidIndex(f"Invalid topic index: {topic_index}")
        self._topic_index = topic_index
        self._question_index = 0
        self._errors = 0
        logger.debug("Topic %d started", topic_index)
        return self._course.topics[topic_index]

    def current_topic(self) -> Optional[Topic]:
        if self._course is None:
            return None
        return self._course.topic(self._topic_index)

    def current_question(self) -> Optional[Question]:
        topic = self.current_topic()
        if topic is None:
            return None
        if not 0 <= self._question_index < len(topic.questions):
            return None
        return topic.questions[self._question_index]

    def is_last_topic(self) -> bool:
        return self._course is not None and self._topic_index == len(self._course) - 1

    def next_topic_index(self) -> Optional[int]:
        if self._topic_index < 0 or self.is_last_topic() or self._course is None:
            return None
        return self._topic_index + 1

    def submit_answer(self, answer_index: int) -> SubmitResult:
        """Check an answer to the active question and move the session on.

        An out-of-range answer, or a question whose own answer key is out of
        range, counts as a wrong answer.

        Raises:
            InvalidState: no course, no topic, or no question is active.
        """
        if self._course is None:
            raise InvalidState("Cannot submit answer: course not loaded")
        topic = self.current_topic()
        question = self.current_question()
        if topic is None or question is None:
            raise InvalidState("Cannot submit answer: no active question")

        if question.is_correct(answer_index):
            self._question_index += 1
            if self._question_index >= len(topic.questions):
                result = SubmitResult.COURSE_FINISHED if self.is_last_topic() else SubmitResult.TOPIC_FINISHED
            else:
                result = SubmitResult.CORRECT
        else:
            self._errors += 1
            if self._errors >= self.max_errors:
                self._question_index = 0
                self._errors = 0
                result = SubmitResult.FAIL_RELEARN
            else:
                result = SubmitResult.WRONG

        logger.debug(
            "Topic %d answer %d -> %s (question %d, errors %d)",
            self._topic_index, answer_index, result.name, self._question_index, self._errors,
        )
        return result
