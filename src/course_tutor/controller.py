"""Presenter logic shared by every front end.

The controller wires the session engine, the timed test and the stores
together for the currently logged-in user. Front ends call it in response
to input and render what it returns; storage failures never interrupt the
quiz and are reported through ``drain_warnings``.
"""
import logging
import threading
import time
from typing import Callable, Optional

from course_tutor import course as catalog
from course_tutor.auth import AuthOutcome, Authenticator, RegisterStatus
from course_tutor.errors import InvalidIndex, InvalidState, StorageError
from course_tutor.importer import import_topic_content
from course_tutor.models import Course, Question, TestResult, Topic, User
from course_tutor.session import MAX_ERRORS, SessionEngine, SubmitResult
from course_tutor.stats import filter_by_name, sort_history, summarize
from course_tutor.stores import ProgressStore, ResultStore, UserStore
from course_tutor.timed_test import DEFAULT_TIME_LIMIT_MINUTES, TestOutcome, TimedTest

logger = logging.getLogger(__name__)


class CourseController:
    def __init__(
        self,
        course: Course,
        users: UserStore,
        progress: ProgressStore,
        results: ResultStore,
        time_limit_minutes: int = DEFAULT_TIME_LIMIT_MINUTES,
        max_errors: int = MAX_ERRORS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.course = course
        self.progress = progress
        self.results = results
        self.auth = Authenticator(users)
        self.time_limit_minutes = time_limit_minutes
        self.engine = SessionEngine(course, max_errors=max_errors)
        self._clock = clock
        self.test: Optional[TimedTest] = None
        self.current_user: Optional[User] = None
        self.warnings: list[str] = []
        self._result_saved = False
        self._test_lock = threading.Lock()

    # --- Users ---

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    def login(self, login: str, password: str) -> AuthOutcome:
        outcome = self.auth.authenticate(login, password)
        if outcome.ok:
            self._begin_session(outcome.user)
        return outcome

    def login_as_guest(self) -> User:
        user = User.guest()
        self._begin_session(user)
        return user

    def register(self, login: str, password: str, full_name: str) -> RegisterStatus:
        # Self-registration only ever creates students.
        return self.auth.register(login, password, full_name, role="student")

    def logout(self) -> None:
        if self.current_user is not None:
            logger.info("User %s logged out", self.current_user.login)
        self.current_user = None
        self.engine.reset()
        self.test = None

    def _begin_session(self, user: User) -> None:
        self.current_user = user
        self.engine.load_course(self.course)
        self.test = None
        logger.info("Session started for %s", user.login)

    def _require_user(self) -> User:
        if self.current_user is None:
            raise InvalidState("No user is logged in")
        return self.current_user

    def _tracks_progress(self) -> bool:
        user = self.current_user
        return user is not None and user.is_valid() and not user.is_admin()

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def drain_warnings(self) -> list[str]:
        warnings, self.warnings = self.warnings, []
        return warnings

    def _save_progress(self, topic_index: int) -> bool:
        if not self._tracks_progress():
            return False
        try:
            self.progress.upsert_last_topic(self.current_user.id, topic_index)
        except StorageError as exc:
            self._warn(f"Progress was not saved: {exc}")
            return False
        return True

    def last_topic(self) -> Optional[int]:
        """Stored topic to resume from, if the learner has one."""
        if not self._tracks_progress():
            return None
        try:
            index = self.progress.get_last_topic(self.current_user.id)
        except StorageError as exc:
            self._warn(f"Progress could not be loaded: {exc}")
            return None
        if index is None or not 0 <= index < len(self.course):
            return None
        return index

    # --- Topics and the relearn drill ---

    def open_topic(self, topic_index: int) -> Topic:
        self._require_user()
        if self.engine.course is not self.course:
            # Pick up admin edits made since the last topic was opened.
            self.engine.load_course(self.course)
        topic = self.engine.start_topic(topic_index)
        self._save_progress(topic_index)
        return topic

    def restart_topic(self) -> Topic:
        """Start the open topic over without touching stored progress."""
        self._require_user()
        if self.engine.current_topic_index < 0:
            raise InvalidState("No topic is open")
        return self.engine.start_topic(self.engine.current_topic_index)

    def current_topic(self) -> Optional[Topic]:
        return self.engine.current_topic()

    def current_question(self) -> Optional[Question]:
        return self.engine.current_question()

    def answer(self, answer_index: int) -> SubmitResult:
        self._require_user()
        result = self.engine.submit_answer(answer_index)
        if result is SubmitResult.TOPIC_FINISHED:
            self._save_progress(self.engine.next_topic_index())
        elif result is SubmitResult.COURSE_FINISHED:
            self._save_progress(self.engine.current_topic_index)
        return result

    # --- Timed test ---

    def start_test(self) -> Question:
        self._require_user()
        topic = self.engine.current_topic()
        if topic is None:
            raise InvalidState("Open a topic before starting a test")
        if not topic.has_questions:
            raise InvalidState(f"Topic '{topic.title}' has no questions to test")
        self.test = TimedTest(clock=self._clock)
        self._result_saved = False
        return self.test.start(topic.questions, self.time_limit_minutes)

    def _require_test(self) -> TimedTest:
        if self.test is None:
            raise InvalidState("No test has been started")
        return self.test

    def answer_test(self, answer_index: int) -> Optional[Question]:
        """Submit a test answer; returns None when the test is over.

        An answer that arrives after the deadline, or after a deadline timer
        has already ended the test, is discarded.
        """
        test = self._require_test()
        with self._test_lock:
            if test.is_expired():
                test.time_expired()
            if test.is_finished:
                return None
            return test.submit_answer(answer_index)

    def expire_test(self) -> None:
        """Deadline reached; safe to call from a timer thread."""
        test = self._require_test()
        with self._test_lock:
            test.time_expired()

    def finish_test(self) -> TestOutcome:
        """Finish the test and persist its result once."""
        test = self._require_test()
        with self._test_lock:
            outcome = test.finish()
            if self._result_saved:
                return outcome
            self._result_saved = True
        self._save_result(outcome)
        return outcome

    def _save_result(self, outcome: TestOutcome) -> None:
        if not (self.current_user and self.current_user.is_valid()):
            return
        try:
            self.results.append_result(self.current_user.id, outcome.score, outcome.max_score)
        except StorageError as exc:
            self._warn(f"Result was not saved: {exc}")

    # --- Statistics ---

    def history(self) -> list[TestResult]:
        user = self._require_user()
        if not user.is_valid():
            return []
        try:
            return sort_history(self.results.list_results(user.id))
        except StorageError as exc:
            self._warn(f"Test history could not be loaded: {exc}")
            return []

    def profile_summary(self) -> dict:
        return summarize(self.history())

    def all_results(self, name_filter: str = "") -> list[TestResult]:
        user = self._require_user()
        if not user.is_admin():
            raise InvalidState("Only administrators can view all results")
        try:
            results = self.results.list_all()
        except StorageError as exc:
            self._warn(f"Results could not be loaded: {exc}")
            return []
        return filter_by_name(results, name_filter)

    # --- Admin content editing ---

    def _require_admin(self) -> None:
        if not self._require_user().is_admin():
            raise InvalidState("Only administrators can edit the course")

    def _replace_course(self, course: Course) -> None:
        self.course = course
        # An open topic keeps its snapshot; open_topic swaps in the new course.
        if self.engine.current_topic_index < 0:
            self.engine.load_course(course)

    def update_topic_content(self, topic_index: int, content: str) -> Topic:
        self._require_admin()
        self._replace_course(catalog.set_topic_content(self.course, topic_index, content))
        return self.course.topics[topic_index]

    def import_topic_content(self, topic_index: int, file_path: str) -> Topic:
        self._require_admin()
        if not 0 <= topic_index < len(self.course):
            raise InvalidIndex(f"Invalid topic index: {topic_index}")
        self._replace_course(import_topic_content(self.course, topic_index, file_path))
        return self.course.topics[topic_index]

    def save_course(self, path: str) -> bool:
        self._require_admin()
        try:
            catalog.save_course(self.course, path)
        except OSError as exc:
            self._warn(f"Course was not saved: {exc}")
            return False
        return True
