import pytest

from course_tutor.db import init_db
from course_tutor.models import Course, Question, Topic
from course_tutor.stores import ProgressStore, ResultStore, UserStore


@pytest.fixture
def tmp_db(tmp_path):
    """Path for a throwaway tutor database; the schema is not created."""
    return str(tmp_path / "tutor.db")


@pytest.fixture
def stores(tmp_db):
    """Initialized database plus the three stores on top of it."""
    init_db(tmp_db)
    return UserStore(tmp_db), ProgressStore(tmp_db), ResultStore(tmp_db)


def make_question(correct: int = 0, n_variants: int = 2, text: str = "Q?") -> Question:
    return Question(text=text, variants=tuple(f"v{i}" for i in range(n_variants)), correct_index=correct)


@pytest.fixture
def two_topic_course():
    """Topic 0 has two questions (keys 1, 0); topic 1 has one (key 2)."""
    return Course(topics=(
        Topic(title="Basics", content="<p>Proxy basics</p>",
              questions=(make_question(1, text="first"), make_question(0, text="second"))),
        Topic(title="Config", content="<p>Ports</p>",
              questions=(make_question(2, n_variants=4, text="port"),)),
    ))


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
