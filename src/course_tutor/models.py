"""Data classes for the course domain model."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

NO_USER_ID = -1
GUEST_LOGIN = "guest"
ROLES = ("student", "admin")


@dataclass(frozen=True)
class Question:
    text: str
    variants: tuple = ()
    correct_index: int = 0

    def has_valid_key(self) -> bool:
        return 0 <= self.correct_index < len(self.variants)

    def is_correct(self, answer_index: int) -> bool:
        """True only for an in-range answer matching an in-range key."""
        if not 0 <= answer_index < len(self.variants):
            return False
        if not self.has_valid_key():
            return False
        return answer_index == self.correct_index


@dataclass(frozen=True)
class Topic:
    title: str
    content: str = ""
    questions: tuple = ()

    @property
    def has_questions(self) -> bool:
        return len(self.questions) > 0


@dataclass(frozen=True)
class Course:
    topics: tuple = ()

    def __len__(self) -> int:
        return len(self.topics)

    def topic(self, index: int) -> Optional[Topic]:
        if 0 <= index < len(self.topics):
            return self.topics[index]
        return None


@dataclass
class User:
    id: int = NO_USER_ID
    login: str = ""
    full_name: str = ""
    role: str = "student"

    @classmethod
    def guest(cls) -> "User":
        return cls(id=NO_USER_ID, login=GUEST_LOGIN, full_name="Guest", role="student")

    def is_valid(self) -> bool:
        return self.id != NO_USER_ID and bool(self.login)

    def is_admin(self) -> bool:
        return self.role == "admin"

    def is_guest(self) -> bool:
        return self.id == NO_USER_ID and self.login == GUEST_LOGIN


@dataclass(frozen=True)
class TestResult:
    __test__ = False  # not a pytest class

    user_id: int
    score: int
    max_score: int
    test_date: datetime = field(default_factory=datetime.now)
    id: Optional[int] = None
    full_name: str = ""

    def percentage(self) -> float:
        if self.max_score == 0:
            return 0.0
        return self.score / self.max_score * 100

    def ratio(self) -> float:
        if self.max_score <= 0:
            return 0.0
        return self.score / self.max_score


@dataclass
class UserProgress:
    user_id: int
    last_topic_id: int
    updated_at: Optional[str] = None
