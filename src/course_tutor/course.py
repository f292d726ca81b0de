"""Course catalog: loading, saving and copy-on-write editing."""
import json
import logging
import shutil
from dataclasses import replace
from pathlib import Path

import yaml

from course_tutor.errors import CourseLoadError, InvalidIndex
from course_tutor.models import Course, Question, Topic

CONTENT_DIR = Path(__file__).parent / "content"
DEFAULT_COURSE_FILE = CONTENT_DIR / "course.json"

logger = logging.getLogger(__name__)


def _parse_question(data: dict) -> Question:
    correct = data.get("correctIndex", data.get("correct_index", 0))
    return Question(
        text=str(data["text"]),
        variants=tuple(str(v) for v in data.get("variants", [])),
        correct_index=int(correct),
    )


def _parse_topic(data: dict) -> Topic:
    content = data.get("content", data.get("htmlContent", ""))
    return Topic(
        title=str(data["title"]),
        content=str(content or ""),
        questions=tuple(_parse_question(q) for q in data.get("questions", [])),
    )


def course_from_dict(data: dict) -> Course:
    """Build a Course from a decoded course document."""
    if not isinstance(data, dict) or not isinstance(data.get("topics"), list):
        raise CourseLoadError("Course document must be a mapping with a 'topics' list")
    try:
        return Course(topics=tuple(_parse_topic(t) for t in data["topics"]))
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise CourseLoadError(f"Malformed course document: {exc}") from exc


def course_to_dict(course: Course) -> dict:
    return {
        "topics": [
            {
                "title": t.title,
                "content": t.content,
                "questions": [
                    {"text": q.text, "variants": list(q.variants), "correctIndex": q.correct_index}
                    for q in t.questions
                ],
            }
            for t in course.topics
        ]
    }


def load_course(path: str) -> Course:
    """Load a course from a JSON or YAML file."""
    file = Path(path)
    if not file.exists():
        raise CourseLoadError(f"Course file not found: {path}")
    text = file.read_text(encoding="utf-8")
    if not text.strip():
        raise CourseLoadError(f"Course file is empty: {path}")

    try:
        if file.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise CourseLoadError(f"Cannot decode course file {path}: {exc}") from exc

    course = course_from_dict(data)
    logger.info("Course loaded from %s (%d topics)", path, len(course))
    for i, topic in enumerate(course.topics):
        for j, question in enumerate(topic.questions):
            if not question.has_valid_key():
                logger.warning("Topic %d question %d has an out-of-range answer key", i, j)
    return course


def save_course(course: Course, path: str) -> None:
    """Write the course as JSON."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_text(
        json.dumps(course_to_dict(course), ensure_ascii=False, indent=2), encoding="utf-8"
    )
    logger.info("Course saved to %s (%d topics)", path, len(course))


def ensure_course_file(path: str) -> bool:
    """Copy the bundled course to path if nothing is there yet."""
    if Path(path).exists():
        return False
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(DEFAULT_COURSE_FILE, path)
    logger.info("Bundled course copied to %s", path)
    return True


def topic_titles(course: Course) -> list[str]:
    return [t.title for t in course.topics]


def _check_index(course: Course, index: int) -> None:
    if not 0 <= index < len(course.topics):
        raise InvalidIndex(f"Topic index {index} out of range (0..{len(course.topics) - 1})")


def add_topic(course: Course, topic: Topic) -> Course:
    return Course(topics=course.topics + (topic,))


def update_topic(course: Course, index: int, topic: Topic) -> Course:
    _check_index(course, index)
    topics = list(course.topics)
    topics[index] = topic
    return Course(topics=tuple(topics))


def remove_topic(course: Course, index: int) -> Course:
    _check_index(course, index)
    return Course(topics=course.topics[:index] + course.topics[index + 1:])


def set_topic_content(course: Course, index: int, content: str) -> Course:
    """Return a new course where one topic's theory is replaced."""
    _check_index(course, index)
    return update_topic(course, index, replace(course.topics[index], content=content))
