"""Import topic theory from files in various formats."""
import json
import logging
from pathlib import Path

from bs4 import BeautifulSoup

from course_tutor.course import set_topic_content
from course_tutor.models import Course

logger = logging.getLogger(__name__)


def read_file_content(file_path: str) -> str:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix in (".txt", ".md", ".html", ".htm"):
        # HTML is kept as markup; it is the native theory format.
        return path.read_text(encoding="utf-8")
    elif suffix == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
        return json.dumps(data, indent=2, ensure_ascii=False) if isinstance(data, dict) else str(data)
    elif suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        return str(data)
    elif suffix == ".pdf":
        from PyPDF2 import PdfReader
        reader = PdfReader(file_path)
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    elif suffix == ".docx":
        from docx import Document
        doc = Document(file_path)
        return "\n".join(p.text for p in doc.paragraphs)
    else:
        # Try reading as plain text
        return path.read_text(encoding="utf-8")


def html_to_text(html: str) -> str:
    """Strip markup from theory content for terminal display."""
    soup = BeautifulSoup(html, "html.parser")
    for item in soup.find_all("li"):
        item.insert_before("• ")
    text = soup.get_text()
    lines = [line.strip() for line in text.splitlines()]
    collapsed = []
    for line in lines:
        if line or (collapsed and collapsed[-1]):
            collapsed.append(line)
    return "\n".join(collapsed).strip()


def import_topic_content(course: Course, topic_index: int, file_path: str) -> Course:
    """Return a new course whose topic theory is replaced by the file's content."""
    content = read_file_content(file_path)
    logger.info("Imported %s (%d chars) into topic %d", Path(file_path).name, len(content), topic_index)
    return set_topic_content(course, topic_index, content)
