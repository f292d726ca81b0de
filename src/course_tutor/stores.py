"""SQLite-backed stores for users, progress and test results."""
import logging
import sqlite3
from datetime import datetime
from typing import Optional

from course_tutor.db import get_connection
from course_tutor.errors import StorageError
from course_tutor.models import NO_USER_ID, TestResult, User, UserProgress

logger = logging.getLogger(__name__)


def _require_real_user(user_id: int) -> None:
    if user_id == NO_USER_ID:
        raise ValueError("Guest users are never persisted")


class _Store:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _run(self, action: str, sql: str, params: tuple = (), fetch: str = None):
        try:
            conn = get_connection(self.db_path)
            try:
                cursor = conn.execute(sql, params)
                if fetch == "one":
                    return cursor.fetchone()
                if fetch == "all":
                    return cursor.fetchall()
                conn.commit()
                return cursor
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Failed to %s: %s", action, exc)
            raise StorageError(f"Failed to {action}: {exc}") from exc


class UserStore(_Store):
    def find_by_login(self, login: str) -> Optional[User]:
        row = self._run(
            "find user",
            "SELECT id, login, full_name, role FROM users WHERE login = ?",
            (login.strip(),), fetch="one",
        )
        if row is None:
            return None
        return User(id=row["id"], login=row["login"], full_name=row["full_name"] or "", role=row["role"])

    def password_hash_for(self, login: str) -> Optional[str]:
        row = self._run(
            "read password hash",
            "SELECT password_hash FROM users WHERE login = ?",
            (login.strip(),), fetch="one",
        )
        return row["password_hash"] if row else None

    def exists(self, login: str) -> bool:
        row = self._run("check user", "SELECT COUNT(*) FROM users WHERE login = ?", (login.strip(),), fetch="one")
        return row[0] > 0

    def create(self, login: str, password_hash: str, full_name: str, role: str = "student") -> User:
        cursor = self._run(
            "create user",
            "INSERT INTO users (login, password_hash, full_name, role) VALUES (?, ?, ?, ?)",
            (login.strip(), password_hash, full_name.strip(), role),
        )
        logger.info("User %s created (%s)", login, role)
        return User(id=cursor.lastrowid, login=login.strip(), full_name=full_name.strip(), role=role)

    def count_admins(self) -> int:
        row = self._run("count admins", "SELECT COUNT(*) FROM users WHERE role = 'admin'", fetch="one")
        return row[0]

    def list_all(self) -> list[User]:
        rows = self._run("list users", "SELECT id, login, full_name, role FROM users ORDER BY id", fetch="all")
        return [User(id=r["id"], login=r["login"], full_name=r["full_name"] or "", role=r["role"]) for r in rows]


class ProgressStore(_Store):
    def find(self, user_id: int) -> Optional[UserProgress]:
        _require_real_user(user_id)
        row = self._run(
            "load progress",
            "SELECT user_id, last_topic_id, updated_at FROM progress WHERE user_id = ?",
            (user_id,), fetch="one",
        )
        if row is None:
            return None
        return UserProgress(user_id=row["user_id"], last_topic_id=row["last_topic_id"], updated_at=row["updated_at"])

    def get_last_topic(self, user_id: int) -> Optional[int]:
        progress = self.find(user_id)
        return progress.last_topic_id if progress else None

    def upsert_last_topic(self, user_id: int, topic_index: int) -> None:
        _require_real_user(user_id)
        now = datetime.now().isoformat()
        self._run(
            "save progress",
            """INSERT INTO progress (user_id, last_topic_id, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET last_topic_id = excluded.last_topic_id,
            updated_at = excluded.updated_at""",
            (user_id, topic_index, now),
        )
        logger.info("Progress saved for user %d: topic %d", user_id, topic_index)

    def delete(self, user_id: int) -> bool:
        _require_real_user(user_id)
        cursor = self._run("delete progress", "DELETE FROM progress WHERE user_id = ?", (user_id,))
        return cursor.rowcount > 0


def _row_to_result(row) -> TestResult:
    keys = row.keys()
    return TestResult(
        id=row["id"],
        user_id=row["user_id"],
        test_date=datetime.fromisoformat(row["test_date"]),
        score=row["score"],
        max_score=row["max_score"],
        full_name=(row["full_name"] or "") if "full_name" in keys else "",
    )


class ResultStore(_Store):
    def append_result(
        self, user_id: int, score: int, max_score: int, timestamp: Optional[datetime] = None
    ) -> TestResult:
        _require_real_user(user_id)
        test_date = timestamp or datetime.now()
        cursor = self._run(
            "save test result",
            "INSERT INTO test_results (user_id, test_date, score, max_score) VALUES (?, ?, ?, ?)",
            (user_id, test_date.isoformat(), score, max_score),
        )
        logger.info("Test result saved for user %d: %d/%d", user_id, score, max_score)
        return TestResult(id=cursor.lastrowid, user_id=user_id, test_date=test_date, score=score, max_score=max_score)

    def list_results(self, user_id: int) -> list[TestResult]:
        _require_real_user(user_id)
        rows = self._run(
            "load test results",
            """SELECT id, user_id, test_date, score, max_score FROM test_results
            WHERE user_id = ? ORDER BY test_date DESC, id DESC""",
            (user_id,), fetch="all",
        )
        return [_row_to_result(r) for r in rows]

    def list_all(self, students_only: bool = True) -> list[TestResult]:
        sql = """SELECT r.id, r.user_id, r.test_date, r.score, r.max_score, u.full_name
            FROM test_results r JOIN users u ON r.user_id = u.id"""
        if students_only:
            sql += " WHERE u.role = 'student'"
        sql += " ORDER BY r.test_date DESC, u.full_name"
        rows = self._run("load all test results", sql, fetch="all")
        return [_row_to_result(r) for r in rows]

    def delete_for_user(self, user_id: int) -> bool:
        _require_real_user(user_id)
        cursor = self._run("delete test results", "DELETE FROM test_results WHERE user_id = ?", (user_id,))
        return cursor.rowcount > 0
