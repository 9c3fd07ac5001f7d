"""SQLite progress store: one document per (user, quiz) pair."""
import json
import logging
import sqlite3
from pathlib import Path
from typing import Optional

from learn_quest.config import settings
from learn_quest.models import UserQuizProgress

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = str(settings.db_path)
GUEST_USERNAME = settings.guest_username

SCHEMA = """
CREATE TABLE IF NOT EXISTS user_progress (
    username TEXT NOT NULL,
    quiz_id TEXT NOT NULL,
    document TEXT NOT NULL,
    completed INTEGER DEFAULT 0,
    last_updated INTEGER DEFAULT 0,
    PRIMARY KEY (username, quiz_id)
);

CREATE TABLE IF NOT EXISTS dismissed_quizzes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL,
    quiz_id TEXT NOT NULL,
    UNIQUE(username, quiz_id)
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


class ProgressStore:
    """Keyed progress store. Guest users are never read or written."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH, guest_username: str = GUEST_USERNAME):
        self.db_path = str(db_path)
        self.guest_username = guest_username

    def is_guest(self, username: str) -> bool:
        return not username or username == self.guest_username

    def read(self, username: str, quiz_id: str) -> Optional[UserQuizProgress]:
        if self.is_guest(username):
            return None
        conn = get_connection(self.db_path)
        row = conn.execute(
            "SELECT document FROM user_progress WHERE username = ? AND quiz_id = ?",
            (username, quiz_id),
        ).fetchone()
        conn.close()
        if row is None:
            return None
        return UserQuizProgress.from_dict(json.loads(row["document"]))

    def read_all(self, username: str) -> dict:
        """All of a user's progress records, keyed by quiz id."""
        if self.is_guest(username):
            return {}
        conn = get_connection(self.db_path)
        rows = conn.execute(
            "SELECT quiz_id, document FROM user_progress WHERE username = ?", (username,)
        ).fetchall()
        conn.close()
        return {
            row["quiz_id"]: UserQuizProgress.from_dict(json.loads(row["document"]))
            for row in rows
        }

    def write(self, progress: UserQuizProgress) -> None:
        """Upsert the full record; safe to retry."""
        if self.is_guest(progress.username):
            return
        document = json.dumps(progress.to_dict())
        conn = get_connection(self.db_path)
        conn.execute(
            """INSERT INTO user_progress (username, quiz_id, document, completed, last_updated)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(username, quiz_id) DO UPDATE SET
                document=excluded.document,
                completed=excluded.completed,
                last_updated=excluded.last_updated""",
            (progress.username, progress.quiz_id, document, int(progress.completed), progress.last_updated),
        )
        conn.commit()
        conn.close()
        logger.debug("Saved progress for %s/%s", progress.username, progress.quiz_id)

    def delete(self, username: str, quiz_id: str) -> None:
        if self.is_guest(username):
            return
        conn = get_connection(self.db_path)
        conn.execute(
            "DELETE FROM user_progress WHERE username = ? AND quiz_id = ?", (username, quiz_id)
        )
        conn.commit()
        conn.close()
        logger.info("Deleted progress for %s/%s", username, quiz_id)

    def dismiss_quiz(self, username: str, quiz_id: str) -> None:
        """Hide a quiz from the user's suggestions."""
        if self.is_guest(username):
            return
        conn = get_connection(self.db_path)
        conn.execute(
            "INSERT OR IGNORE INTO dismissed_quizzes (username, quiz_id) VALUES (?, ?)",
            (username, quiz_id),
        )
        conn.commit()
        conn.close()

    def dismissed_quizzes(self, username: str) -> set:
        if self.is_guest(username):
            return set()
        conn = get_connection(self.db_path)
        rows = conn.execute(
            "SELECT quiz_id FROM dismissed_quizzes WHERE username = ?", (username,)
        ).fetchall()
        conn.close()
        return {row["quiz_id"] for row in rows}
