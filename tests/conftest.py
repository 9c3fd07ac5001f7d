import pytest

from learn_quest.catalog import parse_catalog
from learn_quest.db import ProgressStore, init_db


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_progress.db")
    return db_path


@pytest.fixture
def store(tmp_db):
    init_db(tmp_db)
    return ProgressStore(tmp_db)


def make_quiz(quiz_id, count=4, hidden=False):
    return {
        "id": quiz_id,
        "title": f"Quiz {quiz_id}",
        "hidden": hidden,
        "questions": [
            {
                "question": f"{quiz_id} question {i}",
                "answers": [{"type": "text", "content": "right"}, {"type": "text", "content": "wrong"}],
                "correctAnswerIndex": 0,
            }
            for i in range(count)
        ],
    }


@pytest.fixture
def catalog():
    return parse_catalog({
        "subjects": [{
            "id": "math",
            "name": "Math",
            "classes": [{
                "id": "c5",
                "name": "Class 5",
                "level": 5,
                "topics": [{
                    "id": "fractions",
                    "name": "Fractions",
                    "quizzes": [make_quiz("quiz-a"), make_quiz("quiz-b", count=3)],
                }],
            }],
        }],
    })
