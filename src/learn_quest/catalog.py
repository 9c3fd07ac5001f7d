"""Quiz catalog: subject -> class -> topic -> quiz -> question hierarchy."""
import json
import logging
import re
from pathlib import Path
from typing import Optional

from learn_quest.errors import QuizNotFoundError
from learn_quest.models import Answer, Question, Quiz, SchoolClass, Subject, Topic

logger = logging.getLogger(__name__)

QUESTION_INDEX_RE = re.compile(r"_(q)?(\d+)$")


def question_id(question: Question, quiz_id: str, index: int) -> str:
    """Stable identifier for a question: its explicit id, else ``<quiz_id>_q<index>``."""
    return question.id or f"{quiz_id}_q{index}"


def question_index(qid: str) -> Optional[int]:
    """Recover the positional index encoded in a generated question id."""
    match = QUESTION_INDEX_RE.search(qid)
    if not match:
        return None
    return int(match.group(2))


class Catalog:
    def __init__(self, subjects: list):
        self.subjects = sorted(subjects, key=lambda s: s.order)
        self._quizzes = {}
        for subject in self.subjects:
            for school_class in subject.classes:
                for topic in school_class.topics:
                    for quiz in topic.quizzes:
                        self._quizzes[quiz.id] = quiz

    def find_quiz(self, quiz_id: str) -> Optional[Quiz]:
        return self._quizzes.get(quiz_id)

    def get_quiz(self, quiz_id: str) -> Quiz:
        quiz = self.find_quiz(quiz_id)
        if quiz is None:
            raise QuizNotFoundError(f"Quiz {quiz_id!r} is not in the catalog")
        return quiz

    def all_quizzes(self) -> list:
        return list(self._quizzes.values())

    def resolve_question(self, quiz_id: str, qid: str) -> Optional[tuple]:
        """Find (index, question) for a stored question id, or None if it no longer exists."""
        quiz = self.find_quiz(quiz_id)
        if quiz is None:
            return None
        for idx, q in enumerate(quiz.questions):
            if q.id and q.id == qid:
                return idx, q
        idx = question_index(qid)
        if idx is None or idx >= len(quiz.questions):
            return None
        return idx, quiz.questions[idx]

    def stats(self) -> dict:
        topics = [t for s in self.subjects for c in s.classes for t in c.topics]
        return {
            "total_subjects": len(self.subjects),
            "total_topics": len(topics),
            "total_quizzes": len(self._quizzes),
            "total_questions": sum(len(q.questions) for q in self._quizzes.values()),
        }


def _parse_question(data: dict) -> Question:
    return Question(
        question=data["question"],
        answers=[Answer(a.get("type", "text"), a["content"], a.get("alt")) for a in data["answers"]],
        correct_answer_index=data["correctAnswerIndex"],
        answer_type=data.get("answerType", "text"),
        id=data.get("id"),
    )


def _parse_subject(data: dict) -> Subject:
    return Subject(
        id=data["id"],
        name=data["name"],
        order=data.get("order", 0),
        classes=[
            SchoolClass(
                id=c["id"],
                name=c["name"],
                level=c.get("level", 0),
                topics=[
                    Topic(
                        id=t["id"],
                        name=t["name"],
                        quizzes=[
                            Quiz(
                                id=q["id"],
                                title=q["title"],
                                questions=[_parse_question(x) for x in q.get("questions", [])],
                                short_title=q.get("shortTitle"),
                                hidden=q.get("hidden", False),
                            )
                            for q in t.get("quizzes", [])
                        ],
                    )
                    for t in c.get("topics", [])
                ],
            )
            for c in data.get("classes", [])
        ],
    )


def parse_catalog(data: dict) -> Catalog:
    return Catalog([_parse_subject(s) for s in data.get("subjects", [])])


def load_catalog(path) -> Catalog:
    """Load the catalog hierarchy from a JSON file."""
    catalog = parse_catalog(json.loads(Path(path).read_text(encoding="utf-8")))
    logger.info("Loaded catalog from %s: %s", path, catalog.stats())
    return catalog
