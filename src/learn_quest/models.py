"""Data classes for the progress and catalog domain model."""
from dataclasses import dataclass, field
from typing import Optional

from learn_quest.errors import ContractViolation


@dataclass
class QuestionSRSData:
    answered: bool = False
    attempts: int = 0
    last_answer_correct: bool = False
    correct_streak: int = 0
    difficulty_level: int = 0
    last_attempt_date: Optional[int] = None
    next_review_date: Optional[int] = None

    def __post_init__(self):
        if self.attempts < 0:
            raise ContractViolation(f"attempts must be >= 0, got {self.attempts}")
        if self.correct_streak < 0:
            raise ContractViolation(f"correct_streak must be >= 0, got {self.correct_streak}")
        if self.difficulty_level < 0:
            raise ContractViolation(f"difficulty_level must be >= 0, got {self.difficulty_level}")
        if self.correct_streak > self.attempts:
            raise ContractViolation(
                f"correct_streak ({self.correct_streak}) cannot exceed attempts ({self.attempts})"
            )

    def to_dict(self) -> dict:
        data = {
            "answered": self.answered,
            "attempts": self.attempts,
            "lastAnswerCorrect": self.last_answer_correct,
            "correctStreak": self.correct_streak,
            "difficultyLevel": self.difficulty_level,
        }
        if self.last_attempt_date is not None:
            data["lastAttemptDate"] = self.last_attempt_date
        if self.next_review_date is not None:
            data["nextReviewDate"] = self.next_review_date
        return data


@dataclass
class UserQuizProgress:
    username: str
    quiz_id: str
    questions: dict = field(default_factory=dict)  # question_id -> QuestionSRSData
    total_tries: int = 1
    completed: bool = False
    last_updated: int = 0
    total_elapsed_time: Optional[int] = None
    completed_time: Optional[int] = None
    xp: Optional[int] = None
    last_xp: Optional[int] = None

    def __post_init__(self):
        if self.total_tries < 0:
            raise ContractViolation(f"total_tries must be >= 0, got {self.total_tries}")

    def to_dict(self) -> dict:
        data = {
            "username": self.username,
            "quizId": self.quiz_id,
            "questions": {qid: q.to_dict() for qid, q in self.questions.items()},
            "totalTries": self.total_tries,
            "completed": self.completed,
            "lastUpdated": self.last_updated,
        }
        optional = {
            "totalElapsedTime": self.total_elapsed_time,
            "completedTime": self.completed_time,
            "xp": self.xp,
            "lastXP": self.last_xp,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "UserQuizProgress":
        """Build a record from a stored document, normalizing every question entry.

        Documents written before per-question tracking carry ``answers`` and
        ``solvedQuestions`` instead of ``questions``; solved entries are
        migrated as single correct attempts.
        """
        from learn_quest.srs import normalize

        raw_questions = data.get("questions")
        if raw_questions is None:
            raw_questions = {
                qid: {"answered": True, "attempts": 1, "lastAnswerCorrect": True}
                for qid in data.get("solvedQuestions", [])
            }
        return cls(
            username=data["username"],
            quiz_id=data["quizId"],
            questions={qid: normalize(q) for qid, q in raw_questions.items()},
            total_tries=data.get("totalTries", 1),
            completed=bool(data.get("completed", False)),
            last_updated=data.get("lastUpdated", 0),
            total_elapsed_time=data.get("totalElapsedTime"),
            completed_time=data.get("completedTime"),
            xp=data.get("xp"),
            last_xp=data.get("lastXP"),
        )


@dataclass
class Answer:
    type: str
    content: str
    alt: Optional[str] = None


@dataclass
class Question:
    question: str
    answers: list
    correct_answer_index: int
    answer_type: str = "text"
    id: Optional[str] = None

    def __post_init__(self):
        if not 0 <= self.correct_answer_index < len(self.answers):
            raise ContractViolation(
                f"correct_answer_index {self.correct_answer_index} out of range "
                f"for {len(self.answers)} answers"
            )


@dataclass
class Quiz:
    id: str
    title: str
    questions: list = field(default_factory=list)
    short_title: Optional[str] = None
    hidden: bool = False


@dataclass
class Topic:
    id: str
    name: str
    quizzes: list = field(default_factory=list)


@dataclass
class SchoolClass:
    id: str
    name: str
    level: int = 0
    topics: list = field(default_factory=list)


@dataclass
class Subject:
    id: str
    name: str
    order: int = 0
    classes: list = field(default_factory=list)


@dataclass
class PooledQuestion:
    """A wrong-pool question pointing back at the quiz it came from."""
    question_id: str
    question: Question
    origin_quiz_id: str
    origin_question_index: int


@dataclass
class XPCalculation:
    total_xp: int
    base_xp: int
    percentage_bonus: int
    speed_bonus: int
    attempt_penalty: int
    percentage_multiplier: float
    speed_multiplier: float
    attempt_multiplier: float


@dataclass
class SRSStats:
    mastered: int = 0
    learning: int = 0
    new: int = 0
    due_for_review: int = 0
