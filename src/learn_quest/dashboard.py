"""Progress dashboard views, grading, and quiz suggestions."""
import logging
import random
from dataclasses import dataclass
from typing import Optional

from learn_quest.catalog import Catalog
from learn_quest.models import Quiz, SRSStats, UserQuizProgress
from learn_quest.review import srs_stats

logger = logging.getLogger(__name__)

SUGGESTION_LIMIT = 5
MIN_SUGGESTION_QUESTIONS = 4

GRADES = [
    (92, 1, "Sehr gut", "green"),
    (81, 2, "Gut", "green_yellow"),
    (67, 3, "Befriedigend", "yellow"),
    (50, 4, "Ausreichend", "dark_orange"),
    (30, 5, "Mangelhaft", "red"),
]
LOWEST_GRADE = (6, "Ungenügend", "dark_red")


@dataclass
class ProgressEntry:
    progress: UserQuizProgress
    quiz: Optional[Quiz]
    completion_percentage: int
    stats: SRSStats

    @property
    def orphaned(self) -> bool:
        """The quiz was deleted from the catalog; the progress is kept read-only."""
        return self.quiz is None

    @property
    def can_resume(self) -> bool:
        return not self.orphaned

    @property
    def title(self) -> str:
        if self.quiz is None:
            return self.progress.quiz_id
        return self.quiz.short_title or self.quiz.title


def sort_progress(records: list) -> list:
    """Incomplete quizzes first, then most recently updated first."""
    return sorted(records, key=lambda p: (p.completed, -p.last_updated))


def completion_percentage(progress: UserQuizProgress) -> int:
    total = len(progress.questions)
    if total == 0:
        return 0
    solved = sum(1 for q in progress.questions.values() if q.answered)
    return round(solved / total * 100)


def build_progress_list(progress_by_quiz: dict, catalog: Catalog, now: int) -> list[ProgressEntry]:
    entries = []
    for progress in sort_progress(list(progress_by_quiz.values())):
        quiz = catalog.find_quiz(progress.quiz_id)
        if quiz is None:
            logger.info("Progress for %s references a deleted quiz", progress.quiz_id)
        entries.append(ProgressEntry(
            progress=progress,
            quiz=quiz,
            completion_percentage=completion_percentage(progress),
            stats=srs_stats(progress, now),
        ))
    return entries


def total_xp(records) -> int:
    return sum(p.xp or 0 for p in records)


def calculate_grade(percentage: float) -> dict:
    """German school grade (1 best, 6 worst) for a percentage score."""
    for threshold, grade, label, color in GRADES:
        if percentage >= threshold:
            return {"grade": grade, "label": label, "color": color}
    grade, label, color = LOWEST_GRADE
    return {"grade": grade, "label": label, "color": color}


def format_time(ms: int) -> str:
    total_seconds = ms // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def suggest_quizzes(
    all_quizzes: list,
    progress_by_quiz: dict,
    dismissed: set,
    limit: int = SUGGESTION_LIMIT,
    min_questions: int = MIN_SUGGESTION_QUESTIONS,
    rng: Optional[random.Random] = None,
) -> list[Quiz]:
    """Random sample of quizzes the user has neither started nor dismissed."""
    started = {p.quiz_id for p in progress_by_quiz.values()} | set(progress_by_quiz)
    candidates = [
        quiz for quiz in all_quizzes
        if quiz.id not in started
        and quiz.id not in dismissed
        and not quiz.hidden
        and len(quiz.questions) >= min_questions
    ]
    rng = rng or random.Random()
    return rng.sample(candidates, min(limit, len(candidates)))
