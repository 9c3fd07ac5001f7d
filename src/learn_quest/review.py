"""Cross-quiz aggregation: review queue, wrong questions pool, SRS statistics."""
import logging
from dataclasses import dataclass, field

from learn_quest.catalog import Catalog
from learn_quest.models import PooledQuestion, SRSStats, UserQuizProgress
from learn_quest.srs import is_due, is_wrong, mastery_tier, normalize

logger = logging.getLogger(__name__)

WRONG_POOL_QUIZ_ID = "wrong-questions-pool"
WRONG_POOL_TITLE = "Wrong Questions Pool"


def completion_state(questions: dict) -> bool:
    """True iff there is at least one question and all of them are answered."""
    return bool(questions) and all(q.answered for q in questions.values())


def due_for_review(progress_by_quiz: dict, now: int) -> list[tuple[str, str]]:
    """(quiz_id, question_id) pairs of solved questions whose review date has arrived."""
    return [
        (progress.quiz_id, qid)
        for progress in progress_by_quiz.values()
        for qid, data in progress.questions.items()
        if is_due(data, now)
    ]


def wrong_questions(progress_by_quiz: dict) -> list[tuple[str, str]]:
    """(quiz_id, question_id) pairs whose most recent attempt was wrong, each listed once."""
    seen = set()
    pairs = []
    for progress in progress_by_quiz.values():
        for qid, data in progress.questions.items():
            key = (progress.quiz_id, qid)
            if is_wrong(data) and key not in seen:
                seen.add(key)
                pairs.append(key)
    return pairs


@dataclass
class WrongPool:
    """A virtual quiz assembled from missed questions across real quizzes."""
    questions: list = field(default_factory=list)  # PooledQuestion
    initial_state: dict = field(default_factory=dict)  # (origin_quiz_id, question_id) -> QuestionSRSData
    unresolved: list = field(default_factory=list)  # (quiz_id, question_id) no longer in the catalog
    id: str = WRONG_POOL_QUIZ_ID
    title: str = WRONG_POOL_TITLE

    def __len__(self):
        return len(self.questions)


def build_wrong_pool(progress_by_quiz: dict, catalog: Catalog) -> WrongPool:
    pool = WrongPool()
    by_quiz = {p.quiz_id: p for p in progress_by_quiz.values()}
    for quiz_id, qid in wrong_questions(progress_by_quiz):
        resolved = catalog.resolve_question(quiz_id, qid)
        if resolved is None:
            pool.unresolved.append((quiz_id, qid))
            continue
        index, question = resolved
        pool.questions.append(PooledQuestion(
            question_id=qid,
            question=question,
            origin_quiz_id=quiz_id,
            origin_question_index=index,
        ))
        pool.initial_state[(quiz_id, qid)] = normalize(by_quiz[quiz_id].questions[qid])
    if pool.unresolved:
        logger.info("%d wrong questions reference deleted quizzes or questions", len(pool.unresolved))
    return pool


def srs_stats(progress: UserQuizProgress, now: int) -> SRSStats:
    stats = SRSStats()
    for data in progress.questions.values():
        tier = mastery_tier(data)
        setattr(stats, tier, getattr(stats, tier) + 1)
        if is_due(data, now):
            stats.due_for_review += 1
    return stats


def due_question_ids(progress: UserQuizProgress, now: int) -> set:
    return {qid for qid, data in progress.questions.items() if is_due(data, now)}
