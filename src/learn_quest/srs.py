"""Per-question spaced repetition state machine."""
from dataclasses import replace
from typing import Union

from learn_quest.models import QuestionSRSData

DAY_MS = 24 * 60 * 60 * 1000
MAX_INTERVAL_DOUBLINGS = 5
MASTERED_LEVEL = 5


def normalize(data: Union[QuestionSRSData, dict, None] = None) -> QuestionSRSData:
    """Return a complete QuestionSRSData, defaulting every missing field.

    Accepts an existing record, a stored camelCase mapping (possibly from an
    older schema without SRS fields), or None for a never-seen question.
    """
    if isinstance(data, QuestionSRSData):
        return replace(data)
    data = data or {}
    answered = bool(data.get("answered", False))
    correct_streak = data.get("correctStreak") or 0
    # partial documents may carry a streak or solved flag without a matching attempt count
    attempts = max(data.get("attempts") or 0, correct_streak, 1 if answered else 0)
    return QuestionSRSData(
        answered=answered,
        attempts=attempts,
        last_answer_correct=bool(data.get("lastAnswerCorrect", False)),
        correct_streak=correct_streak,
        difficulty_level=data.get("difficultyLevel") or 0,
        last_attempt_date=data.get("lastAttemptDate"),
        next_review_date=data.get("nextReviewDate"),
    )


def difficulty_level(correct_streak: int, attempts: int) -> int:
    """Map a streak to a mastery tier.

    0 = new, 1 = attempted, 2-3 = learning, 4 = known, 5 = mastered.
    """
    if correct_streak >= 5:
        return 5
    elif correct_streak >= 3:
        return 4
    elif correct_streak >= 2:
        return 3
    elif correct_streak >= 1:
        return 2
    elif attempts > 0:
        return 1
    return 0


def review_interval(correct_streak: int) -> int:
    """Interval in ms until the next review: one day doubled per streak step, capped at 32 days."""
    return DAY_MS * 2 ** min(correct_streak, MAX_INTERVAL_DOUBLINGS)


def apply_answer(data: QuestionSRSData, correct: bool, now: int) -> QuestionSRSData:
    """Compute the next SRS state for one submission.

    Args:
        data: Current (normalized) state of the question.
        correct: Whether the submission was correct.
        now: Submission time in ms since epoch.

    Returns:
        A new QuestionSRSData; the input is not modified.
    """
    attempts = data.attempts + 1
    streak = data.correct_streak + 1 if correct else 0
    return QuestionSRSData(
        # Once solved, a question stays solved; lapses only reset streak and tier.
        answered=True if correct else data.answered,
        attempts=attempts,
        last_answer_correct=correct,
        correct_streak=streak,
        difficulty_level=difficulty_level(streak, attempts),
        last_attempt_date=now,
        next_review_date=now + review_interval(streak),
    )


def is_due(data: QuestionSRSData, now: int) -> bool:
    return (
        data.next_review_date is not None
        and data.next_review_date <= now
        and data.answered
    )


def is_wrong(data: QuestionSRSData) -> bool:
    return data.attempts > 0 and not data.last_answer_correct


def mastery_tier(data: QuestionSRSData) -> str:
    if data.difficulty_level >= MASTERED_LEVEL:
        return "mastered"
    elif data.difficulty_level >= 1:
        return "learning"
    return "new"

