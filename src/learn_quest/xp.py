"""Experience point scoring for quiz sessions.

XP rewards accuracy, speed, and a low retry count:

    base        = questions * 10
    percentage  = 0.3 .. 1.5 (linear in percent correct)
    speed       = 1.3 .. 0.8 (stepped on average seconds per question)
    attempts    = max(0.5, 1.1 - attempts * 0.1)
"""
import math
from typing import Optional

from learn_quest.errors import ContractViolation
from learn_quest.models import UserQuizProgress, XPCalculation

BASE_XP_PER_QUESTION = 10

MIN_PERCENTAGE_MULTIPLIER = 0.3
PERCENTAGE_MULTIPLIER_RANGE = 1.2

# (max average seconds per question, multiplier), fastest first
SPEED_TIERS = [
    (20, 1.3),
    (30, 1.2),
    (45, 1.1),
    (60, 1.0),
    (90, 0.9),
]
SPEED_VERY_SLOW_MULTIPLIER = 0.8

BASE_ATTEMPT_MULTIPLIER = 1.1
ATTEMPT_PENALTY_RATE = 0.1
MIN_ATTEMPT_MULTIPLIER = 0.5


def _round(value: float) -> int:
    # halves round up toward +inf, not to even
    return int(math.floor(value + 0.5))


def speed_multiplier(avg_seconds_per_question: float) -> float:
    for limit, multiplier in SPEED_TIERS:
        if avg_seconds_per_question <= limit:
            return multiplier
    return SPEED_VERY_SLOW_MULTIPLIER


def attempt_multiplier(attempts: int) -> float:
    return max(MIN_ATTEMPT_MULTIPLIER, BASE_ATTEMPT_MULTIPLIER - attempts * ATTEMPT_PENALTY_RATE)


def calculate_xp(
    percentage: float,
    elapsed_time_ms: int,
    total_questions: int,
    attempts: int,
) -> XPCalculation:
    """Calculate XP for a quiz session.

    Args:
        percentage: Share of correct answers, 0-100.
        elapsed_time_ms: Session wall-clock time in milliseconds.
        total_questions: Number of questions in the quiz (>= 1).
        attempts: Session-level try count (>= 1).

    Raises:
        ContractViolation: If any input is outside its valid range.
    """
    if total_questions < 1:
        raise ContractViolation(f"total_questions must be >= 1, got {total_questions}")
    if not 0 <= percentage <= 100:
        raise ContractViolation(f"percentage must be within 0..100, got {percentage}")
    if elapsed_time_ms < 0:
        raise ContractViolation(f"elapsed_time_ms must be >= 0, got {elapsed_time_ms}")
    if attempts < 1:
        raise ContractViolation(f"attempts must be >= 1, got {attempts}")

    base_xp = total_questions * BASE_XP_PER_QUESTION
    pm = MIN_PERCENTAGE_MULTIPLIER + (percentage / 100) * PERCENTAGE_MULTIPLIER_RANGE
    sm = speed_multiplier(elapsed_time_ms / 1000 / total_questions)
    am = attempt_multiplier(attempts)

    return XPCalculation(
        total_xp=_round(base_xp * pm * sm * am),
        base_xp=base_xp,
        percentage_bonus=_round(base_xp * (pm - 1)),
        speed_bonus=_round(base_xp * pm * (sm - 1)),
        attempt_penalty=_round(base_xp * pm * sm * (1 - am)),
        percentage_multiplier=pm,
        speed_multiplier=sm,
        attempt_multiplier=am,
    )


def xp_delta(new_xp: int, previous_xp: Optional[int]) -> int:
    return new_xp - (previous_xp or 0)


def apply_xp(progress: UserQuizProgress, new_xp: int, previous_xp: Optional[int] = None) -> int:
    """Store new_xp on the record and keep the predecessor in last_xp.

    previous_xp defaults to the record's current xp. Non-positive scores are
    not stored. Returns the delta against the predecessor.
    """
    if previous_xp is None:
        previous_xp = progress.xp
    if new_xp > 0:
        progress.xp = new_xp
        progress.last_xp = previous_xp or 0
    return xp_delta(new_xp, previous_xp)
