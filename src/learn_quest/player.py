"""Quiz sessions: answer submission, checkpointing, and wrong-pool fan-out."""
import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from learn_quest.catalog import Catalog, question_id
from learn_quest.db import ProgressStore
from learn_quest.errors import ContractViolation
from learn_quest.models import Question, Quiz, UserQuizProgress
from learn_quest.review import WrongPool, completion_state, due_question_ids
from learn_quest.srs import apply_answer, normalize
from learn_quest.xp import apply_xp, calculate_xp

logger = logging.getLogger(__name__)

START_MODES = ("fresh", "continue", "review")


def now_ms() -> int:
    return int(datetime.now().timestamp() * 1000)


def _check_answer(question: Question, answer_index: int) -> bool:
    if not 0 <= answer_index < len(question.answers):
        raise ContractViolation(
            f"answer_index {answer_index} out of range for {len(question.answers)} answers"
        )
    return answer_index == question.correct_answer_index


class QuizSession:
    """One learner playing one quiz.

    Every submission updates the question's SRS state and writes the full
    progress record, so an abandoned session leaves the last answer durable.
    """

    def __init__(
        self,
        quiz: Quiz,
        username: str,
        store: ProgressStore,
        initial: Optional[UserQuizProgress] = None,
        mode: str = "fresh",
        started_at: Optional[int] = None,
    ):
        if not quiz.questions:
            raise ContractViolation(f"Quiz {quiz.id!r} has no questions")
        if mode not in START_MODES:
            raise ContractViolation(f"Unknown start mode {mode!r}")
        self.quiz = quiz
        self.username = username
        self.store = store
        self.initial = initial
        self.mode = mode
        self.started_at = now_ms() if started_at is None else started_at
        self.question_progress = {
            qid: normalize(data) for qid, data in (initial.questions if initial else {}).items()
        }
        self.ids = [question_id(q, quiz.id, idx) for idx, q in enumerate(quiz.questions)]

        if initial is None:
            self.total_tries = 1
        elif mode == "fresh":
            self.total_tries = initial.total_tries + 1
        else:
            self.total_tries = max(initial.total_tries, 1)
        self.base_elapsed = (initial.total_elapsed_time or 0) if initial and mode == "continue" else 0
        self.completed_time = initial.completed_time if initial else None

        self.round = self._initial_round()
        self.position = 0
        self.results = []
        self.last_xp = None
        self.last_xp_delta = 0

    def _initial_round(self) -> list:
        indices = list(range(len(self.quiz.questions)))
        if self.mode == "review":
            due = due_question_ids(self.initial, self.started_at) if self.initial else set()
            return [i for i in indices if self.ids[i] in due]
        if self.mode == "continue":
            for offset, idx in enumerate(indices):
                if not self._solved(self.ids[idx]):
                    return indices[offset:]
        return indices

    def _solved(self, qid: str) -> bool:
        data = self.question_progress.get(qid)
        return bool(data and data.answered)

    @property
    def finished(self) -> bool:
        return self.position >= len(self.round)

    def current_question(self) -> Optional[tuple]:
        """(index, question) of the question awaiting an answer, or None at round end."""
        if self.finished:
            return None
        idx = self.round[self.position]
        return idx, self.quiz.questions[idx]

    def submit(self, answer_index: int, now: Optional[int] = None) -> bool:
        if self.finished:
            raise ContractViolation("No question is awaiting an answer")
        now = now_ms() if now is None else now
        idx, question = self.current_question()
        correct = _check_answer(question, answer_index)
        qid = self.ids[idx]
        self.question_progress[qid] = apply_answer(normalize(self.question_progress.get(qid)), correct, now)
        self.results.append((idx, correct))
        self.position += 1
        self.save(now)
        return correct

    def wrong_in_round(self) -> list:
        return [idx for idx, correct in self.results if not correct]

    def repeat_wrong(self) -> int:
        """Start another round with this round's missed questions. Returns its size."""
        wrong = self.wrong_in_round()
        if wrong:
            self.round = wrong
            self.position = 0
            self.results = []
            self.total_tries += 1
        return len(wrong)

    def elapsed(self, now: int) -> int:
        return self.base_elapsed + max(0, now - self.started_at)

    def statistics(self) -> dict:
        correct = sum(1 for _, ok in self.results if ok)
        answered = len(self.results)
        solved = sum(1 for qid in self.ids if self._solved(qid))
        return {
            "correct_count": correct,
            "total_answered": answered,
            "percentage": round(correct / answered * 100) if answered else 0,
            "total_questions": len(self.quiz.questions),
            "solved_count": solved,
            "all_solved": solved == len(self.ids),
            "total_tries": self.total_tries,
        }

    def build_record(self, now: int) -> UserQuizProgress:
        questions = dict(self.question_progress)
        for qid in self.ids:
            questions.setdefault(qid, normalize())
        completed = completion_state(questions)
        elapsed = self.elapsed(now)
        if completed and self.completed_time is None:
            self.completed_time = elapsed

        previous_xp = self.initial.xp if self.initial else None
        record = UserQuizProgress(
            username=self.username,
            quiz_id=self.quiz.id,
            questions=questions,
            total_tries=self.total_tries,
            completed=completed,
            last_updated=now,
            total_elapsed_time=elapsed,
            completed_time=self.completed_time,
            xp=previous_xp,
            last_xp=self.initial.last_xp if self.initial else None,
        )
        stats = self.statistics()
        if stats["total_answered"] > 0 and not self.store.is_guest(self.username):
            self.last_xp = calculate_xp(
                stats["percentage"], elapsed, stats["total_questions"], self.total_tries
            )
            self.last_xp_delta = apply_xp(record, self.last_xp.total_xp, previous_xp)
        return record

    def save(self, now: Optional[int] = None) -> UserQuizProgress:
        record = self.build_record(now_ms() if now is None else now)
        self.store.write(record)
        return record


class PoolSession:
    """Plays a wrong questions pool, routing every update to its origin quiz.

    Updates are held in memory and written by ``flush`` as one merged record
    per origin quiz.
    """

    def __init__(self, pool: WrongPool, username: str, store: ProgressStore, origin_progress: dict):
        self.pool = pool
        self.username = username
        self.store = store
        self.origin_progress = {p.quiz_id: p for p in origin_progress.values()}
        self.state = {key: normalize(data) for key, data in pool.initial_state.items()}
        self.touched = set()
        self.position = 0
        self.results = []

    @property
    def finished(self) -> bool:
        return self.position >= len(self.pool.questions)

    def current_question(self):
        if self.finished:
            return None
        return self.pool.questions[self.position]

    def submit(self, answer_index: int, now: Optional[int] = None) -> bool:
        if self.finished:
            raise ContractViolation("No pooled question is awaiting an answer")
        now = now_ms() if now is None else now
        pooled = self.current_question()
        correct = _check_answer(pooled.question, answer_index)
        key = (pooled.origin_quiz_id, pooled.question_id)
        self.state[key] = apply_answer(normalize(self.state.get(key)), correct, now)
        self.touched.add(key)
        self.results.append(correct)
        self.position += 1
        return correct

    def statistics(self) -> dict:
        correct = sum(1 for ok in self.results if ok)
        answered = len(self.results)
        return {
            "correct_count": correct,
            "total_answered": answered,
            "percentage": round(correct / answered * 100) if answered else 0,
            "total_questions": len(self.pool.questions),
        }

    def pending_records(self, now: int) -> dict:
        """Merged origin records for every quiz touched since the last flush."""
        records = {}
        for origin_id, qid in sorted(self.touched):
            base = self.origin_progress.get(origin_id)
            if base is None:
                logger.warning("No progress record for origin quiz %s; skipping %s", origin_id, qid)
                continue
            if origin_id not in records:
                records[origin_id] = replace(base, questions=dict(base.questions), last_updated=now)
            records[origin_id].questions[qid] = self.state[(origin_id, qid)]
        for record in records.values():
            record.completed = completion_state(record.questions)
        return records

    def flush(self, now: Optional[int] = None) -> list:
        records = self.pending_records(now_ms() if now is None else now)
        for origin_id, record in records.items():
            self.store.write(record)
            self.origin_progress[origin_id] = record
        self.touched.clear()
        logger.info("Flushed wrong pool answers to %d quizzes", len(records))
        return list(records.values())


def open_session(
    catalog: Catalog,
    store: ProgressStore,
    username: str,
    quiz_id: str,
    mode: str = "fresh",
    started_at: Optional[int] = None,
) -> QuizSession:
    """Start a session on a live quiz; raises QuizNotFoundError for deleted quizzes."""
    quiz = catalog.get_quiz(quiz_id)
    initial = store.read(username, quiz_id)
    return QuizSession(quiz, username, store, initial=initial, mode=mode, started_at=started_at)
