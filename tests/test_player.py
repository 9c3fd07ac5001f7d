# tests/test_player.py
from unittest.mock import patch

import pytest

from learn_quest.db import ProgressStore
from learn_quest.errors import ContractViolation, QuizNotFoundError
from learn_quest.models import QuestionSRSData, UserQuizProgress
from learn_quest.player import PoolSession, QuizSession, open_session
from learn_quest.review import build_wrong_pool
from learn_quest.srs import DAY_MS

NOW = 1_700_000_000_000
RIGHT, WRONG = 0, 1


def play(session, answers, start=NOW):
    for i, answer in enumerate(answers):
        session.submit(answer, now=start + (i + 1) * 10_000)


def test_submit_checkpoints_every_answer(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-a"), "anna", store, started_at=NOW)
    with patch.object(ProgressStore, "write", autospec=True) as write:
        session.submit(RIGHT, now=NOW + 1000)
        session.submit(WRONG, now=NOW + 2000)
    assert write.call_count == 2


def test_first_answer_creates_record_with_defaults(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-a"), "anna", store, started_at=NOW)
    assert session.submit(RIGHT, now=NOW + 5000) is True
    record = store.read("anna", "quiz-a")
    assert set(record.questions) == {f"quiz-a_q{i}" for i in range(4)}
    assert record.questions["quiz-a_q0"].answered is True
    assert record.questions["quiz-a_q1"] == QuestionSRSData()
    assert record.completed is False
    assert record.total_tries == 1
    assert record.total_elapsed_time == 5000
    assert record.last_updated == NOW + 5000


def test_completion_captures_time_and_xp(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-a"), "anna", store, started_at=NOW)
    play(session, [RIGHT] * 4)
    record = store.read("anna", "quiz-a")
    assert record.completed is True
    assert record.completed_time == 40_000
    # 4 questions, 100%, 10s per question, first try
    assert record.xp == 78
    assert record.last_xp == 0
    assert session.last_xp_delta == 78


def test_completed_time_is_immutable(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-a"), "anna", store, started_at=NOW)
    play(session, [RIGHT] * 4)
    again = open_session(catalog, store, "anna", "quiz-a", mode="fresh", started_at=NOW + DAY_MS)
    play(again, [WRONG], start=NOW + DAY_MS)
    assert store.read("anna", "quiz-a").completed_time == 40_000


def test_new_session_reports_delta_against_previous_xp(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-a"), "anna", store, started_at=NOW)
    play(session, [RIGHT] * 4)
    again = open_session(catalog, store, "anna", "quiz-a", mode="fresh", started_at=NOW + DAY_MS)
    play(again, [RIGHT, RIGHT, RIGHT, WRONG], start=NOW + DAY_MS)
    record = store.read("anna", "quiz-a")
    assert again.total_tries == 2
    assert record.last_xp == 78
    assert again.last_xp_delta == record.xp - 78


def test_lapse_keeps_quiz_completed(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-a"), "anna", store, started_at=NOW)
    play(session, [RIGHT] * 4)
    again = open_session(catalog, store, "anna", "quiz-a", started_at=NOW + DAY_MS)
    again.submit(WRONG, now=NOW + DAY_MS + 1)
    record = store.read("anna", "quiz-a")
    assert record.questions["quiz-a_q0"].answered is True
    assert record.questions["quiz-a_q0"].last_answer_correct is False
    assert record.completed is True


def test_repeat_wrong_round(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-a"), "anna", store, started_at=NOW)
    play(session, [RIGHT, WRONG, RIGHT, WRONG])
    assert session.finished
    assert session.repeat_wrong() == 2
    assert session.total_tries == 2
    assert session.current_question()[0] == 1
    session.submit(RIGHT, now=NOW + 50_000)
    session.submit(RIGHT, now=NOW + 60_000)
    stats = session.statistics()
    assert stats["all_solved"] is True
    assert stats["percentage"] == 100
    assert store.read("anna", "quiz-a").total_tries == 2


def test_repeat_wrong_noop_when_all_correct(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-b"), "anna", store, started_at=NOW)
    play(session, [RIGHT] * 3)
    assert session.repeat_wrong() == 0
    assert session.total_tries == 1


def test_continue_starts_at_first_unsolved(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-a"), "anna", store, started_at=NOW)
    play(session, [RIGHT, RIGHT])
    resumed = open_session(catalog, store, "anna", "quiz-a", mode="continue", started_at=NOW + 100_000)
    assert resumed.current_question()[0] == 2
    assert resumed.total_tries == 1
    resumed.submit(RIGHT, now=NOW + 110_000)
    assert store.read("anna", "quiz-a").total_elapsed_time == 20_000 + 10_000


def test_review_mode_plays_only_due_questions(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-a"), "anna", store, started_at=NOW)
    play(session, [RIGHT, WRONG, RIGHT, RIGHT])
    # first-streak reviews are scheduled two days out
    review = open_session(catalog, store, "anna", "quiz-a", mode="review", started_at=NOW + 3 * DAY_MS)
    assert review.round == [0, 2, 3]
    early = open_session(catalog, store, "anna", "quiz-a", mode="review", started_at=NOW + DAY_MS)
    assert early.round == []
    assert early.finished


def test_guest_session_is_not_saved(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-a"), "Gast", store, started_at=NOW)
    play(session, [RIGHT] * 4)
    assert session.last_xp is None
    assert store.read_all("Gast") == {}


def test_invalid_answer_index(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-a"), "anna", store, started_at=NOW)
    with pytest.raises(ContractViolation):
        session.submit(5, now=NOW)


def test_submit_after_round_end(catalog, store):
    session = QuizSession(catalog.get_quiz("quiz-b"), "anna", store, started_at=NOW)
    play(session, [RIGHT] * 3)
    with pytest.raises(ContractViolation):
        session.submit(RIGHT, now=NOW + 99_000)


def test_unknown_mode(catalog, store):
    with pytest.raises(ContractViolation):
        QuizSession(catalog.get_quiz("quiz-a"), "anna", store, mode="sprint")


def test_open_session_rejects_deleted_quiz(catalog, store):
    store.write(UserQuizProgress(username="anna", quiz_id="deleted"))
    with pytest.raises(QuizNotFoundError):
        open_session(catalog, store, "anna", "deleted", mode="continue")


def seed_wrong_answers(catalog, store):
    a = QuizSession(catalog.get_quiz("quiz-a"), "anna", store, started_at=NOW)
    play(a, [WRONG, WRONG, RIGHT, RIGHT])
    b = QuizSession(catalog.get_quiz("quiz-b"), "anna", store, started_at=NOW)
    play(b, [WRONG, RIGHT, RIGHT])
    return store.read_all("anna")


def test_pool_session_coalesces_writes_per_origin(catalog, store):
    progress = seed_wrong_answers(catalog, store)
    pool = build_wrong_pool(progress, catalog)
    assert [(p.origin_quiz_id, p.question_id) for p in pool.questions] == [
        ("quiz-a", "quiz-a_q0"), ("quiz-a", "quiz-a_q1"), ("quiz-b", "quiz-b_q0"),
    ]
    session = PoolSession(pool, "anna", store, progress)
    with patch.object(ProgressStore, "write", autospec=True) as write:
        session.submit(RIGHT, now=NOW + DAY_MS)
        session.submit(RIGHT, now=NOW + DAY_MS + 1)
        assert write.call_count == 0
        session.flush(now=NOW + DAY_MS + 2)
    written = [call.args[1] for call in write.call_args_list]
    assert [r.quiz_id for r in written] == ["quiz-a"]
    assert written[0].questions["quiz-a_q0"].last_answer_correct is True
    assert written[0].questions["quiz-a_q1"].last_answer_correct is True
    assert written[0].completed is True


def test_pool_session_updates_origin_records(catalog, store):
    progress = seed_wrong_answers(catalog, store)
    session = PoolSession(build_wrong_pool(progress, catalog), "anna", store, progress)
    session.submit(RIGHT, now=NOW + DAY_MS)
    session.submit(WRONG, now=NOW + DAY_MS)
    session.submit(RIGHT, now=NOW + DAY_MS)
    written = session.flush(now=NOW + DAY_MS + 5)
    assert {r.quiz_id for r in written} == {"quiz-a", "quiz-b"}

    after = store.read_all("anna")
    assert set(after) == {"quiz-a", "quiz-b"}
    assert after["quiz-a"].completed is False
    assert after["quiz-a"].questions["quiz-a_q1"].attempts == 2
    assert after["quiz-b"].completed is True
    assert after["quiz-b"].last_updated == NOW + DAY_MS + 5
    assert after["quiz-b"].xp == progress["quiz-b"].xp
    assert build_wrong_pool(after, catalog).questions[0].question_id == "quiz-a_q1"


def test_pool_flush_without_answers_writes_nothing(catalog, store):
    progress = seed_wrong_answers(catalog, store)
    session = PoolSession(build_wrong_pool(progress, catalog), "anna", store, progress)
    assert session.flush(now=NOW) == []
