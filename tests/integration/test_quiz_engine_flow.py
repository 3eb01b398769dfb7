"""
Integration Tests for the adaptive quiz flow on SQLite.

Tests the full path through the SQL stores:
1. Question pools are imported and loaded
2. Sessions are persisted between every operation
3. Weakness rows are written per answer and feed the next attempt
4. Results are recorded as attempts and aggregate progress
5. The cleanup sweep removes stale sessions

Uses an in-memory SQLite database per test.
"""

import random
from dataclasses import replace
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from src.db import repositories
from src.db.repositories import SqlProgressRepository, SqlQuestionBank, SqlWeaknessRepository
from src.quiz.engine import AdaptiveQuizEngine
from src.quiz.errors import NotFoundError, PersistenceError, ValidationError
from src.quiz.models import AttemptRecord, HistoricalProgress
from src.quiz.selector import QuestionSelector
from src.quiz.session import create_session
from src.quiz.session_store import SqlSessionStore

pytestmark = pytest.mark.integration


@pytest.fixture
def question_bank(db_session_factory, sample_pool_records):
    bank = SqlQuestionBank(db_session_factory)
    bank.import_questions(4, "science", "Plants", sample_pool_records, title="Plants")
    return bank


@pytest.fixture
def engine(db_session_factory, question_bank):
    return AdaptiveQuizEngine(
        question_bank=question_bank,
        progress_repository=SqlProgressRepository(db_session_factory),
        weakness_repository=SqlWeaknessRepository(db_session_factory),
        session_store=SqlSessionStore(db_session_factory),
        selector=QuestionSelector(random.Random(7)),
    )


def _take_quiz(engine, session_id, answer="a"):
    served = []
    while True:
        question = engine.next_question(session_id)
        if question.get("completed"):
            return served
        served.append(question)
        engine.submit_answer(session_id, question["id"], answer, 15)


class TestQuestionBank:
    def test_import_and_load(self, question_bank):
        questions = question_bank.list_questions(4, "science", "Plants")
        assert len(questions) == 10
        assert questions[0].correct_answer_ids == ("a",)
        assert questions[0].hints == ("Think about roots.", "It is underground.")
        assert questions[0].year == 4
        assert questions[0].subject == "science"

    def test_import_extends_and_replaces(self, question_bank, sample_pool_records):
        question_bank.import_questions(4, "science", "Plants", sample_pool_records[:2])
        assert len(question_bank.list_questions(4, "science", "Plants")) == 12

        question_bank.import_questions(4, "science", "Plants", sample_pool_records[:3], replace=True)
        assert len(question_bank.list_questions(4, "science", "Plants")) == 3

    def test_unknown_topic_is_empty(self, question_bank):
        assert question_bank.list_questions(4, "science", "Volcanoes") == []
        assert question_bank.find_quiz_id(4, "science", "Volcanoes") is None


class TestQuizFlow:
    def test_full_attempt(self, engine, db_session_factory):
        started = engine.start(1, 4, "science", "Plants", max_questions=5)
        session_id = started["session_id"]
        assert started["total_questions"] == 5
        assert started["initial_ability"] == 0.5

        served = _take_quiz(engine, session_id)

        assert len(served) == 5
        assert len({q["id"] for q in served}) == 5
        assert all("correct_answer_ids" not in q for q in served)
        assert [q["progress"]["current"] for q in served] == [1, 2, 3, 4, 5]

        results = engine.get_results(session_id)
        assert results["current_topic_percentage"] == 100
        assert results["quiz_passed"] is True
        assert results["attempt_number"] == 1
        assert len(results["question_scores"]) == 5

        attempts = SqlProgressRepository(db_session_factory).list_attempts(1, results["quiz_id"])
        assert [a.score for a in attempts] == [100]
        assert attempts[0].questions_answered == 5

        with pytest.raises(NotFoundError):
            engine.get_results(session_id)

    def test_validation_errors(self, engine):
        with pytest.raises(ValidationError):
            engine.start(1, 4, "science", "Plants", max_questions=0)
        with pytest.raises(NotFoundError):
            engine.start(1, 4, "science", "Volcanoes")

        session_id = engine.start(1, 4, "science", "Plants", max_questions=3)["session_id"]
        question = engine.next_question(session_id)
        with pytest.raises(ValidationError):
            engine.submit_answer(session_id, question["id"], [], 10)
        with pytest.raises(ValidationError):
            engine.submit_answer(session_id, question["id"], "a", 301)

    def test_initial_ability_from_history(self, engine, db_session_factory):
        SqlProgressRepository(db_session_factory).save_topic_progress(
            1, HistoricalProgress(year=4, subject="science", topic="Soil", topic_progress=80, quiz_passed=True)
        )
        assert engine.start(1, 4, "science", "Plants")["initial_ability"] == pytest.approx(0.8)

    def test_session_survives_new_engine(self, engine, db_session_factory, question_bank):
        session_id = engine.start(1, 4, "science", "Plants", max_questions=3)["session_id"]
        question = engine.next_question(session_id)
        engine.submit_answer(session_id, question["id"], "a", 10)

        other = AdaptiveQuizEngine(
            question_bank,
            SqlProgressRepository(db_session_factory),
            SqlWeaknessRepository(db_session_factory),
            SqlSessionStore(db_session_factory),
        )
        _take_quiz(other, session_id)
        assert other.get_results(session_id)["questions_answered"] == 3


class TestWeaknessAcrossAttempts:
    def test_wrong_answers_make_topic_weak_next_time(self, engine, db_session_factory):
        session_id = engine.start(1, 4, "science", "Plants", max_questions=4)["session_id"]
        _take_quiz(engine, session_id, answer="b")
        results = engine.get_results(session_id)
        assert results["quiz_passed"] is False

        record = SqlWeaknessRepository(db_session_factory).get(1, 4, "science", "Plants")
        assert record.weakness_score > 0.5
        assert record.remediation_attempts == 4
        assert record.improvement_trend.value == "declining"

        restarted = engine.restart(1, 4, "science", "Plants", max_questions=4)
        assert restarted["is_restart"] is True
        assert restarted["weak_topics"] == ["4-science-Plants"]

    def test_progress_once_passed_stays_passed(self, engine):
        first = engine.start(1, 4, "science", "Plants", max_questions=4)["session_id"]
        _take_quiz(engine, first, answer="a")
        engine.get_results(first)

        second = engine.restart(1, 4, "science", "Plants", max_questions=4)["session_id"]
        _take_quiz(engine, second, answer="b")
        assert engine.get_results(second)["attempt_number"] == 2

        progress = engine.get_quiz_progress(1, 4, "science", "Plants")
        assert progress["passed"] is True
        assert progress["best_score"] == 100
        assert progress["last_score"] == 0
        assert progress["total_attempts"] == 2
        assert progress["last_activity"] is not None

    def test_progress_lookup_with_flexible_topic(self, engine):
        session_id = engine.start(1, 4, "science", "Plants", max_questions=2)["session_id"]
        _take_quiz(engine, session_id)
        engine.get_results(session_id)

        assert engine.get_quiz_progress(1, 4, "science", "Unit 1: Plants")["total_attempts"] == 1
        assert engine.get_quiz_progress(1, 4, "science", "Volcanoes")["total_attempts"] == 0

    def test_historical_mode(self, db_session_factory, question_bank):
        progress_repo = SqlProgressRepository(db_session_factory)
        progress_repo.save_topic_progress(
            1, HistoricalProgress(year=4, subject="science", topic="Soil", topic_progress=30)
        )
        engine = AdaptiveQuizEngine(
            question_bank,
            progress_repo,
            SqlWeaknessRepository(db_session_factory),
            SqlSessionStore(db_session_factory),
            weakness_mode="historical",
        )

        started = engine.start(1, 4, "science", "Plants", max_questions=2)
        assert started["weak_topics"] == ["4-science-Soil"]

        _take_quiz(engine, started["session_id"], answer="b")
        assert SqlWeaknessRepository(db_session_factory).list_for_user(1, 4, "science") == []


class TestResultsPersistenceFailure:
    def test_failure_keeps_session_for_retry(self, engine, monkeypatch):
        session_id = engine.start(1, 4, "science", "Plants", max_questions=2)["session_id"]
        _take_quiz(engine, session_id)

        def broken(attempt):
            raise PersistenceError("Failed to record quiz attempt")

        with monkeypatch.context() as patch:
            patch.setattr(engine.progress_repository, "record_attempt", broken)
            with pytest.raises(PersistenceError):
                engine.get_results(session_id)

        assert engine.session_store.load(session_id) is not None
        assert engine.get_results(session_id)["attempt_number"] == 1

    def test_progress_failure_rolls_back_attempt(self, engine, db_session_factory, monkeypatch):
        session_id = engine.start(1, 4, "science", "Plants", max_questions=2)["session_id"]
        _take_quiz(engine, session_id)
        progress_repo = SqlProgressRepository(db_session_factory)
        quiz_id = engine.question_bank.find_quiz_id(4, "science", "Plants")

        def broken(session, attempt):
            raise SQLAlchemyError("disk I/O error")

        with monkeypatch.context() as patch:
            patch.setattr(repositories, "_merge_progress", broken)
            with pytest.raises(PersistenceError):
                engine.get_results(session_id)

        assert progress_repo.list_attempts(1, quiz_id) == []
        assert progress_repo.get_progress(1, quiz_id) is None

        results = engine.get_results(session_id)

        assert results["attempt_number"] == 1
        assert [a.attempt_number for a in progress_repo.list_attempts(1, quiz_id)] == [1]
        assert progress_repo.get_progress(1, quiz_id).total_attempts == 1

    def test_attempts_are_numbered_per_quiz(self, db_session_factory, question_bank):
        progress_repo = SqlProgressRepository(db_session_factory)
        quiz_id = question_bank.find_quiz_id(4, "science", "Plants")
        attempt = AttemptRecord(
            user_id=1,
            quiz_id=quiz_id,
            attempt_number=0,
            score=50,
            time_taken=120.0,
            questions_answered=4,
            total_questions=4,
            ability_estimate=0.5,
            passed=False,
        )

        first = progress_repo.record_attempt(attempt)
        second = progress_repo.record_attempt(replace(attempt, score=80, passed=True))

        assert (first.attempt_number, second.attempt_number) == (1, 2)
        progress = progress_repo.get_progress(1, quiz_id)
        assert progress.passed is True
        assert progress.best_score == 80
        assert progress.total_attempts == 2


class TestSessionStore:
    def _session(self, sample_questions, completed, age_days):
        session = create_session(1, 4, "science", "Plants", sample_questions, 5, 0.5)
        session.is_completed = completed
        session.start_time = datetime.now() - timedelta(days=age_days)
        return session

    def test_round_trip(self, db_session_factory, sample_questions):
        store = SqlSessionStore(db_session_factory)
        session = self._session(sample_questions, False, 0)
        session.weak_topics = ["4-science-Soil"]
        store.save(session)

        loaded = store.load(session.session_id)
        assert loaded.weak_topics == ["4-science-Soil"]
        assert loaded.available_questions == session.available_questions
        assert store.list_sessions(user_id=1) == [session.session_id]
        assert store.delete(session.session_id) is True
        assert store.delete(session.session_id) is False
        assert store.load(session.session_id) is None

    def test_cleanup_removes_only_old_completed_sessions(self, db_session_factory, sample_questions):
        store = SqlSessionStore(db_session_factory)
        old_done = self._session(sample_questions, True, 10)
        new_done = self._session(sample_questions, True, 1)
        old_open = self._session(sample_questions, False, 10)
        for session in (old_done, new_done, old_open):
            store.save(session)

        assert store.cleanup(retention_days=7) == 1
        assert store.load(old_done.session_id) is None
        assert store.load(new_done.session_id) is not None
        assert store.load(old_open.session_id) is not None

    def test_cleanup_with_abandoned_ttl(self, db_session_factory, sample_questions):
        store = SqlSessionStore(db_session_factory)
        old_open = self._session(sample_questions, False, 10)
        store.save(old_open)

        assert store.cleanup(retention_days=7, abandoned_ttl_days=3) == 1
        assert store.load(old_open.session_id) is None

    def test_engine_cleanup_uses_configured_windows(self, db_session_factory, question_bank, sample_questions):
        store = SqlSessionStore(db_session_factory)
        store.save(self._session(sample_questions, True, 3))
        engine = AdaptiveQuizEngine(
            question_bank,
            SqlProgressRepository(db_session_factory),
            SqlWeaknessRepository(db_session_factory),
            store,
            retention_days=2,
        )
        assert engine.cleanup_sessions() == 1
