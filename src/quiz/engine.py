"""
Adaptive Quiz Engine.

Orchestrates one learner's quiz attempt over injected collaborators:

    start -> next_question -> submit_answer (-> request_hint) -> ... -> get_results

Every operation loads the session from the SessionStore, mutates it
in-process and saves it back. Results are persisted as an attempt record
plus aggregate progress, after which the session is removed.
"""

from __future__ import annotations

import random
from dataclasses import asdict
from datetime import datetime
from typing import Any, Literal

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from config import Settings, get_settings
from src.db.repositories import SqlProgressRepository, SqlQuestionBank, SqlWeaknessRepository
from src.quiz import hints
from src.quiz.ability import initial_ability
from src.quiz.errors import NotFoundError, PersistenceError, ValidationError
from src.quiz.models import Answer, AttemptRecord, QuizSession, WeaknessRecord
from src.quiz.repositories import ProgressRepository, QuestionBank, WeaknessRepository
from src.quiz.selector import QuestionSelector
from src.quiz.session import (
    apply_answer,
    complete,
    compute_results,
    create_session,
    present_question,
    question_projection,
    validate_submission,
)
from src.quiz.session_store import DEFAULT_RETENTION_DAYS, SessionStore, SqlSessionStore
from src.quiz.topics import is_topic_match, key_matches_topic
from src.quiz.weakness import WEAK_THRESHOLD, WeaknessTracker, weak_topics_from_history

WeaknessMode = Literal["realtime", "historical"]


class AdaptiveQuizEngine:
    """
    Run adaptive quiz attempts.

    Collaborators are injected so the engine can run against SQL stores
    in production and in-memory fakes in tests.
    """

    def __init__(
        self,
        question_bank: QuestionBank,
        progress_repository: ProgressRepository,
        weakness_repository: WeaknessRepository,
        session_store: SessionStore,
        selector: QuestionSelector | None = None,
        weakness_mode: WeaknessMode = "realtime",
        default_max_questions: int = 10,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        abandoned_ttl_days: int | None = None,
    ):
        self.question_bank = question_bank
        self.progress_repository = progress_repository
        self.weakness_tracker = WeaknessTracker(weakness_repository)
        self._weakness_repository = weakness_repository
        self.session_store = session_store
        self.selector = selector or QuestionSelector()
        self.weakness_mode = weakness_mode
        self.default_max_questions = default_max_questions
        self.retention_days = retention_days
        self.abandoned_ttl_days = abandoned_ttl_days

    # ========================================
    # Session lifecycle
    # ========================================

    def start(
        self,
        user_id: int,
        year: int,
        subject: str,
        topic: str,
        max_questions: int | None = None,
    ) -> dict[str, Any]:
        """
        Start a new attempt.

        Args:
            user_id: Learner identifier
            year: Year of the quiz
            subject: Subject of the quiz
            topic: Quiz topic (selects the question pool)
            max_questions: Question budget; defaults to the configured value

        Returns:
            Dict with session_id, initial_ability, weak_topics and total_questions

        Raises:
            ValidationError: max_questions below 1
            NotFoundError: The topic has no questions
        """
        if max_questions is None:
            max_questions = self.default_max_questions
        if max_questions < 1:
            raise ValidationError("max_questions must be at least 1")

        questions = self.question_bank.list_questions(year, subject, topic)
        if not questions:
            raise NotFoundError(f"No questions available for {year}-{subject}-{topic}")

        history = self.progress_repository.historical_progress(user_id)
        ability = initial_ability(history, subject, year)
        weak_topics = self._initial_weak_topics(user_id, year, subject, history)

        session = create_session(
            user_id=user_id,
            year=year,
            subject=subject,
            topic=topic,
            questions=questions,
            max_questions=max_questions,
            ability=ability,
            weak_topics=weak_topics,
        )
        self.session_store.save(session)

        logger.info(
            f"Started session {session.session_id} for user {user_id} on {year}-{subject}-{topic} "
            f"(ability={ability:.3f}, questions={session.total_questions}, weak={len(weak_topics)})"
        )
        return {
            "session_id": session.session_id,
            "initial_ability": session.ability_estimate,
            "weak_topics": list(session.weak_topics),
            "total_questions": session.total_questions,
        }

    def restart(
        self,
        user_id: int,
        year: int,
        subject: str,
        topic: str,
        max_questions: int | None = None,
    ) -> dict[str, Any]:
        """Start a fresh attempt at a quiz the learner has already taken."""
        result = self.start(user_id, year, subject, topic, max_questions)
        result["is_restart"] = True
        return result

    def next_question(self, session_id: str) -> dict[str, Any]:
        """
        Select and present the next question.

        Returns the question projection (no correct answers), or
        {"completed": True} when the attempt is over.
        """
        session = self._load(session_id)
        if session.is_completed:
            return {"completed": True}

        selection = self.selector.select_next(session)
        if selection is None:
            complete(session)
            self.session_store.save(session)
            return {"completed": True}

        question = present_question(session, selection)
        self.session_store.save(session)
        return question_projection(session, question)

    def submit_answer(
        self,
        session_id: str,
        question_id: int,
        answer: Answer,
        time_spent: float,
    ) -> dict[str, Any]:
        """
        Score a submission and advance the session.

        Raises:
            ValidationError: Malformed answer or time spent
            NotFoundError: Unknown session or question
            StateConflictError: Session completed or question already answered correctly
        """
        validate_submission(answer, time_spent)
        session = self._load(session_id)
        outcome = apply_answer(session, question_id, answer, time_spent)

        if self.weakness_mode == "realtime":
            self._track_weakness(session, outcome.question, outcome.is_correct, outcome.is_repeated)

        self.session_store.save(session)
        return outcome.to_dict()

    def request_hint(self, session_id: str) -> dict[str, Any]:
        """Reveal the next hint for the current question."""
        session = self._load(session_id)
        result = hints.request_hint(session)
        self.session_store.save(session)
        return asdict(result)

    def get_results(self, session_id: str) -> dict[str, Any]:
        """
        Finish the attempt, persist it and remove the session.

        Raises:
            NotFoundError: Unknown session (including one already finished)
            PersistenceError: The attempt could not be saved; the session
                is kept so results can be requested again
        """
        session = self._load(session_id)
        complete(session)
        results = compute_results(session)
        score = results.rounded_percentage

        try:
            quiz_id = self.question_bank.find_quiz_id(session.year, session.subject, session.topic)
            if quiz_id is None:
                raise PersistenceError(
                    f"Quiz {session.year}-{session.subject}-{session.topic} not found for attempt logging"
                )
            attempt = self.progress_repository.record_attempt(
                AttemptRecord(
                    user_id=session.user_id,
                    quiz_id=quiz_id,
                    # Numbered by the repository inside the write
                    attempt_number=0,
                    score=score,
                    time_taken=session.time_spent,
                    questions_answered=session.questions_answered,
                    total_questions=session.total_questions,
                    ability_estimate=session.ability_estimate,
                    passed=results.quiz_passed,
                    created_at=datetime.now(),
                )
            )
        except PersistenceError as e:
            logger.error(f"Results of {session_id} not saved, keeping session: {e}")
            self.session_store.save(session)
            raise

        self.session_store.delete(session_id)
        logger.info(
            f"Session {session_id} finished: {score}% "
            f"({'passed' if results.quiz_passed else 'not passed'})"
        )

        data = results.to_dict()
        data["score"] = score
        data["quiz_id"] = quiz_id
        data["attempt_number"] = attempt.attempt_number
        return data

    # ========================================
    # Progress and maintenance
    # ========================================

    def get_quiz_progress(self, user_id: int, year: int, subject: str, topic: str) -> dict[str, Any]:
        """
        Aggregate progress on a quiz, matching the topic exactly first and
        flexibly second. All zeros if there is no matching quiz or no attempt.
        """
        empty = {"passed": False, "last_score": 0, "best_score": 0, "total_attempts": 0, "last_activity": None}

        quiz_id = self.question_bank.find_quiz_id(year, subject, topic)
        if quiz_id is None:
            for candidate_id, candidate_topic in self.question_bank.list_quizzes(year, subject):
                if is_topic_match(candidate_topic, topic):
                    logger.debug(f"Topic '{topic}' matched quiz {candidate_id} ('{candidate_topic}')")
                    quiz_id = candidate_id
                    break
        if quiz_id is None:
            return empty

        progress = self.progress_repository.get_progress(user_id, quiz_id)
        if progress is None:
            return empty
        return {
            "passed": progress.passed,
            "last_score": progress.last_score,
            "best_score": progress.best_score,
            "total_attempts": progress.total_attempts,
            "last_activity": progress.last_activity,
        }

    def weakness_report(self, user_id: int, year: int, subject: str) -> list[WeaknessRecord]:
        """All weakness records for a learner, weakest first."""
        records = self._weakness_repository.list_for_user(user_id, year, subject)
        return sorted(records, key=lambda r: r.weakness_score, reverse=True)

    def cleanup_sessions(self) -> int:
        """Remove stale sessions from the store."""
        return self.session_store.cleanup(self.retention_days, self.abandoned_ttl_days)

    # ========================================
    # Internals
    # ========================================

    def _load(self, session_id: str) -> QuizSession:
        session = self.session_store.load(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    def _initial_weak_topics(self, user_id: int, year: int, subject: str, history) -> list[str]:
        if self.weakness_mode == "historical":
            return weak_topics_from_history(history, subject, year)
        try:
            return self.weakness_tracker.weak_topics(user_id, year, subject)
        except PersistenceError as e:
            logger.warning(f"Could not load weak topics for user {user_id}: {e}")
            return []

    def _track_weakness(self, session: QuizSession, question, is_correct: bool, is_repeated: bool) -> None:
        year = question.year if question.year is not None else session.year
        subject = question.subject or session.subject
        try:
            record = self.weakness_tracker.update(
                session.user_id, year, subject, question.topic, is_correct, is_repeated
            )
        except PersistenceError as e:
            logger.warning(f"Weakness update failed for session {session.session_id}: {e}")
            return

        if record.weakness_score < WEAK_THRESHOLD:
            session.weak_topics = [
                key for key in session.weak_topics if not key_matches_topic(key, question.topic)
            ]


def create_quiz_engine(
    settings: Settings | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> AdaptiveQuizEngine:
    """Wire an engine against the SQL stores using application settings."""
    config = (settings or get_settings()).get_quiz_engine_config()
    return AdaptiveQuizEngine(
        question_bank=SqlQuestionBank(session_factory),
        progress_repository=SqlProgressRepository(session_factory),
        weakness_repository=SqlWeaknessRepository(session_factory),
        session_store=SqlSessionStore(session_factory),
        selector=QuestionSelector(random.Random(config["random_seed"])),
        weakness_mode=config["weakness_mode"],
        default_max_questions=config["default_max_questions"],
        retention_days=config["cleanup"]["retention_days"],
        abandoned_ttl_days=config["cleanup"]["abandoned_ttl_days"],
    )
