"""
SQLAlchemy implementations of the quiz engine repositories.

Each repository owns a session factory and opens one transactional scope
per call. ORM rows never leave this module; callers receive the engine's
dataclasses. SQLAlchemy errors are re-raised as PersistenceError.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.db.database import SessionLocal, session_scope
from src.db.models import (
    Quiz,
    QuizAttempt,
    QuizQuestion,
    StudentQuizProgress,
    StudentWeakTopic,
    UserTopicProgress,
)
from src.quiz.errors import PersistenceError
from src.quiz.models import (
    AttemptRecord,
    Difficulty,
    HistoricalProgress,
    ImprovementTrend,
    ProgressRecord,
    Question,
    QuestionOption,
    WeaknessRecord,
)


class _SqlRepository:
    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory or SessionLocal

    def _run(self, action: str, fn):
        try:
            with session_scope(self._session_factory) as session:
                return fn(session)
        except SQLAlchemyError as e:
            logger.error(f"Database error while trying to {action}: {e}")
            raise PersistenceError(f"Failed to {action}") from e


# ========================================
# Question bank
# ========================================


def _row_to_question(row: QuizQuestion, quiz: Quiz) -> Question:
    return Question(
        id=row.id,
        text=row.question,
        options=tuple(
            QuestionOption(id=str(o.get("id")), text=str(o.get("text", ""))) for o in row.options or []
        ),
        correct_answer_ids=tuple(str(a) for a in row.correct_answers or []),
        topic=row.topic,
        difficulty=Difficulty.parse(row.difficulty),
        hints=tuple(row.hints or ()),
        year=quiz.year,
        subject=quiz.subject,
    )


class SqlQuestionBank(_SqlRepository):
    """Quizzes and their question pools."""

    def find_quiz_id(self, year: int, subject: str, topic: str) -> int | None:
        def query(session: Session) -> int | None:
            return session.scalar(
                select(Quiz.id).where(Quiz.year == year, Quiz.subject == subject, Quiz.topic == topic)
            )

        return self._run("look up quiz", query)

    def list_quizzes(self, year: int, subject: str) -> list[tuple[int, str]]:
        def query(session: Session) -> list[tuple[int, str]]:
            rows = session.execute(
                select(Quiz.id, Quiz.topic)
                .where(Quiz.year == year, Quiz.subject == subject)
                .order_by(Quiz.id)
            )
            return [(row.id, row.topic) for row in rows]

        return self._run("list quizzes", query)

    def list_questions(self, year: int, subject: str, topic: str) -> list[Question]:
        def query(session: Session) -> list[Question]:
            quiz = session.scalar(
                select(Quiz).where(Quiz.year == year, Quiz.subject == subject, Quiz.topic == topic)
            )
            if quiz is None:
                return []
            return [_row_to_question(row, quiz) for row in quiz.questions]

        return self._run("load questions", query)

    def import_questions(
        self,
        year: int,
        subject: str,
        topic: str,
        questions: Iterable[dict[str, Any]],
        title: str | None = None,
        replace: bool = False,
    ) -> int:
        """
        Create (or extend) the quiz for a topic and insert questions.

        Args:
            year: Quiz year
            subject: Quiz subject
            topic: Quiz topic
            questions: Dicts with text, options, correct_answer_ids and
                optional topic, difficulty and hints
            title: Optional quiz title
            replace: Drop the quiz's existing questions first

        Returns:
            Number of questions inserted
        """

        def write(session: Session) -> int:
            quiz = session.scalar(
                select(Quiz).where(Quiz.year == year, Quiz.subject == subject, Quiz.topic == topic)
            )
            if quiz is None:
                quiz = Quiz(year=year, subject=subject, topic=topic, title=title)
                session.add(quiz)
            elif replace:
                quiz.questions.clear()

            count = 0
            for item in questions:
                quiz.questions.append(
                    QuizQuestion(
                        question=item["text"],
                        options=[dict(o) for o in item["options"]],
                        correct_answers=list(item["correct_answer_ids"]),
                        hints=list(item.get("hints") or []),
                        topic=item.get("topic") or topic,
                        difficulty=Difficulty.parse(item.get("difficulty")).value,
                    )
                )
                count += 1
            return count

        inserted = self._run("import questions", write)
        logger.info(f"Imported {inserted} questions into {year}-{subject}-{topic}")
        return inserted


# ========================================
# Progress and attempts
# ========================================


def _insert_attempt(session: Session, attempt: AttemptRecord) -> None:
    session.add(
        QuizAttempt(
            user_id=attempt.user_id,
            quiz_id=attempt.quiz_id,
            attempt_number=attempt.attempt_number,
            score=attempt.score,
            time_taken=attempt.time_taken,
            questions_answered=attempt.questions_answered,
            total_questions=attempt.total_questions,
            ability_estimate=attempt.ability_estimate,
            passed=attempt.passed,
            created_at=attempt.created_at,
        )
    )
    session.flush()


def _merge_progress(session: Session, attempt: AttemptRecord) -> None:
    row = session.scalar(
        select(StudentQuizProgress).where(
            StudentQuizProgress.user_id == attempt.user_id,
            StudentQuizProgress.quiz_id == attempt.quiz_id,
        )
    )
    existing = None
    if row is None:
        row = StudentQuizProgress(user_id=attempt.user_id, quiz_id=attempt.quiz_id)
        session.add(row)
    else:
        existing = _row_to_progress(row)

    progress = ProgressRecord.merged(existing, attempt)
    row.passed = progress.passed
    row.last_score = progress.last_score
    row.best_score = progress.best_score
    row.total_attempts = progress.total_attempts
    row.last_activity = progress.last_activity


def _row_to_progress(row: StudentQuizProgress) -> ProgressRecord:
    return ProgressRecord(
        user_id=row.user_id,
        quiz_id=row.quiz_id,
        passed=row.passed,
        last_score=row.last_score,
        best_score=row.best_score,
        total_attempts=row.total_attempts,
        last_activity=row.last_activity,
    )


class SqlProgressRepository(_SqlRepository):
    """Historical topic progress, the attempt log and aggregate quiz progress."""

    def historical_progress(self, user_id: int) -> list[HistoricalProgress]:
        def query(session: Session) -> list[HistoricalProgress]:
            rows = session.scalars(
                select(UserTopicProgress).where(UserTopicProgress.user_id == user_id)
            )
            return [
                HistoricalProgress(
                    year=row.year,
                    subject=row.subject,
                    topic=row.topic,
                    topic_progress=row.topic_progress or 0.0,
                    quiz_score=row.quiz_score or 0.0,
                    quiz_passed=bool(row.quiz_passed),
                    materials_viewed=row.materials_viewed or 0,
                    total_materials=row.total_materials or 0,
                )
                for row in rows
            ]

        return self._run("load historical progress", query)

    def save_topic_progress(self, user_id: int, progress: HistoricalProgress) -> None:
        """Insert or update a learner's progress row for one topic."""

        def write(session: Session) -> None:
            row = session.scalar(
                select(UserTopicProgress).where(
                    UserTopicProgress.user_id == user_id,
                    UserTopicProgress.year == progress.year,
                    UserTopicProgress.subject == progress.subject,
                    UserTopicProgress.topic == progress.topic,
                )
            )
            if row is None:
                row = UserTopicProgress(
                    user_id=user_id,
                    year=progress.year,
                    subject=progress.subject,
                    topic=progress.topic,
                )
                session.add(row)
            row.topic_progress = progress.topic_progress
            row.quiz_score = progress.quiz_score
            row.quiz_passed = progress.quiz_passed
            row.materials_viewed = progress.materials_viewed
            row.total_materials = progress.total_materials

        self._run("save topic progress", write)

    def record_attempt(self, attempt: AttemptRecord) -> AttemptRecord:
        """
        Append an attempt and fold it into the aggregate progress.

        Both writes share one transaction, so a failure leaves neither
        behind. The attempt number is assigned here (max + 1) and the
        stored record is returned.
        """

        def write(session: Session) -> AttemptRecord:
            current = session.scalar(
                select(func.max(QuizAttempt.attempt_number)).where(
                    QuizAttempt.user_id == attempt.user_id, QuizAttempt.quiz_id == attempt.quiz_id
                )
            )
            stored = replace(
                attempt,
                attempt_number=(current or 0) + 1,
                created_at=attempt.created_at or datetime.now(),
            )
            _insert_attempt(session, stored)
            _merge_progress(session, stored)
            return stored

        return self._run("record quiz attempt", write)

    def list_attempts(self, user_id: int, quiz_id: int) -> list[AttemptRecord]:
        def query(session: Session) -> list[AttemptRecord]:
            rows = session.scalars(
                select(QuizAttempt)
                .where(QuizAttempt.user_id == user_id, QuizAttempt.quiz_id == quiz_id)
                .order_by(QuizAttempt.attempt_number)
            )
            return [
                AttemptRecord(
                    user_id=row.user_id,
                    quiz_id=row.quiz_id,
                    attempt_number=row.attempt_number,
                    score=row.score,
                    time_taken=row.time_taken,
                    questions_answered=row.questions_answered,
                    total_questions=row.total_questions,
                    ability_estimate=row.ability_estimate,
                    passed=row.passed,
                    created_at=row.created_at,
                )
                for row in rows
            ]

        return self._run("list quiz attempts", query)

    def get_progress(self, user_id: int, quiz_id: int) -> ProgressRecord | None:
        def query(session: Session) -> ProgressRecord | None:
            row = session.scalar(
                select(StudentQuizProgress).where(
                    StudentQuizProgress.user_id == user_id, StudentQuizProgress.quiz_id == quiz_id
                )
            )
            return _row_to_progress(row) if row else None

        return self._run("load quiz progress", query)


# ========================================
# Weakness
# ========================================


def _row_to_weakness(row: StudentWeakTopic) -> WeaknessRecord:
    try:
        trend = ImprovementTrend(row.improvement_trend)
    except ValueError:
        trend = ImprovementTrend.STABLE
    return WeaknessRecord(
        user_id=row.user_id,
        year=row.year,
        subject=row.subject,
        topic=row.topic,
        weakness_score=row.weakness_score,
        improvement_trend=trend,
        remediation_attempts=row.remediation_attempts,
        last_updated=row.last_updated,
    )


class SqlWeaknessRepository(_SqlRepository):
    """Weakness rows keyed by (user, year, subject, topic)."""

    def get(self, user_id: int, year: int, subject: str, topic: str) -> WeaknessRecord | None:
        def query(session: Session) -> WeaknessRecord | None:
            row = session.scalar(
                select(StudentWeakTopic).where(
                    StudentWeakTopic.user_id == user_id,
                    StudentWeakTopic.year == year,
                    StudentWeakTopic.subject == subject,
                    StudentWeakTopic.topic == topic,
                )
            )
            return _row_to_weakness(row) if row else None

        return self._run("load weakness record", query)

    def upsert(self, record: WeaknessRecord) -> None:
        def write(session: Session) -> None:
            row = session.scalar(
                select(StudentWeakTopic).where(
                    StudentWeakTopic.user_id == record.user_id,
                    StudentWeakTopic.year == record.year,
                    StudentWeakTopic.subject == record.subject,
                    StudentWeakTopic.topic == record.topic,
                )
            )
            if row is None:
                row = StudentWeakTopic(
                    user_id=record.user_id,
                    year=record.year,
                    subject=record.subject,
                    topic=record.topic,
                )
                session.add(row)
            row.weakness_score = record.weakness_score
            row.improvement_trend = record.improvement_trend.value
            row.remediation_attempts = record.remediation_attempts
            row.last_updated = record.last_updated or datetime.now()

        self._run("save weakness record", write)

    def list_for_user(self, user_id: int, year: int, subject: str) -> list[WeaknessRecord]:
        def query(session: Session) -> list[WeaknessRecord]:
            rows = session.scalars(
                select(StudentWeakTopic).where(
                    StudentWeakTopic.user_id == user_id,
                    StudentWeakTopic.year == year,
                    StudentWeakTopic.subject == subject,
                )
            )
            return [_row_to_weakness(row) for row in rows]

        return self._run("list weakness records", query)
