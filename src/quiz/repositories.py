"""
Repository interfaces consumed by the quiz engine.

The engine only depends on these protocols; SQLAlchemy implementations
live in src.db.repositories.
"""

from __future__ import annotations

from typing import Protocol

from src.quiz.models import (
    AttemptRecord,
    HistoricalProgress,
    ProgressRecord,
    Question,
    WeaknessRecord,
)


class QuestionBank(Protocol):
    """Read access to quizzes and their question pools."""

    def find_quiz_id(self, year: int, subject: str, topic: str) -> int | None: ...

    def list_quizzes(self, year: int, subject: str) -> list[tuple[int, str]]: ...

    def list_questions(self, year: int, subject: str, topic: str) -> list[Question]: ...


class ProgressRepository(Protocol):
    """Historical progress, attempt log and aggregate quiz progress."""

    def historical_progress(self, user_id: int) -> list[HistoricalProgress]: ...

    def record_attempt(self, attempt: AttemptRecord) -> AttemptRecord:
        """Store the attempt (numbered max + 1) and its aggregate progress atomically."""
        ...

    def get_progress(self, user_id: int, quiz_id: int) -> ProgressRecord | None: ...


class WeaknessRepository(Protocol):
    """Durable weakness records keyed by (user, year, subject, topic)."""

    def get(self, user_id: int, year: int, subject: str, topic: str) -> WeaknessRecord | None: ...

    def upsert(self, record: WeaknessRecord) -> None: ...

    def list_for_user(self, user_id: int, year: int, subject: str) -> list[WeaknessRecord]: ...
