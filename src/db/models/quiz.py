"""
Quiz models for question pools and running sessions.

Implements:
- Quiz: one quiz per (year, subject, topic)
- QuizQuestion: pool item with JSON options, correct answer ids and hints
- QuizSessionRecord: a running quiz session serialized as a JSON payload

QuizQuestion.options structure:
    [
        {"id": "a", "text": "Option A"},
        {"id": "b", "text": "Option B"}
    ]

QuizQuestion.correct_answers: ["a"] for single choice, ["a", "c"] for multi choice.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Quiz(Base):
    """A quiz definition for a single topic."""

    __tablename__ = "quizzes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    subject: Mapped[str] = mapped_column(String(120), nullable=False)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    questions: Mapped[list[QuizQuestion]] = relationship(
        back_populates="quiz", cascade="all, delete-orphan", order_by="QuizQuestion.id"
    )

    __table_args__ = (UniqueConstraint("year", "subject", "topic", name="uq_quiz_topic"),)

    def __repr__(self) -> str:
        return f"<Quiz id={self.id} {self.year}-{self.subject}-{self.topic}>"


class QuizQuestion(Base):
    """A single question in a quiz's pool."""

    __tablename__ = "quiz_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    correct_answers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    hints: Mapped[list | None] = mapped_column(JSON)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), default="medium")
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    quiz: Mapped[Quiz] = relationship(back_populates="questions")

    def __repr__(self) -> str:
        return f"<QuizQuestion id={self.id} difficulty={self.difficulty}>"


class QuizSessionRecord(Base):
    """
    Durable storage for a running quiz session.

    The aggregate is stored whole as JSON; a few columns are lifted out
    for lookups and the cleanup sweep.
    """

    __tablename__ = "quiz_sessions"

    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    __table_args__ = (Index("idx_quiz_sessions_cleanup", "is_completed", "created_at"),)

    def __repr__(self) -> str:
        return f"<QuizSessionRecord {self.session_id} completed={self.is_completed}>"
