"""
Learner progress models.

- UserTopicProgress: merged per-topic progress (lesson + quiz) used to seed ability
- StudentWeakTopic: per-topic weakness score, updated after each answer
- QuizAttempt: one row per finished attempt
- StudentQuizProgress: aggregate per (user, quiz); once passed, stays passed
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class UserTopicProgress(Base):
    __tablename__ = "user_topic_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    subject: Mapped[str] = mapped_column(String(120), nullable=False)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    topic_progress: Mapped[float] = mapped_column(Float, default=0.0)  # 0-100
    quiz_score: Mapped[float] = mapped_column(Float, default=0.0)
    quiz_passed: Mapped[bool] = mapped_column(Boolean, default=False)
    materials_viewed: Mapped[int] = mapped_column(Integer, default=0)
    total_materials: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("user_id", "year", "subject", "topic", name="uq_user_topic_progress"),
    )


class StudentWeakTopic(Base):
    """Weakness score per learner and topic (0 = strong, 1 = weak)."""

    __tablename__ = "student_weak_topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    subject: Mapped[str] = mapped_column(String(120), nullable=False)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    weakness_score: Mapped[float] = mapped_column(Float, default=0.5)
    improvement_trend: Mapped[str] = mapped_column(String(16), default="stable")
    remediation_attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_updated: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "year", "subject", "topic", name="uq_student_weak_topic"),
        Index("idx_weak_topics_lookup", "user_id", "year", "subject"),
    )

    def __repr__(self) -> str:
        return f"<StudentWeakTopic user={self.user_id} topic={self.topic} score={self.weakness_score}>"


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    quiz_id: Mapped[int] = mapped_column(ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, default=0)
    time_taken: Mapped[float] = mapped_column(Float, default=0.0)
    questions_answered: Mapped[int] = mapped_column(Integer, default=0)
    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    ability_estimate: Mapped[float] = mapped_column(Float, default=0.5)
    passed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "quiz_id", "attempt_number", name="uq_quiz_attempt_number"),
    )


class StudentQuizProgress(Base):
    __tablename__ = "student_quiz_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    quiz_id: Mapped[int] = mapped_column(ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, default=False)
    last_score: Mapped[int] = mapped_column(Integer, default=0)
    best_score: Mapped[int] = mapped_column(Integer, default=0)
    total_attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_activity: Mapped[datetime | None] = mapped_column()

    __table_args__ = (UniqueConstraint("user_id", "quiz_id", name="uq_student_quiz_progress"),)
