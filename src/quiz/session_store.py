"""
Session state persistence for adaptive quiz sessions.

Every engine operation loads the session, mutates it in-process and
saves it back, so a session survives process restarts. Sessions are
stored as JSON payloads in the quiz_sessions table.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.db.database import SessionLocal, session_scope
from src.db.models import QuizSessionRecord
from src.quiz.errors import PersistenceError
from src.quiz.models import QuizSession

DEFAULT_RETENTION_DAYS = 7


class SessionStore(Protocol):
    """Keyed storage for running quiz sessions."""

    def save(self, session: QuizSession) -> None: ...

    def load(self, session_id: str) -> QuizSession | None: ...

    def delete(self, session_id: str) -> bool: ...

    def cleanup(
        self,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        abandoned_ttl_days: int | None = None,
    ) -> int: ...


class SqlSessionStore:
    """
    Manages session persistence in the database.

    One row per session id; the whole aggregate is the JSON payload.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory or SessionLocal

    def save(self, session: QuizSession) -> None:
        """Insert or replace the stored session."""
        payload = session.to_dict()
        try:
            with session_scope(self._session_factory) as db:
                record = db.get(QuizSessionRecord, session.session_id)
                if record is None:
                    record = QuizSessionRecord(
                        session_id=session.session_id,
                        user_id=session.user_id,
                        created_at=session.start_time,
                        payload=payload,
                    )
                    db.add(record)
                record.payload = payload
                record.is_completed = session.is_completed
                record.updated_at = datetime.now()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save session {session.session_id}: {e}")
            raise PersistenceError(f"Failed to save session {session.session_id}") from e

    def load(self, session_id: str) -> QuizSession | None:
        """Load a specific session by ID."""
        try:
            with session_scope(self._session_factory) as db:
                record = db.get(QuizSessionRecord, session_id)
                payload = dict(record.payload) if record else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load session {session_id}: {e}")
            raise PersistenceError(f"Failed to load session {session_id}") from e

        if payload is None:
            return None
        try:
            return QuizSession.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Corrupted session payload for {session_id}: {e}")
            return None

    def delete(self, session_id: str) -> bool:
        """Delete a stored session; False if it did not exist."""
        try:
            with session_scope(self._session_factory) as db:
                result = db.execute(
                    delete(QuizSessionRecord).where(QuizSessionRecord.session_id == session_id)
                )
                return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete session {session_id}: {e}")
            raise PersistenceError(f"Failed to delete session {session_id}") from e

    def list_sessions(self, user_id: int | None = None, include_completed: bool = False) -> list[str]:
        """Session ids, newest first."""
        stmt = select(QuizSessionRecord.session_id).order_by(QuizSessionRecord.created_at.desc())
        if user_id is not None:
            stmt = stmt.where(QuizSessionRecord.user_id == user_id)
        if not include_completed:
            stmt = stmt.where(QuizSessionRecord.is_completed.is_(False))
        try:
            with session_scope(self._session_factory) as db:
                return list(db.scalars(stmt))
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to list sessions") from e

    def cleanup(
        self,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        abandoned_ttl_days: int | None = None,
    ) -> int:
        """
        Remove completed sessions older than the retention window.

        Args:
            retention_days: Age after which completed sessions are removed
            abandoned_ttl_days: If set, incomplete sessions older than this
                are removed as well

        Returns:
            Number of sessions removed
        """
        now = datetime.now()
        removed = 0
        try:
            with session_scope(self._session_factory) as db:
                result = db.execute(
                    delete(QuizSessionRecord).where(
                        QuizSessionRecord.is_completed.is_(True),
                        QuizSessionRecord.created_at < now - timedelta(days=retention_days),
                    )
                )
                removed += result.rowcount
                if abandoned_ttl_days is not None:
                    result = db.execute(
                        delete(QuizSessionRecord).where(
                            QuizSessionRecord.is_completed.is_(False),
                            QuizSessionRecord.created_at < now - timedelta(days=abandoned_ttl_days),
                        )
                    )
                    removed += result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Session cleanup failed: {e}")
            raise PersistenceError("Session cleanup failed") from e

        if removed:
            logger.info(f"Cleaned up {removed} quiz sessions")
        return removed
