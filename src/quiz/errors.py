"""
Quiz engine exception hierarchy.

- ValidationError: malformed input, rejected before any state changes
- NotFoundError: unknown session, question or question pool
- StateConflictError: operation not allowed in the session's current state
- PersistenceError: a durable store read/write failed
"""

from __future__ import annotations


class QuizEngineError(Exception):
    """Base class for all quiz engine errors."""


class ValidationError(QuizEngineError):
    pass


class NotFoundError(QuizEngineError):
    pass


class StateConflictError(QuizEngineError):
    pass


class PersistenceError(QuizEngineError):
    pass
