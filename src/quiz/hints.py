"""
Hint policy.

Hints unlock after a number of wrong attempts on the current question
that depends on ability (lower ability unlocks sooner), are revealed in
order, and cost 2 points each from the session total (floored at 0).
"""

from __future__ import annotations

from loguru import logger

from src.quiz.errors import StateConflictError
from src.quiz.models import HintResult, QuestionAttempt, QuizSession
from src.quiz.scoring import HINT_PENALTY_POINTS


def hint_threshold(ability: float) -> int:
    """Wrong attempts required before hints unlock."""
    if ability < 0.3:
        return 2
    if ability < 0.6:
        return 3
    return 4


def request_hint(session: QuizSession) -> HintResult:
    """
    Reveal the next hint for the current question.

    Raises:
        StateConflictError: No current question, no hints, threshold not
            reached, or all hints already revealed.
    """
    if session.is_completed:
        raise StateConflictError("Session is already completed")

    question = session.current_question
    if question is None or not question.hints:
        raise StateConflictError("No hints available for this question")

    attempt = session.attempt_for(question.id)
    required = hint_threshold(session.ability_estimate)
    if attempt.wrong_attempts < required:
        raise StateConflictError(
            f"Hint not available yet. Required wrong attempts: {required}, "
            f"current: {attempt.wrong_attempts}"
        )

    if session.current_hints_used >= len(question.hints):
        raise StateConflictError("All hints used for this question")

    hint = question.hints[session.current_hints_used]

    session.total_score = max(0.0, session.total_score - HINT_PENALTY_POINTS)
    session.hints_used += 1
    session.current_hints_used += 1
    session.question_attempts[question.id] = QuestionAttempt(
        attempts=attempt.attempts,
        correct=attempt.correct,
        hints_used=attempt.hints_used + 1,
    )

    logger.info(
        f"Session {session.session_id}: revealed hint {session.current_hints_used} "
        f"of {len(question.hints)} for question {question.id}"
    )

    return HintResult(
        hint=hint,
        hint_index=session.current_hints_used - 1,
        penalty=HINT_PENALTY_POINTS,
        total_score=session.total_score,
        hints_remaining=len(question.hints) - session.current_hints_used,
    )
