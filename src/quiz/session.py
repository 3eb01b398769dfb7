"""
Quiz session state machine.

States:
    ACTIVE    -> accepting next-question, submit-answer and hint requests
    COMPLETED -> budget exhausted or no questions left; only results remain

Transitions mutate the QuizSession aggregate in place. Validation runs
before any mutation, so a rejected submission leaves the session untouched.
Weakness tracking and persistence are handled by the engine, not here.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from typing import Any

from loguru import logger

from src.quiz.ability import update_ability
from src.quiz.errors import NotFoundError, StateConflictError, ValidationError
from src.quiz.feedback import generate_feedback
from src.quiz.models import (
    Answer,
    Question,
    QuestionAttempt,
    QuestionScore,
    QuizSession,
    ScoreBreakdown,
    Selection,
    SelectionPhase,
)
from src.quiz.scoring import is_answer_correct, score_answer
from src.quiz.topics import is_topic_match

MAX_TIME_SPENT_SECONDS = 300
PASSING_PERCENTAGE = 75.0


@dataclass
class AnswerOutcome:
    """Result of applying one submission to a session."""

    question: Question
    is_correct: bool
    is_repeated: bool
    score: ScoreBreakdown
    feedback: str
    ability_estimate: float
    questions_answered: int
    total_questions: int
    is_completed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_correct": self.is_correct,
            **self.score.to_dict(),
            "feedback": self.feedback,
            "ability_estimate": self.ability_estimate,
            "session_progress": {
                "current": self.questions_answered,
                "total": self.total_questions,
                "ability_estimate": self.ability_estimate,
            },
            "is_completed": self.is_completed,
        }


@dataclass
class QuizResults:
    """Final figures for a finished (or abandoned) attempt."""

    session_id: str
    user_id: int
    total_questions: int
    questions_answered: int
    current_topic_score: int
    current_topic_questions: int
    current_topic_percentage: float
    quiz_passed: bool
    remedial_score: int
    remedial_questions_answered: int
    remedial_percentage: float
    total_score: float
    time_spent: float
    ability_estimate: float
    weak_topics: list[str] = field(default_factory=list)
    question_scores: list[QuestionScore] = field(default_factory=list)

    @property
    def rounded_percentage(self) -> int:
        return round(self.current_topic_percentage)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "total_questions": self.total_questions,
            "questions_answered": self.questions_answered,
            "current_topic_score": self.current_topic_score,
            "current_topic_questions": self.current_topic_questions,
            "current_topic_percentage": self.current_topic_percentage,
            "quiz_passed": self.quiz_passed,
            "remedial_score": self.remedial_score,
            "remedial_questions_answered": self.remedial_questions_answered,
            "remedial_percentage": self.remedial_percentage,
            "total_score": self.total_score,
            "time_spent": self.time_spent,
            "ability_estimate": self.ability_estimate,
            "weak_topics": list(self.weak_topics),
            "question_scores": [asdict(s) for s in self.question_scores],
        }


def new_session_id(user_id: int) -> str:
    return f"quiz_{user_id}_{uuid.uuid4().hex[:12]}"


def create_session(
    user_id: int,
    year: int,
    subject: str,
    topic: str,
    questions: list[Question],
    max_questions: int,
    ability: float,
    weak_topics: list[str] | None = None,
    session_id: str | None = None,
) -> QuizSession:
    """
    Create a new ACTIVE session over a fixed question pool.

    The question budget is capped at the pool size.
    """
    if not questions:
        raise NotFoundError("No questions available for this quiz")
    if max_questions < 1:
        raise ValidationError("max_questions must be at least 1")

    return QuizSession(
        session_id=session_id or new_session_id(user_id),
        user_id=user_id,
        year=year,
        subject=subject,
        topic=topic,
        total_questions=min(len(questions), max_questions),
        available_questions=list(questions),
        ability_estimate=ability,
        weak_topics=list(weak_topics or []),
    )


def present_question(session: QuizSession, selection: Selection) -> Question:
    """
    Make a selected question current.

    The per-question hint counter resets when a different question
    becomes current. Questions picked for remediation from outside the
    session's own topic are flagged remedial.
    """
    question = selection.question
    if session.current_question_id != question.id:
        session.current_question_id = question.id
        session.current_hints_used = 0

    if (
        selection.phase == SelectionPhase.REMEDIATION
        and question.id not in session.remedial_questions
        and not is_topic_match(question.topic, session.topic)
    ):
        session.remedial_questions.append(question.id)

    return question


def complete(session: QuizSession) -> None:
    if not session.is_completed:
        session.is_completed = True
        logger.info(
            f"Session {session.session_id} completed "
            f"({session.questions_answered}/{session.total_questions} answered)"
        )


def validate_submission(answer: Any, time_spent: Any) -> None:
    """
    Check the shape of a submission.

    Raises:
        ValidationError: Answer is not a non-empty string or a non-empty list
            of non-empty strings, or time_spent is outside 0-300 seconds.
    """
    if isinstance(answer, str):
        valid_answer = len(answer) > 0
    elif isinstance(answer, list):
        valid_answer = len(answer) > 0 and all(isinstance(a, str) and a for a in answer)
    else:
        valid_answer = False
    if not valid_answer:
        raise ValidationError("Invalid answer format")

    if (
        isinstance(time_spent, bool)
        or not isinstance(time_spent, (int, float))
        or time_spent < 0
        or time_spent > MAX_TIME_SPENT_SECONDS
    ):
        raise ValidationError("Invalid time spent")


def apply_answer(
    session: QuizSession,
    question_id: int,
    answer: Answer,
    time_spent: float,
) -> AnswerOutcome:
    """
    Validate, score and record one submission.

    Raises:
        ValidationError: Malformed answer or time
        StateConflictError: Session completed, or question already answered correctly
        NotFoundError: Question is not in the session's pool
    """
    validate_submission(answer, time_spent)
    if session.is_completed:
        raise StateConflictError("Session is already completed")

    question = session.get_question(question_id)
    if question is None:
        raise NotFoundError(f"Question {question_id} not found in this session")

    is_repeated = question_id in session.answered_questions
    if is_repeated and question_id not in session.incorrect_questions:
        raise StateConflictError("Question already answered correctly")

    is_correct = is_answer_correct(question, answer)

    # Attempts and repetition pool
    previous = session.attempt_for(question_id)
    session.question_attempts[question_id] = QuestionAttempt(
        attempts=previous.attempts + 1,
        correct=is_correct,
        hints_used=previous.hints_used,
    )
    if is_correct:
        session.incorrect_questions = [q for q in session.incorrect_questions if q != question_id]
    elif question_id not in session.incorrect_questions:
        session.incorrect_questions.append(question_id)

    # Scoring
    hints_for_question = session.current_hints_used if session.current_question_id == question_id else 0
    breakdown = score_answer(question, is_correct, time_spent, hints_for_question, answer)

    # The hint penalty was already charged to total_score when each hint was revealed
    session.total_score += breakdown.total_points + breakdown.hint_penalty
    session.time_spent += time_spent
    session.questions_answered += 1
    if not is_repeated:
        session.answered_questions.append(question_id)

    remedial = session.is_remedial(question_id)
    if remedial:
        session.remedial_questions_answered += 1
        if is_correct:
            session.remedial_score += 1
    else:
        session.current_topic_questions += 1
        if is_correct:
            session.current_topic_score += 1

    session.question_scores.append(
        QuestionScore(
            question_id=question.id,
            question=question.text,
            difficulty=question.difficulty.value,
            is_correct=is_correct,
            points=breakdown.total_points,
            time_spent=time_spent,
            attempts=session.question_attempts[question_id].attempts,
            hints_used=hints_for_question,
            base_score=breakdown.base_score,
            time_bonus=breakdown.time_bonus,
            partial_credit=breakdown.partial_credit,
            hint_penalty=breakdown.hint_penalty,
            answered_within_time=breakdown.answered_within_time,
            is_remedial=remedial,
        )
    )

    session.ability_estimate = update_ability(session.ability_estimate, question.difficulty, is_correct)
    session.consecutive_wrong_answers = 0 if is_correct else session.consecutive_wrong_answers + 1

    feedback = generate_feedback(
        is_correct,
        question.difficulty,
        breakdown.answered_within_time,
        session.consecutive_wrong_answers,
    )

    if session.budget_exhausted:
        complete(session)

    return AnswerOutcome(
        question=question,
        is_correct=is_correct,
        is_repeated=is_repeated,
        score=breakdown,
        feedback=feedback,
        ability_estimate=session.ability_estimate,
        questions_answered=session.questions_answered,
        total_questions=session.total_questions,
        is_completed=session.is_completed,
    )


def _percentage(score: int, questions: int) -> float:
    return (score / questions) * 100 if questions > 0 else 0.0


def compute_results(session: QuizSession) -> QuizResults:
    """Official percentage excludes remedial questions; pass mark is 75%."""
    percentage = _percentage(session.current_topic_score, session.current_topic_questions)
    return QuizResults(
        session_id=session.session_id,
        user_id=session.user_id,
        total_questions=session.total_questions,
        questions_answered=session.questions_answered,
        current_topic_score=session.current_topic_score,
        current_topic_questions=session.current_topic_questions,
        current_topic_percentage=percentage,
        quiz_passed=percentage >= PASSING_PERCENTAGE,
        remedial_score=session.remedial_score,
        remedial_questions_answered=session.remedial_questions_answered,
        remedial_percentage=_percentage(session.remedial_score, session.remedial_questions_answered),
        total_score=session.total_score,
        time_spent=session.time_spent,
        ability_estimate=session.ability_estimate,
        weak_topics=list(session.weak_topics),
        question_scores=list(session.question_scores),
    )


def question_projection(session: QuizSession, question: Question) -> dict[str, Any]:
    """Client-facing view of a question; correct answers are never included."""
    return {
        "id": question.id,
        "text": question.text,
        "options": [{"id": o.id, "text": o.text} for o in question.options],
        "hint_count": len(question.hints),
        "topic": question.topic,
        "difficulty": question.difficulty.value,
        "is_multi_answer": question.is_multi_answer,
        "is_remedial": session.is_remedial(question.id),
        "progress": {
            "current": session.questions_answered + 1,
            "total": session.total_questions,
            "ability_estimate": session.ability_estimate,
        },
    }
