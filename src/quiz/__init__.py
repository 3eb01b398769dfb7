"""
Adaptive quiz module.

This module provides:
- QuestionSelector: repetition / remediation / adaptive question selection
- WeaknessTracker: per-topic weakness scores across attempts
- Scoring, ability and hint policies as plain functions

The orchestrating AdaptiveQuizEngine lives in src.quiz.engine and is not
imported here, since it pulls in the SQL repositories.

Selection Phases:
- repetition: past 70% of the budget, re-serve missed questions
- remediation: before 30% of the budget, prefer weak topics
- adaptive: questions in the ability's difficulty band
"""

from .ability import initial_ability, update_ability
from .errors import (
    NotFoundError,
    PersistenceError,
    QuizEngineError,
    StateConflictError,
    ValidationError,
)
from .models import Difficulty, Question, QuestionOption, QuizSession
from .scoring import is_answer_correct, score_answer
from .selector import QuestionSelector
from .weakness import WeaknessTracker

__all__ = [
    "Difficulty",
    "NotFoundError",
    "PersistenceError",
    "Question",
    "QuestionOption",
    "QuestionSelector",
    "QuizEngineError",
    "QuizSession",
    "StateConflictError",
    "ValidationError",
    "WeaknessTracker",
    "initial_ability",
    "is_answer_correct",
    "score_answer",
    "update_ability",
]
