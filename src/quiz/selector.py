"""
Question selection for adaptive quiz sessions.

Phases are checked in a fixed order on every call, against the current
questions_answered count:

1. Repetition  - past 70% of the budget, re-serve a previously missed question
2. Remediation - before 30% of the budget, prefer questions from weak topics
3. Adaptive    - any unanswered question, preferring the ability band

The difficulty band is target +/- 0.3 where target comes from the
ability estimate (easy 0.3, medium 0.5, hard 0.7).
"""

from __future__ import annotations

import random

from loguru import logger

from src.quiz.ability import difficulty_score, target_difficulty
from src.quiz.models import Question, QuizSession, Selection, SelectionPhase
from src.quiz.topics import matches_any_key

REPETITION_START = 0.7
REMEDIATION_END = 0.3
BAND_WIDTH = 0.3
# Float tolerance so 0.5 +/- 0.3 still includes 0.3 and 0.7
_BAND_EPSILON = 1e-9


class QuestionSelector:
    """
    Choose the next question for a session.

    The random source is injected so selections are reproducible in tests.
    """

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    def select_next(self, session: QuizSession) -> Selection | None:
        """
        Pick the next question, or None when the budget is exhausted
        or no unanswered questions remain.
        """
        if session.budget_exhausted:
            return None

        selection = (
            self._select_repetition(session)
            or self._select_remediation(session)
            or self._select_adaptive(session)
        )
        if selection:
            logger.debug(
                f"Session {session.session_id}: selected question {selection.question.id} "
                f"({selection.phase.value}, ability={session.ability_estimate:.3f})"
            )
        return selection

    @staticmethod
    def in_band(question: Question, ability: float) -> bool:
        target = target_difficulty(ability)
        return abs(difficulty_score(question.difficulty) - target) <= BAND_WIDTH + _BAND_EPSILON

    def _select_repetition(self, session: QuizSession) -> Selection | None:
        if session.questions_answered < REPETITION_START * session.total_questions:
            return None

        candidates = [
            q
            for q in (session.get_question(qid) for qid in session.incorrect_questions)
            if q is not None
        ]
        if not candidates:
            return None
        return Selection(self._rng.choice(candidates), SelectionPhase.REPETITION)

    def _select_remediation(self, session: QuizSession) -> Selection | None:
        if not session.weak_topics:
            return None
        if session.questions_answered >= REMEDIATION_END * session.total_questions:
            return None

        candidates = [
            q
            for q in session.unanswered_questions
            if matches_any_key(session.weak_topics, q.topic)
            and self.in_band(q, session.ability_estimate)
        ]
        if not candidates:
            return None
        return Selection(self._rng.choice(candidates), SelectionPhase.REMEDIATION)

    def _select_adaptive(self, session: QuizSession) -> Selection | None:
        remaining = session.unanswered_questions
        if not remaining:
            return None

        band = [q for q in remaining if self.in_band(q, session.ability_estimate)]
        return Selection(self._rng.choice(band or remaining), SelectionPhase.ADAPTIVE)
