"""
Weakness tracking per (user, year, subject, topic).

Weakness is a soft signal in [0, 1] (default 0.5). Correct answers lower
it, incorrect answers raise it; repeated questions move it at 40% of the
normal rate. Topics scoring above 0.3 are treated as weak when a new
attempt starts.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from loguru import logger

from src.quiz.models import HistoricalProgress, ImprovementTrend, WeaknessRecord
from src.quiz.repositories import WeaknessRepository
from src.quiz.topics import topic_key

DEFAULT_WEAKNESS = 0.5
WEAK_THRESHOLD = 0.3
MAX_WEAK_TOPICS = 3
REPEATED_QUESTION_WEIGHT = 0.4
HISTORY_PROGRESS_THRESHOLD = 50.0


def compute_weakness_update(
    current: float,
    is_correct: bool,
    is_repeated: bool = False,
) -> tuple[float, ImprovementTrend]:
    """
    Apply one answer to a weakness score.

    Returns:
        Tuple of (new_score, trend)
    """
    weight = REPEATED_QUESTION_WEIGHT if is_repeated else 1.0

    if is_correct:
        # Very weak topics recover faster
        rate = 0.05 if current > 0.7 else 0.03
        new_score = max(0.0, current - rate * weight)
    else:
        # Strong topics decline faster
        rate = 0.08 if current < 0.3 else 0.05
        new_score = min(1.0, current + rate * weight)

    if new_score < current:
        trend = ImprovementTrend.IMPROVING
    elif new_score > current:
        trend = ImprovementTrend.DECLINING
    else:
        trend = ImprovementTrend.STABLE

    return new_score, trend


def weak_topics_from_history(
    history: Iterable[HistoricalProgress],
    subject: str | None,
    year: int | None,
) -> list[str]:
    """
    Derive weak-topic keys from past pass/fail outcomes.

    A topic is weak when its progress is below 50% or its quiz was not
    passed. Used when real-time weakness tracking is disabled.
    """
    keys = [
        topic_key(p.year, p.subject, p.topic)
        for p in history
        if (not subject or p.subject == subject)
        and (not year or p.year == year)
        and (p.topic_progress < HISTORY_PROGRESS_THRESHOLD or not p.quiz_passed)
    ]
    return keys[:MAX_WEAK_TOPICS]


class WeaknessTracker:
    """
    Maintain persistent weakness records through a WeaknessRepository.

    Records are created on first reference and never deleted here.
    """

    def __init__(self, repository: WeaknessRepository):
        self._repository = repository

    def update(
        self,
        user_id: int,
        year: int,
        subject: str,
        topic: str,
        is_correct: bool,
        is_repeated: bool = False,
    ) -> WeaknessRecord:
        """
        Apply an answer to the stored weakness score and persist it.

        Args:
            user_id: Learner identifier
            year: Year of the question's topic
            subject: Subject of the question's topic
            topic: Question topic
            is_correct: Whether the answer was correct
            is_repeated: Whether the question was already answered this attempt

        Returns:
            The updated record
        """
        record = self._repository.get(user_id, year, subject, topic)
        current = record.weakness_score if record else DEFAULT_WEAKNESS

        new_score, trend = compute_weakness_update(current, is_correct, is_repeated)

        updated = WeaknessRecord(
            user_id=user_id,
            year=year,
            subject=subject,
            topic=topic,
            weakness_score=new_score,
            improvement_trend=trend,
            remediation_attempts=(record.remediation_attempts if record else 0) + 1,
            last_updated=datetime.now(),
        )
        self._repository.upsert(updated)

        logger.debug(
            f"Weakness {updated.topic_key} for user {user_id}: "
            f"{current:.3f} -> {new_score:.3f} ({trend.value})"
        )
        return updated

    def weak_topics(self, user_id: int, year: int, subject: str) -> list[str]:
        """Keys of the worst topics above the weak threshold, at most three."""
        records = [
            r
            for r in self._repository.list_for_user(user_id, year, subject)
            if r.weakness_score > WEAK_THRESHOLD
        ]
        records.sort(key=lambda r: r.weakness_score, reverse=True)
        return [r.topic_key for r in records[:MAX_WEAK_TOPICS]]
