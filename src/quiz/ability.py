"""
Ability model for adaptive quizzes.

A single-parameter, fixed-learning-rate approximation of IRT ability
tracking. Every function here is pure and deterministic:

    P(correct) = 1 / (1 + e^-(ability - difficulty))
    ability'   = ability + 0.1 * (correct - P(correct))

The estimate is clamped to [0.1, 0.9] after every update.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from src.quiz.models import Difficulty, HistoricalProgress

ABILITY_MIN = 0.1
ABILITY_MAX = 0.9
LEARNING_RATE = 0.1

INITIAL_ABILITY_DEFAULT = 0.5
INITIAL_ABILITY_MIN = 0.2
INITIAL_ABILITY_MAX = 0.9
PASSED_WEIGHT = 1.2
FAILED_WEIGHT = 0.8

DIFFICULTY_SCORES: dict[Difficulty, float] = {
    Difficulty.EASY: 0.3,
    Difficulty.MEDIUM: 0.5,
    Difficulty.HARD: 0.7,
}


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def difficulty_score(difficulty: Difficulty | str) -> float:
    """Map a difficulty label to its numeric score (unknown labels score as medium)."""
    return DIFFICULTY_SCORES[Difficulty.parse(difficulty)]


def expected_probability(ability: float, difficulty: Difficulty | str) -> float:
    """Return the expected probability of a correct answer."""
    return 1.0 / (1.0 + math.exp(-(ability - difficulty_score(difficulty))))


def update_ability(ability: float, difficulty: Difficulty | str, is_correct: bool) -> float:
    """
    Move the ability estimate by the residual of the logistic prediction.

    Args:
        ability: Current estimate
        difficulty: Difficulty of the answered question
        is_correct: Whether the answer was correct

    Returns:
        New estimate, clamped to [0.1, 0.9]
    """
    expected = expected_probability(ability, difficulty)
    delta = LEARNING_RATE * ((1.0 - expected) if is_correct else -expected)
    return _clamp(ability + delta, ABILITY_MIN, ABILITY_MAX)


def initial_ability(
    history: Iterable[HistoricalProgress],
    subject: str | None,
    year: int | None,
) -> float:
    """
    Seed the ability estimate from historical topic progress.

    Rows for the same subject and year are averaged with passed quizzes
    weighted 1.2 and failed ones 0.8. An empty subject or year matches
    every row.

    Returns:
        Weighted mean of topic_progress/100 clamped to [0.2, 0.9],
        or 0.5 if no history matches.
    """
    relevant = [
        p
        for p in history
        if (not subject or p.subject == subject) and (not year or p.year == year)
    ]
    if not relevant:
        return INITIAL_ABILITY_DEFAULT

    weighted_sum = 0.0
    total_weight = 0.0
    for progress in relevant:
        weight = PASSED_WEIGHT if progress.quiz_passed else FAILED_WEIGHT
        weighted_sum += (progress.topic_progress / 100.0) * weight
        total_weight += weight

    return _clamp(weighted_sum / total_weight, INITIAL_ABILITY_MIN, INITIAL_ABILITY_MAX)


def target_difficulty(ability: float) -> float:
    """Map an ability estimate to the centre of its difficulty band."""
    if ability < 0.4:
        return DIFFICULTY_SCORES[Difficulty.EASY]
    if ability < 0.7:
        return DIFFICULTY_SCORES[Difficulty.MEDIUM]
    return DIFFICULTY_SCORES[Difficulty.HARD]
