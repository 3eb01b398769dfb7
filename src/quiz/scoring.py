"""
Scoring engine for quiz submissions.

Scoring rules:
- Base: 10 points scaled by difficulty (easy 0.8, medium 1.0, hard 1.2)
- Time bonus: 5 points when answered within 60 seconds
- Partial credit: multi-answer questions with 4+ options earn
  base * (correct ids selected / correct ids) when answered incorrectly
- Hint penalty: 2 points per hint revealed on the question
"""

from __future__ import annotations

from src.quiz.models import Answer, Difficulty, Question, ScoreBreakdown

BASE_POINTS = 10.0
TIME_BONUS_POINTS = 5.0
HINT_PENALTY_POINTS = 2.0
TIME_LIMIT_SECONDS = 60.0
PARTIAL_CREDIT_MIN_OPTIONS = 4

DIFFICULTY_MULTIPLIERS: dict[Difficulty, float] = {
    Difficulty.EASY: 0.8,
    Difficulty.MEDIUM: 1.0,
    Difficulty.HARD: 1.2,
}


def _as_id_list(answer: Answer) -> list[str]:
    return list(answer) if isinstance(answer, list) else [answer]


def is_answer_correct(question: Question, answer: Answer) -> bool:
    """
    Check a submission against the question's correct option ids.

    Single-answer questions need an exact id match. Multi-answer questions
    need the exact set when a list is submitted, or membership when a
    single id is submitted.
    """
    correct = set(question.correct_answer_ids)

    if not question.is_multi_answer:
        ids = _as_id_list(answer)
        return len(ids) == 1 and ids[0] in correct

    if isinstance(answer, list):
        return len(answer) == len(correct) and set(answer) == correct
    return answer in correct


def count_correct_selected(question: Question, answer: Answer) -> int:
    """Count how many submitted ids are correct options."""
    correct = set(question.correct_answer_ids)
    return len({a for a in _as_id_list(answer) if a in correct})


def score_answer(
    question: Question,
    is_correct: bool,
    time_spent: float,
    hints_used: int,
    answer: Answer,
) -> ScoreBreakdown:
    """
    Compute the point breakdown for one submission.

    partial_credit is reported separately but is already folded into
    base_score when it applies. total_points is not floored.
    """
    multiplier = DIFFICULTY_MULTIPLIERS[question.difficulty]
    answered_within_time = time_spent <= TIME_LIMIT_SECONDS

    base_score = 0.0
    time_bonus = 0.0
    partial_credit = 0.0

    if is_correct:
        base_score = BASE_POINTS * multiplier
        if answered_within_time:
            time_bonus = TIME_BONUS_POINTS
    elif question.is_multi_answer and len(question.options) >= PARTIAL_CREDIT_MIN_OPTIONS:
        selected = count_correct_selected(question, answer)
        if selected > 0:
            partial_credit = BASE_POINTS * multiplier * (selected / len(question.correct_answer_ids))
            base_score = partial_credit

    hint_penalty = hints_used * HINT_PENALTY_POINTS

    return ScoreBreakdown(
        base_score=base_score,
        time_bonus=time_bonus,
        partial_credit=partial_credit,
        hint_penalty=hint_penalty,
        total_points=base_score + time_bonus - hint_penalty,
        answered_within_time=answered_within_time,
    )
