"""Feedback text shown after each submission."""

from __future__ import annotations

from src.quiz.models import Difficulty


def generate_feedback(
    is_correct: bool,
    difficulty: Difficulty,
    answered_within_time: bool,
    consecutive_wrong_answers: int,
) -> str:
    """Build a feedback message from correctness, difficulty, timeliness and streak."""
    if is_correct:
        feedback = "Well done! "
        if answered_within_time:
            feedback += "You answered quickly and correctly. "
        else:
            feedback += "You got the right answer. "

        if difficulty == Difficulty.HARD:
            feedback += "This was a challenging question and you handled it well!"
        elif difficulty == Difficulty.MEDIUM:
            feedback += "Solid understanding shown here."
        else:
            feedback += "Keep up the good work!"
        return feedback

    feedback = "Not quite right. "
    if consecutive_wrong_answers > 1:
        feedback += "Consider using a hint if one is available. "

    if difficulty == Difficulty.EASY:
        feedback += "This is a core concept, so review the basics."
    elif difficulty == Difficulty.MEDIUM:
        feedback += "This concept needs a bit more practice."
    else:
        feedback += "This one is tough, so don't worry and keep trying!"
    return feedback
