"""
Question pool import files.

A pool file is JSON of the form:

    {
        "year": 4,
        "subject": "science",
        "topic": "Plants",
        "title": "Plants quiz",
        "questions": [
            {
                "text": "Which part of a plant absorbs water?",
                "options": [{"id": "a", "text": "Root"}, {"id": "b", "text": "Leaf"}],
                "correct_answer_ids": ["a"],
                "difficulty": "easy",
                "hints": ["It is underground."]
            }
        ]
    }
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

import pydantic
from pydantic import BaseModel, Field, model_validator

from src.quiz.errors import ValidationError
from src.quiz.models import Difficulty


class QuestionOptionIn(BaseModel):
    id: str = Field(..., min_length=1)
    text: str


class QuestionIn(BaseModel):
    """A single question entry in a pool file."""

    text: str = Field(..., min_length=1)
    options: List[QuestionOptionIn] = Field(..., min_length=2)
    correct_answer_ids: List[str] = Field(..., min_length=1)
    topic: Optional[str] = Field(None, description="Defaults to the file's topic")
    difficulty: Difficulty = Difficulty.MEDIUM
    hints: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_answers(self) -> QuestionIn:
        option_ids = [o.id for o in self.options]
        if len(set(option_ids)) != len(option_ids):
            raise ValueError("option ids must be unique")
        unknown = set(self.correct_answer_ids) - set(option_ids)
        if unknown:
            raise ValueError(f"correct answers not among options: {sorted(unknown)}")
        return self

    def to_record(self) -> dict[str, Any]:
        data = self.model_dump()
        data["difficulty"] = self.difficulty.value
        return data


class QuizFile(BaseModel):
    """A question pool for one (year, subject, topic)."""

    year: int = Field(..., ge=1)
    subject: str = Field(..., min_length=1)
    topic: str = Field(..., min_length=1)
    title: Optional[str] = None
    questions: List[QuestionIn] = Field(..., min_length=1)


def load_quiz_file(path: Path) -> QuizFile:
    """
    Parse and validate a pool file.

    Raises:
        ValidationError: The file is not valid JSON or fails validation
    """
    try:
        return QuizFile.model_validate_json(path.read_text(encoding="utf-8"))
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid question file {path.name}: {e}") from e
