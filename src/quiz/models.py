"""
Quiz engine data models.

Plain dataclasses shared by every engine component:
- Question / QuestionOption: immutable pool items for one attempt
- HistoricalProgress: per-topic history used to seed ability and weak topics
- QuizSession: the mutable aggregate owned by a single attempt
- WeaknessRecord, AttemptRecord, ProgressRecord: durable records

The storage representation never leaks past these types; repositories
convert ORM rows to and from them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

# A submitted answer is a single option id or a list of option ids
Answer = Union[str, list[str]]


class Difficulty(str, Enum):
    """Question difficulty levels."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: str | Difficulty | None) -> Difficulty:
        """Parse a difficulty label; unknown labels are treated as medium."""
        if isinstance(value, Difficulty):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MEDIUM


class ImprovementTrend(str, Enum):
    """Direction of the last weakness score change."""

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class SelectionPhase(str, Enum):
    """Which selection rule produced a question."""

    REPETITION = "repetition"
    REMEDIATION = "remediation"
    ADAPTIVE = "adaptive"


@dataclass(frozen=True)
class QuestionOption:
    id: str
    text: str


@dataclass(frozen=True)
class Question:
    """A single question from the attempt's candidate pool."""

    id: int
    text: str
    options: tuple[QuestionOption, ...]
    correct_answer_ids: tuple[str, ...]
    topic: str
    difficulty: Difficulty = Difficulty.MEDIUM
    hints: tuple[str, ...] = ()
    year: int | None = None
    subject: str | None = None

    @property
    def is_multi_answer(self) -> bool:
        return len(self.correct_answer_ids) > 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return {
            "id": self.id,
            "text": self.text,
            "options": [{"id": o.id, "text": o.text} for o in self.options],
            "correct_answer_ids": list(self.correct_answer_ids),
            "topic": self.topic,
            "difficulty": self.difficulty.value,
            "hints": list(self.hints),
            "year": self.year,
            "subject": self.subject,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Question:
        """Create from dictionary."""
        return cls(
            id=int(data["id"]),
            text=data["text"],
            options=tuple(
                QuestionOption(id=str(o["id"]), text=o.get("text", "")) for o in data.get("options", [])
            ),
            correct_answer_ids=tuple(str(a) for a in data.get("correct_answer_ids", [])),
            topic=data.get("topic", ""),
            difficulty=Difficulty.parse(data.get("difficulty")),
            hints=tuple(data.get("hints") or ()),
            year=data.get("year"),
            subject=data.get("subject"),
        )


@dataclass
class HistoricalProgress:
    """A learner's recorded progress on one topic."""

    year: int
    subject: str
    topic: str
    topic_progress: float  # 0-100
    quiz_score: float = 0.0
    quiz_passed: bool = False
    materials_viewed: int = 0
    total_materials: int = 0


@dataclass
class QuestionAttempt:
    """Per-question attempt counters within a session."""

    attempts: int = 0
    correct: bool = False
    hints_used: int = 0

    @property
    def wrong_attempts(self) -> int:
        return self.attempts - (1 if self.correct else 0)


@dataclass
class ScoreBreakdown:
    """Points awarded for a single submission."""

    base_score: float
    time_bonus: float
    partial_credit: float
    hint_penalty: float
    total_points: float
    answered_within_time: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class QuestionScore:
    """Audit trail entry for one answered question."""

    question_id: int
    question: str
    difficulty: str
    is_correct: bool
    points: float
    time_spent: float
    attempts: int
    hints_used: int
    base_score: float
    time_bonus: float
    partial_credit: float
    hint_penalty: float
    answered_within_time: bool
    is_remedial: bool = False


@dataclass
class Selection:
    """A question chosen by the selector and the phase that chose it."""

    question: Question
    phase: SelectionPhase


@dataclass
class HintResult:
    hint: str
    hint_index: int
    penalty: float
    total_score: float
    hints_remaining: int


@dataclass
class WeaknessRecord:
    """Durable per-topic weakness state for a learner."""

    user_id: int
    year: int
    subject: str
    topic: str
    weakness_score: float = 0.5
    improvement_trend: ImprovementTrend = ImprovementTrend.STABLE
    remediation_attempts: int = 0
    last_updated: datetime | None = None

    @property
    def topic_key(self) -> str:
        return f"{self.year}-{self.subject}-{self.topic}"


@dataclass
class AttemptRecord:
    """A permanent record of one finished quiz attempt."""

    user_id: int
    quiz_id: int
    attempt_number: int
    score: int
    time_taken: float
    questions_answered: int
    total_questions: int
    ability_estimate: float
    passed: bool
    created_at: datetime | None = None


@dataclass
class ProgressRecord:
    """Aggregate quiz progress across attempts."""

    user_id: int
    quiz_id: int
    passed: bool = False
    last_score: int = 0
    best_score: int = 0
    total_attempts: int = 0
    last_activity: datetime | None = None

    @classmethod
    def merged(cls, existing: ProgressRecord | None, attempt: AttemptRecord) -> ProgressRecord:
        """Fold one attempt into the aggregate. Once passed, stays passed."""
        return cls(
            user_id=attempt.user_id,
            quiz_id=attempt.quiz_id,
            passed=attempt.passed or bool(existing and existing.passed),
            last_score=attempt.score,
            best_score=max(attempt.score, existing.best_score if existing else 0),
            total_attempts=(existing.total_attempts if existing else 0) + 1,
            last_activity=attempt.created_at or datetime.now(),
        )


@dataclass
class QuizSession:
    """
    Mutable state of one running quiz attempt.

    Owned exclusively by the attempt; persisted through a SessionStore
    between operations and removed once results are saved.
    """

    session_id: str
    user_id: int
    year: int
    subject: str
    topic: str
    total_questions: int
    available_questions: list[Question]
    ability_estimate: float = 0.5
    weak_topics: list[str] = field(default_factory=list)

    # Progress counters
    questions_answered: int = 0
    total_score: float = 0.0
    current_topic_score: int = 0
    current_topic_questions: int = 0
    remedial_score: int = 0
    remedial_questions_answered: int = 0
    time_spent: float = 0.0

    # Bookkeeping
    current_question_id: int | None = None
    answered_questions: list[int] = field(default_factory=list)
    incorrect_questions: list[int] = field(default_factory=list)
    remedial_questions: list[int] = field(default_factory=list)
    question_attempts: dict[int, QuestionAttempt] = field(default_factory=dict)
    question_scores: list[QuestionScore] = field(default_factory=list)
    consecutive_wrong_answers: int = 0
    hints_used: int = 0
    current_hints_used: int = 0

    start_time: datetime = field(default_factory=datetime.now)
    is_completed: bool = False

    def get_question(self, question_id: int) -> Question | None:
        """Resolve a question id against the candidate pool."""
        for question in self.available_questions:
            if question.id == question_id:
                return question
        return None

    @property
    def current_question(self) -> Question | None:
        if self.current_question_id is None:
            return None
        return self.get_question(self.current_question_id)

    @property
    def unanswered_questions(self) -> list[Question]:
        answered = set(self.answered_questions)
        return [q for q in self.available_questions if q.id not in answered]

    @property
    def budget_exhausted(self) -> bool:
        return self.questions_answered >= self.total_questions

    def is_remedial(self, question_id: int) -> bool:
        return question_id in self.remedial_questions

    def attempt_for(self, question_id: int) -> QuestionAttempt:
        return self.question_attempts.get(question_id, QuestionAttempt())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["available_questions"] = [q.to_dict() for q in self.available_questions]
        data["question_attempts"] = {
            str(qid): asdict(attempt) for qid, attempt in self.question_attempts.items()
        }
        data["start_time"] = self.start_time.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuizSession:
        """Create from dictionary."""
        payload = dict(data)
        payload["available_questions"] = [
            Question.from_dict(q) for q in payload.get("available_questions", [])
        ]
        payload["question_attempts"] = {
            int(qid): QuestionAttempt(**attempt)
            for qid, attempt in (payload.get("question_attempts") or {}).items()
        }
        payload["question_scores"] = [
            QuestionScore(**score) for score in payload.get("question_scores", [])
        ]
        start_time = payload.get("start_time")
        if isinstance(start_time, str):
            payload["start_time"] = datetime.fromisoformat(start_time)
        elif start_time is None:
            payload.pop("start_time", None)
        return cls(**payload)
