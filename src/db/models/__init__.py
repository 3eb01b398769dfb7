# SQLAlchemy models
from .base import Base
from .progress import (
    QuizAttempt,
    StudentQuizProgress,
    StudentWeakTopic,
    UserTopicProgress,
)
from .quiz import (
    Quiz,
    QuizQuestion,
    QuizSessionRecord,
)

__all__ = [
    # Base
    "Base",
    # Quiz content
    "Quiz",
    "QuizQuestion",
    # Session persistence
    "QuizSessionRecord",
    # Progress & weakness
    "QuizAttempt",
    "StudentQuizProgress",
    "StudentWeakTopic",
    "UserTopicProgress",
]
