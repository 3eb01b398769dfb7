"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.quiz.models import Difficulty, Question, QuestionOption, QuizSession


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory SQLite)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# ========================================
# Question fixtures
# ========================================


def make_question(
    qid: int,
    difficulty: Difficulty = Difficulty.MEDIUM,
    topic: str = "Plants",
    correct: tuple[str, ...] = ("a",),
    option_ids: tuple[str, ...] = ("a", "b", "c", "d"),
    hints: tuple[str, ...] = (),
) -> Question:
    return Question(
        id=qid,
        text=f"Question {qid}?",
        options=tuple(QuestionOption(id=o, text=f"Option {o}") for o in option_ids),
        correct_answer_ids=correct,
        topic=topic,
        difficulty=difficulty,
        hints=hints,
        year=4,
        subject="science",
    )


def make_session(questions: list[Question], total: int | None = None, **kwargs) -> QuizSession:
    return QuizSession(
        session_id="quiz_1_test",
        user_id=1,
        year=4,
        subject="science",
        topic="Plants",
        total_questions=total if total is not None else len(questions),
        available_questions=list(questions),
        **kwargs,
    )


@pytest.fixture
def build_question():
    """Build Question objects with sensible defaults."""
    return make_question


@pytest.fixture
def build_session():
    """Build QuizSession objects over a question list."""
    return make_session


@pytest.fixture
def sample_questions():
    """Ten single-answer questions across the three difficulties."""
    difficulties = [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD]
    return [make_question(i, difficulties[i % 3], hints=("First hint", "Second hint")) for i in range(1, 11)]


@pytest.fixture
def rng():
    """Seeded random source for reproducible selection."""
    return random.Random(42)


# ========================================
# Database fixtures
# ========================================


@pytest.fixture
def db_session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    from src.db.database import create_db_engine, create_session_factory, init_db

    engine = create_db_engine("sqlite://", echo=False)
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def sample_pool_records():
    """Question dicts in the shape accepted by SqlQuestionBank.import_questions."""
    return [
        {
            "text": f"Plants question {i}?",
            "options": [{"id": o, "text": f"Option {o}"} for o in ("a", "b", "c", "d")],
            "correct_answer_ids": ["a"],
            "difficulty": ["easy", "medium", "hard"][i % 3],
            "hints": ["Think about roots.", "It is underground."],
        }
        for i in range(1, 11)
    ]
