"""
Unit tests for weakness tracking.

Run: pytest tests/unit/test_weakness.py -v
"""

import pytest

from src.quiz.models import HistoricalProgress, ImprovementTrend, WeaknessRecord
from src.quiz.weakness import WeaknessTracker, compute_weakness_update, weak_topics_from_history


class InMemoryWeaknessRepository:
    def __init__(self, records=None):
        self.records = {(r.user_id, r.year, r.subject, r.topic): r for r in records or []}

    def get(self, user_id, year, subject, topic):
        return self.records.get((user_id, year, subject, topic))

    def upsert(self, record):
        self.records[(record.user_id, record.year, record.subject, record.topic)] = record

    def list_for_user(self, user_id, year, subject):
        return [r for r in self.records.values() if (r.user_id, r.year, r.subject) == (user_id, year, subject)]


class TestComputeWeaknessUpdate:
    """Test the pure update rule."""

    def test_correct_answer_lowers_score(self):
        score, trend = compute_weakness_update(0.5, True)
        assert score == pytest.approx(0.47)
        assert trend == ImprovementTrend.IMPROVING

    def test_very_weak_topic_recovers_faster(self):
        score, _ = compute_weakness_update(0.8, True)
        assert score == pytest.approx(0.75)

    def test_incorrect_answer_raises_score(self):
        score, trend = compute_weakness_update(0.5, False)
        assert score == pytest.approx(0.55)
        assert trend == ImprovementTrend.DECLINING

    def test_strong_topic_declines_faster(self):
        score, _ = compute_weakness_update(0.2, False)
        assert score == pytest.approx(0.28)

    def test_repeated_question_moves_at_forty_percent(self):
        score, _ = compute_weakness_update(0.5, False, is_repeated=True)
        assert score == pytest.approx(0.52)
        score, _ = compute_weakness_update(0.5, True, is_repeated=True)
        assert score == pytest.approx(0.488)

    def test_bounds_give_stable_trend(self):
        assert compute_weakness_update(0.0, True) == (0.0, ImprovementTrend.STABLE)
        assert compute_weakness_update(1.0, False) == (1.0, ImprovementTrend.STABLE)


class TestWeaknessTracker:
    """Test the repository-backed tracker."""

    def test_first_update_starts_from_default(self):
        repo = InMemoryWeaknessRepository()
        record = WeaknessTracker(repo).update(1, 4, "science", "Plants", is_correct=False)

        assert record.weakness_score == pytest.approx(0.55)
        assert record.remediation_attempts == 1
        assert record.last_updated is not None
        assert repo.get(1, 4, "science", "Plants") == record

    def test_updates_accumulate(self):
        repo = InMemoryWeaknessRepository()
        tracker = WeaknessTracker(repo)
        tracker.update(1, 4, "science", "Plants", is_correct=False)
        record = tracker.update(1, 4, "science", "Plants", is_correct=False)

        assert record.weakness_score == pytest.approx(0.60)
        assert record.remediation_attempts == 2

    def test_weak_topics_worst_first_capped_at_three(self):
        scores = {"A": 0.9, "B": 0.5, "C": 0.31, "D": 0.3, "E": 0.7}
        repo = InMemoryWeaknessRepository(
            [WeaknessRecord(1, 4, "science", topic, weakness_score=s) for topic, s in scores.items()]
        )
        assert WeaknessTracker(repo).weak_topics(1, 4, "science") == [
            "4-science-A",
            "4-science-E",
            "4-science-B",
        ]

    def test_threshold_is_exclusive(self):
        repo = InMemoryWeaknessRepository([WeaknessRecord(1, 4, "science", "Plants", weakness_score=0.3)])
        assert WeaknessTracker(repo).weak_topics(1, 4, "science") == []


class TestWeakTopicsFromHistory:
    """Test the historical pass/fail variant."""

    def test_low_progress_or_failed_topics(self):
        history = [
            HistoricalProgress(year=4, subject="science", topic="Plants", topic_progress=90, quiz_passed=True),
            HistoricalProgress(year=4, subject="science", topic="Soil", topic_progress=30, quiz_passed=True),
            HistoricalProgress(year=4, subject="science", topic="Light", topic_progress=90, quiz_passed=False),
            HistoricalProgress(year=4, subject="maths", topic="Fractions", topic_progress=10),
        ]
        assert weak_topics_from_history(history, "science", 4) == ["4-science-Soil", "4-science-Light"]

    def test_capped_at_three(self):
        history = [
            HistoricalProgress(year=4, subject="science", topic=f"T{i}", topic_progress=10) for i in range(5)
        ]
        assert len(weak_topics_from_history(history, "science", 4)) == 3
