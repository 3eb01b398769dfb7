"""
Unit tests for question selection phases and the difficulty band.

Run: pytest tests/unit/test_selector.py -v
"""

import random

from src.quiz.models import Difficulty, SelectionPhase
from src.quiz.selector import QuestionSelector


class TestAdaptivePhase:
    """Adaptive selection prefers the ability's difficulty band."""

    def test_low_ability_avoids_hard_questions(self, build_question, build_session):
        questions = [build_question(1, Difficulty.EASY), build_question(2, Difficulty.HARD)]
        for seed in range(20):
            session = build_session(questions, ability_estimate=0.2)
            selection = QuestionSelector(random.Random(seed)).select_next(session)
            assert selection.question.id == 1
            assert selection.phase == SelectionPhase.ADAPTIVE

    def test_high_ability_avoids_easy_questions(self, build_question, build_session):
        questions = [build_question(1, Difficulty.EASY), build_question(2, Difficulty.HARD)]
        for seed in range(20):
            session = build_session(questions, ability_estimate=0.8)
            assert QuestionSelector(random.Random(seed)).select_next(session).question.id == 2

    def test_falls_back_to_any_unanswered_question(self, build_question, build_session):
        session = build_session([build_question(1, Difficulty.HARD)], ability_estimate=0.2)
        selection = QuestionSelector(random.Random(1)).select_next(session)
        assert selection.question.id == 1
        assert selection.phase == SelectionPhase.ADAPTIVE

    def test_band_edges_are_inclusive(self, build_question):
        # target 0.5, band [0.2, 0.8]
        assert QuestionSelector.in_band(build_question(1, Difficulty.EASY), 0.5)
        assert QuestionSelector.in_band(build_question(2, Difficulty.HARD), 0.5)

    def test_skips_answered_questions(self, build_question, build_session):
        questions = [build_question(1), build_question(2)]
        session = build_session(questions, total=2, answered_questions=[1], questions_answered=1)
        for seed in range(10):
            selector = QuestionSelector(random.Random(seed))
            assert selector.select_next(session).question.id == 2

    def test_none_when_budget_exhausted(self, build_question, build_session):
        session = build_session([build_question(1), build_question(2)], total=1, questions_answered=1)
        assert QuestionSelector(random.Random(1)).select_next(session) is None

    def test_none_when_nothing_left(self, build_question, build_session):
        session = build_session(
            [build_question(1)], total=3, answered_questions=[1], questions_answered=1
        )
        assert QuestionSelector(random.Random(1)).select_next(session) is None


class TestRepetitionPhase:
    """Missed questions come back once 70% of the budget is used."""

    def test_repeats_missed_question_after_seventy_percent(self, sample_questions, build_session):
        session = build_session(
            sample_questions,
            total=10,
            questions_answered=7,
            answered_questions=[1, 2, 3, 4, 5, 6, 7],
            incorrect_questions=[3],
        )
        selection = QuestionSelector(random.Random(1)).select_next(session)
        assert selection.question.id == 3
        assert selection.phase == SelectionPhase.REPETITION

    def test_no_repetition_before_seventy_percent(self, sample_questions, build_session):
        session = build_session(
            sample_questions,
            total=10,
            questions_answered=6,
            answered_questions=[1, 2, 3, 4, 5, 6],
            incorrect_questions=[3],
        )
        selection = QuestionSelector(random.Random(1)).select_next(session)
        assert selection.phase == SelectionPhase.ADAPTIVE
        assert selection.question.id not in session.answered_questions

    def test_ids_missing_from_pool_are_skipped(self, sample_questions, build_session):
        session = build_session(
            sample_questions,
            total=10,
            questions_answered=8,
            answered_questions=[1, 2, 3, 4, 5, 6, 7, 8],
            incorrect_questions=[99],
        )
        selection = QuestionSelector(random.Random(1)).select_next(session)
        assert selection.phase == SelectionPhase.ADAPTIVE
        assert selection.question.id in (9, 10)


class TestRemediationPhase:
    """Weak-topic questions are preferred early in the attempt."""

    def test_prefers_weak_topic_questions(self, build_question, build_session):
        questions = [build_question(i, topic="Plants") for i in range(1, 6)] + [
            build_question(6, topic="Soil")
        ]
        for seed in range(10):
            session = build_session(questions, total=6, weak_topics=["4-science-Soil"])
            selection = QuestionSelector(random.Random(seed)).select_next(session)
            assert selection.question.id == 6
            assert selection.phase == SelectionPhase.REMEDIATION

    def test_no_remediation_after_thirty_percent(self, build_question, build_session):
        questions = [build_question(i, topic="Plants") for i in range(1, 10)] + [
            build_question(10, topic="Soil")
        ]
        session = build_session(
            questions,
            total=10,
            weak_topics=["4-science-Soil"],
            questions_answered=3,
            answered_questions=[1, 2, 3],
        )
        selection = QuestionSelector(random.Random(1)).select_next(session)
        assert selection.phase == SelectionPhase.ADAPTIVE

    def test_weak_topic_questions_outside_band_are_skipped(self, build_question, build_session):
        questions = [build_question(1, Difficulty.EASY, topic="Plants"), build_question(2, Difficulty.HARD, topic="Soil")]
        session = build_session(questions, weak_topics=["4-science-Soil"], ability_estimate=0.2)
        selection = QuestionSelector(random.Random(1)).select_next(session)
        assert selection.phase == SelectionPhase.ADAPTIVE
        assert selection.question.id == 1
