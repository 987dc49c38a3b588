"""Tests for assessment score calculation."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from candidate_ranking.scoring.calculator import (
    AnswerRecord,
    QuestionSpec,
    ScoringRules,
    compute_score,
    explain_score,
    finalize_score,
    is_within_recency_window,
)

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def make_questions(*specs):
    """Build {id: QuestionSpec} from (weight, negative_weight) pairs."""
    questions = [QuestionSpec(id=uuid4(), weight=w, negative_weight=nw) for w, nw in specs]
    return questions, {question.id: question for question in questions}


def answer(question, is_correct, assessment_id=None):
    return AnswerRecord(
        question_id=question.id, assessment_id=assessment_id or uuid4(), is_correct=is_correct
    )


def rules(**overrides):
    return ScoringRules(config_id=uuid4(), **overrides)


class TestComputeScore:
    """Tests for compute_score."""

    def test_all_correct(self):
        """Test that correct answers add their weight to score and maximum."""
        questions, by_id = make_questions((2.0, None), (3.0, None))
        result = compute_score([answer(q, True) for q in questions], by_id, rules(), None, NOW)

        assert result.score == 5.0
        assert result.max_possible_score == 5.0
        assert result.percentage == 100.0
        assert result.correct_answers == 2
        assert result.incorrect_answers == 0
        assert result.recency_bonus == 0.0

    def test_negative_marking_fraction(self):
        """Test that a wrong answer costs weight times the configured fraction."""
        questions, by_id = make_questions((4.0, None), (2.0, None))
        result = compute_score(
            [answer(questions[0], True), answer(questions[1], False)],
            by_id,
            rules(negative_marking_fraction=0.5),
            None,
            NOW,
        )

        assert result.score == 3.0
        assert result.max_possible_score == 6.0
        assert result.percentage == pytest.approx(50.0)
        assert result.negative_marking_penalty == 1.0
        assert result.incorrect_answers == 1

    def test_question_negative_weight_overrides_fraction(self):
        """Test that an explicit per-question penalty replaces the fraction."""
        questions, by_id = make_questions((2.0, 1.5))
        result = compute_score(
            [answer(questions[0], False)], by_id, rules(negative_marking_fraction=1.0), None, NOW
        )

        assert result.score == -1.5

    def test_zero_negative_weight_means_no_penalty(self):
        """Test that negative_weight=0 is honored instead of falling back to the fraction."""
        questions, by_id = make_questions((2.0, 0.0))
        result = compute_score(
            [answer(questions[0], False)], by_id, rules(negative_marking_fraction=1.0), None, NOW
        )

        assert result.score == 0.0
        assert result.incorrect_answers == 1

    def test_negative_scores_are_kept_by_default(self):
        """Test that scores below zero are not clamped unless requested."""
        questions, by_id = make_questions((2.0, None), (2.0, None))
        answers = [answer(q, False) for q in questions]
        config = rules(negative_marking_fraction=1.0)

        assert compute_score(answers, by_id, config, None, NOW).score == -4.0
        floored = compute_score(answers, by_id, config, None, NOW, floor_at_zero=True)
        assert floored.score == 0.0
        assert floored.percentage == 0.0

    def test_no_answers(self):
        """Test that an empty submission scores zero with a zero percentage."""
        result = compute_score([], {}, rules(), None, NOW)

        assert result.score == 0.0
        assert result.max_possible_score == 0.0
        assert result.percentage == 0.0

    def test_unknown_question_is_skipped(self, caplog):
        """Test that an answer to a missing question is logged and counted as skipped."""
        questions, by_id = make_questions((1.0, None))
        orphan = AnswerRecord(question_id=uuid4(), assessment_id=uuid4(), is_correct=True)

        with caplog.at_level("WARNING"):
            result = compute_score([answer(questions[0], True), orphan], by_id, rules(), None, NOW)

        assert result.score == 1.0
        assert result.max_possible_score == 1.0
        assert result.skipped_answers == 1
        assert "unknown question" in caplog.text

    def test_negative_weight_question_is_skipped(self):
        """Test that a question with an invalid weight does not count."""
        questions, by_id = make_questions((-1.0, None), (2.0, None))
        result = compute_score([answer(q, True) for q in questions], by_id, rules(), None, NOW)

        assert result.score == 2.0
        assert result.skipped_answers == 1


class TestRecencyBonus:
    """Tests for the recency bonus."""

    def test_bonus_within_window(self):
        """Test that a recent submission earns base_score * boost percent."""
        questions, by_id = make_questions((10.0, None))
        result = compute_score(
            [answer(questions[0], True)],
            by_id,
            rules(recency_window_days=7, recency_boost_percent=10.0),
            NOW - timedelta(days=2),
            NOW,
        )

        assert result.recency_bonus == pytest.approx(1.0)
        assert result.score == pytest.approx(11.0)
        assert result.percentage == pytest.approx(110.0)

    def test_no_bonus_outside_window(self):
        """Test that an old submission earns nothing."""
        questions, by_id = make_questions((10.0, None))
        result = compute_score(
            [answer(questions[0], True)],
            by_id,
            rules(recency_window_days=7, recency_boost_percent=10.0),
            NOW - timedelta(days=8),
            NOW,
        )

        assert result.recency_bonus == 0.0
        assert result.score == 10.0

    def test_window_boundary_is_inclusive(self):
        """Test that a submission exactly at the cutoff still counts as recent."""
        config = rules(recency_window_days=7, recency_boost_percent=10.0)
        assert is_within_recency_window(config, NOW - timedelta(days=7), NOW)
        assert not is_within_recency_window(
            config, NOW - timedelta(days=7, seconds=1), NOW
        )

    def test_bonus_requires_both_settings(self):
        """Test that a window without a boost (or vice versa) disables the bonus."""
        recent = NOW - timedelta(hours=1)
        assert not is_within_recency_window(rules(recency_window_days=7), recent, NOW)
        assert not is_within_recency_window(rules(recency_boost_percent=10.0), recent, NOW)

    def test_naive_submission_time_is_utc(self):
        """Test that naive timestamps from SQLite are compared as UTC."""
        config = rules(recency_window_days=1, recency_boost_percent=5.0)
        naive = (NOW - timedelta(hours=3)).replace(tzinfo=None)
        assert is_within_recency_window(config, naive, NOW)

    def test_negative_base_score_gets_negative_bonus(self):
        """Test that the bonus scales the base score, whatever its sign."""
        result = finalize_score(
            -4.0,
            8.0,
            0,
            2,
            rules(recency_window_days=7, recency_boost_percent=25.0),
            NOW,
            NOW,
        )

        assert result.recency_bonus == -1.0
        assert result.score == -5.0

    def test_precomputed_bonus_is_used_as_given(self):
        """Test that finalize_score does not recompute a bonus supplied by the database."""
        result = finalize_score(
            10.0,
            10.0,
            1,
            0,
            rules(recency_window_days=7, recency_boost_percent=10.0),
            NOW - timedelta(days=30),
            NOW,
            recency_bonus=1.0,
        )

        assert result.recency_bonus == 1.0
        assert result.score == 11.0


class TestExplainScore:
    """Tests for explain_score."""

    def test_breakdown_per_answer(self):
        """Test that every scorable answer gets its points and a reason."""
        questions, by_id = make_questions((3.0, None), (2.0, None), (1.0, 0.25))
        answers = [
            answer(questions[0], True),
            answer(questions[1], False),
            answer(questions[2], False),
        ]
        explanation = explain_score(
            answers, by_id, rules(negative_marking_fraction=0.5), None, NOW
        )

        points = [item.points for item in explanation.answers]
        assert points == [3.0, -1.0, -0.25]
        assert explanation.answers[0].explanation == "Correct: +3"
        assert explanation.answers[1].explanation == "Incorrect: -1 (0.5 x weight)"
        assert "question penalty" in explanation.answers[2].explanation
        assert explanation.result.score == pytest.approx(sum(points))
        assert explanation.recency_applied is False

    def test_recency_flag(self):
        """Test that recency_applied reflects the submission time."""
        questions, by_id = make_questions((1.0, None))
        explanation = explain_score(
            [answer(questions[0], True)],
            by_id,
            rules(recency_window_days=3, recency_boost_percent=10.0),
            NOW - timedelta(days=1),
            NOW,
        )

        assert explanation.recency_applied is True
        assert explanation.result.recency_bonus == pytest.approx(0.1)
