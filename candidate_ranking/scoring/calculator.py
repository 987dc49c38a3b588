"""Assessment score calculation.

Pure functions: no database access, no clock reads unless `now` is omitted.

Rules per answered question:
- the question weight always counts towards max_possible_score
- correct: +weight
- incorrect: -(negative_weight if set, else weight * negative_marking_fraction)

The recency bonus applies when both recency_window_days and recency_boost_percent
are configured and the assessment was submitted within the window:
bonus = base_score * recency_boost_percent / 100, added to the score.

Scores are not floored at zero unless floor_at_zero=True is passed.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from candidate_ranking.errors import AssessmentDataInconsistent
from candidate_ranking.utils.timestamps import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuestionSpec:
    """Scoring-relevant fields of an assessment question."""

    id: UUID
    weight: float
    negative_weight: float | None = None
    correct_answer: str | None = None


@dataclass(frozen=True)
class AnswerRecord:
    """A submitted answer and whether it was marked correct."""

    question_id: UUID
    assessment_id: UUID
    is_correct: bool
    raw_answer: str | None = None


@dataclass(frozen=True)
class ScoringRules:
    """Snapshot of a scoring configuration, detached from the ORM session."""

    config_id: UUID
    negative_marking_fraction: float = 0.0
    recency_window_days: int | None = None
    recency_boost_percent: float | None = None
    is_default: bool = False
    job_id: UUID | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, config: Any) -> "ScoringRules":
        return cls(
            config_id=config.id,
            negative_marking_fraction=float(config.negative_marking_fraction or 0.0),
            recency_window_days=config.recency_window_days,
            recency_boost_percent=config.recency_boost_percent,
            is_default=bool(config.is_default),
            job_id=config.job_id,
            updated_at=as_utc(config.updated_at),
        )

    @property
    def has_recency_boost(self) -> bool:
        return self.recency_window_days is not None and self.recency_boost_percent is not None

    def recency_cutoff(self, now: datetime) -> datetime | None:
        """Earliest submission time that still earns the recency bonus."""
        if not self.has_recency_boost:
            return None
        return as_utc(now) - timedelta(days=self.recency_window_days)


@dataclass
class ScoreResult:
    score: float
    max_possible_score: float
    percentage: float
    correct_answers: int
    incorrect_answers: int
    recency_bonus: float
    base_score: float = 0.0
    negative_marking_penalty: float = 0.0
    skipped_answers: int = 0


@dataclass
class AnswerBreakdown:
    question_id: UUID
    weight: float
    is_correct: bool
    points: float
    explanation: str


@dataclass
class ScoreExplanation:
    result: ScoreResult
    answers: list[AnswerBreakdown] = field(default_factory=list)
    recency_applied: bool = False


def _question_for(answer: AnswerRecord, questions: Mapping[UUID, QuestionSpec]) -> QuestionSpec:
    question = questions.get(answer.question_id)
    if question is None:
        raise AssessmentDataInconsistent(
            f"Answer in assessment {answer.assessment_id} references unknown question "
            f"{answer.question_id}",
            question_id=answer.question_id,
        )
    if question.weight is None or question.weight < 0:
        raise AssessmentDataInconsistent(
            f"Question {question.id} has invalid weight {question.weight!r}",
            question_id=question.id,
        )
    return question


def _penalty(question: QuestionSpec, rules: ScoringRules) -> float:
    if question.negative_weight is not None:
        return question.negative_weight
    return question.weight * rules.negative_marking_fraction


def is_within_recency_window(
    rules: ScoringRules, submitted_at: datetime | None, now: datetime
) -> bool:
    cutoff = rules.recency_cutoff(now)
    if cutoff is None or submitted_at is None:
        return False
    return as_utc(submitted_at) >= cutoff


def finalize_score(
    base_score: float,
    max_possible_score: float,
    correct_answers: int,
    incorrect_answers: int,
    rules: ScoringRules,
    submitted_at: datetime | None,
    now: datetime,
    *,
    negative_marking_penalty: float = 0.0,
    skipped_answers: int = 0,
    floor_at_zero: bool = False,
    recency_bonus: float | None = None,
) -> ScoreResult:
    """Apply the recency bonus and percentage to already-aggregated answer totals.

    Shared by the in-process calculator and the SQL aggregation path so both
    produce identical numbers from identical totals. A recency_bonus computed
    by the database is used as given.
    """
    if recency_bonus is None:
        recency_bonus = 0.0
        if is_within_recency_window(rules, submitted_at, now):
            recency_bonus = base_score * rules.recency_boost_percent / 100

    score = base_score + recency_bonus
    if floor_at_zero and score < 0:
        score = 0.0

    percentage = score / max_possible_score * 100 if max_possible_score > 0 else 0.0

    return ScoreResult(
        score=score,
        max_possible_score=max_possible_score,
        percentage=percentage,
        correct_answers=correct_answers,
        incorrect_answers=incorrect_answers,
        recency_bonus=recency_bonus,
        base_score=base_score,
        negative_marking_penalty=negative_marking_penalty,
        skipped_answers=skipped_answers,
    )


def compute_score(
    answers: Iterable[AnswerRecord],
    questions: Mapping[UUID, QuestionSpec],
    rules: ScoringRules,
    submitted_at: datetime | None,
    now: datetime | None = None,
    *,
    floor_at_zero: bool = False,
) -> ScoreResult:
    """Score one assessment submission.

    Args:
        answers: The submission's answers.
        questions: Question specs keyed by question id.
        rules: Effective scoring configuration for the job.
        submitted_at: Submission time, used for the recency bonus.
        now: Reference time (defaults to the current UTC time).
        floor_at_zero: Clamp negative final scores to zero.

    Returns:
        ScoreResult with totals and breakdown counters. Answers that cannot be
        scored are logged, skipped and counted in skipped_answers.
    """
    now = utcnow() if now is None else now
    base_score = 0.0
    max_possible_score = 0.0
    penalty_total = 0.0
    correct = 0
    incorrect = 0
    skipped = 0

    for answer in answers:
        try:
            question = _question_for(answer, questions)
        except AssessmentDataInconsistent as exc:
            logger.warning("Skipping answer: %s", exc.message)
            skipped += 1
            continue

        max_possible_score += question.weight
        if answer.is_correct:
            base_score += question.weight
            correct += 1
        else:
            penalty = _penalty(question, rules)
            base_score -= penalty
            penalty_total += penalty
            incorrect += 1

    return finalize_score(
        base_score,
        max_possible_score,
        correct,
        incorrect,
        rules,
        submitted_at,
        now,
        negative_marking_penalty=penalty_total,
        skipped_answers=skipped,
        floor_at_zero=floor_at_zero,
    )


def explain_score(
    answers: Iterable[AnswerRecord],
    questions: Mapping[UUID, QuestionSpec],
    rules: ScoringRules,
    submitted_at: datetime | None,
    now: datetime | None = None,
) -> ScoreExplanation:
    """Score a submission and return the points awarded for every answer."""
    now = utcnow() if now is None else now
    answers = list(answers)
    breakdown: list[AnswerBreakdown] = []

    for answer in answers:
        question = questions.get(answer.question_id)
        if question is None:
            continue
        if answer.is_correct:
            breakdown.append(
                AnswerBreakdown(
                    question_id=question.id,
                    weight=question.weight,
                    is_correct=True,
                    points=question.weight,
                    explanation=f"Correct: +{question.weight:g}",
                )
            )
        else:
            penalty = _penalty(question, rules)
            if question.negative_weight is not None:
                source = "question penalty"
            else:
                source = f"{rules.negative_marking_fraction:g} x weight"
            breakdown.append(
                AnswerBreakdown(
                    question_id=question.id,
                    weight=question.weight,
                    is_correct=False,
                    points=-penalty,
                    explanation=f"Incorrect: -{penalty:g} ({source})",
                )
            )

    result = compute_score(answers, questions, rules, submitted_at, now)
    return ScoreExplanation(
        result=result,
        answers=breakdown,
        recency_applied=is_within_recency_window(rules, submitted_at, now),
    )
