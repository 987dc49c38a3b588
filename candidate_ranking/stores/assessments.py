"""Read-only access to assessment submissions, answers and questions.

Only the latest submission per applicant counts for a job. "Latest" is the
greatest submitted_at; when two submissions share a timestamp the one with the
highest assessment id wins. Both loaders below select the latest submissions with
a ROW_NUMBER() window and fetch everything a job needs in a single statement, so
the cost of a recalculation does not grow in round trips with the applicant count.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, case, func, literal, not_, select
from sqlalchemy.orm import Session

from candidate_ranking.models.assessments import (
    ApplicantAnswer,
    ApplicantAssessment,
    AssessmentQuestion,
)
from candidate_ranking.scoring.calculator import AnswerRecord, QuestionSpec, ScoringRules

logger = logging.getLogger(__name__)


@dataclass
class ApplicantSubmission:
    """Latest assessment of one applicant for a job, with its answers."""

    applicant_id: UUID
    assessment_id: UUID
    submitted_at: datetime
    answers: list[AnswerRecord] = field(default_factory=list)


@dataclass
class AggregatedScore:
    """Per-applicant answer totals computed by the database."""

    applicant_id: UUID
    assessment_id: UUID
    submitted_at: datetime
    base_score: float
    max_possible_score: float
    correct_answers: int
    incorrect_answers: int
    negative_marking_penalty: float
    recency_bonus: float = 0.0
    skipped_answers: int = 0


def _latest_assessments(job_id: UUID):
    """Subquery of (assessment_id, applicant_id, submitted_at), one row per applicant."""
    position = (
        func.row_number()
        .over(
            partition_by=ApplicantAssessment.applicant_id,
            order_by=(ApplicantAssessment.submitted_at.desc(), ApplicantAssessment.id.desc()),
        )
        .label("position")
    )
    ranked = (
        select(
            ApplicantAssessment.id.label("assessment_id"),
            ApplicantAssessment.applicant_id.label("applicant_id"),
            ApplicantAssessment.submitted_at.label("submitted_at"),
            position,
        )
        .where(ApplicantAssessment.job_id == job_id)
        .subquery("ranked_assessments")
    )
    return (
        select(ranked.c.assessment_id, ranked.c.applicant_id, ranked.c.submitted_at)
        .where(ranked.c.position == 1)
        .subquery("latest_assessments")
    )


class AssessmentStore:
    """Queries over applicant_assessments, applicant_answers and assessment_questions."""

    def get_latest_assessment_per_applicant(
        self, session: Session, job_id: UUID
    ) -> list[ApplicantSubmission]:
        """Return each applicant's latest submission for the job with its answers."""
        submissions, _ = self.load_job_submissions(session, job_id)
        return submissions

    def get_questions_by_ids(
        self, session: Session, question_ids: Iterable[UUID]
    ) -> dict[UUID, QuestionSpec]:
        ids = list(set(question_ids))
        if not ids:
            return {}
        rows = session.execute(
            select(
                AssessmentQuestion.id,
                AssessmentQuestion.weight,
                AssessmentQuestion.negative_weight,
                AssessmentQuestion.correct_answer,
            ).where(AssessmentQuestion.id.in_(ids))
        ).all()
        return {
            row.id: QuestionSpec(
                id=row.id,
                weight=row.weight,
                negative_weight=row.negative_weight,
                correct_answer=row.correct_answer,
            )
            for row in rows
        }

    def load_job_submissions(
        self, session: Session, job_id: UUID
    ) -> tuple[list[ApplicantSubmission], dict[UUID, QuestionSpec]]:
        """Load latest submissions, answers and referenced questions in one statement.

        Answers pointing at a question that no longer exists come back without a
        matching QuestionSpec; the calculator skips and logs them.
        """
        latest = _latest_assessments(job_id)
        stmt = (
            select(
                latest.c.applicant_id,
                latest.c.assessment_id,
                latest.c.submitted_at,
                ApplicantAnswer.question_id,
                ApplicantAnswer.answer,
                ApplicantAnswer.is_correct,
                AssessmentQuestion.id.label("known_question_id"),
                AssessmentQuestion.weight,
                AssessmentQuestion.negative_weight,
                AssessmentQuestion.correct_answer,
            )
            .select_from(latest)
            .outerjoin(ApplicantAnswer, ApplicantAnswer.assessment_id == latest.c.assessment_id)
            .outerjoin(AssessmentQuestion, AssessmentQuestion.id == ApplicantAnswer.question_id)
            .order_by(latest.c.applicant_id, ApplicantAnswer.id)
        )

        submissions: dict[UUID, ApplicantSubmission] = {}
        questions: dict[UUID, QuestionSpec] = {}
        for row in session.execute(stmt):
            submission = submissions.get(row.applicant_id)
            if submission is None:
                submission = ApplicantSubmission(
                    applicant_id=row.applicant_id,
                    assessment_id=row.assessment_id,
                    submitted_at=row.submitted_at,
                )
                submissions[row.applicant_id] = submission
            if row.question_id is None:
                continue
            submission.answers.append(
                AnswerRecord(
                    question_id=row.question_id,
                    assessment_id=row.assessment_id,
                    is_correct=bool(row.is_correct),
                    raw_answer=row.answer,
                )
            )
            if row.known_question_id is not None and row.known_question_id not in questions:
                questions[row.known_question_id] = QuestionSpec(
                    id=row.known_question_id,
                    weight=row.weight,
                    negative_weight=row.negative_weight,
                    correct_answer=row.correct_answer,
                )
        return list(submissions.values()), questions

    def aggregate_scores(
        self, session: Session, job_id: UUID, rules: ScoringRules, now: datetime
    ) -> list[AggregatedScore]:
        """Compute per-applicant answer totals and recency bonus inside the database.

        The recency cutoff is computed here and bound as a parameter. Percentage
        and the optional floor are applied afterwards by calculator.finalize_score.
        Answers referencing unknown questions contribute nothing; they are logged
        and counted in skipped_answers.
        """
        latest = _latest_assessments(job_id)
        known = AssessmentQuestion.id.isnot(None)
        incorrect = and_(known, not_(ApplicantAnswer.is_correct))
        unknown = and_(ApplicantAnswer.id.isnot(None), AssessmentQuestion.id.is_(None))
        penalty = case(
            (AssessmentQuestion.negative_weight.isnot(None), AssessmentQuestion.negative_weight),
            else_=AssessmentQuestion.weight * rules.negative_marking_fraction,
        )
        points = case(
            (and_(known, ApplicantAnswer.is_correct), AssessmentQuestion.weight),
            (incorrect, -penalty),
            else_=None,
        )
        base_score = func.coalesce(func.sum(points), 0.0)

        cutoff = rules.recency_cutoff(now)
        if cutoff is None:
            recency_bonus = literal(0.0)
        else:
            recency_bonus = case(
                (
                    latest.c.submitted_at >= cutoff,
                    base_score * rules.recency_boost_percent / 100,
                ),
                else_=0.0,
            )

        stmt = (
            select(
                latest.c.applicant_id,
                latest.c.assessment_id,
                latest.c.submitted_at,
                base_score.label("base_score"),
                recency_bonus.label("recency_bonus"),
                func.coalesce(func.sum(AssessmentQuestion.weight), 0.0).label("max_possible_score"),
                func.coalesce(
                    func.sum(case((and_(known, ApplicantAnswer.is_correct), 1), else_=0)), 0
                ).label("correct_answers"),
                func.coalesce(func.sum(case((incorrect, 1), else_=0)), 0).label(
                    "incorrect_answers"
                ),
                func.coalesce(func.sum(case((incorrect, penalty), else_=0.0)), 0.0).label(
                    "negative_marking_penalty"
                ),
                func.coalesce(func.sum(case((unknown, 1), else_=0)), 0).label("skipped_answers"),
            )
            .select_from(latest)
            .outerjoin(ApplicantAnswer, ApplicantAnswer.assessment_id == latest.c.assessment_id)
            .outerjoin(AssessmentQuestion, AssessmentQuestion.id == ApplicantAnswer.question_id)
            .group_by(latest.c.applicant_id, latest.c.assessment_id, latest.c.submitted_at)
        )

        results = [
            AggregatedScore(
                applicant_id=row.applicant_id,
                assessment_id=row.assessment_id,
                submitted_at=row.submitted_at,
                base_score=float(row.base_score),
                max_possible_score=float(row.max_possible_score),
                correct_answers=int(row.correct_answers),
                incorrect_answers=int(row.incorrect_answers),
                negative_marking_penalty=float(row.negative_marking_penalty),
                recency_bonus=float(row.recency_bonus),
                skipped_answers=int(row.skipped_answers),
            )
            for row in session.execute(stmt)
        ]

        for totals in results:
            if totals.skipped_answers:
                logger.warning(
                    "Skipping %d answer(s) in assessment %s that reference unknown questions",
                    totals.skipped_answers,
                    totals.assessment_id,
                )
        return results

    def jobs_for_applicant(self, session: Session, applicant_id: UUID) -> list[UUID]:
        """Jobs for which the applicant has at least one submitted assessment."""
        rows = session.execute(
            select(ApplicantAssessment.job_id)
            .where(ApplicantAssessment.applicant_id == applicant_id)
            .distinct()
        ).scalars()
        return list(rows)
