"""Shared fixtures: a SQLite database per test plus helpers to seed it.

The database is a file under tmp_path so bulk recalculation threads can share it.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select

from candidate_ranking.db import configure_engine, get_session
from candidate_ranking.models import (
    Applicant,
    ApplicantAnswer,
    ApplicantAssessment,
    AssessmentQuestion,
    AssessmentTemplate,
    Base,
    CandidateRanking,
    Job,
    JobRankingMetadata,
    ScoringConfig,
)
from candidate_ranking.services.ranking_orchestrator import RankingOrchestrator
from candidate_ranking.settings import RankingSettings

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def applicant_uuid(n: int) -> UUID:
    """Deterministic applicant ids so tie-break order is predictable."""
    return UUID(int=n)


class Seeder:
    """Creates jobs, applicants, questions, configs and submissions."""

    def __init__(self):
        self._counter = 0

    def _save(self, *objects):
        with get_session() as session:
            session.add_all(objects)
            session.commit()
        return objects[0] if len(objects) == 1 else objects

    def job(self, title: str = "Backend Engineer") -> Job:
        return self._save(Job(id=uuid4(), title=title))

    def applicant(self, n: int | None = None, first_name: str = "Ada", **fields) -> Applicant:
        self._counter += 1
        applicant_id = applicant_uuid(n) if n is not None else uuid4()
        return self._save(
            Applicant(
                id=applicant_id,
                email=fields.pop("email", f"applicant{self._counter}@example.com"),
                first_name=first_name,
                last_name=fields.pop("last_name", "Lovelace"),
                city=fields.pop("city", "London"),
                country=fields.pop("country", "UK"),
                **fields,
            )
        )

    def template(
        self,
        job: Job | None,
        weights: list[float],
        negative_weights: list[float | None] | None = None,
    ) -> tuple[AssessmentTemplate, list[AssessmentQuestion]]:
        """Create a template with one question per weight."""
        negative_weights = negative_weights or [None] * len(weights)
        self._counter += 1
        template = AssessmentTemplate(
            id=uuid4(), name=f"Template {self._counter}", job_id=job.id if job else None
        )
        questions = [
            AssessmentQuestion(
                id=uuid4(),
                template_id=template.id,
                text=f"Question {order}",
                weight=weight,
                order=order,
                correct_answer="A",
                negative_weight=negative_weight,
            )
            for order, (weight, negative_weight) in enumerate(zip(weights, negative_weights))
        ]
        self._save(template)
        if questions:
            self._save(*questions)
        return template, questions

    def default_config(
        self,
        negative_marking_fraction: float = 0.0,
        recency_window_days: int | None = None,
        recency_boost_percent: float | None = None,
        updated_at: datetime | None = None,
    ) -> ScoringConfig:
        return self._save(
            ScoringConfig(
                id=uuid4(),
                negative_marking_fraction=negative_marking_fraction,
                recency_window_days=recency_window_days,
                recency_boost_percent=recency_boost_percent,
                is_default=True,
                updated_at=updated_at or NOW - timedelta(days=30),
            )
        )

    def job_config(
        self,
        job: Job,
        negative_marking_fraction: float = 0.0,
        recency_window_days: int | None = None,
        recency_boost_percent: float | None = None,
    ) -> ScoringConfig:
        return self._save(
            ScoringConfig(
                id=uuid4(),
                job_id=job.id,
                negative_marking_fraction=negative_marking_fraction,
                recency_window_days=recency_window_days,
                recency_boost_percent=recency_boost_percent,
                is_default=False,
                updated_at=NOW - timedelta(days=10),
            )
        )

    def submit(
        self,
        applicant: Applicant,
        job: Job,
        template: AssessmentTemplate,
        answers: list[tuple[AssessmentQuestion, bool]],
        submitted_at: datetime | None = None,
        assessment_id: UUID | None = None,
    ) -> ApplicantAssessment:
        assessment = ApplicantAssessment(
            id=assessment_id or uuid4(),
            applicant_id=applicant.id,
            job_id=job.id,
            template_id=template.id,
            submitted_at=submitted_at or NOW - timedelta(days=60),
        )
        self._save(assessment)
        if answers:
            self._save(
                *[
                    ApplicantAnswer(
                        id=uuid4(),
                        assessment_id=assessment.id,
                        question_id=question.id,
                        answer="A" if is_correct else "B",
                        is_correct=is_correct,
                    )
                    for question, is_correct in answers
                ]
            )
        return assessment


@pytest.fixture
def engine(tmp_path):
    engine = configure_engine(f"sqlite:///{tmp_path / 'rankings.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    session = get_session()
    yield session
    session.close()


@pytest.fixture
def seed(engine) -> Seeder:
    return Seeder()


@pytest.fixture
def settings() -> RankingSettings:
    return RankingSettings(normal_priority_batch_delay_seconds=0)


@pytest.fixture
def orchestrator(engine, settings) -> RankingOrchestrator:
    return RankingOrchestrator(settings=settings, clock=lambda: NOW, sleep=lambda seconds: None)


def load_rankings(job_id: UUID) -> list[CandidateRanking]:
    with get_session() as session:
        return list(
            session.execute(
                select(CandidateRanking)
                .where(CandidateRanking.job_id == job_id)
                .order_by(CandidateRanking.rank)
            ).scalars()
        )


def load_metadata(job_id: UUID) -> JobRankingMetadata | None:
    with get_session() as session:
        return session.execute(
            select(JobRankingMetadata).where(JobRankingMetadata.job_id == job_id)
        ).scalar_one_or_none()
