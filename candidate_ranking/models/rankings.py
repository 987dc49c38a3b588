"""Ranking snapshot models.

candidate_rankings holds the derived, cache-like ranking rows for a job; they are
created on first calculation, fully replaced on every recalculation, marked stale
in place by invalidation and cascade-deleted with their job.

job_ranking_metadata is the per-job state machine row. Its CALCULATING status is
the recalculation lock, identified by lock_token.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from candidate_ranking.models.base import Base
from candidate_ranking.models.enums import RankingStatusEnum


class CandidateRanking(Base):
    """Rank and score of one applicant's latest assessment for a job."""

    __tablename__ = "candidate_rankings"
    __table_args__ = (
        UniqueConstraint("job_id", "applicant_id", name="uq_candidate_rankings_job_applicant"),
        Index("idx_candidate_rankings_job_rank", "job_id", "rank"),
        Index("idx_candidate_rankings_job_stale", "job_id", "is_stale"),
        Index("idx_candidate_rankings_config_version", "scoring_config_version"),
        Index("idx_candidate_rankings_calculated_at", "calculated_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    job_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    applicant_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("applicants.id", ondelete="CASCADE"), nullable=False
    )
    assessment_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("applicant_assessments.id", ondelete="CASCADE"), nullable=False
    )

    # ═══════════════════════════════════════════════════════════════════
    # SCORE
    # ═══════════════════════════════════════════════════════════════════
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    max_possible_score: Mapped[float] = mapped_column(Float, nullable=False)
    percentage: Mapped[float] = mapped_column(Float, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False)
    incorrect_answers: Mapped[int] = mapped_column(Integer, nullable=False)
    recency_bonus: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # ═══════════════════════════════════════════════════════════════════
    # SNAPSHOT BOOKKEEPING
    # ═══════════════════════════════════════════════════════════════════
    scoring_config_version: Mapped[str] = mapped_column(String(64), nullable=False)
    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    is_stale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    applicant: Mapped["Applicant"] = relationship("Applicant")
    assessment: Mapped["ApplicantAssessment"] = relationship("ApplicantAssessment")


class JobRankingMetadata(Base):
    """Per-job ranking state: status, counts, timing and the config version used."""

    __tablename__ = "job_ranking_metadata"
    __table_args__ = (
        Index("idx_job_ranking_metadata_status", "status"),
        Index("idx_job_ranking_metadata_last_calculated", "last_calculated_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    job_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    status: Mapped[RankingStatusEnum] = mapped_column(
        Enum(RankingStatusEnum, name="ranking_status"),
        nullable=False,
        default=RankingStatusEnum.CALCULATING,
    )
    total_candidates: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_calculated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    calculation_duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    scoring_config_version: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    trigger_event: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    lock_token: Mapped[str | None] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# Import for type hints
from candidate_ranking.models.assessments import ApplicantAssessment  # noqa: E402
from candidate_ranking.models.jobs import Applicant  # noqa: E402
