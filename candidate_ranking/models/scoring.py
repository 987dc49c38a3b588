"""Scoring configuration model.

A config is either the single global default (is_default, no job) or bound to
exactly one job. Default uniqueness is maintained by the component that edits
configs; the ranking engine only resolves and reads them.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from candidate_ranking.models.base import Base


class ScoringConfig(Base):
    """Negative marking and recency rules applied when scoring a job's assessments."""

    __tablename__ = "scoring_configs"
    __table_args__ = (
        CheckConstraint(
            "negative_marking_fraction >= 0 AND negative_marking_fraction <= 1",
            name="ck_scoring_config_negative_fraction",
        ),
        CheckConstraint(
            "NOT (is_default AND job_id IS NOT NULL)",
            name="ck_scoring_config_default_or_job",
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    negative_marking_fraction: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    recency_window_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recency_boost_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    job_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=True, unique=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    job: Mapped["Job"] = relationship("Job", back_populates="scoring_config")


# Import for type hints
from candidate_ranking.models.jobs import Job  # noqa: E402
