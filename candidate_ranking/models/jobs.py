"""Job and applicant models.

These tables are owned by the CRUD services; the ranking engine only reads them
and relies on their cascade rules.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Enum, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from candidate_ranking.models.base import Base
from candidate_ranking.models.enums import JobStatusEnum


class Job(Base):
    """Job posting that applicants are assessed and ranked against."""

    __tablename__ = "jobs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[JobStatusEnum] = mapped_column(
        Enum(JobStatusEnum, name="job_status"), default=JobStatusEnum.OPEN, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships (passive deletes: the database cascades)
    scoring_config: Mapped["ScoringConfig"] = relationship(
        "ScoringConfig", back_populates="job", uselist=False, passive_deletes=True
    )
    assessments: Mapped[list["ApplicantAssessment"]] = relationship(
        "ApplicantAssessment", back_populates="job", passive_deletes=True
    )


class Applicant(Base):
    """Person applying to jobs."""

    __tablename__ = "applicants"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    country: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    assessments: Mapped[list["ApplicantAssessment"]] = relationship(
        "ApplicantAssessment", back_populates="applicant", passive_deletes=True
    )


# Import for type hints
from candidate_ranking.models.assessments import ApplicantAssessment  # noqa: E402
from candidate_ranking.models.scoring import ScoringConfig  # noqa: E402
