"""Assessment templates, questions, submissions and answers."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from candidate_ranking.models.base import Base
from candidate_ranking.models.enums import QuestionTypeEnum


class AssessmentTemplate(Base):
    """Reusable set of questions, optionally tied to one job."""

    __tablename__ = "assessment_templates"
    __table_args__ = (UniqueConstraint("job_id", "name", name="uq_assessment_template_job_name"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    questions: Mapped[list["AssessmentQuestion"]] = relationship(
        "AssessmentQuestion", back_populates="template", passive_deletes=True
    )


class AssessmentQuestion(Base):
    """Weighted question. negative_weight, when set, replaces the fractional penalty."""

    __tablename__ = "assessment_questions"
    __table_args__ = (
        UniqueConstraint("template_id", "order", name="uq_assessment_question_template_order"),
        CheckConstraint("weight >= 0", name="ck_assessment_question_weight"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    template_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("assessment_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[QuestionTypeEnum] = mapped_column(
        Enum(QuestionTypeEnum, name="question_type"), default=QuestionTypeEnum.MULTIPLE_CHOICE
    )
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    negative_weight: Mapped[float | None] = mapped_column(Float, nullable=True)

    template: Mapped["AssessmentTemplate"] = relationship(
        "AssessmentTemplate", back_populates="questions"
    )


class ApplicantAssessment(Base):
    """One submission of a template by an applicant for a job."""

    __tablename__ = "applicant_assessments"
    __table_args__ = (
        Index("idx_applicant_assessments_applicant_template", "applicant_id", "template_id"),
        Index("idx_applicant_assessments_job_submitted", "job_id", "submitted_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    applicant_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("applicants.id", ondelete="CASCADE"), nullable=False
    )
    job_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    template_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("assessment_templates.id", ondelete="CASCADE"), nullable=False
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    applicant: Mapped["Applicant"] = relationship("Applicant", back_populates="assessments")
    job: Mapped["Job"] = relationship("Job", back_populates="assessments")
    answers: Mapped[list["ApplicantAnswer"]] = relationship(
        "ApplicantAnswer", back_populates="assessment", passive_deletes=True
    )


class ApplicantAnswer(Base):
    """Answer to one question. Immutable once the assessment is submitted."""

    __tablename__ = "applicant_answers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    assessment_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("applicant_assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("assessment_questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    assessment: Mapped["ApplicantAssessment"] = relationship(
        "ApplicantAssessment", back_populates="answers"
    )


# Import for type hints
from candidate_ranking.models.jobs import Applicant, Job  # noqa: E402
