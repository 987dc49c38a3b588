"""Create candidate ranking schema.

Revision ID: 20261018_ranking_schema
Revises:
Create Date: 2026-10-18

- jobs, applicants (read-only for the ranking engine)
- assessment_templates, assessment_questions, applicant_assessments, applicant_answers
- scoring_configs (per-job or single global default)
- candidate_rankings (derived ranking snapshot per job)
- job_ranking_metadata (per-job status; CALCULATING is the recalculation lock)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "20261018_ranking_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

job_status = sa.Enum("DRAFT", "OPEN", "CLOSED", name="job_status")
question_type = sa.Enum("MULTIPLE_CHOICE", "TRUE_FALSE", "TEXT", name="question_type")
ranking_status = sa.Enum("CALCULATING", "COMPLETED", "STALE", "ERROR", name="ranking_status")


def _timestamp(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=nullable
    )


def upgrade() -> None:
    op.create_table(
        "jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", job_status, nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_jobs_status", "jobs", ["status"])

    op.create_table(
        "applicants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("country", sa.Text(), nullable=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "assessment_templates",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "job_id", sa.Uuid(), sa.ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True
        ),
        _timestamp("created_at"),
        sa.UniqueConstraint("job_id", "name", name="uq_assessment_template_job_name"),
    )

    op.create_table(
        "assessment_questions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "template_id",
            sa.Uuid(),
            sa.ForeignKey("assessment_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("question_type", question_type, nullable=True),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("correct_answer", sa.Text(), nullable=True),
        sa.Column("negative_weight", sa.Float(), nullable=True),
        sa.UniqueConstraint("template_id", "order", name="uq_assessment_question_template_order"),
        sa.CheckConstraint("weight >= 0", name="ck_assessment_question_weight"),
    )
    op.create_index(
        "ix_assessment_questions_template_id", "assessment_questions", ["template_id"]
    )

    op.create_table(
        "applicant_assessments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "applicant_id",
            sa.Uuid(),
            sa.ForeignKey("applicants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "job_id", sa.Uuid(), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "template_id",
            sa.Uuid(),
            sa.ForeignKey("assessment_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("submitted_at", nullable=False),
    )
    op.create_index(
        "idx_applicant_assessments_applicant_template",
        "applicant_assessments",
        ["applicant_id", "template_id"],
    )
    op.create_index(
        "idx_applicant_assessments_job_submitted",
        "applicant_assessments",
        ["job_id", "submitted_at"],
    )

    op.create_table(
        "applicant_answers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "assessment_id",
            sa.Uuid(),
            sa.ForeignKey("applicant_assessments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "question_id",
            sa.Uuid(),
            sa.ForeignKey("assessment_questions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("answer", sa.Text(), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_applicant_answers_assessment_id", "applicant_answers", ["assessment_id"])
    op.create_index("ix_applicant_answers_question_id", "applicant_answers", ["question_id"])

    op.create_table(
        "scoring_configs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("negative_marking_fraction", sa.Float(), nullable=False),
        sa.Column("recency_window_days", sa.Integer(), nullable=True),
        sa.Column("recency_boost_percent", sa.Float(), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column(
            "job_id",
            sa.Uuid(),
            sa.ForeignKey("jobs.id", ondelete="CASCADE"),
            nullable=True,
            unique=True,
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "negative_marking_fraction >= 0 AND negative_marking_fraction <= 1",
            name="ck_scoring_config_negative_fraction",
        ),
        sa.CheckConstraint(
            "NOT (is_default AND job_id IS NOT NULL)",
            name="ck_scoring_config_default_or_job",
        ),
    )

    op.create_table(
        "candidate_rankings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "job_id", sa.Uuid(), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "applicant_id",
            sa.Uuid(),
            sa.ForeignKey("applicants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "assessment_id",
            sa.Uuid(),
            sa.ForeignKey("applicant_assessments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("max_possible_score", sa.Float(), nullable=False),
        sa.Column("percentage", sa.Float(), nullable=False),
        sa.Column("correct_answers", sa.Integer(), nullable=False),
        sa.Column("incorrect_answers", sa.Integer(), nullable=False),
        sa.Column("recency_bonus", sa.Float(), nullable=False),
        sa.Column("scoring_config_version", sa.String(64), nullable=False),
        _timestamp("calculated_at", nullable=False),
        sa.Column("is_stale", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("job_id", "applicant_id", name="uq_candidate_rankings_job_applicant"),
    )
    op.create_index("idx_candidate_rankings_job_rank", "candidate_rankings", ["job_id", "rank"])
    op.create_index(
        "idx_candidate_rankings_job_stale", "candidate_rankings", ["job_id", "is_stale"]
    )
    op.create_index(
        "idx_candidate_rankings_config_version", "candidate_rankings", ["scoring_config_version"]
    )
    op.create_index(
        "idx_candidate_rankings_calculated_at", "candidate_rankings", ["calculated_at"]
    )

    op.create_table(
        "job_ranking_metadata",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "job_id",
            sa.Uuid(),
            sa.ForeignKey("jobs.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("status", ranking_status, nullable=False),
        sa.Column("total_candidates", sa.Integer(), nullable=False),
        sa.Column("last_calculated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("calculation_duration_ms", sa.Integer(), nullable=True),
        sa.Column("scoring_config_version", sa.String(64), nullable=False),
        sa.Column("trigger_event", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("lock_token", sa.String(36), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at", nullable=False),
    )
    op.create_index("idx_job_ranking_metadata_status", "job_ranking_metadata", ["status"])
    op.create_index(
        "idx_job_ranking_metadata_last_calculated", "job_ranking_metadata", ["last_calculated_at"]
    )


def downgrade() -> None:
    op.drop_table("job_ranking_metadata")
    op.drop_table("candidate_rankings")
    op.drop_table("scoring_configs")
    op.drop_table("applicant_answers")
    op.drop_table("applicant_assessments")
    op.drop_table("assessment_questions")
    op.drop_table("assessment_templates")
    op.drop_table("applicants")
    op.drop_table("jobs")
    ranking_status.drop(op.get_bind(), checkfirst=True)
    question_type.drop(op.get_bind(), checkfirst=True)
    job_status.drop(op.get_bind(), checkfirst=True)
