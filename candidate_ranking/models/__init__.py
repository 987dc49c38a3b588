"""SQLAlchemy models for the candidate ranking database."""

from candidate_ranking.models.base import Base
from candidate_ranking.models.enums import (
    AggregationStrategyEnum,
    BulkPriorityEnum,
    JobStatusEnum,
    QuestionTypeEnum,
    RankingStatusEnum,
)
from candidate_ranking.models.jobs import Applicant, Job
from candidate_ranking.models.assessments import (
    ApplicantAnswer,
    ApplicantAssessment,
    AssessmentQuestion,
    AssessmentTemplate,
)
from candidate_ranking.models.scoring import ScoringConfig
from candidate_ranking.models.rankings import CandidateRanking, JobRankingMetadata

__all__ = [
    # Base
    "Base",
    # Enums
    "AggregationStrategyEnum",
    "BulkPriorityEnum",
    "JobStatusEnum",
    "QuestionTypeEnum",
    "RankingStatusEnum",
    # Jobs and applicants
    "Job",
    "Applicant",
    # Assessments
    "AssessmentTemplate",
    "AssessmentQuestion",
    "ApplicantAssessment",
    "ApplicantAnswer",
    # Scoring
    "ScoringConfig",
    # Rankings
    "CandidateRanking",
    "JobRankingMetadata",
]
