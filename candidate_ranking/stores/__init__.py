from candidate_ranking.stores.assessments import (
    AggregatedScore,
    ApplicantSubmission,
    AssessmentStore,
)
from candidate_ranking.stores.scoring_configs import ScoringConfigStore

__all__ = [
    "AggregatedScore",
    "ApplicantSubmission",
    "AssessmentStore",
    "ScoringConfigStore",
]
