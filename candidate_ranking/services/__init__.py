from candidate_ranking.services.ranking_orchestrator import RankingOrchestrator, rank_candidates
from candidate_ranking.services.ranking_repository import RankingRepository, RankingRow
from candidate_ranking.services.results import (
    BulkRankingOutcome,
    CandidateSummary,
    InvalidationRequest,
    JobRankingStatus,
    RankedCandidate,
    RankingCalculationResult,
    RankingMetadataView,
    SweepSummary,
    TopCandidatesResponse,
)

__all__ = [
    "BulkRankingOutcome",
    "CandidateSummary",
    "InvalidationRequest",
    "JobRankingStatus",
    "RankedCandidate",
    "RankingCalculationResult",
    "RankingMetadataView",
    "RankingOrchestrator",
    "RankingRepository",
    "RankingRow",
    "SweepSummary",
    "TopCandidatesResponse",
    "rank_candidates",
]
