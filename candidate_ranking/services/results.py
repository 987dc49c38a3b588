"""Value objects returned by the ranking orchestrator."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from candidate_ranking.models.enums import RankingStatusEnum


@dataclass
class RankedCandidate:
    rank: int
    applicant_id: UUID
    assessment_id: UUID
    score: float
    max_possible_score: float
    percentage: float
    correct_answers: int
    incorrect_answers: int
    recency_bonus: float


@dataclass
class RankingCalculationResult:
    """Outcome of one successful recalculation pass.

    is_stale is True when the job was invalidated while the pass was running;
    the rows were written but flagged stale and the job awaits another pass.
    """

    job_id: UUID
    total_candidates: int
    calculation_duration_ms: int
    scoring_config_version: str
    ranked_candidates: list[RankedCandidate] = field(default_factory=list)
    is_stale: bool = False


@dataclass
class CandidateSummary:
    """A top-K entry with the applicant details needed to display it."""

    rank: int
    applicant_id: UUID
    assessment_id: UUID
    first_name: str | None
    last_name: str | None
    email: str
    city: str | None
    country: str | None
    score: float
    max_possible_score: float
    percentage: float
    correct_answers: int
    incorrect_answers: int
    recency_bonus: float
    submitted_at: datetime | None
    calculated_at: datetime | None


@dataclass
class RankingMetadataView:
    status: RankingStatusEnum
    total_candidates: int = 0
    last_calculated_at: datetime | None = None
    calculation_duration_ms: int | None = None
    scoring_config_version: str = ""
    trigger_event: str | None = None
    error_message: str | None = None


@dataclass
class TopCandidatesResponse:
    job_id: UUID
    candidates: list[CandidateSummary]
    metadata: RankingMetadataView


@dataclass
class JobRankingStatus:
    """Metadata plus derived staleness.

    is_stale: status is STALE or any ranking row is flagged stale.
    config_drift: the stored version no longer matches the effective config.
    """

    job_id: UUID
    status: RankingStatusEnum
    total_candidates: int
    last_calculated_at: datetime | None
    calculation_duration_ms: int | None
    scoring_config_version: str
    trigger_event: str | None
    error_message: str | None
    is_stale: bool
    config_drift: bool = False


@dataclass
class InvalidationRequest:
    """Selects the jobs to mark stale. At least one key must be set."""

    trigger_event: str
    job_id: UUID | None = None
    scoring_config_id: UUID | None = None
    applicant_id: UUID | None = None

    @property
    def is_empty(self) -> bool:
        return self.job_id is None and self.scoring_config_id is None and self.applicant_id is None


@dataclass
class BulkRankingOutcome:
    job_id: UUID
    success: bool
    result: RankingCalculationResult | None = None
    error_type: str | None = None
    error: str | None = None


@dataclass
class SweepSummary:
    """What one scheduled sweep did."""

    drifted_jobs: list[UUID] = field(default_factory=list)
    scheduled_jobs: list[UUID] = field(default_factory=list)
    outcomes: list[BulkRankingOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)
