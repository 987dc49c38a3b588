"""Ranking orchestrator: recalculation, invalidation, sweeping and top-K reads.

Per-job state machine (a job without a metadata row has never been ranked):

    NONE -> CALCULATING -> COMPLETED -> STALE -> CALCULATING
    ERROR -> CALCULATING        CALCULATING -> STALE        any -> ERROR

The orchestrator is the only component that moves a job between states. A
recalculation pass is three short transactions:

    1. acquire the CALCULATING lock (committed on its own)
    2. score the job and replace its rankings under the lock token
    3. on failure only: record ERROR, if the token is still ours

Reads are always served from the stored snapshot.
"""

import logging
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from candidate_ranking.db import get_session
from candidate_ranking.errors import (
    AlreadyCalculating,
    InvalidRankingRequest,
    RankingError,
    StorageError,
)
from candidate_ranking.events import EventBus, EventType, RankingEvent
from candidate_ranking.models.enums import (
    AggregationStrategyEnum,
    BulkPriorityEnum,
    RankingStatusEnum,
)
from candidate_ranking.scoring.calculator import (
    ScoreExplanation,
    ScoreResult,
    ScoringRules,
    compute_score,
    explain_score,
    finalize_score,
)
from candidate_ranking.scoring.versioning import scoring_config_version
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
from candidate_ranking.settings import RankingSettings
from candidate_ranking.stores.assessments import AssessmentStore
from candidate_ranking.stores.scoring_configs import ScoringConfigStore
from candidate_ranking.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

DEFAULT_TRIGGER_EVENT = EventType.MANUAL_TRIGGER.value
BULK_TRIGGER_EVENT = "BULK_RECALCULATION"
SWEEP_TRIGGER_EVENT = "SCHEDULED_SWEEP"
CONFIG_DRIFT_TRIGGER_EVENT = "CONFIG_DRIFT"


def _coerce_uuid(value: UUID | str, name: str = "job_id") -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise InvalidRankingRequest(f"Invalid {name}: {value!r}") from exc


def rank_candidates(scored: Iterable[tuple[UUID, UUID, ScoreResult]]) -> list[RankingRow]:
    """Assign dense ranks 1..N by score descending, ties by ascending applicant id."""
    ordered = sorted(scored, key=lambda item: (-item[2].score, str(item[0])))
    return [
        RankingRow(
            applicant_id=applicant_id,
            assessment_id=assessment_id,
            rank=position,
            score=result.score,
            max_possible_score=result.max_possible_score,
            percentage=result.percentage,
            correct_answers=result.correct_answers,
            incorrect_answers=result.incorrect_answers,
            recency_bonus=result.recency_bonus,
        )
        for position, (applicant_id, assessment_id, result) in enumerate(ordered, start=1)
    ]


def _metadata_view(metadata, force_stale: bool = False) -> RankingMetadataView:
    if metadata is None:
        return RankingMetadataView(status=RankingStatusEnum.STALE)
    return RankingMetadataView(
        status=RankingStatusEnum.STALE if force_stale else metadata.status,
        total_candidates=metadata.total_candidates,
        last_calculated_at=metadata.last_calculated_at,
        calculation_duration_ms=metadata.calculation_duration_ms,
        scoring_config_version=metadata.scoring_config_version,
        trigger_event=metadata.trigger_event,
        error_message=metadata.error_message,
    )


class RankingOrchestrator:
    """Drives ranking recalculation and serves ranking reads for jobs.

    Safe to share between threads: every operation opens its own session from
    session_factory.
    """

    def __init__(
        self,
        settings: RankingSettings | None = None,
        session_factory: Callable[[], Session] | None = None,
        assessments: AssessmentStore | None = None,
        scoring_configs: ScoringConfigStore | None = None,
        repository: RankingRepository | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self.settings = settings or RankingSettings()
        self.assessments = assessments or AssessmentStore()
        self.scoring_configs = scoring_configs or ScoringConfigStore()
        self.repository = repository or RankingRepository(
            lock_timeout_seconds=self.settings.calculation_lock_timeout_seconds
        )
        self.event_bus = event_bus
        self._session_factory = session_factory or get_session
        self._clock = clock or utcnow
        self._sleep = sleep or time.sleep

    @contextmanager
    def _session_scope(self):
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ═══════════════════════════════════════════════════════════════════
    # RECALCULATION
    # ═══════════════════════════════════════════════════════════════════

    def recalculate(
        self, job_id: UUID | str, trigger_event: str = DEFAULT_TRIGGER_EVENT
    ) -> RankingCalculationResult:
        """Recompute and store the rankings for one job.

        Raises:
            JobNotFound: The job does not exist.
            AlreadyCalculating: Another pass holds the lock or took it over.
            ConfigNotFound: No job-specific or default scoring config (status ERROR).
            StorageError: The database rejected the replace (status ERROR).
        """
        job_id = _coerce_uuid(job_id)
        started = time.perf_counter()
        lock_token = self._acquire_lock(job_id, trigger_event)
        logger.info("Recalculating rankings for job %s (trigger=%s)", job_id, trigger_event)

        try:
            result = self._run_pass(job_id, lock_token, started)
        except AlreadyCalculating:
            logger.info("Recalculation of job %s was superseded by a newer pass", job_id)
            raise
        except RankingError as exc:
            self._record_failure(job_id, lock_token, exc.message)
            raise
        except SQLAlchemyError as exc:
            self._record_failure(job_id, lock_token, str(exc))
            raise StorageError(
                f"Failed to store rankings for job {job_id}: {exc}", job_id=job_id
            ) from exc
        except Exception as exc:
            self._record_failure(job_id, lock_token, f"{type(exc).__name__}: {exc}")
            raise

        logger.info(
            "Ranked %d candidates for job %s in %dms (config %s)",
            result.total_candidates,
            job_id,
            result.calculation_duration_ms,
            result.scoring_config_version[:12],
        )
        if self.event_bus is not None:
            self.event_bus.publish(
                EventType.RANKING_CALCULATED,
                {
                    "job_id": job_id,
                    "total_candidates": result.total_candidates,
                    "calculation_duration_ms": result.calculation_duration_ms,
                },
            )
        return result

    def recalculate_job_rankings(
        self, job_id: UUID | str, trigger_event: str = DEFAULT_TRIGGER_EVENT
    ) -> RankingCalculationResult:
        return self.recalculate(job_id, trigger_event)

    def _acquire_lock(self, job_id: UUID, trigger_event: str) -> str:
        try:
            with self._session_scope() as session:
                return self.repository.acquire_lock(session, job_id, trigger_event, self._clock())
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Failed to acquire ranking lock for job {job_id}: {exc}", job_id=job_id
            ) from exc

    def _run_pass(self, job_id: UUID, lock_token: str, started: float) -> RankingCalculationResult:
        with self._session_scope() as session:
            rules = self.scoring_configs.get_effective_config(session, job_id)
            version = scoring_config_version(rules)
            now = self._clock()
            rows = rank_candidates(self._score_job(session, job_id, rules, now))
            duration_ms = int((time.perf_counter() - started) * 1000)
            invalidated = self.repository.replace_rankings(
                session,
                job_id,
                lock_token,
                rows,
                scoring_config_version=version,
                calculated_at=now,
                calculation_duration_ms=duration_ms,
            )

        if invalidated:
            logger.warning(
                "Job %s was invalidated during recalculation; rankings stored as stale", job_id
            )
        return RankingCalculationResult(
            job_id=job_id,
            total_candidates=len(rows),
            calculation_duration_ms=duration_ms,
            scoring_config_version=version,
            ranked_candidates=[
                RankedCandidate(
                    rank=row.rank,
                    applicant_id=row.applicant_id,
                    assessment_id=row.assessment_id,
                    score=row.score,
                    max_possible_score=row.max_possible_score,
                    percentage=row.percentage,
                    correct_answers=row.correct_answers,
                    incorrect_answers=row.incorrect_answers,
                    recency_bonus=row.recency_bonus,
                )
                for row in rows
            ],
            is_stale=invalidated,
        )

    def _score_job(
        self, session: Session, job_id: UUID, rules: ScoringRules, now: datetime
    ) -> list[tuple[UUID, UUID, ScoreResult]]:
        floor = self.settings.floor_scores_at_zero
        if self.settings.aggregation_strategy == AggregationStrategyEnum.SQL:
            return [
                (
                    totals.applicant_id,
                    totals.assessment_id,
                    finalize_score(
                        totals.base_score,
                        totals.max_possible_score,
                        totals.correct_answers,
                        totals.incorrect_answers,
                        rules,
                        totals.submitted_at,
                        now,
                        negative_marking_penalty=totals.negative_marking_penalty,
                        skipped_answers=totals.skipped_answers,
                        floor_at_zero=floor,
                        recency_bonus=totals.recency_bonus,
                    ),
                )
                for totals in self.assessments.aggregate_scores(session, job_id, rules, now)
            ]

        submissions, questions = self.assessments.load_job_submissions(session, job_id)
        return [
            (
                submission.applicant_id,
                submission.assessment_id,
                compute_score(
                    submission.answers,
                    questions,
                    rules,
                    submission.submitted_at,
                    now,
                    floor_at_zero=floor,
                ),
            )
            for submission in submissions
        ]

    def _record_failure(self, job_id: UUID, lock_token: str, message: str) -> None:
        try:
            with self._session_scope() as session:
                recorded = self.repository.mark_error(
                    session, job_id, lock_token, message, self._clock()
                )
        except SQLAlchemyError:
            logger.exception("Could not record ERROR status for job %s", job_id)
            return
        if recorded:
            logger.error("Ranking recalculation failed for job %s: %s", job_id, message)
        else:
            logger.warning(
                "Ranking recalculation failed for job %s after losing its lock: %s",
                job_id,
                message,
            )

    # ═══════════════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════════════

    def get_top_candidates(self, job_id: UUID | str, limit: int = 5) -> TopCandidatesResponse:
        """Top `limit` candidates from the stored snapshot.

        Returns an empty list with STALE metadata when the job has never been
        ranked or its rankings are stale.
        """
        job_id = _coerce_uuid(job_id)
        max_limit = self.settings.max_top_candidates
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= max_limit:
            raise InvalidRankingRequest(
                f"limit must be an integer between 1 and {max_limit}, got {limit!r}",
                job_id=job_id,
            )

        with self._session_scope() as session:
            metadata = self.repository.get_metadata(session, job_id)
            if metadata is None or metadata.status == RankingStatusEnum.STALE:
                return TopCandidatesResponse(
                    job_id=job_id,
                    candidates=[],
                    metadata=_metadata_view(metadata, force_stale=True),
                )

            candidates = [
                CandidateSummary(
                    rank=ranking.rank,
                    applicant_id=ranking.applicant_id,
                    assessment_id=ranking.assessment_id,
                    first_name=applicant.first_name,
                    last_name=applicant.last_name,
                    email=applicant.email,
                    city=applicant.city,
                    country=applicant.country,
                    score=ranking.score,
                    max_possible_score=ranking.max_possible_score,
                    percentage=ranking.percentage,
                    correct_answers=ranking.correct_answers,
                    incorrect_answers=ranking.incorrect_answers,
                    recency_bonus=ranking.recency_bonus,
                    submitted_at=submitted_at,
                    calculated_at=ranking.calculated_at,
                )
                for ranking, applicant, submitted_at in self.repository.get_top_rankings(
                    session, job_id, limit
                )
            ]
            return TopCandidatesResponse(
                job_id=job_id, candidates=candidates, metadata=_metadata_view(metadata)
            )

    def get_job_ranking_status(self, job_id: UUID | str) -> JobRankingStatus:
        job_id = _coerce_uuid(job_id)
        with self._session_scope() as session:
            metadata = self.repository.get_metadata(session, job_id)
            if metadata is None:
                return JobRankingStatus(
                    job_id=job_id,
                    status=RankingStatusEnum.STALE,
                    total_candidates=0,
                    last_calculated_at=None,
                    calculation_duration_ms=None,
                    scoring_config_version="",
                    trigger_event=None,
                    error_message=None,
                    is_stale=True,
                )

            has_stale_rows = self.repository.has_stale_rankings(session, job_id)
            config_drift = False
            if metadata.scoring_config_version:
                rules = self.scoring_configs.find_effective_config(session, job_id)
                config_drift = (
                    rules is not None
                    and scoring_config_version(rules) != metadata.scoring_config_version
                )

            return JobRankingStatus(
                job_id=job_id,
                status=metadata.status,
                total_candidates=metadata.total_candidates,
                last_calculated_at=metadata.last_calculated_at,
                calculation_duration_ms=metadata.calculation_duration_ms,
                scoring_config_version=metadata.scoring_config_version,
                trigger_event=metadata.trigger_event,
                error_message=metadata.error_message,
                is_stale=metadata.status == RankingStatusEnum.STALE or has_stale_rows,
                config_drift=config_drift,
            )

    def explain_candidate_score(
        self, job_id: UUID | str, applicant_id: UUID | str
    ) -> ScoreExplanation | None:
        """Per-answer breakdown of an applicant's current score, computed live."""
        job_id = _coerce_uuid(job_id)
        applicant_id = _coerce_uuid(applicant_id, "applicant_id")
        with self._session_scope() as session:
            rules = self.scoring_configs.get_effective_config(session, job_id)
            submissions, questions = self.assessments.load_job_submissions(session, job_id)
        for submission in submissions:
            if submission.applicant_id == applicant_id:
                return explain_score(
                    submission.answers, questions, rules, submission.submitted_at, self._clock()
                )
        return None

    # ═══════════════════════════════════════════════════════════════════
    # INVALIDATION
    # ═══════════════════════════════════════════════════════════════════

    def invalidate(self, request: InvalidationRequest) -> list[UUID]:
        """Mark every job selected by the request stale. Returns the invalidated jobs."""
        if request.is_empty:
            raise InvalidRankingRequest(
                "Invalidation request must name a job, a scoring config or an applicant"
            )

        job_ids: list[UUID] = []
        with self._session_scope() as session:
            if request.job_id is not None:
                job_ids.append(_coerce_uuid(request.job_id))
            if request.scoring_config_id is not None:
                config_id = _coerce_uuid(request.scoring_config_id, "scoring_config_id")
                job_ids.extend(self.scoring_configs.jobs_using_config(session, config_id))
            if request.applicant_id is not None:
                applicant_id = _coerce_uuid(request.applicant_id, "applicant_id")
                job_ids.extend(self.assessments.jobs_for_applicant(session, applicant_id))

        invalidated = [
            job_id
            for job_id in dict.fromkeys(job_ids)
            if self._mark_stale(job_id, request.trigger_event)
        ]
        logger.info(
            "Invalidated rankings for %d job(s) (trigger=%s)",
            len(invalidated),
            request.trigger_event,
        )
        return invalidated

    def invalidate_rankings(self, request: InvalidationRequest) -> list[UUID]:
        return self.invalidate(request)

    def _mark_stale(self, job_id: UUID, trigger_event: str) -> bool:
        for attempt in (1, 2):
            try:
                with self._session_scope() as session:
                    return self.repository.mark_stale(
                        session, job_id, trigger_event, self._clock()
                    )
            except IntegrityError as exc:
                if attempt == 2:
                    raise StorageError(
                        f"Failed to mark job {job_id} stale: {exc}", job_id=job_id
                    ) from exc
                logger.info("Metadata for job %s created concurrently, retrying", job_id)
            except SQLAlchemyError as exc:
                raise StorageError(
                    f"Failed to mark job {job_id} stale: {exc}", job_id=job_id
                ) from exc
        return False

    def detect_config_drift(self, limit: int | None = None) -> list[UUID]:
        """Mark COMPLETED jobs stale whose stored config version is outdated."""
        with self._session_scope() as session:
            completed = self.repository.list_completed_versions(session, limit)
            effective = self.scoring_configs.effective_configs_for_jobs(
                session, [job_id for job_id, _ in completed]
            )

        drifted = []
        for job_id, stored_version in completed:
            rules = effective.get(job_id)
            if rules is not None and scoring_config_version(rules) != stored_version:
                drifted.append(job_id)

        for job_id in drifted:
            self._mark_stale(job_id, CONFIG_DRIFT_TRIGGER_EVENT)
        if drifted:
            logger.info("Scoring config drift detected for %d job(s)", len(drifted))
        return drifted

    # ═══════════════════════════════════════════════════════════════════
    # SCHEDULING
    # ═══════════════════════════════════════════════════════════════════

    def list_jobs_needing_recalculation(self, limit: int | None = None) -> list[UUID]:
        limit = self.settings.stale_sweep_limit if limit is None else limit
        if limit < 1:
            raise InvalidRankingRequest(f"limit must be positive, got {limit}")
        with self._session_scope() as session:
            return self.repository.list_jobs_needing_recalculation(
                session,
                self._clock(),
                timedelta(hours=self.settings.freshness_window_hours),
                limit,
            )

    def process_bulk_rankings(
        self,
        job_ids: Iterable[UUID | str],
        trigger_event: str = BULK_TRIGGER_EVENT,
        priority: BulkPriorityEnum | str = BulkPriorityEnum.NORMAL,
    ) -> list[BulkRankingOutcome]:
        """Recalculate several jobs in parallel batches, isolating failures per job.

        High priority runs larger batches back to back. Normal priority runs
        smaller batches with a pause between them.
        """
        unique_ids = list(dict.fromkeys(_coerce_uuid(job_id) for job_id in job_ids))
        max_jobs = self.settings.max_bulk_jobs
        if not 1 <= len(unique_ids) <= max_jobs:
            raise InvalidRankingRequest(
                f"Bulk recalculation takes between 1 and {max_jobs} jobs, got {len(unique_ids)}"
            )
        try:
            priority = BulkPriorityEnum(priority)
        except ValueError as exc:
            raise InvalidRankingRequest(f"Unknown priority {priority!r}") from exc

        if priority == BulkPriorityEnum.HIGH:
            batch_size = self.settings.high_priority_batch_size
            delay = 0.0
        else:
            batch_size = self.settings.normal_priority_batch_size
            delay = self.settings.normal_priority_batch_delay_seconds

        logger.info(
            "Bulk recalculation of %d job(s), priority=%s, batch size %d",
            len(unique_ids),
            priority.value,
            batch_size,
        )
        outcomes: list[BulkRankingOutcome] = []
        for start in range(0, len(unique_ids), batch_size):
            if start and delay:
                self._sleep(delay)
            batch = unique_ids[start : start + batch_size]
            with ThreadPoolExecutor(max_workers=len(batch)) as pool:
                futures = [
                    (job_id, pool.submit(self.recalculate, job_id, trigger_event))
                    for job_id in batch
                ]
                for job_id, future in futures:
                    outcomes.append(self._bulk_outcome(job_id, future))
        return outcomes

    @staticmethod
    def _bulk_outcome(job_id: UUID, future) -> BulkRankingOutcome:
        try:
            result = future.result()
        except AlreadyCalculating as exc:
            logger.info("Skipping job %s: %s", job_id, exc.message)
            return BulkRankingOutcome(
                job_id=job_id, success=False, error_type=type(exc).__name__, error=exc.message
            )
        except Exception as exc:
            logger.exception("Bulk recalculation failed for job %s", job_id)
            return BulkRankingOutcome(
                job_id=job_id, success=False, error_type=type(exc).__name__, error=str(exc)
            )
        return BulkRankingOutcome(job_id=job_id, success=True, result=result)

    def schedule_stale_job_recalculations(self) -> SweepSummary:
        """Detect config drift, then recalculate the jobs most in need of it."""
        drifted = self.detect_config_drift()
        limit = min(self.settings.stale_sweep_limit, self.settings.max_bulk_jobs)
        job_ids = self.list_jobs_needing_recalculation(limit)
        if not job_ids:
            logger.info("No jobs need ranking recalculation")
            return SweepSummary(drifted_jobs=drifted)

        outcomes = self.process_bulk_rankings(
            job_ids, SWEEP_TRIGGER_EVENT, BulkPriorityEnum.NORMAL
        )
        summary = SweepSummary(drifted_jobs=drifted, scheduled_jobs=job_ids, outcomes=outcomes)
        logger.info(
            "Ranking sweep finished: %d scheduled, %d succeeded, %d failed",
            len(job_ids),
            summary.succeeded,
            summary.failed,
        )
        return summary

    # ═══════════════════════════════════════════════════════════════════
    # EVENT HANDLERS
    # ═══════════════════════════════════════════════════════════════════

    def register_event_handlers(self, bus: EventBus) -> None:
        """Subscribe to invalidation events and publish RANKING_CALCULATED on bus."""
        self.event_bus = bus
        bus.subscribe(EventType.ASSESSMENT_SUBMITTED, self.handle_assessment_submitted)
        bus.subscribe(EventType.SCORING_CONFIG_CHANGED, self.handle_scoring_config_changed)
        bus.subscribe(EventType.JOB_UPDATED, self.handle_job_updated)
        bus.subscribe(EventType.APPLICANT_UPDATED, self.handle_applicant_updated)

    def handle_assessment_submitted(self, event: RankingEvent) -> None:
        job_id = _coerce_uuid(event.payload["job_id"])
        trigger = f"{EventType.ASSESSMENT_SUBMITTED.value}:{event.payload.get('assessment_id')}"
        self._mark_stale(job_id, trigger)
        try:
            self.recalculate(job_id, trigger)
        except AlreadyCalculating:
            logger.info("Job %s is already being recalculated; leaving it to the sweep", job_id)

    def handle_scoring_config_changed(self, event: RankingEvent) -> None:
        config_id = event.payload.get("config_id")
        job_id = event.payload.get("job_id")
        trigger = f"{EventType.SCORING_CONFIG_CHANGED.value}:{config_id}"
        if job_id is not None:
            request = InvalidationRequest(trigger_event=trigger, job_id=_coerce_uuid(job_id))
        else:
            request = InvalidationRequest(
                trigger_event=trigger,
                scoring_config_id=_coerce_uuid(config_id, "config_id"),
            )
        self.invalidate(request)
        if self.settings.eager_sweep_on_config_change:
            self.schedule_stale_job_recalculations()

    def handle_job_updated(self, event: RankingEvent) -> None:
        job_id = _coerce_uuid(event.payload["job_id"])
        self.invalidate(
            InvalidationRequest(
                trigger_event=f"{EventType.JOB_UPDATED.value}:{job_id}", job_id=job_id
            )
        )

    def handle_applicant_updated(self, event: RankingEvent) -> None:
        applicant_id = _coerce_uuid(event.payload["applicant_id"], "applicant_id")
        self.invalidate(
            InvalidationRequest(
                trigger_event=f"{EventType.APPLICANT_UPDATED.value}:{applicant_id}",
                applicant_id=applicant_id,
            )
        )
