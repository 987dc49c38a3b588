"""Persistence for candidate_rankings and job_ranking_metadata.

Every method runs inside the caller's session and transaction; the orchestrator
decides where transactions begin and end. Metadata writes are explicit
update-if-present / insert-if-absent statements.

Lock protocol (status CALCULATING is the lock, lock_token identifies its holder):
  - acquire_lock: conditional UPDATE, or INSERT relying on the unique job_id
  - replace_rankings: re-reads the metadata row FOR UPDATE and only writes when
    the caller still holds the token
  - mark_error: only applies while the caller still holds the token
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy import and_, case, delete, exists, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from candidate_ranking.errors import AlreadyCalculating, JobNotFound
from candidate_ranking.models.assessments import ApplicantAssessment
from candidate_ranking.models.enums import SWEEP_PRIORITY, RankingStatusEnum
from candidate_ranking.models.jobs import Applicant, Job
from candidate_ranking.models.rankings import CandidateRanking, JobRankingMetadata

logger = logging.getLogger(__name__)

ERROR_MESSAGE_MAX_LENGTH = 2000

# In-memory objects are not synchronized after bulk UPDATEs; sessions are short-lived.
_NO_SYNC = {"synchronize_session": False}


@dataclass
class RankingRow:
    """A scored and ranked candidate, ready to be written."""

    applicant_id: UUID
    assessment_id: UUID
    rank: int
    score: float
    max_possible_score: float
    percentage: float
    correct_answers: int
    incorrect_answers: int
    recency_bonus: float


class RankingRepository:
    """Reads and writes ranking snapshots and per-job ranking state."""

    def __init__(self, lock_timeout_seconds: int = 900):
        self.lock_timeout = timedelta(seconds=lock_timeout_seconds)

    # ═══════════════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════════════

    def get_metadata(self, session: Session, job_id: UUID) -> JobRankingMetadata | None:
        return session.execute(
            select(JobRankingMetadata).where(JobRankingMetadata.job_id == job_id)
        ).scalar_one_or_none()

    def job_exists(self, session: Session, job_id: UUID) -> bool:
        return session.get(Job, job_id) is not None

    def has_stale_rankings(self, session: Session, job_id: UUID) -> bool:
        return bool(
            session.scalar(
                select(
                    exists().where(
                        CandidateRanking.job_id == job_id,
                        CandidateRanking.is_stale.is_(True),
                    )
                )
            )
        )

    def list_rankings(self, session: Session, job_id: UUID) -> list[CandidateRanking]:
        """All ranking rows for a job, stale or not, by rank."""
        return list(
            session.execute(
                select(CandidateRanking)
                .where(CandidateRanking.job_id == job_id)
                .order_by(CandidateRanking.rank)
            ).scalars()
        )

    def get_top_rankings(self, session: Session, job_id: UUID, limit: int) -> list:
        """Non-stale rankings by rank, with applicant details and submission time.

        Returns rows of (CandidateRanking, Applicant, submitted_at) from one query.
        """
        stmt = (
            select(CandidateRanking, Applicant, ApplicantAssessment.submitted_at)
            .join(Applicant, Applicant.id == CandidateRanking.applicant_id)
            .join(ApplicantAssessment, ApplicantAssessment.id == CandidateRanking.assessment_id)
            .where(CandidateRanking.job_id == job_id, CandidateRanking.is_stale.is_(False))
            .order_by(CandidateRanking.rank)
            .limit(limit)
        )
        return list(session.execute(stmt).all())

    def list_jobs_needing_recalculation(
        self, session: Session, now: datetime, freshness_window: timedelta, limit: int
    ) -> list[UUID]:
        """STALE and ERROR jobs first, then the least recently calculated.

        Includes COMPLETED jobs older than the freshness window and CALCULATING
        jobs whose lock has expired.
        """
        status = JobRankingMetadata.status
        freshness_cutoff = now - freshness_window
        lock_expiry = now - self.lock_timeout

        abandoned = and_(
            status == RankingStatusEnum.CALCULATING,
            JobRankingMetadata.updated_at < lock_expiry,
        )
        priority = case(
            (abandoned, SWEEP_PRIORITY[RankingStatusEnum.ERROR]),
            *[(status == value, rank) for value, rank in SWEEP_PRIORITY.items()],
            else_=len(SWEEP_PRIORITY),
        )
        stmt = (
            select(JobRankingMetadata.job_id)
            .where(
                or_(
                    status.in_([RankingStatusEnum.STALE, RankingStatusEnum.ERROR]),
                    and_(
                        status == RankingStatusEnum.COMPLETED,
                        or_(
                            JobRankingMetadata.last_calculated_at.is_(None),
                            JobRankingMetadata.last_calculated_at < freshness_cutoff,
                        ),
                    ),
                    abandoned,
                )
            )
            .order_by(
                priority,
                JobRankingMetadata.last_calculated_at.asc().nulls_first(),
                JobRankingMetadata.job_id,
            )
            .limit(limit)
        )
        return list(session.execute(stmt).scalars())

    def list_completed_versions(
        self, session: Session, limit: int | None = None
    ) -> list[tuple[UUID, str]]:
        """(job_id, scoring_config_version) of COMPLETED jobs, oldest calculation first."""
        stmt = (
            select(JobRankingMetadata.job_id, JobRankingMetadata.scoring_config_version)
            .where(JobRankingMetadata.status == RankingStatusEnum.COMPLETED)
            .order_by(JobRankingMetadata.last_calculated_at.asc().nulls_first())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [(row.job_id, row.scoring_config_version) for row in session.execute(stmt)]

    def count_by_status(self, session: Session) -> dict[RankingStatusEnum, int]:
        rows = session.execute(
            select(JobRankingMetadata.status, func.count()).group_by(JobRankingMetadata.status)
        )
        return {status: count for status, count in rows}

    # ═══════════════════════════════════════════════════════════════════
    # LOCK TRANSITIONS
    # ═══════════════════════════════════════════════════════════════════

    def acquire_lock(
        self, session: Session, job_id: UUID, trigger_event: str, now: datetime
    ) -> str:
        """Move the job to CALCULATING and return the new lock token.

        Raises:
            JobNotFound: The job row does not exist.
            AlreadyCalculating: Another pass holds an unexpired lock.
        """
        token = str(uuid4())
        lock_expiry = now - self.lock_timeout
        stmt = (
            update(JobRankingMetadata)
            .where(
                JobRankingMetadata.job_id == job_id,
                or_(
                    JobRankingMetadata.status != RankingStatusEnum.CALCULATING,
                    JobRankingMetadata.updated_at < lock_expiry,
                ),
            )
            .values(
                status=RankingStatusEnum.CALCULATING,
                lock_token=token,
                trigger_event=trigger_event,
                error_message=None,
                updated_at=now,
            )
        )
        if session.execute(stmt, execution_options=_NO_SYNC).rowcount == 1:
            return token

        if self.get_metadata(session, job_id) is not None:
            raise AlreadyCalculating(job_id)
        if not self.job_exists(session, job_id):
            raise JobNotFound(job_id)

        session.add(
            JobRankingMetadata(
                job_id=job_id,
                status=RankingStatusEnum.CALCULATING,
                total_candidates=0,
                scoring_config_version="",
                trigger_event=trigger_event,
                lock_token=token,
                created_at=now,
                updated_at=now,
            )
        )
        try:
            session.flush()
        except IntegrityError as exc:
            raise AlreadyCalculating(job_id) from exc
        return token

    def replace_rankings(
        self,
        session: Session,
        job_id: UUID,
        lock_token: str,
        rows: list[RankingRow],
        *,
        scoring_config_version: str,
        calculated_at: datetime,
        calculation_duration_ms: int,
    ) -> bool:
        """Delete and re-insert the job's rankings, then record completion.

        Returns True when the job was invalidated while the rows were being
        computed: the rows are then written flagged stale and the status stays
        STALE.

        Raises:
            AlreadyCalculating: A newer pass took over the lock; nothing is written.
        """
        metadata = session.execute(
            select(JobRankingMetadata)
            .where(JobRankingMetadata.job_id == job_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if metadata is None or metadata.lock_token != lock_token:
            raise AlreadyCalculating(job_id, "superseded by a newer recalculation")

        invalidated = metadata.status == RankingStatusEnum.STALE

        session.execute(delete(CandidateRanking).where(CandidateRanking.job_id == job_id))
        if rows:
            session.execute(
                insert(CandidateRanking),
                [
                    {
                        "job_id": job_id,
                        "applicant_id": row.applicant_id,
                        "assessment_id": row.assessment_id,
                        "rank": row.rank,
                        "score": row.score,
                        "max_possible_score": row.max_possible_score,
                        "percentage": row.percentage,
                        "correct_answers": row.correct_answers,
                        "incorrect_answers": row.incorrect_answers,
                        "recency_bonus": row.recency_bonus,
                        "scoring_config_version": scoring_config_version,
                        "calculated_at": calculated_at,
                        "is_stale": invalidated,
                    }
                    for row in rows
                ],
            )

        metadata.total_candidates = len(rows)
        metadata.last_calculated_at = calculated_at
        metadata.calculation_duration_ms = calculation_duration_ms
        metadata.scoring_config_version = scoring_config_version
        metadata.error_message = None
        metadata.lock_token = None
        metadata.updated_at = calculated_at
        if not invalidated:
            metadata.status = RankingStatusEnum.COMPLETED
        session.flush()
        return invalidated

    def mark_error(
        self, session: Session, job_id: UUID, lock_token: str, message: str, now: datetime
    ) -> bool:
        """Record a failed pass. No-op when another pass has taken over the lock."""
        stmt = (
            update(JobRankingMetadata)
            .where(
                JobRankingMetadata.job_id == job_id,
                JobRankingMetadata.lock_token == lock_token,
            )
            .values(
                status=RankingStatusEnum.ERROR,
                error_message=message[:ERROR_MESSAGE_MAX_LENGTH],
                lock_token=None,
                updated_at=now,
            )
        )
        return session.execute(stmt, execution_options=_NO_SYNC).rowcount == 1

    # ═══════════════════════════════════════════════════════════════════
    # INVALIDATION
    # ═══════════════════════════════════════════════════════════════════

    def mark_stale(
        self, session: Session, job_id: UUID, trigger_event: str, now: datetime
    ) -> bool:
        """Flag the job's rankings stale and move its metadata to STALE.

        Creates the metadata row when the job has never been ranked. Returns False
        for an unknown job. The lock token is left alone so an in-flight pass can
        still finish and write its rows flagged stale.
        """
        session.execute(
            update(CandidateRanking)
            .where(CandidateRanking.job_id == job_id)
            .values(is_stale=True),
            execution_options=_NO_SYNC,
        )
        result = session.execute(
            update(JobRankingMetadata)
            .where(JobRankingMetadata.job_id == job_id)
            .values(status=RankingStatusEnum.STALE, trigger_event=trigger_event, updated_at=now),
            execution_options=_NO_SYNC,
        )
        if result.rowcount == 1:
            return True

        if not self.job_exists(session, job_id):
            logger.info("Job %s not found; nothing to invalidate", job_id)
            return False

        session.add(
            JobRankingMetadata(
                job_id=job_id,
                status=RankingStatusEnum.STALE,
                total_candidates=0,
                scoring_config_version="",
                trigger_event=trigger_event,
                created_at=now,
                updated_at=now,
            )
        )
        session.flush()
        return True
