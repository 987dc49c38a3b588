"""Typed errors raised by the ranking engine.

The orchestrator is the only component that turns these into metadata state
transitions; callers receive them unchanged.
"""

from uuid import UUID


class RankingError(Exception):
    """Base class for ranking engine errors."""

    def __init__(self, message: str, job_id: UUID | str | None = None):
        super().__init__(message)
        self.message = message
        self.job_id = job_id


class ConfigNotFound(RankingError):
    """Neither a job-specific nor a default scoring configuration exists."""

    def __init__(self, job_id: UUID | str):
        super().__init__(f"No scoring configuration found for job {job_id}", job_id=job_id)


class AlreadyCalculating(RankingError):
    """Another recalculation holds the job's lock. Safe to retry later."""

    def __init__(self, job_id: UUID | str, detail: str = "recalculation already in progress"):
        super().__init__(f"Job {job_id}: {detail}", job_id=job_id)


class AssessmentDataInconsistent(RankingError):
    """An answer cannot be scored, e.g. it references an unknown question."""

    def __init__(self, message: str, question_id: UUID | str | None = None):
        super().__init__(message)
        self.question_id = question_id


class StorageError(RankingError):
    """The database rejected the ranking replace or a metadata transition."""


class InvalidRankingRequest(RankingError, ValueError):
    """Caller supplied out-of-range or incomplete arguments."""


class JobNotFound(RankingError):
    """The job does not exist, so there is nothing to rank or lock."""

    def __init__(self, job_id: UUID | str):
        super().__init__(f"Job {job_id} not found", job_id=job_id)
