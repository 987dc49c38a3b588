"""Database enums for the candidate ranking schema."""

import enum


class RankingStatusEnum(str, enum.Enum):
    """Lifecycle of a job's ranking snapshot.

    A job with no metadata row has never been ranked.
    CALCULATING doubles as the per-job recalculation lock.
    """

    CALCULATING = "CALCULATING"
    COMPLETED = "COMPLETED"
    STALE = "STALE"
    ERROR = "ERROR"


class JobStatusEnum(str, enum.Enum):
    """Job posting status."""

    DRAFT = "DRAFT"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class QuestionTypeEnum(str, enum.Enum):
    """Assessment question format."""

    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    TEXT = "TEXT"


class BulkPriorityEnum(str, enum.Enum):
    """Priority of a bulk recalculation request."""

    HIGH = "high"
    NORMAL = "normal"


class AggregationStrategyEnum(str, enum.Enum):
    """How per-applicant scores are aggregated for a job.

    Both strategies issue one set-oriented query per job.
    PYTHON loads latest answers in one query and scores them with the calculator;
    SQL computes the score columns inside the database.
    """

    PYTHON = "python"
    SQL = "sql"


# Status ordering used when picking jobs for the recalculation sweep.
SWEEP_PRIORITY: dict[RankingStatusEnum, int] = {
    RankingStatusEnum.STALE: 0,
    RankingStatusEnum.ERROR: 1,
    RankingStatusEnum.COMPLETED: 2,
}
