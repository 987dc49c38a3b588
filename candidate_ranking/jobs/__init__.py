"""Dagster jobs for the candidate ranking engine.

Jobs available in the Dagster dashboard:

- stale_rankings_sweep_job: detect config drift, then recalculate the jobs whose
  rankings are STALE, ERROR or older than the freshness window
- bulk_rankings_job: recalculate an explicit list of jobs (run config: job_ids,
  trigger_event, priority)
- invalidate_rankings_job: mark rankings stale by job, scoring config or applicant

The sweep runs every 15 minutes via stale_rankings_sweep_schedule; the
stale_rankings_sensor launches bulk_rankings_job between sweeps.
"""

from dagster import (
    Backoff,
    Config,
    Failure,
    Jitter,
    OpExecutionContext,
    RetryPolicy,
    ScheduleDefinition,
    job,
    op,
)
from pydantic import Field

from candidate_ranking.errors import AlreadyCalculating
from candidate_ranking.services.results import BulkRankingOutcome, InvalidationRequest

# Retry policy for transient database errors (connection drops, lock timeouts)
ranking_retry_policy = RetryPolicy(
    max_retries=2,
    delay=5,
    backoff=Backoff.EXPONENTIAL,
    jitter=Jitter.PLUS_MINUS,
)


def _outcome_to_dict(outcome: BulkRankingOutcome) -> dict:
    summary = {
        "job_id": str(outcome.job_id),
        "success": outcome.success,
    }
    if outcome.result is not None:
        summary["total_candidates"] = outcome.result.total_candidates
        summary["calculation_duration_ms"] = outcome.result.calculation_duration_ms
        summary["is_stale"] = outcome.result.is_stale
    if not outcome.success:
        summary["error_type"] = outcome.error_type
        summary["error"] = outcome.error
    return summary


def _raise_on_hard_failures(outcomes: list[BulkRankingOutcome]) -> None:
    """Fail the op when a job failed for a reason other than a held lock."""
    hard_failures = [
        outcome
        for outcome in outcomes
        if not outcome.success and outcome.error_type != AlreadyCalculating.__name__
    ]
    if hard_failures:
        raise Failure(
            description=f"{len(hard_failures)} of {len(outcomes)} ranking recalculations failed",
            metadata={
                "failures": "\n".join(
                    f"{outcome.job_id}: {outcome.error_type}: {outcome.error}"
                    for outcome in hard_failures
                )
            },
        )


# =============================================================================
# SWEEP
# =============================================================================


@op(
    required_resource_keys={"ranking_engine"},
    tags={"dagster/concurrency_key": "ranking_sweep"},
    description="Detect config drift and recalculate stale, failed and outdated job rankings",
)
def run_stale_rankings_sweep(context: OpExecutionContext) -> dict:
    orchestrator = context.resources.ranking_engine.get_orchestrator()
    summary = orchestrator.schedule_stale_job_recalculations()

    if summary.drifted_jobs:
        context.log.info(f"Config drift marked {len(summary.drifted_jobs)} job(s) stale")
    if not summary.scheduled_jobs:
        context.log.info("No jobs need ranking recalculation")
    else:
        context.log.info(
            f"Recalculated {len(summary.scheduled_jobs)} job(s): "
            f"{summary.succeeded} succeeded, {summary.failed} failed"
        )
    for outcome in summary.outcomes:
        if not outcome.success:
            context.log.warning(f"Job {outcome.job_id}: {outcome.error_type}: {outcome.error}")

    return {
        "drifted_jobs": [str(job_id) for job_id in summary.drifted_jobs],
        "scheduled_jobs": [str(job_id) for job_id in summary.scheduled_jobs],
        "succeeded": summary.succeeded,
        "failed": summary.failed,
        "outcomes": [_outcome_to_dict(outcome) for outcome in summary.outcomes],
    }


@job(
    description="Recalculate rankings for jobs that are stale, failed or past the freshness window",
    op_retry_policy=ranking_retry_policy,
)
def stale_rankings_sweep_job():
    """Scheduled sweep. Failures of individual jobs are reported, not raised."""
    run_stale_rankings_sweep()


stale_rankings_sweep_schedule = ScheduleDefinition(
    name="stale_rankings_sweep",
    cron_schedule="*/15 * * * *",
    job=stale_rankings_sweep_job,
    description="Sweep stale candidate rankings every 15 minutes",
)


# =============================================================================
# BULK RECALCULATION
# =============================================================================


class BulkRankingConfig(Config):
    """Run config for bulk_rankings_job."""

    job_ids: list[str] = Field(description="Job UUIDs to recalculate (1 to 50)")
    trigger_event: str = "BULK_RECALCULATION"
    priority: str = Field(default="normal", description="'high' or 'normal'")


@op(
    required_resource_keys={"ranking_engine"},
    description="Recalculate rankings for the configured jobs in parallel batches",
)
def recalculate_rankings_bulk(context: OpExecutionContext, config: BulkRankingConfig) -> dict:
    orchestrator = context.resources.ranking_engine.get_orchestrator()
    context.log.info(
        f"Bulk recalculation of {len(config.job_ids)} job(s) with priority {config.priority}"
    )
    outcomes = orchestrator.process_bulk_rankings(
        config.job_ids, config.trigger_event, config.priority
    )

    succeeded = sum(1 for outcome in outcomes if outcome.success)
    context.log.info(f"Bulk recalculation: {succeeded}/{len(outcomes)} succeeded")
    for outcome in outcomes:
        if not outcome.success:
            context.log.warning(f"Job {outcome.job_id}: {outcome.error_type}: {outcome.error}")

    _raise_on_hard_failures(outcomes)
    return {
        "succeeded": succeeded,
        "failed": len(outcomes) - succeeded,
        "outcomes": [_outcome_to_dict(outcome) for outcome in outcomes],
    }


@job(description="Recalculate rankings for an explicit list of jobs")
def bulk_rankings_job():
    recalculate_rankings_bulk()


# =============================================================================
# INVALIDATION
# =============================================================================


class InvalidateRankingsConfig(Config):
    """Run config for invalidate_rankings_job. Set at least one selector."""

    job_id: str | None = None
    scoring_config_id: str | None = None
    applicant_id: str | None = None
    trigger_event: str = "MANUAL_TRIGGER"


@op(
    required_resource_keys={"ranking_engine"},
    description="Mark rankings stale by job, scoring config or applicant",
)
def invalidate_rankings(context: OpExecutionContext, config: InvalidateRankingsConfig) -> dict:
    orchestrator = context.resources.ranking_engine.get_orchestrator()
    invalidated = orchestrator.invalidate(
        InvalidationRequest(
            trigger_event=config.trigger_event,
            job_id=config.job_id,
            scoring_config_id=config.scoring_config_id,
            applicant_id=config.applicant_id,
        )
    )
    context.log.info(f"Marked {len(invalidated)} job(s) stale")
    return {"invalidated_jobs": [str(job_id) for job_id in invalidated]}


@job(description="Mark candidate rankings stale; the next sweep recalculates them")
def invalidate_rankings_job():
    invalidate_rankings()


__all__ = [
    "BulkRankingConfig",
    "InvalidateRankingsConfig",
    "bulk_rankings_job",
    "invalidate_rankings_job",
    "stale_rankings_sweep_job",
    "stale_rankings_sweep_schedule",
]
