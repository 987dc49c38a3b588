"""Stale rankings sensor: launches bulk_rankings_job for jobs needing recalculation.

Flow:
1. Ask the orchestrator which jobs are STALE, ERROR or past the freshness window
2. Drop jobs this sensor already requested within the cooldown (tracked in cursor)
3. Launch one bulk_rankings_job run for the remainder at high priority

The cursor stores a JSON dict: {"triggered": {"<job uuid>": "2026-10-18T...", ...}}.
Entries older than the cooldown are pruned, so a job that is still stale after
its run finished is requested again on a later tick.
"""

import json
from datetime import UTC, datetime, timedelta

from dagster import RunRequest, SensorEvaluationContext, SkipReason, sensor

from candidate_ranking.jobs import bulk_rankings_job

RETRIGGER_COOLDOWN = timedelta(minutes=10)


@sensor(
    job=bulk_rankings_job,
    minimum_interval_seconds=60,
    description=(
        "Polls job_ranking_metadata for jobs whose rankings are stale, failed or "
        "outdated and launches a bulk recalculation for them."
    ),
    required_resource_keys={"ranking_engine"},
)
def stale_rankings_sensor(context: SensorEvaluationContext):
    orchestrator = context.resources.ranking_engine.get_orchestrator()

    cursor_data: dict = {"triggered": {}}
    if context.cursor:
        cursor_data = json.loads(context.cursor)

    now = datetime.now(UTC)
    triggered_map: dict[str, str] = {
        job_id: triggered_at
        for job_id, triggered_at in cursor_data.get("triggered", {}).items()
        if now - datetime.fromisoformat(triggered_at) < RETRIGGER_COOLDOWN
    }

    limit = min(orchestrator.settings.stale_sweep_limit, orchestrator.settings.max_bulk_jobs)
    job_ids = [str(job_id) for job_id in orchestrator.list_jobs_needing_recalculation(limit)]
    if not job_ids:
        context.update_cursor(json.dumps({"triggered": triggered_map}))
        return SkipReason("No jobs need ranking recalculation")

    new_job_ids = [job_id for job_id in job_ids if job_id not in triggered_map]
    if not new_job_ids:
        context.update_cursor(json.dumps({"triggered": triggered_map}))
        return SkipReason(f"{len(job_ids)} job(s) need recalculation but were already requested")

    now_iso = now.isoformat()
    for job_id in new_job_ids:
        triggered_map[job_id] = now_iso
    context.update_cursor(json.dumps({"triggered": triggered_map}))
    context.log.info(f"Requesting ranking recalculation for {len(new_job_ids)} job(s)")

    return RunRequest(
        run_key=f"stale-rankings-{now_iso}",
        run_config={
            "ops": {
                "recalculate_rankings_bulk": {
                    "config": {
                        "job_ids": new_job_ids,
                        "trigger_event": "STALE_RANKINGS_SENSOR",
                        "priority": "high",
                    }
                }
            }
        },
        tags={"dagster/priority": "5"},
    )
