"""Run failure sensor that tags failed ranking runs with classified failure reasons.

Known failures are tagged with a specific category (e.g. CONFIG_NOT_FOUND).
Unknown failures are tagged with UNKNOWN_FAILURE so they surface for investigation.
"""

import dagster as dg

FAILURE_TAG = "failure_type"

KNOWN_FAILURES: list[tuple[str, list[str]]] = [
    (
        "CONFIG_NOT_FOUND",
        ["ConfigNotFound", "No scoring configuration found"],
    ),
    (
        "ALREADY_CALCULATING",
        ["AlreadyCalculating", "recalculation already in progress", "superseded by a newer"],
    ),
    (
        "JOB_NOT_FOUND",
        ["JobNotFound"],
    ),
    (
        "STORAGE_ERROR",
        ["StorageError", "Failed to store rankings", "IntegrityError", "OperationalError"],
    ),
    (
        "INVALID_REQUEST",
        ["InvalidRankingRequest", "Bulk recalculation takes between", "Invalidation request must"],
    ),
    (
        "DATABASE_UNAVAILABLE",
        ["could not connect to server", "Connection refused", "database is locked"],
    ),
]


def _classify_failure(error_str: str) -> list[str]:
    """Return all matching failure tags for the given error string."""
    tags = []
    for tag, patterns in KNOWN_FAILURES:
        if any(p.lower() in error_str.lower() for p in patterns):
            tags.append(tag)
    return tags


@dg.run_failure_sensor(
    name="run_failure_tagger",
    description=(
        "Tags failed ranking runs with classified failure reasons. "
        "Known failures get a specific tag; unknown failures get UNKNOWN_FAILURE."
    ),
    default_status=dg.DefaultSensorStatus.RUNNING,
)
def run_failure_tagger(context: dg.RunFailureSensorContext):
    run_id = context.dagster_run.run_id
    job_name = context.dagster_run.job_name

    all_tags: set[str] = set()

    for event in context.get_step_failure_events():
        failure_data = event.step_failure_data
        if failure_data is None:
            continue
        error = failure_data.error
        if error is not None:
            all_tags.update(_classify_failure(error.to_string()))
        user_failure = failure_data.user_failure_data
        if user_failure is not None:
            details = [user_failure.description or ""]
            details.extend(str(entry.value) for entry in user_failure.metadata.values())
            all_tags.update(_classify_failure("\n".join(details)))

    if not all_tags:
        run_error = context.failure_event.job_failure_data.error
        if run_error is not None:
            all_tags.update(_classify_failure(run_error.to_string()))

    if not all_tags:
        all_tags.add("UNKNOWN_FAILURE")

    tag_value = ", ".join(sorted(all_tags))
    context.instance.add_run_tags(run_id, {FAILURE_TAG: tag_value})

    context.log.info(f"Tagged failed run {run_id} ({job_name}) with {FAILURE_TAG}={tag_value}")
