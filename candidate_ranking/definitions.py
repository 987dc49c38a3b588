"""Dagster definitions for the Candidate Ranking Engine.

This module is the entry point for Dagster. It wires together:
- The ranking engine resource (orchestrator settings per environment)
- Jobs (stale sweep, bulk recalculation, invalidation)
- Schedules (stale sweep every 15 minutes)
- Sensors (stale rankings polling, run failure tagging)
"""

import os

from dagster import Definitions
from dotenv import load_dotenv

from candidate_ranking.jobs import (
    bulk_rankings_job,
    invalidate_rankings_job,
    stale_rankings_sweep_job,
    stale_rankings_sweep_schedule,
)
from candidate_ranking.models.enums import AggregationStrategyEnum
from candidate_ranking.resources import RankingEngineResource
from candidate_ranking.sensors import run_failure_tagger, stale_rankings_sensor

# Load environment variables from .env file (must be before resource initialization)
load_dotenv()


def get_environment() -> str:
    """Get current environment from env var."""
    return os.getenv("ENVIRONMENT", "development")


# Development: small batches, in-process scoring
dev_resources = {
    "ranking_engine": RankingEngineResource(
        aggregation_strategy=os.getenv(
            "RANKING_AGGREGATION_STRATEGY", AggregationStrategyEnum.PYTHON.value
        ),
    ),
}

# Production: scores aggregated by PostgreSQL, larger sweeps
prod_resources = {
    "ranking_engine": RankingEngineResource(
        aggregation_strategy=os.getenv(
            "RANKING_AGGREGATION_STRATEGY", AggregationStrategyEnum.SQL.value
        ),
        stale_sweep_limit=int(os.getenv("RANKING_STALE_SWEEP_LIMIT", "25")),
    ),
}


def get_resources():
    """Get resources based on current environment."""
    env = get_environment()

    if env in ("production", "staging"):
        return prod_resources
    return dev_resources


all_jobs = [
    stale_rankings_sweep_job,
    bulk_rankings_job,
    invalidate_rankings_job,
]

all_schedules = [
    stale_rankings_sweep_schedule,
]

all_sensors = [
    stale_rankings_sensor,
    run_failure_tagger,
]

defs = Definitions(
    resources=get_resources(),
    jobs=all_jobs,
    schedules=all_schedules,
    sensors=all_sensors,
)


def main():
    """Entry point for CLI usage."""
    print("Candidate Ranking Dagster project loaded successfully!")
    print(f"Environment: {get_environment()}")
    print(f"Jobs: {len(all_jobs)}")
    print(f"Schedules: {len(all_schedules)}")
    print(f"Sensors: {len(all_sensors)}")
    print("\nAvailable jobs:")
    for job in all_jobs:
        print(f"  - {job.name}")
    print("\nRun 'dagster dev' to start the development server.")


if __name__ == "__main__":
    main()
