"""Dagster sensors for the candidate ranking engine."""

from candidate_ranking.sensors.run_failure_sensor import run_failure_tagger
from candidate_ranking.sensors.stale_rankings_sensor import stale_rankings_sensor

__all__ = [
    "run_failure_tagger",
    "stale_rankings_sensor",
]
