"""Runtime settings for the ranking orchestrator.

Values come from the Dagster resource config in deployed runs, or from RANKING_*
environment variables (see from_env) for scripts.
"""

import os

from pydantic import BaseModel, Field

from candidate_ranking.models.enums import AggregationStrategyEnum


class RankingSettings(BaseModel):
    """Tunables for recalculation, sweeping and bulk processing."""

    freshness_window_hours: float = Field(
        default=24,
        gt=0,
        description="COMPLETED rankings older than this are picked up by the sweep",
    )
    stale_sweep_limit: int = Field(default=10, ge=1, description="Jobs per sweep")
    max_bulk_jobs: int = Field(default=50, ge=1, description="Upper bound on a bulk request")
    high_priority_batch_size: int = Field(default=5, ge=1)
    normal_priority_batch_size: int = Field(default=2, ge=1)
    normal_priority_batch_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Pause between normal-priority batches to spread database load",
    )
    calculation_lock_timeout_seconds: int = Field(
        default=900,
        ge=1,
        description="A CALCULATING lock older than this is treated as abandoned",
    )
    aggregation_strategy: AggregationStrategyEnum = AggregationStrategyEnum.PYTHON
    eager_sweep_on_config_change: bool = Field(
        default=True,
        description="Run the stale sweep right after a scoring config change event",
    )
    max_top_candidates: int = Field(default=100, ge=1, le=100)
    floor_scores_at_zero: bool = Field(
        default=False,
        description="Clamp negative final scores to zero when ranking",
    )

    @classmethod
    def from_env(cls) -> "RankingSettings":
        """Build settings from RANKING_* environment variables, falling back to defaults."""
        env_map = {
            "freshness_window_hours": "RANKING_FRESHNESS_WINDOW_HOURS",
            "stale_sweep_limit": "RANKING_STALE_SWEEP_LIMIT",
            "max_bulk_jobs": "RANKING_MAX_BULK_JOBS",
            "high_priority_batch_size": "RANKING_HIGH_PRIORITY_BATCH_SIZE",
            "normal_priority_batch_size": "RANKING_NORMAL_PRIORITY_BATCH_SIZE",
            "normal_priority_batch_delay_seconds": "RANKING_NORMAL_PRIORITY_BATCH_DELAY_SECONDS",
            "calculation_lock_timeout_seconds": "RANKING_CALCULATION_LOCK_TIMEOUT_SECONDS",
            "aggregation_strategy": "RANKING_AGGREGATION_STRATEGY",
            "eager_sweep_on_config_change": "RANKING_EAGER_SWEEP_ON_CONFIG_CHANGE",
            "max_top_candidates": "RANKING_MAX_TOP_CANDIDATES",
            "floor_scores_at_zero": "RANKING_FLOOR_SCORES_AT_ZERO",
        }
        values = {field: os.getenv(var) for field, var in env_map.items()}
        return cls(**{k: v for k, v in values.items() if v is not None})
