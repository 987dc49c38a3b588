"""Ranking engine resource: exposes the orchestrator to Dagster ops and sensors."""

from dagster import ConfigurableResource
from pydantic import Field

from candidate_ranking.models.enums import AggregationStrategyEnum
from candidate_ranking.services.ranking_orchestrator import RankingOrchestrator
from candidate_ranking.settings import RankingSettings


class RankingEngineResource(ConfigurableResource):
    """Builds a RankingOrchestrator over the process-wide database engine.

    Field defaults mirror RankingSettings; override them per deployment in
    definitions.py or with run config.
    """

    freshness_window_hours: float = Field(
        default=24,
        description="COMPLETED rankings older than this are recalculated by the sweep",
    )
    stale_sweep_limit: int = Field(default=10, description="Jobs recalculated per sweep")
    max_bulk_jobs: int = Field(default=50, description="Upper bound on a bulk request")
    high_priority_batch_size: int = Field(default=5)
    normal_priority_batch_size: int = Field(default=2)
    normal_priority_batch_delay_seconds: float = Field(default=1.0)
    calculation_lock_timeout_seconds: int = Field(
        default=900,
        description="A CALCULATING lock older than this may be taken over",
    )
    aggregation_strategy: str = Field(
        default=AggregationStrategyEnum.PYTHON.value,
        description="'python' scores in process, 'sql' aggregates in the database",
    )
    eager_sweep_on_config_change: bool = Field(default=True)
    max_top_candidates: int = Field(default=100)
    floor_scores_at_zero: bool = Field(default=False)

    def get_settings(self) -> RankingSettings:
        return RankingSettings(
            freshness_window_hours=self.freshness_window_hours,
            stale_sweep_limit=self.stale_sweep_limit,
            max_bulk_jobs=self.max_bulk_jobs,
            high_priority_batch_size=self.high_priority_batch_size,
            normal_priority_batch_size=self.normal_priority_batch_size,
            normal_priority_batch_delay_seconds=self.normal_priority_batch_delay_seconds,
            calculation_lock_timeout_seconds=self.calculation_lock_timeout_seconds,
            aggregation_strategy=AggregationStrategyEnum(self.aggregation_strategy),
            eager_sweep_on_config_change=self.eager_sweep_on_config_change,
            max_top_candidates=self.max_top_candidates,
            floor_scores_at_zero=self.floor_scores_at_zero,
        )

    def get_orchestrator(self) -> RankingOrchestrator:
        return RankingOrchestrator(settings=self.get_settings())
