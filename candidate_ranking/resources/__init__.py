"""Dagster resources for the candidate ranking engine."""

from candidate_ranking.resources.ranking import RankingEngineResource

__all__ = ["RankingEngineResource"]
