"""Utility functions for the candidate ranking engine."""

from candidate_ranking.utils.timestamps import as_utc, utcnow

__all__ = [
    "as_utc",
    "utcnow",
]
