"""Scoring configuration versioning.

Every ranking row records the version of the config that produced it. The version
is a sha256 over the scoring fields plus the config's last-modified time, so an
edit to the config changes the version even if no invalidation event arrives.
"""

import hashlib
import json

from candidate_ranking.scoring.calculator import ScoringRules
from candidate_ranking.utils.timestamps import as_utc


def config_version_inputs(rules: ScoringRules) -> dict:
    """Canonical dict of the fields that feed the version hash."""
    updated_at = as_utc(rules.updated_at)
    return {
        "id": str(rules.config_id),
        "negative_marking_fraction": float(rules.negative_marking_fraction),
        "recency_window_days": rules.recency_window_days,
        "recency_boost_percent": (
            float(rules.recency_boost_percent) if rules.recency_boost_percent is not None else None
        ),
        "updated_at": updated_at.isoformat() if updated_at else None,
    }


def scoring_config_version(rules: ScoringRules) -> str:
    """Stable content hash identifying a scoring configuration revision."""
    payload = json.dumps(config_version_inputs(rules), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode()).hexdigest()
