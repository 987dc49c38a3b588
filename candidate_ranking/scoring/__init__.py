from candidate_ranking.scoring.calculator import (
    AnswerBreakdown,
    AnswerRecord,
    QuestionSpec,
    ScoreExplanation,
    ScoreResult,
    ScoringRules,
    compute_score,
    explain_score,
    finalize_score,
)
from candidate_ranking.scoring.versioning import config_version_inputs, scoring_config_version

__all__ = [
    "AnswerBreakdown",
    "AnswerRecord",
    "QuestionSpec",
    "ScoreExplanation",
    "ScoreResult",
    "ScoringRules",
    "compute_score",
    "config_version_inputs",
    "explain_score",
    "finalize_score",
    "scoring_config_version",
]
