"""Scoring configuration lookups.

A job's effective configuration is its job-specific config when one exists,
otherwise the global default. Should several rows carry is_default (the editing
side is expected to prevent that), the most recently updated one wins.
"""

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from candidate_ranking.errors import ConfigNotFound
from candidate_ranking.models.jobs import Job
from candidate_ranking.models.scoring import ScoringConfig
from candidate_ranking.scoring.calculator import ScoringRules
from candidate_ranking.scoring.versioning import config_version_inputs

logger = logging.getLogger(__name__)


def _default_config_stmt():
    return (
        select(ScoringConfig)
        .where(ScoringConfig.is_default.is_(True))
        .order_by(ScoringConfig.updated_at.desc(), ScoringConfig.id.desc())
        .limit(1)
    )


class ScoringConfigStore:
    """Read-only access to scoring_configs."""

    def find_effective_config(self, session: Session, job_id: UUID) -> ScoringRules | None:
        config = session.execute(
            select(ScoringConfig).where(ScoringConfig.job_id == job_id)
        ).scalar_one_or_none()
        if config is None:
            config = session.execute(_default_config_stmt()).scalar_one_or_none()
        return ScoringRules.from_model(config) if config is not None else None

    def get_effective_config(self, session: Session, job_id: UUID) -> ScoringRules:
        """Resolve the job's effective config or raise ConfigNotFound."""
        rules = self.find_effective_config(session, job_id)
        if rules is None:
            raise ConfigNotFound(job_id)
        return rules

    def effective_configs_for_jobs(
        self, session: Session, job_ids: Iterable[UUID]
    ) -> dict[UUID, ScoringRules | None]:
        """Resolve effective configs for many jobs with two queries."""
        ids = list(set(job_ids))
        if not ids:
            return {}
        job_configs = session.execute(
            select(ScoringConfig).where(ScoringConfig.job_id.in_(ids))
        ).scalars()
        by_job = {config.job_id: ScoringRules.from_model(config) for config in job_configs}

        default = None
        if len(by_job) < len(ids):
            default_config = session.execute(_default_config_stmt()).scalar_one_or_none()
            default = ScoringRules.from_model(default_config) if default_config else None

        return {job_id: by_job.get(job_id, default) for job_id in ids}

    def get_config(self, session: Session, config_id: UUID) -> ScoringRules | None:
        config = session.get(ScoringConfig, config_id)
        return ScoringRules.from_model(config) if config is not None else None

    def get_config_version_inputs(self, session: Session, config_id: UUID) -> dict | None:
        """Fields that feed the config version hash, or None for an unknown config."""
        rules = self.get_config(session, config_id)
        return config_version_inputs(rules) if rules is not None else None

    def jobs_using_config(self, session: Session, config_id: UUID) -> list[UUID]:
        """Jobs whose effective configuration is config_id.

        A job-bound config applies to its job only. A default config applies to
        every job without a config of its own, provided it is the default that wins
        resolution; a superseded default governs no job.
        """
        rules = self.get_config(session, config_id)
        if rules is None:
            logger.info("Scoring config %s not found; no jobs to invalidate", config_id)
            return []

        job_ids: list[UUID] = []
        if rules.job_id is not None:
            job_ids.append(rules.job_id)
        if rules.is_default:
            winning_default = session.execute(_default_config_stmt()).scalar_one_or_none()
            if winning_default is None or winning_default.id != config_id:
                logger.info("Scoring config %s is a superseded default; skipping", config_id)
                return job_ids
            has_own_config = exists().where(ScoringConfig.job_id == Job.id)
            job_ids.extend(session.execute(select(Job.id).where(~has_own_config)).scalars())
        return job_ids
