"""Tests for bulk recalculation and the scheduled sweep."""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import update

from candidate_ranking.db import get_session
from candidate_ranking.errors import InvalidRankingRequest
from candidate_ranking.models import BulkPriorityEnum, RankingStatusEnum, ScoringConfig
from candidate_ranking.services import InvalidationRequest, RankingOrchestrator, RankingRepository
from candidate_ranking.settings import RankingSettings

from conftest import NOW, load_metadata


@pytest.fixture
def jobs_with_candidates(seed):
    """Five jobs sharing the default config, each with two candidates."""
    seed.default_config()
    template, questions = seed.template(None, [1.0, 1.0])
    applicants = [seed.applicant(), seed.applicant()]
    jobs = []
    for _ in range(5):
        job = seed.job()
        for correct, applicant in zip([1, 2], applicants):
            seed.submit(
                applicant,
                job,
                template,
                [(question, index < correct) for index, question in enumerate(questions)],
            )
        jobs.append(job)
    return jobs


def make_orchestrator(sleeps, **settings):
    return RankingOrchestrator(
        settings=RankingSettings(**settings), clock=lambda: NOW, sleep=sleeps.append
    )


class TestProcessBulkRankings:
    """Tests for RankingOrchestrator.process_bulk_rankings."""

    def test_recalculates_every_job(self, jobs_with_candidates, orchestrator):
        """Test that every requested job ends COMPLETED with its own outcome."""
        outcomes = orchestrator.process_bulk_rankings([job.id for job in jobs_with_candidates])

        assert [o.job_id for o in outcomes] == [job.id for job in jobs_with_candidates]
        assert all(o.success for o in outcomes)
        assert all(o.result.total_candidates == 2 for o in outcomes)
        for job in jobs_with_candidates:
            metadata = load_metadata(job.id)
            assert metadata.status == RankingStatusEnum.COMPLETED
            assert metadata.trigger_event == "BULK_RECALCULATION"

    def test_duplicates_are_processed_once(self, jobs_with_candidates, orchestrator):
        """Test that repeated job ids are collapsed in first-seen order."""
        first, second = jobs_with_candidates[:2]

        outcomes = orchestrator.process_bulk_rankings(
            [first.id, str(second.id), first.id, str(first.id)]
        )

        assert [o.job_id for o in outcomes] == [first.id, second.id]

    @pytest.mark.parametrize("count", [0, 51])
    def test_size_limits(self, engine, orchestrator, count):
        """Test that requests outside 1..50 jobs are rejected."""
        with pytest.raises(InvalidRankingRequest):
            orchestrator.process_bulk_rankings([uuid4() for _ in range(count)])

    def test_unknown_priority(self, engine, orchestrator):
        """Test that only high and normal priorities are accepted."""
        with pytest.raises(InvalidRankingRequest):
            orchestrator.process_bulk_rankings([uuid4()], priority="urgent")

    def test_failures_are_isolated(self, jobs_with_candidates, orchestrator):
        """Test that one failing job does not stop the others."""
        missing = uuid4()
        locked = jobs_with_candidates[1]
        with get_session() as session:
            RankingRepository().acquire_lock(session, locked.id, "OTHER_WORKER", NOW)
            session.commit()

        outcomes = orchestrator.process_bulk_rankings(
            [jobs_with_candidates[0].id, missing, locked.id, jobs_with_candidates[2].id]
        )

        by_job = {o.job_id: o for o in outcomes}
        assert by_job[jobs_with_candidates[0].id].success
        assert by_job[jobs_with_candidates[2].id].success
        assert by_job[missing].success is False
        assert by_job[missing].error_type == "JobNotFound"
        assert by_job[locked.id].success is False
        assert by_job[locked.id].error_type == "AlreadyCalculating"

    def test_normal_priority_pauses_between_batches(self, jobs_with_candidates):
        """Test that normal priority sleeps between its small batches."""
        sleeps = []
        orchestrator = make_orchestrator(
            sleeps, normal_priority_batch_size=2, normal_priority_batch_delay_seconds=0.5
        )

        outcomes = orchestrator.process_bulk_rankings(
            [job.id for job in jobs_with_candidates], priority=BulkPriorityEnum.NORMAL
        )

        assert len(outcomes) == 5
        assert sleeps == [0.5, 0.5]

    def test_high_priority_does_not_pause(self, jobs_with_candidates):
        """Test that high priority runs its batches back to back."""
        sleeps = []
        orchestrator = make_orchestrator(
            sleeps, high_priority_batch_size=2, normal_priority_batch_delay_seconds=0.5
        )

        outcomes = orchestrator.process_bulk_rankings(
            [job.id for job in jobs_with_candidates], "STALE_RANKINGS_SENSOR", "high"
        )

        assert all(o.success for o in outcomes)
        assert sleeps == []
        assert load_metadata(jobs_with_candidates[0].id).trigger_event == "STALE_RANKINGS_SENSOR"


class TestStaleSweep:
    """Tests for RankingOrchestrator.schedule_stale_job_recalculations."""

    def test_nothing_to_sweep(self, engine, orchestrator):
        """Test that an empty sweep reports no work."""
        summary = orchestrator.schedule_stale_job_recalculations()

        assert summary.scheduled_jobs == []
        assert summary.outcomes == []
        assert summary.drifted_jobs == []

    def test_recalculates_stale_jobs(self, jobs_with_candidates, orchestrator):
        """Test that stale jobs are picked up and recalculated."""
        stale = jobs_with_candidates[:3]
        for job in stale:
            orchestrator.invalidate(InvalidationRequest(trigger_event="EDIT", job_id=job.id))

        summary = orchestrator.schedule_stale_job_recalculations()

        assert sorted(summary.scheduled_jobs, key=str) == sorted([j.id for j in stale], key=str)
        assert summary.succeeded == 3
        assert summary.failed == 0
        for job in stale:
            metadata = load_metadata(job.id)
            assert metadata.status == RankingStatusEnum.COMPLETED
            assert metadata.trigger_event == "SCHEDULED_SWEEP"

    def test_config_drift_is_swept(self, jobs_with_candidates, orchestrator):
        """Test that jobs ranked with an outdated config are recalculated."""
        job = jobs_with_candidates[0]
        first = orchestrator.recalculate(job.id)
        with get_session() as session:
            session.execute(
                update(ScoringConfig).values(negative_marking_fraction=1.0, updated_at=NOW)
            )
            session.commit()

        summary = orchestrator.schedule_stale_job_recalculations()

        assert summary.drifted_jobs == [job.id]
        assert summary.scheduled_jobs == [job.id]
        assert summary.succeeded == 1
        metadata = load_metadata(job.id)
        assert metadata.status == RankingStatusEnum.COMPLETED
        assert metadata.scoring_config_version != first.scoring_config_version

    def test_outdated_rankings_are_refreshed(self, jobs_with_candidates):
        """Test that COMPLETED rankings past the freshness window are recalculated."""
        job = jobs_with_candidates[0]
        earlier = RankingOrchestrator(clock=lambda: NOW - timedelta(hours=30))
        earlier.recalculate(job.id)
        orchestrator = make_orchestrator([], freshness_window_hours=24)

        summary = orchestrator.schedule_stale_job_recalculations()

        assert summary.scheduled_jobs == [job.id]
        assert summary.succeeded == 1

    def test_sweep_respects_limits(self, jobs_with_candidates):
        """Test that a sweep takes at most stale_sweep_limit jobs."""
        orchestrator = make_orchestrator([], stale_sweep_limit=2)
        for job in jobs_with_candidates:
            orchestrator.invalidate(InvalidationRequest(trigger_event="EDIT", job_id=job.id))

        summary = orchestrator.schedule_stale_job_recalculations()

        assert len(summary.scheduled_jobs) == 2
        assert len(orchestrator.list_jobs_needing_recalculation()) == 3
