"""Tests for the assessment and scoring config stores against SQLite."""

from datetime import timedelta
from uuid import UUID, uuid4

import pytest
from sqlalchemy import insert

from candidate_ranking.errors import ConfigNotFound
from candidate_ranking.models import ApplicantAnswer, AssessmentQuestion, ScoringConfig
from candidate_ranking.scoring.calculator import compute_score, finalize_score
from candidate_ranking.stores import AssessmentStore, ScoringConfigStore

from conftest import NOW


class TestAssessmentStore:
    """Tests for AssessmentStore."""

    def setup_method(self):
        self.store = AssessmentStore()

    def test_latest_submission_per_applicant(self, seed, session):
        """Test that only each applicant's most recent submission is loaded."""
        job = seed.job()
        template, questions = seed.template(job, [1.0, 1.0])
        applicant = seed.applicant()
        seed.submit(applicant, job, template, [(questions[0], False)], NOW - timedelta(days=5))
        latest = seed.submit(
            applicant, job, template, [(q, True) for q in questions], NOW - timedelta(days=1)
        )

        submissions = self.store.get_latest_assessment_per_applicant(session, job.id)

        assert len(submissions) == 1
        assert submissions[0].assessment_id == latest.id
        assert [a.is_correct for a in submissions[0].answers] == [True, True]

    def test_same_timestamp_highest_assessment_id_wins(self, seed, session):
        """Test the tie-break between submissions sharing submitted_at."""
        job = seed.job()
        template, questions = seed.template(job, [1.0])
        applicant = seed.applicant()
        submitted_at = NOW - timedelta(days=1)
        low = UUID("00000000-0000-0000-0000-00000000000a")
        high = UUID("00000000-0000-0000-0000-00000000000b")
        seed.submit(applicant, job, template, [(questions[0], True)], submitted_at, high)
        seed.submit(applicant, job, template, [(questions[0], False)], submitted_at, low)

        submissions = self.store.get_latest_assessment_per_applicant(session, job.id)

        assert [s.assessment_id for s in submissions] == [high]

    def test_submission_without_answers_is_included(self, seed, session):
        """Test that an applicant with an empty submission is still a candidate."""
        job = seed.job()
        template, _ = seed.template(job, [1.0])
        applicant = seed.applicant()
        seed.submit(applicant, job, template, [])

        submissions, questions = self.store.load_job_submissions(session, job.id)

        assert [s.applicant_id for s in submissions] == [applicant.id]
        assert submissions[0].answers == []
        assert questions == {}

    def test_other_jobs_are_ignored(self, seed, session):
        """Test that submissions for a different job are not loaded."""
        job, other = seed.job(), seed.job("Other")
        template, questions = seed.template(None, [1.0])
        seed.submit(seed.applicant(), other, template, [(questions[0], True)])

        assert self.store.get_latest_assessment_per_applicant(session, job.id) == []

    def test_questions_are_loaded_once(self, seed, session):
        """Test that shared questions are returned keyed by id."""
        job = seed.job()
        template, questions = seed.template(job, [2.0, 3.0], [None, 0.5])
        for _ in range(3):
            seed.submit(seed.applicant(), job, template, [(q, True) for q in questions])

        _, loaded = self.store.load_job_submissions(session, job.id)

        assert set(loaded) == {q.id for q in questions}
        assert loaded[questions[1].id].negative_weight == 0.5

    def test_get_questions_by_ids(self, seed, session):
        """Test lookup of question specs, ignoring unknown ids."""
        _, questions = seed.template(None, [1.5])

        loaded = self.store.get_questions_by_ids(session, [questions[0].id, uuid4()])

        assert list(loaded) == [questions[0].id]
        assert loaded[questions[0].id].weight == 1.5
        assert self.store.get_questions_by_ids(session, []) == {}

    def test_jobs_for_applicant(self, seed, session):
        """Test that every job the applicant submitted to is returned once."""
        first, second, untouched = seed.job("A"), seed.job("B"), seed.job("C")
        template, questions = seed.template(None, [1.0])
        applicant = seed.applicant()
        seed.submit(applicant, first, template, [(questions[0], True)])
        seed.submit(applicant, first, template, [(questions[0], False)])
        seed.submit(applicant, second, template, [])

        jobs = self.store.jobs_for_applicant(session, applicant.id)

        assert sorted(jobs, key=str) == sorted([first.id, second.id], key=str)
        assert untouched.id not in jobs


class TestAggregationStrategies:
    """Tests that SQL aggregation matches the in-process calculator."""

    @pytest.mark.parametrize(
        "fraction, window, boost",
        [(0.0, None, None), (0.5, None, None), (0.25, 7, 10.0), (1.0, 30, 50.0)],
    )
    def test_sql_matches_python(self, seed, session, fraction, window, boost):
        """Test that both strategies produce identical totals for the same data."""
        job = seed.job()
        seed.default_config(fraction, window, boost)
        template, questions = seed.template(job, [1.0, 2.0, 3.0, 0.5], [None, 0.75, None, 0.0])
        patterns = [
            [True, True, True, True],
            [False, True, False, True],
            [False, False, False, False],
            [True, False, True, False],
        ]
        for days_ago, pattern in zip([1, 3, 10, 60], patterns):
            seed.submit(
                seed.applicant(),
                job,
                template,
                list(zip(questions, pattern)),
                NOW - timedelta(days=days_ago),
            )
        rules = ScoringConfigStore().get_effective_config(session, job.id)
        store = AssessmentStore()

        submissions, specs = store.load_job_submissions(session, job.id)
        in_python = {
            s.applicant_id: compute_score(s.answers, specs, rules, s.submitted_at, NOW)
            for s in submissions
        }
        in_sql = {
            totals.applicant_id: finalize_score(
                totals.base_score,
                totals.max_possible_score,
                totals.correct_answers,
                totals.incorrect_answers,
                rules,
                totals.submitted_at,
                NOW,
                negative_marking_penalty=totals.negative_marking_penalty,
                recency_bonus=totals.recency_bonus,
            )
            for totals in store.aggregate_scores(session, job.id, rules, NOW)
        }

        assert set(in_sql) == set(in_python)
        for applicant_id, expected in in_python.items():
            actual = in_sql[applicant_id]
            assert actual.score == pytest.approx(expected.score)
            assert actual.max_possible_score == pytest.approx(expected.max_possible_score)
            assert actual.percentage == pytest.approx(expected.percentage)
            assert actual.recency_bonus == pytest.approx(expected.recency_bonus)
            assert actual.correct_answers == expected.correct_answers
            assert actual.incorrect_answers == expected.incorrect_answers
            assert actual.negative_marking_penalty == pytest.approx(
                expected.negative_marking_penalty
            )

    def test_sql_empty_submission(self, seed, session):
        """Test that an applicant without answers aggregates to zero."""
        job = seed.job()
        config = seed.default_config()
        template, _ = seed.template(job, [1.0])
        seed.submit(seed.applicant(), job, template, [])
        rules = ScoringConfigStore().get_config(session, config.id)

        (totals,) = AssessmentStore().aggregate_scores(session, job.id, rules, NOW)

        assert totals.base_score == 0.0
        assert totals.max_possible_score == 0.0
        assert totals.correct_answers == 0

    def test_unknown_question_answers_are_counted_and_logged(
        self, seed, session, engine, caplog
    ):
        """Test that both strategies skip, count and log answers to unknown questions."""
        job = seed.job()
        seed.default_config()
        template, questions = seed.template(job, [2.0])
        assessment = seed.submit(seed.applicant(), job, template, [(questions[0], True)])
        with engine.connect() as connection:
            connection.exec_driver_sql("PRAGMA foreign_keys=OFF")
            connection.execute(
                insert(ApplicantAnswer).values(
                    id=uuid4(),
                    assessment_id=assessment.id,
                    question_id=uuid4(),
                    answer="A",
                    is_correct=True,
                )
            )
            connection.commit()
            connection.exec_driver_sql("PRAGMA foreign_keys=ON")
        rules = ScoringConfigStore().get_effective_config(session, job.id)
        store = AssessmentStore()

        with caplog.at_level("WARNING"):
            (totals,) = store.aggregate_scores(session, job.id, rules, NOW)
        (submission,), specs = store.load_job_submissions(session, job.id)
        in_python = compute_score(submission.answers, specs, rules, submission.submitted_at, NOW)

        assert totals.skipped_answers == 1
        assert totals.base_score == 2.0
        assert totals.max_possible_score == 2.0
        assert in_python.skipped_answers == totals.skipped_answers
        assert in_python.base_score == totals.base_score
        assert "unknown questions" in caplog.text


class TestScoringConfigStore:
    """Tests for ScoringConfigStore."""

    def setup_method(self):
        self.store = ScoringConfigStore()

    def test_job_config_wins_over_default(self, seed, session):
        """Test that a job-specific config takes precedence."""
        job = seed.job()
        seed.default_config(0.1)
        own = seed.job_config(job, 0.9)

        rules = self.store.get_effective_config(session, job.id)

        assert rules.config_id == own.id
        assert rules.negative_marking_fraction == 0.9

    def test_default_fallback(self, seed, session):
        """Test that a job without its own config uses the default."""
        job = seed.job()
        default = seed.default_config(0.3, 7, 5.0)

        rules = self.store.get_effective_config(session, job.id)

        assert rules.config_id == default.id
        assert rules.is_default is True
        assert rules.recency_window_days == 7

    def test_latest_default_wins(self, seed, session):
        """Test that the most recently updated default is used when several exist."""
        job = seed.job()
        seed.default_config(0.1)
        newer = ScoringConfig(
            id=uuid4(), is_default=True, negative_marking_fraction=0.2, updated_at=NOW
        )
        seed._save(newer)

        assert self.store.get_effective_config(session, job.id).config_id == newer.id

    def test_missing_config_raises(self, seed, session):
        """Test that no job config and no default raises ConfigNotFound."""
        job = seed.job()

        assert self.store.find_effective_config(session, job.id) is None
        with pytest.raises(ConfigNotFound):
            self.store.get_effective_config(session, job.id)

    def test_effective_configs_for_jobs(self, seed, session):
        """Test batch resolution across jobs with and without their own config."""
        own_job, default_job = seed.job("Own"), seed.job("Default")
        default = seed.default_config()
        own = seed.job_config(own_job)

        resolved = self.store.effective_configs_for_jobs(session, [own_job.id, default_job.id])

        assert resolved[own_job.id].config_id == own.id
        assert resolved[default_job.id].config_id == default.id
        assert self.store.effective_configs_for_jobs(session, []) == {}

    def test_jobs_using_default_config(self, seed, session):
        """Test that a default config applies to every job without its own config."""
        plain_a, plain_b, customised = seed.job("A"), seed.job("B"), seed.job("C")
        default = seed.default_config()
        seed.job_config(customised)

        jobs = self.store.jobs_using_config(session, default.id)

        assert sorted(jobs, key=str) == sorted([plain_a.id, plain_b.id], key=str)

    def test_jobs_using_job_config(self, seed, session):
        """Test that a job-bound config applies to its own job only."""
        job, _ = seed.job("A"), seed.job("B")
        own = seed.job_config(job)

        assert self.store.jobs_using_config(session, own.id) == [job.id]
        assert self.store.jobs_using_config(session, uuid4()) == []

    def test_version_inputs(self, seed, session):
        """Test the hash inputs exposed for a config."""
        config = seed.default_config(0.25)

        inputs = self.store.get_config_version_inputs(session, config.id)

        assert inputs["id"] == str(config.id)
        assert inputs["negative_marking_fraction"] == 0.25
        assert self.store.get_config_version_inputs(session, uuid4()) is None


def test_assessment_question_defaults(seed, session):
    """Test that a question created without a weight gets weight 1."""
    template, _ = seed.template(None, [])
    question = AssessmentQuestion(id=uuid4(), template_id=template.id, text="Default weight")
    seed._save(question)

    assert AssessmentStore().get_questions_by_ids(session, [question.id])[question.id].weight == 1.0
