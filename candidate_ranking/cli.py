import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def local_dev():
    """Start the Dagster UI and daemon against candidate_ranking.definitions."""
    os.chdir(PROJECT_ROOT)
    os.environ.setdefault("DAGSTER_HOME", str(PROJECT_ROOT))
    os.execvp(
        sys.executable,
        [sys.executable, "-m", "dagster", "dev", "-m", "candidate_ranking.definitions"]
        + sys.argv[1:],
    )


def migrate():
    """Apply all pending Alembic migrations to the configured database."""
    os.chdir(PROJECT_ROOT)
    subprocess.run([sys.executable, "-m", "alembic", "upgrade", "head"], check=True)


def sweep():
    """Run one stale-rankings sweep outside Dagster, e.g. from cron."""
    from candidate_ranking.services.ranking_orchestrator import RankingOrchestrator
    from candidate_ranking.settings import RankingSettings

    load_dotenv(PROJECT_ROOT / ".env")
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    orchestrator = RankingOrchestrator(settings=RankingSettings.from_env())
    summary = orchestrator.schedule_stale_job_recalculations()
    print(
        f"Sweep: {len(summary.drifted_jobs)} drifted, {len(summary.scheduled_jobs)} scheduled, "
        f"{summary.succeeded} succeeded, {summary.failed} failed"
    )
    sys.exit(1 if summary.failed else 0)
