#!/usr/bin/env python3
"""Inspect a job's stored rankings and ranking metadata (read-only).

Usage:
    python scripts/inspect_job_rankings.py <job_id>
    python scripts/inspect_job_rankings.py <job_id> --all

This script displays:
- Job and effective scoring configuration
- Ranking metadata (status, lock, timings, config version)
- Stored candidate rankings (first 20 unless --all)
- Latest assessment per applicant and whether it is ranked
"""

import os
import sys
from datetime import datetime

import psycopg2
from dotenv import load_dotenv
from psycopg2.extras import RealDictCursor

load_dotenv()


def get_connection():
    """Create database connection."""
    return psycopg2.connect(
        host=os.environ["POSTGRES_HOST"],
        port=os.environ["POSTGRES_PORT"],
        user=os.environ["POSTGRES_USER"],
        password=os.environ["POSTGRES_PASSWORD"],
        dbname=os.environ["POSTGRES_DB"],
    )


def format_value(value) -> str:
    if value is None:
        return "—"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def print_section(title: str):
    """Print a section header."""
    print()
    print("=" * 60)
    print(f"  {title}")
    print("=" * 60)


def print_field(name: str, value, indent: int = 1):
    print(f"{'  ' * indent}{name}: {format_value(value)}")


def inspect_job_rankings(job_id: str, show_all: bool = False):
    """Print rankings, metadata and scoring config for a job."""
    conn = get_connection()
    cur = conn.cursor(cursor_factory=RealDictCursor)

    # ─────────────────────────────────────────────────────────────
    # JOB
    # ─────────────────────────────────────────────────────────────
    print_section("JOB")
    cur.execute("SELECT id, title, status, updated_at FROM jobs WHERE id = %s", (job_id,))
    job = cur.fetchone()
    if not job:
        print(f"  ❌ No job found with id: {job_id}")
        cur.close()
        conn.close()
        return
    print_field("Title", job["title"])
    print_field("Status", job["status"])
    print_field("Updated At", job["updated_at"])

    # ─────────────────────────────────────────────────────────────
    # SCORING CONFIG (job-specific, else default)
    # ─────────────────────────────────────────────────────────────
    print_section("EFFECTIVE SCORING CONFIG")
    cur.execute(
        """SELECT * FROM scoring_configs
           WHERE job_id = %s
              OR (is_default AND NOT EXISTS (SELECT 1 FROM scoring_configs WHERE job_id = %s))
           ORDER BY (job_id IS NOT NULL) DESC, updated_at DESC
           LIMIT 1""",
        (job_id, job_id),
    )
    config = cur.fetchone()
    if not config:
        print("  ❌ No job-specific or default config (recalculation fails with ConfigNotFound)")
    else:
        print_field("Config ID", config["id"])
        print_field("Scope", "job" if config["job_id"] else "default")
        print_field("Negative Marking Fraction", config["negative_marking_fraction"])
        print_field("Recency Window (days)", config["recency_window_days"])
        print_field("Recency Boost (%)", config["recency_boost_percent"])
        print_field("Updated At", config["updated_at"])

    # ─────────────────────────────────────────────────────────────
    # METADATA
    # ─────────────────────────────────────────────────────────────
    print_section("RANKING METADATA")
    cur.execute("SELECT * FROM job_ranking_metadata WHERE job_id = %s", (job_id,))
    metadata = cur.fetchone()
    if not metadata:
        print("  ❌ Never ranked")
    else:
        print_field("Status", metadata["status"])
        print_field("Total Candidates", metadata["total_candidates"])
        print_field("Last Calculated At", metadata["last_calculated_at"])
        print_field("Duration (ms)", metadata["calculation_duration_ms"])
        print_field("Config Version", metadata["scoring_config_version"])
        print_field("Trigger Event", metadata["trigger_event"])
        print_field("Error Message", metadata["error_message"])
        print_field("Lock Token", metadata["lock_token"])
        print_field("Updated At", metadata["updated_at"])

    # ─────────────────────────────────────────────────────────────
    # RANKINGS
    # ─────────────────────────────────────────────────────────────
    print_section("CANDIDATE RANKINGS")
    query = """SELECT cr.rank, cr.score, cr.max_possible_score, cr.percentage,
                      cr.correct_answers, cr.incorrect_answers, cr.recency_bonus,
                      cr.is_stale, cr.scoring_config_version,
                      a.first_name, a.last_name, a.email
               FROM candidate_rankings cr
               JOIN applicants a ON a.id = cr.applicant_id
               WHERE cr.job_id = %s
               ORDER BY cr.rank"""
    if not show_all:
        query += " LIMIT 20"
    cur.execute(query, (job_id,))
    rankings = cur.fetchall()
    if not rankings:
        print("  (No stored rankings)")
    for row in rankings:
        stale = " [stale]" if row["is_stale"] else ""
        print(
            f"  #{row['rank']:<3} {row['first_name']} {row['last_name']} <{row['email']}> "
            f"score={format_value(row['score'])}/{format_value(row['max_possible_score'])} "
            f"({format_value(row['percentage'])}%) "
            f"✓{row['correct_answers']} ✗{row['incorrect_answers']} "
            f"bonus={format_value(row['recency_bonus'])}{stale}"
        )

    if metadata and rankings:
        versions = {row["scoring_config_version"] for row in rankings}
        if versions != {metadata["scoring_config_version"]}:
            print("  ⚠️  Ranking rows carry a different config version than the metadata")

    # ─────────────────────────────────────────────────────────────
    # LATEST ASSESSMENTS
    # ─────────────────────────────────────────────────────────────
    print_section("LATEST ASSESSMENTS")
    cur.execute(
        """SELECT latest.applicant_id, latest.id, latest.submitted_at,
                  (cr.id IS NOT NULL) AS ranked
           FROM (
               SELECT DISTINCT ON (applicant_id) id, applicant_id, submitted_at
               FROM applicant_assessments
               WHERE job_id = %s
               ORDER BY applicant_id, submitted_at DESC, id DESC
           ) latest
           LEFT JOIN candidate_rankings cr
             ON cr.job_id = %s AND cr.assessment_id = latest.id""",
        (job_id, job_id),
    )
    assessments = cur.fetchall()
    unranked = [row for row in assessments if not row["ranked"]]
    print_field("Applicants with submissions", len(assessments))
    print_field("Latest submission not ranked", len(unranked))
    for row in unranked[:10]:
        print(f"    • {row['applicant_id']} submitted {format_value(row['submitted_at'])}")

    cur.close()
    conn.close()

    print()
    print("=" * 60)
    print("  END OF REPORT")
    print("=" * 60)


def main():
    if len(sys.argv) < 2:
        print("Usage: python scripts/inspect_job_rankings.py <job_id> [--all]")
        sys.exit(1)

    job_id = sys.argv[1]
    print(f"\n🔍 Inspecting rankings for job: {job_id}\n")
    inspect_job_rankings(job_id, show_all="--all" in sys.argv[2:])


if __name__ == "__main__":
    main()
