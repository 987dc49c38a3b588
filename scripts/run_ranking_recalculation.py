#!/usr/bin/env python3
"""Operate the ranking engine from the command line.

Usage:
    poetry run python scripts/run_ranking_recalculation.py recalculate <job_id>
    poetry run python scripts/run_ranking_recalculation.py top <job_id> --limit 10
    poetry run python scripts/run_ranking_recalculation.py status <job_id>
    poetry run python scripts/run_ranking_recalculation.py explain <job_id> <applicant_id>
    poetry run python scripts/run_ranking_recalculation.py invalidate --scoring-config <config_id>
    poetry run python scripts/run_ranking_recalculation.py bulk <job_id> <job_id> --priority high
    poetry run python scripts/run_ranking_recalculation.py sweep

Database settings come from RANKING_DATABASE_URL or POSTGRES_* (see .env);
engine tunables from RANKING_* variables.
"""

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
load_dotenv()

from candidate_ranking.errors import RankingError  # noqa: E402
from candidate_ranking.services.ranking_orchestrator import RankingOrchestrator  # noqa: E402
from candidate_ranking.services.results import InvalidationRequest  # noqa: E402
from candidate_ranking.settings import RankingSettings  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
log = logging.getLogger("ranking_recalculation")


def cmd_recalculate(orchestrator: RankingOrchestrator, args: argparse.Namespace) -> None:
    result = orchestrator.recalculate_job_rankings(args.job_id, args.trigger)
    print(
        f"Ranked {result.total_candidates} candidates in {result.calculation_duration_ms}ms "
        f"(config {result.scoring_config_version[:12]})"
    )
    if result.is_stale:
        print("⚠️  Job was invalidated during the pass; rankings stored as stale")
    for candidate in result.ranked_candidates[: args.show]:
        print(
            f"  #{candidate.rank:<3} {candidate.applicant_id}  "
            f"score={candidate.score:.2f}/{candidate.max_possible_score:.2f} "
            f"({candidate.percentage:.1f}%)"
        )


def cmd_top(orchestrator: RankingOrchestrator, args: argparse.Namespace) -> None:
    response = orchestrator.get_top_candidates(args.job_id, args.limit)
    meta = response.metadata
    print(f"Status: {meta.status.value}  total={meta.total_candidates}")
    if not response.candidates:
        print("  (no rankings available; recalculate the job first)")
        return
    for candidate in response.candidates:
        name = f"{candidate.first_name or ''} {candidate.last_name or ''}".strip()
        print(
            f"  #{candidate.rank:<3} {name:<30} {candidate.email:<35} "
            f"score={candidate.score:.2f} ({candidate.percentage:.1f}%)"
        )


def cmd_status(orchestrator: RankingOrchestrator, args: argparse.Namespace) -> None:
    status = orchestrator.get_job_ranking_status(args.job_id)
    print(f"Status:            {status.status.value}")
    print(f"Total candidates:  {status.total_candidates}")
    print(f"Last calculated:   {status.last_calculated_at or '—'}")
    print(f"Duration (ms):     {status.calculation_duration_ms or '—'}")
    print(f"Config version:    {status.scoring_config_version or '—'}")
    print(f"Trigger:           {status.trigger_event or '—'}")
    print(f"Error:             {status.error_message or '—'}")
    print(f"Stale:             {status.is_stale}")
    print(f"Config drift:      {status.config_drift}")


def cmd_explain(orchestrator: RankingOrchestrator, args: argparse.Namespace) -> None:
    explanation = orchestrator.explain_candidate_score(args.job_id, args.applicant_id)
    if explanation is None:
        print("Applicant has no submitted assessment for this job")
        return
    for answer in explanation.answers:
        print(f"  {answer.question_id}  {answer.points:+.2f}  {answer.explanation}")
    result = explanation.result
    print(f"Base score:     {result.base_score:.2f}")
    print(f"Recency bonus:  {result.recency_bonus:.2f} (applied: {explanation.recency_applied})")
    print(f"Score:          {result.score:.2f} / {result.max_possible_score:.2f}")


def cmd_invalidate(orchestrator: RankingOrchestrator, args: argparse.Namespace) -> None:
    invalidated = orchestrator.invalidate_rankings(
        InvalidationRequest(
            trigger_event=args.trigger,
            job_id=args.job,
            scoring_config_id=args.scoring_config,
            applicant_id=args.applicant,
        )
    )
    print(f"Marked {len(invalidated)} job(s) stale")
    for job_id in invalidated:
        print(f"  • {job_id}")


def cmd_bulk(orchestrator: RankingOrchestrator, args: argparse.Namespace) -> None:
    outcomes = orchestrator.process_bulk_rankings(args.job_ids, args.trigger, args.priority)
    for outcome in outcomes:
        if outcome.success:
            print(f"  ✅ {outcome.job_id}: {outcome.result.total_candidates} candidates")
        else:
            print(f"  ❌ {outcome.job_id}: {outcome.error_type}: {outcome.error}")


def cmd_sweep(orchestrator: RankingOrchestrator, args: argparse.Namespace) -> None:
    summary = orchestrator.schedule_stale_job_recalculations()
    print(f"Config drift: {len(summary.drifted_jobs)} job(s)")
    print(f"Scheduled:    {len(summary.scheduled_jobs)} job(s)")
    print(f"Succeeded:    {summary.succeeded}")
    print(f"Failed:       {summary.failed}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Recalculate and inspect candidate rankings.")
    sub = parser.add_subparsers(dest="command", required=True)

    recalc = sub.add_parser("recalculate", help="Recalculate one job's rankings")
    recalc.add_argument("job_id")
    recalc.add_argument("--trigger", default="MANUAL_TRIGGER")
    recalc.add_argument("--show", type=int, default=10, help="Candidates to print")
    recalc.set_defaults(handler=cmd_recalculate)

    top = sub.add_parser("top", help="Show the stored top candidates")
    top.add_argument("job_id")
    top.add_argument("--limit", type=int, default=5)
    top.set_defaults(handler=cmd_top)

    status = sub.add_parser("status", help="Show ranking status for a job")
    status.add_argument("job_id")
    status.set_defaults(handler=cmd_status)

    explain = sub.add_parser("explain", help="Per-answer score breakdown for an applicant")
    explain.add_argument("job_id")
    explain.add_argument("applicant_id")
    explain.set_defaults(handler=cmd_explain)

    invalidate = sub.add_parser("invalidate", help="Mark rankings stale")
    invalidate.add_argument("--job")
    invalidate.add_argument("--scoring-config")
    invalidate.add_argument("--applicant")
    invalidate.add_argument("--trigger", default="MANUAL_TRIGGER")
    invalidate.set_defaults(handler=cmd_invalidate)

    bulk = sub.add_parser("bulk", help="Recalculate several jobs in batches")
    bulk.add_argument("job_ids", nargs="+")
    bulk.add_argument("--priority", choices=["high", "normal"], default="normal")
    bulk.add_argument("--trigger", default="BULK_RECALCULATION")
    bulk.set_defaults(handler=cmd_bulk)

    sweep = sub.add_parser("sweep", help="Detect config drift and recalculate stale jobs")
    sweep.set_defaults(handler=cmd_sweep)

    return parser


def main() -> int:
    args = build_parser().parse_args()
    orchestrator = RankingOrchestrator(settings=RankingSettings.from_env())
    try:
        args.handler(orchestrator, args)
    except RankingError as exc:
        log.error("%s: %s", type(exc).__name__, exc.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
