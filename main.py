"""CLI entry point for the opportunity ranking engine."""

import argparse
import json
import logging
import sys
from pathlib import Path

from src.core.config import Settings
from src.core.errors import EngineError
from src.core.repository import SqliteRepository
from src.pipeline.orchestrator import RankingEngine, export_picks_json
from src.profile.schema import CandidateRecord


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Opportunity ranking engine - ingest listings and serve daily picks",
    )
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- add-candidate ---
    add_parser = subparsers.add_parser("add-candidate", help="Store a candidate from YAML")
    add_parser.add_argument("--profile", required=True, help="Path to candidate YAML file")

    # --- ingest ---
    ingest_parser = subparsers.add_parser("ingest", help="Ingest a JSON list of listing rows")
    ingest_parser.add_argument("--rows", required=True, help="Path to JSON file with row objects")

    # --- daily-picks ---
    picks_parser = subparsers.add_parser("daily-picks", help="Show a candidate's daily picks")
    picks_parser.add_argument("--candidate", required=True, help="Candidate id")
    picks_parser.add_argument("--json", action="store_true", help="Print the raw JSON response")

    # --- apply / unlock ---
    apply_parser = subparsers.add_parser(
        "apply", help="Record an application (counts towards the streak)",
    )
    apply_parser.add_argument("--candidate", required=True, help="Candidate id")
    apply_parser.add_argument("--opportunity", required=True, help="Opportunity id")

    unlock_parser = subparsers.add_parser("unlock", help="Record an early-access unlock")
    unlock_parser.add_argument("--candidate", required=True, help="Candidate id")
    unlock_parser.add_argument("--opportunity", required=True, help="Opportunity id")

    # --- score ---
    score_parser = subparsers.add_parser("score", help="Preview a candidate/listing match")
    score_parser.add_argument("--candidate", required=True, help="Candidate id")
    score_parser.add_argument("--opportunity", required=True, help="Opportunity id")

    # --- corpus maintenance ---
    deactivate_parser = subparsers.add_parser(
        "deactivate", help="Withdraw a listing (filled, expired or removed by the employer)",
    )
    deactivate_parser.add_argument("--opportunity", required=True, help="Opportunity id")

    recategorize_parser = subparsers.add_parser(
        "recategorize", help="Re-run AI categorization on a stored listing",
    )
    recategorize_parser.add_argument("--opportunity", required=True, help="Opportunity id")

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_settings(path: str) -> Settings:
    """Settings from YAML; defaults when the default path does not exist."""
    if not Path(path).exists() and path == "config/settings.yaml":
        return Settings()
    return Settings.from_yaml(path)


def cmd_add_candidate(engine: RankingEngine, repo: SqliteRepository, args: argparse.Namespace) -> None:
    record = CandidateRecord.from_yaml(args.profile)
    repo.save_candidate(record)
    print(f"Candidate '{record.id}' stored.")


def cmd_ingest(engine: RankingEngine, repo: SqliteRepository, args: argparse.Namespace) -> None:
    path = Path(args.rows)
    if not path.exists():
        msg = f"Rows file not found: {path}"
        raise FileNotFoundError(msg)
    rows = json.loads(path.read_text())
    if not isinstance(rows, list):
        msg = "Rows file must contain a JSON list of objects"
        raise ValueError(msg)

    result = engine.ingest_batch(rows)
    print(f"Ingestion complete: {result.created} created, {result.skipped} skipped, "
          f"{result.failed} failed.")
    for skipped in result.skipped_details[:20]:
        print(f"  skipped '{skipped.title}' at {skipped.employer}: {skipped.reason}")
    for reason in result.failure_reasons[:20]:
        print(f"  failed: {reason}")


def cmd_daily_picks(engine: RankingEngine, repo: SqliteRepository, args: argparse.Namespace) -> None:
    response = engine.get_daily_picks(args.candidate)
    if args.json:
        print(export_picks_json(response))
        return

    streak = response.streak
    print(f"Daily picks for {args.candidate} ({response.refresh_date.date()}):")
    for pick in response.picks:
        flags = []
        if pick.is_early_access:
            flags.append("early access")
        if pick.is_locked:
            flags.append("locked")
        if pick.has_applied:
            flags.append("applied")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        print(f"  {pick.score:3d}  {pick.title} @ {pick.employer}{suffix}")
        for reason in pick.reasons:
            print(f"         + {reason}")
        for warning in pick.warnings:
            print(f"         ! {warning}")
    print(f"Streak: {streak.current} (visual {streak.visual}, longest {streak.longest}) "
          f"- {streak.tier} x{streak.multiplier}")


def cmd_apply(engine: RankingEngine, repo: SqliteRepository, args: argparse.Namespace) -> None:
    update = engine.record_application(args.candidate, args.opportunity)
    print(f"Application recorded. Streak: {update.streak} days"
          f"{' (new record!)' if update.is_new_record else ''}")


def cmd_unlock(engine: RankingEngine, repo: SqliteRepository, args: argparse.Namespace) -> None:
    if repo.record_unlock(args.candidate, args.opportunity):
        print("Unlocked.")
    else:
        print("Already unlocked.")


def cmd_score(engine: RankingEngine, repo: SqliteRepository, args: argparse.Namespace) -> None:
    match = engine.score(args.candidate, args.opportunity)
    print(f"Score: {match.score} ({match.strategy})")
    for reason in match.reasons:
        print(f"  + {reason}")
    for warning in match.warnings:
        print(f"  ! {warning}")


def cmd_deactivate(engine: RankingEngine, repo: SqliteRepository, args: argparse.Namespace) -> None:
    if engine.deactivate(args.opportunity):
        print(f"Listing {args.opportunity} deactivated.")
    else:
        print(f"Listing {args.opportunity} was already inactive.")


def cmd_recategorize(engine: RankingEngine, repo: SqliteRepository, args: argparse.Namespace) -> None:
    tags = engine.recategorize(args.opportunity).tags
    print(f"Categories: {', '.join(tags.categories) or 'none'} (confidence {tags.confidence:.2f})")
    if tags.education_match:
        print(f"  education: {', '.join(tags.education_match)}")
    if tags.required_skills:
        print(f"  skills: {', '.join(tags.required_skills)}")


_COMMANDS = {
    "add-candidate": cmd_add_candidate,
    "ingest": cmd_ingest,
    "daily-picks": cmd_daily_picks,
    "apply": cmd_apply,
    "unlock": cmd_unlock,
    "score": cmd_score,
    "deactivate": cmd_deactivate,
    "recategorize": cmd_recategorize,
}


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        repo = SqliteRepository.open(settings.database.path)
    except EngineError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    engine = RankingEngine(repo, settings)
    try:
        _COMMANDS[args.command](engine, repo, args)
    except (EngineError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        engine.close()
        repo.close()


if __name__ == "__main__":
    main()
