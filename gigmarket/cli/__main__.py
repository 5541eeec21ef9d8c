"""
gigmarket CLI - operator commands for a local marketplace store.

Usage:
    gigmarket jobs list [--query Q] [--domain D] [--status S] [--sort recent|pay|start_time] [--json]
    gigmarket jobs history JOB_ID [--json]
    gigmarket jobs complete JOB_ID [--actor POSTER_ID]
    gigmarket sweep [--dry-run] [--json]
    gigmarket wallet summary STUDENT_ID [--json]
    gigmarket wallet entries STUDENT_ID [--status all|paid|pending] [--sort date|amount|hours]
    gigmarket wallet mark-paid ENTRY_ID [--date YYYY-MM-DD]
"""

import argparse
import dataclasses
import logging
import sys

from gigmarket.cli.commands import cmd_jobs, cmd_sweep, cmd_wallet
from gigmarket.config import STORAGE_BACKENDS, MarketplaceConfig
from gigmarket.errors import IntegrityError, MarketplaceError
from gigmarket.marketplace import Marketplace

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gigmarket",
        description="Local gig marketplace: jobs, applications and student wallets",
    )
    parser.add_argument("--db", help="SQLite database path (default: ~/.gigmarket/gigmarket.db)")
    parser.add_argument("--storage", choices=STORAGE_BACKENDS, help="Storage backend")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # jobs
    p_jobs = subparsers.add_parser("jobs", help="Job operations")
    jobs_sub = p_jobs.add_subparsers(dest="jobs_action", required=True)

    jobs_list = jobs_sub.add_parser("list", help="Browse jobs")
    jobs_list.add_argument("--query", "-q", help="Search title and description")
    jobs_list.add_argument("--domain", "-d", help="Filter by domain")
    jobs_list.add_argument(
        "--status",
        choices=["active", "filled", "completed", "cancelled", "all"],
        default="active",
    )
    jobs_list.add_argument("--poster", help="Filter by poster ID")
    jobs_list.add_argument("--sort", choices=["recent", "pay", "start_time"], default="recent")
    jobs_list.add_argument("--ascending", action="store_true", help="Oldest/lowest first")
    jobs_list.add_argument("--limit", "-l", type=int, default=20)
    jobs_list.add_argument("--offset", type=int, default=0)
    jobs_list.add_argument("--json", "-j", action="store_true")

    jobs_history = jobs_sub.add_parser("history", help="Show a job's transitions")
    jobs_history.add_argument("job_id")
    jobs_history.add_argument("--json", "-j", action="store_true")

    jobs_complete = jobs_sub.add_parser("complete", help="Complete a filled job")
    jobs_complete.add_argument("job_id")
    jobs_complete.add_argument("--actor", help="Poster ID (default: system)")
    jobs_complete.add_argument("--json", "-j", action="store_true")

    # sweep
    p_sweep = subparsers.add_parser("sweep", help="Complete filled jobs past their end time")
    p_sweep.add_argument("--dry-run", action="store_true", help="Only report due jobs")
    p_sweep.add_argument("--json", "-j", action="store_true")

    # wallet
    p_wallet = subparsers.add_parser("wallet", help="Wallet operations")
    wallet_sub = p_wallet.add_subparsers(dest="wallet_action", required=True)

    w_summary = wallet_sub.add_parser("summary", help="Earnings summary")
    w_summary.add_argument("student_id")
    w_summary.add_argument("--json", "-j", action="store_true")

    w_entries = wallet_sub.add_parser("entries", help="List wallet entries")
    w_entries.add_argument("student_id")
    w_entries.add_argument("--status", choices=["all", "paid", "pending"], default="all")
    w_entries.add_argument("--sort", choices=["date", "amount", "hours"], default="date")
    w_entries.add_argument("--json", "-j", action="store_true")

    w_paid = wallet_sub.add_parser("mark-paid", help="Record a payout")
    w_paid.add_argument("entry_id")
    w_paid.add_argument("--date", help="Payment date (YYYY-MM-DD, default today)")
    w_paid.add_argument("--json", "-j", action="store_true")

    return parser


def _load_config(args) -> MarketplaceConfig:
    config = MarketplaceConfig.from_env()
    overrides = {}
    if args.storage:
        overrides["storage_backend"] = args.storage
    if args.db:
        overrides["db_path"] = args.db
    return dataclasses.replace(config, **overrides) if overrides else config


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger("gigmarket").setLevel(logging.DEBUG)

    try:
        mp = Marketplace.from_config(_load_config(args))
    except (ValueError, TypeError) as e:
        logger.error(f"Failed to open marketplace: {e}")
        sys.exit(1)

    try:
        if args.command == "jobs":
            cmd_jobs(args, mp)
        elif args.command == "sweep":
            cmd_sweep(args, mp)
        elif args.command == "wallet":
            cmd_wallet(args, mp)
    except IntegrityError as e:
        logger.critical(f"Integrity failure: {e}")
        sys.exit(2)
    except MarketplaceError as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        sys.exit(1)
    finally:
        mp.close()


if __name__ == "__main__":
    main()
