"""Job commands: listing, history, completion and the completion sweep."""

import json
import logging
from typing import TYPE_CHECKING

from gigmarket.jobs.models import JobFilters

if TYPE_CHECKING:
    import argparse

    from gigmarket import Marketplace

logger = logging.getLogger(__name__)


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def cmd_jobs(args: "argparse.Namespace", mp: "Marketplace") -> None:
    """Dispatch ``gigmarket jobs <action>``."""
    if args.jobs_action == "list":
        _list_jobs(args, mp)
    elif args.jobs_action == "history":
        _job_history(args, mp)
    elif args.jobs_action == "complete":
        _complete_job(args, mp)


def _list_jobs(args, mp: "Marketplace") -> None:
    filters = JobFilters(
        query=args.query,
        domain=args.domain,
        status=None if args.status == "all" else args.status,
        poster_id=args.poster,
        sort=args.sort,
        descending=not args.ascending,
        limit=args.limit,
        offset=args.offset,
    )
    jobs = mp.jobs.list(filters).all()

    if args.json:
        print(json.dumps([j.to_dict() for j in jobs], indent=2, default=str))
        return

    if not jobs:
        print("No jobs found.")
        return

    print(f"Jobs ({len(jobs)}):")
    print("-" * 60)
    for job in jobs:
        nego = " (negotiable)" if job.is_negotiable else ""
        print(f"[{job.status:9}] {_truncate(job.title, 40)}")
        print(f"  {job.id}")
        print(f"  {job.domain} | pay {job.pay_offered}{nego} | {job.location_address}")
        print(f"  {job.start_time:%Y-%m-%d %H:%M} -> {job.end_time:%Y-%m-%d %H:%M} UTC")


def _job_history(args, mp: "Marketplace") -> None:
    transitions = mp.jobs.history(args.job_id)

    if args.json:
        print(json.dumps([t.to_dict() for t in transitions], indent=2, default=str))
        return

    for t in transitions:
        when = t.created_at.strftime("%Y-%m-%d %H:%M:%S") if t.created_at else "?"
        actor = t.actor_id or "system"
        print(f"{when}  {t.from_status or '-':9} -> {t.to_status:9}  by {actor}")


def _complete_job(args, mp: "Marketplace") -> None:
    job = mp.jobs.complete(args.job_id, actor_id=args.actor)
    if args.json:
        print(json.dumps(job.to_dict(), indent=2, default=str))
        return
    print(f"✓ Job {job.id} completed")


def cmd_sweep(args: "argparse.Namespace", mp: "Marketplace") -> None:
    """Complete every filled job whose end time has passed."""
    result = mp.settlement.complete_due_jobs(dry_run=args.dry_run)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return

    if result.dry_run:
        print(f"{len(result.due)} job(s) due for completion (dry run)")
        for job_id in result.due:
            print(f"  {job_id}")
        return

    print(f"Completed {len(result.completed)} job(s), {len(result.entries)} wallet entr(y/ies) created")
    for job_id in result.failed:
        print(f"  ✗ {job_id} could not be completed")
