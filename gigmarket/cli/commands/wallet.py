"""Wallet commands.

- gigmarket wallet summary STUDENT_ID
- gigmarket wallet entries STUDENT_ID [--status paid|pending] [--sort date|amount|hours]
- gigmarket wallet mark-paid ENTRY_ID [--date YYYY-MM-DD]
"""

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import argparse

    from gigmarket import Marketplace


def cmd_wallet(args: "argparse.Namespace", mp: "Marketplace") -> None:
    """Dispatch ``gigmarket wallet <action>``."""
    if args.wallet_action == "summary":
        _summary(args, mp)
    elif args.wallet_action == "entries":
        _entries(args, mp)
    elif args.wallet_action == "mark-paid":
        _mark_paid(args, mp)


def _summary(args, mp: "Marketplace") -> None:
    summary = mp.wallet.summarize(args.student_id)

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
        return

    print(f"Wallet for {args.student_id}")
    print("=" * 40)
    print(f"  Total earned:      {summary.total_earned}")
    print(f"  Pending payments:  {summary.pending_payments}")
    print(f"  Hours worked:      {summary.hours_worked}")
    print(f"  Jobs completed:    {summary.jobs_completed}")


def _entries(args, mp: "Marketplace") -> None:
    status = None if args.status == "all" else args.status
    entries = mp.wallet.entries(args.student_id, status=status, sort=args.sort)

    if args.json:
        print(json.dumps([e.to_dict() for e in entries], indent=2))
        return

    if not entries:
        print("No wallet entries.")
        return

    for e in entries:
        paid = f"paid {e.payment_date.isoformat()}" if e.is_paid else "pending"
        hours = f"{e.duration_hours}h" if e.duration_hours is not None else "-"
        print(f"{e.id}  {e.amount:>10}  {hours:>7}  {paid}  (job {e.job_id})")


def _mark_paid(args, mp: "Marketplace") -> None:
    entry = mp.settlement.settle_payment(args.entry_id, args.date)

    if args.json:
        print(json.dumps(entry.to_dict(), indent=2))
        return
    print(f"✓ Entry {entry.id} marked paid on {entry.payment_date.isoformat()}")
