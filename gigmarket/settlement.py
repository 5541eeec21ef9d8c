"""
Settlement coordinator.

Turns completed jobs into wallet entries. Runs as a completion listener on
the job registry, and drives the completion sweep that moves filled jobs
past their end time to ``completed``.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Union

from gigmarket.applications.models import ApplicationStatus
from gigmarket.applications.storage import ApplicationStorage
from gigmarket.errors import ConflictError, IntegrityError, InvalidStateError
from gigmarket.jobs.models import Job, JobStatus
from gigmarket.jobs.registry import JobRegistry
from gigmarket.wallet.ledger import WalletLedger
from gigmarket.wallet.models import WalletEntry

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Outcome of a completion sweep."""

    dry_run: bool
    due: List[str] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    entries: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "dry_run": self.dry_run,
            "due": self.due,
            "completed": self.completed,
            "failed": self.failed,
            "entries": self.entries,
        }


class SettlementCoordinator:
    """Creates wallet entries for completed jobs and settles them."""

    def __init__(
        self,
        registry: JobRegistry,
        applications: ApplicationStorage,
        wallet: WalletLedger,
    ):
        self.registry = registry
        self.applications = applications
        self.wallet = wallet

    def attach(self) -> None:
        """Subscribe to job completions on the registry."""
        self.registry.on_completed(self._handle_completed)

    def _handle_completed(self, job: Job) -> None:
        self._settle(job)

    def on_job_completed(self, job_id: str) -> WalletEntry:
        """Create (or return) the wallet entry for a completed job.

        Idempotent: calling it again returns the entry made the first time.
        """
        job = self.registry.get(job_id)
        if job.status != JobStatus.COMPLETED.value:
            raise IntegrityError(
                f"Settlement requested for job {job_id} in status {job.status}",
                entity_id=job_id,
                current_state=job.status,
            )
        return self._settle(job)

    def _settle(self, job: Job) -> WalletEntry:
        accepted = self.applications.list_applications(
            job_id=job.id, statuses=[ApplicationStatus.ACCEPTED.value]
        )
        if len(accepted) != 1:
            logger.critical(
                f"Completed job {job.id} has {len(accepted)} accepted applications"
            )
            raise IntegrityError(
                f"Completed job {job.id} has {len(accepted)} accepted applications, expected 1",
                entity_id=job.id,
                current_state=job.status,
            )
        app = accepted[0]
        if app.final_pay is None:
            logger.critical(f"Accepted application {app.id} has no final pay")
            raise IntegrityError(
                f"Accepted application {app.id} has no final pay",
                entity_id=app.id,
                current_state=app.status,
            )

        entry = self.wallet.create(
            student_id=app.student_id,
            job_id=job.id,
            amount=app.final_pay,
            duration_hours=job.duration_hours,
        )
        logger.info(f"Settled job {job.id}: entry {entry.id} for {app.student_id}")
        return entry

    def settle_payment(
        self, entry_id: str, payment_date: Union[date, str, None] = None
    ) -> WalletEntry:
        """Record that a pending entry has been paid out."""
        return self.wallet.mark_paid(entry_id, payment_date)

    def complete_due_jobs(
        self, now: Optional[datetime] = None, dry_run: bool = False
    ) -> SweepResult:
        """Complete every filled job whose end time has passed.

        A job that lost a race with another transition is reported in
        ``failed`` and the sweep moves on. IntegrityError stops the sweep.
        """
        due = self.registry.due_for_completion(now)
        result = SweepResult(dry_run=dry_run, due=[j.id for j in due])
        if dry_run:
            logger.info(f"Completion sweep (dry run): {len(due)} job(s) due")
            return result

        for job in due:
            try:
                self.registry.complete(job.id)
            except (ConflictError, InvalidStateError) as e:
                logger.warning(f"Could not complete job {job.id}: {e}")
                result.failed.append(job.id)
                continue
            result.completed.append(job.id)
            student_id = self._accepted_student(job.id)
            entry = self.wallet.storage.find_entry(job.id, student_id) if student_id else None
            if entry is not None:
                result.entries.append(entry.id)

        logger.info(
            f"Completion sweep: {len(result.completed)} completed, {len(result.failed)} failed"
        )
        return result

    def _accepted_student(self, job_id: str) -> Optional[str]:
        accepted = self.applications.list_applications(
            job_id=job_id, statuses=[ApplicationStatus.ACCEPTED.value], limit=1
        )
        return accepted[0].student_id if accepted else None
