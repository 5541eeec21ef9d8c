"""
Wallet ledger.

Creates one entry per completed (job, student) pair and moves it from
pending to paid. Uniqueness is enforced by storage, so creation is
idempotent without a global lock.
"""

import logging
import uuid
from datetime import date
from typing import Any, List, Optional, Union

from gigmarket.errors import (
    DuplicateRecordError,
    IntegrityError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from gigmarket.protocols import Clock, SystemClock
from gigmarket.utils import optional_decimal, parse_date, to_decimal
from gigmarket.wallet.models import WalletEntry, WalletEntryStatus, WalletSort, WalletSummary
from gigmarket.wallet.storage import WalletStorage

logger = logging.getLogger(__name__)


class WalletLedger:
    """Records earnings for students."""

    def __init__(self, storage: WalletStorage, clock: Optional[Clock] = None):
        self.storage = storage
        self.clock = clock or SystemClock()

    def get(self, entry_id: str) -> WalletEntry:
        entry = self.storage.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Wallet entry not found: {entry_id}", entity_id=entry_id)
        return entry

    def create(
        self,
        student_id: str,
        job_id: str,
        amount: Any,
        duration_hours: Any = None,
    ) -> WalletEntry:
        """Create a pending entry, or return the one already recorded for the pair.

        Raises:
            IntegrityError: an entry exists for the pair with a different amount
        """
        try:
            amount = to_decimal(amount, "amount")
            duration_hours = optional_decimal(duration_hours, "duration_hours")
        except ValueError as e:
            raise ValidationError(str(e))

        existing = self.storage.find_entry(job_id, student_id)
        if existing is not None:
            return self._check_existing(existing, amount)

        entry = WalletEntry(
            id=str(uuid.uuid4()),
            student_id=student_id,
            job_id=job_id,
            amount=amount,
            duration_hours=duration_hours,
            status=WalletEntryStatus.PENDING.value,
            created_at=self.clock.now(),
        )
        try:
            self.storage.insert_entry(entry)
        except DuplicateRecordError:
            # Another writer won; theirs is the entry
            existing = self.storage.find_entry(job_id, student_id)
            if existing is None:
                raise IntegrityError(
                    f"Wallet entry for job {job_id} reported duplicate but not found",
                    entity_id=job_id,
                )
            return self._check_existing(existing, amount)

        logger.info(f"Wallet entry {entry.id}: {amount} pending for {student_id} (job {job_id})")
        return entry

    def _check_existing(self, existing: WalletEntry, amount) -> WalletEntry:
        if existing.amount != amount:
            logger.critical(
                f"Wallet entry {existing.id} amount {existing.amount} != settlement {amount}"
            )
            raise IntegrityError(
                f"Wallet entry for job {existing.job_id} already recorded with a different amount",
                entity_id=existing.id,
                current_state=existing.status,
            )
        logger.debug(f"Wallet entry for job {existing.job_id} already exists: {existing.id}")
        return existing

    def mark_paid(self, entry_id: str, payment_date: Union[date, str, None] = None) -> WalletEntry:
        """Move an entry from pending to paid. Defaults the payment date to today."""
        entry = self.get(entry_id)
        if entry.is_paid:
            raise InvalidStateError(
                f"Wallet entry {entry_id} is already paid",
                entity_id=entry_id,
                current_state=entry.status,
            )
        try:
            paid_on = parse_date(payment_date) or self.clock.now().date()
        except ValueError as e:
            raise ValidationError(str(e))

        if not self.storage.mark_entry_paid(entry_id, paid_on):
            current = self.get(entry_id)
            raise InvalidStateError(
                f"Wallet entry {entry_id} is already paid",
                entity_id=entry_id,
                current_state=current.status,
            )

        logger.info(f"Wallet entry {entry_id} paid on {paid_on.isoformat()}")
        return self.get(entry_id)

    def entries(
        self,
        student_id: str,
        status: Optional[str] = None,
        sort: Union[WalletSort, str] = WalletSort.DATE,
        descending: bool = True,
    ) -> List[WalletEntry]:
        """A student's entries, optionally filtered by status, newest/largest first."""
        if isinstance(status, WalletEntryStatus):
            status = status.value
        if status is not None and status not in {s.value for s in WalletEntryStatus}:
            raise ValidationError(f"Invalid status filter: {status}")
        try:
            sort = WalletSort(sort).value
        except ValueError:
            raise ValidationError(f"Invalid sort: {sort}")
        entries = self.storage.list_entries(student_id, status=status)
        entries.sort(key=lambda e: e.sort_key(sort), reverse=descending)
        return entries

    def summarize(self, student_id: str) -> WalletSummary:
        return WalletSummary.fold(self.storage.list_entries(student_id))
