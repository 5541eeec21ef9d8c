"""Wallet data models.

A WalletEntry records money owed to (pending) or paid to (paid) a student
for one completed job. ``amount`` and ``duration_hours`` are fixed at
creation; the only mutation is pending → paid, which stamps
``payment_date``.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from gigmarket.errors import ValidationError
from gigmarket.utils import (
    decimal_str_or_none,
    isoformat_or_none,
    optional_decimal,
    parse_date,
    parse_datetime,
    to_decimal,
)


class WalletEntryStatus(str, Enum):
    """Payment state of a wallet entry."""

    PENDING = "pending"
    PAID = "paid"


class WalletSort(str, Enum):
    """Sort keys for a student's entry list."""

    DATE = "date"
    AMOUNT = "amount"
    HOURS = "hours"


@dataclass
class WalletEntry:
    """Ledger record for one accepted and completed job."""

    id: str
    student_id: str
    job_id: str
    amount: Decimal
    duration_hours: Optional[Decimal] = None
    status: str = WalletEntryStatus.PENDING.value
    payment_date: Optional[date] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.student_id or not self.job_id:
            raise ValidationError("student_id and job_id are required")
        try:
            self.amount = to_decimal(self.amount, "amount")
            self.duration_hours = optional_decimal(self.duration_hours, "duration_hours")
        except ValueError as e:
            raise ValidationError(str(e))
        if self.amount < 0:
            raise ValidationError("amount cannot be negative")
        if self.duration_hours is not None and self.duration_hours < 0:
            raise ValidationError("duration_hours cannot be negative")

        if isinstance(self.status, WalletEntryStatus):
            self.status = self.status.value
        valid = {s.value for s in WalletEntryStatus}
        if self.status not in valid:
            raise ValidationError(f"Invalid status: {self.status}. Must be one of {valid}")

        self.payment_date = parse_date(self.payment_date)
        if (self.payment_date is not None) != (self.status == WalletEntryStatus.PAID.value):
            raise ValidationError("payment_date must be set if and only if the entry is paid")

    @property
    def is_paid(self) -> bool:
        return self.status == WalletEntryStatus.PAID.value

    @property
    def is_pending(self) -> bool:
        return self.status == WalletEntryStatus.PENDING.value

    def sort_key(self, sort: str):
        if sort == WalletSort.AMOUNT.value:
            return (self.amount, self.id)
        if sort == WalletSort.HOURS.value:
            return (self.duration_hours or Decimal(0), self.id)
        return (self.created_at is not None, self.created_at, self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "job_id": self.job_id,
            "amount": str(self.amount),
            "duration_hours": decimal_str_or_none(self.duration_hours),
            "status": self.status,
            "payment_date": isoformat_or_none(self.payment_date),
            "created_at": isoformat_or_none(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WalletEntry":
        return cls(
            id=data["id"],
            student_id=data["student_id"],
            job_id=data["job_id"],
            amount=data["amount"],
            duration_hours=data.get("duration_hours"),
            status=data.get("status", WalletEntryStatus.PENDING.value),
            payment_date=data.get("payment_date"),
            created_at=parse_datetime(data.get("created_at")),
        )


@dataclass(frozen=True)
class WalletSummary:
    """Aggregate of a student's wallet entries.

    ``add`` folds one entry in and ``merge`` combines two partial
    summaries. Both are plain sums, so any grouping or order of entries
    yields the same result.
    """

    total_earned: Decimal = Decimal(0)
    pending_payments: Decimal = Decimal(0)
    hours_worked: Decimal = Decimal(0)
    jobs_completed: int = 0

    def add(self, entry: WalletEntry) -> "WalletSummary":
        if entry.is_paid:
            return replace(
                self,
                total_earned=self.total_earned + entry.amount,
                hours_worked=self.hours_worked + (entry.duration_hours or Decimal(0)),
                jobs_completed=self.jobs_completed + 1,
            )
        return replace(self, pending_payments=self.pending_payments + entry.amount)

    def merge(self, other: "WalletSummary") -> "WalletSummary":
        return WalletSummary(
            total_earned=self.total_earned + other.total_earned,
            pending_payments=self.pending_payments + other.pending_payments,
            hours_worked=self.hours_worked + other.hours_worked,
            jobs_completed=self.jobs_completed + other.jobs_completed,
        )

    @classmethod
    def fold(cls, entries: Iterable[WalletEntry]) -> "WalletSummary":
        summary = cls()
        for entry in entries:
            summary = summary.add(entry)
        return summary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_earned": str(self.total_earned),
            "pending_payments": str(self.pending_payments),
            "hours_worked": str(self.hours_worked),
            "jobs_completed": self.jobs_completed,
        }
