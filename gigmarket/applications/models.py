"""Application data models.

One application exists per (job, student) pair:

    pending ⇄ negotiating ──▶ accepted | rejected

Accepted and rejected are terminal. ``final_pay`` is set exactly when the
application is accepted.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from gigmarket.errors import ValidationError
from gigmarket.utils import (
    decimal_str_or_none,
    isoformat_or_none,
    optional_decimal,
    parse_datetime,
    to_decimal,
)


class ApplicationStatus(str, Enum):
    """Application lifecycle status."""

    PENDING = "pending"
    NEGOTIATING = "negotiating"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Party(str, Enum):
    """The two sides of a negotiation."""

    STUDENT = "student"
    POSTER = "poster"

    @property
    def other(self) -> "Party":
        return Party.POSTER if self is Party.STUDENT else Party.STUDENT


class Decision(str, Enum):
    """Poster's resolution of an application."""

    ACCEPT = "accept"
    REJECT = "reject"


OPEN_STATUSES = frozenset({ApplicationStatus.PENDING.value, ApplicationStatus.NEGOTIATING.value})
TERMINAL_STATUSES = frozenset({ApplicationStatus.ACCEPTED.value, ApplicationStatus.REJECTED.value})


def _as_value(value, enum_cls, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value.value
    valid = {m.value for m in enum_cls}
    if value not in valid:
        raise ValidationError(f"Invalid {field_name}: {value}. Must be one of {valid}")
    return value


@dataclass
class Application:
    """A student's claim on a job, optionally carrying a counter-offer."""

    id: str
    job_id: str
    student_id: str
    original_pay: Decimal
    status: str = ApplicationStatus.PENDING.value
    negotiated_pay: Optional[Decimal] = None
    final_pay: Optional[Decimal] = None
    last_offer_by: Optional[str] = None
    distance_km: Optional[float] = None
    time_to_reach_min: Optional[int] = None
    message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.job_id:
            raise ValidationError("job_id is required")
        if not self.student_id:
            raise ValidationError("student_id is required")
        self.status = _as_value(self.status, ApplicationStatus, "status")
        self.last_offer_by = _as_value(self.last_offer_by, Party, "last_offer_by")

        try:
            self.original_pay = to_decimal(self.original_pay, "original_pay")
            self.negotiated_pay = optional_decimal(self.negotiated_pay, "negotiated_pay")
            self.final_pay = optional_decimal(self.final_pay, "final_pay")
        except ValueError as e:
            raise ValidationError(str(e))
        if self.original_pay <= 0:
            raise ValidationError("original_pay must be positive")
        if self.negotiated_pay is not None and self.negotiated_pay <= 0:
            raise ValidationError("negotiated_pay must be positive")

        if (self.final_pay is not None) != (self.status == ApplicationStatus.ACCEPTED.value):
            raise ValidationError("final_pay must be set if and only if the application is accepted")

        if self.message is not None and not self.message.strip():
            self.message = None

    @property
    def is_open(self) -> bool:
        """Pending or negotiating: can still be negotiated or resolved."""
        return self.status in OPEN_STATUSES

    @property
    def is_pending(self) -> bool:
        return self.status == ApplicationStatus.PENDING.value

    @property
    def is_negotiating(self) -> bool:
        return self.status == ApplicationStatus.NEGOTIATING.value

    @property
    def is_accepted(self) -> bool:
        return self.status == ApplicationStatus.ACCEPTED.value

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def agreed_pay(self) -> Decimal:
        """The pay acceptance would lock in: the standing offer, else the listed pay."""
        if self.negotiated_pay is not None:
            return self.negotiated_pay
        return self.original_pay

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "student_id": self.student_id,
            "status": self.status,
            "original_pay": str(self.original_pay),
            "negotiated_pay": decimal_str_or_none(self.negotiated_pay),
            "final_pay": decimal_str_or_none(self.final_pay),
            "last_offer_by": self.last_offer_by,
            "distance_km": self.distance_km,
            "time_to_reach_min": self.time_to_reach_min,
            "message": self.message,
            "created_at": isoformat_or_none(self.created_at),
            "updated_at": isoformat_or_none(self.updated_at),
            "resolved_at": isoformat_or_none(self.resolved_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Application":
        return cls(
            id=data["id"],
            job_id=data["job_id"],
            student_id=data["student_id"],
            original_pay=data["original_pay"],
            status=data.get("status", ApplicationStatus.PENDING.value),
            negotiated_pay=data.get("negotiated_pay"),
            final_pay=data.get("final_pay"),
            last_offer_by=data.get("last_offer_by"),
            distance_km=data.get("distance_km"),
            time_to_reach_min=data.get("time_to_reach_min"),
            message=data.get("message"),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
            resolved_at=parse_datetime(data.get("resolved_at")),
        )


@dataclass
class NegotiationOffer:
    """One offer in an application's negotiation history."""

    id: str
    application_id: str
    party: str
    amount: Decimal
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.party = _as_value(self.party, Party, "party")
        try:
            self.amount = to_decimal(self.amount, "amount")
        except ValueError as e:
            raise ValidationError(str(e))
        if self.amount <= 0:
            raise ValidationError("Offer amount must be positive")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "application_id": self.application_id,
            "party": self.party,
            "amount": str(self.amount),
            "created_at": isoformat_or_none(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NegotiationOffer":
        return cls(
            id=data["id"],
            application_id=data["application_id"],
            party=data["party"],
            amount=data["amount"],
            created_at=parse_datetime(data.get("created_at")),
        )
