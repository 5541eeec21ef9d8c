"""Job data models.

A job moves through a small state machine:

    active ──fill──▶ filled ──complete──▶ completed
       │                │
       └────cancel──────┴──(only with allow_cancel_filled)──▶ cancelled

Jobs are never deleted; completed and cancelled are terminal.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from gigmarket.errors import ValidationError
from gigmarket.protocols import GeoPoint
from gigmarket.utils import (
    hours_between,
    isoformat_or_none,
    parse_datetime,
    to_decimal,
)

MAX_TITLE_LENGTH = 200


class JobStatus(str, Enum):
    """Job lifecycle status."""

    ACTIVE = "active"
    FILLED = "filled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class JobEvent(str, Enum):
    """Events that drive job transitions."""

    FILL = "fill"
    COMPLETE = "complete"
    CANCEL = "cancel"


class JobSort(str, Enum):
    """Sort keys for job listings."""

    RECENT = "recent"
    PAY = "pay"
    START_TIME = "start_time"


VALID_JOB_TRANSITIONS = {
    JobStatus.ACTIVE: {JobStatus.FILLED, JobStatus.CANCELLED},
    JobStatus.FILLED: {JobStatus.COMPLETED},
    JobStatus.COMPLETED: set(),
    JobStatus.CANCELLED: set(),
}

EVENT_TARGETS = {
    JobEvent.FILL: JobStatus.FILLED,
    JobEvent.COMPLETE: JobStatus.COMPLETED,
    JobEvent.CANCEL: JobStatus.CANCELLED,
}

# Status -> name of the timestamp field stamped on entry
STATUS_TIMESTAMPS = {
    JobStatus.FILLED: "filled_at",
    JobStatus.COMPLETED: "completed_at",
    JobStatus.CANCELLED: "cancelled_at",
}


def _require_text(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return str(value).strip()


@dataclass
class JobDraft:
    """Everything a poster supplies when creating a job.

    Validation happens when the registry turns the draft into a Job.
    """

    poster_id: str
    title: str
    domain: str
    description: str
    pay_offered: Any
    location_address: str
    start_time: datetime
    end_time: datetime
    is_negotiable: bool = False
    skills_required: Optional[str] = None
    gender_preference: Optional[str] = None
    age_preference: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    optional_instructions: Optional[str] = None


@dataclass
class Job:
    """A posted task with pay, schedule and location, owned by a poster."""

    id: str
    poster_id: str
    title: str
    domain: str
    description: str
    pay_offered: Decimal
    location_address: str
    start_time: datetime
    end_time: datetime
    is_negotiable: bool = False
    skills_required: Optional[str] = None
    gender_preference: Optional[str] = None
    age_preference: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    optional_instructions: Optional[str] = None
    status: str = JobStatus.ACTIVE.value
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    filled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.poster_id:
            raise ValidationError("poster_id is required")
        self.title = _require_text(self.title, "title")
        if len(self.title) > MAX_TITLE_LENGTH:
            raise ValidationError(f"Title too long (max {MAX_TITLE_LENGTH} characters)")
        self.domain = _require_text(self.domain, "domain")
        self.description = _require_text(self.description, "description")
        self.location_address = _require_text(self.location_address, "location_address")

        try:
            self.pay_offered = to_decimal(self.pay_offered, "pay_offered")
        except ValueError as e:
            raise ValidationError(str(e))
        if self.pay_offered <= 0:
            raise ValidationError("pay_offered must be positive")

        try:
            self.start_time = parse_datetime(self.start_time)
            self.end_time = parse_datetime(self.end_time)
        except ValueError as e:
            raise ValidationError(f"Invalid start_time or end_time: {e}")
        if self.start_time is None or self.end_time is None:
            raise ValidationError("start_time and end_time are required")
        if self.start_time >= self.end_time:
            raise ValidationError("start_time must be before end_time")

        if (self.latitude is None) != (self.longitude is None):
            raise ValidationError("latitude and longitude must be given together")
        if self.latitude is not None:
            if not -90.0 <= float(self.latitude) <= 90.0:
                raise ValidationError(f"latitude out of range: {self.latitude}")
            if not -180.0 <= float(self.longitude) <= 180.0:
                raise ValidationError(f"longitude out of range: {self.longitude}")

        if isinstance(self.status, JobStatus):
            self.status = self.status.value
        valid = {s.value for s in JobStatus}
        if self.status not in valid:
            raise ValidationError(f"Invalid status: {self.status}. Must be one of {valid}")

    @classmethod
    def from_draft(cls, job_id: str, draft: JobDraft, now: datetime) -> "Job":
        return cls(
            id=job_id,
            poster_id=draft.poster_id,
            title=draft.title,
            domain=draft.domain,
            description=draft.description,
            pay_offered=draft.pay_offered,
            location_address=draft.location_address,
            start_time=draft.start_time,
            end_time=draft.end_time,
            is_negotiable=bool(draft.is_negotiable),
            skills_required=draft.skills_required,
            gender_preference=draft.gender_preference,
            age_preference=draft.age_preference,
            latitude=draft.latitude,
            longitude=draft.longitude,
            optional_instructions=draft.optional_instructions,
            status=JobStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_active(self) -> bool:
        """Accepting applications."""
        return self.status == JobStatus.ACTIVE.value

    @property
    def is_filled(self) -> bool:
        return self.status == JobStatus.FILLED.value

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED.value, JobStatus.CANCELLED.value)

    @property
    def duration_hours(self) -> Decimal:
        return hours_between(self.start_time, self.end_time)

    @property
    def site(self) -> Optional[GeoPoint]:
        """Job coordinates, when the poster supplied them."""
        if self.latitude is None or self.longitude is None:
            return None
        return GeoPoint(float(self.latitude), float(self.longitude), self.location_address)

    def can_transition_to(self, new_status: JobStatus, allow_cancel_filled: bool = False) -> bool:
        current = JobStatus(self.status)
        if (
            allow_cancel_filled
            and current == JobStatus.FILLED
            and new_status == JobStatus.CANCELLED
        ):
            return True
        return new_status in VALID_JOB_TRANSITIONS.get(current, set())

    def matches_text(self, query: str) -> bool:
        """Case-insensitive substring match over title and description."""
        needle = query.lower()
        return needle in self.title.lower() or needle in self.description.lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "poster_id": self.poster_id,
            "title": self.title,
            "domain": self.domain,
            "description": self.description,
            "skills_required": self.skills_required,
            "gender_preference": self.gender_preference,
            "age_preference": self.age_preference,
            "pay_offered": str(self.pay_offered),
            "is_negotiable": self.is_negotiable,
            "location_address": self.location_address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "optional_instructions": self.optional_instructions,
            "status": self.status,
            "created_at": isoformat_or_none(self.created_at),
            "updated_at": isoformat_or_none(self.updated_at),
            "filled_at": isoformat_or_none(self.filled_at),
            "completed_at": isoformat_or_none(self.completed_at),
            "cancelled_at": isoformat_or_none(self.cancelled_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        return cls(
            id=data["id"],
            poster_id=data["poster_id"],
            title=data["title"],
            domain=data["domain"],
            description=data["description"],
            pay_offered=data["pay_offered"],
            location_address=data["location_address"],
            start_time=parse_datetime(data["start_time"]),
            end_time=parse_datetime(data["end_time"]),
            is_negotiable=bool(data.get("is_negotiable", False)),
            skills_required=data.get("skills_required"),
            gender_preference=data.get("gender_preference"),
            age_preference=data.get("age_preference"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            optional_instructions=data.get("optional_instructions"),
            status=data.get("status", JobStatus.ACTIVE.value),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
            filled_at=parse_datetime(data.get("filled_at")),
            completed_at=parse_datetime(data.get("completed_at")),
            cancelled_at=parse_datetime(data.get("cancelled_at")),
        )


@dataclass
class JobFilters:
    """Filters and ordering for job listings."""

    query: Optional[str] = None
    domain: Optional[str] = None
    status: Optional[str] = JobStatus.ACTIVE.value
    poster_id: Optional[str] = None
    sort: str = JobSort.RECENT.value
    descending: bool = True
    limit: int = 50
    offset: int = 0

    def __post_init__(self):
        if isinstance(self.sort, JobSort):
            self.sort = self.sort.value
        if self.sort not in {s.value for s in JobSort}:
            raise ValidationError(f"Invalid sort: {self.sort}")
        if isinstance(self.status, JobStatus):
            self.status = self.status.value
        if self.status is not None and self.status not in {s.value for s in JobStatus}:
            raise ValidationError(f"Invalid status filter: {self.status}")
        if self.query is not None:
            self.query = self.query.strip() or None
        if self.limit <= 0:
            raise ValidationError("limit must be positive")
        if self.offset < 0:
            raise ValidationError("offset cannot be negative")

    def matches(self, job: Job) -> bool:
        if self.status is not None and job.status != self.status:
            return False
        if self.domain is not None and job.domain != self.domain:
            return False
        if self.poster_id is not None and job.poster_id != self.poster_id:
            return False
        if self.query and not job.matches_text(self.query):
            return False
        return True

    def sort_key(self, job: Job):
        if self.sort == JobSort.PAY.value:
            return (job.pay_offered, job.id)
        if self.sort == JobSort.START_TIME.value:
            return (job.start_time, job.id)
        return (job.created_at or job.start_time, job.id)


@dataclass
class JobStateTransition:
    """Audit log entry for a job status change."""

    id: str
    job_id: str
    to_status: str
    actor_id: Optional[str] = None
    from_status: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_id": self.actor_id,
            "metadata": self.metadata,
            "created_at": isoformat_or_none(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobStateTransition":
        return cls(
            id=data["id"],
            job_id=data["job_id"],
            from_status=data.get("from_status"),
            to_status=data["to_status"],
            actor_id=data.get("actor_id"),
            metadata=data.get("metadata") or {},
            created_at=parse_datetime(data.get("created_at")),
        )


__all__ = [
    "EVENT_TARGETS",
    "Job",
    "JobDraft",
    "JobEvent",
    "JobFilters",
    "JobSort",
    "JobStateTransition",
    "JobStatus",
    "STATUS_TIMESTAMPS",
    "VALID_JOB_TRANSITIONS",
]
