"""
Jobs storage layer.

Protocol for job persistence plus an in-memory implementation for tests
and local development. SQLite and Supabase backends live in
``gigmarket.storage``.
"""

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import List, Optional, Protocol

from gigmarket.jobs.models import Job, JobFilters, JobStateTransition

logger = logging.getLogger(__name__)


class JobStorage(Protocol):
    """Protocol for job persistence backends."""

    def save_job(self, job: Job) -> str:
        """Insert a new job. Returns the job ID."""
        ...

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        ...

    def list_jobs(self, filters: JobFilters) -> List[Job]:
        """List jobs matching filters, sorted and paginated."""
        ...

    def list_jobs_due(self, before: datetime) -> List[Job]:
        """Filled jobs whose end_time is at or before ``before``."""
        ...

    def update_job(self, job: Job, expected_status: Optional[str] = None) -> bool:
        """Write a job back.

        With ``expected_status`` the write only happens if the stored status
        still matches (optimistic lock). Returns True if a row was written.
        """
        ...

    # Transitions (audit log)
    def save_transition(self, transition: JobStateTransition) -> str:
        """Save a state transition record. Returns the transition ID."""
        ...

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        """All state transitions for a job, oldest first."""
        ...


class InMemoryJobStorage:
    """In-memory job storage for testing and local development.

    Returns copies so callers never mutate stored state behind the
    storage's back.
    """

    def __init__(self):
        self._jobs: dict[str, Job] = {}
        self._transitions: dict[str, list[JobStateTransition]] = {}  # job_id -> list
        self._lock = threading.Lock()

    def _utc_now(self) -> datetime:
        return datetime.now(timezone.utc)

    # === Jobs ===

    def save_job(self, job: Job) -> str:
        with self._lock:
            self._jobs[job.id] = copy.deepcopy(job)
            self._transitions.setdefault(job.id, [])
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job else None

    def list_jobs(self, filters: JobFilters) -> List[Job]:
        with self._lock:
            jobs = [copy.deepcopy(j) for j in self._jobs.values() if filters.matches(j)]
        jobs.sort(key=filters.sort_key, reverse=filters.descending)
        return jobs[filters.offset : filters.offset + filters.limit]

    def list_jobs_due(self, before: datetime) -> List[Job]:
        with self._lock:
            due = [
                copy.deepcopy(j)
                for j in self._jobs.values()
                if j.is_filled and j.end_time <= before
            ]
        due.sort(key=lambda j: (j.end_time, j.id))
        return due

    def update_job(self, job: Job, expected_status: Optional[str] = None) -> bool:
        with self._lock:
            stored = self._jobs.get(job.id)
            if stored is None:
                return False
            if expected_status is not None and stored.status != expected_status:
                logger.debug(
                    f"Stale write on job {job.id}: expected {expected_status}, found {stored.status}"
                )
                return False
            self._jobs[job.id] = copy.deepcopy(job)
            return True

    # === Transitions ===

    def save_transition(self, transition: JobStateTransition) -> str:
        with self._lock:
            self._transitions.setdefault(transition.job_id, []).append(copy.deepcopy(transition))
        return transition.id

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        with self._lock:
            transitions = list(self._transitions.get(job_id, []))
        return sorted(transitions, key=lambda t: t.created_at or self._utc_now())
