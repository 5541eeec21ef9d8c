"""
Jobs: postings, their state machine and the audit log of transitions.
"""

from gigmarket.jobs.models import (
    VALID_JOB_TRANSITIONS,
    Job,
    JobDraft,
    JobEvent,
    JobFilters,
    JobSort,
    JobStateTransition,
    JobStatus,
)
from gigmarket.jobs.registry import JobRegistry, JobResultSet
from gigmarket.jobs.storage import InMemoryJobStorage, JobStorage

__all__ = [
    # Models
    "Job",
    "JobDraft",
    "JobEvent",
    "JobFilters",
    "JobSort",
    "JobStateTransition",
    "JobStatus",
    "VALID_JOB_TRANSITIONS",
    # Storage
    "JobStorage",
    "InMemoryJobStorage",
    # Registry
    "JobRegistry",
    "JobResultSet",
]
