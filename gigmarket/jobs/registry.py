"""
Job registry.

Owns job records and their state machine. Every status change runs under
the job's keyed lock, is written with an optimistic status check, and is
recorded as a JobStateTransition.

Fill and cancel cascade onto applications: once a job leaves ``active``
no pending or negotiating application on it survives.
"""

import dataclasses
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from gigmarket.applications.models import OPEN_STATUSES, ApplicationStatus
from gigmarket.applications.storage import ApplicationStorage
from gigmarket.config import MarketplaceConfig
from gigmarket.errors import (
    ConflictError,
    IntegrityError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from gigmarket.jobs.models import (
    EVENT_TARGETS,
    STATUS_TIMESTAMPS,
    Job,
    JobDraft,
    JobEvent,
    JobFilters,
    JobStateTransition,
    JobStatus,
)
from gigmarket.jobs.storage import JobStorage
from gigmarket.locking import KeyedLockManager
from gigmarket.protocols import Clock, SystemClock
from gigmarket.utils import ensure_utc

logger = logging.getLogger(__name__)

CompletionListener = Callable[[Job], Any]

# Open applications are rejected in pages of this size until none remain
CASCADE_BATCH_SIZE = 500


class JobResultSet:
    """A lazy, restartable view over a job query.

    Nothing is fetched until iteration, and every iteration runs the query
    again, so a result set reflects the store at the time it is read.
    """

    def __init__(self, storage: JobStorage, filters: JobFilters):
        self._storage = storage
        self.filters = filters

    def __iter__(self) -> Iterator[Job]:
        return iter(self._storage.list_jobs(self.filters))

    def all(self) -> List[Job]:
        return list(self)

    def first(self) -> Optional[Job]:
        for job in self:
            return job
        return None

    def __repr__(self) -> str:
        return f"JobResultSet({self.filters!r})"


class JobRegistry:
    """Creates, lists and transitions jobs."""

    def __init__(
        self,
        storage: JobStorage,
        applications: ApplicationStorage,
        locks: Optional[KeyedLockManager] = None,
        config: Optional[MarketplaceConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.storage = storage
        self.applications = applications
        self.config = config or MarketplaceConfig()
        self.locks = locks or KeyedLockManager(timeout=self.config.lock_timeout_seconds)
        self.clock = clock or SystemClock()
        self._completion_listeners: List[CompletionListener] = []

    def on_completed(self, listener: CompletionListener) -> None:
        """Register a callback run after a job reaches ``completed``."""
        self._completion_listeners.append(listener)

    # =========================================================================
    # Creation and reads
    # =========================================================================

    def post(self, draft: JobDraft) -> Job:
        """Validate a draft and store it as an active job."""
        if draft.title and len(draft.title.strip()) > self.config.max_title_length:
            raise ValidationError(
                f"Title too long (max {self.config.max_title_length} characters)"
            )

        now = self.clock.now()
        job = Job.from_draft(str(uuid.uuid4()), draft, now)
        self.storage.save_job(job)
        self._record_transition(job, None, JobStatus.ACTIVE.value, draft.poster_id)

        logger.info(f"Job {job.id} posted by {job.poster_id}: {job.title}")
        return job

    def get(self, job_id: str) -> Job:
        job = self.storage.get_job(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}", entity_id=job_id)
        return job

    def list(self, filters: Optional[JobFilters] = None, **kwargs) -> JobResultSet:
        """Query jobs. Accepts a JobFilters or its fields as keyword arguments."""
        if filters is None:
            kwargs.setdefault("limit", self.config.default_list_limit)
            filters = JobFilters(**kwargs)
        elif kwargs:
            raise TypeError("Pass either a JobFilters or keyword filters, not both")
        filters = dataclasses.replace(filters, limit=self.config.clamp_limit(filters.limit))
        return JobResultSet(self.storage, filters)

    def history(self, job_id: str) -> List[JobStateTransition]:
        self.get(job_id)
        return self.storage.get_transitions(job_id)

    def due_for_completion(self, now: Optional[datetime] = None) -> List[Job]:
        """Filled jobs whose end time has passed."""
        return self.storage.list_jobs_due(ensure_utc(now) if now else self.clock.now())

    # =========================================================================
    # State machine
    # =========================================================================

    def transition(
        self,
        job_id: str,
        event: Union[JobEvent, str],
        actor_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Job:
        """Apply ``event`` to a job.

        ``actor_id`` of None means the system (completion sweep, settlement).
        Cancel and complete by anyone other than the poster are refused.
        """
        try:
            event = JobEvent(event)
        except ValueError:
            raise ValidationError(f"Unknown job event: {event}")
        target = EVENT_TARGETS[event]

        with self.locks.hold(job_id):
            job = self.get(job_id)

            if event in (JobEvent.CANCEL, JobEvent.COMPLETE):
                if actor_id is not None and actor_id != job.poster_id:
                    raise UnauthorizedError(
                        f"Only the poster can {event.value} job {job_id}",
                        entity_id=job_id,
                        current_state=job.status,
                    )

            if not job.can_transition_to(target, self.config.allow_cancel_filled):
                raise InvalidStateError(
                    f"Cannot {event.value} job {job_id} in status {job.status}",
                    entity_id=job_id,
                    current_state=job.status,
                )

            accepted_id = None
            if event == JobEvent.FILL:
                accepted_id = self._require_single_accepted(job)

            previous = job.status
            now = self.clock.now()
            job.status = target.value
            job.updated_at = now
            setattr(job, STATUS_TIMESTAMPS[target], now)

            if not self.storage.update_job(job, expected_status=previous):
                logger.warning(f"Lost race transitioning job {job_id} from {previous}")
                current = self.storage.get_job(job_id)
                raise ConflictError(
                    f"Job {job_id} changed while transitioning",
                    entity_id=job_id,
                    current_state=current.status if current else None,
                )

            details = dict(metadata or {})
            if accepted_id:
                details["application_id"] = accepted_id
            if event in (JobEvent.FILL, JobEvent.CANCEL):
                rejected = self._reject_open_applications(job_id, now)
                if rejected:
                    details["rejected_applications"] = rejected
            self._record_transition(job, previous, job.status, actor_id, details)

            logger.info(f"Job {job_id} {previous} -> {job.status} (actor={actor_id})")

            if event == JobEvent.COMPLETE:
                for listener in self._completion_listeners:
                    listener(job)

        return job

    def fill(self, job_id: str, actor_id: Optional[str] = None) -> Job:
        return self.transition(job_id, JobEvent.FILL, actor_id)

    def complete(self, job_id: str, actor_id: Optional[str] = None) -> Job:
        return self.transition(job_id, JobEvent.COMPLETE, actor_id)

    def cancel(self, job_id: str, actor_id: Optional[str] = None) -> Job:
        return self.transition(job_id, JobEvent.CANCEL, actor_id)

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_single_accepted(self, job: Job) -> str:
        accepted = self.applications.list_applications(
            job_id=job.id, statuses=[ApplicationStatus.ACCEPTED.value]
        )
        if not accepted:
            raise InvalidStateError(
                f"Job {job.id} has no accepted application to fill with",
                entity_id=job.id,
                current_state=job.status,
            )
        if len(accepted) > 1:
            logger.critical(f"Job {job.id} has {len(accepted)} accepted applications")
            raise IntegrityError(
                f"Job {job.id} has {len(accepted)} accepted applications",
                entity_id=job.id,
                current_state=job.status,
            )
        return accepted[0].id

    def _reject_open_applications(self, job_id: str, now: datetime) -> List[str]:
        rejected = []
        seen = set()
        while True:
            batch = [
                app
                for app in self.applications.list_applications(
                    job_id=job_id, statuses=OPEN_STATUSES, limit=CASCADE_BATCH_SIZE
                )
                if app.id not in seen
            ]
            if not batch:
                break
            for app in batch:
                seen.add(app.id)
                previous = app.status
                app.status = ApplicationStatus.REJECTED.value
                app.updated_at = now
                app.resolved_at = now
                if self.applications.update_application(app, expected_status=previous):
                    rejected.append(app.id)
                else:
                    logger.warning(f"Application {app.id} changed during cascade on job {job_id}")
        if rejected:
            logger.info(f"Rejected {len(rejected)} open application(s) on job {job_id}")
        return rejected

    def _record_transition(
        self,
        job: Job,
        from_status: Optional[str],
        to_status: str,
        actor_id: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        transition = JobStateTransition(
            id=str(uuid.uuid4()),
            job_id=job.id,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            metadata=metadata or {},
            created_at=self.clock.now(),
        )
        self.storage.save_transition(transition)
