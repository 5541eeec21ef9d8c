"""
Application ledger.

Submission, negotiation and resolution of applications. All writes for a
job's applications run under that job's keyed lock, the same lock the
registry takes for job transitions, so accepting an application and
filling the job happen in one critical section.

Negotiation alternates: after one party makes an offer only the other
party may counter, accept (poster) or withdraw it (the offerer).
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, List, Optional, Union

from gigmarket.applications.models import (
    Application,
    ApplicationStatus,
    Decision,
    NegotiationOffer,
    Party,
)
from gigmarket.applications.storage import ApplicationStorage
from gigmarket.errors import (
    ConflictError,
    DuplicateRecordError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from gigmarket.jobs.models import Job, JobEvent
from gigmarket.jobs.registry import JobRegistry
from gigmarket.protocols import GeoPoint, LocationService, LocationServiceError
from gigmarket.utils import to_decimal

logger = logging.getLogger(__name__)


def _offer_amount(value: Any) -> Decimal:
    try:
        amount = to_decimal(value, "offer")
    except ValueError as e:
        raise ValidationError(str(e))
    if amount <= 0:
        raise ValidationError("Offer must be positive")
    return amount


def _status_filter(status: Optional[str]) -> Optional[List[str]]:
    if not status:
        return None
    try:
        return [ApplicationStatus(status).value]
    except ValueError:
        raise ValidationError(f"Invalid status filter: {status}")


class ApplicationLedger:
    """Tracks students' applications to jobs."""

    def __init__(
        self,
        storage: ApplicationStorage,
        registry: JobRegistry,
        location_service: Optional[LocationService] = None,
    ):
        self.storage = storage
        self.registry = registry
        self.location_service = location_service

    @property
    def clock(self):
        return self.registry.clock

    @property
    def locks(self):
        return self.registry.locks

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, application_id: str) -> Application:
        app = self.storage.get_application(application_id)
        if app is None:
            raise NotFoundError(
                f"Application not found: {application_id}", entity_id=application_id
            )
        return app

    def list_for_job(
        self, job_id: str, status: Optional[str] = None, limit: int = 100
    ) -> List[Application]:
        statuses = _status_filter(status)
        return self.storage.list_applications(job_id=job_id, statuses=statuses, limit=limit)

    def list_for_student(
        self, student_id: str, status: Optional[str] = None, limit: int = 100
    ) -> List[Application]:
        statuses = _status_filter(status)
        return self.storage.list_applications(
            student_id=student_id, statuses=statuses, limit=limit
        )

    def offers(self, application_id: str) -> List[NegotiationOffer]:
        """Negotiation history of an application, oldest first."""
        self.get(application_id)
        return self.storage.list_offers(application_id)

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(
        self,
        job_id: str,
        student_id: str,
        offer: Any = None,
        message: Optional[str] = None,
        origin: Optional[GeoPoint] = None,
    ) -> Application:
        """Apply to an active job, optionally with a counter-offer."""
        if not student_id:
            raise ValidationError("student_id is required")
        amount = _offer_amount(offer) if offer is not None else None

        with self.locks.hold(job_id):
            job = self.registry.get(job_id)

            if not job.is_active:
                raise ConflictError(
                    f"Job {job_id} is not accepting applications",
                    entity_id=job_id,
                    current_state=job.status,
                )
            if job.poster_id == student_id:
                raise ValidationError(
                    "Posters cannot apply to their own job", entity_id=job_id
                )
            if amount is not None and not job.is_negotiable:
                raise ValidationError(
                    f"Job {job_id} does not accept counter-offers", entity_id=job_id
                )

            existing = self.storage.find_application(job_id, student_id)
            if existing is not None:
                raise ConflictError(
                    f"Student {student_id} already applied to job {job_id}",
                    entity_id=existing.id,
                    current_state=existing.status,
                )

            now = self.clock.now()
            app = Application(
                id=str(uuid.uuid4()),
                job_id=job_id,
                student_id=student_id,
                original_pay=job.pay_offered,
                status=(
                    ApplicationStatus.NEGOTIATING.value
                    if amount is not None
                    else ApplicationStatus.PENDING.value
                ),
                negotiated_pay=amount,
                last_offer_by=Party.STUDENT.value if amount is not None else None,
                message=message,
                created_at=now,
                updated_at=now,
            )
            self._attach_estimate(app, job, origin)

            try:
                self.storage.save_application(app)
            except DuplicateRecordError:
                logger.warning(f"Duplicate application for job {job_id} by {student_id}")
                raise ConflictError(
                    f"Student {student_id} already applied to job {job_id}",
                    entity_id=job_id,
                )
            if amount is not None:
                self._record_offer(app, Party.STUDENT, amount)

        logger.info(f"Application {app.id} submitted to job {job_id} by {student_id}")
        return app

    def _attach_estimate(self, app: Application, job: Job, origin: Optional[GeoPoint]) -> None:
        site = job.site
        if self.location_service is None or origin is None or site is None:
            return
        try:
            estimate = self.location_service.estimate(origin, site)
        except LocationServiceError as e:
            logger.warning(f"Location estimate failed for job {job.id}: {e}")
            return
        app.distance_km = estimate.distance_km
        app.time_to_reach_min = estimate.eta_minutes

    # =========================================================================
    # Negotiation
    # =========================================================================

    def negotiate(self, application_id: str, new_offer: Any, actor: str) -> Application:
        """Make an offer on behalf of the student or the poster."""
        amount = _offer_amount(new_offer)
        app = self.get(application_id)

        with self.locks.hold(app.job_id):
            app = self.get(application_id)
            job = self.registry.get(app.job_id)
            party = self._party_of(actor, app, job)

            self._require_open(app)
            if not job.is_negotiable:
                raise ValidationError(
                    f"Job {job.id} does not accept counter-offers", entity_id=job.id
                )
            if not job.is_active:
                raise InvalidStateError(
                    f"Job {job.id} is no longer active",
                    entity_id=job.id,
                    current_state=job.status,
                )
            if app.last_offer_by == party.value:
                raise InvalidStateError(
                    f"Waiting on the {party.other.value} to respond",
                    entity_id=app.id,
                    current_state=app.status,
                )

            previous = app.status
            app.status = ApplicationStatus.NEGOTIATING.value
            app.negotiated_pay = amount
            app.last_offer_by = party.value
            app.updated_at = self.clock.now()
            self._write(app, previous)
            self._record_offer(app, party, amount)

        logger.info(f"Application {app.id}: {party.value} offered {amount}")
        return app

    def withdraw_offer(self, application_id: str, actor: str) -> Application:
        """Withdraw the standing offer, returning the application to pending.

        ``last_offer_by`` is kept, so the next offer must come from the other party.
        """
        app = self.get(application_id)

        with self.locks.hold(app.job_id):
            app = self.get(application_id)
            job = self.registry.get(app.job_id)
            party = self._party_of(actor, app, job)

            if not app.is_negotiating:
                raise InvalidStateError(
                    f"Application {app.id} has no standing offer",
                    entity_id=app.id,
                    current_state=app.status,
                )
            if app.last_offer_by != party.value:
                raise InvalidStateError(
                    "Only the party who made the standing offer can withdraw it",
                    entity_id=app.id,
                    current_state=app.status,
                )

            app.status = ApplicationStatus.PENDING.value
            app.negotiated_pay = None
            app.updated_at = self.clock.now()
            self._write(app, ApplicationStatus.NEGOTIATING.value)

        logger.info(f"Application {app.id}: {party.value} withdrew their offer")
        return app

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve(
        self, application_id: str, decision: Union[Decision, str], actor: str
    ) -> Application:
        """Accept or reject an application. Only the job's poster may resolve.

        Accepting locks in the standing offer (or the listed pay) and fills
        the job, which rejects every other open application on it.
        """
        try:
            decision = Decision(decision)
        except ValueError:
            raise ValidationError(f"Unknown decision: {decision}")
        app = self.get(application_id)

        with self.locks.hold(app.job_id):
            app = self.get(application_id)
            job = self.registry.get(app.job_id)
            if actor != job.poster_id:
                raise UnauthorizedError(
                    f"Only the poster can resolve applications to job {job.id}",
                    entity_id=app.id,
                    current_state=app.status,
                )
            self._require_open(app)

            now = self.clock.now()
            previous = app.status

            if decision == Decision.REJECT:
                app.status = ApplicationStatus.REJECTED.value
                app.updated_at = now
                app.resolved_at = now
                self._write(app, previous)
                logger.info(f"Application {app.id} rejected")
                return app

            if job.is_filled:
                logger.warning(f"Accept of {app.id} lost: job {job.id} already filled")
                raise ConflictError(
                    f"Job {job.id} has already been filled",
                    entity_id=job.id,
                    current_state=job.status,
                )
            if not job.is_active:
                raise InvalidStateError(
                    f"Job {job.id} is {job.status}",
                    entity_id=job.id,
                    current_state=job.status,
                )

            app.final_pay = app.agreed_pay
            app.status = ApplicationStatus.ACCEPTED.value
            app.updated_at = now
            app.resolved_at = now
            self._write(app, previous)
            try:
                self.registry.transition(
                    job.id,
                    JobEvent.FILL,
                    actor_id=actor,
                    metadata={"final_pay": str(app.final_pay)},
                )
            except Exception:
                self._undo_accept(app, previous)
                raise

        logger.info(f"Application {app.id} accepted at {app.final_pay}")
        return app

    def accept(self, application_id: str, actor: str) -> Application:
        return self.resolve(application_id, Decision.ACCEPT, actor)

    def reject(self, application_id: str, actor: str) -> Application:
        return self.resolve(application_id, Decision.REJECT, actor)

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _party_of(actor: str, app: Application, job: Job) -> Party:
        if actor == app.student_id:
            return Party.STUDENT
        if actor == job.poster_id:
            return Party.POSTER
        raise UnauthorizedError(
            f"{actor} is not a party to application {app.id}",
            entity_id=app.id,
            current_state=app.status,
        )

    @staticmethod
    def _require_open(app: Application) -> None:
        if not app.is_open:
            raise InvalidStateError(
                f"Application {app.id} is already {app.status}",
                entity_id=app.id,
                current_state=app.status,
            )

    def _write(self, app: Application, expected_status: str) -> None:
        if not self.storage.update_application(app, expected_status=expected_status):
            current = self.storage.get_application(app.id)
            logger.warning(f"Lost race updating application {app.id}")
            raise ConflictError(
                f"Application {app.id} changed concurrently",
                entity_id=app.id,
                current_state=current.status if current else None,
            )

    def _undo_accept(self, app: Application, previous: str) -> None:
        logger.error(f"Fill failed for job {app.job_id}; reverting acceptance of {app.id}")
        app.status = previous
        app.final_pay = None
        app.resolved_at = None
        self.storage.update_application(app, expected_status=ApplicationStatus.ACCEPTED.value)

    def _record_offer(self, app: Application, party: Party, amount: Decimal) -> None:
        self.storage.save_offer(
            NegotiationOffer(
                id=str(uuid.uuid4()),
                application_id=app.id,
                party=party.value,
                amount=amount,
                created_at=app.updated_at,
            )
        )
