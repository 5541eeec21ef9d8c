"""
Applications storage layer.

Backends must enforce uniqueness of (job_id, student_id) and report a
violation as DuplicateRecordError, so the guarantee holds even if two
processes race past the ledger's own check.
"""

import copy
import threading
from typing import Iterable, List, Optional, Protocol

from gigmarket.applications.models import Application, NegotiationOffer
from gigmarket.errors import DuplicateRecordError


class ApplicationStorage(Protocol):
    """Protocol for application persistence backends."""

    def save_application(self, application: Application) -> str:
        """Insert an application. Raises DuplicateRecordError for an existing pair."""
        ...

    def get_application(self, application_id: str) -> Optional[Application]:
        ...

    def find_application(self, job_id: str, student_id: str) -> Optional[Application]:
        """The application for a (job, student) pair, if any."""
        ...

    def list_applications(
        self,
        job_id: Optional[str] = None,
        student_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        limit: int = 100,
    ) -> List[Application]:
        """List applications, newest first."""
        ...

    def update_application(
        self, application: Application, expected_status: Optional[str] = None
    ) -> bool:
        """Write an application back, optionally only if its stored status matches."""
        ...

    def save_offer(self, offer: NegotiationOffer) -> str:
        ...

    def list_offers(self, application_id: str) -> List[NegotiationOffer]:
        """Negotiation history, oldest first."""
        ...


class InMemoryApplicationStorage:
    """In-memory application storage for testing and local development."""

    def __init__(self):
        self._applications: dict[str, Application] = {}
        self._by_pair: dict[tuple[str, str], str] = {}  # (job_id, student_id) -> application_id
        self._offers: dict[str, list[NegotiationOffer]] = {}
        self._lock = threading.Lock()

    def save_application(self, application: Application) -> str:
        pair = (application.job_id, application.student_id)
        with self._lock:
            if pair in self._by_pair:
                raise DuplicateRecordError("applications", f"{pair[0]}/{pair[1]}")
            self._applications[application.id] = copy.deepcopy(application)
            self._by_pair[pair] = application.id
        return application.id

    def get_application(self, application_id: str) -> Optional[Application]:
        with self._lock:
            app = self._applications.get(application_id)
            return copy.deepcopy(app) if app else None

    def find_application(self, job_id: str, student_id: str) -> Optional[Application]:
        with self._lock:
            app_id = self._by_pair.get((job_id, student_id))
            return copy.deepcopy(self._applications[app_id]) if app_id else None

    def list_applications(
        self,
        job_id: Optional[str] = None,
        student_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        limit: int = 100,
    ) -> List[Application]:
        wanted = set(statuses) if statuses is not None else None
        with self._lock:
            apps = [copy.deepcopy(a) for a in self._applications.values()]

        if job_id is not None:
            apps = [a for a in apps if a.job_id == job_id]
        if student_id is not None:
            apps = [a for a in apps if a.student_id == student_id]
        if wanted is not None:
            apps = [a for a in apps if a.status in wanted]

        apps.sort(key=lambda a: (a.created_at is not None, a.created_at, a.id), reverse=True)
        return apps[:limit]

    def update_application(
        self, application: Application, expected_status: Optional[str] = None
    ) -> bool:
        with self._lock:
            stored = self._applications.get(application.id)
            if stored is None:
                return False
            if expected_status is not None and stored.status != expected_status:
                return False
            self._applications[application.id] = copy.deepcopy(application)
            return True

    def save_offer(self, offer: NegotiationOffer) -> str:
        with self._lock:
            self._offers.setdefault(offer.application_id, []).append(copy.deepcopy(offer))
        return offer.id

    def list_offers(self, application_id: str) -> List[NegotiationOffer]:
        with self._lock:
            return [copy.deepcopy(o) for o in self._offers.get(application_id, [])]
