"""
Supabase storage for gigmarket.

Maps the three storage protocols onto Postgres tables through the
supabase-py client. Uniqueness is enforced by the database; a unique
violation (SQLSTATE 23505) is reported as DuplicateRecordError. Status
changes use ``UPDATE ... WHERE status = expected`` for optimistic locking.
"""

import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from postgrest.exceptions import APIError
from supabase import Client, create_client

from gigmarket.applications.models import Application, NegotiationOffer
from gigmarket.errors import DuplicateRecordError
from gigmarket.jobs.models import Job, JobFilters, JobSort, JobStateTransition, JobStatus
from gigmarket.utils import ensure_utc
from gigmarket.wallet.models import WalletEntry, WalletEntryStatus

logger = logging.getLogger(__name__)

# Table names (keep in sync with supabase/migrations/)
JOBS_TABLE = "jobs"
APPLICATIONS_TABLE = "applications"
WALLET_ENTRIES_TABLE = "wallet_entries"
JOB_TRANSITIONS_TABLE = "job_state_transitions"
NEGOTIATION_OFFERS_TABLE = "negotiation_offers"

UNIQUE_VIOLATION = "23505"

_JOB_SORT_COLUMNS = {
    JobSort.RECENT.value: "created_at",
    JobSort.PAY.value: "pay_offered",
    JobSort.START_TIME.value: "start_time",
}


def _sanitize_search_query(query: str) -> str:
    """Strip characters with meaning in LIKE patterns or PostgREST filters."""
    if not query:
        return ""
    special_chars = ["%", "_", "\\", "'", '"', ";", "--", "/*", "*/", ",", "(", ")"]
    sanitized = query
    for char in special_chars:
        sanitized = sanitized.replace(char, "")
    return sanitized[:100].strip()


def _is_unique_violation(error: APIError) -> bool:
    return getattr(error, "code", None) == UNIQUE_VIOLATION


class SupabaseMarketplaceStorage:
    """Jobs, applications and wallet entries in Supabase."""

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_credentials(cls, url: str, key: str) -> "SupabaseMarketplaceStorage":
        if not url or not key:
            raise ValueError("Supabase URL and key are required")
        return cls(create_client(url, key))

    def close(self) -> None:
        pass

    def _table(self, name: str):
        return self.client.table(name)

    # === Jobs ===

    def save_job(self, job: Job) -> str:
        self._table(JOBS_TABLE).insert(job.to_dict()).execute()
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        result = self._table(JOBS_TABLE).select("*").eq("id", job_id).execute()
        return Job.from_dict(result.data[0]) if result.data else None

    def list_jobs(self, filters: JobFilters) -> List[Job]:
        query = self._table(JOBS_TABLE).select("*")
        if filters.status is not None:
            query = query.eq("status", filters.status)
        if filters.domain is not None:
            query = query.eq("domain", filters.domain)
        if filters.poster_id is not None:
            query = query.eq("poster_id", filters.poster_id)
        if filters.query:
            needle = _sanitize_search_query(filters.query)
            if needle:
                query = query.or_(f"title.ilike.%{needle}%,description.ilike.%{needle}%")

        query = query.order(_JOB_SORT_COLUMNS[filters.sort], desc=filters.descending)
        query = query.order("id", desc=filters.descending)
        query = query.range(filters.offset, filters.offset + filters.limit - 1)
        result = query.execute()
        return [Job.from_dict(row) for row in result.data or []]

    def list_jobs_due(self, before: datetime) -> List[Job]:
        result = (
            self._table(JOBS_TABLE)
            .select("*")
            .eq("status", JobStatus.FILLED.value)
            .lte("end_time", ensure_utc(before).isoformat())
            .order("end_time")
            .execute()
        )
        return [Job.from_dict(row) for row in result.data or []]

    def update_job(self, job: Job, expected_status: Optional[str] = None) -> bool:
        data = job.to_dict()
        job_id = data.pop("id")
        query = self._table(JOBS_TABLE).update(data).eq("id", job_id)
        if expected_status is not None:
            query = query.eq("status", expected_status)
        result = query.execute()
        return bool(result.data)

    def save_transition(self, transition: JobStateTransition) -> str:
        self._table(JOB_TRANSITIONS_TABLE).insert(transition.to_dict()).execute()
        return transition.id

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        result = (
            self._table(JOB_TRANSITIONS_TABLE)
            .select("*")
            .eq("job_id", job_id)
            .order("created_at")
            .execute()
        )
        return [JobStateTransition.from_dict(row) for row in result.data or []]

    # === Applications ===

    def save_application(self, application: Application) -> str:
        try:
            self._table(APPLICATIONS_TABLE).insert(application.to_dict()).execute()
        except APIError as e:
            if _is_unique_violation(e):
                raise DuplicateRecordError(
                    APPLICATIONS_TABLE, f"{application.job_id}/{application.student_id}"
                ) from e
            raise
        return application.id

    def get_application(self, application_id: str) -> Optional[Application]:
        result = (
            self._table(APPLICATIONS_TABLE).select("*").eq("id", application_id).execute()
        )
        return Application.from_dict(result.data[0]) if result.data else None

    def find_application(self, job_id: str, student_id: str) -> Optional[Application]:
        result = (
            self._table(APPLICATIONS_TABLE)
            .select("*")
            .eq("job_id", job_id)
            .eq("student_id", student_id)
            .execute()
        )
        return Application.from_dict(result.data[0]) if result.data else None

    def list_applications(
        self,
        job_id: Optional[str] = None,
        student_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        limit: int = 100,
    ) -> List[Application]:
        query = self._table(APPLICATIONS_TABLE).select("*")
        if job_id is not None:
            query = query.eq("job_id", job_id)
        if student_id is not None:
            query = query.eq("student_id", student_id)
        if statuses is not None:
            query = query.in_("status", list(statuses))
        result = query.order("created_at", desc=True).limit(limit).execute()
        return [Application.from_dict(row) for row in result.data or []]

    def update_application(
        self, application: Application, expected_status: Optional[str] = None
    ) -> bool:
        data = application.to_dict()
        app_id = data.pop("id")
        query = self._table(APPLICATIONS_TABLE).update(data).eq("id", app_id)
        if expected_status is not None:
            query = query.eq("status", expected_status)
        try:
            result = query.execute()
        except APIError as e:
            if _is_unique_violation(e):
                logger.warning(f"Constraint rejected update of application {app_id}: {e}")
                return False
            raise
        return bool(result.data)

    def save_offer(self, offer: NegotiationOffer) -> str:
        self._table(NEGOTIATION_OFFERS_TABLE).insert(offer.to_dict()).execute()
        return offer.id

    def list_offers(self, application_id: str) -> List[NegotiationOffer]:
        result = (
            self._table(NEGOTIATION_OFFERS_TABLE)
            .select("*")
            .eq("application_id", application_id)
            .order("created_at")
            .execute()
        )
        return [NegotiationOffer.from_dict(row) for row in result.data or []]

    # === Wallet ===

    def insert_entry(self, entry: WalletEntry) -> str:
        try:
            self._table(WALLET_ENTRIES_TABLE).insert(entry.to_dict()).execute()
        except APIError as e:
            if _is_unique_violation(e):
                raise DuplicateRecordError(
                    WALLET_ENTRIES_TABLE, f"{entry.job_id}/{entry.student_id}"
                ) from e
            raise
        return entry.id

    def get_entry(self, entry_id: str) -> Optional[WalletEntry]:
        result = self._table(WALLET_ENTRIES_TABLE).select("*").eq("id", entry_id).execute()
        return WalletEntry.from_dict(result.data[0]) if result.data else None

    def find_entry(self, job_id: str, student_id: str) -> Optional[WalletEntry]:
        result = (
            self._table(WALLET_ENTRIES_TABLE)
            .select("*")
            .eq("job_id", job_id)
            .eq("student_id", student_id)
            .execute()
        )
        return WalletEntry.from_dict(result.data[0]) if result.data else None

    def list_entries(self, student_id: str, status: Optional[str] = None) -> List[WalletEntry]:
        query = self._table(WALLET_ENTRIES_TABLE).select("*").eq("student_id", student_id)
        if status is not None:
            query = query.eq("status", status)
        result = query.execute()
        return [WalletEntry.from_dict(row) for row in result.data or []]

    def mark_entry_paid(self, entry_id: str, payment_date: date) -> bool:
        data: dict[str, Any] = {
            "status": WalletEntryStatus.PAID.value,
            "payment_date": payment_date.isoformat(),
        }
        result = (
            self._table(WALLET_ENTRIES_TABLE)
            .update(data)
            .eq("id", entry_id)
            .eq("status", WalletEntryStatus.PENDING.value)
            .execute()
        )
        return bool(result.data)
