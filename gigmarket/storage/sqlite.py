"""
Local SQLite storage for gigmarket.

One connection per operation via ``_connect()``, WAL journal mode and a
busy timeout so several processes can share a database file. Uniqueness
rules live in the schema as unique indexes and surface as
DuplicateRecordError on insert.
"""

import contextlib
import json
import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from gigmarket.applications.models import Application, NegotiationOffer
from gigmarket.errors import DuplicateRecordError
from gigmarket.jobs.models import Job, JobFilters, JobSort, JobStateTransition, JobStatus
from gigmarket.storage.schema import init_db, validate_table_name
from gigmarket.utils import ensure_utc
from gigmarket.wallet.models import WalletEntry, WalletEntryStatus

logger = logging.getLogger(__name__)

_JOB_SORT_COLUMNS = {
    JobSort.RECENT.value: "COALESCE(created_at, start_time)",
    JobSort.PAY.value: "CAST(pay_offered AS REAL)",
    JobSort.START_TIME.value: "start_time",
}


def escape_like_pattern(pattern: str) -> str:
    """Escape LIKE pattern special characters to prevent pattern injection."""
    return pattern.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _job_row(job: Job) -> Dict[str, Any]:
    data = job.to_dict()
    data["is_negotiable"] = 1 if job.is_negotiable else 0
    return data


class SQLiteMarketplaceStorage:
    """Jobs, applications and wallet entries in a local SQLite file."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = self._validate_db_path(db_path)
        self._init_db()

    @staticmethod
    def _validate_db_path(db_path: Union[str, Path]) -> Path:
        if str(db_path) == ":memory:":
            raise ValueError(
                "SQLite storage opens a connection per operation; use a file path, "
                "or InMemoryMarketplaceStorage for an in-process store"
            )
        try:
            resolved = Path(db_path).expanduser().resolve()
            resolved.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Invalid database path: {e}")
            raise ValueError(f"Invalid database path: {e}")
        return resolved

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Commit on success, roll back on error, always close."""
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            init_db(conn)

    def close(self) -> None:
        """Connections are per-operation; nothing to release."""
        pass

    def _insert(self, conn: sqlite3.Connection, table: str, row: Dict[str, Any]) -> None:
        validate_table_name(table)
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        conn.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", tuple(row.values())
        )

    @staticmethod
    def _next_seq(conn: sqlite3.Connection, table: str) -> int:
        validate_table_name(table)
        row = conn.execute(f"SELECT COALESCE(MAX(seq), 0) + 1 FROM {table}").fetchone()
        return row[0]

    # === Jobs ===

    def save_job(self, job: Job) -> str:
        with self._connect() as conn:
            self._insert(conn, "jobs", _job_row(job))
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return Job.from_dict(dict(row)) if row else None

    def list_jobs(self, filters: JobFilters) -> List[Job]:
        clauses, params = [], []
        if filters.status is not None:
            clauses.append("status = ?")
            params.append(filters.status)
        if filters.domain is not None:
            clauses.append("domain = ?")
            params.append(filters.domain)
        if filters.poster_id is not None:
            clauses.append("poster_id = ?")
            params.append(filters.poster_id)
        if filters.query:
            pattern = f"%{escape_like_pattern(filters.query.lower())}%"
            clauses.append(
                "(lower(title) LIKE ? ESCAPE '\\' OR lower(description) LIKE ? ESCAPE '\\')"
            )
            params.extend([pattern, pattern])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        direction = "DESC" if filters.descending else "ASC"
        order = _JOB_SORT_COLUMNS[filters.sort]
        sql = (
            f"SELECT * FROM jobs {where} "
            f"ORDER BY {order} {direction}, id {direction} LIMIT ? OFFSET ?"
        )
        params.extend([filters.limit, filters.offset])

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [Job.from_dict(dict(r)) for r in rows]

    def list_jobs_due(self, before: datetime) -> List[Job]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM jobs WHERE status = ? AND end_time <= ? ORDER BY end_time, id",
                (JobStatus.FILLED.value, ensure_utc(before).isoformat()),
            ).fetchall()
        return [Job.from_dict(dict(r)) for r in rows]

    def update_job(self, job: Job, expected_status: Optional[str] = None) -> bool:
        row = _job_row(job)
        job_id = row.pop("id")
        assignments = ", ".join(f"{col} = ?" for col in row)
        sql = f"UPDATE jobs SET {assignments} WHERE id = ?"
        params = list(row.values()) + [job_id]
        if expected_status is not None:
            sql += " AND status = ?"
            params.append(expected_status)
        with self._connect() as conn:
            cursor = conn.execute(sql, params)
            return cursor.rowcount > 0

    def save_transition(self, transition: JobStateTransition) -> str:
        row = transition.to_dict()
        row["metadata"] = json.dumps(row["metadata"])
        with self._connect() as conn:
            row["seq"] = self._next_seq(conn, "job_state_transitions")
            self._insert(conn, "job_state_transitions", row)
        return transition.id

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM job_state_transitions WHERE job_id = ? ORDER BY created_at, seq",
                (job_id,),
            ).fetchall()
        transitions = []
        for r in rows:
            data = dict(r)
            data["metadata"] = json.loads(data["metadata"] or "{}")
            transitions.append(JobStateTransition.from_dict(data))
        return transitions

    # === Applications ===

    def save_application(self, application: Application) -> str:
        try:
            with self._connect() as conn:
                self._insert(conn, "applications", application.to_dict())
        except sqlite3.IntegrityError as e:
            raise DuplicateRecordError(
                "applications", f"{application.job_id}/{application.student_id}"
            ) from e
        return application.id

    def get_application(self, application_id: str) -> Optional[Application]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM applications WHERE id = ?", (application_id,)
            ).fetchone()
        return Application.from_dict(dict(row)) if row else None

    def find_application(self, job_id: str, student_id: str) -> Optional[Application]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM applications WHERE job_id = ? AND student_id = ?",
                (job_id, student_id),
            ).fetchone()
        return Application.from_dict(dict(row)) if row else None

    def list_applications(
        self,
        job_id: Optional[str] = None,
        student_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        limit: int = 100,
    ) -> List[Application]:
        clauses, params = [], []
        if job_id is not None:
            clauses.append("job_id = ?")
            params.append(job_id)
        if student_id is not None:
            clauses.append("student_id = ?")
            params.append(student_id)
        if statuses is not None:
            wanted = list(statuses)
            if not wanted:
                return []
            clauses.append(f"status IN ({', '.join('?' for _ in wanted)})")
            params.extend(wanted)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = f"SELECT * FROM applications {where} ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [Application.from_dict(dict(r)) for r in rows]

    def update_application(
        self, application: Application, expected_status: Optional[str] = None
    ) -> bool:
        row = application.to_dict()
        app_id = row.pop("id")
        assignments = ", ".join(f"{col} = ?" for col in row)
        sql = f"UPDATE applications SET {assignments} WHERE id = ?"
        params = list(row.values()) + [app_id]
        if expected_status is not None:
            sql += " AND status = ?"
            params.append(expected_status)
        try:
            with self._connect() as conn:
                cursor = conn.execute(sql, params)
                return cursor.rowcount > 0
        except sqlite3.IntegrityError as e:
            # Second accepted application on one job
            logger.warning(f"Constraint rejected update of application {app_id}: {e}")
            return False

    def save_offer(self, offer: NegotiationOffer) -> str:
        row = offer.to_dict()
        with self._connect() as conn:
            row["seq"] = self._next_seq(conn, "negotiation_offers")
            self._insert(conn, "negotiation_offers", row)
        return offer.id

    def list_offers(self, application_id: str) -> List[NegotiationOffer]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, application_id, party, amount, created_at "
                "FROM negotiation_offers WHERE application_id = ? ORDER BY seq",
                (application_id,),
            ).fetchall()
        return [NegotiationOffer.from_dict(dict(r)) for r in rows]

    # === Wallet ===

    def insert_entry(self, entry: WalletEntry) -> str:
        try:
            with self._connect() as conn:
                self._insert(conn, "wallet_entries", entry.to_dict())
        except sqlite3.IntegrityError as e:
            raise DuplicateRecordError(
                "wallet_entries", f"{entry.job_id}/{entry.student_id}"
            ) from e
        return entry.id

    def get_entry(self, entry_id: str) -> Optional[WalletEntry]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM wallet_entries WHERE id = ?", (entry_id,)
            ).fetchone()
        return WalletEntry.from_dict(dict(row)) if row else None

    def find_entry(self, job_id: str, student_id: str) -> Optional[WalletEntry]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM wallet_entries WHERE job_id = ? AND student_id = ?",
                (job_id, student_id),
            ).fetchone()
        return WalletEntry.from_dict(dict(row)) if row else None

    def list_entries(self, student_id: str, status: Optional[str] = None) -> List[WalletEntry]:
        sql = "SELECT * FROM wallet_entries WHERE student_id = ?"
        params: List[Any] = [student_id]
        if status is not None:
            sql += " AND status = ?"
            params.append(status)
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [WalletEntry.from_dict(dict(r)) for r in rows]

    def mark_entry_paid(self, entry_id: str, payment_date: date) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE wallet_entries SET status = ?, payment_date = ? "
                "WHERE id = ? AND status = ?",
                (
                    WalletEntryStatus.PAID.value,
                    payment_date.isoformat(),
                    entry_id,
                    WalletEntryStatus.PENDING.value,
                ),
            )
            return cursor.rowcount > 0
