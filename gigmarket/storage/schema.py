"""Database schema for gigmarket SQLite storage.

Money is stored as TEXT to keep Decimal values exact; timestamps as
ISO-8601 TEXT in UTC.
"""

import logging
import sqlite3

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

ALLOWED_TABLES = frozenset(
    {
        "jobs",
        "applications",
        "wallet_entries",
        "job_state_transitions",
        "negotiation_offers",
        "schema_version",
    }
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    poster_id TEXT NOT NULL,
    title TEXT NOT NULL,
    domain TEXT NOT NULL,
    description TEXT NOT NULL,
    skills_required TEXT,
    gender_preference TEXT,
    age_preference TEXT,
    pay_offered TEXT NOT NULL,
    is_negotiable INTEGER NOT NULL DEFAULT 0,
    location_address TEXT NOT NULL,
    latitude REAL,
    longitude REAL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    optional_instructions TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT,
    updated_at TEXT,
    filled_at TEXT,
    completed_at TEXT,
    cancelled_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
CREATE INDEX IF NOT EXISTS idx_jobs_domain ON jobs(domain);
CREATE INDEX IF NOT EXISTS idx_jobs_poster ON jobs(poster_id);
CREATE INDEX IF NOT EXISTS idx_jobs_due ON jobs(status, end_time);

CREATE TABLE IF NOT EXISTS job_state_transitions (
    id TEXT PRIMARY KEY,
    job_id TEXT NOT NULL REFERENCES jobs(id),
    from_status TEXT,
    to_status TEXT NOT NULL,
    actor_id TEXT,
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at TEXT,
    seq INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_transitions_job ON job_state_transitions(job_id, created_at, seq);

CREATE TABLE IF NOT EXISTS applications (
    id TEXT PRIMARY KEY,
    job_id TEXT NOT NULL REFERENCES jobs(id),
    student_id TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    original_pay TEXT NOT NULL,
    negotiated_pay TEXT,
    final_pay TEXT,
    last_offer_by TEXT,
    distance_km REAL,
    time_to_reach_min INTEGER,
    message TEXT,
    created_at TEXT,
    updated_at TEXT,
    resolved_at TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_applications_pair ON applications(job_id, student_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_applications_one_accepted
    ON applications(job_id) WHERE status = 'accepted';
CREATE INDEX IF NOT EXISTS idx_applications_student ON applications(student_id);

CREATE TABLE IF NOT EXISTS negotiation_offers (
    id TEXT PRIMARY KEY,
    application_id TEXT NOT NULL REFERENCES applications(id),
    party TEXT NOT NULL,
    amount TEXT NOT NULL,
    created_at TEXT,
    seq INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_offers_application ON negotiation_offers(application_id, seq);

CREATE TABLE IF NOT EXISTS wallet_entries (
    id TEXT PRIMARY KEY,
    student_id TEXT NOT NULL,
    job_id TEXT NOT NULL REFERENCES jobs(id),
    amount TEXT NOT NULL,
    duration_hours TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    payment_date TEXT,
    created_at TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_wallet_pair ON wallet_entries(job_id, student_id);
CREATE INDEX IF NOT EXISTS idx_wallet_student ON wallet_entries(student_id, status);
"""


def validate_table_name(table: str) -> str:
    """Guard table names interpolated into SQL."""
    if table not in ALLOWED_TABLES:
        raise ValueError(f"Invalid table name: {table}")
    return table


def init_db(conn: sqlite3.Connection) -> None:
    """Create tables and indexes and record the schema version."""
    conn.executescript(SCHEMA)
    row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
    if row is None:
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
    elif row[0] != SCHEMA_VERSION:
        logger.info(f"Updating schema version {row[0]} -> {SCHEMA_VERSION}")
        conn.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))
