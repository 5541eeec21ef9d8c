"""Pytest configuration and fixtures."""

import os
import secrets
from datetime import datetime, timedelta, timezone

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
os.environ.setdefault("STORAGE_BACKEND", "memory")

from app.auth import create_access_token  # noqa: E402
from app.config import get_settings  # noqa: E402
from app.dependencies import get_marketplace  # noqa: E402
from app.main import app  # noqa: E402
from app.rate_limit import limiter  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from gigmarket import FixedClock, Marketplace  # noqa: E402
from gigmarket.location import StubLocationService  # noqa: E402

NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)

EMPLOYER_ID = "usr_TEST_EMPLOYER_0001"
OTHER_EMPLOYER_ID = "usr_TEST_EMPLOYER_0002"
STUDENT_ID = "usr_TEST_STUDENT_0001"
OTHER_STUDENT_ID = "usr_TEST_STUDENT_0002"
ADMIN_ID = "usr_TEST_ADMIN_0001"


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def marketplace(clock):
    """A fresh in-memory marketplace wired into the app for one test."""
    mp = Marketplace.in_memory(clock=clock, location_service=StubLocationService())
    app.dependency_overrides[get_marketplace] = lambda: mp
    yield mp
    app.dependency_overrides.pop(get_marketplace, None)


@pytest.fixture
def client(marketplace):
    """Create a test client."""
    limiter.enabled = False
    yield TestClient(app)
    limiter.enabled = True


def _headers(user_id: str, role: str, is_admin: bool = False) -> dict:
    token = create_access_token(get_settings(), user_id=user_id, role=role, is_admin=is_admin)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def employer_headers():
    return _headers(EMPLOYER_ID, "employer")


@pytest.fixture
def other_employer_headers():
    return _headers(OTHER_EMPLOYER_ID, "employer")


@pytest.fixture
def student_headers():
    return _headers(STUDENT_ID, "student")


@pytest.fixture
def other_student_headers():
    return _headers(OTHER_STUDENT_ID, "student")


@pytest.fixture
def admin_headers():
    return _headers(ADMIN_ID, "employer", is_admin=True)


@pytest.fixture
def job_payload():
    """Body for POST /api/v1/jobs: a three-hour negotiable job tomorrow."""
    start = NOW + timedelta(days=1)
    return {
        "title": "Help move boxes",
        "domain": "moving",
        "description": "Carry boxes from the van to a third-floor flat",
        "pay_offered": "60.00",
        "is_negotiable": True,
        "location_address": "12 Market Street",
        "latitude": 51.5072,
        "longitude": -0.1276,
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(hours=3)).isoformat(),
    }


@pytest.fixture
def posted_job(client, employer_headers, job_payload):
    response = client.post("/api/v1/jobs", json=job_payload, headers=employer_headers)
    assert response.status_code == 201
    return response.json()
