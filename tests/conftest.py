"""
Pytest fixtures and test configuration for gigmarket tests.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from gigmarket import FixedClock, JobDraft, Marketplace, MarketplaceConfig
from gigmarket.location import StubLocationService
from gigmarket.storage import SQLiteMarketplaceStorage

NOW = datetime(2024, 2, 26, 8, 0, tzinfo=timezone.utc)

POSTER = "poster-1"
STUDENT_A = "student-a"
STUDENT_B = "student-b"


@pytest.fixture
def clock():
    """A clock frozen at a known instant; tests advance it explicitly."""
    return FixedClock(NOW)


@pytest.fixture
def location():
    return StubLocationService(distance_km=3.2, eta_minutes=14)


@pytest.fixture
def marketplace(clock, location):
    """In-memory marketplace with a fixed clock and stub location service."""
    mp = Marketplace.in_memory(clock=clock, location_service=location)
    yield mp
    mp.close()


@pytest.fixture
def sqlite_marketplace(tmp_path, clock, location):
    """Marketplace backed by a temporary SQLite file."""
    config = MarketplaceConfig(storage_backend="sqlite", db_path=tmp_path / "gigmarket.db")
    mp = Marketplace(
        SQLiteMarketplaceStorage(config.resolved_db_path),
        config=config,
        clock=clock,
        location_service=location,
    )
    yield mp
    mp.close()


@pytest.fixture
def make_draft():
    """Factory for job drafts. Defaults: 4-hour job tomorrow paying 500."""

    def _make(**overrides) -> JobDraft:
        start = overrides.pop("start_time", NOW + timedelta(days=1))
        hours = overrides.pop("hours", 4)
        fields = dict(
            poster_id=POSTER,
            title="Stock shelves",
            domain="retail",
            description="Unpack deliveries and stock shelves in the back room",
            pay_offered=Decimal("500"),
            location_address="1 High Street",
            latitude=40.7128,
            longitude=-74.0060,
            start_time=start,
            end_time=start + timedelta(hours=hours),
            is_negotiable=False,
        )
        fields.update(overrides)
        return JobDraft(**fields)

    return _make


@pytest.fixture
def post_job(marketplace, make_draft):
    """Post a job on the in-memory marketplace and return it."""

    def _post(**overrides):
        return marketplace.jobs.post(make_draft(**overrides))

    return _post
