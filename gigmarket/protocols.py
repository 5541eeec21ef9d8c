"""
gigmarket collaborator protocols
================================

Interfaces for the external collaborators the engine consumes:

- Clock: timestamps and completion triggers.
- LocationService: advisory distance and travel-time estimates.

Identity is not a protocol here: operations take the acting user's id
explicitly, and the HTTP surface resolves it from bearer tokens.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol, runtime_checkable

from gigmarket.utils import ensure_utc, utc_now


@dataclass(frozen=True)
class GeoPoint:
    """A coordinate pair, optionally with a human-readable address."""

    latitude: float
    longitude: float
    address: Optional[str] = None

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")


@dataclass(frozen=True)
class LocationEstimate:
    """Distance and travel time between two points. Advisory only."""

    distance_km: float
    eta_minutes: int


class LocationServiceError(Exception):
    """Raised by location services that cannot produce an estimate."""

    pass


@runtime_checkable
class LocationService(Protocol):
    """Estimates travel from a student's position to a job site."""

    def estimate(self, origin: GeoPoint, destination: GeoPoint) -> LocationEstimate:
        """Return an estimate or raise LocationServiceError."""
        ...


@runtime_checkable
class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return utc_now()


class FixedClock:
    """A clock that only moves when told to. Used by tests and dry runs."""

    def __init__(self, current: datetime):
        self._current = ensure_utc(current)

    def now(self) -> datetime:
        return self._current

    def advance(self, delta: timedelta) -> datetime:
        self._current = self._current + delta
        return self._current

    def set(self, current: datetime) -> None:
        self._current = ensure_utc(current)
