"""Location service implementations.

Both are deterministic. The stub returns fixed values and is what tests
inject; the haversine service computes great-circle distance and derives a
travel time from an average speed. Either can be replaced by a routing API
without touching engine invariants, since estimates are advisory.
"""

import math

from gigmarket.protocols import GeoPoint, LocationEstimate, LocationServiceError

EARTH_RADIUS_KM = 6371.0088


class StubLocationService:
    """Returns the same estimate for every request."""

    def __init__(self, distance_km: float = 2.5, eta_minutes: int = 10):
        if distance_km < 0 or eta_minutes < 0:
            raise ValueError("Stub estimates must be non-negative")
        self.distance_km = distance_km
        self.eta_minutes = eta_minutes
        self.calls = 0

    def estimate(self, origin: GeoPoint, destination: GeoPoint) -> LocationEstimate:
        self.calls += 1
        return LocationEstimate(distance_km=self.distance_km, eta_minutes=self.eta_minutes)


class HaversineLocationService:
    """Straight-line distance with a speed-based travel time."""

    def __init__(self, average_speed_kmh: float = 20.0, minimum_eta_minutes: int = 1):
        if average_speed_kmh <= 0:
            raise ValueError("average_speed_kmh must be positive")
        self.average_speed_kmh = average_speed_kmh
        self.minimum_eta_minutes = minimum_eta_minutes

    def estimate(self, origin: GeoPoint, destination: GeoPoint) -> LocationEstimate:
        if origin is None or destination is None:
            raise LocationServiceError("Both origin and destination are required")
        distance = haversine_km(origin, destination)
        eta = math.ceil(distance / self.average_speed_kmh * 60)
        return LocationEstimate(
            distance_km=round(distance, 2),
            eta_minutes=max(self.minimum_eta_minutes, eta),
        )


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in kilometres."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))
