"""Tests for location services, clocks and configuration."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from gigmarket import FixedClock, GeoPoint, Marketplace, MarketplaceConfig
from gigmarket.location import HaversineLocationService, StubLocationService, haversine_km
from gigmarket.marketplace import build_location_service
from gigmarket.protocols import Clock, LocationService, LocationServiceError


class TestLocation:
    def test_haversine_known_distance(self):
        london = GeoPoint(51.5074, -0.1278)
        paris = GeoPoint(48.8566, 2.3522)
        assert haversine_km(london, paris) == pytest.approx(343.5, abs=1.0)

    def test_haversine_estimate(self):
        service = HaversineLocationService(average_speed_kmh=30)
        a = GeoPoint(0.0, 0.0)
        b = GeoPoint(0.0, 0.1)

        estimate = service.estimate(a, b)

        assert estimate.distance_km == pytest.approx(11.12, abs=0.01)
        assert estimate.eta_minutes == 23

    def test_same_point_has_minimum_eta(self):
        point = GeoPoint(10.0, 10.0)
        estimate = HaversineLocationService().estimate(point, point)
        assert estimate.distance_km == 0
        assert estimate.eta_minutes == 1

    def test_missing_point(self):
        with pytest.raises(LocationServiceError):
            HaversineLocationService().estimate(None, GeoPoint(0, 0))

    def test_stub_counts_calls(self):
        stub = StubLocationService()
        stub.estimate(GeoPoint(0, 0), GeoPoint(1, 1))
        assert stub.calls == 1
        assert isinstance(stub, LocationService)

    def test_geopoint_ranges(self):
        with pytest.raises(ValueError):
            GeoPoint(120.0, 0.0)
        with pytest.raises(ValueError):
            GeoPoint(0.0, -181.0)

    def test_config_selects_service(self):
        assert isinstance(
            build_location_service(MarketplaceConfig(location_service="stub")), StubLocationService
        )
        service = build_location_service(MarketplaceConfig(average_speed_kmh=5))
        assert isinstance(service, HaversineLocationService)
        assert service.average_speed_kmh == 5


class TestClock:
    def test_fixed_clock(self):
        clock = FixedClock(datetime(2024, 1, 1, 12, 0))
        assert clock.now().tzinfo == timezone.utc
        clock.advance(timedelta(hours=2))
        assert clock.now().hour == 14
        assert isinstance(clock, Clock)


class TestConfig:
    def test_defaults(self):
        config = MarketplaceConfig()
        assert config.storage_backend == "memory"
        assert config.allow_cancel_filled is False

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"storage_backend": "redis"},
            {"location_service": "gps"},
            {"default_list_limit": 0},
            {"average_speed_kmh": 0},
            {"storage_backend": "supabase"},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            MarketplaceConfig(**kwargs)

    def test_clamp_limit(self):
        config = MarketplaceConfig(default_list_limit=10, max_list_limit=50)
        assert config.clamp_limit(None) == 10
        assert config.clamp_limit(-1) == 10
        assert config.clamp_limit(20) == 20
        assert config.clamp_limit(500) == 50

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GIGMARKET_STORAGE", "sqlite")
        monkeypatch.setenv("GIGMARKET_DB_PATH", str(tmp_path / "g.db"))
        monkeypatch.setenv("GIGMARKET_ALLOW_CANCEL_FILLED", "yes")
        monkeypatch.setenv("GIGMARKET_LOCATION_SERVICE", "stub")

        config = MarketplaceConfig.from_env()

        assert config.storage_backend == "sqlite"
        assert config.resolved_db_path == tmp_path / "g.db"
        assert config.allow_cancel_filled is True
        assert config.location_service == "stub"

    def test_default_db_path_uses_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GIGMARKET_HOME", str(tmp_path))
        assert MarketplaceConfig().resolved_db_path == Path(tmp_path) / "gigmarket.db"

    def test_from_config_opens_sqlite(self, tmp_path):
        config = MarketplaceConfig(storage_backend="sqlite", db_path=tmp_path / "x.db")
        mp = Marketplace.from_config(config)
        try:
            assert (tmp_path / "x.db").exists()
        finally:
            mp.close()
