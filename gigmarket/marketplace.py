"""
Marketplace facade.

Wires one storage backend, one lock manager and one clock into the four
components so they share the same per-job locks:

    mp = Marketplace.in_memory()
    job = mp.jobs.post(draft)
    app = mp.applications.submit(job.id, "student-1")
    mp.applications.resolve(app.id, "accept", actor=job.poster_id)
    mp.jobs.complete(job.id)
    mp.wallet.summarize("student-1")
"""

import logging
from typing import Optional

from gigmarket.applications.ledger import ApplicationLedger
from gigmarket.config import MarketplaceConfig
from gigmarket.jobs.registry import JobRegistry
from gigmarket.location import HaversineLocationService, StubLocationService
from gigmarket.locking import KeyedLockManager
from gigmarket.protocols import Clock, LocationService, SystemClock
from gigmarket.settlement import SettlementCoordinator
from gigmarket.storage import InMemoryMarketplaceStorage, MarketplaceStorage, open_storage
from gigmarket.wallet.ledger import WalletLedger

logger = logging.getLogger(__name__)


def build_location_service(config: MarketplaceConfig) -> LocationService:
    if config.location_service == "stub":
        return StubLocationService()
    return HaversineLocationService(average_speed_kmh=config.average_speed_kmh)


class Marketplace:
    """The job registry, application ledger, wallet and settlement, sharing one store."""

    def __init__(
        self,
        storage: MarketplaceStorage,
        config: Optional[MarketplaceConfig] = None,
        clock: Optional[Clock] = None,
        location_service: Optional[LocationService] = None,
    ):
        self.config = config or MarketplaceConfig()
        self.storage = storage
        self.clock = clock or SystemClock()
        self.locks = KeyedLockManager(timeout=self.config.lock_timeout_seconds)

        self.jobs = JobRegistry(
            storage=storage,
            applications=storage,
            locks=self.locks,
            config=self.config,
            clock=self.clock,
        )
        self.applications = ApplicationLedger(
            storage=storage,
            registry=self.jobs,
            location_service=location_service or build_location_service(self.config),
        )
        self.wallet = WalletLedger(storage=storage, clock=self.clock)
        self.settlement = SettlementCoordinator(
            registry=self.jobs, applications=storage, wallet=self.wallet
        )
        self.settlement.attach()

    @classmethod
    def in_memory(
        cls,
        config: Optional[MarketplaceConfig] = None,
        clock: Optional[Clock] = None,
        location_service: Optional[LocationService] = None,
    ) -> "Marketplace":
        return cls(InMemoryMarketplaceStorage(), config, clock, location_service)

    @classmethod
    def from_config(
        cls, config: Optional[MarketplaceConfig] = None, clock: Optional[Clock] = None
    ) -> "Marketplace":
        config = config or MarketplaceConfig.from_env()
        storage = open_storage(config)
        logger.debug(f"Opened {config.storage_backend} storage")
        return cls(storage, config, clock)

    def close(self) -> None:
        self.storage.close()
