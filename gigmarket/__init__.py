"""
gigmarket - a local gig marketplace engine.

Posters publish short paid jobs, students apply and negotiate pay, and
completed jobs settle into per-student wallets.
"""

from gigmarket.applications import Application, ApplicationLedger, ApplicationStatus, Decision
from gigmarket.config import MarketplaceConfig
from gigmarket.errors import (
    ConflictError,
    IntegrityError,
    InvalidStateError,
    MarketplaceError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from gigmarket.jobs import Job, JobDraft, JobEvent, JobFilters, JobRegistry, JobStatus
from gigmarket.marketplace import Marketplace
from gigmarket.protocols import FixedClock, GeoPoint, SystemClock
from gigmarket.settlement import SettlementCoordinator, SweepResult
from gigmarket.wallet import WalletEntry, WalletLedger, WalletSummary

__version__ = "0.1.0"

__all__ = [
    "Application",
    "ApplicationLedger",
    "ApplicationStatus",
    "ConflictError",
    "Decision",
    "FixedClock",
    "GeoPoint",
    "IntegrityError",
    "InvalidStateError",
    "Job",
    "JobDraft",
    "JobEvent",
    "JobFilters",
    "JobRegistry",
    "JobStatus",
    "Marketplace",
    "MarketplaceConfig",
    "MarketplaceError",
    "NotFoundError",
    "SettlementCoordinator",
    "SweepResult",
    "SystemClock",
    "UnauthorizedError",
    "ValidationError",
    "WalletEntry",
    "WalletLedger",
    "WalletSummary",
]
