"""API routes."""

from .applications import router as applications_router
from .jobs import router as jobs_router
from .maintenance import router as maintenance_router
from .wallet import router as wallet_router

__all__ = [
    "jobs_router",
    "applications_router",
    "wallet_router",
    "maintenance_router",
]
