"""Marketplace dependency for FastAPI routes."""

from typing import Annotated

from fastapi import Depends

from gigmarket import Marketplace

from .config import Settings, get_settings
from .logging_config import get_logger

logger = get_logger("gigmarket.backend")

_marketplace: Marketplace | None = None


def get_marketplace_instance(settings: Settings | None = None) -> Marketplace:
    """Get the process-wide Marketplace, creating it on first use."""
    global _marketplace
    if _marketplace is None:
        if settings is None:
            settings = get_settings()
        _marketplace = Marketplace.from_config(settings.marketplace_config())
        logger.info(f"Marketplace ready (storage={settings.storage_backend})")
    return _marketplace


def reset_marketplace() -> None:
    """Drop the cached Marketplace (shutdown and tests)."""
    global _marketplace
    if _marketplace is not None:
        _marketplace.close()
    _marketplace = None


def get_marketplace(settings: Annotated[Settings, Depends(get_settings)]) -> Marketplace:
    """FastAPI dependency for the Marketplace."""
    return get_marketplace_instance(settings)


MarketplaceDep = Annotated[Marketplace, Depends(get_marketplace)]
