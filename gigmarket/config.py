"""Configuration for the gigmarket engine.

Values come from keyword arguments or, via ``MarketplaceConfig.from_env()``,
from ``GIGMARKET_*`` environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

STORAGE_BACKENDS = ("memory", "sqlite", "supabase")
LOCATION_SERVICES = ("stub", "haversine")

_TRUTHY = {"1", "true", "yes", "on"}


def get_gigmarket_home() -> Path:
    """Directory for local state (``GIGMARKET_HOME`` or ``~/.gigmarket``)."""
    home = os.environ.get("GIGMARKET_HOME")
    return Path(home) if home else Path.home() / ".gigmarket"


@dataclass
class MarketplaceConfig:
    """Engine settings."""

    storage_backend: str = "memory"
    db_path: Optional[Path] = None
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    # Cancelling a filled job leaves its accepted application in place and
    # never produces a wallet entry. Off unless explicitly enabled.
    allow_cancel_filled: bool = False

    max_title_length: int = 200
    default_list_limit: int = 50
    max_list_limit: int = 200

    location_service: str = "haversine"
    average_speed_kmh: float = 20.0

    lock_timeout_seconds: Optional[float] = 30.0

    def __post_init__(self):
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"Invalid storage_backend: {self.storage_backend}. "
                f"Must be one of {', '.join(STORAGE_BACKENDS)}"
            )
        if self.location_service not in LOCATION_SERVICES:
            raise ValueError(
                f"Invalid location_service: {self.location_service}. "
                f"Must be one of {', '.join(LOCATION_SERVICES)}"
            )
        if self.db_path is not None:
            self.db_path = Path(self.db_path)
        if self.default_list_limit <= 0 or self.max_list_limit < self.default_list_limit:
            raise ValueError("List limits must satisfy 0 < default_list_limit <= max_list_limit")
        if self.average_speed_kmh <= 0:
            raise ValueError("average_speed_kmh must be positive")
        if self.storage_backend == "supabase" and not (self.supabase_url and self.supabase_key):
            raise ValueError("Supabase storage requires supabase_url and supabase_key")

    @property
    def resolved_db_path(self) -> Path:
        return self.db_path or get_gigmarket_home() / "gigmarket.db"

    def clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None or limit <= 0:
            return self.default_list_limit
        return min(limit, self.max_list_limit)

    @classmethod
    def from_env(cls) -> "MarketplaceConfig":
        env = os.environ
        timeout = env.get("GIGMARKET_LOCK_TIMEOUT")
        return cls(
            storage_backend=env.get("GIGMARKET_STORAGE", "sqlite"),
            db_path=env.get("GIGMARKET_DB_PATH") or None,
            supabase_url=env.get("GIGMARKET_SUPABASE_URL") or env.get("SUPABASE_URL"),
            supabase_key=env.get("GIGMARKET_SUPABASE_KEY") or env.get("SUPABASE_SECRET_KEY"),
            allow_cancel_filled=env.get("GIGMARKET_ALLOW_CANCEL_FILLED", "").lower() in _TRUTHY,
            location_service=env.get("GIGMARKET_LOCATION_SERVICE", "haversine"),
            average_speed_kmh=float(env.get("GIGMARKET_AVERAGE_SPEED_KMH", "20")),
            lock_timeout_seconds=float(timeout) if timeout else 30.0,
        )
