"""Configuration settings for the gigmarket backend."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

from gigmarket.config import MarketplaceConfig


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Storage: memory | sqlite | supabase
    storage_backend: str = "sqlite"
    database_path: str | None = None  # SQLite file; defaults to ~/.gigmarket/gigmarket.db
    supabase_url: str | None = None
    supabase_secret_key: str | None = None

    # Marketplace rules
    allow_cancel_filled: bool = False
    location_service: str = "haversine"
    average_speed_kmh: float = 20.0

    # JWT
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 1 week

    # Users allowed to call maintenance endpoints, in addition to admin tokens
    admin_user_ids: list[str] = []

    # App
    debug: bool = False
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model

    def marketplace_config(self) -> MarketplaceConfig:
        return MarketplaceConfig(
            storage_backend=self.storage_backend,
            db_path=Path(self.database_path) if self.database_path else None,
            supabase_url=self.supabase_url,
            supabase_key=self.supabase_secret_key,
            allow_cancel_filled=self.allow_cancel_filled,
            location_service=self.location_service,
            average_speed_kmh=self.average_speed_kmh,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
