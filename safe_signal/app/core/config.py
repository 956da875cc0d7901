"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development.

Both the Alert Service and the Client Alert Controller read from here,
so the fallback coordinate, storage key and API location are shared.

Usage:
    from safe_signal.app.core.config import settings
    print(settings.PORT)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "Safe Signal"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    RELOAD: bool = True  # auto-reload on file changes (dev only)
    API_PREFIX: str = "/api"

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
    ]
    CORS_ALLOW_ALL: bool = True  # False in production

    # ── Alert Service ──
    SEED_DEFAULT_CONTACTS: bool = True
    NOTIFIER_PROVIDER: str = "simulation"  # simulation | twilio | msg91 | disabled
    SMS_API_KEY: Optional[str] = None
    SMS_SENDER_ID: str = "SAFESIG"

    # ── Client: location ──
    FALLBACK_LATITUDE: float = -1.2921
    FALLBACK_LONGITUDE: float = 36.8219
    FALLBACK_LABEL: str = "Nairobi, Kenya"
    GEOLOCATION_TIMEOUT_MS: int = 10_000
    MAP_DEFAULT_ZOOM: int = 14
    MAP_CLOSE_ZOOM: int = 17

    # ── Client: contacts & emergency ──
    CONTACTS_STORAGE_KEY: str = "safeSOS_contacts"
    CONTACTS_STORE_PATH: str = ".safe_signal/local_storage.json"
    EMERGENCY_NUMBER: str = "999"

    # ── Client → Alert Service wiring ──
    ALERT_SERVICE_URL: str = "http://localhost:3001/api"
    REPORT_ALERTS_TO_SERVICE: bool = False
    ALERT_SERVICE_TIMEOUT: float = 5.0  # seconds

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
