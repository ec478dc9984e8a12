"""
Runtime settings read from the environment.

Settings are read once per process and cached. Tests that change the
environment call get_settings.cache_clear().
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Service configuration.

    Every field can be overridden by the environment variable of the same
    name in upper case (DATABASE_URL, HOTMART_WEBHOOK_SECRET, ...).
    Empty variables count as unset.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    env: str = "development"
    database_url: Optional[str] = None

    # Hotmart webhook
    hotmart_webhook_secret: Optional[str] = None
    # When true, deliveries without an event id are rejected instead of processed
    hotmart_require_event_id: bool = False
    # When false, unrecognised plan ids are logged as error_unknown_plan
    hotmart_unknown_plan_fallback: bool = True

    # Supabase-issued session tokens
    supabase_jwt_secret: Optional[str] = None
    supabase_jwt_audience: str = "authenticated"

    plans_config_path: Optional[str] = None

    @property
    def webhook_auth_configured(self) -> bool:
        return bool(self.hotmart_webhook_secret)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build Settings from environment variables."""
    return Settings()
