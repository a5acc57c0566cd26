# m3connect/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized portal settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key, used by every browser session client)
      - DATABASE_URL (Supabase Postgres connection string for content tables)
      - PORTAL_SESSION_SECRET (signs the browser session cookie)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (only used by the admin back office)
    """

    PROJECT_NAME: str = "M3 Connect Portal"

    # Supabase / DB config
    SUPABASE_URL: str
    SUPABASE_KEY: str
    DATABASE_URL: str

    # Service role key bypasses RLS (back office only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Upper bound for every identity / profile store round-trip.
    # None disables the bound.
    SUPABASE_REQUEST_TIMEOUT_SECONDS: float | None = 15.0

    # Browser session cookie
    PORTAL_SESSION_SECRET: str
    PORTAL_SESSION_ALG: str = "HS256"
    PORTAL_COOKIE_NAME: str = "m3_portal_session"
    PORTAL_COOKIE_SECURE: bool = True
    PORTAL_SESSION_IDLE_SECONDS: int = 60 * 60 * 12
    # Live browser sessions kept in memory; the least recently used go first
    PORTAL_MAX_SESSIONS: int = 1000

    # Navigation targets
    PUBLIC_SITE_URL: str = "http://localhost:5173"
    HOME_PATH: str = "/"
    RECOVERY_PATH: str = "/reset-password"
    ACCOUNT_PATH: str = "/account"

    # Password recovery page
    PASSWORD_MIN_LENGTH: int = 6
    RECOVERY_REDIRECT_DELAY_SECONDS: int = 2

    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
