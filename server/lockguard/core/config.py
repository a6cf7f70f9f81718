import logging
import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Look for .env in project root (parent of server/)
_env_file = Path(__file__).resolve().parent.parent.parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=_env_file, extra="ignore")

    # Environment
    env: Literal["development", "production"] = "development"

    # Server
    port: int = 8000

    # Database - supports sqlite://, postgres://, postgresql://, or postgresql+psycopg://
    database_url: str = "sqlite:///./lockguard.db"

    @property
    def database_url_sync(self) -> str:
        """Return database URL with psycopg driver for SQLAlchemy."""
        url = self.database_url
        # Convert postgres:// or postgresql:// to postgresql+psycopg://
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+psycopg://", 1)
        elif url.startswith("postgresql://") and "+psycopg" not in url:
            url = url.replace("postgresql://", "postgresql+psycopg://", 1)
        return url

    # Attempt store
    lockout_store: Literal["database", "memory"] = "database"
    store_timeout_seconds: float = 5.0
    store_max_retries: int = 3

    # Lockout policy
    lockout_max_failed_attempts: int = 5
    lockout_duration_seconds: int = 5 * 60  # 5 minutes
    lockout_attempt_reset_seconds: int = 15 * 60  # 15 minutes

    # External credential verifier (empty base URL = no verifier, sync is a no-op)
    verifier_base_url: str = ""
    verifier_api_key: str = ""
    verifier_timeout_seconds: float = 3.0

    # Verifier cache invalidation after a lockout is cleared
    sync_max_attempts: int = 3
    sync_retry_backoff_seconds: float = 0.2
    sync_reset_delay_seconds: float = 0.5

    # Cleanup sweeper
    sweep_batch_size: int = 100
    sweep_interval_seconds: int = 60

    # Shared key for the lockout HTTP API (auth flow + admin tooling)
    lockout_api_key: str = ""

    # Trusted proxy IPs for X-Forwarded-For (comma-separated)
    # Set to nginx/load balancer IPs in production; empty = trust direct connection only
    trusted_proxies: str = "127.0.0.1,::1"

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def validate_settings(settings: Settings) -> None:
    """Validate required settings and print helpful error messages."""
    errors = []

    if settings.lockout_max_failed_attempts < 1:
        errors.append("LOCKOUT_MAX_FAILED_ATTEMPTS must be at least 1")
    if settings.lockout_duration_seconds <= 0:
        errors.append("LOCKOUT_DURATION_SECONDS must be positive")
    if settings.lockout_attempt_reset_seconds <= 0:
        errors.append("LOCKOUT_ATTEMPT_RESET_SECONDS must be positive")
    if settings.sweep_batch_size < 1:
        errors.append("SWEEP_BATCH_SIZE must be at least 1")

    if settings.is_production:
        if not settings.lockout_api_key:
            errors.append("LOCKOUT_API_KEY must be set in production")
        if settings.lockout_store == "memory":
            errors.append(
                "LOCKOUT_STORE=memory keeps per-process state and cannot be used in production"
            )

    if not settings.is_production and not settings.lockout_api_key:
        logging.warning("LOCKOUT_API_KEY not set - the lockout API will reject every request")

    if not settings.verifier_base_url:
        logging.warning(
            "VERIFIER_BASE_URL not set - verifier cache invalidation will be skipped"
        )

    if errors:
        for error in errors:
            logging.error("Configuration error: %s", error)
        sys.exit(1)


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    validate_settings(settings)
    return settings
