"""Application settings loaded from environment variables."""

import functools

from pydantic_settings import BaseSettings

from adsdesk.constants import DEFAULT_PERMISSION_CHECK_TIMEOUT_SECONDS, DEFAULT_ROLE_SWEEP_INTERVAL_SECONDS


class AppSettings(BaseSettings):
    """API service configuration."""

    # JWT Authentication
    JWT_SECRET_KEY: str = ""
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    # Exposes internal failure causes in permission-check error responses
    DEV_MODE: bool = False

    # Authorization
    PERMISSION_CHECK_TIMEOUT_SECONDS: float = DEFAULT_PERMISSION_CHECK_TIMEOUT_SECONDS
    ROLE_SWEEP_INTERVAL_SECONDS: int = DEFAULT_ROLE_SWEEP_INTERVAL_SECONDS  # 0 disables the sweeper

    # CORS
    CORS_ALLOWED_ORIGINS: str = "http://localhost:3000"  # comma-separated origins

    model_config = {"env_prefix": ""}


@functools.lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return cached application settings singleton."""
    return AppSettings()
