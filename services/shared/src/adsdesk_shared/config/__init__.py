"""Shared configuration."""

from adsdesk_shared.config.constants import DEFAULT_DATABASE_URL
from adsdesk_shared.config.database import DatabaseSettings

__all__ = [
    "DEFAULT_DATABASE_URL",
    "DatabaseSettings",
]
