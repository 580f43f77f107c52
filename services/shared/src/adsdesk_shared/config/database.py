"""Database configuration settings."""

from pydantic_settings import BaseSettings
from sqlalchemy.engine import make_url

from adsdesk_shared.config.constants import DEFAULT_DATABASE_URL


class DatabaseSettings(BaseSettings):
    """Database connection settings loaded from environment variables.

    PostgreSQL is the production store. SQLite URLs are accepted for local
    development; ``sqlite+aiosqlite://`` gives a private in-memory store.
    """

    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    use_null_pool: bool = True
    pool_pre_ping: bool = True

    model_config = {"env_prefix": ""}

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.database_url).get_backend_name() == "sqlite"

    @property
    def is_memory_sqlite(self) -> bool:
        return self.is_sqlite and make_url(self.database_url).database in (None, "", ":memory:")
