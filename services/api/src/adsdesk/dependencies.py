"""Process-wide service singletons shared by routers and middleware."""

from adsdesk_shared.db.session import DatabaseManager

db_manager = DatabaseManager.from_env()
