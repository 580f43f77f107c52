"""Shared database package -- convenience re-exports.

Importing this module registers all models with Base.metadata.
"""

from adsdesk_shared.db.base import Base
from adsdesk_shared.db.enums import AuditAction, LogLevel
from adsdesk_shared.db.models import (
    AuditLogEntry,
    Log,
    Module,
    Permission,
    Role,
    RolePermission,
    User,
    UserRole,
)
from adsdesk_shared.db.session import DatabaseManager
from adsdesk_shared.db.upsert import upsert

__all__ = [
    # Base
    "Base",
    # Enums
    "AuditAction",
    "LogLevel",
    # Models
    "AuditLogEntry",
    "Log",
    "Module",
    "Permission",
    "Role",
    "RolePermission",
    "User",
    "UserRole",
    # Session
    "DatabaseManager",
    # Helpers
    "upsert",
]
