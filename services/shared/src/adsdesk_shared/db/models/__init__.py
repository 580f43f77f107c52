"""Re-export all model classes."""

from adsdesk_shared.db.models.audit import AuditLogEntry
from adsdesk_shared.db.models.log import Log
from adsdesk_shared.db.models.rbac import Module, Permission, Role, RolePermission, UserRole
from adsdesk_shared.db.models.user import User

__all__ = [
    "AuditLogEntry",
    "Log",
    "Module",
    "Permission",
    "Role",
    "RolePermission",
    "User",
    "UserRole",
]
