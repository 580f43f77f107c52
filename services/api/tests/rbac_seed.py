"""Row builders for authorization tests."""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.rbac.keys import PermissionKey
from adsdesk_shared.db.enums import AuditAction
from adsdesk_shared.db.models.audit import AuditLogEntry
from adsdesk_shared.db.models.rbac import Module, Permission, Role, RolePermission, UserRole
from adsdesk_shared.db.models.user import User


class Seeder:
    """Builds RBAC rows directly through the ORM for test setup."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def module(self, name: str, *, is_active: bool = True) -> Module:
        module = Module(name=name, display_name=name.title(), is_active=is_active)
        self.session.add(module)
        await self.session.flush()
        return module

    async def permission(
        self,
        name: str,
        *,
        module: Module | None = None,
        is_active: bool = True,
        with_action: bool = True,
    ) -> Permission:
        """Create a permission row. With *module*, ``module_id``, ``category`` and ``action`` are filled."""
        action = None
        category = None
        if module is not None:
            category = module.name
            parsed = PermissionKey.parse(name, module=module.name)
            action = parsed.action if parsed is not None and with_action else None
        permission = Permission(
            name=name,
            module_id=module.id if module is not None else None,
            action=action,
            category=category,
            is_active=is_active,
        )
        self.session.add(permission)
        await self.session.flush()
        return permission

    async def role(
        self,
        name: str,
        level: int = 1,
        *,
        is_active: bool = True,
        is_system: bool = False,
        is_super: bool = False,
    ) -> Role:
        role = Role(name=name, level=level, is_active=is_active, is_system=is_system, is_super=is_super)
        self.session.add(role)
        await self.session.flush()
        return role

    async def grant(self, role: Role, *permissions: Permission) -> None:
        for permission in permissions:
            self.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
        await self.session.flush()

    async def user(self, username: str) -> User:
        user = User(username=username, display_name=username.title())
        self.session.add(user)
        await self.session.flush()
        return user

    async def assign(
        self,
        user: User,
        role: Role,
        *,
        expires_at: datetime | None = None,
        is_active: bool = True,
    ) -> None:
        self.session.add(UserRole(user_id=user.id, role_id=role.id, expires_at=expires_at, is_active=is_active))
        await self.session.flush()

    async def audit_count(self, action: AuditAction | None = None) -> int:
        stmt = select(func.count(AuditLogEntry.id))
        if action is not None:
            stmt = stmt.where(AuditLogEntry.action == action)
        return (await self.session.execute(stmt)).scalar_one()
