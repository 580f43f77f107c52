"""Role, module, and permission catalogue administration."""

import logging
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.constants import MAX_ROLE_LEVEL, MIN_ROLE_LEVEL
from adsdesk.rbac.actors import ActorContext
from adsdesk.rbac.audit import AuditLogger
from adsdesk.rbac.bypass import BypassPolicy, is_super_role
from adsdesk.rbac.exceptions import (
    DuplicateNameError,
    LifecycleConflictError,
    NotFoundError,
    PrivilegeEscalationError,
)
from adsdesk.rbac.keys import PermissionKey
from adsdesk_shared.db.base import utc_now
from adsdesk_shared.db.enums import AuditAction
from adsdesk_shared.db.models.rbac import Module, Permission, Role, RolePermission, UserRole

logger = logging.getLogger(__name__)


def validate_level(level: int) -> int:
    if not MIN_ROLE_LEVEL <= level <= MAX_ROLE_LEVEL:
        raise ValueError(f"Role level must be between {MIN_ROLE_LEVEL} and {MAX_ROLE_LEVEL}")
    return level


@dataclass(frozen=True, slots=True)
class ActingRole:
    """Privilege of the role performing an administrative change.

    Catalogue and assignment methods take ``acting=None`` from internal
    callers such as seeding, which skips the escalation checks.
    """

    level: int
    bypassed: bool = False


def ensure_may_manage_role(
    acting: ActingRole | None, *, name: str, level: int, is_system: bool, is_super: bool
) -> None:
    """Refuse to let *acting* define or change a role more privileged than itself.

    Only a bypassing actor may touch system roles or roles that bypass
    checks. Anyone else is limited to roles at or below their own level.
    """
    if acting is None or acting.bypassed:
        return
    if is_system:
        raise PrivilegeEscalationError("Only a super administrator can modify system roles")
    if is_super_role(name, level, is_super):
        raise PrivilegeEscalationError("Only a super administrator can manage super roles")
    if level > acting.level:
        raise PrivilegeEscalationError(f"Cannot manage a role above your own level ({acting.level})")


def ensure_may_hand_out_role(acting: ActingRole | None, role: Role) -> None:
    """Refuse to let *acting* assign or revoke a role more privileged than itself."""
    if acting is None or acting.bypassed:
        return
    if is_super_role(role.name, role.level, role.is_super):
        raise PrivilegeEscalationError("Only a super administrator can assign or revoke super roles")
    if role.level > acting.level:
        raise PrivilegeEscalationError(f"Cannot assign or revoke a role above your own level ({acting.level})")


class PermissionCatalog:
    """Manages the role, module, and permission records grants refer to.

    Modules and permissions are soft-disabled, never deleted. Roles may be
    deleted only when they are not system-protected and no user holds them
    through an active, unexpired assignment.
    """

    def __init__(self, audit: AuditLogger | None = None, bypass: BypassPolicy | None = None) -> None:
        self._audit = audit or AuditLogger()
        self._bypass = bypass or BypassPolicy()

    async def acting_role(self, actor: ActorContext, session: AsyncSession) -> ActingRole:
        """Read the privilege *actor* acts with, fresh from the store."""
        if actor.role_id is None:
            return ActingRole(level=0)
        verdict = await self._bypass.is_bypassed(actor.role_id, session)
        return ActingRole(level=verdict.role_level or 0, bypassed=verdict.bypassed)

    # --- Roles ---

    async def get_role(self, role_id: int, session: AsyncSession) -> Role:
        result = await session.execute(select(Role).where(Role.id == role_id))
        role = result.scalar_one_or_none()
        if role is None:
            raise NotFoundError("Role", role_id)
        return role

    async def create_role(
        self,
        name: str,
        session: AsyncSession,
        *,
        level: int = MIN_ROLE_LEVEL,
        description: str | None = None,
        is_system: bool = False,
        is_super: bool = False,
        created_by: int | None = None,
        acting: ActingRole | None = None,
    ) -> Role:
        """Create a role. Raises ``ValueError`` for an out-of-range level."""
        validate_level(level)
        name = name.strip()
        if not name:
            raise ValueError("Role name is required")
        ensure_may_manage_role(acting, name=name, level=level, is_system=is_system, is_super=is_super)
        await self._ensure_role_name_free(name, session)

        role = Role(name=name, level=level, description=description, is_system=is_system, is_super=is_super)
        try:
            async with session.begin_nested():
                session.add(role)
                await session.flush()
                await self._audit.append(
                    AuditAction.ROLE_CREATED,
                    session,
                    role_id=role.id,
                    performed_by=created_by,
                    details={"name": name, "level": level},
                )
        except IntegrityError as exc:
            raise DuplicateNameError("Role", name) from exc

        logger.info("Created role '%s' (id=%d, level=%d)", name, role.id, level)
        return role

    async def update_role(
        self,
        role_id: int,
        session: AsyncSession,
        *,
        name: str | None = None,
        description: str | None = None,
        level: int | None = None,
        is_active: bool | None = None,
        updated_by: int | None = None,
        acting: ActingRole | None = None,
    ) -> Role:
        """Update role fields. System roles cannot be renamed."""
        role = await self.get_role(role_id, session)
        ensure_may_manage_role(
            acting, name=role.name, level=role.level, is_system=role.is_system, is_super=role.is_super
        )
        changes: dict[str, object] = {}

        if name is not None and name.strip() != role.name:
            name = name.strip()
            if role.is_system:
                raise LifecycleConflictError("Cannot rename system roles")
            if not name:
                raise ValueError("Role name is required")
            await self._ensure_role_name_free(name, session)
            changes["name"] = name
        if description is not None and description != role.description:
            changes["description"] = description
        if level is not None and level != role.level:
            changes["level"] = validate_level(level)
        if is_active is not None and is_active != role.is_active:
            changes["is_active"] = is_active

        target_name = name.strip() if name is not None else role.name
        target_level = level if level is not None else role.level
        ensure_may_manage_role(
            acting, name=target_name, level=target_level, is_system=role.is_system, is_super=role.is_super
        )
        if not changes:
            return role

        try:
            async with session.begin_nested():
                for field_name, value in changes.items():
                    setattr(role, field_name, value)
                role.updated_at = utc_now()
                await session.flush()
                await self._audit.append(
                    AuditAction.ROLE_UPDATED, session, role_id=role.id, performed_by=updated_by, details=changes
                )
        except IntegrityError as exc:
            raise DuplicateNameError("Role", str(changes.get("name", role.name))) from exc

        logger.info("Updated role %d: %s", role.id, ", ".join(sorted(changes)))
        return role

    async def delete_role(
        self,
        role_id: int,
        session: AsyncSession,
        *,
        deleted_by: int | None = None,
        acting: ActingRole | None = None,
    ) -> None:
        """Delete a role that is neither system-protected nor currently held."""
        role = await self.get_role(role_id, session)
        if role.is_system:
            raise LifecycleConflictError("Cannot delete system roles")
        ensure_may_manage_role(acting, name=role.name, level=role.level, is_system=False, is_super=role.is_super)

        holders = await self.count_active_holders(role_id, session)
        if holders:
            raise LifecycleConflictError(f"Role '{role.name}' has {holders} active user assignment(s)")

        name = role.name
        async with session.begin_nested():
            await session.delete(role)
            await session.flush()
            await self._audit.append(
                AuditAction.ROLE_DELETED, session, role_id=role_id, performed_by=deleted_by, details={"name": name}
            )
        logger.info("Deleted role '%s' (id=%d)", name, role_id)

    async def count_active_holders(self, role_id: int, session: AsyncSession) -> int:
        stmt = select(func.count()).select_from(UserRole).where(
            UserRole.role_id == role_id,
            UserRole.is_active.is_(True),
            or_(UserRole.expires_at.is_(None), UserRole.expires_at > utc_now()),
        )
        return (await session.execute(stmt)).scalar_one()

    # --- Modules ---

    async def get_module(self, module_id: int, session: AsyncSession) -> Module:
        result = await session.execute(select(Module).where(Module.id == module_id))
        module = result.scalar_one_or_none()
        if module is None:
            raise NotFoundError("Module", module_id)
        return module

    async def create_module(
        self,
        name: str,
        session: AsyncSession,
        *,
        display_name: str | None = None,
        description: str | None = None,
    ) -> Module:
        # Validates the name as a permission-key module half.
        name = PermissionKey(name.strip(), "read").module
        existing = await session.execute(select(Module.id).where(Module.name == name))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateNameError("Module", name)

        module = Module(name=name, display_name=display_name or name.replace("_", " ").title(), description=description)
        try:
            async with session.begin_nested():
                session.add(module)
                await session.flush()
        except IntegrityError as exc:
            raise DuplicateNameError("Module", name) from exc
        logger.info("Created module '%s'", name)
        return module

    async def set_module_active(self, module_id: int, is_active: bool, session: AsyncSession) -> Module:
        module = await self.get_module(module_id, session)
        module.is_active = is_active
        await session.flush()
        logger.info("Module '%s' %s", module.name, "activated" if is_active else "deactivated")
        return module

    # --- Permissions ---

    async def get_permission(self, permission_id: int, session: AsyncSession) -> Permission:
        result = await session.execute(select(Permission).where(Permission.id == permission_id))
        permission = result.scalar_one_or_none()
        if permission is None:
            raise NotFoundError("Permission", permission_id)
        return permission

    async def find_permission(self, key: PermissionKey, session: AsyncSession) -> Permission | None:
        """Look up a permission by either stored spelling, canonical first."""
        result = await session.execute(select(Permission).where(Permission.name.in_(key.spellings)))
        by_name = {p.name: p for p in result.scalars().all()}
        return by_name.get(key.canonical_name) or by_name.get(key.legacy_name)

    async def create_permission(
        self,
        module: str,
        action: str,
        session: AsyncSession,
        *,
        display_name: str | None = None,
        description: str | None = None,
    ) -> Permission:
        """Create the canonical ``<module>_<action>`` permission under an existing module."""
        key = PermissionKey(module, action)
        result = await session.execute(select(Module).where(Module.name == key.module))
        module_row = result.scalar_one_or_none()
        if module_row is None:
            raise NotFoundError("Module", key.module)
        if await self.find_permission(key, session) is not None:
            raise DuplicateNameError("Permission", key.canonical_name)

        permission = Permission(
            name=key.canonical_name,
            module_id=module_row.id,
            action=key.action,
            category=key.module,
            display_name=display_name or f"{key.action.title()} {module_row.display_name or key.module}",
            description=description,
        )
        try:
            async with session.begin_nested():
                session.add(permission)
                await session.flush()
        except IntegrityError as exc:
            raise DuplicateNameError("Permission", key.canonical_name) from exc
        logger.info("Created permission '%s'", permission.name)
        return permission

    async def set_permission_active(self, permission_id: int, is_active: bool, session: AsyncSession) -> Permission:
        permission = await self.get_permission(permission_id, session)
        permission.is_active = is_active
        await session.flush()
        logger.info("Permission '%s' %s", permission.name, "activated" if is_active else "deactivated")
        return permission

    async def permissions_by_module(self, role_id: int, session: AsyncSession) -> dict[str, list[str]]:
        """Return ``{module: [actions]}`` for the role's effective grants.

        Inactive roles, permissions, and modules contribute nothing. Stored
        names that do not parse as a key are skipped.
        """
        stmt = (
            select(Permission.name, Permission.action, Module.name.label("module_name"))
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .outerjoin(Module, Module.id == Permission.module_id)
            .where(
                RolePermission.role_id == role_id,
                Role.is_active.is_(True),
                Permission.is_active.is_(True),
                or_(Module.id.is_(None), Module.is_active.is_(True)),
            )
            .order_by(Permission.id)
        )
        grouped: dict[str, list[str]] = defaultdict(list)
        for row in (await session.execute(stmt)).all():
            if row.module_name and row.action:
                key = PermissionKey(row.module_name, row.action)
            else:
                parsed = PermissionKey.parse(row.name, module=row.module_name) if row.module_name else None
                key = parsed or PermissionKey.parse(row.name)
            if key is None:
                logger.debug("Skipping unparseable permission name '%s'", row.name)
                continue
            if key.action not in grouped[key.module]:
                grouped[key.module].append(key.action)
        return dict(grouped)

    @staticmethod
    async def _ensure_role_name_free(name: str, session: AsyncSession) -> None:
        existing = await session.execute(select(Role.id).where(Role.name == name))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateNameError("Role", name)
