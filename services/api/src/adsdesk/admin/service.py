"""Admin business logic: role catalogue, grants, user roles, audit queries."""

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from adsdesk.admin.schemas import (
    ActionResponse,
    AuditLogEntryResponse,
    ModuleResponse,
    PaginatedResult,
    PermissionResponse,
    RoleSummary,
    SweepResponse,
    UserRoleEntry,
    UserRolesResponse,
    UserSummary,
)
from adsdesk.constants import DEFAULT_PAGE_LIMIT
from adsdesk.rbac.audit import AuditLogger
from adsdesk.rbac.actors import ActorContext
from adsdesk.rbac.catalog import PermissionCatalog, ensure_may_hand_out_role, ensure_may_manage_role
from adsdesk.rbac.exceptions import DuplicateNameError, LifecycleConflictError, NotFoundError
from adsdesk.rbac.lifecycle import RoleAssignmentManager
from adsdesk_shared.db.base import as_utc, utc_now
from adsdesk_shared.db.enums import AuditAction
from adsdesk_shared.db.models.audit import AuditLogEntry
from adsdesk_shared.db.models.rbac import Module, Permission, Role, RolePermission, UserRole
from adsdesk_shared.db.models.user import User

logger = logging.getLogger(__name__)


class AdminService:
    """Stateless service for admin operations."""

    def __init__(
        self,
        catalog: PermissionCatalog | None = None,
        lifecycle: RoleAssignmentManager | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        self._audit = audit or AuditLogger()
        self._catalog = catalog or PermissionCatalog(self._audit)
        self._lifecycle = lifecycle or RoleAssignmentManager(self._audit)

    # --- Roles ---

    async def list_roles(self, session: AsyncSession) -> list[RoleSummary]:
        stmt = (
            select(Role)
            .options(selectinload(Role.role_permissions).selectinload(RolePermission.permission))
            .order_by(Role.level.desc(), Role.id)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return [self._role_to_summary(r) for r in result.scalars().all()]

    async def get_role(self, role_id: int, session: AsyncSession) -> RoleSummary:
        return await self._get_role_summary(role_id, session)

    async def create_role(
        self,
        name: str,
        description: str | None,
        level: int,
        is_super: bool,
        actor: ActorContext,
        session: AsyncSession,
    ) -> RoleSummary:
        role = await self._catalog.create_role(
            name,
            session,
            level=level,
            description=description,
            is_super=is_super,
            created_by=actor.user_id,
            acting=await self._catalog.acting_role(actor, session),
        )
        return await self._get_role_summary(role.id, session)

    async def update_role(
        self,
        role_id: int,
        name: str | None,
        description: str | None,
        level: int | None,
        is_active: bool | None,
        actor: ActorContext,
        session: AsyncSession,
    ) -> RoleSummary:
        await self._catalog.update_role(
            role_id,
            session,
            name=name,
            description=description,
            level=level,
            is_active=is_active,
            updated_by=actor.user_id,
            acting=await self._catalog.acting_role(actor, session),
        )
        return await self._get_role_summary(role_id, session)

    async def delete_role(self, role_id: int, actor: ActorContext, session: AsyncSession) -> ActionResponse:
        role = await self._catalog.get_role(role_id, session)
        name = role.name
        acting = await self._catalog.acting_role(actor, session)
        await self._catalog.delete_role(role_id, session, deleted_by=actor.user_id, acting=acting)
        return ActionResponse(success=True, message=f"Role '{name}' deleted")

    async def grant_permission(
        self,
        role_id: int,
        permission_id: int,
        actor: ActorContext,
        session: AsyncSession,
    ) -> RoleSummary:
        await self._ensure_may_edit_grants(role_id, actor, session)
        await self._catalog.get_permission(permission_id, session)
        await self._lifecycle.grant_permission_to_role(role_id, permission_id, actor.user_id, session)
        return await self._get_role_summary(role_id, session)

    async def revoke_permission(
        self,
        role_id: int,
        permission_id: int,
        actor: ActorContext,
        session: AsyncSession,
    ) -> ActionResponse:
        await self._ensure_may_edit_grants(role_id, actor, session)
        revoked = await self._lifecycle.revoke_permission_from_role(role_id, permission_id, actor.user_id, session)
        if not revoked:
            return ActionResponse(success=True, message=f"Role {role_id} did not hold permission {permission_id}")
        return ActionResponse(success=True, message=f"Permission {permission_id} revoked from role {role_id}")

    # --- Modules & Permissions ---

    async def list_modules(self, session: AsyncSession) -> list[ModuleResponse]:
        result = await session.execute(select(Module).order_by(Module.name))
        return [self._module_to_response(m) for m in result.scalars().all()]

    async def create_module(
        self,
        name: str,
        display_name: str | None,
        description: str | None,
        session: AsyncSession,
    ) -> ModuleResponse:
        module = await self._catalog.create_module(name, session, display_name=display_name, description=description)
        return self._module_to_response(module)

    async def set_module_active(self, module_id: int, is_active: bool, session: AsyncSession) -> ModuleResponse:
        module = await self._catalog.set_module_active(module_id, is_active, session)
        return self._module_to_response(module)

    async def list_permissions(self, session: AsyncSession, module: str | None = None) -> list[PermissionResponse]:
        stmt = select(Permission).options(selectinload(Permission.module)).order_by(Permission.id)
        if module is not None:
            stmt = stmt.where(Permission.category == module)
        result = await session.execute(stmt)
        return [self._permission_to_response(p) for p in result.scalars().all()]

    async def create_permission(
        self,
        module: str,
        action: str,
        display_name: str | None,
        description: str | None,
        session: AsyncSession,
    ) -> PermissionResponse:
        permission = await self._catalog.create_permission(
            module, action, session, display_name=display_name, description=description
        )
        return await self._get_permission_response(permission.id, session)

    async def set_permission_active(
        self, permission_id: int, is_active: bool, session: AsyncSession
    ) -> PermissionResponse:
        await self._catalog.set_permission_active(permission_id, is_active, session)
        return await self._get_permission_response(permission_id, session)

    # --- Users ---

    async def list_users(
        self,
        session: AsyncSession,
        limit: int = DEFAULT_PAGE_LIMIT,
        offset: int = 0,
    ) -> PaginatedResult[UserSummary]:
        total = (await session.execute(select(func.count(User.id)))).scalar() or 0
        result = await session.execute(select(User).order_by(User.id).limit(limit).offset(offset))
        users = result.scalars().all()
        roles_by_user = await self._role_entries([u.id for u in users], session)
        return PaginatedResult(
            [self._user_to_summary(u, roles_by_user.get(u.id, [])) for u in users],
            total,
        )

    async def create_user(
        self,
        username: str,
        email: str | None,
        display_name: str | None,
        role_id: int,
        actor: ActorContext,
        session: AsyncSession,
    ) -> UserSummary:
        """Create a user and assign the initial role in one transaction."""
        role = await self._catalog.get_role(role_id, session)
        if not role.is_active:
            raise LifecycleConflictError(f"Role '{role.name}' is inactive")
        ensure_may_hand_out_role(await self._catalog.acting_role(actor, session), role)

        existing = await session.execute(select(User.id).where(User.username == username))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateNameError("User", username)

        user = User(username=username, email=email, display_name=display_name)
        try:
            async with session.begin_nested():
                session.add(user)
                await session.flush()
                await self._audit.append(
                    AuditAction.USER_CREATED,
                    session,
                    user_id=user.id,
                    role_id=role_id,
                    performed_by=actor.user_id,
                    details={"username": username},
                )
        except IntegrityError as exc:
            raise DuplicateNameError("User", username) from exc

        await self._lifecycle.assign_role(user.id, role_id, actor.user_id, session)
        logger.info("Created user '%s' (id=%d) with role '%s'", username, user.id, role.name)
        entries = await self._role_entries([user.id], session)
        return self._user_to_summary(user, entries.get(user.id, []))

    async def get_user_roles(self, user_id: int, session: AsyncSession) -> UserRolesResponse:
        await self._get_user_or_raise(user_id, session)
        entries = await self._role_entries([user_id], session)
        return UserRolesResponse(user_id=user_id, roles=entries.get(user_id, []))

    async def assign_user_role(
        self,
        user_id: int,
        role_id: int,
        expires_at: datetime | None,
        actor: ActorContext,
        session: AsyncSession,
    ) -> UserRolesResponse:
        await self._get_user_or_raise(user_id, session)
        role = await self._catalog.get_role(role_id, session)
        ensure_may_hand_out_role(await self._catalog.acting_role(actor, session), role)
        await self._lifecycle.assign_role(user_id, role_id, actor.user_id, session, expires_at=expires_at)
        return await self.get_user_roles(user_id, session)

    async def revoke_user_role(
        self,
        user_id: int,
        role_id: int,
        actor: ActorContext,
        session: AsyncSession,
    ) -> ActionResponse:
        role = await session.get(Role, role_id)
        if role is not None:
            ensure_may_hand_out_role(await self._catalog.acting_role(actor, session), role)
        revoked = await self._lifecycle.revoke_role(user_id, role_id, actor.user_id, session)
        if not revoked:
            return ActionResponse(success=True, message=f"User {user_id} has no active assignment of role {role_id}")
        return ActionResponse(success=True, message=f"Role {role_id} revoked from user {user_id}")

    async def cleanup_expired(self, session: AsyncSession) -> SweepResponse:
        return SweepResponse(deactivated=await self._lifecycle.cleanup_expired(session))

    # --- Audit Log ---

    async def query_audit_log(
        self,
        session: AsyncSession,
        action: AuditAction | None = None,
        user_id: int | None = None,
        role_id: int | None = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        offset: int = 0,
    ) -> PaginatedResult[AuditLogEntryResponse]:
        base = select(AuditLogEntry)
        count_base = select(func.count(AuditLogEntry.id))

        if action is not None:
            base = base.where(AuditLogEntry.action == action)
            count_base = count_base.where(AuditLogEntry.action == action)
        if user_id is not None:
            base = base.where(AuditLogEntry.user_id == user_id)
            count_base = count_base.where(AuditLogEntry.user_id == user_id)
        if role_id is not None:
            base = base.where(AuditLogEntry.role_id == role_id)
            count_base = count_base.where(AuditLogEntry.role_id == role_id)

        total = (await session.execute(count_base)).scalar() or 0
        stmt = base.order_by(AuditLogEntry.id.desc()).limit(limit).offset(offset)
        rows = (await session.execute(stmt)).scalars().all()

        return PaginatedResult(
            [
                AuditLogEntryResponse(
                    id=row.id,
                    action=str(row.action),
                    user_id=row.user_id,
                    role_id=row.role_id,
                    permission_id=row.permission_id,
                    performed_by=row.performed_by,
                    details=row.details,
                    created_at=row.created_at,
                )
                for row in rows
            ],
            total,
        )

    # --- Helpers ---

    async def _ensure_may_edit_grants(self, role_id: int, actor: ActorContext, session: AsyncSession) -> None:
        role = await self._catalog.get_role(role_id, session)
        acting = await self._catalog.acting_role(actor, session)
        ensure_may_manage_role(
            acting, name=role.name, level=role.level, is_system=role.is_system, is_super=role.is_super
        )

    @staticmethod
    def _role_to_summary(role: Role) -> RoleSummary:
        return RoleSummary(
            id=role.id,
            name=role.name,
            description=role.description,
            level=role.level,
            is_active=role.is_active,
            is_system=role.is_system,
            is_super=role.is_super,
            permissions=sorted(rp.permission.name for rp in role.role_permissions),
            created_at=role.created_at,
            updated_at=role.updated_at,
        )

    @staticmethod
    def _module_to_response(module: Module) -> ModuleResponse:
        return ModuleResponse(
            id=module.id,
            name=module.name,
            display_name=module.display_name,
            description=module.description,
            is_active=module.is_active,
            created_at=module.created_at,
        )

    @staticmethod
    def _permission_to_response(permission: Permission) -> PermissionResponse:
        return PermissionResponse(
            id=permission.id,
            name=permission.name,
            module=permission.module.name if permission.module else permission.category,
            action=permission.action,
            category=permission.category,
            display_name=permission.display_name,
            description=permission.description,
            is_active=permission.is_active,
        )

    @staticmethod
    def _user_to_summary(user: User, roles: list[UserRoleEntry]) -> UserSummary:
        return UserSummary(
            id=user.id,
            username=user.username,
            email=user.email,
            display_name=user.display_name,
            is_active=user.is_active,
            roles=roles,
            created_at=user.created_at,
        )

    async def _get_role_summary(self, role_id: int, session: AsyncSession) -> RoleSummary:
        stmt = (
            select(Role)
            .where(Role.id == role_id)
            .options(selectinload(Role.role_permissions).selectinload(RolePermission.permission))
            .execution_options(populate_existing=True)
        )
        role = (await session.execute(stmt)).scalar_one_or_none()
        if role is None:
            raise NotFoundError("Role", role_id)
        return self._role_to_summary(role)

    async def _get_permission_response(self, permission_id: int, session: AsyncSession) -> PermissionResponse:
        stmt = (
            select(Permission)
            .where(Permission.id == permission_id)
            .options(selectinload(Permission.module))
            .execution_options(populate_existing=True)
        )
        permission = (await session.execute(stmt)).scalar_one_or_none()
        if permission is None:
            raise NotFoundError("Permission", permission_id)
        return self._permission_to_response(permission)

    @staticmethod
    async def _role_entries(user_ids: list[int], session: AsyncSession) -> dict[int, list[UserRoleEntry]]:
        """Return role assignments per user, highest level first. Read with a column select."""
        if not user_ids:
            return {}
        stmt = (
            select(
                UserRole.user_id,
                UserRole.role_id,
                Role.name,
                Role.level,
                UserRole.assigned_by,
                UserRole.assigned_at,
                UserRole.expires_at,
                UserRole.is_active,
            )
            .join(Role, Role.id == UserRole.role_id)
            .where(UserRole.user_id.in_(user_ids))
            .order_by(UserRole.user_id, Role.level.desc(), Role.id)
        )
        now = utc_now()
        entries: dict[int, list[UserRoleEntry]] = {}
        for row in (await session.execute(stmt)).all():
            expires_at = as_utc(row.expires_at) if row.expires_at is not None else None
            entries.setdefault(row.user_id, []).append(
                UserRoleEntry(
                    role_id=row.role_id,
                    role_name=row.name,
                    role_level=row.level,
                    assigned_by=row.assigned_by,
                    assigned_at=as_utc(row.assigned_at),
                    expires_at=expires_at,
                    is_active=row.is_active,
                    is_expired=expires_at is not None and expires_at <= now,
                )
            )
        return entries

    @staticmethod
    async def _get_user_or_raise(user_id: int, session: AsyncSession) -> User:
        result = await session.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User", user_id)
        return user
