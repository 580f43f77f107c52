"""Role assignment and permission grant lifecycle."""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.rbac.audit import AuditLogger
from adsdesk.rbac.exceptions import LifecycleWriteError
from adsdesk_shared.db.base import as_utc, utc_now
from adsdesk_shared.db.enums import AuditAction
from adsdesk_shared.db.models.rbac import RolePermission, UserRole
from adsdesk_shared.db.upsert import upsert

logger = logging.getLogger(__name__)


class RoleAssignmentManager:
    """Creates and revokes user-role assignments and role-permission grants.

    Each mutation and its audit entry run in one savepoint: if either
    write fails, neither is kept and :class:`LifecycleWriteError` is
    raised. Callers own the outer transaction.

    Existence of the referenced user, role, or permission is not checked
    here; administrative handlers validate before calling.
    """

    def __init__(self, audit: AuditLogger | None = None) -> None:
        self._audit = audit or AuditLogger()

    async def assign_role(
        self,
        user_id: int,
        role_id: int,
        assigned_by: int | None,
        session: AsyncSession,
        *,
        expires_at: datetime | None = None,
    ) -> None:
        """Assign *role_id* to *user_id*, re-activating and refreshing an existing row."""
        expires = as_utc(expires_at) if expires_at is not None else None

        async def write() -> None:
            await upsert(
                session,
                UserRole,
                {
                    "user_id": user_id,
                    "role_id": role_id,
                    "assigned_by": assigned_by,
                    "assigned_at": utc_now(),
                    "expires_at": expires,
                    "is_active": True,
                },
                conflict_columns=("user_id", "role_id"),
                update_columns=("assigned_by", "assigned_at", "expires_at", "is_active"),
            )
            await self._audit.append(
                AuditAction.ROLE_ASSIGN,
                session,
                user_id=user_id,
                role_id=role_id,
                performed_by=assigned_by,
                details={"expires_at": expires.isoformat()} if expires else None,
            )

        await self._in_savepoint("assign_role", session, write)
        logger.info("Assigned role %d to user %d (by %s, expires %s)", role_id, user_id, assigned_by, expires)

    async def revoke_role(
        self,
        user_id: int,
        role_id: int,
        revoked_by: int | None,
        session: AsyncSession,
    ) -> bool:
        """Deactivate the assignment. Returns ``False`` if there was nothing active to revoke."""

        async def write() -> bool:
            result = await session.execute(
                update(UserRole)
                .where(UserRole.user_id == user_id, UserRole.role_id == role_id, UserRole.is_active.is_(True))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False
            await self._audit.append(
                AuditAction.ROLE_REVOKE, session, user_id=user_id, role_id=role_id, performed_by=revoked_by
            )
            return True

        revoked = await self._in_savepoint("revoke_role", session, write)
        if revoked:
            logger.info("Revoked role %d from user %d (by %s)", role_id, user_id, revoked_by)
        return revoked

    async def cleanup_expired(self, session: AsyncSession) -> int:
        """Deactivate every active assignment whose expiry has passed. Returns the row count."""

        async def write() -> int:
            result = await session.execute(
                update(UserRole)
                .where(
                    UserRole.is_active.is_(True),
                    UserRole.expires_at.is_not(None),
                    UserRole.expires_at <= utc_now(),
                )
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

        count = await self._in_savepoint("cleanup_expired", session, write)
        if count:
            logger.info("Deactivated %d expired role assignment(s)", count)
        return count

    async def grant_permission_to_role(
        self,
        role_id: int,
        permission_id: int,
        granted_by: int | None,
        session: AsyncSession,
    ) -> None:
        """Grant a permission to a role. Re-granting refreshes the grant timestamp."""

        async def write() -> None:
            await upsert(
                session,
                RolePermission,
                {"role_id": role_id, "permission_id": permission_id, "granted_by": granted_by, "created_at": utc_now()},
                conflict_columns=("role_id", "permission_id"),
                update_columns=("granted_by", "created_at"),
            )
            await self._audit.append(
                AuditAction.PERMISSION_GRANT,
                session,
                role_id=role_id,
                permission_id=permission_id,
                performed_by=granted_by,
            )

        await self._in_savepoint("grant_permission_to_role", session, write)
        logger.info("Granted permission %d to role %d (by %s)", permission_id, role_id, granted_by)

    async def revoke_permission_from_role(
        self,
        role_id: int,
        permission_id: int,
        revoked_by: int | None,
        session: AsyncSession,
    ) -> bool:
        """Remove a grant. Returns ``False`` if the role did not hold it."""

        async def write() -> bool:
            result = await session.execute(
                delete(RolePermission)
                .where(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False
            await self._audit.append(
                AuditAction.PERMISSION_REVOKE,
                session,
                role_id=role_id,
                permission_id=permission_id,
                performed_by=revoked_by,
            )
            return True

        revoked = await self._in_savepoint("revoke_permission_from_role", session, write)
        if revoked:
            logger.info("Revoked permission %d from role %d (by %s)", permission_id, role_id, revoked_by)
        return revoked

    @staticmethod
    async def _in_savepoint[T](operation: str, session: AsyncSession, write: Callable[[], Awaitable[T]]) -> T:
        try:
            async with session.begin_nested():
                return await write()
        except SQLAlchemyError as exc:
            logger.exception("Lifecycle operation %s failed", operation)
            raise LifecycleWriteError(operation, exc) from exc
