"""Permission resolution: does a role hold a ``(module, action)`` grant?"""

import logging

from sqlalchemy import case, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.rbac.exceptions import ResolutionFailedError
from adsdesk.rbac.keys import CANONICAL_SEPARATOR, LEGACY_SEPARATOR, PermissionKey
from adsdesk.rbac.outcomes import Resolution
from adsdesk_shared.db.models.rbac import Module, Permission, Role, RolePermission

logger = logging.getLogger(__name__)


class PermissionResolver:
    """Resolves permission keys against the grants of a single role.

    Usage::

        resolver = PermissionResolver()
        resolution = await resolver.resolve(role_id, PermissionKey("reports", "read"), session)
        if resolution.allowed:
            ...

    A grant counts only when the permission, the role, and (if linked) the
    permission's module are all active. Both stored spellings of the key
    are accepted; the canonical one wins when a role holds both.
    """

    async def resolve(self, role_id: int, key: PermissionKey, session: AsyncSession) -> Resolution:
        canonical, legacy = key.spellings
        stmt = (
            select(Permission.name, Role.level)
            .select_from(RolePermission)
            .join(Role, Role.id == RolePermission.role_id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .outerjoin(Module, Module.id == Permission.module_id)
            .where(
                RolePermission.role_id == role_id,
                Permission.name.in_((canonical, legacy)),
                Permission.is_active.is_(True),
                Role.is_active.is_(True),
                or_(Module.id.is_(None), Module.is_active.is_(True)),
            )
            .order_by(case((Permission.name == canonical, 0), else_=1))
            .limit(1)
        )
        try:
            row = (await session.execute(stmt)).first()
        except SQLAlchemyError as exc:
            raise ResolutionFailedError(f"resolve {key}", exc) from exc

        if row is not None:
            return Resolution(
                key=key,
                role_id=role_id,
                allowed=True,
                granted_permission_name=row.name,
                role_level=row.level,
            )

        available = await self.available_actions(role_id, key.module, session)
        return Resolution(key=key, role_id=role_id, allowed=False, available_actions=tuple(available))

    async def available_actions(self, role_id: int, module: str, session: AsyncSession) -> list[str]:
        """Return the actions *role_id* holds within *module*, in grant-id order.

        Best effort: a store error is logged and yields an empty list. The
        query runs in a savepoint so a failure leaves the caller's
        transaction usable.
        """
        stmt = (
            select(Permission.name, Permission.action, Permission.category, Module.name.label("module_name"))
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .outerjoin(Module, Module.id == Permission.module_id)
            .where(
                RolePermission.role_id == role_id,
                Permission.is_active.is_(True),
                Role.is_active.is_(True),
                or_(Module.id.is_(None), Module.is_active.is_(True)),
                or_(
                    Permission.name.startswith(f"{module}{CANONICAL_SEPARATOR}", autoescape=True),
                    Permission.name.startswith(f"{module}{LEGACY_SEPARATOR}", autoescape=True),
                    Permission.category == module,
                    Module.name == module,
                ),
            )
            .order_by(Permission.id)
        )
        try:
            async with session.begin_nested():
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError:
            logger.warning("Available-actions lookup failed for role %d, module '%s'", role_id, module, exc_info=True)
            return []

        actions: list[str] = []
        for row in rows:
            owner = row.module_name or row.category
            if owner is not None and owner != module:
                # e.g. campaign_data_read when asking about "campaign"
                continue
            action = row.action
            if not action:
                parsed = PermissionKey.parse(row.name, module=module)
                action = parsed.action if parsed is not None else None
            if action and action not in actions:
                actions.append(action)
        return actions
