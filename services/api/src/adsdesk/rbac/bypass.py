"""Privileged-bypass rule: roles that skip permission checks entirely."""

import logging

from sqlalchemy import ColumnElement, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.constants import BYPASS_LEVEL, BYPASS_REASON, SUPER_ROLE_NAMES
from adsdesk.rbac.exceptions import ResolutionFailedError
from adsdesk.rbac.outcomes import BypassVerdict
from adsdesk_shared.db.models.rbac import Role

logger = logging.getLogger(__name__)

_SUPER_NAMES_FOLDED = frozenset(name.casefold() for name in SUPER_ROLE_NAMES)


def is_super_role(name: str | None, level: int | None, is_super: bool = False) -> bool:
    """Return ``True`` if a role with these attributes bypasses all checks."""
    if is_super:
        return True
    if level is not None and level >= BYPASS_LEVEL:
        return True
    return name is not None and name.strip().casefold() in _SUPER_NAMES_FOLDED


def super_role_clause() -> ColumnElement[bool]:
    """SQL form of :func:`is_super_role` over the ``roles`` table."""
    return or_(
        Role.is_super.is_(True),
        Role.level >= BYPASS_LEVEL,
        func.lower(func.trim(Role.name)).in_(sorted(_SUPER_NAMES_FOLDED)),
    )


class BypassPolicy:
    """Decides whether a role is privileged enough to skip resolution.

    The role row is read with a column select on every call, never from
    the session identity map, so a demotion or deactivation committed
    elsewhere is honored by the very next decision.
    """

    async def is_bypassed(self, role_id: int, session: AsyncSession) -> BypassVerdict:
        stmt = select(Role.name, Role.level, Role.is_super, Role.is_active).where(Role.id == role_id)
        try:
            row = (await session.execute(stmt)).one_or_none()
        except SQLAlchemyError as exc:
            raise ResolutionFailedError("bypass check", exc) from exc

        if row is None:
            return BypassVerdict(role_id=role_id, bypassed=False)

        bypassed = row.is_active and is_super_role(row.name, row.level, row.is_super)
        if bypassed:
            logger.info("Bypass granted for role '%s' (id=%d, level=%d)", row.name, role_id, row.level)
        return BypassVerdict(
            role_id=role_id,
            bypassed=bypassed,
            role_name=row.name,
            role_level=row.level,
            reason=BYPASS_REASON if bypassed else None,
        )
