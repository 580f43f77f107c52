"""Request-scoped actor identity handed to every decision."""

import logging
from dataclasses import dataclass

from sqlalchemy import case, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.rbac.bypass import super_role_clause
from adsdesk.rbac.exceptions import ResolutionFailedError
from adsdesk_shared.db.base import utc_now
from adsdesk_shared.db.models.rbac import Role, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ActorContext:
    """Who is calling and under which role.

    ``role_id`` is ``None`` when the user holds no active, unexpired
    assignment; such an actor is identified but denied everything.
    """

    user_id: int
    role_id: int | None = None


class ActorResolver:
    """Computes the effective role of a user once per request.

    The effective role is chosen among the user's active, unexpired
    assignments on active roles. A role that bypasses checks wins over any
    level. Otherwise the highest level wins, ties going to the lowest role
    id. Expired rows the sweeper has not reached yet are ignored here.
    """

    async def resolve(self, user_id: int, session: AsyncSession) -> ActorContext:
        stmt = (
            select(UserRole.role_id)
            .join(Role, Role.id == UserRole.role_id)
            .where(
                UserRole.user_id == user_id,
                UserRole.is_active.is_(True),
                or_(UserRole.expires_at.is_(None), UserRole.expires_at > utc_now()),
                Role.is_active.is_(True),
            )
            .order_by(case((super_role_clause(), 0), else_=1), Role.level.desc(), Role.id.asc())
            .limit(1)
        )
        try:
            role_id = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise ResolutionFailedError("actor resolution", exc) from exc

        if role_id is None:
            logger.debug("User %d has no active role assignment", user_id)
        return ActorContext(user_id=user_id, role_id=role_id)
