"""Tests for effective-role resolution."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.rbac.actors import ActorContext, ActorResolver
from adsdesk.rbac.exceptions import ResolutionFailedError
from adsdesk_shared.db.base import utc_now
from rbac_seed import Seeder


class TestActorResolver:
    async def test_highest_level_role_wins(self, session: AsyncSession, seeder: Seeder) -> None:
        user = await seeder.user("dana")
        viewer = await seeder.role("Viewer", 1)
        manager = await seeder.role("Manager", 5)
        await seeder.assign(user, viewer)
        await seeder.assign(user, manager)

        actor = await ActorResolver().resolve(user.id, session)
        assert actor == ActorContext(user_id=user.id, role_id=manager.id)

    @pytest.mark.parametrize(("name", "is_super"), [("super_admin", False), ("superadmin", False), ("Platform", True)])
    async def test_super_role_wins_over_higher_level(
        self, session: AsyncSession, seeder: Seeder, name: str, is_super: bool
    ) -> None:
        user = await seeder.user("dana")
        manager = await seeder.role("Manager", 5)
        super_role = await seeder.role(name, 1, is_super=is_super)
        await seeder.assign(user, manager)
        await seeder.assign(user, super_role)

        actor = await ActorResolver().resolve(user.id, session)
        assert actor.role_id == super_role.id

    async def test_inactive_super_role_does_not_win(self, session: AsyncSession, seeder: Seeder) -> None:
        user = await seeder.user("dana")
        manager = await seeder.role("Manager", 5)
        super_role = await seeder.role("super_admin", 1, is_active=False)
        await seeder.assign(user, manager)
        await seeder.assign(user, super_role)

        actor = await ActorResolver().resolve(user.id, session)
        assert actor.role_id == manager.id

    async def test_tie_goes_to_lowest_role_id(self, session: AsyncSession, seeder: Seeder) -> None:
        user = await seeder.user("dana")
        first = await seeder.role("Editor", 4)
        second = await seeder.role("Reviewer", 4)
        await seeder.assign(user, second)
        await seeder.assign(user, first)

        actor = await ActorResolver().resolve(user.id, session)
        assert actor.role_id == first.id

    async def test_no_assignment(self, session: AsyncSession, seeder: Seeder) -> None:
        user = await seeder.user("dana")
        actor = await ActorResolver().resolve(user.id, session)
        assert actor.role_id is None

    async def test_expired_assignment_ignored_before_sweep(self, session: AsyncSession, seeder: Seeder) -> None:
        user = await seeder.user("dana")
        owner = await seeder.role("Owner", 10)
        viewer = await seeder.role("Viewer", 1)
        await seeder.assign(user, owner, expires_at=utc_now() - timedelta(minutes=1))
        await seeder.assign(user, viewer)

        actor = await ActorResolver().resolve(user.id, session)
        assert actor.role_id == viewer.id

    async def test_future_expiry_counts(self, session: AsyncSession, seeder: Seeder) -> None:
        user = await seeder.user("dana")
        role = await seeder.role("Manager", 5)
        await seeder.assign(user, role, expires_at=utc_now() + timedelta(days=1))

        actor = await ActorResolver().resolve(user.id, session)
        assert actor.role_id == role.id

    async def test_inactive_assignment_and_role_ignored(self, session: AsyncSession, seeder: Seeder) -> None:
        user = await seeder.user("dana")
        revoked = await seeder.role("Manager", 5)
        disabled = await seeder.role("Editor", 4, is_active=False)
        await seeder.assign(user, revoked, is_active=False)
        await seeder.assign(user, disabled)

        actor = await ActorResolver().resolve(user.id, session)
        assert actor.role_id is None

    async def test_store_error_raises(self) -> None:
        session = AsyncMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        with pytest.raises(ResolutionFailedError):
            await ActorResolver().resolve(1, session)
