"""Tests for PermissionCatalog."""

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.rbac.actors import ActorContext
from adsdesk.rbac.catalog import ActingRole, PermissionCatalog, ensure_may_hand_out_role
from adsdesk.rbac.exceptions import (
    DuplicateNameError,
    LifecycleConflictError,
    NotFoundError,
    PrivilegeEscalationError,
)
from adsdesk.rbac.keys import PermissionKey
from adsdesk_shared.db.base import utc_now
from adsdesk_shared.db.enums import AuditAction
from adsdesk_shared.db.models.rbac import Role
from rbac_seed import Seeder


class TestRoles:
    async def test_create_role(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await PermissionCatalog().create_role("  Editor ", session, level=4, created_by=1)
        assert role.name == "Editor"
        assert role.level == 4
        assert role.is_system is False
        assert await seeder.audit_count(AuditAction.ROLE_CREATED) == 1

    async def test_duplicate_name(self, session: AsyncSession, seeder: Seeder) -> None:
        await seeder.role("Editor", 4)
        with pytest.raises(DuplicateNameError, match="Role already exists: Editor"):
            await PermissionCatalog().create_role("Editor", session)

    @pytest.mark.parametrize("level", [0, 11])
    async def test_level_out_of_range(self, session: AsyncSession, level: int) -> None:
        with pytest.raises(ValueError, match="between 1 and 10"):
            await PermissionCatalog().create_role("Editor", session, level=level)

    async def test_blank_name(self, session: AsyncSession) -> None:
        with pytest.raises(ValueError):
            await PermissionCatalog().create_role("   ", session)

    async def test_get_missing_role(self, session: AsyncSession) -> None:
        with pytest.raises(NotFoundError):
            await PermissionCatalog().get_role(404, session)

    async def test_update_records_changes(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Editor", 4)
        updated = await PermissionCatalog().update_role(role.id, session, name="Writer", level=6, updated_by=2)
        assert updated.name == "Writer"
        assert updated.level == 6
        assert await seeder.audit_count(AuditAction.ROLE_UPDATED) == 1

    async def test_noop_update_writes_no_audit(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Editor", 4)
        await PermissionCatalog().update_role(role.id, session, name="Editor", level=4)
        assert await seeder.audit_count() == 0

    async def test_system_role_cannot_be_renamed(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Admin", 8, is_system=True)
        with pytest.raises(LifecycleConflictError, match="Cannot rename system roles"):
            await PermissionCatalog().update_role(role.id, session, name="Boss")

    async def test_system_role_level_can_change(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Admin", 8, is_system=True)
        updated = await PermissionCatalog().update_role(role.id, session, level=9)
        assert updated.level == 9

    async def test_rename_to_taken_name(self, session: AsyncSession, seeder: Seeder) -> None:
        await seeder.role("Editor", 4)
        other = await seeder.role("Writer", 4)
        with pytest.raises(DuplicateNameError):
            await PermissionCatalog().update_role(other.id, session, name="Editor")

    async def test_delete_role(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Temp", 2)
        role_id = role.id
        await PermissionCatalog().delete_role(role_id, session, deleted_by=1)

        assert (await session.execute(select(Role.id).where(Role.id == role_id))).scalar_one_or_none() is None
        assert await seeder.audit_count(AuditAction.ROLE_DELETED) == 1

    async def test_delete_system_role_refused(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Viewer", 1, is_system=True)
        with pytest.raises(LifecycleConflictError, match="Cannot delete system roles"):
            await PermissionCatalog().delete_role(role.id, session)

    async def test_delete_held_role_refused(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Temp", 2)
        user = await seeder.user("dana")
        await seeder.assign(user, role)
        with pytest.raises(LifecycleConflictError, match="1 active user assignment"):
            await PermissionCatalog().delete_role(role.id, session)

    async def test_expired_holders_do_not_block_delete(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Temp", 2)
        user = await seeder.user("dana")
        await seeder.assign(user, role, expires_at=utc_now() - timedelta(days=1))
        assert await PermissionCatalog().count_active_holders(role.id, session) == 0


class TestEscalationGuards:
    ADMIN = ActingRole(level=8)
    OWNER = ActingRole(level=10, bypassed=True)

    @pytest.mark.parametrize(
        ("name", "level", "is_super"),
        [("Auditor", 9, False), ("Root", 10, False), ("Helper", 2, True), ("Super Admin", 1, False)],
    )
    async def test_create_above_own_privilege_refused(
        self, session: AsyncSession, seeder: Seeder, name: str, level: int, is_super: bool
    ) -> None:
        with pytest.raises(PrivilegeEscalationError):
            await PermissionCatalog().create_role(name, session, level=level, is_super=is_super, acting=self.ADMIN)
        assert await seeder.audit_count() == 0

    async def test_create_at_own_level_allowed(self, session: AsyncSession) -> None:
        role = await PermissionCatalog().create_role("Lead", session, level=8, acting=self.ADMIN)
        assert role.level == 8

    async def test_raise_to_bypass_level_refused(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Editor", 4)
        with pytest.raises(PrivilegeEscalationError):
            await PermissionCatalog().update_role(role.id, session, level=10, acting=self.ADMIN)
        assert role.level == 4

    async def test_rename_to_super_name_refused(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Editor", 4)
        with pytest.raises(PrivilegeEscalationError):
            await PermissionCatalog().update_role(role.id, session, name="superadmin", acting=self.ADMIN)

    async def test_system_role_edit_needs_bypass(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Viewer", 1, is_system=True)
        with pytest.raises(PrivilegeEscalationError, match="system roles"):
            await PermissionCatalog().update_role(role.id, session, level=2, acting=self.ADMIN)

        updated = await PermissionCatalog().update_role(role.id, session, level=2, acting=self.OWNER)
        assert updated.level == 2

    async def test_delete_role_above_own_level_refused(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Auditor", 9)
        with pytest.raises(PrivilegeEscalationError):
            await PermissionCatalog().delete_role(role.id, session, acting=self.ADMIN)

    async def test_hand_out_guard(self, seeder: Seeder) -> None:
        analyst = await seeder.role("Analyst", 3)
        owner = await seeder.role("Owner", 10)
        hidden_super = await seeder.role("Ops", 1, is_super=True)

        ensure_may_hand_out_role(self.ADMIN, analyst)
        ensure_may_hand_out_role(self.OWNER, owner)
        ensure_may_hand_out_role(None, owner)
        for role in (owner, hidden_super):
            with pytest.raises(PrivilegeEscalationError):
                ensure_may_hand_out_role(self.ADMIN, role)

    async def test_acting_role_reads_fresh_level(self, session: AsyncSession, seeder: Seeder) -> None:
        catalog = PermissionCatalog()
        admin = await seeder.role("Admin", 8)
        owner = await seeder.role("Owner", 10)

        assert await catalog.acting_role(ActorContext(1, admin.id), session) == ActingRole(level=8)
        assert await catalog.acting_role(ActorContext(1, owner.id), session) == ActingRole(level=10, bypassed=True)
        assert await catalog.acting_role(ActorContext(1), session) == ActingRole(level=0)


class TestModulesAndPermissions:
    async def test_create_module_and_permission(self, session: AsyncSession) -> None:
        catalog = PermissionCatalog()
        module = await catalog.create_module("campaign_data", session)
        assert module.display_name == "Campaign Data"

        permission = await catalog.create_permission("campaign_data", "export", session)
        assert permission.name == "campaign_data_export"
        assert permission.module_id == module.id
        assert permission.action == "export"
        assert permission.category == "campaign_data"
        assert permission.display_name == "Export Campaign Data"

    async def test_duplicate_module(self, session: AsyncSession, seeder: Seeder) -> None:
        await seeder.module("ads")
        with pytest.raises(DuplicateNameError):
            await PermissionCatalog().create_module("ads", session)

    async def test_invalid_module_name(self, session: AsyncSession) -> None:
        with pytest.raises(ValueError):
            await PermissionCatalog().create_module("ads.v2", session)

    async def test_permission_requires_module(self, session: AsyncSession) -> None:
        with pytest.raises(NotFoundError, match="Module not found: ads"):
            await PermissionCatalog().create_permission("ads", "read", session)

    async def test_legacy_spelling_counts_as_duplicate(self, session: AsyncSession, seeder: Seeder) -> None:
        await seeder.module("ads")
        await seeder.permission("ads.read")
        with pytest.raises(DuplicateNameError, match="ads_read"):
            await PermissionCatalog().create_permission("ads", "read", session)

    async def test_find_permission_prefers_canonical(self, session: AsyncSession, seeder: Seeder) -> None:
        await seeder.permission("ads.read")
        canonical = await seeder.permission("ads_read")
        found = await PermissionCatalog().find_permission(PermissionKey("ads", "read"), session)
        assert found is not None
        assert found.id == canonical.id

    async def test_soft_disable(self, session: AsyncSession, seeder: Seeder) -> None:
        module = await seeder.module("ads")
        perm = await seeder.permission("ads_read", module=module)
        catalog = PermissionCatalog()

        assert (await catalog.set_module_active(module.id, False, session)).is_active is False
        assert (await catalog.set_permission_active(perm.id, False, session)).is_active is False

    async def test_permissions_by_module(self, session: AsyncSession, seeder: Seeder) -> None:
        reports = await seeder.module("reports")
        ads = await seeder.module("ads", is_active=False)
        role = await seeder.role("Analyst", 3)
        await seeder.grant(
            role,
            await seeder.permission("reports_read", module=reports),
            await seeder.permission("reports.export"),
            await seeder.permission("ads_read", module=ads),
            await seeder.permission("campaigns_read", is_active=False),
            await seeder.permission("orphan"),
        )

        grouped = await PermissionCatalog().permissions_by_module(role.id, session)
        assert grouped == {"reports": ["read", "export"]}
