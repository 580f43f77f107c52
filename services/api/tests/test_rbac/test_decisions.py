"""Tests for the Authorizer decision interface."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.constants import BYPASS_REASON, DecisionCode
from adsdesk.rbac.actors import ActorContext, ActorResolver
from adsdesk.rbac.bypass import BypassPolicy
from adsdesk.rbac.decisions import Authorizer
from adsdesk.rbac.exceptions import ResolutionFailedError, UnauthenticatedError
from adsdesk.rbac.keys import PermissionKey
from adsdesk.rbac.lifecycle import RoleAssignmentManager
from adsdesk.rbac.outcomes import Allow, Deny, Failure
from adsdesk_shared.db.base import utc_now
from rbac_seed import Seeder


@pytest.fixture
async def analyst(seeder: Seeder) -> ActorContext:
    """User holding only ``reports_read`` through a level-3 role."""
    reports = await seeder.module("reports")
    await seeder.module("campaigns")
    read = await seeder.permission("reports_read", module=reports)
    role = await seeder.role("Analyst", 3)
    await seeder.grant(role, read)
    user = await seeder.user("ana")
    await seeder.assign(user, role)
    return ActorContext(user_id=user.id, role_id=role.id)


class TestAuthorizeScenarios:
    async def test_analyst_allowed_to_read_reports(self, session: AsyncSession, analyst: ActorContext) -> None:
        decision = await Authorizer().authorize(analyst, "reports", "read", session)
        assert isinstance(decision, Allow)
        assert decision.matched == PermissionKey("reports", "read")
        assert decision.permission_names == ("reports_read",)
        assert decision.bypassed is False

    async def test_analyst_denied_delete_lists_read(self, session: AsyncSession, analyst: ActorContext) -> None:
        decision = await Authorizer().authorize(analyst, "reports", "delete", session)
        assert isinstance(decision, Deny)
        assert decision.code == DecisionCode.INSUFFICIENT_PERMISSIONS
        assert decision.available_actions == ["read"]
        assert decision.role_name == "Analyst"
        assert decision.required_permission == "reports_delete"
        assert decision.message == (
            "Access denied. You don't have permission to delete reports. You can only: read."
        )
        assert decision.details.suggestion == "Try using one of these actions: read"

    async def test_analyst_denied_other_module_without_hints(
        self, session: AsyncSession, analyst: ActorContext
    ) -> None:
        decision = await Authorizer().authorize(analyst, "campaigns", "read", session)
        assert isinstance(decision, Deny)
        assert decision.available_actions == []
        assert decision.message == "Access denied. You don't have any permissions for the campaigns module."
        assert decision.details.suggestion == "Contact your administrator to request campaigns permissions"

    async def test_owner_bypasses_without_grants(self, session: AsyncSession, seeder: Seeder) -> None:
        owner = await seeder.role("Owner", 10)
        user = await seeder.user("olga")
        await seeder.assign(user, owner)

        decision = await Authorizer().authorize(ActorContext(user.id, owner.id), "users", "delete", session)
        assert isinstance(decision, Allow)
        assert decision.bypassed is True
        assert decision.bypass_reason == BYPASS_REASON
        assert decision.matched == PermissionKey("users", "delete")
        assert decision.permission_names == ()

    async def test_owner_bypasses_for_unknown_pair(self, session: AsyncSession, seeder: Seeder) -> None:
        owner = await seeder.role("super_admin", 2)
        decision = await Authorizer().authorize(ActorContext(1, owner.id), "nonexistent", "frobnicate", session)
        assert isinstance(decision, Allow)
        assert decision.bypassed is True

    async def test_expired_assignment_denied_immediately(self, session: AsyncSession, seeder: Seeder) -> None:
        perm = await seeder.permission("reports_read")
        role = await seeder.role("Analyst", 3)
        await seeder.grant(role, perm)
        user = await seeder.user("eve")

        await RoleAssignmentManager().assign_role(
            user.id, role.id, 1, session, expires_at=utc_now() - timedelta(days=1)
        )
        actor = await ActorResolver().resolve(user.id, session)
        decision = await Authorizer().authorize(actor, "reports", "read", session)

        assert actor.role_id is None
        assert isinstance(decision, Deny)
        assert decision.role_name == "Unknown"

    async def test_low_level_super_role_bypasses_beside_higher_role(
        self, session: AsyncSession, seeder: Seeder
    ) -> None:
        user = await seeder.user("sam")
        await seeder.assign(user, await seeder.role("Manager", 5))
        await seeder.assign(user, await seeder.role("super_admin", 1))

        actor = await ActorResolver().resolve(user.id, session)
        decision = await Authorizer().authorize(actor, "users", "delete", session)

        assert isinstance(decision, Allow)
        assert decision.bypassed is True


class TestAuthorizeEdges:
    async def test_missing_actor_raises(self, session: AsyncSession) -> None:
        with pytest.raises(UnauthenticatedError):
            await Authorizer().authorize(None, "reports", "read", session)

    async def test_missing_actor_raises_before_key_validation(self, session: AsyncSession) -> None:
        with pytest.raises(UnauthenticatedError):
            await Authorizer().authorize(None, "", "", session)

    async def test_invalid_key_raises_value_error(self, session: AsyncSession, analyst: ActorContext) -> None:
        with pytest.raises(ValueError):
            await Authorizer().authorize(analyst, "reports", "", session)

    async def test_actor_without_role_denied(self, session: AsyncSession) -> None:
        decision = await Authorizer().authorize(ActorContext(user_id=7), "reports", "read", session)
        assert isinstance(decision, Deny)
        assert decision.role_name == "Unknown"
        assert decision.available_actions == []

    async def test_store_error_is_failure(self) -> None:
        session = AsyncMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        decision = await Authorizer().authorize(ActorContext(1, 2), "reports", "read", session)
        assert isinstance(decision, Failure)
        assert decision.code == DecisionCode.PERMISSION_CHECK_ERROR
        assert isinstance(decision.cause, ResolutionFailedError)

    async def test_timeout_is_failure(self, session: AsyncSession) -> None:
        bypass = BypassPolicy()

        async def slow(role_id: int, sess: AsyncSession):
            await asyncio.sleep(1)

        bypass.is_bypassed = slow  # type: ignore[method-assign]
        decision = await Authorizer(timeout_seconds=0.01, bypass=bypass).authorize(
            ActorContext(1, 2), "reports", "read", session
        )
        assert isinstance(decision, Failure)
        assert "timeout" in decision.cause.operation

    async def test_deny_payload_shape(self, session: AsyncSession, analyst: ActorContext) -> None:
        decision = await Authorizer().authorize(analyst, "reports", "delete", session)
        assert isinstance(decision, Deny)
        payload = decision.to_payload()
        assert payload["success"] is False
        assert payload["code"] == "INSUFFICIENT_PERMISSIONS"
        assert payload["details"] == {
            "user_role": "Analyst",
            "required_permission": "reports_delete",
            "action": "delete",
            "module": "reports",
            "available_actions": ["read"],
            "suggestion": "Try using one of these actions: read",
        }

    async def test_failure_payload_hides_cause_by_default(self) -> None:
        failure = Failure(cause=ResolutionFailedError("resolve reports_read", RuntimeError("secret dsn")))
        assert "error" not in failure.to_payload()
        assert "secret dsn" in failure.to_payload(include_cause=True)["error"]


class TestRequireAll:
    async def test_missing_one(self, session: AsyncSession, seeder: Seeder) -> None:
        a = await seeder.permission("reports_read")
        await seeder.permission("reports_export")
        role = await seeder.role("Analyst", 3)
        await seeder.grant(role, a)

        decision = await Authorizer().require_all(
            ActorContext(1, role.id), [("reports", "read"), ("reports", "export")], session
        )
        assert isinstance(decision, Deny)
        assert decision.code == DecisionCode.MISSING_MULTIPLE_PERMISSIONS
        assert decision.missing == (PermissionKey("reports", "export"),)
        assert decision.details.missing_permissions == ["reports_export"]
        assert decision.details.granted_permissions == ["reports_read"]
        assert decision.details.required_permissions == ["reports_read", "reports_export"]
        assert decision.message == "Access denied. You are missing required permissions: reports_export."

    async def test_missing_both(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Viewer", 1)
        decision = await Authorizer().require_all(
            ActorContext(1, role.id), [("reports", "read"), ("reports", "export")], session
        )
        assert isinstance(decision, Deny)
        assert decision.missing == (PermissionKey("reports", "read"), PermissionKey("reports", "export"))

    async def test_all_held(self, session: AsyncSession, seeder: Seeder) -> None:
        a = await seeder.permission("reports_read")
        b = await seeder.permission("reports.export")
        role = await seeder.role("Analyst", 3)
        await seeder.grant(role, a, b)

        decision = await Authorizer().require_all(
            ActorContext(1, role.id), [("reports", "read"), ("reports", "export")], session
        )
        assert isinstance(decision, Allow)
        assert decision.granted == (PermissionKey("reports", "read"), PermissionKey("reports", "export"))
        assert decision.permission_names == ("reports_read", "reports.export")

    async def test_bypass_grants_every_key(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Owner", 10)
        decision = await Authorizer().require_all(ActorContext(1, role.id), ["a_read", "b_read"], session)
        assert isinstance(decision, Allow)
        assert decision.bypassed is True
        assert len(decision.granted) == 2

    async def test_empty_list_rejected(self, session: AsyncSession) -> None:
        with pytest.raises(ValueError, match="At least one permission"):
            await Authorizer().require_all(ActorContext(1, 1), [], session)


class TestRequireAny:
    async def test_first_match_wins(self, session: AsyncSession, seeder: Seeder) -> None:
        a = await seeder.permission("reports_read")
        b = await seeder.permission("campaigns_read")
        role = await seeder.role("Analyst", 3)
        await seeder.grant(role, b, a)

        decision = await Authorizer().require_any(
            ActorContext(1, role.id), [("reports", "read"), ("campaigns", "read")], session
        )
        assert isinstance(decision, Allow)
        assert decision.matched == PermissionKey("reports", "read")

    async def test_later_match(self, session: AsyncSession, seeder: Seeder) -> None:
        b = await seeder.permission("campaigns_read")
        role = await seeder.role("Analyst", 3)
        await seeder.grant(role, b)

        decision = await Authorizer().require_any(
            ActorContext(1, role.id), [("reports", "read"), ("campaigns", "read")], session
        )
        assert isinstance(decision, Allow)
        assert decision.matched == PermissionKey("campaigns", "read")

    async def test_none_held(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("Viewer", 1)
        decision = await Authorizer().require_any(
            ActorContext(1, role.id), [("reports", "read"), ("campaigns", "read")], session
        )
        assert isinstance(decision, Deny)
        assert decision.code == DecisionCode.INSUFFICIENT_ANY_PERMISSIONS
        assert decision.details.required_any_of == ["reports_read", "campaigns_read"]
        assert decision.role_name == "Viewer"

    async def test_bypass_reports_first_key(self, session: AsyncSession, seeder: Seeder) -> None:
        role = await seeder.role("SuperAdmin", 1)
        decision = await Authorizer().require_any(ActorContext(1, role.id), ["a_read", "b_read"], session)
        assert isinstance(decision, Allow)
        assert decision.granted == (PermissionKey("a", "read"),)
