"""Tests for require-all and require-any combination helpers."""

import pytest

from adsdesk.constants import DecisionCode
from adsdesk.rbac.combinators import ANY_SUGGESTION, MISSING_SUGGESTION, combine_all, deny_any, normalize_keys
from adsdesk.rbac.keys import PermissionKey
from adsdesk.rbac.outcomes import Allow, Deny, Resolution

READ = PermissionKey("reports", "read")
EXPORT = PermissionKey("reports", "export")


class TestNormalizeKeys:
    def test_mixed_inputs(self) -> None:
        assert normalize_keys([("reports", "read"), EXPORT]) == (READ, EXPORT)

    def test_empty(self) -> None:
        with pytest.raises(ValueError, match="At least one permission is required"):
            normalize_keys([])


class TestCombineAll:
    def test_all_granted(self) -> None:
        resolutions = [
            Resolution(READ, 4, True, granted_permission_name="reports_read", role_level=3),
            Resolution(EXPORT, 4, True, granted_permission_name="reports.export", role_level=3),
        ]
        decision = combine_all("Analyst", (READ, EXPORT), resolutions)
        assert isinstance(decision, Allow)
        assert decision.role_id == 4
        assert decision.role_level == 3
        assert decision.permission_names == ("reports_read", "reports.export")

    def test_partial(self) -> None:
        resolutions = [
            Resolution(READ, 4, True, granted_permission_name="reports_read"),
            Resolution(EXPORT, 4, False),
        ]
        decision = combine_all("Analyst", (READ, EXPORT), resolutions)
        assert isinstance(decision, Deny)
        assert decision.code == DecisionCode.MISSING_MULTIPLE_PERMISSIONS
        assert decision.missing == (EXPORT,)
        assert decision.details.suggestion == MISSING_SUGGESTION
        assert decision.role_name == "Analyst"


class TestDenyAny:
    def test_payload(self) -> None:
        decision = deny_any("Viewer", (READ, EXPORT))
        assert decision.to_payload() == {
            "success": False,
            "message": "Access denied. You need at least one of these permissions: reports_read, reports_export.",
            "code": "INSUFFICIENT_ANY_PERMISSIONS",
            "details": {
                "user_role": "Viewer",
                "required_any_of": ["reports_read", "reports_export"],
                "suggestion": ANY_SUGGESTION,
            },
        }
