"""Authorization outcomes and their diagnostic payloads.

A decision is exactly one of :class:`Allow`, :class:`Deny`, or
:class:`Failure`. Deny and Failure carry everything the HTTP layer needs
to render the ``{success, message, code, details}`` error body.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from adsdesk.constants import DecisionCode
from adsdesk.rbac.keys import PermissionKey

# --- Internal results ---


@dataclass(frozen=True, slots=True)
class BypassVerdict:
    """Result of the privileged-bypass check for one role."""

    role_id: int
    bypassed: bool
    role_name: str | None = None
    role_level: int | None = None
    reason: str | None = None

    @property
    def role_found(self) -> bool:
        return self.role_name is not None


@dataclass(frozen=True, slots=True)
class Resolution:
    """Result of resolving one permission key against a role's grants.

    ``role_id`` is ``None`` for an actor without an effective role.
    """

    key: PermissionKey
    role_id: int | None
    allowed: bool
    granted_permission_name: str | None = None
    role_level: int | None = None
    available_actions: tuple[str, ...] = ()


# --- Deny details ---


class PermissionDenialDetails(BaseModel):
    """Diagnostics for a single-permission denial."""

    user_role: str
    required_permission: str
    action: str
    module: str
    available_actions: list[str]
    suggestion: str


class MissingPermissionsDetails(BaseModel):
    """Diagnostics for a require-all denial."""

    user_role: str
    granted_permissions: list[str]
    missing_permissions: list[str]
    required_permissions: list[str]
    suggestion: str


class AnyPermissionDetails(BaseModel):
    """Diagnostics for a require-any denial."""

    user_role: str
    required_any_of: list[str]
    suggestion: str


type DenyDetails = PermissionDenialDetails | MissingPermissionsDetails | AnyPermissionDetails


# --- Outcomes ---


@dataclass(frozen=True, slots=True)
class Allow:
    """The call may proceed.

    ``granted`` lists the keys the decision covers: the requested key for a
    single check, every key for require-all, and the first satisfied key
    for require-any. ``permission_names`` holds the stored names that
    matched, and is empty on bypass.
    """

    granted: tuple[PermissionKey, ...]
    role_id: int | None = None
    role_level: int | None = None
    permission_names: tuple[str, ...] = ()
    bypassed: bool = False
    bypass_reason: str | None = None

    @property
    def matched(self) -> PermissionKey:
        return self.granted[0]


@dataclass(frozen=True, slots=True)
class Deny:
    """The caller lacks the required permission(s)."""

    code: DecisionCode
    message: str
    details: DenyDetails
    missing: tuple[PermissionKey, ...] = ()

    @property
    def role_name(self) -> str:
        return self.details.user_role

    @property
    def available_actions(self) -> list[str]:
        return list(getattr(self.details, "available_actions", []))

    @property
    def required_permission(self) -> str | None:
        return getattr(self.details, "required_permission", None)

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "code": str(self.code),
            "details": self.details.model_dump(),
        }


@dataclass(frozen=True, slots=True)
class Failure:
    """The decision could not be made. Never treated as Allow or Deny."""

    cause: BaseException
    code: DecisionCode = DecisionCode.PERMISSION_CHECK_ERROR
    message: str = "Permission check failed"

    def to_payload(self, include_cause: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "message": self.message, "code": str(self.code)}
        if include_cause:
            payload["error"] = f"{type(self.cause).__name__}: {self.cause}"
        return payload


type Decision = Allow | Deny | Failure
