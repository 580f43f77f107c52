"""Require-all and require-any evaluation over several permission keys.

These helpers run below the bypass check: :class:`~adsdesk.rbac.decisions.Authorizer`
evaluates bypass once, then hands the remaining work here.
"""

from collections.abc import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.constants import DecisionCode
from adsdesk.rbac.keys import PermissionKey
from adsdesk.rbac.outcomes import Allow, AnyPermissionDetails, Deny, MissingPermissionsDetails, Resolution
from adsdesk.rbac.resolution import PermissionResolver

type KeyLike = PermissionKey | tuple[str, str]

MISSING_SUGGESTION = "Contact your administrator to request the missing permissions"
ANY_SUGGESTION = "Contact your administrator to request at least one of these permissions"


def normalize_keys(keys: Iterable[KeyLike]) -> tuple[PermissionKey, ...]:
    """Coerce *keys* to :class:`PermissionKey` values, keeping input order."""
    normalized = tuple(PermissionKey.coerce(k) for k in keys)
    if not normalized:
        raise ValueError("At least one permission is required")
    return normalized


async def resolve_all(
    resolver: PermissionResolver,
    role_id: int,
    keys: Sequence[PermissionKey],
    session: AsyncSession,
) -> list[Resolution]:
    """Resolve every key in order. The full result set feeds the missing list."""
    return [await resolver.resolve(role_id, key, session) for key in keys]


async def resolve_first(
    resolver: PermissionResolver,
    role_id: int,
    keys: Sequence[PermissionKey],
    session: AsyncSession,
) -> Resolution | None:
    """Resolve keys in order and stop at the first grant."""
    for key in keys:
        resolution = await resolver.resolve(role_id, key, session)
        if resolution.allowed:
            return resolution
    return None


def combine_all(role_name: str, keys: Sequence[PermissionKey], resolutions: Sequence[Resolution]) -> Allow | Deny:
    granted = [r for r in resolutions if r.allowed]
    missing = [r.key for r in resolutions if not r.allowed]
    if not missing:
        return Allow(
            granted=tuple(keys),
            role_id=resolutions[0].role_id,
            role_level=granted[0].role_level,
            permission_names=tuple(r.granted_permission_name for r in granted if r.granted_permission_name),
        )

    missing_names = [k.canonical_name for k in missing]
    return Deny(
        code=DecisionCode.MISSING_MULTIPLE_PERMISSIONS,
        message=f"Access denied. You are missing required permissions: {', '.join(missing_names)}.",
        details=MissingPermissionsDetails(
            user_role=role_name,
            granted_permissions=[r.key.canonical_name for r in granted],
            missing_permissions=missing_names,
            required_permissions=[k.canonical_name for k in keys],
            suggestion=MISSING_SUGGESTION,
        ),
        missing=tuple(missing),
    )


def deny_any(role_name: str, keys: Sequence[PermissionKey]) -> Deny:
    names = [k.canonical_name for k in keys]
    return Deny(
        code=DecisionCode.INSUFFICIENT_ANY_PERMISSIONS,
        message=f"Access denied. You need at least one of these permissions: {', '.join(names)}.",
        details=AnyPermissionDetails(user_role=role_name, required_any_of=names, suggestion=ANY_SUGGESTION),
        missing=tuple(keys),
    )
