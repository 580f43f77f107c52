"""Decision interface: the single entry point request handlers call.

Every decision follows the same order. The actor must be identified,
then the role's bypass status is read, and only then are grants
resolved. Store errors and timeouts become :class:`Failure`; they are
never folded into Allow or Deny.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.constants import DEFAULT_PERMISSION_CHECK_TIMEOUT_SECONDS, UNKNOWN_ROLE_NAME, DecisionCode
from adsdesk.rbac.actors import ActorContext
from adsdesk.rbac.bypass import BypassPolicy
from adsdesk.rbac.combinators import KeyLike, combine_all, deny_any, normalize_keys, resolve_all, resolve_first
from adsdesk.rbac.exceptions import ResolutionFailedError, UnauthenticatedError
from adsdesk.rbac.keys import PermissionKey
from adsdesk.rbac.outcomes import (
    Allow,
    BypassVerdict,
    Decision,
    Deny,
    Failure,
    PermissionDenialDetails,
    Resolution,
)
from adsdesk.rbac.resolution import PermissionResolver

logger = logging.getLogger(__name__)


def deny_insufficient(role_name: str, resolution: Resolution) -> Deny:
    """Build the single-permission Deny with its remediation hints."""
    key = resolution.key
    actions = list(resolution.available_actions)
    if actions:
        reason = f"You don't have permission to {key.action} {key.module}. You can only: {', '.join(actions)}."
        suggestion = f"Try using one of these actions: {', '.join(actions)}"
    else:
        reason = f"You don't have any permissions for the {key.module} module."
        suggestion = f"Contact your administrator to request {key.module} permissions"
    return Deny(
        code=DecisionCode.INSUFFICIENT_PERMISSIONS,
        message=f"Access denied. {reason}",
        details=PermissionDenialDetails(
            user_role=role_name,
            required_permission=key.canonical_name,
            action=key.action,
            module=key.module,
            available_actions=actions,
            suggestion=suggestion,
        ),
        missing=(key,),
    )


class Authorizer:
    """Answers authorization questions for an :class:`ActorContext`.

    Usage::

        authorizer = Authorizer(timeout_seconds=settings.PERMISSION_CHECK_TIMEOUT_SECONDS)
        decision = await authorizer.authorize(actor, "reports", "export", session)
        if isinstance(decision, Deny):
            raise HTTPException(403, decision.to_payload())

    Raises :class:`UnauthenticatedError` when *actor* is missing. All
    other outcomes are returned, not raised.
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_PERMISSION_CHECK_TIMEOUT_SECONDS,
        bypass: BypassPolicy | None = None,
        resolver: PermissionResolver | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._bypass = bypass or BypassPolicy()
        self._resolver = resolver or PermissionResolver()

    async def authorize(
        self,
        actor: ActorContext | None,
        module: str,
        action: str,
        session: AsyncSession,
    ) -> Decision:
        """Decide whether *actor* may perform *action* in *module*."""
        _require_identity(actor)
        key = PermissionKey(module, action)

        async def evaluate(verdict: BypassVerdict | None, role_id: int | None) -> Allow | Deny:
            if role_id is None:
                resolution = Resolution(key=key, role_id=None, allowed=False)
            else:
                resolution = await self._resolver.resolve(role_id, key, session)
            if resolution.allowed:
                return _allow(resolution)
            return deny_insufficient(_role_name(verdict), resolution)

        return await self._decide(actor, (key,), session, evaluate)

    async def require_all(
        self,
        actor: ActorContext | None,
        keys: Iterable[KeyLike],
        session: AsyncSession,
    ) -> Decision:
        """Allow only if every key is held; a Deny lists every missing key."""
        _require_identity(actor)
        required = normalize_keys(keys)

        async def evaluate(verdict: BypassVerdict | None, role_id: int | None) -> Allow | Deny:
            if role_id is None:
                resolutions = [Resolution(key=k, role_id=None, allowed=False) for k in required]
            else:
                resolutions = await resolve_all(self._resolver, role_id, required, session)
            return combine_all(_role_name(verdict), required, resolutions)

        return await self._decide(actor, required, session, evaluate)

    async def require_any(
        self,
        actor: ActorContext | None,
        keys: Iterable[KeyLike],
        session: AsyncSession,
    ) -> Decision:
        """Allow on the first held key, in input order; Allow.granted names it."""
        _require_identity(actor)
        candidates = normalize_keys(keys)

        async def evaluate(verdict: BypassVerdict | None, role_id: int | None) -> Allow | Deny:
            first = None
            if role_id is not None:
                first = await resolve_first(self._resolver, role_id, candidates, session)
            if first is None:
                return deny_any(_role_name(verdict), candidates)
            return _allow(first)

        return await self._decide(actor, candidates[:1], session, evaluate)

    async def _decide(
        self,
        actor: ActorContext,
        bypass_grants: tuple[PermissionKey, ...],
        session: AsyncSession,
        evaluate: Callable[[BypassVerdict | None, int | None], Awaitable[Allow | Deny]],
    ) -> Decision:
        try:
            async with asyncio.timeout(self._timeout):
                verdict = None
                if actor.role_id is not None:
                    verdict = await self._bypass.is_bypassed(actor.role_id, session)
                    if verdict.bypassed:
                        return Allow(
                            granted=bypass_grants,
                            role_id=actor.role_id,
                            role_level=verdict.role_level,
                            bypassed=True,
                            bypass_reason=verdict.reason,
                        )
                decision = await evaluate(verdict, actor.role_id)
        except ResolutionFailedError as exc:
            logger.exception("Permission check failed for user %d", actor.user_id)
            return Failure(cause=exc)
        except TimeoutError as exc:
            logger.error("Permission check for user %d timed out after %.1fs", actor.user_id, self._timeout)
            return Failure(cause=ResolutionFailedError("permission check (timeout)", exc))

        if isinstance(decision, Deny):
            logger.warning(
                "Denied user %d (role %s): %s",
                actor.user_id,
                decision.role_name,
                ", ".join(k.canonical_name for k in decision.missing),
            )
        return decision


def _role_name(verdict: BypassVerdict | None) -> str:
    if verdict is None or verdict.role_name is None:
        return UNKNOWN_ROLE_NAME
    return verdict.role_name


def _allow(resolution: Resolution) -> Allow:
    name = resolution.granted_permission_name
    return Allow(
        granted=(resolution.key,),
        role_id=resolution.role_id,
        role_level=resolution.role_level,
        permission_names=(name,) if name else (),
    )


def _require_identity(actor: ActorContext | None) -> None:
    if actor is None or actor.user_id is None:
        raise UnauthenticatedError()
