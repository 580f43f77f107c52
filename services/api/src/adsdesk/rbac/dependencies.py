"""FastAPI dependencies that enforce authorization decisions.

Usage::

    @router.get("/reports", dependencies=[Depends(require_permission("reports", "read"))])
    async def list_reports(): ...

    export_guard = require_all_permissions(("reports", "read"), ("reports", "export"))

    @router.post("/reports/export")
    async def export(actor: Annotated[ActorContext, Depends(export_guard)]): ...

Deny becomes 403 and Failure becomes 500. Both carry the
``{success, message, code, details}`` body under ``detail``. The allowing
decision is stored on ``request.state.authorization`` for the handler.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.auth.dependencies import CurrentUserId
from adsdesk.constants import DecisionCode
from adsdesk.dependencies import db_manager
from adsdesk.rbac.actors import ActorContext, ActorResolver
from adsdesk.rbac.combinators import KeyLike, normalize_keys
from adsdesk.rbac.decisions import Authorizer
from adsdesk.rbac.exceptions import ResolutionFailedError, UnauthenticatedError
from adsdesk.rbac.keys import PermissionKey
from adsdesk.rbac.outcomes import Allow, Decision, Deny, Failure
from adsdesk.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)

_actor_resolver = ActorResolver()

type ActorDependency = Callable[..., Coroutine[Any, Any, ActorContext]]


def get_authorizer(settings: Annotated[AppSettings, Depends(get_settings)]) -> Authorizer:
    return Authorizer(timeout_seconds=settings.PERMISSION_CHECK_TIMEOUT_SECONDS)


async def get_current_actor(
    user_id: CurrentUserId,
    session: Annotated[AsyncSession, Depends(db_manager.dependency)],
    settings: Annotated[AppSettings, Depends(get_settings)],
) -> ActorContext:
    """Resolve the authenticated user's effective role for this request."""
    try:
        async with asyncio.timeout(settings.PERMISSION_CHECK_TIMEOUT_SECONDS):
            return await _actor_resolver.resolve(user_id, session)
    except TimeoutError as exc:
        logger.error(
            "Actor resolution for user %d timed out after %.1fs", user_id, settings.PERMISSION_CHECK_TIMEOUT_SECONDS
        )
        failure = Failure(cause=ResolutionFailedError("actor resolution (timeout)", exc))
        raise HTTPException(status_code=500, detail=failure.to_payload(settings.DEV_MODE)) from exc
    except ResolutionFailedError as exc:
        logger.exception("Could not resolve actor for user %d", user_id)
        raise HTTPException(status_code=500, detail=Failure(cause=exc).to_payload(settings.DEV_MODE)) from exc


CurrentActor = Annotated[ActorContext, Depends(get_current_actor)]


def enforce(decision: Decision, settings: AppSettings) -> Allow:
    """Return *decision* if it allows, otherwise raise the matching HTTPException."""
    if isinstance(decision, Deny):
        raise HTTPException(status_code=403, detail=decision.to_payload())
    if isinstance(decision, Failure):
        raise HTTPException(status_code=500, detail=decision.to_payload(settings.DEV_MODE))
    return decision


class PermissionDependencyFactory:
    """Creates FastAPI dependencies that authorize the current actor.

    Each dependency returns the :class:`ActorContext` so handlers can
    record who performed an action.
    """

    def require(self, module: str, action: str) -> ActorDependency:
        key = PermissionKey(module, action)

        async def _dependency(
            request: Request,
            actor: CurrentActor,
            authorizer: Annotated[Authorizer, Depends(get_authorizer)],
            session: Annotated[AsyncSession, Depends(db_manager.dependency)],
            settings: Annotated[AppSettings, Depends(get_settings)],
        ) -> ActorContext:
            decision = await _checked(authorizer.authorize(actor, key.module, key.action, session))
            request.state.authorization = enforce(decision, settings)
            return actor

        return _dependency

    def require_all(self, *keys: KeyLike) -> ActorDependency:
        required = normalize_keys(keys)

        async def _dependency(
            request: Request,
            actor: CurrentActor,
            authorizer: Annotated[Authorizer, Depends(get_authorizer)],
            session: Annotated[AsyncSession, Depends(db_manager.dependency)],
            settings: Annotated[AppSettings, Depends(get_settings)],
        ) -> ActorContext:
            decision = await _checked(authorizer.require_all(actor, required, session))
            request.state.authorization = enforce(decision, settings)
            return actor

        return _dependency

    def require_any(self, *keys: KeyLike) -> ActorDependency:
        candidates = normalize_keys(keys)

        async def _dependency(
            request: Request,
            actor: CurrentActor,
            authorizer: Annotated[Authorizer, Depends(get_authorizer)],
            session: Annotated[AsyncSession, Depends(db_manager.dependency)],
            settings: Annotated[AppSettings, Depends(get_settings)],
        ) -> ActorContext:
            decision = await _checked(authorizer.require_any(actor, candidates, session))
            request.state.authorization = enforce(decision, settings)
            return actor

        return _dependency


async def _checked(pending: Coroutine[Any, Any, Decision]) -> Decision:
    try:
        return await pending
    except UnauthenticatedError as exc:
        raise HTTPException(
            status_code=401,
            detail={"success": False, "message": exc.detail, "code": DecisionCode.AUTH_REQUIRED},
        ) from exc


_factory = PermissionDependencyFactory()
require_permission = _factory.require
require_all_permissions = _factory.require_all
require_any_permission = _factory.require_any
