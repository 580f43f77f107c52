"""Self-service access endpoints for the presentation layer."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.dependencies import db_manager
from adsdesk.rbac.bypass import BypassPolicy
from adsdesk.rbac.catalog import PermissionCatalog
from adsdesk.rbac.decisions import Authorizer
from adsdesk.rbac.dependencies import CurrentActor, get_authorizer
from adsdesk.rbac.exceptions import ResolutionFailedError
from adsdesk.rbac.outcomes import Deny, Failure
from adsdesk.rbac.schemas import AccessCheckResponse, AccessSummary
from adsdesk.settings import AppSettings, get_settings

router = APIRouter()

_bypass = BypassPolicy()
_catalog = PermissionCatalog()


@router.get("/access", response_model=AccessSummary)
async def get_my_access(
    actor: CurrentActor,
    session: Annotated[AsyncSession, Depends(db_manager.dependency)],
    settings: Annotated[AppSettings, Depends(get_settings)],
) -> AccessSummary:
    """Return the caller's effective role and grants grouped by module."""
    if actor.role_id is None:
        return AccessSummary(
            user_id=actor.user_id, role_id=None, role_name=None, role_level=None, bypassed=False, permissions={}
        )

    try:
        verdict = await _bypass.is_bypassed(actor.role_id, session)
    except ResolutionFailedError as exc:
        raise HTTPException(status_code=500, detail=Failure(cause=exc).to_payload(settings.DEV_MODE)) from exc

    return AccessSummary(
        user_id=actor.user_id,
        role_id=actor.role_id,
        role_name=verdict.role_name,
        role_level=verdict.role_level,
        bypassed=verdict.bypassed,
        permissions=await _catalog.permissions_by_module(actor.role_id, session),
    )


@router.get("/access/check", response_model=AccessCheckResponse)
async def check_my_access(
    actor: CurrentActor,
    authorizer: Annotated[Authorizer, Depends(get_authorizer)],
    session: Annotated[AsyncSession, Depends(db_manager.dependency)],
    settings: Annotated[AppSettings, Depends(get_settings)],
    module: str = Query(min_length=1, max_length=100),
    action: str = Query(min_length=1, max_length=100),
) -> AccessCheckResponse:
    """Evaluate one permission for the caller. A Deny is reported, not raised."""
    try:
        decision = await authorizer.authorize(actor, module, action, session)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if isinstance(decision, Failure):
        raise HTTPException(status_code=500, detail=decision.to_payload(settings.DEV_MODE))
    if isinstance(decision, Deny):
        return AccessCheckResponse(
            module=module,
            action=action,
            allowed=False,
            code=decision.code,
            message=decision.message,
            details=decision.details.model_dump(),
        )
    return AccessCheckResponse(
        module=module,
        action=action,
        allowed=True,
        bypassed=decision.bypassed,
        granted_permission=decision.permission_names[0] if decision.permission_names else None,
        message=decision.bypass_reason,
    )
