"""Admin API endpoints: roles, modules, permissions, user roles, audit log.

Every endpoint is gated by an RBAC check on the ``roles``, ``modules``,
``permissions``, or ``users`` module.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk.admin.schemas import (
    ActionResponse,
    AssignRoleRequest,
    AuditLogEntryResponse,
    CreateModuleRequest,
    CreatePermissionRequest,
    CreateRoleRequest,
    CreateUserRequest,
    GrantPermissionRequest,
    ModuleResponse,
    PaginatedResponse,
    PermissionResponse,
    RoleSummary,
    SetActiveRequest,
    SweepResponse,
    UpdateRoleRequest,
    UserRolesResponse,
    UserSummary,
)
from adsdesk.admin.service import AdminService
from adsdesk.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from adsdesk.dependencies import db_manager
from adsdesk.rbac.actors import ActorContext
from adsdesk.rbac.dependencies import (
    get_current_actor,
    require_all_permissions,
    require_any_permission,
    require_permission,
)
from adsdesk.rbac.exceptions import (
    LifecycleConflictError,
    LifecycleWriteError,
    NotFoundError,
    PrivilegeEscalationError,
    ResolutionFailedError,
)
from adsdesk_shared.db.enums import AuditAction

router = APIRouter(dependencies=[Depends(get_current_actor)])

_svc = AdminService()

DbSession = Annotated[AsyncSession, Depends(db_manager.dependency)]


@contextmanager
def _domain_errors() -> Iterator[None]:
    """Translate domain exceptions raised by the service into HTTP errors."""
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PrivilegeEscalationError as exc:
        raise HTTPException(status_code=403, detail=exc.detail) from exc
    except LifecycleConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.detail) from exc
    except LifecycleWriteError as exc:
        raise HTTPException(status_code=500, detail=f"{exc.operation} failed") from exc
    except ResolutionFailedError as exc:
        raise HTTPException(status_code=500, detail=f"{exc.operation} failed") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# --- Roles ---


@router.get("/roles", response_model=list[RoleSummary])
async def list_roles(
    session: DbSession,
    _actor: Annotated[ActorContext, Depends(require_permission("roles", "read"))],
) -> list[RoleSummary]:
    """List all roles with their granted permissions."""
    return await _svc.list_roles(session)


@router.get("/roles/{role_id}", response_model=RoleSummary)
async def get_role(
    role_id: int,
    session: DbSession,
    _actor: Annotated[ActorContext, Depends(require_permission("roles", "read"))],
) -> RoleSummary:
    with _domain_errors():
        return await _svc.get_role(role_id, session)


@router.post("/roles", response_model=RoleSummary, status_code=201)
async def create_role(
    body: CreateRoleRequest,
    session: DbSession,
    actor: Annotated[ActorContext, Depends(require_permission("roles", "create"))],
) -> RoleSummary:
    """Create a role. Level must be within 1..10 and no higher than the caller's own."""
    with _domain_errors():
        return await _svc.create_role(body.name, body.description, body.level, body.is_super, actor, session)


@router.patch("/roles/{role_id}", response_model=RoleSummary)
async def update_role(
    role_id: int,
    body: UpdateRoleRequest,
    session: DbSession,
    actor: Annotated[ActorContext, Depends(require_permission("roles", "update"))],
) -> RoleSummary:
    """Update a role. Only a super administrator may change system roles."""
    with _domain_errors():
        return await _svc.update_role(
            role_id, body.name, body.description, body.level, body.is_active, actor, session
        )


@router.delete("/roles/{role_id}", response_model=ActionResponse)
async def delete_role(
    role_id: int,
    session: DbSession,
    actor: Annotated[ActorContext, Depends(require_permission("roles", "delete"))],
) -> ActionResponse:
    """Delete a role that is not system-protected and has no active holders."""
    with _domain_errors():
        return await _svc.delete_role(role_id, actor, session)


@router.post("/roles/{role_id}/permissions", response_model=RoleSummary)
async def grant_role_permission(
    role_id: int,
    body: GrantPermissionRequest,
    session: DbSession,
    actor: Annotated[ActorContext, Depends(require_permission("roles", "update"))],
) -> RoleSummary:
    """Grant a permission to a role. Re-granting is idempotent."""
    with _domain_errors():
        return await _svc.grant_permission(role_id, body.permission_id, actor, session)


@router.delete("/roles/{role_id}/permissions/{permission_id}", response_model=ActionResponse)
async def revoke_role_permission(
    role_id: int,
    permission_id: int,
    session: DbSession,
    actor: Annotated[ActorContext, Depends(require_permission("roles", "update"))],
) -> ActionResponse:
    with _domain_errors():
        return await _svc.revoke_permission(role_id, permission_id, actor, session)


# --- Modules ---


@router.get("/modules", response_model=list[ModuleResponse])
async def list_modules(
    session: DbSession,
    _actor: Annotated[ActorContext, Depends(require_permission("modules", "read"))],
) -> list[ModuleResponse]:
    return await _svc.list_modules(session)


@router.post("/modules", response_model=ModuleResponse, status_code=201)
async def create_module(
    body: CreateModuleRequest,
    session: DbSession,
    _actor: Annotated[ActorContext, Depends(require_permission("modules", "create"))],
) -> ModuleResponse:
    with _domain_errors():
        return await _svc.create_module(body.name, body.display_name, body.description, session)


@router.patch("/modules/{module_id}", response_model=ModuleResponse)
async def set_module_active(
    module_id: int,
    body: SetActiveRequest,
    session: DbSession,
    _actor: Annotated[ActorContext, Depends(require_permission("modules", "update"))],
) -> ModuleResponse:
    """Activate or deactivate a module. Deactivation suspends every grant under it."""
    with _domain_errors():
        return await _svc.set_module_active(module_id, body.is_active, session)


# --- Permissions ---


@router.get("/permissions", response_model=list[PermissionResponse])
async def list_permissions(
    session: DbSession,
    _actor: Annotated[ActorContext, Depends(require_permission("permissions", "read"))],
    module: str | None = None,
) -> list[PermissionResponse]:
    return await _svc.list_permissions(session, module=module)


@router.post("/permissions", response_model=PermissionResponse, status_code=201)
async def create_permission(
    body: CreatePermissionRequest,
    session: DbSession,
    _actor: Annotated[ActorContext, Depends(require_permission("permissions", "create"))],
) -> PermissionResponse:
    with _domain_errors():
        return await _svc.create_permission(body.module, body.action, body.display_name, body.description, session)


@router.patch("/permissions/{permission_id}", response_model=PermissionResponse)
async def set_permission_active(
    permission_id: int,
    body: SetActiveRequest,
    session: DbSession,
    _actor: Annotated[ActorContext, Depends(require_permission("permissions", "update"))],
) -> PermissionResponse:
    with _domain_errors():
        return await _svc.set_permission_active(permission_id, body.is_active, session)


# --- Users ---


@router.get("/users", response_model=PaginatedResponse[UserSummary])
async def list_users(
    session: DbSession,
    _actor: Annotated[ActorContext, Depends(require_permission("users", "read"))],
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(default=0, ge=0),
) -> PaginatedResponse[UserSummary]:
    """List users with their role assignments."""
    items, total = await _svc.list_users(session, limit=limit, offset=offset)
    return PaginatedResponse(items=items, total=total, limit=limit, offset=offset)


@router.post("/users", response_model=UserSummary, status_code=201)
async def create_user(
    body: CreateUserRequest,
    session: DbSession,
    actor: Annotated[ActorContext, Depends(require_all_permissions(("users", "create"), ("roles", "read")))],
) -> UserSummary:
    """Create a user and assign the initial role."""
    with _domain_errors():
        return await _svc.create_user(
            body.username, body.email, body.display_name, body.role_id, actor, session
        )


@router.get("/users/{user_id}/roles", response_model=UserRolesResponse)
async def get_user_roles(
    user_id: int,
    session: DbSession,
    _actor: Annotated[ActorContext, Depends(require_permission("users", "read"))],
) -> UserRolesResponse:
    with _domain_errors():
        return await _svc.get_user_roles(user_id, session)


@router.post("/users/{user_id}/roles", response_model=UserRolesResponse)
async def assign_user_role(
    user_id: int,
    body: AssignRoleRequest,
    session: DbSession,
    actor: Annotated[ActorContext, Depends(require_permission("users", "update"))],
) -> UserRolesResponse:
    """Assign a role to a user, optionally until ``expires_at``. Re-assigning refreshes the row."""
    with _domain_errors():
        return await _svc.assign_user_role(user_id, body.role_id, body.expires_at, actor, session)


@router.delete("/users/{user_id}/roles/{role_id}", response_model=ActionResponse)
async def revoke_user_role(
    user_id: int,
    role_id: int,
    session: DbSession,
    actor: Annotated[ActorContext, Depends(require_permission("users", "update"))],
) -> ActionResponse:
    """Revoke a role. Revoking an assignment that is not active succeeds without change."""
    with _domain_errors():
        return await _svc.revoke_user_role(user_id, role_id, actor, session)


@router.post("/user-roles/cleanup-expired", response_model=SweepResponse)
async def cleanup_expired_roles(
    session: DbSession,
    _actor: Annotated[ActorContext, Depends(require_all_permissions(("users", "update"), ("roles", "update")))],
) -> SweepResponse:
    """Deactivate every assignment whose expiry has passed."""
    with _domain_errors():
        return await _svc.cleanup_expired(session)


# --- Audit Log ---


@router.get("/audit-log", response_model=PaginatedResponse[AuditLogEntryResponse])
async def list_audit_log(
    session: DbSession,
    _actor: Annotated[ActorContext, Depends(require_any_permission(("roles", "read"), ("users", "read")))],
    action: AuditAction | None = None,
    user_id: int | None = None,
    role_id: int | None = None,
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(default=0, ge=0),
) -> PaginatedResponse[AuditLogEntryResponse]:
    """Paginated permission audit trail, newest first."""
    items, total = await _svc.query_audit_log(
        session, action=action, user_id=user_id, role_id=role_id, limit=limit, offset=offset
    )
    return PaginatedResponse(items=items, total=total, limit=limit, offset=offset)
