"""Pydantic schemas for admin API endpoints."""

from datetime import datetime
from typing import NamedTuple

from pydantic import BaseModel, Field

# --- Pagination ---


class PaginatedResult[T](NamedTuple):
    """Named return type for paginated service queries."""

    items: list[T]
    total: int


class PaginatedResponse[T](BaseModel):
    """Generic paginated response wrapper."""

    items: list[T]
    total: int
    limit: int
    offset: int


# --- Action Responses ---


class ActionResponse(BaseModel):
    """Generic response for mutation actions."""

    success: bool
    message: str


class SweepResponse(BaseModel):
    """Result of an expired-assignment sweep."""

    deactivated: int


# --- Modules & Permissions ---


class ModuleResponse(BaseModel):
    """A functional area grouping permissions."""

    id: int
    name: str
    display_name: str | None
    description: str | None
    is_active: bool
    created_at: datetime


class CreateModuleRequest(BaseModel):
    """Request to create a module."""

    name: str = Field(..., min_length=1, max_length=100)
    display_name: str | None = Field(default=None, max_length=150)
    description: str | None = None


class PermissionResponse(BaseModel):
    """A single permission."""

    id: int
    name: str
    module: str | None
    action: str | None
    category: str | None
    display_name: str | None
    description: str | None
    is_active: bool


class CreatePermissionRequest(BaseModel):
    """Request to create the ``<module>_<action>`` permission."""

    module: str = Field(..., min_length=1, max_length=100)
    action: str = Field(..., min_length=1, max_length=100)
    display_name: str | None = Field(default=None, max_length=150)
    description: str | None = None


class SetActiveRequest(BaseModel):
    """Request to enable or disable a module or permission."""

    is_active: bool


# --- Roles ---


class RoleSummary(BaseModel):
    """Role with the names of its granted permissions."""

    id: int
    name: str
    description: str | None
    level: int
    is_active: bool
    is_system: bool
    is_super: bool
    permissions: list[str]
    created_at: datetime
    updated_at: datetime


class CreateRoleRequest(BaseModel):
    """Request to create a new role. Level bounds are checked by the service."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    level: int = 1
    is_super: bool = False


class UpdateRoleRequest(BaseModel):
    """Request to update a role's name, description, level, or active flag."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    level: int | None = None
    is_active: bool | None = None


class GrantPermissionRequest(BaseModel):
    """Request to grant a permission to a role."""

    permission_id: int


# --- Users ---


class UserRoleEntry(BaseModel):
    """One role assignment of a user."""

    role_id: int
    role_name: str
    role_level: int
    assigned_by: int | None
    assigned_at: datetime
    expires_at: datetime | None
    is_active: bool
    is_expired: bool


class UserSummary(BaseModel):
    """User with current role assignments."""

    id: int
    username: str
    email: str | None
    display_name: str | None
    is_active: bool
    roles: list[UserRoleEntry]
    created_at: datetime


class CreateUserRequest(BaseModel):
    """Request to create a user with an initial role."""

    username: str = Field(..., min_length=1, max_length=150)
    email: str | None = Field(default=None, max_length=255)
    display_name: str | None = Field(default=None, max_length=255)
    role_id: int


class AssignRoleRequest(BaseModel):
    """Request to assign a role, optionally until *expires_at*."""

    role_id: int
    expires_at: datetime | None = None


class UserRolesResponse(BaseModel):
    """Response showing a user's role assignments."""

    user_id: int
    roles: list[UserRoleEntry]


# --- Audit Log ---


class AuditLogEntryResponse(BaseModel):
    """Response schema for a permission audit record."""

    id: int
    action: str
    user_id: int | None
    role_id: int | None
    permission_id: int | None
    performed_by: int | None
    details: str | None
    created_at: datetime
