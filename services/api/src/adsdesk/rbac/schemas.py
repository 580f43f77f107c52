"""Pydantic schemas for the caller's own access view."""

from typing import Any

from pydantic import BaseModel


class AccessSummary(BaseModel):
    """Effective role and grants of the authenticated user."""

    user_id: int
    role_id: int | None
    role_name: str | None
    role_level: int | None
    bypassed: bool
    permissions: dict[str, list[str]]


class AccessCheckResponse(BaseModel):
    """Outcome of a single ``(module, action)`` check, rendered for display."""

    module: str
    action: str
    allowed: bool
    bypassed: bool = False
    granted_permission: str | None = None
    code: str | None = None
    message: str | None = None
    details: dict[str, Any] | None = None
