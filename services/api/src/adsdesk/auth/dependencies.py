"""FastAPI dependencies for JWT-authenticated endpoints."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from adsdesk.constants import DecisionCode


async def get_current_user_id(request: Request) -> int:
    """Require a valid JWT user. Returns user_id.

    Raises HTTPException(401) if no authenticated user.
    """
    user_id: int | None = getattr(request.state, "user_id", None)
    if user_id is None:
        raise HTTPException(
            status_code=401,
            detail={"success": False, "message": "Authentication required", "code": DecisionCode.AUTH_REQUIRED},
        )
    return user_id


CurrentUserId = Annotated[int, Depends(get_current_user_id)]
