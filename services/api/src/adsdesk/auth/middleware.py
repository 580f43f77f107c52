"""JWT authentication middleware — extracts user identity from tokens."""

import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from adsdesk.auth.jwt import JWTError, JWTService
from adsdesk.settings import get_settings

logger = logging.getLogger(__name__)

# Paths that should never trigger JWT processing
_SKIP_PREFIXES = ("/healthz", "/docs", "/openapi.json", "/redoc")
_SKIP_EXACT = frozenset({"/"})


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Extract a JWT from the Authorization header or cookie and set ``request.state.user_id``.

    The middleware never rejects a request. Endpoints that need an identity
    depend on ``get_current_user_id`` (or an RBAC dependency built on it),
    which turns a missing identity into a 401.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process each request, extracting JWT if present."""
        request.state.user_id = None

        if self._should_skip(request.url.path):
            return await call_next(request)

        token = self._extract_token(request)
        if token is None:
            return await call_next(request)

        try:
            jwt_service = JWTService(get_settings())
            request.state.user_id = jwt_service.decode_access_token(token)
        except JWTError as exc:
            logger.debug("Ignoring unusable access token: %s", exc.detail)
        except ValueError:
            logger.error("JWT_SECRET_KEY is not configured; treating request as unauthenticated")

        return await call_next(request)

    @staticmethod
    def _should_skip(path: str) -> bool:
        """Check whether a path should bypass JWT processing."""
        if path in _SKIP_EXACT:
            return True
        return any(path.startswith(prefix) for prefix in _SKIP_PREFIXES)

    @staticmethod
    def _extract_token(request: Request) -> str | None:
        """Extract JWT from Bearer header or access_token cookie.

        Bearer header takes precedence over cookies.
        """
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            candidate = auth_header[7:].strip()
            return candidate or None

        return request.cookies.get("access_token")
