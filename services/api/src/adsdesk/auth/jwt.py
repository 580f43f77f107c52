"""JWT access token creation and validation."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from adsdesk.settings import AppSettings

logger = logging.getLogger(__name__)


class JWTError(Exception):
    """Base exception for JWT operations."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class JWTExpiredError(JWTError):
    """Token has expired."""


class JWTInvalidError(JWTError):
    """Token is invalid (bad signature, malformed, wrong type, etc.)."""


class JWTService:
    """Creates and validates JWT access tokens.

    Tokens are issued by the login flow once two-factor verification has
    passed and are signed with HMAC-SHA256 using ``JWT_SECRET_KEY``.
    """

    ALGORITHM = "HS256"

    def __init__(self, settings: AppSettings) -> None:
        secret = settings.JWT_SECRET_KEY
        if not secret or not secret.strip():
            raise ValueError("JWT_SECRET_KEY must be set to a non-empty value for JWT signing")
        self._secret = secret
        self._access_expire_minutes = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    def create_access_token(self, user_id: int) -> str:
        """Create a short-lived access token for the given user."""
        now = datetime.now(UTC)
        payload: dict[str, Any] = {
            "sub": str(user_id),
            "type": "access",
            "iat": now,
            "exp": now + timedelta(minutes=self._access_expire_minutes),
        }
        return jwt.encode(payload, self._secret, algorithm=self.ALGORITHM)

    def decode_access_token(self, token: str) -> int:
        """Decode and validate an access token. Returns user_id.

        Raises:
            JWTExpiredError: If the token has expired.
            JWTInvalidError: If the token is malformed, wrong type, or bad signature.
        """
        payload = self._decode(token)
        if payload.get("type") != "access":
            raise JWTInvalidError("Token is not an access token")
        return self._parse_sub(payload["sub"])

    @staticmethod
    def _parse_sub(sub: str) -> int:
        """Convert the ``sub`` claim to an integer user ID."""
        try:
            return int(sub)
        except (ValueError, TypeError) as exc:
            raise JWTInvalidError(f"Invalid 'sub' claim: {sub!r}") from exc

    @property
    def access_expire_seconds(self) -> int:
        """Access token lifetime in seconds (for cookie max-age)."""
        return self._access_expire_minutes * 60

    def _decode(self, token: str) -> dict[str, Any]:
        """Decode a JWT, raising typed exceptions on failure."""
        try:
            payload: dict[str, Any] = jwt.decode(token, self._secret, algorithms=[self.ALGORITHM])
        except jwt.ExpiredSignatureError as exc:
            raise JWTExpiredError("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise JWTInvalidError(f"Invalid token: {exc}") from exc

        if "sub" not in payload:
            raise JWTInvalidError("Token missing 'sub' claim")

        return payload
