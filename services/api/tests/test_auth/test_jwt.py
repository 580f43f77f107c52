"""Tests for JWTService — token creation and validation."""

import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt as pyjwt
import pytest

from adsdesk.auth.jwt import JWTExpiredError, JWTInvalidError, JWTService
from adsdesk.settings import AppSettings

TEST_KEY = secrets.token_urlsafe(32)


def _test_settings(**overrides: Any) -> AppSettings:
    return AppSettings(JWT_SECRET_KEY=TEST_KEY, **overrides)


def _service(**overrides: Any) -> JWTService:
    return JWTService(_test_settings(**overrides))


def test_create_and_decode_access_token() -> None:
    """Access token round-trips through create and decode."""
    svc = _service()
    token = svc.create_access_token(42)
    assert svc.decode_access_token(token) == 42


def test_empty_secret_rejected() -> None:
    with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
        JWTService(AppSettings(JWT_SECRET_KEY="   "))


def test_decode_rejects_non_access_token() -> None:
    """A token with another ``type`` claim raises JWTInvalidError."""
    svc = _service()
    payload = {"sub": "1", "type": "refresh", "exp": datetime.now(UTC) + timedelta(hours=1)}
    token = pyjwt.encode(payload, TEST_KEY, algorithm="HS256")
    with pytest.raises(JWTInvalidError, match="not an access token"):
        svc.decode_access_token(token)


def test_expired_access_token() -> None:
    """Expired access token raises JWTExpiredError."""
    svc = _service()
    payload = {
        "sub": "1",
        "type": "access",
        "iat": datetime.now(UTC) - timedelta(hours=1),
        "exp": datetime.now(UTC) - timedelta(seconds=1),
    }
    token = pyjwt.encode(payload, TEST_KEY, algorithm="HS256")
    with pytest.raises(JWTExpiredError, match="expired"):
        svc.decode_access_token(token)


def test_invalid_signature() -> None:
    """Token signed with a different key raises JWTInvalidError."""
    svc = _service()
    payload = {"sub": "1", "type": "access", "exp": datetime.now(UTC) + timedelta(hours=1)}
    token = pyjwt.encode(payload, secrets.token_urlsafe(32), algorithm="HS256")
    with pytest.raises(JWTInvalidError, match="Invalid token"):
        svc.decode_access_token(token)


def test_malformed_token() -> None:
    """Garbage string raises JWTInvalidError."""
    svc = _service()
    with pytest.raises(JWTInvalidError, match="Invalid token"):
        svc.decode_access_token("not.a.jwt")


def test_missing_sub_claim() -> None:
    """Token without 'sub' claim raises JWTInvalidError."""
    svc = _service()
    payload = {"type": "access", "exp": datetime.now(UTC) + timedelta(hours=1)}
    token = pyjwt.encode(payload, TEST_KEY, algorithm="HS256")
    with pytest.raises(JWTInvalidError, match="missing 'sub' claim"):
        svc.decode_access_token(token)


def test_non_numeric_sub_claim() -> None:
    svc = _service()
    payload = {"sub": "alice", "type": "access", "exp": datetime.now(UTC) + timedelta(hours=1)}
    token = pyjwt.encode(payload, TEST_KEY, algorithm="HS256")
    with pytest.raises(JWTInvalidError, match="Invalid 'sub' claim"):
        svc.decode_access_token(token)


def test_access_expire_seconds() -> None:
    """access_expire_seconds returns minutes * 60."""
    svc = _service(JWT_ACCESS_TOKEN_EXPIRE_MINUTES=30)
    assert svc.access_expire_seconds == 1800
