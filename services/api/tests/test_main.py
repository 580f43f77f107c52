"""Tests for application wiring: health, root, and response headers."""

from fastapi.testclient import TestClient

from adsdesk.constants import APP_TITLE, APP_VERSION
from adsdesk.main import app


def test_healthz() -> None:
    resp = TestClient(app).get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


def test_root() -> None:
    resp = TestClient(app).get("/")
    assert resp.json() == {"message": APP_TITLE, "version": APP_VERSION}


def test_request_id_propagated() -> None:
    resp = TestClient(app).get("/healthz", headers={"X-Request-ID": "req-42"})
    assert resp.headers["X-Request-ID"] == "req-42"
    assert resp.headers["Cache-Control"] == "no-store"
