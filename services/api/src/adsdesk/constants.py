"""Centralized constants for the API service."""

import enum
from dataclasses import dataclass

# --- Service identity ---


class ServiceName(enum.StrEnum):
    """Service names used for logging and identification."""

    API = "api"
    SWEEPER = "sweeper"


# --- Application metadata ---

APP_TITLE = "adsdesk API"
APP_DESCRIPTION = "Ads-reporting back office: role-based access control and administration"
APP_VERSION = "0.1.0"


# --- Route configuration ---


@dataclass(frozen=True, slots=True)
class _Route:
    """A route prefix paired with its OpenAPI tag."""

    prefix: str
    tag: str


class Routes:
    """API route prefixes and tags — single source of truth."""

    ADMIN = _Route("/admin", "admin")
    ME = _Route("/me", "me")
    HEALTH = "/healthz"


# --- Role hierarchy & bypass ---

BYPASS_LEVEL = 10
MIN_ROLE_LEVEL = 1
MAX_ROLE_LEVEL = 10
SUPER_ROLE_NAMES = frozenset({"SuperAdmin", "Super Admin", "super_admin"})
BYPASS_REASON = "SuperAdmin has unrestricted access"
UNKNOWN_ROLE_NAME = "Unknown"

CRUD_ACTIONS = ("read", "create", "update", "delete")


# --- Decision codes ---


class DecisionCode(enum.StrEnum):
    """Machine-readable codes attached to authorization outcomes."""

    AUTH_REQUIRED = "AUTH_REQUIRED"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    MISSING_MULTIPLE_PERMISSIONS = "MISSING_MULTIPLE_PERMISSIONS"
    INSUFFICIENT_ANY_PERMISSIONS = "INSUFFICIENT_ANY_PERMISSIONS"
    PERMISSION_CHECK_ERROR = "PERMISSION_CHECK_ERROR"


# Default configuration values
DEFAULT_PERMISSION_CHECK_TIMEOUT_SECONDS = 5.0
DEFAULT_ROLE_SWEEP_INTERVAL_SECONDS = 3600
DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 200
