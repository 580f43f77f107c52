"""Shared logging handlers."""

from adsdesk_shared.logging.handler import DBLogHandler

__all__ = ["DBLogHandler"]
