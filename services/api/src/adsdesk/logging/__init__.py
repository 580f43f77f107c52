"""Structured logging — JSON formatter and setup."""

from adsdesk.logging.formatter import JSONLogFormatter
from adsdesk.logging.setup import configure_logging

__all__ = ["JSONLogFormatter", "configure_logging"]
