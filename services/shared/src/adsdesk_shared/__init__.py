"""Shared persistence, configuration, and logging code for the adsdesk back office."""
