"""adsdesk API service: authorization core and administrative endpoints."""
