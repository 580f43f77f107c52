"""Request authentication: JWT decoding and the authenticated-user dependency."""
