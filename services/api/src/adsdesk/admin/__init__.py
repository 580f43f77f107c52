"""Administrative endpoints for roles, permissions, users, and the audit log."""
