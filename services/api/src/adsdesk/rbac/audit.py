"""Append-only permission audit trail."""

import json
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from adsdesk_shared.db.enums import AuditAction
from adsdesk_shared.db.models.audit import AuditLogEntry

logger = logging.getLogger(__name__)


class AuditLogger:
    """Writes :class:`AuditLogEntry` rows.

    Entries are only ever inserted. Callers append inside the same
    savepoint as the change they describe, so a failed append rolls the
    change back with it.
    """

    async def append(
        self,
        action: AuditAction,
        session: AsyncSession,
        *,
        user_id: int | None = None,
        role_id: int | None = None,
        permission_id: int | None = None,
        performed_by: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            action=action,
            user_id=user_id,
            role_id=role_id,
            permission_id=permission_id,
            performed_by=performed_by,
            details=json.dumps(details, default=str, sort_keys=True) if details else None,
        )
        session.add(entry)
        await session.flush()
        logger.debug(
            "Audit %s user=%s role=%s permission=%s by=%s", action, user_id, role_id, permission_id, performed_by
        )
        return entry
