"""Background task that deactivates expired role assignments."""

import asyncio
import logging

from adsdesk.rbac.exceptions import LifecycleWriteError
from adsdesk.rbac.lifecycle import RoleAssignmentManager
from adsdesk_shared.db.session import DatabaseManager

logger = logging.getLogger(__name__)


class ExpiredAssignmentSweeper:
    """Periodically runs :meth:`RoleAssignmentManager.cleanup_expired`.

    Decisions already ignore expired assignments; the sweep keeps the
    ``is_active`` flag honest for reports and audits.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        interval_seconds: float,
        manager: RoleAssignmentManager | None = None,
    ) -> None:
        self._db_manager = db_manager
        self._interval = interval_seconds
        self._manager = manager or RoleAssignmentManager()
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> int:
        """Run one sweep in its own transaction. Returns the number of rows deactivated."""
        try:
            async with self._db_manager.session() as session:
                return await self._manager.cleanup_expired(session)
        except LifecycleWriteError:
            # Already logged by the manager; the next tick retries.
            return 0

    async def start(self) -> None:
        if self._interval <= 0:
            logger.info("Expired-assignment sweeper disabled")
            return
        self._stopped = False
        self._task = asyncio.create_task(self._run())
        logger.info("Expired-assignment sweeper started (every %ss)", self._interval)

    async def stop(self) -> None:
        self._stopped = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run(self) -> None:
        while not self._stopped:
            await self.sweep_once()
            await asyncio.sleep(self._interval)
