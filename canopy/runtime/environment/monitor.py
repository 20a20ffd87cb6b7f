"""Background health polling for active environments."""

from __future__ import annotations

import asyncio
import logging

from ..state.context import INTERNAL_CONTEXT
from ..state.protocols import WorktreeRepository
from .controller import EnvironmentController

logger = logging.getLogger(__name__)


class HealthMonitor:
    """Call ``check_health`` for every starting/running environment on an interval.

    Worktrees are checked concurrently so a slow endpoint only delays its
    own result.
    """

    def __init__(
        self,
        worktrees: WorktreeRepository,
        controller: EnvironmentController,
        *,
        interval_ms: int = 5000,
    ) -> None:
        self._worktrees = worktrees
        self._controller = controller
        self.interval_ms = interval_ms
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None:
            logger.warning("[health] monitor already running")
            return
        logger.info("[health] monitor started (interval=%dms)", self.interval_ms)
        self._task = asyncio.create_task(self._run_loop(), name="canopy-health-monitor")

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[health] monitor stopped")

    async def check_all(self) -> int:
        """Run one round of checks; returns the number of environments checked."""
        worktrees = self._worktrees.list_active_environments(context=INTERNAL_CONTEXT)
        await asyncio.gather(*(self._check_one(wt.worktree_id) for wt in worktrees))
        return len(worktrees)

    async def _check_one(self, worktree_id: str) -> None:
        try:
            await self._controller.check_health(worktree_id)
        except Exception as exc:
            logger.error("[health] check failed for %s: %s", worktree_id, exc, exc_info=True)

    async def _run_loop(self) -> None:
        while True:
            try:
                await self.check_all()
            except Exception as exc:
                logger.error("[health] monitor round failed: %s", exc, exc_info=True)
            await asyncio.sleep(self.interval_ms / 1000)
