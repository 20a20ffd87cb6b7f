"""Scheduler engine -- periodic tick that spawns due scheduled sessions.

Each tick evaluates every schedule-enabled worktree against its cron
expression.  A firing is due when it happened less than the grace period
ago; after downtime only the most recent missed firing is considered, so a
backlog is never replayed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..errors import InvalidCronError
from ..state.context import INTERNAL_CONTEXT
from ..state.models import Session, Worktree, now_ms
from ..state.protocols import WorktreeRepository
from ..util.cron import next_run_time, prev_run_time, validate_cron
from .spawner import SessionSpawner

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_MS = 30_000
DEFAULT_GRACE_PERIOD_MS = 120_000


class Scheduler:
    def __init__(
        self,
        worktrees: WorktreeRepository,
        spawner: SessionSpawner,
        *,
        tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
        grace_period_ms: int = DEFAULT_GRACE_PERIOD_MS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._worktrees = worktrees
        self._spawner = spawner
        self.tick_interval_ms = tick_interval_ms
        self.grace_period_ms = grace_period_ms
        self._clock = clock
        self._loop_task: asyncio.Task[None] | None = None
        self._tick_task: asyncio.Task[None] | None = None
        self.skipped_ticks = 0

    @property
    def running(self) -> bool:
        return self._loop_task is not None

    @property
    def tick_in_flight(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> None:
        if self._loop_task is not None:
            logger.warning("[scheduler] already running -- ignoring start()")
            return
        logger.info(
            "[scheduler] starting (tick=%dms, grace=%dms)",
            self.tick_interval_ms, self.grace_period_ms,
        )
        self._loop_task = asyncio.create_task(self._run_loop(), name="canopy-scheduler")

    async def stop(self) -> None:
        """Stop issuing ticks.  A tick already in progress keeps running."""
        if self._loop_task is None:
            logger.warning("[scheduler] not running -- ignoring stop()")
            return
        task, self._loop_task = self._loop_task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[scheduler] stopped")

    async def wait_idle(self) -> None:
        """Wait for the in-flight tick, if any, to finish."""
        if self._tick_task is not None:
            await asyncio.gather(self._tick_task, return_exceptions=True)

    async def _run_loop(self) -> None:
        while True:
            self._launch_tick()
            await asyncio.sleep(self.tick_interval_ms / 1000)

    def _launch_tick(self) -> None:
        if self.tick_in_flight:
            self.skipped_ticks += 1
            logger.warning("[scheduler] previous tick still running -- skipping this tick")
            return
        self._tick_task = asyncio.create_task(self._guarded_tick(), name="canopy-scheduler-tick")

    async def _guarded_tick(self) -> None:
        try:
            await self.tick()
        except Exception as exc:
            logger.error("[scheduler] tick failed: %s", exc, exc_info=True)

    # -- evaluation ----------------------------------------------------------

    async def tick(self) -> None:
        now = self._clock()
        worktrees = self._worktrees.list_enabled_schedules(context=INTERNAL_CONTEXT)
        logger.debug("[scheduler] tick: %d schedule-enabled worktree(s)", len(worktrees))
        for worktree in worktrees:
            try:
                await self.process_schedule(worktree, now)
            except Exception as exc:
                logger.error(
                    "[scheduler] worktree %s (%s) failed: %s",
                    worktree.worktree_id, worktree.name, exc, exc_info=True,
                )

    def due_run_time(self, worktree: Worktree, now: int) -> int | None:
        """Return the firing time due at *now*, or ``None`` when nothing is due."""
        if not worktree.schedule_cron:
            return None
        try:
            cron = validate_cron(worktree.schedule_cron)
        except InvalidCronError as exc:
            logger.warning("[scheduler] worktree %s: %s -- skipping", worktree.worktree_id, exc)
            return None
        timezone = worktree.schedule.timezone if worktree.schedule else None

        prev_run_at = prev_run_time(cron, now, timezone)
        if 0 <= now - prev_run_at < self.grace_period_ms:
            return prev_run_at

        next_run_at = next_run_time(cron, now, timezone)
        if 0 <= now - next_run_at < self.grace_period_ms:
            return next_run_at
        return None

    async def process_schedule(self, worktree: Worktree, now: int) -> int | None:
        """Spawn the due firing for *worktree*; return its time or ``None``."""
        scheduled_run_at = self.due_run_time(worktree, now)
        if scheduled_run_at is None:
            return None
        logger.info(
            "[scheduler] %s due (scheduled_run_at=%d, %dms late)",
            worktree.name, scheduled_run_at, now - scheduled_run_at,
        )
        await self.spawn_scheduled_session(worktree, scheduled_run_at, now)
        return scheduled_run_at

    async def spawn_scheduled_session(
        self, worktree: Worktree, scheduled_run_at: int, now: int,
    ) -> Session | None:
        return await self._spawner.spawn(worktree, scheduled_run_at, now)
