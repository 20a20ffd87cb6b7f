"""Daemon -- wires stores, scheduler, environment controller and health monitor."""

from __future__ import annotations

import asyncio
import logging

from .agent.trigger import CommandExecutionTrigger, ExecutionTrigger, LoggingExecutionTrigger
from .config.settings import Settings, cfg
from .environment.controller import EnvironmentController
from .environment.health import HealthProbe
from .environment.monitor import HealthMonitor
from .scheduler.engine import Scheduler
from .scheduler.retention import RetentionEnforcer
from .scheduler.spawner import SessionSpawner
from .state.repo_store import RepoStore
from .state.session_store import SessionStore
from .state.worktree_store import WorktreeStore

logger = logging.getLogger(__name__)


class Daemon:
    def __init__(
        self,
        *,
        settings: Settings | None = None,
        worktrees: WorktreeStore | None = None,
        sessions: SessionStore | None = None,
        repos: RepoStore | None = None,
        trigger: ExecutionTrigger | None = None,
    ) -> None:
        self.settings = settings or cfg
        self.worktrees = worktrees or WorktreeStore(self.settings.worktrees_path)
        self.sessions = sessions or SessionStore(self.settings.sessions_path)
        self.repos = repos or RepoStore(self.settings.repos_path)
        self.trigger = trigger or self._make_trigger()

        self.scheduler = Scheduler(
            self.worktrees,
            SessionSpawner(
                self.worktrees,
                self.sessions,
                self.trigger,
                retention=RetentionEnforcer(self.sessions),
                default_permission_mode=self.settings.default_permission_mode,
            ),
            tick_interval_ms=self.settings.tick_interval_ms,
            grace_period_ms=self.settings.grace_period_ms,
        )
        self.environments = EnvironmentController(
            self.worktrees,
            self.repos,
            probe=HealthProbe(self.settings.health_check_timeout_ms),
            settings=self.settings,
        )
        self.health_monitor = HealthMonitor(
            self.worktrees,
            self.environments,
            interval_ms=self.settings.health_check_interval_ms,
        )
        self._stop_event: asyncio.Event | None = None

    def _make_trigger(self) -> ExecutionTrigger:
        if self.settings.agent_command:
            return CommandExecutionTrigger(
                self.settings.agent_command, self.worktrees, settings=self.settings,
            )
        return LoggingExecutionTrigger()

    async def start(self, *, scheduler: bool | None = None) -> None:
        self.settings.ensure_dirs()
        run_scheduler = self.settings.scheduler_enabled if scheduler is None else scheduler
        if run_scheduler:
            self.scheduler.start()
        else:
            logger.info("[daemon] scheduler disabled")
        self.health_monitor.start()
        logger.info(
            "[daemon] started (data_dir=%s, trigger=%s)",
            self.settings.data_dir, type(self.trigger).__name__,
        )

    async def stop(self) -> None:
        if self.scheduler.running:
            await self.scheduler.stop()
            await self.scheduler.wait_idle()
        await self.health_monitor.stop()
        logger.info("[daemon] stopped")

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self, *, scheduler: bool | None = None) -> None:
        """Start, block until :meth:`request_stop`, then stop."""
        self._stop_event = asyncio.Event()
        await self.start(scheduler=scheduler)
        try:
            await self._stop_event.wait()
        finally:
            await self.stop()
