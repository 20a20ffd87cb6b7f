"""Tests for daemon wiring and lifecycle."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from canopy.runtime.agent import CommandExecutionTrigger, LoggingExecutionTrigger
from canopy.runtime.config.settings import Settings
from canopy.runtime.daemon import Daemon
from canopy.runtime.state import EnvironmentInstance


class TestDaemonWiring:
    def test_logging_trigger_without_agent_command(self) -> None:
        daemon = Daemon(settings=Settings())
        assert isinstance(daemon.trigger, LoggingExecutionTrigger)

    def test_command_trigger_with_agent_command(self, monkeypatch) -> None:
        monkeypatch.setenv("AGENT_COMMAND", "agent --prompt {{ prompt_quoted }}")
        daemon = Daemon(settings=Settings())
        assert isinstance(daemon.trigger, CommandExecutionTrigger)

    def test_settings_flow_into_components(self, monkeypatch) -> None:
        monkeypatch.setenv("SCHEDULER_TICK_INTERVAL_MS", "1500")
        monkeypatch.setenv("SCHEDULER_GRACE_PERIOD_MS", "9000")
        monkeypatch.setenv("HEALTH_CHECK_INTERVAL_MS", "250")
        monkeypatch.setenv("ENVIRONMENT_RESTART_DELAY_MS", "0")
        daemon = Daemon(settings=Settings())
        assert daemon.scheduler.tick_interval_ms == 1500
        assert daemon.scheduler.grace_period_ms == 9000
        assert daemon.health_monitor.interval_ms == 250
        assert daemon.environments.restart_delay_ms == 0

    def test_stores_use_data_dir(self, data_dir) -> None:
        daemon = Daemon(settings=Settings())
        assert daemon.worktrees.path == data_dir / "worktrees.json"
        assert daemon.sessions.path == data_dir / "sessions.json"
        assert daemon.repos.path == data_dir / "repos.json"


class TestDaemonLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self) -> None:
        daemon = Daemon(settings=Settings())
        await daemon.start()
        assert daemon.scheduler.running
        assert daemon.health_monitor.running
        await daemon.stop()
        assert not daemon.scheduler.running
        assert not daemon.health_monitor.running

    @pytest.mark.asyncio
    async def test_scheduler_disabled_by_setting(self, monkeypatch) -> None:
        monkeypatch.setenv("SCHEDULER_ENABLED", "0")
        daemon = Daemon(settings=Settings())
        await daemon.start()
        assert not daemon.scheduler.running
        assert daemon.health_monitor.running
        await daemon.stop()

    @pytest.mark.asyncio
    async def test_scheduler_disabled_by_argument(self) -> None:
        daemon = Daemon(settings=Settings())
        await daemon.start(scheduler=False)
        assert not daemon.scheduler.running
        await daemon.stop()

    @pytest.mark.asyncio
    async def test_run_until_stop_requested(self) -> None:
        daemon = Daemon(settings=Settings())
        task = asyncio.create_task(daemon.run())
        await asyncio.sleep(0.05)
        assert daemon.scheduler.running

        daemon.request_stop()
        await asyncio.wait_for(task, 5)
        assert not daemon.scheduler.running

    @pytest.mark.asyncio
    async def test_first_tick_spawns_due_session(self, make_worktree, worktree_dir) -> None:
        trigger = MagicMock()
        trigger.prompt = AsyncMock()
        daemon = Daemon(settings=Settings(), trigger=trigger)
        daemon.worktrees.save(make_worktree(schedule_cron="* * * * *"))
        now = int(datetime(2025, 1, 1, 12, 0, 30, tzinfo=UTC).timestamp() * 1000)
        daemon.scheduler._clock = lambda: now

        await daemon.start()
        await asyncio.sleep(0.05)
        await daemon.stop()

        trigger.prompt.assert_awaited_once()
        sessions = daemon.sessions.find(worktree_id="wt-1")
        assert [s.scheduled_run_at for s in sessions] == [now - 30_000]

    @pytest.mark.asyncio
    async def test_monitor_uses_controller(self, make_worktree) -> None:
        daemon = Daemon(settings=Settings())
        daemon.worktrees.save(make_worktree(
            environment_instance=EnvironmentInstance(status="running"),
        ))
        daemon.environments.check_health = AsyncMock()  # type: ignore[method-assign]

        await daemon.start(scheduler=False)
        await asyncio.sleep(0.05)
        await daemon.stop()

        daemon.environments.check_health.assert_awaited_with("wt-1")
