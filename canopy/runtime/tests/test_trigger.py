"""Tests for session execution triggers."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from canopy.runtime.agent import CommandExecutionTrigger, LoggingExecutionTrigger
from canopy.runtime.config.settings import Settings
from canopy.runtime.state import Session


def _session(**kw) -> Session:
    kw.setdefault("worktree_id", "wt-1")
    kw.setdefault("title", "[Scheduled run - 2025-01-01T12:05:00Z]")
    kw.setdefault("agentic_tool", "claude-code")
    return Session(**kw)


class TestLoggingExecutionTrigger:
    @pytest.mark.asyncio
    async def test_logs_request(self, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            await LoggingExecutionTrigger().prompt(
                _session(session_id="s-1"), "do things", permission_mode="acceptEdits",
            )
        assert "s-1" in caplog.text
        assert "not executed" in caplog.text


class TestCommandExecutionTrigger:
    def test_empty_template_rejected(self, worktree_store) -> None:
        with pytest.raises(ValueError):
            CommandExecutionTrigger("", worktree_store)

    @pytest.mark.asyncio
    async def test_launches_command_in_worktree(
        self, worktree_store, make_worktree, worktree_dir: Path, data_dir: Path,
    ) -> None:
        worktree_store.save(make_worktree())
        trigger = CommandExecutionTrigger(
            "printf '%s|%s|%s|%s' {{ session.id }} {{ permission_mode }} "
            "{{ prompt_quoted }} \"$CANOPY_PROMPT\" > run.txt",
            worktree_store,
            settings=Settings(),
        )
        session = _session(session_id="s-42")

        await trigger.prompt(session, "fix the 'flaky' test", permission_mode="plan")
        await trigger.wait_all()

        out = (worktree_dir / "run.txt").read_text()
        assert out == "s-42|plan|fix the 'flaky' test|fix the 'flaky' test"
        assert trigger.running_sessions == []
        assert (data_dir / "logs" / "sessions" / "s-42.log").exists()

    @pytest.mark.asyncio
    async def test_environment_variables(
        self, worktree_store, make_worktree, worktree_dir: Path,
    ) -> None:
        worktree_store.save(make_worktree())
        trigger = CommandExecutionTrigger(
            'echo "$CANOPY_SESSION_ID $CANOPY_PERMISSION_MODE $CANOPY_STREAM $CANOPY_MODEL" > env.txt',
            worktree_store,
            settings=Settings(),
        )
        await trigger.prompt(
            _session(session_id="s-7", model="gpt-5"), "p", permission_mode="acceptEdits",
        )
        await trigger.wait_all()
        assert (worktree_dir / "env.txt").read_text().split() == ["s-7", "acceptEdits", "1", "gpt-5"]

    @pytest.mark.asyncio
    async def test_returns_before_command_finishes(
        self, worktree_store, make_worktree,
    ) -> None:
        worktree_store.save(make_worktree())
        trigger = CommandExecutionTrigger("sleep 0.3", worktree_store, settings=Settings())

        await trigger.prompt(_session(session_id="s-9"), "p", permission_mode="acceptEdits")

        assert trigger.running_sessions == ["s-9"]
        await trigger.wait_all()
        assert trigger.running_sessions == []

    @pytest.mark.asyncio
    async def test_failing_command_is_logged(
        self, worktree_store, make_worktree, caplog,
    ) -> None:
        worktree_store.save(make_worktree())
        trigger = CommandExecutionTrigger("exit 4", worktree_store, settings=Settings())
        with caplog.at_level(logging.WARNING):
            await trigger.prompt(_session(session_id="s-3"), "p", permission_mode="acceptEdits")
            await trigger.wait_all()
        assert "exited with code 4" in caplog.text
