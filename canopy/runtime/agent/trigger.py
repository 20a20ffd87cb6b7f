"""Session execution triggers -- hand a rendered prompt to an agent.

The scheduler only needs an acknowledgement that execution has begun; what
the agent does afterwards is outside the runtime.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from pathlib import Path
from typing import Protocol

from ..config.settings import Settings, cfg
from ..state.models import Session
from ..state.protocols import WorktreeRepository
from ..util.templates import render_template

logger = logging.getLogger(__name__)


class ExecutionTrigger(Protocol):
    async def prompt(
        self,
        session: Session,
        prompt: str,
        *,
        permission_mode: str,
        stream: bool = True,
    ) -> None: ...


class LoggingExecutionTrigger:
    """Fallback used when no agent command is configured."""

    async def prompt(
        self,
        session: Session,
        prompt: str,
        *,
        permission_mode: str,
        stream: bool = True,
    ) -> None:
        logger.warning(
            "[trigger] no AGENT_COMMAND configured -- session %s created but not executed "
            "(permission_mode=%s, prompt=%r)",
            session.session_id, permission_mode, prompt[:200],
        )


class CommandExecutionTrigger:
    """Launch a configured agent command in the session's worktree.

    *command_template* is rendered with ``session``, ``worktree``,
    ``permission_mode``, ``prompt`` and ``prompt_quoted`` (shell-quoted).  The
    prompt is also exported as ``CANOPY_PROMPT``.  The process runs in the
    background; ``prompt`` returns once it has been spawned.
    """

    def __init__(
        self,
        command_template: str,
        worktrees: WorktreeRepository,
        *,
        settings: Settings | None = None,
    ) -> None:
        if not command_template:
            raise ValueError("command_template must not be empty")
        self._template = command_template
        self._worktrees = worktrees
        self._settings = settings or cfg
        self._running: dict[str, asyncio.subprocess.Process] = {}
        self._reapers: set[asyncio.Task[None]] = set()

    @property
    def running_sessions(self) -> list[str]:
        return list(self._running)

    async def prompt(
        self,
        session: Session,
        prompt: str,
        *,
        permission_mode: str,
        stream: bool = True,
    ) -> None:
        worktree = self._worktrees.get(session.worktree_id)
        command = render_template(self._template, {
            "session": {
                "id": session.session_id,
                "title": session.title,
                "agentic_tool": session.agentic_tool,
                "model": session.model or "",
            },
            "worktree": {"name": worktree.name, "path": worktree.path, "ref": worktree.ref},
            "permission_mode": permission_mode,
            "prompt": prompt,
            "prompt_quoted": shlex.quote(prompt),
        })
        env = {
            **os.environ,
            "CANOPY_PROMPT": prompt,
            "CANOPY_SESSION_ID": session.session_id,
            "CANOPY_PERMISSION_MODE": permission_mode,
            "CANOPY_STREAM": "1" if stream else "0",
        }
        if session.model:
            env["CANOPY_MODEL"] = session.model

        log_path = self._settings.session_log_path(session.session_id)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with log_path.open("ab") as log:
            process = await asyncio.create_subprocess_shell(
                command,
                cwd=worktree.path,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=log,
                stderr=asyncio.subprocess.STDOUT,
                env=env,
                start_new_session=True,
            )
        logger.info(
            "[trigger] launched agent for session %s (pid=%s): %s",
            session.session_id, process.pid, command,
        )
        self._running[session.session_id] = process
        reaper = asyncio.create_task(self._reap(session.session_id, process, log_path))
        self._reapers.add(reaper)
        reaper.add_done_callback(self._reapers.discard)

    async def _reap(
        self, session_id: str, process: asyncio.subprocess.Process, log_path: Path,
    ) -> None:
        try:
            code = await process.wait()
        finally:
            self._running.pop(session_id, None)
        if code == 0:
            logger.info("[trigger] agent for session %s finished", session_id)
        else:
            logger.warning(
                "[trigger] agent for session %s exited with code %s (log: %s)",
                session_id, code, log_path,
            )

    async def wait_all(self) -> None:
        if self._reapers:
            await asyncio.gather(*self._reapers, return_exceptions=True)
