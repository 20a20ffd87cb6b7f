"""Shell command execution and termination for environment stacks.

Commands run through the shell in the worktree directory, each in its own
process group so a termination signal reaches everything the command
launched.  When a log path is given, output is appended to that file;
otherwise it is captured and returned.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from dataclasses import dataclass, field
from pathlib import Path

from ..state.models import utc_now_iso

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    command: str
    returncode: int | None
    output: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


@dataclass
class ManagedProcess:
    process: asyncio.subprocess.Process
    command: str
    started_at: str = field(default_factory=utc_now_iso)
    log_path: Path | None = None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def is_alive(self) -> bool:
        return self.process.returncode is None


class ProcessRegistry:
    """In-memory map of worktree id -> live process handle.

    Not durable: a daemon restart empties it, leaving only the PID persisted
    on the worktree's environment record.
    """

    def __init__(self) -> None:
        self._procs: dict[str, ManagedProcess] = {}

    def track(self, worktree_id: str, managed: ManagedProcess) -> None:
        self._procs[worktree_id] = managed

    def get(self, worktree_id: str) -> ManagedProcess | None:
        return self._procs.get(worktree_id)

    def pop(self, worktree_id: str) -> ManagedProcess | None:
        return self._procs.pop(worktree_id, None)

    def discard(self, worktree_id: str, managed: ManagedProcess) -> None:
        if self._procs.get(worktree_id) is managed:
            del self._procs[worktree_id]

    def is_alive(self, worktree_id: str) -> bool:
        managed = self._procs.get(worktree_id)
        return managed is not None and managed.is_alive

    def __len__(self) -> int:
        return len(self._procs)


class ProcessRunner:
    async def spawn(
        self,
        command: str,
        *,
        cwd: str | Path,
        log_path: Path | None = None,
    ) -> ManagedProcess:
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with log_path.open("ab") as log:
                log.write(f"[{utc_now_iso()}] $ {command}\n".encode("utf-8"))
                log.flush()
                process = await asyncio.create_subprocess_shell(
                    command,
                    cwd=str(cwd),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=log,
                    stderr=asyncio.subprocess.STDOUT,
                    start_new_session=True,
                )
        else:
            process = await asyncio.create_subprocess_shell(
                command,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        logger.debug("[process] spawned pid=%s in %s: %s", process.pid, cwd, command)
        return ManagedProcess(process=process, command=command, log_path=log_path)

    async def wait(
        self, managed: ManagedProcess, *, timeout: float | None = None,
    ) -> CommandResult:
        """Wait for *managed* to exit; on timeout it is terminated."""
        process = managed.process
        try:
            if process.stdout is not None:
                stdout, _ = await asyncio.wait_for(process.communicate(), timeout)
                output = stdout.decode("utf-8", errors="replace")
            else:
                await asyncio.wait_for(process.wait(), timeout)
                output = ""
        except asyncio.TimeoutError:
            logger.warning(
                "[process] pid=%s timed out after %ss -- terminating", managed.pid, timeout,
            )
            self.terminate(managed)
            await process.wait()
            self._log_exit(managed, "timed out")
            return CommandResult(managed.command, None, timed_out=True)

        self._log_exit(managed, f"exit {process.returncode}")
        return CommandResult(managed.command, process.returncode, output)

    async def run(
        self,
        command: str,
        *,
        cwd: str | Path,
        log_path: Path | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        managed = await self.spawn(command, cwd=cwd, log_path=log_path)
        return await self.wait(managed, timeout=timeout)

    def terminate(self, managed: ManagedProcess) -> bool:
        if not managed.is_alive:
            return False
        return self.terminate_pid(managed.pid)

    async def abandon(self, managed: ManagedProcess, *, grace: float = 5.0) -> None:
        """Terminate *managed* and reap it, escalating to SIGKILL after *grace*."""
        if not self.terminate(managed):
            return
        try:
            await asyncio.wait_for(managed.process.wait(), grace)
        except asyncio.TimeoutError:
            logger.warning("[process] pid=%s ignored SIGTERM -- killing", managed.pid)
            self.terminate_pid(managed.pid, signal.SIGKILL)
            await managed.process.wait()
        self._log_exit(managed, "terminated")

    def terminate_pid(self, pid: int, sig: int = signal.SIGTERM) -> bool:
        """Signal *pid*'s process group (or the process itself).

        Returns ``False`` when the process is already gone or cannot be
        signalled; never raises.
        """
        try:
            os.killpg(pid, sig)
            return True
        except ProcessLookupError:
            pass
        except (PermissionError, OSError) as exc:
            logger.warning("[process] failed to signal process group %s: %s", pid, exc)
        try:
            os.kill(pid, sig)
            return True
        except ProcessLookupError:
            logger.debug("[process] pid %s already exited", pid)
        except (PermissionError, OSError) as exc:
            logger.warning("[process] failed to kill pid %s: %s", pid, exc)
        return False

    @staticmethod
    def _log_exit(managed: ManagedProcess, outcome: str) -> None:
        if managed.log_path is None:
            return
        with managed.log_path.open("a", encoding="utf-8") as log:
            log.write(f"[{utc_now_iso()}] {outcome}\n")
