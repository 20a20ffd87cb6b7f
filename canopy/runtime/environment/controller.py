"""Environment controller -- lifecycle of a worktree's service stack.

A repo's ``environment_config`` supplies shell command and URL templates;
they are rendered per worktree and executed in the worktree directory.
Every change to a worktree's ``environment_instance`` goes through
:meth:`EnvironmentController._update`, which drops writes that change
nothing but a health-check timestamp.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..config.settings import Settings, cfg
from ..errors import EnvironmentCommandError, EnvironmentConfigError
from ..state.context import INTERNAL_CONTEXT
from ..state.models import (
    ACTIVE_ENVIRONMENT_STATUSES,
    AccessUrl,
    EnvironmentConfig,
    EnvironmentInstance,
    HealthCheck,
    ProcessInfo,
    Repo,
    Worktree,
    utc_now_iso,
)
from ..state.protocols import RepoRepository, WorktreeRepository
from ..util.templates import render_template
from .health import HealthProbe
from .processes import ManagedProcess, ProcessRegistry, ProcessRunner

logger = logging.getLogger(__name__)

EnvironmentListener = Callable[[Worktree], Awaitable[None] | None]

_UNSET: Any = object()


def build_template_context(worktree: Worktree, repo: Repo) -> dict[str, Any]:
    return {
        "worktree": {
            "unique_id": worktree.worktree_unique_id,
            "name": worktree.name,
            "path": worktree.path,
        },
        "repo": {"slug": repo.slug},
        "custom": worktree.custom_context or {},
    }


def tail_output(output: str, max_lines: int, max_bytes: int) -> tuple[str, bool]:
    """Keep the last *max_lines* lines, then the last *max_bytes* bytes."""
    lines = output.splitlines()
    truncated = len(lines) > max_lines
    text = "\n".join(lines[-max_lines:])
    encoded = text.encode("utf-8")
    if len(encoded) > max_bytes:
        text = encoded[-max_bytes:].decode("utf-8", errors="ignore")
        truncated = True
    return text, truncated


class EnvironmentController:
    def __init__(
        self,
        worktrees: WorktreeRepository,
        repos: RepoRepository,
        *,
        runner: ProcessRunner | None = None,
        probe: HealthProbe | None = None,
        registry: ProcessRegistry | None = None,
        settings: Settings | None = None,
        restart_delay_ms: int | None = None,
    ) -> None:
        self._settings = settings or cfg
        self._worktrees = worktrees
        self._repos = repos
        self._runner = runner or ProcessRunner()
        self._probe = probe or HealthProbe(self._settings.health_check_timeout_ms)
        self.registry = registry or ProcessRegistry()
        self.restart_delay_ms = (
            self._settings.restart_delay_ms if restart_delay_ms is None else restart_delay_ms
        )
        self._listeners: list[EnvironmentListener] = []

    def add_listener(self, listener: EnvironmentListener) -> None:
        """Register a callback invoked with the worktree after each observable update."""
        self._listeners.append(listener)

    # -- lifecycle -----------------------------------------------------------

    async def start(self, worktree_id: str) -> Worktree:
        worktree, repo = self._load(worktree_id)
        config = repo.environment_config
        if config is None or not config.up_command:
            raise EnvironmentConfigError("No environment configuration found for this repository")
        if worktree.environment_status == "running":
            raise EnvironmentConfigError("Environment is already running")

        await self._update(worktree_id, status="starting", last_health_check=None)

        context = build_template_context(worktree, repo)
        command = render_template(config.up_command, context)
        logger.info("[environment] starting %s: %s", worktree.name, command)

        managed: ManagedProcess | None = None
        try:
            managed = await self._runner.spawn(
                command,
                cwd=worktree.path,
                log_path=self._settings.environment_log_path(worktree_id),
            )
            self.registry.track(worktree_id, managed)
            await self._update(
                worktree_id,
                process=ProcessInfo(pid=managed.pid, started_at=managed.started_at, command=command),
            )
            result = await self._runner.wait(managed)
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            if managed is not None:
                await self._runner.abandon(managed)
            await self._record_failure(worktree_id, message)
            raise EnvironmentCommandError(f"Start command failed: {message}") from exc
        finally:
            if managed is not None:
                self.registry.discard(worktree_id, managed)

        if not result.ok:
            message = f"Start command exited with code {result.returncode}"
            await self._record_failure(worktree_id, message)
            raise EnvironmentCommandError(message, returncode=result.returncode)

        logger.info("[environment] start command completed for %s", worktree.name)
        health_configured = bool(config.health_check and config.health_check.url_template)
        return await self._update(
            worktree_id,
            status="starting" if health_configured else "running",
            process=None,
            access_urls=self._access_urls(config, context),
        )

    async def stop(self, worktree_id: str) -> Worktree:
        worktree, repo = self._load(worktree_id)
        config = repo.environment_config

        await self._update(worktree_id, status="stopping")

        if config is not None and config.down_command:
            command = render_template(config.down_command, build_template_context(worktree, repo))
            logger.info("[environment] stopping %s: %s", worktree.name, command)
            try:
                result = await self._runner.run(
                    command,
                    cwd=worktree.path,
                    log_path=self._settings.environment_log_path(worktree_id),
                )
            except Exception as exc:
                message = str(exc) or exc.__class__.__name__
                await self._record_failure(worktree_id, message)
                raise EnvironmentCommandError(f"Down command failed: {message}") from exc
            if not result.ok:
                message = f"Down command exited with code {result.returncode}"
                await self._record_failure(worktree_id, message)
                raise EnvironmentCommandError(message, returncode=result.returncode)
        else:
            self._terminate(worktree)

        return await self._update(
            worktree_id,
            status="stopped",
            process=None,
            last_health_check=HealthCheck(status="unknown", message="Environment stopped"),
        )

    async def restart(self, worktree_id: str) -> Worktree:
        worktree = self._worktrees.get(worktree_id)
        if worktree.environment_status == "running":
            await self.stop(worktree_id)
            await asyncio.sleep(self.restart_delay_ms / 1000)
        return await self.start(worktree_id)

    def _terminate(self, worktree: Worktree) -> None:
        managed = self.registry.pop(worktree.worktree_id)
        if managed is not None:
            logger.info("[environment] terminating tracked process %s for %s", managed.pid, worktree.name)
            self._runner.terminate(managed)
            return
        instance = worktree.environment_instance
        if instance is not None and instance.process is not None:
            pid = instance.process.pid
            logger.info("[environment] no tracked process for %s -- signalling pid %s", worktree.name, pid)
            if not self._runner.terminate_pid(pid):
                logger.warning("[environment] could not terminate pid %s (already gone?)", pid)

    # -- health --------------------------------------------------------------

    async def check_health(self, worktree_id: str) -> Worktree:
        worktree, repo = self._load(worktree_id)
        if worktree.environment_status not in ACTIVE_ENVIRONMENT_STATUSES:
            return worktree

        config = repo.environment_config
        url_template = (
            config.health_check.url_template if config and config.health_check else ""
        )
        if not url_template:
            alive = self.registry.is_alive(worktree_id)
            return await self._update(
                worktree_id,
                last_health_check=HealthCheck(
                    status="healthy" if alive else "unknown",
                    message="Process running" if alive else "No health check configured",
                ),
            )

        url = render_template(url_template, build_template_context(worktree, repo))
        result = await self._probe.probe(url)

        # start/stop may have run while the probe was in flight.
        current = self._worktrees.get(worktree_id)
        status = current.environment_status
        if status not in ACTIVE_ENVIRONMENT_STATUSES:
            logger.debug("[health] %s is now %s -- discarding probe result", current.name, status)
            return current

        health = "healthy" if result.healthy else "unhealthy"
        previous = current.environment_instance.last_health_check if current.environment_instance else None
        if previous is None or previous.status != health:
            logger.info(
                "[health] %s: %s -> %s (%s)",
                current.name, previous.status if previous else "unknown", health, result.message,
            )
        promote = result.healthy and status == "starting"
        if promote:
            logger.info("[health] first successful check for %s -- now running", current.name)
        return await self._update(
            worktree_id,
            status="running" if promote else status,
            last_health_check=HealthCheck(status=health, message=result.message),
        )

    # -- access URLs ---------------------------------------------------------

    async def recompute_access_urls(self, worktree_id: str) -> Worktree:
        worktree, repo = self._load(worktree_id)
        if worktree.environment_status not in ACTIVE_ENVIRONMENT_STATUSES:
            logger.debug(
                "[environment] skipping URL recompute for %s (status: %s)",
                worktree.name, worktree.environment_status,
            )
            return worktree
        urls = self._access_urls(repo.environment_config, build_template_context(worktree, repo))
        return await self._update(worktree_id, access_urls=urls)

    async def recompute_access_urls_for_repo(self, repo_id: str) -> list[Worktree]:
        """Refresh access URLs of every active environment in *repo_id*."""
        updated: list[Worktree] = []
        for worktree in self._worktrees.list_by_repo(repo_id, context=INTERNAL_CONTEXT):
            if worktree.environment_status not in ACTIVE_ENVIRONMENT_STATUSES:
                continue
            try:
                updated.append(await self.recompute_access_urls(worktree.worktree_id))
            except Exception as exc:
                logger.error(
                    "[environment] URL recompute failed for %s: %s",
                    worktree.worktree_id, exc, exc_info=True,
                )
        return updated

    @staticmethod
    def _access_urls(config: EnvironmentConfig | None, context: dict[str, Any]) -> list[AccessUrl]:
        if config is None or not config.app_url_template:
            return []
        return [AccessUrl(name="App", url=render_template(config.app_url_template, context))]

    # -- logs ----------------------------------------------------------------

    async def get_logs(self, worktree_id: str) -> dict[str, Any]:
        """Run the repo's logs command and return the tail of its output.

        Never changes environment state; failures are reported in ``error``.
        """
        worktree, repo = self._load(worktree_id)
        payload: dict[str, Any] = {"logs": "", "timestamp": utc_now_iso(), "truncated": False}
        config = repo.environment_config
        if config is None or not config.logs_command:
            payload["error"] = "No logs command configured"
            return payload

        command = render_template(config.logs_command, build_template_context(worktree, repo))
        timeout = self._settings.logs_timeout_ms / 1000
        try:
            result = await self._runner.run(command, cwd=worktree.path, timeout=timeout)
        except OSError as exc:
            logger.warning("[environment] logs command failed for %s: %s", worktree.name, exc)
            payload["error"] = f"Failed to run logs command: {exc}"
            return payload

        payload["logs"], payload["truncated"] = tail_output(
            result.output, self._settings.logs_max_lines, self._settings.logs_max_bytes,
        )
        if result.timed_out:
            payload["error"] = f"Logs command timed out after {timeout:g}s"
        elif not result.ok:
            payload["error"] = f"Logs command exited with code {result.returncode}"
        return payload

    # -- state ---------------------------------------------------------------

    def _load(self, worktree_id: str) -> tuple[Worktree, Repo]:
        worktree = self._worktrees.get(worktree_id)
        return worktree, self._repos.get(worktree.repo_id)

    async def _record_failure(self, worktree_id: str, message: str) -> None:
        logger.error("[environment] %s: %s", worktree_id, message)
        await self._update(
            worktree_id,
            status="error",
            process=None,
            last_health_check=HealthCheck(status="unhealthy", message=message),
        )

    async def _update(
        self,
        worktree_id: str,
        *,
        status: str = _UNSET,
        last_health_check: HealthCheck | None = _UNSET,
        access_urls: list[AccessUrl] = _UNSET,
        process: ProcessInfo | None = _UNSET,
    ) -> Worktree:
        """Merge the given fields into the environment record.

        Returns the stored worktree unchanged, without notifying listeners,
        when only health-check timestamps would differ.
        """
        changes = {
            name: value
            for name, value in (
                ("status", status),
                ("last_health_check", last_health_check),
                ("access_urls", access_urls),
                ("process", process),
            )
            if value is not _UNSET
        }
        existing = self._worktrees.get(worktree_id)
        current = existing.environment_instance
        updated = dataclasses.replace(current or EnvironmentInstance(), **changes)
        if current is not None and updated.fingerprint() == current.fingerprint():
            return existing

        worktree = self._worktrees.update_environment(worktree_id, updated)
        await self._notify(worktree)
        return worktree

    async def _notify(self, worktree: Worktree) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(worktree)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.error("[environment] listener failed: %s", exc, exc_info=True)
