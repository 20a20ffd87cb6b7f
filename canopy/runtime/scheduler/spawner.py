"""Scheduled session spawning.

Creates the session for a due firing, hands its prompt to the execution
trigger, advances the worktree's schedule metadata, and prunes old runs.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from ..agent.trigger import ExecutionTrigger
from ..state.context import INTERNAL_CONTEXT
from ..state.models import SESSION_STATUS_IDLE, Session, Worktree
from ..state.protocols import SessionRepository, WorktreeRepository
from ..util.cron import next_run_time
from ..util.templates import render_template
from .retention import RetentionEnforcer

logger = logging.getLogger(__name__)


def build_prompt_context(worktree: Worktree) -> dict[str, Any]:
    schedule = worktree.schedule
    return {
        "worktree": {
            "name": worktree.name,
            "ref": worktree.ref,
            "path": worktree.path,
            "issue_url": worktree.issue_url,
            "pull_request_url": worktree.pull_request_url,
            "notes": worktree.notes,
            "custom_context": worktree.custom_context,
        },
        "schedule": {
            "cron": worktree.schedule_cron,
            "prompt_template": schedule.prompt_template,
            "agentic_tool": schedule.agentic_tool,
            "permission_mode": schedule.permission_mode,
            "model": schedule.model,
            "context_files": schedule.context_files,
            "mcp_server_ids": schedule.mcp_server_ids,
            "timezone": schedule.timezone,
            "retention": schedule.retention,
        } if schedule else {},
    }


def _iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=UTC).isoformat().replace("+00:00", "Z")


class SessionSpawner:
    def __init__(
        self,
        worktrees: WorktreeRepository,
        sessions: SessionRepository,
        trigger: ExecutionTrigger,
        *,
        retention: RetentionEnforcer | None = None,
        default_permission_mode: str = "acceptEdits",
    ) -> None:
        self._worktrees = worktrees
        self._sessions = sessions
        self._trigger = trigger
        self._retention = retention or RetentionEnforcer(sessions)
        self._default_permission_mode = default_permission_mode

    async def spawn(self, worktree: Worktree, scheduled_run_at: int, now: int) -> Session | None:
        """Spawn the session for *scheduled_run_at*, or ``None`` if it already exists.

        Failures after deduplication propagate to the caller.
        """
        if not worktree.schedule or not worktree.schedule_cron:
            logger.error(
                "[scheduler] worktree %s has no schedule config -- skipping",
                worktree.worktree_id,
            )
            return None
        schedule = worktree.schedule

        existing = self._sessions.find(
            worktree_id=worktree.worktree_id,
            scheduled_run_at=scheduled_run_at,
            context=INTERNAL_CONTEXT,
        )
        if existing:
            logger.debug(
                "[scheduler]   %s: run at %s already spawned as %s",
                worktree.name, _iso(scheduled_run_at), existing[0].session_id,
            )
            self.update_schedule_metadata(worktree, scheduled_run_at, now)
            return None

        rendered_prompt = render_template(schedule.prompt_template, build_prompt_context(worktree))

        prior_runs = self._sessions.find(
            worktree_id=worktree.worktree_id,
            scheduled_from_worktree=True,
            context=INTERNAL_CONTEXT,
        )
        run_index = len(prior_runs) + 1

        session = self._sessions.create(Session(
            worktree_id=worktree.worktree_id,
            status=SESSION_STATUS_IDLE,
            agentic_tool=schedule.agentic_tool,
            title=f"[Scheduled run - {_iso(scheduled_run_at)}]",
            created_by=worktree.created_by,
            scheduled_run_at=scheduled_run_at,
            scheduled_from_worktree=True,
            context_files=list(schedule.context_files),
            permission_mode=schedule.permission_mode,
            model=schedule.model or None,
            custom_context={
                "scheduled_run": {
                    "rendered_prompt": rendered_prompt,
                    "run_index": run_index,
                    "schedule_config_snapshot": {
                        "cron": worktree.schedule_cron,
                        "timezone": schedule.timezone,
                        "retention": schedule.retention,
                    },
                },
            },
        ))
        logger.info(
            "[scheduler]   spawned session %s for %s (run #%d)",
            session.session_id, worktree.name, run_index,
        )

        await self._trigger.prompt(
            session,
            rendered_prompt,
            permission_mode=schedule.permission_mode or self._default_permission_mode,
            stream=True,
        )

        self.update_schedule_metadata(worktree, scheduled_run_at, now)
        self._retention.enforce(worktree)
        return session

    def update_schedule_metadata(self, worktree: Worktree, scheduled_run_at: int, now: int) -> None:
        """Record the logical firing time and the next one after *now*."""
        if not worktree.schedule_cron:
            return
        timezone = worktree.schedule.timezone if worktree.schedule else None
        self._worktrees.update_schedule_metadata(
            worktree.worktree_id,
            last_triggered_at=scheduled_run_at,
            next_run_at=next_run_time(worktree.schedule_cron, now, timezone),
        )
