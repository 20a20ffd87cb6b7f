"""JSON-file-backed worktree store."""

from __future__ import annotations

import logging
from pathlib import Path

from ..config.settings import cfg
from ..errors import NotFoundError
from .context import INTERNAL_CONTEXT, ServiceContext
from ._json_store import JsonRecordStore
from .models import EnvironmentInstance, Worktree

logger = logging.getLogger(__name__)


class WorktreeStore(JsonRecordStore):
    _label = "worktrees"

    def __init__(self, path: Path | None = None) -> None:
        super().__init__(path or cfg.worktrees_path)

    def get(self, worktree_id: str) -> Worktree:
        raw = self._get_raw(worktree_id)
        if raw is None:
            raise NotFoundError(f"Worktree {worktree_id} not found")
        return Worktree.from_dict(raw)

    def save(self, worktree: Worktree) -> Worktree:
        self._put_raw(worktree.worktree_id, worktree.to_dict())
        return worktree

    def list_all(self, *, context: ServiceContext = INTERNAL_CONTEXT) -> list[Worktree]:
        return [
            Worktree.from_dict(raw)
            for raw in self._iter_raw()
            if context.can_see(raw.get("created_by", ""))
        ]

    def list_by_repo(
        self, repo_id: str, *, context: ServiceContext = INTERNAL_CONTEXT,
    ) -> list[Worktree]:
        return [wt for wt in self.list_all(context=context) if wt.repo_id == repo_id]

    def list_enabled_schedules(
        self, *, context: ServiceContext = INTERNAL_CONTEXT,
    ) -> list[Worktree]:
        return [wt for wt in self.list_all(context=context) if wt.schedule_enabled is True]

    def list_active_environments(
        self, *, context: ServiceContext = INTERNAL_CONTEXT,
    ) -> list[Worktree]:
        return [
            wt for wt in self.list_all(context=context)
            if wt.environment_instance is not None and wt.environment_instance.is_active
        ]

    def update_schedule_metadata(
        self,
        worktree_id: str,
        *,
        last_triggered_at: int,
        next_run_at: int | None,
    ) -> Worktree:
        raw = self._patch_raw(
            worktree_id,
            schedule_last_triggered_at=last_triggered_at,
            schedule_next_run_at=next_run_at,
        )
        if raw is None:
            raise NotFoundError(f"Worktree {worktree_id} not found")
        return Worktree.from_dict(raw)

    def update_environment(
        self, worktree_id: str, instance: EnvironmentInstance,
    ) -> Worktree:
        raw = self._patch_raw(worktree_id, environment_instance=instance.to_dict())
        if raw is None:
            raise NotFoundError(f"Worktree {worktree_id} not found")
        return Worktree.from_dict(raw)
