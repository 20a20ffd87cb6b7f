"""Store interfaces consumed by the scheduler and environment controller.

The JSON-backed stores in this package implement them; a database-backed
deployment only needs to provide objects with the same methods.
"""

from __future__ import annotations

from typing import Protocol

from .context import ServiceContext
from .models import EnvironmentInstance, Repo, Session, Worktree


class WorktreeRepository(Protocol):
    def get(self, worktree_id: str) -> Worktree: ...

    def list_by_repo(self, repo_id: str, *, context: ServiceContext = ...) -> list[Worktree]: ...

    def list_enabled_schedules(self, *, context: ServiceContext = ...) -> list[Worktree]: ...

    def list_active_environments(self, *, context: ServiceContext = ...) -> list[Worktree]: ...

    def update_schedule_metadata(
        self, worktree_id: str, *, last_triggered_at: int, next_run_at: int | None,
    ) -> Worktree: ...

    def update_environment(self, worktree_id: str, instance: EnvironmentInstance) -> Worktree: ...


class SessionRepository(Protocol):
    def create(self, session: Session) -> Session: ...

    def get(self, session_id: str) -> Session: ...

    def find(
        self,
        *,
        worktree_id: str | None = None,
        scheduled_run_at: int | None = None,
        scheduled_from_worktree: bool | None = None,
        context: ServiceContext = ...,
    ) -> list[Session]: ...

    def remove(self, session_id: str, *, context: ServiceContext = ...) -> Session: ...


class RepoRepository(Protocol):
    def get(self, repo_id: str) -> Repo: ...
