"""Persistent state: domain records and JSON-file-backed stores."""

from __future__ import annotations

from .context import INTERNAL_CONTEXT, ServiceContext
from .models import (
    ACTIVE_ENVIRONMENT_STATUSES,
    AccessUrl,
    EnvironmentConfig,
    EnvironmentInstance,
    HealthCheck,
    HealthCheckConfig,
    ProcessInfo,
    Repo,
    Session,
    Worktree,
    WorktreeSchedule,
)
from .protocols import RepoRepository, SessionRepository, WorktreeRepository
from .repo_store import RepoStore
from .session_store import SessionStore
from .worktree_store import WorktreeStore

__all__ = [
    "ACTIVE_ENVIRONMENT_STATUSES",
    "INTERNAL_CONTEXT",
    "AccessUrl",
    "EnvironmentConfig",
    "EnvironmentInstance",
    "HealthCheck",
    "HealthCheckConfig",
    "ProcessInfo",
    "Repo",
    "RepoRepository",
    "RepoStore",
    "ServiceContext",
    "Session",
    "SessionRepository",
    "SessionStore",
    "Worktree",
    "WorktreeRepository",
    "WorktreeSchedule",
    "WorktreeStore",
]
