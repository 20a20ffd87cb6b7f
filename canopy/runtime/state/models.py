"""Domain records: worktrees, sessions, repos, and environment state.

Schedule and session times are epoch milliseconds; health-check timestamps
are ISO-8601 strings.  Every record round-trips through ``to_dict`` /
``from_dict`` so the JSON stores can persist them verbatim.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

EnvironmentStatus = Literal["stopped", "starting", "running", "stopping", "error"]
HealthStatus = Literal["unknown", "healthy", "unhealthy"]

ACTIVE_ENVIRONMENT_STATUSES: frozenset[str] = frozenset({"starting", "running"})

SESSION_STATUS_IDLE = "idle"


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


def _new_id() -> str:
    return str(uuid.uuid4())


# -- environment ---------------------------------------------------------


@dataclass
class HealthCheck:
    status: HealthStatus = "unknown"
    message: str = ""
    timestamp: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> HealthCheck | None:
        if not raw:
            return None
        return cls(
            status=raw.get("status", "unknown"),
            message=raw.get("message", ""),
            timestamp=raw.get("timestamp") or utc_now_iso(),
        )


@dataclass
class AccessUrl:
    name: str
    url: str


@dataclass
class ProcessInfo:
    pid: int
    started_at: str = ""
    command: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> ProcessInfo | None:
        if not raw or raw.get("pid") is None:
            return None
        return cls(
            pid=int(raw["pid"]),
            started_at=raw.get("started_at", ""),
            command=raw.get("command", ""),
        )


@dataclass
class EnvironmentInstance:
    status: EnvironmentStatus = "stopped"
    last_health_check: HealthCheck | None = None
    access_urls: list[AccessUrl] = field(default_factory=list)
    process: ProcessInfo | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_ENVIRONMENT_STATUSES

    def fingerprint(self) -> dict[str, Any]:
        """The meaningful subset used for change detection.

        Health-check timestamps are excluded so a poll that observes the same
        status and message is not treated as an update.
        """
        data = asdict(self)
        if data["last_health_check"] is not None:
            data["last_health_check"].pop("timestamp", None)
        return data

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> EnvironmentInstance | None:
        if not raw:
            return None
        return cls(
            status=raw.get("status", "stopped"),
            last_health_check=HealthCheck.from_dict(raw.get("last_health_check")),
            access_urls=[
                AccessUrl(name=u.get("name", ""), url=u.get("url", ""))
                for u in raw.get("access_urls") or []
                if isinstance(u, dict)
            ],
            process=ProcessInfo.from_dict(raw.get("process")),
        )


# -- worktree ------------------------------------------------------------


@dataclass
class WorktreeSchedule:
    prompt_template: str = ""
    agentic_tool: str = "claude-code"
    permission_mode: str | None = None
    model: str | None = None
    context_files: list[str] = field(default_factory=list)
    mcp_server_ids: list[str] = field(default_factory=list)
    timezone: str | None = None
    retention: int = 0

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> WorktreeSchedule | None:
        if not raw:
            return None
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in raw.items() if k in known})


@dataclass
class Worktree:
    worktree_id: str
    repo_id: str
    name: str
    path: str
    ref: str = ""
    worktree_unique_id: int = 0
    created_by: str = ""
    issue_url: str | None = None
    pull_request_url: str | None = None
    notes: str | None = None
    custom_context: dict[str, Any] = field(default_factory=dict)
    schedule_enabled: bool = False
    schedule_cron: str | None = None
    schedule: WorktreeSchedule | None = None
    schedule_last_triggered_at: int | None = None
    schedule_next_run_at: int | None = None
    environment_instance: EnvironmentInstance | None = None

    @property
    def environment_status(self) -> str | None:
        return self.environment_instance.status if self.environment_instance else None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Worktree:
        data = {k: v for k, v in raw.items() if k in cls.__dataclass_fields__}
        data["schedule"] = WorktreeSchedule.from_dict(raw.get("schedule"))
        data["environment_instance"] = EnvironmentInstance.from_dict(
            raw.get("environment_instance"),
        )
        data["custom_context"] = raw.get("custom_context") or {}
        return cls(**data)


# -- repo ----------------------------------------------------------------


@dataclass
class HealthCheckConfig:
    url_template: str = ""


@dataclass
class EnvironmentConfig:
    up_command: str | None = None
    down_command: str | None = None
    app_url_template: str | None = None
    health_check: HealthCheckConfig | None = None
    logs_command: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> EnvironmentConfig | None:
        if not raw:
            return None
        hc = raw.get("health_check")
        return cls(
            up_command=raw.get("up_command"),
            down_command=raw.get("down_command"),
            app_url_template=raw.get("app_url_template"),
            health_check=HealthCheckConfig(url_template=hc.get("url_template", "")) if hc else None,
            logs_command=raw.get("logs_command"),
        )


@dataclass
class Repo:
    repo_id: str
    slug: str
    environment_config: EnvironmentConfig | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Repo:
        return cls(
            repo_id=raw["repo_id"],
            slug=raw.get("slug", ""),
            environment_config=EnvironmentConfig.from_dict(raw.get("environment_config")),
        )


# -- session -------------------------------------------------------------


@dataclass
class Session:
    worktree_id: str
    session_id: str = field(default_factory=_new_id)
    status: str = SESSION_STATUS_IDLE
    agentic_tool: str = ""
    title: str = ""
    created_by: str = ""
    scheduled_run_at: int | None = None
    scheduled_from_worktree: bool = False
    context_files: list[str] = field(default_factory=list)
    permission_mode: str | None = None
    model: str | None = None
    custom_context: dict[str, Any] = field(default_factory=dict)
    created_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Session:
        return cls(**{k: v for k, v in raw.items() if k in cls.__dataclass_fields__})
