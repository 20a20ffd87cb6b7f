"""Application settings -- reads from environment and ``.env`` file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from ..util.env_file import EnvFile
from ..util.singletons import register_singleton

_TRUTHY = ("1", "true", "yes", "on")


def _flag(raw: str, default: bool) -> bool:
    if not raw:
        return default
    return raw.strip().lower() in _TRUTHY


def _int(raw: str, default: int, *, minimum: int = 0) -> int:
    try:
        value = int(raw) if raw else default
    except ValueError:
        return default
    return max(minimum, value)


class Settings:

    _DATA_DIR_ENV: ClassVar[str] = "CANOPY_DATA_DIR"

    def __init__(self) -> None:
        dotenv = os.getenv("DOTENV_PATH")
        if not dotenv:
            data_dir = os.getenv(self._DATA_DIR_ENV)
            if data_dir:
                dotenv = str(Path(data_dir) / ".env")
            else:
                dotenv = ".env"
        self.env = EnvFile(dotenv)
        self.reload()

    def reload(self) -> None:
        e = self._read

        self.scheduler_enabled: bool = _flag(e("SCHEDULER_ENABLED"), True)
        self.tick_interval_ms: int = _int(e("SCHEDULER_TICK_INTERVAL_MS"), 30_000, minimum=1)
        self.grace_period_ms: int = _int(e("SCHEDULER_GRACE_PERIOD_MS"), 120_000, minimum=1)

        self.health_check_interval_ms: int = _int(e("HEALTH_CHECK_INTERVAL_MS"), 5_000, minimum=1)
        self.health_check_timeout_ms: int = _int(e("HEALTH_CHECK_TIMEOUT_MS"), 1_000, minimum=1)
        self.restart_delay_ms: int = _int(e("ENVIRONMENT_RESTART_DELAY_MS"), 1_000)

        self.logs_timeout_ms: int = _int(e("LOGS_TIMEOUT_MS"), 10_000, minimum=1)
        self.logs_max_lines: int = _int(e("LOGS_MAX_LINES"), 100, minimum=1)
        self.logs_max_bytes: int = _int(e("LOGS_MAX_BYTES"), 100_000, minimum=1)

        self.agent_command: str = e("AGENT_COMMAND")
        self.default_permission_mode: str = e("DEFAULT_PERMISSION_MODE") or "acceptEdits"

    @property
    def data_dir(self) -> Path:
        return Path(os.getenv(self._DATA_DIR_ENV, str(Path.home() / ".canopy")))

    @property
    def worktrees_path(self) -> Path:
        return self.data_dir / "worktrees.json"

    @property
    def sessions_path(self) -> Path:
        return self.data_dir / "sessions.json"

    @property
    def repos_path(self) -> Path:
        return self.data_dir / "repos.json"

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"

    def environment_log_path(self, worktree_id: str) -> Path:
        return self.logs_dir / "worktrees" / worktree_id / "environment.log"

    def session_log_path(self, session_id: str) -> Path:
        return self.logs_dir / "sessions" / f"{session_id}.log"

    def _read(self, key: str) -> str:
        return self.env.read(key) or os.getenv(key, "")

    def ensure_dirs(self) -> None:
        for d in (self.data_dir, self.logs_dir):
            d.mkdir(parents=True, exist_ok=True)


cfg = Settings()


def _reset_cfg() -> None:
    global cfg
    cfg = Settings()


register_singleton(_reset_cfg)
