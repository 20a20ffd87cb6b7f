"""Scheduled session execution."""

from .engine import DEFAULT_GRACE_PERIOD_MS, DEFAULT_TICK_INTERVAL_MS, Scheduler
from .retention import RetentionEnforcer
from .spawner import SessionSpawner, build_prompt_context

__all__ = [
    "DEFAULT_GRACE_PERIOD_MS",
    "DEFAULT_TICK_INTERVAL_MS",
    "RetentionEnforcer",
    "Scheduler",
    "SessionSpawner",
    "build_prompt_context",
]
