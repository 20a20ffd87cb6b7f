"""Worktree environment lifecycle: commands, health checks and access URLs."""

from .controller import EnvironmentController, build_template_context, tail_output
from .health import HealthProbe, HealthResult
from .monitor import HealthMonitor
from .processes import CommandResult, ManagedProcess, ProcessRegistry, ProcessRunner

__all__ = [
    "CommandResult",
    "EnvironmentController",
    "HealthMonitor",
    "HealthProbe",
    "HealthResult",
    "ManagedProcess",
    "ProcessRegistry",
    "ProcessRunner",
    "build_template_context",
    "tail_output",
]
