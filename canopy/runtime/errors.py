"""Exception hierarchy for the Canopy runtime."""

from __future__ import annotations


class CanopyError(Exception):
    """Base class for all runtime errors."""


class NotFoundError(CanopyError, KeyError):
    """Raised when a store lookup misses."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "not found"


class InvalidCronError(CanopyError, ValueError):
    """Raised for cron expressions that are not valid 5-field expressions."""


class EnvironmentConfigError(CanopyError):
    """The environment cannot be operated in its current configuration or state.

    Raised before any state transition; callers should not retry.
    """


class EnvironmentCommandError(CanopyError):
    """An environment command failed to spawn or exited non-zero.

    Raised after the environment has been moved to ``error``.
    """

    def __init__(self, message: str, *, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode
