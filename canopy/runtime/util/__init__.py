"""Shared utilities."""

from .cron import next_run_time, prev_run_time, validate_cron
from .env_file import EnvFile
from .singletons import register_singleton, reset_all_singletons
from .templates import render_template

__all__ = [
    "EnvFile",
    "next_run_time",
    "prev_run_time",
    "register_singleton",
    "render_template",
    "reset_all_singletons",
    "validate_cron",
]
