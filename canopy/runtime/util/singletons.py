"""Registry of module-level singleton reset hooks.

Modules that keep a process-wide instance (``cfg``, shared stores) register a
reset callable here so tests can start from a clean slate.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

_reset_hooks: list[Callable[[], None]] = []


def register_singleton(reset: Callable[[], None]) -> None:
    if reset not in _reset_hooks:
        _reset_hooks.append(reset)


def reset_all_singletons() -> None:
    for reset in list(_reset_hooks):
        try:
            reset()
        except Exception as exc:
            logger.warning("Singleton reset %r failed: %s", reset, exc, exc_info=True)
