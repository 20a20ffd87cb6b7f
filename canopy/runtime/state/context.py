"""Caller context passed to store queries.

External callers see only the records they created.  The scheduler and
environment controller run inside the daemon and pass
:data:`INTERNAL_CONTEXT`, which bypasses that filtering explicitly rather
than by the absence of a caller.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ServiceContext:
    user_id: str | None = None
    internal: bool = False

    def can_see(self, owner: str) -> bool:
        return self.internal or (self.user_id is not None and self.user_id == owner)


INTERNAL_CONTEXT = ServiceContext(internal=True)
