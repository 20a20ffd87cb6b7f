"""JSON-file-backed session store."""

from __future__ import annotations

import logging
from pathlib import Path

from ..config.settings import cfg
from ..errors import NotFoundError
from .context import INTERNAL_CONTEXT, ServiceContext
from ._json_store import JsonRecordStore
from .models import Session

logger = logging.getLogger(__name__)


class SessionStore(JsonRecordStore):
    _label = "sessions"

    def __init__(self, path: Path | None = None) -> None:
        super().__init__(path or cfg.sessions_path)

    def create(self, session: Session) -> Session:
        if self._get_raw(session.session_id) is not None:
            raise ValueError(f"Session {session.session_id} already exists")
        self._put_raw(session.session_id, session.to_dict())
        logger.debug("Created session %s for worktree %s", session.session_id, session.worktree_id)
        return session

    def get(self, session_id: str) -> Session:
        raw = self._get_raw(session_id)
        if raw is None:
            raise NotFoundError(f"Session {session_id} not found")
        return Session.from_dict(raw)

    def find(
        self,
        *,
        worktree_id: str | None = None,
        scheduled_run_at: int | None = None,
        scheduled_from_worktree: bool | None = None,
        context: ServiceContext = INTERNAL_CONTEXT,
    ) -> list[Session]:
        """Return sessions matching every given filter (``None`` = no filter).

        ``scheduled_run_at`` is compared by exact equality.
        """
        results: list[Session] = []
        for raw in self._iter_raw():
            if not context.can_see(raw.get("created_by", "")):
                continue
            if worktree_id is not None and raw.get("worktree_id") != worktree_id:
                continue
            if scheduled_run_at is not None and raw.get("scheduled_run_at") != scheduled_run_at:
                continue
            if (
                scheduled_from_worktree is not None
                and bool(raw.get("scheduled_from_worktree")) is not scheduled_from_worktree
            ):
                continue
            results.append(Session.from_dict(raw))
        return results

    def remove(self, session_id: str, *, context: ServiceContext = INTERNAL_CONTEXT) -> Session:
        raw = self._get_raw(session_id)
        if raw is None or not context.can_see(raw.get("created_by", "")):
            raise NotFoundError(f"Session {session_id} not found")
        self._delete_raw(session_id)
        return Session.from_dict(raw)
