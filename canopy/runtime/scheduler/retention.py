"""Retention policy for scheduled sessions."""

from __future__ import annotations

import logging

from ..state.context import INTERNAL_CONTEXT
from ..state.models import Worktree
from ..state.protocols import SessionRepository

logger = logging.getLogger(__name__)


class RetentionEnforcer:
    """Keep the newest ``schedule.retention`` scheduled sessions per worktree.

    ``retention == 0`` keeps everything.  Cleanup is best-effort: failures are
    logged and never propagate into the scheduling cycle.
    """

    def __init__(self, sessions: SessionRepository) -> None:
        self._sessions = sessions

    def enforce(self, worktree: Worktree) -> list[str]:
        retention = worktree.schedule.retention if worktree.schedule else 0
        if not retention or retention <= 0:
            return []

        deleted: list[str] = []
        try:
            scheduled = self._sessions.find(
                worktree_id=worktree.worktree_id,
                scheduled_from_worktree=True,
                context=INTERNAL_CONTEXT,
            )
            scheduled.sort(key=lambda s: s.scheduled_run_at or 0, reverse=True)

            for session in scheduled[retention:]:
                try:
                    self._sessions.remove(session.session_id, context=INTERNAL_CONTEXT)
                    deleted.append(session.session_id)
                except Exception as exc:
                    logger.error(
                        "[retention] failed to delete session %s for %s: %s",
                        session.session_id, worktree.name, exc, exc_info=True,
                    )
        except Exception as exc:
            logger.error(
                "[retention] failed to enforce retention for %s: %s",
                worktree.name, exc, exc_info=True,
            )

        if deleted:
            logger.info(
                "[retention] deleted %d old session(s) for %s (retention: %d)",
                len(deleted), worktree.name, retention,
            )
        return deleted
