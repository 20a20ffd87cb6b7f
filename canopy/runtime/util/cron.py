"""Cron time helpers -- previous/next firing times in epoch milliseconds."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from ..errors import InvalidCronError

logger = logging.getLogger(__name__)


def validate_cron(expr: str | None) -> str:
    """Return the normalized expression or raise :class:`InvalidCronError`.

    Only standard 5-field expressions are accepted.
    """
    normalized = " ".join((expr or "").split())
    if len(normalized.split(" ")) != 5 or not croniter.is_valid(normalized):
        raise InvalidCronError(f"Invalid cron expression: {expr!r}")
    return normalized


def _zone(tz: str | None) -> tzinfo:
    if not tz:
        return UTC
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("[cron] unknown timezone %r -- falling back to UTC", tz)
        return UTC


def _minute_start(ref_ms: int, tz: str | None) -> datetime:
    # Cron fires on whole minutes; the minute containing *ref_ms* is the anchor.
    return datetime.fromtimestamp(ref_ms // 60_000 * 60, tz=_zone(tz))


def _to_ms(dt: datetime) -> int:
    return int(dt.timestamp()) * 1000


def prev_run_time(expr: str, ref_ms: int, tz: str | None = None) -> int:
    """Most recent firing at or before *ref_ms*."""
    cron = validate_cron(expr)
    anchor = _minute_start(ref_ms, tz)
    if croniter.match(cron, anchor):
        return _to_ms(anchor)
    return _to_ms(croniter(cron, anchor).get_prev(datetime))


def next_run_time(expr: str, ref_ms: int, tz: str | None = None) -> int:
    """First firing strictly after *ref_ms*."""
    it = croniter(validate_cron(expr), _minute_start(ref_ms, tz))
    return _to_ms(it.get_next(datetime))
