"""Cron expression helpers backed by croniter."""

from __future__ import annotations

from datetime import datetime

from croniter import croniter


def now_local() -> datetime:
    return datetime.now().astimezone()


def is_valid_expression(expr: str) -> bool:
    return bool(expr and expr.strip()) and croniter.is_valid(expr)


def compute_next_run(expr: str, base: datetime | None = None) -> datetime | None:
    """Next matching instant strictly after `base` (local time), or None if the expression is invalid."""
    if not is_valid_expression(expr):
        return None
    start = base or now_local()
    return croniter(expr, start).get_next(datetime)


def next_fire(
    expr: str, after: datetime | None = None, now: datetime | None = None
) -> tuple[datetime, float] | None:
    """Next fire instant and the delay to it, used to arm a job's timer.

    `after` is the instant that last fired. The next fire is strictly later
    than it even when the clock reads slightly earlier on wake-up.
    """
    now = now or now_local()
    anchor = max(now, after) if after else now
    fires_at = compute_next_run(expr, anchor)
    if fires_at is None:
        return None
    return fires_at, max(0.0, (fires_at - now).total_seconds())
