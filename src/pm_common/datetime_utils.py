"""Timezone-aware UTC helpers for time-boxed state (shields, cooldowns)."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def hours_from_now(hours: int, now: datetime | None = None) -> datetime:
    return (now or utc_now()) + timedelta(hours=hours)


def is_active(until: datetime | None, now: datetime | None = None) -> bool:
    """True while a time window ending at ``until`` is still open."""
    return until is not None and until > (now or utc_now())


def extend_window(until: datetime | None, hours: int, now: datetime | None = None) -> datetime:
    """Push a window's end forward by ``hours``.

    An open window is extended from its current end; an expired or missing
    one starts again from ``now``.
    """
    now = now or utc_now()
    start = until if is_active(until, now) else now
    return hours_from_now(hours, start)
