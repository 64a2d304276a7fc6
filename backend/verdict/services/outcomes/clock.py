from datetime import datetime, timedelta, timezone
from typing import Optional

from flask import current_app


DEFAULT_CHALLENGE_WINDOW = timedelta(hours=1)


def utcnow() -> datetime:
    """Naive UTC "now"; every stored timestamp uses the same convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def resolve_now(now: Optional[datetime]) -> datetime:
    return to_utc(now) if now is not None else utcnow()


def has_elapsed(now: datetime, at: datetime) -> bool:
    return to_utc(now) >= to_utc(at)


def challenge_window() -> timedelta:
    try:
        return timedelta(seconds=int(current_app.config.get('CHALLENGE_WINDOW_SEC', 3600)))
    except RuntimeError:
        # Outside an application context
        return DEFAULT_CHALLENGE_WINDOW


def challenge_deadline(finalized_at: datetime, window: Optional[timedelta] = None) -> datetime:
    """Derived, never stored: recomputed from finalized_at on every read."""
    return to_utc(finalized_at) + (window if window is not None else challenge_window())


def within_challenge_window(now: datetime, finalized_at: datetime, window: Optional[timedelta] = None) -> bool:
    # Inclusive: a challenge stamped exactly at the deadline is still accepted
    return to_utc(now) <= challenge_deadline(finalized_at, window)


def seconds_until(now: datetime, at: datetime) -> int:
    return max(0, int((to_utc(at) - to_utc(now)).total_seconds()))
