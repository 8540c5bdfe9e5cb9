"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def seconds_until(moment: datetime, now: datetime | None = None) -> float:
    """Seconds from ``now`` until ``moment``; never negative."""
    delta = moment - (now or utc_now())
    return max(delta.total_seconds(), 0.0)


def days_ago(days: int, now: datetime | None = None) -> datetime:
    return (now or utc_now()) - timedelta(days=days)


def iso_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
