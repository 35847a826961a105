"""Utilities for working with timestamps in UTC."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return the current time as a timezone-aware ``datetime`` in UTC."""

    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalise ``dt`` to a timezone-aware UTC ``datetime``."""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_utc(dt: Optional[datetime] = None) -> str:
    """Return ``dt`` (default: now) as an ISO-8601 string with a ``Z`` suffix."""

    value = ensure_utc(dt) if dt is not None else utc_now()
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_millis(dt: Optional[datetime] = None) -> int:
    value = ensure_utc(dt) if dt is not None else utc_now()
    return int(value.timestamp() * 1000)


def month_key(now: Optional[datetime] = None) -> str:
    """Return the ``YYYY-MM`` bucket for ``now`` (default: the current UTC time).

    The bucket reflects when the computation runs, not when any checklist
    item last changed.
    """

    value = ensure_utc(now) if now is not None else utc_now()
    return f"{value.year}-{value.month:02d}"


__all__ = ["utc_now", "ensure_utc", "isoformat_utc", "epoch_millis", "month_key"]
