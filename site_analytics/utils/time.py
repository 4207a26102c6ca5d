from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def epoch_millis(dt: datetime | None = None) -> int:
    ts = dt or utc_now()
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        raise ValueError("expected a timezone-aware datetime")
    return int(ts.timestamp() * 1000)
