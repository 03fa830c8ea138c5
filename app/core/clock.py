# app/core/clock.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    # tz-aware UTC, but stored as naive UTC (SQLite-friendly)
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_millis() -> int:
    """Epoch milliseconds, the unit used by the actions ledger."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)
