"""
UTC timestamp utilities.

Every timestamp eventscale persists goes through :func:`to_iso8601`, which
normalizes to UTC with a fixed microsecond width.  Two normalized strings
therefore compare lexicographically in the same order as the instants they
represent, which is what the ``(sk, event_starts_ts)`` range query relies on.

Tags:
    timestamps, utc, datetime, eventscale
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Return *dt* as an aware UTC datetime (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to a normalized UTC ISO 8601 string."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat(timespec="microseconds")


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string (``Z`` suffix accepted) to an aware UTC datetime."""
    if s is None or s == "":
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(s))
