"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    Use this instead of datetime.now() or datetime.utcnow() so that every
    timestamp the library produces compares cleanly with the ones Supabase
    returns.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def days_from_now(days: int) -> datetime:
    """Return the UTC instant ``days`` days after now."""
    return utc_now() + timedelta(days=days)


def epoch_millis() -> int:
    """Milliseconds since the epoch, used to mint fixture ids."""
    return int(utc_now().timestamp() * 1000)
