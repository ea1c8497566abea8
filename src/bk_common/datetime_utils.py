"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def expires_in(seconds: int) -> datetime:
    """Return the UTC instant `seconds` from now."""
    return utc_now() + timedelta(seconds=seconds)
