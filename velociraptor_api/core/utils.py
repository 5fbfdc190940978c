"""
Core Utilities.

Shared utility functions used across the client.
"""

from datetime import datetime, timezone


def from_unix_timestamp(seconds: int | float) -> datetime:
    """Convert seconds since the epoch to a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
