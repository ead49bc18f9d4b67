"""Timestamp helpers.

Timestamps are stored as ISO-8601 UTC strings with millisecond precision and
a ``Z`` suffix, e.g. ``2024-07-28T10:00:00.000Z``. That shape sorts
lexicographically in chronological order.
"""

from datetime import datetime, timezone


def to_iso(value: datetime) -> str:
    """Format a datetime as a UTC ISO string with milliseconds."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def utc_now_iso() -> str:
    """Current time as a UTC ISO string."""
    return to_iso(datetime.now(timezone.utc))


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``.

    Naive values are assumed to be UTC.

    Raises:
        ValueError: If the string is not a valid timestamp
    """
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def date_fragment(iso_value: str) -> str:
    """Return the ``YYYYMMDD`` fragment of an ISO timestamp."""
    return iso_value[:10].replace("-", "")
