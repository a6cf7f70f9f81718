"""UTC datetime utilities.

Every timestamp the lockout engine handles is a **naive** UTC datetime (no
tzinfo), compatible with SQLAlchemy ``DateTime`` columns on both SQLite and
PostgreSQL without ``timezone=True``.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def coerce_utc(value: object) -> datetime | None:
    """Normalize a stored timestamp into a naive UTC datetime.

    Accepts aware or naive datetimes, ISO-8601 strings and epoch milliseconds
    (the encoding used by older records). Returns None for empty
    values and raises ValueError for anything else.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(UTC).replace(tzinfo=None)
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return coerce_utc(datetime.fromisoformat(text))
    if isinstance(value, bool):
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value / 1000, UTC).replace(tzinfo=None)
    raise ValueError(f"Unsupported timestamp value: {value!r}")
