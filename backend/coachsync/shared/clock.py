"""Time helpers. All stored datetimes are naive UTC."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as naive UTC (matches the DateTime columns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware or naive datetime to naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_iso8601(value: str) -> datetime:
    """Parse API timestamps such as ``2024-05-01T06:30:00Z`` to naive UTC."""
    return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def to_unix(value: datetime) -> int:
    """Naive-UTC datetime to a unix timestamp."""
    return int(value.replace(tzinfo=timezone.utc).timestamp())
