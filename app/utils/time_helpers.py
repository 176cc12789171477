"""
Timestamp helpers. Everything is compared and stored in UTC.
"""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.errors import ValidationError


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def localize_to_utc(value: datetime, timezone: str) -> datetime:
    """
    Interpret a naive ``value`` as wall-clock time in ``timezone`` and
    convert it to UTC. Aware values are only converted.

    Raises:
        ValidationError: if ``timezone`` is not a known IANA zone name
    """
    try:
        zone = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone '{timezone}'", operation="localize") from e

    if value.tzinfo is None:
        value = value.replace(tzinfo=zone)
    return value.astimezone(UTC)
