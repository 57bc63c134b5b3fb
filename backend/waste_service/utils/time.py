from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from waste_service.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_zone() -> tzinfo:
    return ZoneInfo(settings.timezone)


def to_local_naive(value: datetime, tz: tzinfo | None = None) -> datetime:
    """Express ``value`` as wall-clock time in the service zone.

    Naive input is assumed to already be local wall-clock time.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(tz or local_zone()).replace(tzinfo=None)
