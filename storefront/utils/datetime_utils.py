"""
DateTime helpers for the store clock.

Timestamps are stored in UTC. Business rules that talk about "a day" or
"30 days" are evaluated in the store timezone (America/Lima, UTC-5, no DST).
"""
from datetime import datetime, timezone, timedelta
from typing import Optional

from storefront.core.config import STORE_UTC_OFFSET_HOURS

STORE_TZ = timezone(timedelta(hours=STORE_UTC_OFFSET_HOURS))


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    SQLite hands back naive datetimes for timezone-aware columns; those are
    UTC because that is what we write.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_store_tz(dt: Optional[datetime]) -> Optional[datetime]:
    utc_dt = as_utc(dt)
    if utc_dt is None:
        return None
    return utc_dt.astimezone(STORE_TZ)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_store() -> datetime:
    return datetime.now(STORE_TZ)


def store_year(dt: datetime) -> int:
    return to_store_tz(dt).year
