"""Date manipulation utilities for collection periods"""

from datetime import datetime, timedelta, timezone
from typing import Tuple


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the store keeps naive UTC)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def day_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    """Half-open [start, end) range of the calendar day containing moment"""
    start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def month_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    """Half-open [start, end) range of the calendar month containing moment"""
    start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def parse_datetime(value: str | datetime) -> datetime:
    """
    Parse an ISO-8601 date or datetime into a naive UTC datetime.

    Raises:
        ValueError: If the value is not a valid ISO-8601 string
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
