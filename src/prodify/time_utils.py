from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

DEFAULT_TZ = "UTC"


def now_local(tz_name: str = DEFAULT_TZ) -> datetime:
    return datetime.now(tz=ZoneInfo(tz_name))


@dataclass(frozen=True)
class DayRange:
    start: datetime
    end: datetime


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def day_range_for(dt: datetime) -> DayRange:
    """[local midnight, local midnight + 24h) around ``dt``."""
    start = start_of_day(dt)
    return DayRange(start=start, end=start + timedelta(days=1))
