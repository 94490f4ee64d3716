from datetime import datetime
from zoneinfo import ZoneInfo

from prodify.time_utils import day_range_for, now_local


def test_day_range_local_midnight_oslo() -> None:
    dt = datetime(2026, 2, 4, 23, 59, tzinfo=ZoneInfo("Europe/Oslo"))
    day = day_range_for(dt)
    assert day.start.strftime("%Y-%m-%d %H:%M") == "2026-02-04 00:00"
    assert day.end.strftime("%Y-%m-%d %H:%M") == "2026-02-05 00:00"
    assert day.start <= dt < day.end


def test_now_local_uses_zone() -> None:
    assert now_local("Asia/Tokyo").tzinfo == ZoneInfo("Asia/Tokyo")
