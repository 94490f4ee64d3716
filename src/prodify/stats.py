from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from prodify.db import Database
from prodify.rewards import level_progress
from prodify.time_utils import start_of_day

MAX_HISTORY_DAYS = 366


@dataclass(frozen=True)
class OverviewView:
    user_id: str
    xp: int
    level: int
    xp_current_level: int
    xp_next_level: int
    xp_progress_ratio: float
    gems: int
    current_streak: int
    last_activity_date: date | None
    total_focus_time: int
    total_tasks_completed: int
    purchased_items: list[str]
    quests_completed_today: int
    quests_total_today: int


def compute_overview(db: Database, user_id: str, now: datetime) -> OverviewView:
    ledger = db.get_ledger(user_id)
    lp = level_progress(ledger.xp)
    quests = db.list_daily_quests(user_id, now.date())
    return OverviewView(
        user_id=user_id,
        xp=ledger.xp,
        level=ledger.level,
        xp_current_level=lp.current_level_xp,
        xp_next_level=lp.next_level_xp,
        xp_progress_ratio=lp.progress_ratio,
        gems=ledger.gems,
        current_streak=ledger.current_streak,
        last_activity_date=ledger.last_activity_date,
        total_focus_time=ledger.total_focus_time,
        total_tasks_completed=ledger.total_tasks_completed,
        purchased_items=sorted(ledger.purchased_items),
        quests_completed_today=sum(1 for q in quests if q.completed),
        quests_total_today=len(quests),
    )


def focus_minutes_by_day(db: Database, user_id: str, now: datetime, days: int = 7) -> dict[date, int]:
    """Completed focus minutes per local day, oldest first, zero-filled."""
    span = max(1, min(int(days), MAX_HISTORY_DAYS))
    start = start_of_day(now) - timedelta(days=span - 1)
    end = start_of_day(now) + timedelta(days=1)
    totals: dict[date, int] = {(start + timedelta(days=i)).date(): 0 for i in range(span)}
    for session in db.list_focus_sessions(user_id, start, end):
        if not session.completed:
            continue
        day = session.started_at.date()
        if day in totals:
            totals[day] += session.duration_minutes
    return totals
