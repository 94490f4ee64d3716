from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta

from prodify.db_models import Ledger
from prodify.errors import AlreadyOwned, InsufficientFunds, ValidationError
from prodify.events import DomainEvent, ItemPurchased, PomodoroCompleted, QuestCompleted, TaskCompleted

XP_PER_LEVEL = 100

TASK_XP = 10
TASK_GEMS = 2
POMODORO_XP = 25
POMODORO_GEMS = 5


@dataclass(frozen=True)
class LevelProgress:
    level: int
    current_level_xp: int
    next_level_xp: int
    progress_ratio: float
    remaining_to_next: int


@dataclass(frozen=True)
class AppliedDelta:
    event_kind: str
    xp: int
    gems: int
    focus_minutes: int
    tasks_completed: int
    level_before: int
    level_after: int
    streak: int
    item_id: str | None = None

    @property
    def leveled_up(self) -> bool:
        return self.level_after > self.level_before


def level_from_xp(total_xp: int) -> int:
    return max(0, total_xp) // XP_PER_LEVEL + 1


def level_progress(total_xp: int) -> LevelProgress:
    """Display values for the progress bar. Nothing here is persisted."""
    xp = max(0, total_xp)
    level = level_from_xp(xp)
    floor = (level - 1) * XP_PER_LEVEL
    current = xp - floor
    return LevelProgress(
        level=level,
        current_level_xp=current,
        next_level_xp=XP_PER_LEVEL,
        progress_ratio=current / XP_PER_LEVEL,
        remaining_to_next=XP_PER_LEVEL - current,
    )


def next_streak(current_streak: int, last_activity_date: date | None, today: date) -> int:
    if last_activity_date == today:
        return current_streak
    if last_activity_date == today - timedelta(days=1):
        return current_streak + 1
    return 1


def _grant(ledger: Ledger, xp: int, gems: int, **changes: object) -> Ledger:
    new_xp = ledger.xp + max(0, xp)
    return replace(
        ledger,
        xp=new_xp,
        level=level_from_xp(new_xp),
        gems=ledger.gems + max(0, gems),
        **changes,
    )


def apply_event(ledger: Ledger, event: DomainEvent, today: date) -> tuple[Ledger, AppliedDelta]:
    """Compute the ledger after one event.

    Pure: the input ledger is never modified and nothing is written. Purchase
    failures raise before any state is produced, so a failed event leaves the
    caller's ledger exactly as it was.
    """
    if isinstance(event, TaskCompleted):
        updated = _grant(
            ledger,
            TASK_XP,
            TASK_GEMS,
            total_tasks_completed=ledger.total_tasks_completed + 1,
        )
        return updated, _delta(ledger, updated, event.kind)

    if isinstance(event, PomodoroCompleted):
        updated = _grant(
            ledger,
            POMODORO_XP,
            POMODORO_GEMS,
            total_focus_time=ledger.total_focus_time + max(0, event.duration_minutes),
            current_streak=next_streak(ledger.current_streak, ledger.last_activity_date, today),
            last_activity_date=today,
        )
        return updated, _delta(ledger, updated, event.kind)

    if isinstance(event, QuestCompleted):
        updated = _grant(ledger, event.xp_reward, event.gem_reward)
        return updated, _delta(ledger, updated, event.kind)

    if isinstance(event, ItemPurchased):
        if event.item_id in ledger.purchased_items:
            raise AlreadyOwned(f"You already own {event.item_id}")
        if ledger.gems < event.price:
            raise InsufficientFunds(f"Not enough gems: need {event.price}, have {ledger.gems}")
        updated = replace(
            ledger,
            gems=ledger.gems - event.price,
            purchased_items=ledger.purchased_items | {event.item_id},
        )
        return updated, _delta(ledger, updated, event.kind, item_id=event.item_id)

    raise ValidationError(f"Unsupported event: {type(event).__name__}")


def _delta(before: Ledger, after: Ledger, kind: str, item_id: str | None = None) -> AppliedDelta:
    return AppliedDelta(
        event_kind=kind,
        xp=after.xp - before.xp,
        gems=after.gems - before.gems,
        focus_minutes=after.total_focus_time - before.total_focus_time,
        tasks_completed=after.total_tasks_completed - before.total_tasks_completed,
        level_before=before.level,
        level_after=after.level,
        streak=after.current_streak,
        item_id=item_id,
    )
