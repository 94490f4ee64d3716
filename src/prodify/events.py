from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from prodify.db_constants import (
    EVENT_ITEM_PURCHASED,
    EVENT_POMODORO_COMPLETED,
    EVENT_QUEST_COMPLETED,
    EVENT_TASK_COMPLETED,
)
from prodify.errors import ValidationError


@dataclass(frozen=True)
class TaskCompleted:
    source_id: str

    kind = EVENT_TASK_COMPLETED

    @property
    def event_key(self) -> str:
        return f"task:{self.source_id}"


@dataclass(frozen=True)
class PomodoroCompleted:
    source_id: str
    duration_minutes: int

    kind = EVENT_POMODORO_COMPLETED

    @property
    def event_key(self) -> str:
        return f"pomodoro:{self.source_id}"


@dataclass(frozen=True)
class QuestCompleted:
    quest_id: str
    xp_reward: int
    gem_reward: int

    kind = EVENT_QUEST_COMPLETED

    @property
    def event_key(self) -> str:
        return f"quest:{self.quest_id}"


@dataclass(frozen=True)
class ItemPurchased:
    item_id: str
    price: int

    kind = EVENT_ITEM_PURCHASED

    @property
    def event_key(self) -> None:
        # Ownership check makes purchases idempotent by item id.
        return None


DomainEvent = Union[TaskCompleted, PomodoroCompleted, QuestCompleted, ItemPurchased]


def _require_id(value: object, field: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")


def _require_int(value: object, field: str, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")


def validate_event(event: DomainEvent) -> None:
    if isinstance(event, TaskCompleted):
        _require_id(event.source_id, "source_id")
        return
    if isinstance(event, PomodoroCompleted):
        _require_id(event.source_id, "source_id")
        _require_int(event.duration_minutes, "duration_minutes", 1)
        return
    if isinstance(event, QuestCompleted):
        _require_id(event.quest_id, "quest_id")
        _require_int(event.xp_reward, "xp_reward", 0)
        _require_int(event.gem_reward, "gem_reward", 0)
        return
    if isinstance(event, ItemPurchased):
        _require_id(event.item_id, "item_id")
        _require_int(event.price, "price", 0)
        return
    raise ValidationError(f"Unsupported event: {type(event).__name__}")
