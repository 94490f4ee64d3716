from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class QuestKind(str, Enum):
    THREE_TASKS = "three_tasks"
    FIFTY_MINUTES_FOCUS = "fifty_minutes_focus"
    STREAK_MAINTAINED = "streak_maintained"


@dataclass(frozen=True)
class QuestTemplate:
    kind: QuestKind
    title: str
    description: str
    xp_reward: int
    gem_reward: int


@dataclass(frozen=True)
class StoreItem:
    id: str
    name: str
    price: int
    description: str


DAILY_QUESTS: tuple[QuestTemplate, ...] = (
    QuestTemplate(QuestKind.THREE_TASKS, "Complete 3 Tasks", "Finish at least 3 tasks from your list", 15, 10),
    QuestTemplate(QuestKind.FIFTY_MINUTES_FOCUS, "Focus for 50 Minutes", "Complete 2 Pomodoro sessions", 20, 15),
    QuestTemplate(QuestKind.STREAK_MAINTAINED, "Maintain Your Streak", "Log in and complete at least one activity", 10, 5),
)

QUEST_TASKS_REQUIRED = 3
QUEST_SESSIONS_REQUIRED = 2

STORE_ITEMS: tuple[StoreItem, ...] = (
    StoreItem("flame", "Flame Focus", 50, "Burn through tasks with fiery determination"),
    StoreItem("target", "Bullseye", 75, "Hit your goals with precision"),
    StoreItem("zap", "Lightning", 100, "Electrify your productivity"),
    StoreItem("heart", "Passion", 80, "Work with love and dedication"),
    StoreItem("star", "Superstar", 120, "Shine bright in all your tasks"),
    StoreItem("trophy", "Champion", 150, "Achieve victory in every challenge"),
    StoreItem("crown", "Royalty", 200, "Rule your productivity kingdom"),
)

TASK_PRIORITIES = ("low", "medium", "high")

FOCUS_MIN_MINUTES = 5
FOCUS_MAX_MINUTES = 60
FOCUS_STEP_MINUTES = 5
BREAK_MINUTES = 5

# processed_events.kind values
EVENT_TASK_COMPLETED = "task_completed"
EVENT_POMODORO_COMPLETED = "pomodoro_completed"
EVENT_QUEST_COMPLETED = "quest_completed"
EVENT_ITEM_PURCHASED = "item_purchased"
