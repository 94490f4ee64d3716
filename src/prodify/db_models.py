from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class Ledger:
    user_id: str
    xp: int
    level: int
    gems: int
    current_streak: int
    last_activity_date: date | None
    total_focus_time: int
    total_tasks_completed: int
    purchased_items: frozenset[str]
    version: int
    updated_at: datetime


@dataclass(frozen=True)
class Quest:
    id: int
    user_id: str
    quest_date: date
    kind: str
    title: str
    description: str
    xp_reward: int
    gem_reward: int
    completed: bool
    completed_at: datetime | None
    created_at: datetime


@dataclass(frozen=True)
class Task:
    id: int
    user_id: str
    title: str
    description: str | None
    priority: str
    category: str | None
    due_date: datetime | None
    estimated_time: int | None
    completed: bool
    completed_at: datetime | None
    created_at: datetime


@dataclass(frozen=True)
class FocusSession:
    id: int
    user_id: str
    duration_minutes: int
    started_at: datetime
    ended_at: datetime | None
    completed: bool


@dataclass(frozen=True)
class Profile:
    user_id: str
    username: str | None
    created_at: datetime


@dataclass(frozen=True)
class FriendRequest:
    id: int
    sender_id: str
    receiver_id: str
    status: str
    created_at: datetime


@dataclass(frozen=True)
class StudySession:
    id: int
    host_id: str
    name: str
    is_active: bool
    created_at: datetime


@dataclass(frozen=True)
class StudyParticipant:
    session_id: int
    user_id: str
    is_active: bool
    joined_at: datetime
    left_at: datetime | None


@dataclass(frozen=True)
class StudyMessage:
    id: int
    session_id: int
    user_id: str
    content: str
    created_at: datetime
