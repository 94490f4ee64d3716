from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime

from prodify.db_models import (
    FocusSession,
    FriendRequest,
    Ledger,
    Profile,
    Quest,
    StudyMessage,
    StudyParticipant,
    StudySession,
    Task,
)
from prodify.rewards import level_from_xp


def _opt_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_ledger(row: sqlite3.Row) -> Ledger:
    try:
        items = json.loads(row["purchased_items_json"] or "[]")
    except json.JSONDecodeError:
        items = []
    xp = int(row["xp"])
    return Ledger(
        user_id=row["user_id"],
        xp=xp,
        level=level_from_xp(xp),
        gems=int(row["gems"]),
        current_streak=int(row["current_streak"]),
        last_activity_date=date.fromisoformat(row["last_activity_date"]) if row["last_activity_date"] else None,
        total_focus_time=int(row["total_focus_time"]),
        total_tasks_completed=int(row["total_tasks_completed"]),
        purchased_items=frozenset(str(i) for i in items if isinstance(i, str)),
        version=int(row["version"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_quest(row: sqlite3.Row) -> Quest:
    return Quest(
        id=row["id"],
        user_id=row["user_id"],
        quest_date=date.fromisoformat(row["quest_date"]),
        kind=row["kind"],
        title=row["title"],
        description=row["description"],
        xp_reward=int(row["xp_reward"]),
        gem_reward=int(row["gem_reward"]),
        completed=bool(row["completed"]),
        completed_at=_opt_dt(row["completed_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        description=row["description"],
        priority=row["priority"] or "medium",
        category=row["category"],
        due_date=_opt_dt(row["due_date"]),
        estimated_time=row["estimated_time"],
        completed=bool(row["completed"]),
        completed_at=_opt_dt(row["completed_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_focus_session(row: sqlite3.Row) -> FocusSession:
    return FocusSession(
        id=row["id"],
        user_id=row["user_id"],
        duration_minutes=int(row["duration_minutes"]),
        started_at=datetime.fromisoformat(row["started_at"]),
        ended_at=_opt_dt(row["ended_at"]),
        completed=bool(row["completed"]),
    )


def _row_to_profile(row: sqlite3.Row) -> Profile:
    return Profile(
        user_id=row["user_id"],
        username=row["username"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_friend_request(row: sqlite3.Row) -> FriendRequest:
    return FriendRequest(
        id=row["id"],
        sender_id=row["sender_id"],
        receiver_id=row["receiver_id"],
        status=row["status"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_study_session(row: sqlite3.Row) -> StudySession:
    return StudySession(
        id=row["id"],
        host_id=row["host_id"],
        name=row["name"],
        is_active=bool(row["is_active"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_participant(row: sqlite3.Row) -> StudyParticipant:
    return StudyParticipant(
        session_id=row["session_id"],
        user_id=row["user_id"],
        is_active=bool(row["is_active"]),
        joined_at=datetime.fromisoformat(row["joined_at"]),
        left_at=_opt_dt(row["left_at"]),
    )


def _row_to_study_message(row: sqlite3.Row) -> StudyMessage:
    return StudyMessage(
        id=row["id"],
        session_id=row["session_id"],
        user_id=row["user_id"],
        content=row["content"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )
