from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime

from prodify.db import Database, Ledger, Quest
from prodify.db_constants import (
    EVENT_POMODORO_COMPLETED,
    EVENT_TASK_COMPLETED,
    QUEST_SESSIONS_REQUIRED,
    QUEST_TASKS_REQUIRED,
    QuestKind,
)
from prodify.errors import DuplicateEvent, ValidationError
from prodify.events import QuestCompleted
from prodify.processor import EventProcessor
from prodify.time_utils import day_range_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivityCounts:
    tasks_completed: int
    sessions_completed: int

    @property
    def any_activity(self) -> bool:
        return self.tasks_completed > 0 or self.sessions_completed > 0


@dataclass(frozen=True)
class QuestProgress:
    quest: Quest
    current: int
    target: int
    unit: str
    complete: bool


def activity_counts(db: Database, user_id: str, now: datetime) -> ActivityCounts:
    window = day_range_for(now)
    return ActivityCounts(
        tasks_completed=db.count_events(user_id, EVENT_TASK_COMPLETED, window.start, window.end),
        sessions_completed=db.count_events(user_id, EVENT_POMODORO_COMPLETED, window.start, window.end),
    )


def evaluate_quest_progress(quest: Quest, counts: ActivityCounts, ledger: Ledger) -> QuestProgress:
    try:
        kind = QuestKind(quest.kind)
    except ValueError:
        return QuestProgress(quest, 0, 1, "", False)

    if kind is QuestKind.THREE_TASKS:
        current = counts.tasks_completed
        return QuestProgress(quest, current, QUEST_TASKS_REQUIRED, "tasks", current >= QUEST_TASKS_REQUIRED)

    if kind is QuestKind.FIFTY_MINUTES_FOCUS:
        current = counts.sessions_completed
        return QuestProgress(quest, current, QUEST_SESSIONS_REQUIRED, "sessions", current >= QUEST_SESSIONS_REQUIRED)

    maintained = ledger.last_activity_date == quest.quest_date or counts.any_activity
    return QuestProgress(quest, 1 if maintained else 0, 1, "days", maintained)


def list_quest_progress(db: Database, user_id: str, now: datetime) -> list[QuestProgress]:
    ledger = db.get_ledger(user_id)
    quests = db.ensure_daily_quests(user_id, now.date(), now)
    counts = activity_counts(db, user_id, now)
    return [evaluate_quest_progress(q, counts, ledger) for q in quests]


def _reward_quest(db: Database, processor: EventProcessor, user_id: str, quest: Quest, now: datetime) -> bool:
    event = QuestCompleted(quest_id=str(quest.id), xp_reward=quest.xp_reward, gem_reward=quest.gem_reward)
    try:
        processor.process(user_id, event, now)
        rewarded = True
    except DuplicateEvent:
        # Reward landed on an earlier run that stopped before setting the flag.
        logger.info("Quest %s already rewarded for user %s, repairing completed flag", quest.id, user_id)
        rewarded = False
    db.mark_quest_completed(quest.id, now)
    return rewarded


def evaluate_daily_quests(db: Database, processor: EventProcessor, user_id: str, now: datetime) -> list[Quest]:
    """Complete and reward every quest of ``now``'s day whose goal is met.

    Safe to call repeatedly: a quest rewards at most once because the reward
    carries the quest id as its replay key, and the completed flag only moves
    from incomplete to complete. Returns only the quests rewarded by this call.
    """
    ledger = db.get_ledger(user_id)
    quests = db.ensure_daily_quests(user_id, now.date(), now)
    pending = [q for q in quests if not q.completed]
    if not pending:
        return []

    counts = activity_counts(db, user_id, now)
    newly_completed: list[Quest] = []
    for quest in pending:
        progress = evaluate_quest_progress(quest, counts, ledger)
        if not progress.complete:
            continue
        if _reward_quest(db, processor, user_id, quest, now):
            newly_completed.append(replace(quest, completed=True, completed_at=now))
    return newly_completed


def claim_quest(db: Database, processor: EventProcessor, user_id: str, quest_id: int, now: datetime) -> Quest:
    quest = db.get_quest(quest_id)
    if quest is None or quest.user_id != user_id:
        raise ValidationError("Quest not found")
    if quest.completed:
        return quest
    if quest.quest_date != now.date():
        raise ValidationError("This quest has expired")

    progress = evaluate_quest_progress(quest, activity_counts(db, user_id, now), db.get_ledger(user_id))
    if not progress.complete:
        raise ValidationError(f"Quest not finished yet: {progress.current}/{progress.target} {progress.unit}")

    _reward_quest(db, processor, user_id, quest, now)
    refreshed = db.get_quest(quest_id)
    assert refreshed is not None
    return refreshed
