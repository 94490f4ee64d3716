from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from prodify.assistant import AssistantClient, AssistantReply
from prodify.db import Database, FocusSession, Ledger, Quest, Task
from prodify.db_constants import TASK_PRIORITIES
from prodify.errors import ProdifyError, ValidationError
from prodify.events import PomodoroCompleted, TaskCompleted
from prodify.processor import EventProcessor
from prodify.quests import evaluate_daily_quests
from prodify.rewards import AppliedDelta
from prodify.timer import validate_focus_minutes

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200


@dataclass(frozen=True)
class RewardOutcome:
    delta: AppliedDelta
    quests_completed: list[Quest]


def provision_user(db: Database, user_id: str, now: datetime) -> Ledger:
    if not user_id or not user_id.strip():
        raise ValidationError("user_id is required")
    db.upsert_profile(user_id, now)
    return db.create_ledger(user_id, now)


def normalize_priority(raw: str | None) -> str:
    value = (raw or "medium").strip().lower()
    if value not in TASK_PRIORITIES:
        raise ValidationError(f"Priority must be one of: {', '.join(TASK_PRIORITIES)}")
    return value


def create_task(
    db: Database,
    user_id: str,
    title: str,
    now: datetime,
    description: str | None = None,
    priority: str | None = None,
    category: str | None = None,
    due_date: datetime | None = None,
    estimated_time: int | None = None,
) -> Task:
    clean_title = (title or "").strip()
    if not clean_title:
        raise ValidationError("Task title cannot be empty")
    if len(clean_title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Task title must be at most {MAX_TITLE_LENGTH} characters")
    if estimated_time is not None and estimated_time <= 0:
        raise ValidationError("Estimated time must be positive")

    return db.add_task(
        user_id=user_id,
        title=clean_title,
        now=now,
        description=(description or "").strip() or None,
        priority=normalize_priority(priority),
        category=(category or "").strip() or None,
        due_date=due_date,
        estimated_time=estimated_time,
    )


def _follow_up_quests(db: Database, processor: EventProcessor, user_id: str, now: datetime) -> list[Quest]:
    # The activity reward is already committed; quests are picked up by the next evaluation.
    try:
        return evaluate_daily_quests(db, processor, user_id, now)
    except ProdifyError as exc:
        logger.warning("Quest evaluation after reward failed for user=%s kind=%s: %s", user_id, exc.kind, exc.message)
        return []


def _owned_task(db: Database, user_id: str, task_id: int) -> Task:
    task = db.get_task(task_id)
    if task is None or task.user_id != user_id:
        raise ValidationError("Task not found")
    return task


def complete_task(db: Database, processor: EventProcessor, user_id: str, task_id: int, now: datetime) -> RewardOutcome:
    task = _owned_task(db, user_id, task_id)
    db.get_ledger(user_id)
    db.set_task_completed(task.id, True, now)
    delta = processor.process(user_id, TaskCompleted(source_id=str(task.id)), now)
    quests = _follow_up_quests(db, processor, user_id, now)
    if quests:
        logger.info("Task %s completed %s quest(s) for user=%s", task.id, len(quests), user_id)
    return RewardOutcome(delta=delta, quests_completed=quests)


def reopen_task(db: Database, user_id: str, task_id: int, now: datetime) -> Task:
    task = _owned_task(db, user_id, task_id)
    db.set_task_completed(task.id, False, now)
    reopened = db.get_task(task.id)
    assert reopened is not None
    return reopened


def delete_task(db: Database, user_id: str, task_id: int) -> None:
    if not db.delete_task(user_id, task_id):
        raise ValidationError("Task not found")


def start_focus_session(db: Database, user_id: str, duration_minutes: int, now: datetime) -> FocusSession:
    validate_focus_minutes(duration_minutes)
    db.get_ledger(user_id)
    return db.start_focus_session(user_id, duration_minutes, now)


def complete_focus_session(
    db: Database,
    processor: EventProcessor,
    user_id: str,
    session_id: int,
    now: datetime,
) -> RewardOutcome:
    session = db.get_focus_session(session_id)
    if session is None or session.user_id != user_id:
        raise ValidationError("Focus session not found")

    event = PomodoroCompleted(source_id=str(session.id), duration_minutes=session.duration_minutes)
    delta = processor.process(user_id, event, now)
    db.mark_focus_session_completed(session.id, now)
    quests = _follow_up_quests(db, processor, user_id, now)
    return RewardOutcome(delta=delta, quests_completed=quests)


@dataclass(frozen=True)
class AssistantOutcome:
    reply: AssistantReply
    created_task: Task | None = None


def ask_assistant(
    db: Database,
    assistant: AssistantClient,
    user_id: str,
    messages: list[dict[str, str]],
    mode: str,
    now: datetime,
) -> AssistantOutcome:
    db.get_ledger(user_id)
    open_tasks = db.list_tasks(user_id, open_only=True) if mode == "prioritize" else None
    reply = assistant.send(messages, mode, user_id, open_tasks=open_tasks)
    if reply.task is None:
        return AssistantOutcome(reply=reply)

    draft = reply.task
    task = create_task(
        db,
        user_id,
        draft.title,
        now,
        description=draft.description,
        priority=draft.priority,
        category=draft.category,
        due_date=draft.due_date,
        estimated_time=draft.estimated_time,
    )
    logger.info("Assistant created task %s for user=%s", task.id, user_id)
    return AssistantOutcome(reply=reply, created_task=task)
