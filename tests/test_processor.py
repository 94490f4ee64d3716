from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from prodify.db import Database
from prodify.errors import Conflict, DuplicateEvent, InsufficientFunds, LedgerNotFound, ValidationError
from prodify.events import ItemPurchased, PomodoroCompleted, QuestCompleted, TaskCompleted
from prodify.processor import EventProcessor


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def _setup(tmp_path) -> tuple[Database, EventProcessor]:
    db = Database(tmp_path / "app.db")
    db.create_ledger("u1", _dt(2026, 3, 2, 8))
    return db, EventProcessor(db)


def test_unprovisioned_user_is_rejected(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    processor = EventProcessor(db)
    with pytest.raises(LedgerNotFound):
        processor.process("ghost", TaskCompleted(source_id="1"), _dt(2026, 3, 2))


def test_create_ledger_is_idempotent(tmp_path) -> None:
    db, processor = _setup(tmp_path)
    processor.process("u1", TaskCompleted(source_id="1"), _dt(2026, 3, 2))
    again = db.create_ledger("u1", _dt(2026, 3, 2, 11))
    assert again.xp == 10
    assert again.version == 2


def test_same_task_rewards_once(tmp_path) -> None:
    db, processor = _setup(tmp_path)
    now = _dt(2026, 3, 2)
    processor.process("u1", TaskCompleted(source_id="1"), now)
    with pytest.raises(DuplicateEvent):
        processor.process("u1", TaskCompleted(source_id="1"), now)
    ledger = db.get_ledger("u1")
    assert ledger.xp == 10
    assert ledger.gems == 2
    assert ledger.total_tasks_completed == 1


def test_replay_marker_rolls_back_ledger_write(tmp_path) -> None:
    db, processor = _setup(tmp_path)
    now = _dt(2026, 3, 2)
    processor.process("u1", TaskCompleted(source_id="1"), now)
    current = db.get_ledger("u1")

    boosted = replace(current, xp=current.xp + 10, gems=current.gems + 2)
    with pytest.raises(DuplicateEvent):
        db.save_ledger(boosted, current.version, now, event_key="task:1", event_kind="task_completed")

    after = db.get_ledger("u1")
    assert after.xp == current.xp
    assert after.version == current.version


def test_stale_read_is_retried_without_losing_updates(tmp_path, monkeypatch) -> None:
    db, processor = _setup(tmp_path)
    now = _dt(2026, 3, 2)
    stale = db.get_ledger("u1")
    processor.process("u1", TaskCompleted(source_id="a"), now)

    real_get = db.get_ledger
    calls: list[str] = []

    def _get_ledger(user_id: str):
        calls.append(user_id)
        if len(calls) == 1:
            return stale
        return real_get(user_id)

    monkeypatch.setattr(db, "get_ledger", _get_ledger)
    delta = processor.process("u1", TaskCompleted(source_id="b"), now)

    assert len(calls) == 2
    assert delta.xp == 10
    ledger = real_get("u1")
    assert ledger.xp == 20
    assert ledger.total_tasks_completed == 2
    assert ledger.version == 3


def test_conflict_surfaces_after_bounded_retries(tmp_path, monkeypatch) -> None:
    db, processor = _setup(tmp_path)
    now = _dt(2026, 3, 2)
    stale = db.get_ledger("u1")
    processor.process("u1", TaskCompleted(source_id="a"), now)

    calls: list[str] = []

    def _always_stale(user_id: str):
        calls.append(user_id)
        return stale

    real_get = db.get_ledger
    monkeypatch.setattr(db, "get_ledger", _always_stale)
    with pytest.raises(Conflict) as exc:
        processor.process("u1", TaskCompleted(source_id="b"), now)

    assert exc.value.retryable is True
    assert len(calls) == 3
    assert real_get("u1").xp == 10
    assert not db.has_processed_event("u1", "task:b")


def test_failed_purchase_writes_nothing(tmp_path) -> None:
    db, processor = _setup(tmp_path)
    before = db.get_ledger("u1")
    with pytest.raises(InsufficientFunds):
        processor.process("u1", ItemPurchased(item_id="flame", price=50), _dt(2026, 3, 2))
    after = db.get_ledger("u1")
    assert after == before


def test_invalid_event_is_rejected_before_any_read(tmp_path) -> None:
    _, processor = _setup(tmp_path)
    with pytest.raises(ValidationError):
        processor.process("u1", PomodoroCompleted(source_id="s1", duration_minutes=0), _dt(2026, 3, 2))
    with pytest.raises(ValidationError):
        processor.process("u1", QuestCompleted(quest_id="", xp_reward=10, gem_reward=5), _dt(2026, 3, 2))


def test_count_events_is_scoped_to_local_day(tmp_path) -> None:
    db, processor = _setup(tmp_path)
    processor.process("u1", TaskCompleted(source_id="1"), _dt(2026, 3, 1, 23, 30))
    processor.process("u1", TaskCompleted(source_id="2"), _dt(2026, 3, 2, 0, 10))
    processor.process("u1", TaskCompleted(source_id="3"), _dt(2026, 3, 2, 18))
    assert db.count_events("u1", "task_completed", _dt(2026, 3, 2, 0), _dt(2026, 3, 3, 0)) == 2
