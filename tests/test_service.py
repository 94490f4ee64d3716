from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from prodify import service
from prodify.db import Database
from prodify.errors import Conflict, DuplicateEvent, LedgerNotFound, ValidationError
from prodify.processor import EventProcessor
from prodify.quests import evaluate_daily_quests
from prodify.stats import compute_overview, focus_minutes_by_day


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def _setup(tmp_path) -> tuple[Database, EventProcessor]:
    db = Database(tmp_path / "app.db")
    service.provision_user(db, "u1", _dt(2026, 3, 2, 8))
    return db, EventProcessor(db)


def test_provision_creates_zeroed_ledger_and_profile(tmp_path) -> None:
    db, _ = _setup(tmp_path)
    ledger = db.get_ledger("u1")
    assert (ledger.xp, ledger.level, ledger.gems, ledger.current_streak) == (0, 1, 0, 0)
    assert ledger.purchased_items == frozenset()
    assert db.get_profile("u1") is not None
    with pytest.raises(ValidationError):
        service.provision_user(db, "  ", _dt(2026, 3, 2))


def test_create_task_validates_and_normalizes(tmp_path) -> None:
    db, _ = _setup(tmp_path)
    now = _dt(2026, 3, 2)
    task = service.create_task(db, "u1", "  Write report  ", now, priority="HIGH", category=" work ", estimated_time=30)
    assert task.title == "Write report"
    assert task.priority == "high"
    assert task.category == "work"
    assert task.estimated_time == 30
    assert task.completed is False

    with pytest.raises(ValidationError):
        service.create_task(db, "u1", "   ", now)
    with pytest.raises(ValidationError):
        service.create_task(db, "u1", "x", now, priority="urgent")
    with pytest.raises(ValidationError):
        service.create_task(db, "u1", "x", now, estimated_time=0)


def test_list_tasks_open_only(tmp_path) -> None:
    db, processor = _setup(tmp_path)
    first = service.create_task(db, "u1", "first", _dt(2026, 3, 2, 9))
    second = service.create_task(db, "u1", "second", _dt(2026, 3, 2, 10))
    service.complete_task(db, processor, "u1", first.id, _dt(2026, 3, 2, 11))

    assert [t.id for t in db.list_tasks("u1")] == [second.id, first.id]
    assert [t.id for t in db.list_tasks("u1", open_only=True)] == [second.id]


def test_complete_task_rewards_and_rejects_repeat(tmp_path) -> None:
    db, processor = _setup(tmp_path)
    now = _dt(2026, 3, 2)
    task = service.create_task(db, "u1", "read chapter", now)
    outcome = service.complete_task(db, processor, "u1", task.id, now)
    assert outcome.delta.xp == 10
    assert outcome.delta.gems == 2

    service.reopen_task(db, "u1", task.id, _dt(2026, 3, 2, 11))
    with pytest.raises(DuplicateEvent):
        service.complete_task(db, processor, "u1", task.id, _dt(2026, 3, 2, 12))
    assert db.get_task(task.id).completed is True
    assert db.get_ledger("u1").total_tasks_completed == 1


def test_complete_task_checks_owner_and_ledger(tmp_path) -> None:
    db, processor = _setup(tmp_path)
    now = _dt(2026, 3, 2)
    task = service.create_task(db, "u1", "mine", now)
    with pytest.raises(ValidationError):
        service.complete_task(db, processor, "u2", task.id, now)

    orphan = service.create_task(db, "nobody", "no ledger", now)
    with pytest.raises(LedgerNotFound):
        service.complete_task(db, processor, "nobody", orphan.id, now)
    assert db.get_task(orphan.id).completed is False


def test_delete_task(tmp_path) -> None:
    db, _ = _setup(tmp_path)
    task = service.create_task(db, "u1", "temp", _dt(2026, 3, 2))
    with pytest.raises(ValidationError):
        service.delete_task(db, "u2", task.id)
    service.delete_task(db, "u1", task.id)
    assert db.get_task(task.id) is None


def test_focus_session_flow(tmp_path) -> None:
    db, processor = _setup(tmp_path)
    with pytest.raises(ValidationError):
        service.start_focus_session(db, "u1", 7, _dt(2026, 3, 2))
    with pytest.raises(ValidationError):
        service.start_focus_session(db, "u1", 65, _dt(2026, 3, 2))

    session = service.start_focus_session(db, "u1", 30, _dt(2026, 3, 2, 9))
    assert session.completed is False
    outcome = service.complete_focus_session(db, processor, "u1", session.id, _dt(2026, 3, 2, 9, 30))
    assert outcome.delta.xp == 25
    assert outcome.delta.focus_minutes == 30
    assert db.get_focus_session(session.id).completed is True

    ledger = db.get_ledger("u1")
    assert ledger.total_focus_time == 30
    assert ledger.current_streak == 1
    assert ledger.last_activity_date == date(2026, 3, 2)

    with pytest.raises(DuplicateEvent):
        service.complete_focus_session(db, processor, "u1", session.id, _dt(2026, 3, 2, 9, 31))


def test_focus_minutes_by_day_counts_completed_sessions(tmp_path) -> None:
    db, processor = _setup(tmp_path)
    done = service.start_focus_session(db, "u1", 25, _dt(2026, 3, 1, 9))
    service.complete_focus_session(db, processor, "u1", done.id, _dt(2026, 3, 1, 9, 25))
    service.start_focus_session(db, "u1", 50, _dt(2026, 3, 2, 9))

    totals = focus_minutes_by_day(db, "u1", _dt(2026, 3, 2, 18), days=3)
    assert list(totals.keys()) == [date(2026, 2, 28), date(2026, 3, 1), date(2026, 3, 2)]
    assert totals[date(2026, 3, 1)] == 25
    assert totals[date(2026, 3, 2)] == 0


def test_overview(tmp_path) -> None:
    db, processor = _setup(tmp_path)
    now = _dt(2026, 3, 2)
    task = service.create_task(db, "u1", "one", now)
    service.complete_task(db, processor, "u1", task.id, now)

    view = compute_overview(db, "u1", now)
    assert view.xp == 20
    assert view.level == 1
    assert view.xp_current_level == 20
    assert view.gems == 7
    assert view.total_tasks_completed == 1
    assert view.quests_total_today == 3
    assert view.quests_completed_today == 1


def test_focus_minutes_by_day_caps_history(tmp_path) -> None:
    db, _ = _setup(tmp_path)
    totals = focus_minutes_by_day(db, "u1", _dt(2026, 3, 2), days=1_000_000_000)
    assert len(totals) == 366
    assert max(totals) == date(2026, 3, 2)


def test_reward_survives_failed_quest_follow_up(tmp_path, monkeypatch) -> None:
    db, processor = _setup(tmp_path)
    now = _dt(2026, 3, 2)
    task = service.create_task(db, "u1", "ship it", now)

    def _conflicting(*args, **kwargs):
        raise Conflict("Your progress was updated elsewhere, please retry")

    monkeypatch.setattr(service, "evaluate_daily_quests", _conflicting)
    outcome = service.complete_task(db, processor, "u1", task.id, now)
    assert outcome.delta.xp == 10
    assert outcome.quests_completed == []
    assert db.get_ledger("u1").xp == 10

    monkeypatch.undo()
    completed = evaluate_daily_quests(db, processor, "u1", _dt(2026, 3, 2, 11))
    assert [q.kind for q in completed] == ["streak_maintained"]
