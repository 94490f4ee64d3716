from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from prodify.db_models import Ledger
from prodify.errors import AlreadyOwned, InsufficientFunds
from prodify.events import ItemPurchased, PomodoroCompleted, QuestCompleted, TaskCompleted
from prodify.rewards import apply_event, level_from_xp, level_progress, next_streak


def _ledger(**changes: object) -> Ledger:
    base = Ledger(
        user_id="u1",
        xp=0,
        level=1,
        gems=0,
        current_streak=0,
        last_activity_date=None,
        total_focus_time=0,
        total_tasks_completed=0,
        purchased_items=frozenset(),
        version=1,
        updated_at=datetime(2026, 3, 2, 9, 0, tzinfo=ZoneInfo("Europe/Oslo")),
    )
    return replace(base, **changes)


def test_level_thresholds() -> None:
    assert level_from_xp(0) == 1
    assert level_from_xp(99) == 1
    assert level_from_xp(100) == 2
    assert level_from_xp(250) == 3


def test_level_progress_is_relative_to_current_level() -> None:
    lp = level_progress(250)
    assert lp.level == 3
    assert lp.current_level_xp == 50
    assert lp.next_level_xp == 100
    assert lp.remaining_to_next == 50
    assert lp.progress_ratio == pytest.approx(0.5)


def test_task_completion_on_fresh_ledger() -> None:
    updated, delta = apply_event(_ledger(), TaskCompleted(source_id="1"), date(2026, 3, 2))
    assert updated.xp == 10
    assert updated.gems == 2
    assert updated.total_tasks_completed == 1
    assert updated.current_streak == 0
    assert updated.last_activity_date is None
    assert delta.xp == 10 and delta.gems == 2
    assert delta.tasks_completed == 1


def test_pomodoro_extends_streak_once_per_day() -> None:
    ledger = _ledger(current_streak=4, last_activity_date=date(2026, 3, 1))
    first, delta = apply_event(ledger, PomodoroCompleted(source_id="s1", duration_minutes=25), date(2026, 3, 2))
    assert first.current_streak == 5
    assert first.last_activity_date == date(2026, 3, 2)
    assert first.total_focus_time == 25
    assert first.xp == 25 and first.gems == 5
    assert delta.streak == 5

    second, _ = apply_event(first, PomodoroCompleted(source_id="s2", duration_minutes=25), date(2026, 3, 2))
    assert second.current_streak == 5
    assert second.total_focus_time == 50


def test_streak_resets_after_gap() -> None:
    assert next_streak(7, date(2026, 2, 27), date(2026, 3, 2)) == 1
    assert next_streak(0, None, date(2026, 3, 2)) == 1


def test_quest_reward_can_level_up() -> None:
    updated, delta = apply_event(_ledger(xp=90), QuestCompleted(quest_id="7", xp_reward=15, gem_reward=10), date(2026, 3, 2))
    assert updated.xp == 105
    assert updated.level == 2
    assert updated.gems == 10
    assert delta.leveled_up is True


def test_purchase_deducts_price_and_records_item() -> None:
    updated, delta = apply_event(_ledger(gems=60), ItemPurchased(item_id="flame", price=50), date(2026, 3, 2))
    assert updated.gems == 10
    assert "flame" in updated.purchased_items
    assert delta.gems == -50
    assert delta.item_id == "flame"


def test_purchase_without_enough_gems_leaves_ledger_untouched() -> None:
    ledger = _ledger(gems=10)
    with pytest.raises(InsufficientFunds):
        apply_event(ledger, ItemPurchased(item_id="flame", price=50), date(2026, 3, 2))
    assert ledger.gems == 10
    assert ledger.purchased_items == frozenset()


def test_owned_item_is_reported_before_funds() -> None:
    ledger = _ledger(gems=0, purchased_items=frozenset({"flame"}))
    with pytest.raises(AlreadyOwned):
        apply_event(ledger, ItemPurchased(item_id="flame", price=50), date(2026, 3, 2))


def test_level_always_matches_xp_over_mixed_events() -> None:
    ledger = _ledger()
    events = [
        TaskCompleted(source_id="1"),
        PomodoroCompleted(source_id="a", duration_minutes=25),
        QuestCompleted(quest_id="q1", xp_reward=20, gem_reward=15),
        TaskCompleted(source_id="2"),
        PomodoroCompleted(source_id="b", duration_minutes=50),
        QuestCompleted(quest_id="q2", xp_reward=15, gem_reward=10),
    ]
    for event in events:
        ledger, _ = apply_event(ledger, event, date(2026, 3, 2))
        assert ledger.level == ledger.xp // 100 + 1
        assert ledger.gems >= 0
    assert ledger.xp == 105
    assert ledger.level == 2
