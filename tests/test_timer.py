from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from prodify.errors import ValidationError
from prodify.timer import PomodoroTimer, TimerPhase, TimerState


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def test_focus_minutes_bounds() -> None:
    timer = PomodoroTimer()
    assert timer.remaining_seconds == 25 * 60
    timer.set_focus_minutes(45)
    assert timer.remaining_seconds == 45 * 60
    for bad in (0, 3, 62, 27):
        with pytest.raises(ValidationError):
            timer.set_focus_minutes(bad)


def test_run_pause_resume_complete() -> None:
    start = _dt(2026, 3, 2, 9)
    timer = PomodoroTimer(focus_minutes=10)
    assert timer.start(start) is True

    timer.pause(start + timedelta(minutes=4))
    assert timer.state is TimerState.PAUSED
    assert timer.remaining_seconds == 6 * 60

    # paused time does not count
    assert timer.tick(start + timedelta(minutes=30)) is TimerState.PAUSED
    assert timer.start(start + timedelta(minutes=30)) is False
    assert timer.tick(start + timedelta(minutes=33)) is TimerState.RUNNING
    assert timer.tick(start + timedelta(minutes=36)) is TimerState.COMPLETED
    assert timer.remaining_seconds == 0
    assert timer.progress_ratio == pytest.approx(1.0)


def test_completed_timer_must_advance() -> None:
    start = _dt(2026, 3, 2, 9)
    timer = PomodoroTimer(focus_minutes=5)
    timer.start(start)
    timer.tick(start + timedelta(minutes=5))
    with pytest.raises(ValidationError):
        timer.start(start + timedelta(minutes=6))

    assert timer.advance_phase() is TimerPhase.BREAK
    assert timer.state is TimerState.IDLE
    assert timer.remaining_seconds == 5 * 60
    assert timer.start(start + timedelta(minutes=6)) is False
    with pytest.raises(ValidationError):
        timer.set_focus_minutes(30)


def test_advance_requires_completion_and_reset_restores() -> None:
    start = _dt(2026, 3, 2, 9)
    timer = PomodoroTimer()
    with pytest.raises(ValidationError):
        timer.advance_phase()
    timer.start(start)
    timer.tick(start + timedelta(minutes=10))
    timer.reset()
    assert timer.state is TimerState.IDLE
    assert timer.remaining_seconds == 25 * 60
