from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from prodify.db_constants import BREAK_MINUTES, FOCUS_MAX_MINUTES, FOCUS_MIN_MINUTES, FOCUS_STEP_MINUTES
from prodify.errors import ValidationError

DEFAULT_FOCUS_MINUTES = 25


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class TimerPhase(str, Enum):
    FOCUS = "focus"
    BREAK = "break"


def validate_focus_minutes(minutes: int) -> int:
    if minutes < FOCUS_MIN_MINUTES or minutes > FOCUS_MAX_MINUTES or minutes % FOCUS_STEP_MINUTES:
        raise ValidationError(
            f"Focus time must be {FOCUS_MIN_MINUTES}-{FOCUS_MAX_MINUTES} minutes in steps of {FOCUS_STEP_MINUTES}"
        )
    return minutes


@dataclass
class PomodoroTimer:
    """Local countdown owned by the caller.

    Idle -> Running -> Paused -> Running -> Completed, then ``advance_phase``
    switches between focus and break and returns to Idle. The timer only moves
    when ``tick`` is polled with the current wall-clock time and never talks
    to storage; the caller records the focus session when a focus phase
    completes.
    """

    focus_minutes: int = DEFAULT_FOCUS_MINUTES
    break_minutes: int = BREAK_MINUTES
    state: TimerState = TimerState.IDLE
    phase: TimerPhase = TimerPhase.FOCUS
    remaining_seconds: float = field(default=0.0)
    _last_tick: datetime | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        validate_focus_minutes(self.focus_minutes)
        if self.remaining_seconds <= 0:
            self.remaining_seconds = self._phase_seconds()

    def _phase_seconds(self) -> float:
        minutes = self.focus_minutes if self.phase is TimerPhase.FOCUS else self.break_minutes
        return float(minutes * 60)

    def set_focus_minutes(self, minutes: int) -> None:
        if self.state is not TimerState.IDLE or self.phase is not TimerPhase.FOCUS:
            raise ValidationError("Focus time can only change while the timer is idle")
        self.focus_minutes = validate_focus_minutes(minutes)
        self.remaining_seconds = self._phase_seconds()

    def start(self, now: datetime) -> bool:
        """Returns True when this starts a fresh focus phase."""
        if self.state is TimerState.RUNNING:
            return False
        if self.state is TimerState.COMPLETED:
            raise ValidationError("Timer finished; advance to the next phase first")
        fresh = self.state is TimerState.IDLE and self.phase is TimerPhase.FOCUS
        self.state = TimerState.RUNNING
        self._last_tick = now
        return fresh

    def pause(self, now: datetime) -> None:
        if self.state is not TimerState.RUNNING:
            return
        self.tick(now)
        if self.state is TimerState.RUNNING:
            self.state = TimerState.PAUSED
            self._last_tick = None

    def tick(self, now: datetime) -> TimerState:
        if self.state is not TimerState.RUNNING or self._last_tick is None:
            return self.state
        elapsed = max(0.0, (now - self._last_tick).total_seconds())
        self._last_tick = now
        self.remaining_seconds = max(0.0, self.remaining_seconds - elapsed)
        if self.remaining_seconds <= 0:
            self.state = TimerState.COMPLETED
            self._last_tick = None
        return self.state

    def reset(self) -> None:
        self.state = TimerState.IDLE
        self._last_tick = None
        self.remaining_seconds = self._phase_seconds()

    def advance_phase(self) -> TimerPhase:
        if self.state is not TimerState.COMPLETED:
            raise ValidationError("Timer has not finished yet")
        self.phase = TimerPhase.BREAK if self.phase is TimerPhase.FOCUS else TimerPhase.FOCUS
        self.reset()
        return self.phase

    @property
    def progress_ratio(self) -> float:
        total = self._phase_seconds()
        return 1.0 - (self.remaining_seconds / total) if total else 0.0
