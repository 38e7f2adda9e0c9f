"""
Countdown Timer

A pure counter with an expiry flag. Real-time cadence is the scheduler's
job; the timer only moves when ``tick()`` is called, which keeps it
deterministic under test.
"""

from enum import Enum

from .errors import InvalidStateError, ValidationError


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXPIRED = "expired"
    STOPPED = "stopped"


class CountdownTimer:
    """
    Counts down ``duration_seconds`` one tick at a time.

    The allowed durations are external configuration; the timer only
    requires a positive integer.
    """

    def __init__(self, duration_seconds: int):
        if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, int):
            raise ValidationError(f"Duration must be an integer, got {duration_seconds!r}")
        if duration_seconds <= 0:
            raise ValidationError(f"Duration must be positive, got {duration_seconds}")

        self.duration_seconds = duration_seconds
        self._remaining = duration_seconds
        self._state = TimerState.IDLE

    def start(self) -> None:
        if self._state != TimerState.IDLE:
            raise InvalidStateError(f"Timer cannot start from {self._state.value}")
        self._state = TimerState.RUNNING

    def tick(self) -> bool:
        """
        Advance by exactly one second.

        Returns:
            True only for the tick that reaches zero.

        Raises:
            InvalidStateError: If the timer was never started
        """
        if self._state == TimerState.IDLE:
            raise InvalidStateError("Timer ticked before start")
        if self._state != TimerState.RUNNING:
            return False

        self._remaining = max(0, self._remaining - 1)
        if self._remaining == 0:
            self._state = TimerState.EXPIRED
            return True
        return False

    def stop(self) -> None:
        """Freeze the countdown; later ticks are ignored."""
        if self._state == TimerState.RUNNING:
            self._state = TimerState.STOPPED

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def elapsed_seconds(self) -> int:
        return self.duration_seconds - self._remaining

    @property
    def is_expired(self) -> bool:
        return self._state == TimerState.EXPIRED

    @property
    def is_running(self) -> bool:
        return self._state == TimerState.RUNNING

    def __repr__(self) -> str:
        return (
            f"<CountdownTimer {self._remaining}/{self.duration_seconds}s "
            f"state={self._state.value}>"
        )
