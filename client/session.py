"""
Shift session state machine for ShiftTrack client.
Tracks Idle -> Active -> Completed and derives elapsed/remaining time and
progress against the fixed shift duration.
"""

from datetime import date, datetime, timedelta
from typing import Callable, Optional

from shared.models import SessionState, ShiftEntry
from shared.utils import now_utc, parse_custom_time

SHIFT_DURATION = timedelta(hours=3, minutes=40)


class PreconditionNotMet(Exception):
    """Transition attempted from a state that does not allow it"""
    pass


def compute_elapsed(now: datetime, swap_in: datetime) -> timedelta:
    return now - swap_in


def compute_progress(now: datetime, swap_in: datetime,
                     duration: timedelta = SHIFT_DURATION) -> float:
    """Fraction of the shift done, clamped to [0, 1]"""
    ratio = compute_elapsed(now, swap_in) / duration
    return min(1.0, max(0.0, ratio))


class ShiftSession:
    """
    Holds the current ShiftEntry and its lifecycle. Derived values are pure
    functions of the clock and swap_in; only start/stop mutate state.
    """

    def __init__(self, entry: Optional[ShiftEntry] = None,
                 clock: Callable[[], datetime] = now_utc):
        self.entry = entry or ShiftEntry()
        self._clock = clock

    @property
    def state(self) -> SessionState:
        if self.entry.swap_in is None:
            return SessionState.IDLE
        if self.entry.swap_out is None:
            return SessionState.ACTIVE
        return SessionState.COMPLETED

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    def start(self, custom_time: Optional[str] = None, today: Optional[date] = None) -> ShiftEntry:
        """Begin a fresh entry.

        custom_time is an HH:MM string on the current local date; the
        current instant is used otherwise. Any previous entry is dropped
        from memory (it stays on the server as history).
        """
        if custom_time:
            swap_in = parse_custom_time(custom_time, today)
        else:
            swap_in = self._clock()

        self.entry = ShiftEntry(swap_in=swap_in)
        return self.entry

    def require_active(self):
        if not self.is_active:
            raise PreconditionNotMet(f"No active shift (state is {self.state.value})")

    def stop(self) -> bool:
        """End the active shift. Returns False (no change) when not active."""
        try:
            self.require_active()
        except PreconditionNotMet:
            return False

        self.entry.swap_out = self._clock()
        self.entry.synced = False
        self.entry.swap_out_synced = False
        return True

    def elapsed(self, now: Optional[datetime] = None) -> timedelta:
        if self.entry.swap_in is None:
            return timedelta(0)
        if self.entry.swap_out is not None:
            return self.entry.swap_out - self.entry.swap_in
        return compute_elapsed(now or self._clock(), self.entry.swap_in)

    def remaining(self, now: Optional[datetime] = None) -> timedelta:
        return max(timedelta(0), SHIFT_DURATION - self.elapsed(now))

    def progress(self, now: Optional[datetime] = None) -> float:
        if self.entry.swap_in is None:
            return 0.0
        if self.entry.swap_out is not None:
            return compute_progress(self.entry.swap_out, self.entry.swap_in)
        return compute_progress(now or self._clock(), self.entry.swap_in)

    def expected_end(self) -> Optional[datetime]:
        if self.entry.swap_in is None:
            return None
        return self.entry.swap_in + SHIFT_DURATION

    def total(self) -> Optional[timedelta]:
        """Worked time of a completed shift"""
        return self.entry.duration
