# =============================================================================
# monitor_engine/blink_tracker.py
#
# Blink detection and frequency tracking.
#
# The per-frame blink flag from eye_metrics is edge-detected:
#   open → closed   starts a blink timer
#   closed → open   ends it: lifetime count += 1, (end, duration) recorded
#
# Recorded blinks live in a sliding 60 s window (not a fixed-size ring):
#   blink_rate         = blinks whose end falls inside the window
#   avg_blink_duration = mean duration of those blinks (0 if none)
#
# The update is a pure function over an immutable state record; the
# BlinkTracker class only holds the current state and reads the clock.
# =============================================================================

from dataclasses import dataclass
from typing import Optional, Tuple

from config import BLINK_WINDOW_MS
from core.clock import Clock, SystemClock
from core.logger import get_logger
from monitor_engine.data_structures import BlinkStats

log = get_logger(__name__)


@dataclass(frozen=True)
class BlinkTrackerState:
    blink_count: int = 0
    # (end_timestamp, duration) per blink still inside the window, oldest first
    blinks: Tuple[Tuple[float, float], ...] = ()
    # Start timestamp of the blink in progress, None while eyes are open
    blink_start: Optional[float] = None
    last_blink_time: float = 0.0


def update_blink(
    state: BlinkTrackerState,
    is_blinking: bool,
    now: float,
    window_ms: float = BLINK_WINDOW_MS,
) -> Tuple[BlinkTrackerState, BlinkStats]:
    """
    Advance the blink state machine by one frame.

    Args:
        state:       previous BlinkTrackerState
        is_blinking: blink flag for this frame
        now:         frame timestamp (ms)
        window_ms:   length of the trailing rate window

    Returns:
        (new_state, BlinkStats)
    """
    blink_start = state.blink_start
    blink_count = state.blink_count
    blinks = state.blinks
    last_blink_time = state.last_blink_time

    if is_blinking and blink_start is None:
        blink_start = now
    elif not is_blinking and blink_start is not None:
        blink_count += 1
        blinks = blinks + ((now, now - blink_start),)
        last_blink_time = now
        blink_start = None

    cutoff = now - window_ms
    blinks = tuple(b for b in blinks if b[0] > cutoff)

    new_state = BlinkTrackerState(
        blink_count=blink_count,
        blinks=blinks,
        blink_start=blink_start,
        last_blink_time=last_blink_time,
    )

    avg_duration = sum(d for _, d in blinks) / len(blinks) if blinks else 0.0

    return new_state, BlinkStats(
        blink_count=blink_count,
        blink_rate=len(blinks),
        avg_blink_duration=avg_duration,
        last_blink_time=last_blink_time,
    )


class BlinkTracker:
    """
    Session-scoped blink tracker.

    Usage:
        tracker = BlinkTracker(clock)
        stats   = tracker.update(metrics.is_blinking)
    """

    def __init__(self, clock: Optional[Clock] = None, window_ms: float = BLINK_WINDOW_MS):
        self._clock = clock or SystemClock()
        self._window_ms = window_ms
        self._state = BlinkTrackerState()
        self._stats = BlinkStats()

    def update(self, is_blinking: bool) -> BlinkStats:
        """Feed one frame's blink flag; returns the updated statistics."""
        self._state, self._stats = update_blink(
            self._state, is_blinking, self._clock.now(), self._window_ms
        )
        return self._stats

    def reset(self) -> None:
        """Clear count, window and any blink in progress (new session)."""
        self._state = BlinkTrackerState()
        self._stats = BlinkStats()
        log.debug("BlinkTracker reset.")

    @property
    def state(self) -> BlinkTrackerState:
        return self._state

    @property
    def stats(self) -> BlinkStats:
        """Statistics as of the last update."""
        return self._stats

    @property
    def is_blink_in_progress(self) -> bool:
        return self._state.blink_start is not None
