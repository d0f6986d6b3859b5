# =============================================================================
# monitor_engine/attention_tracker.py
#
# Attention score from gaze deviation over a short trailing window.
#
#   deviation_i     = √(yaw_i² + pitch_i²)
#   attention_score = clamp(1 − mean(deviation) over the last 5 s, 0, 1)
#
# "Looking away" is judged on the current sample only:
#   |yaw| > 0.3  or  |pitch| > 0.3
# =============================================================================

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from config import ATTENTION_WINDOW_MS, LOOK_AWAY_THRESHOLD
from core.clock import Clock, SystemClock
from core.logger import get_logger
from monitor_engine.data_structures import AttentionResult, GazeDirection

log = get_logger(__name__)


@dataclass(frozen=True)
class AttentionTrackerState:
    # (yaw, pitch, timestamp) samples inside the window, oldest first
    samples: Tuple[Tuple[float, float, float], ...] = ()
    look_away_count: int = 0
    total_frames: int = 0


def update_attention(
    state: AttentionTrackerState,
    gaze: GazeDirection,
    now: float,
    window_ms: float = ATTENTION_WINDOW_MS,
) -> Tuple[AttentionTrackerState, AttentionResult]:
    """
    Add one gaze sample and rescore the window.

    Returns:
        (new_state, AttentionResult)
    """
    cutoff = now - window_ms
    samples = tuple(
        s for s in state.samples + ((gaze.yaw, gaze.pitch, now),) if s[2] > cutoff
    )

    is_looking_away = (
        abs(gaze.yaw) > LOOK_AWAY_THRESHOLD or abs(gaze.pitch) > LOOK_AWAY_THRESHOLD
    )
    look_away_count = state.look_away_count + (1 if is_looking_away else 0)

    if samples:
        avg_deviation = sum(math.hypot(yaw, pitch) for yaw, pitch, _ in samples) / len(samples)
        score = float(np.clip(1.0 - avg_deviation, 0.0, 1.0))
    else:
        score = 1.0   # no evidence → assume attentive

    new_state = AttentionTrackerState(
        samples=samples,
        look_away_count=look_away_count,
        total_frames=state.total_frames + 1,
    )
    return new_state, AttentionResult(
        attention_score=score,
        is_looking_away=is_looking_away,
        look_away_count=look_away_count,
    )


class AttentionTracker:
    """
    Session-scoped attention tracker.

    Usage:
        tracker = AttentionTracker(clock)
        result  = tracker.update(metrics.gaze_direction)
    """

    def __init__(self, clock: Optional[Clock] = None, window_ms: float = ATTENTION_WINDOW_MS):
        self._clock = clock or SystemClock()
        self._window_ms = window_ms
        self._state = AttentionTrackerState()
        self._result = AttentionResult()

    def update(self, gaze: GazeDirection) -> AttentionResult:
        self._state, self._result = update_attention(
            self._state, gaze, self._clock.now(), self._window_ms
        )
        return self._result

    def reset(self) -> None:
        """Clear the window and counters (new session)."""
        self._state = AttentionTrackerState()
        self._result = AttentionResult()
        log.debug("AttentionTracker reset.")

    @property
    def state(self) -> AttentionTrackerState:
        return self._state

    @property
    def result(self) -> AttentionResult:
        return self._result

    @property
    def total_frames(self) -> int:
        return self._state.total_frames
