# =============================================================================
# monitor_engine/monitor_core.py
#
# MonitorCore — Master orchestrator for the monitoring engine.
#
# This is the single public interface between the engine and the rest of
# the application (HUD bridge, session recorder, replay driver).
#
# Call flow per frame:
#   1. AlertSystem.check_face_presence(face)      → inactivity rule
#   2. (emotions sampled) drop disabled emotions, then
#                         check_emotions / check_engagement
#   3. (face present)     compute_eye_metrics      → EyeMetrics
#                         BlinkTracker.update      → BlinkStats
#                         AttentionTracker.update  → AttentionResult
#                         check_attention / check_blink_rate
#                         check_pain_indicators    (blendshapes present)
#   4. Pack everything into MonitorState and return
# =============================================================================

from typing import Callable, Dict, List, Mapping, Optional, Union

from alerts.alert_system import AlertSystem
from core.clock import Clock, ManualClock, SystemClock
from core.logger import get_logger
from monitor_engine.attention_tracker import AttentionTracker
from monitor_engine.blink_tracker import BlinkTracker
from monitor_engine.data_structures import (
    AlertEvent, AlertThresholds, AttentionResult, BlinkStats,
    FrameInput, MonitorState,
)
from monitor_engine.eye_metrics import compute_eye_metrics
from monitor_engine.session import dominant_emotion

log = get_logger(__name__)


class MonitorCore:
    """
    Single entry point for the monitoring engine. One instance per session.

    Usage:
        core  = MonitorCore(sink=store.save_alert, on_alert=server.emit_alert)
        state = core.update(FrameInput(landmarks=lm, emotions=em, blendshapes=bs))
        core.reset()        # session restart
    """

    def __init__(
        self,
        thresholds: Union[AlertThresholds, Mapping[str, float], None] = None,
        clock: Optional[Clock] = None,
        sink: Optional[Callable[[AlertEvent], None]] = None,
        on_alert: Optional[Callable[[AlertEvent], None]] = None,
        enabled_emotions: Optional[Mapping[str, bool]] = None,
    ):
        log.info("Initializing MonitorCore …")
        self._clock = clock or SystemClock()
        self._on_alert = on_alert
        # Emotions absent from this map count as enabled
        self._enabled_emotions: Dict[str, bool] = dict(enabled_emotions or {})

        self._blink     = BlinkTracker(self._clock)
        self._attention = AttentionTracker(self._clock)
        self._alerts    = AlertSystem(
            on_alert=self._handle_alert,
            thresholds=thresholds,
            clock=self._clock,
            sink=sink,
        )

        self._frame_count = 0
        self._emotions: Dict[str, float] = {}
        self._active_emotions: Dict[str, float] = {}
        self._pending_alerts: List[AlertEvent] = []
        self._last_state = MonitorState()

        log.info("MonitorCore initialized.")

    # ── Alert fan-out ─────────────────────────────────────────────────────────

    def _handle_alert(self, event: AlertEvent) -> None:
        self._pending_alerts.append(event)
        if self._on_alert is not None:
            self._on_alert(event)

    # ── Main Update ───────────────────────────────────────────────────────────

    def update(self, frame: FrameInput) -> MonitorState:
        """
        Process one frame through the full pipeline.

        Args:
            frame: landmarks / emotions / blendshapes for this frame

        Returns:
            MonitorState — fully populated snapshot for this frame.
        """
        if frame.timestamp is not None and isinstance(self._clock, ManualClock):
            self._clock.set(max(frame.timestamp, self._clock.now()))

        self._frame_count += 1
        self._pending_alerts = []
        now = self._clock.now()

        # ── 1. Face presence ──────────────────────────────────────────────
        face = frame.face_detected
        self._alerts.check_face_presence(face)

        # ── 2. Emotions (only on frames where the classifier ran) ─────────
        if frame.emotions is not None:
            self._emotions = dict(frame.emotions)
            self._active_emotions = self._filter_enabled(self._emotions)
            self._alerts.check_emotions(self._active_emotions)
            self._alerts.check_engagement(
                self._active_emotions, self._attention.result.attention_score
            )

        # ── 3. Eye metrics, trackers, per-face rules ──────────────────────
        eye_metrics = None
        blink: BlinkStats = self._blink.stats
        attention: AttentionResult = self._attention.result

        if face:
            eye_metrics = compute_eye_metrics(frame.landmarks)
            blink     = self._blink.update(eye_metrics.is_blinking)
            attention = self._attention.update(eye_metrics.gaze_direction)

            self._alerts.check_attention(attention.attention_score)
            self._alerts.check_blink_rate(blink.blink_rate)

            if frame.blendshapes:
                self._alerts.check_pain_indicators(frame.blendshapes)

        # ── 4. Pack into MonitorState ─────────────────────────────────────
        state = MonitorState(
            timestamp=now,
            frame_index=self._frame_count,
            face_detected=face,
            eye_metrics=eye_metrics,
            blink=blink,
            attention=attention,
            emotions=dict(self._emotions),
            active_emotions=dict(self._active_emotions),
            dominant_emotion=dominant_emotion(self._active_emotions),
            alerts=list(self._pending_alerts),
        )
        self._last_state = state
        return state

    # ── Utility ───────────────────────────────────────────────────────────────

    def reset(self) -> None:
        """Start a new session: clear trackers, alert episodes and cooldowns."""
        self._blink.reset()
        self._attention.reset()
        self._alerts.reset()
        self._frame_count = 0
        self._emotions = {}
        self._active_emotions = {}
        self._pending_alerts = []
        self._last_state = MonitorState()
        log.info("MonitorCore reset.")

    def set_thresholds(self, **overrides: float) -> AlertThresholds:
        return self._alerts.set_thresholds(**overrides)

    # ── Emotion filter ────────────────────────────────────────────────────────

    def _filter_enabled(self, emotions: Mapping[str, float]) -> Dict[str, float]:
        return {
            name: p for name, p in emotions.items()
            if self._enabled_emotions.get(name, True)
        }

    def set_enabled_emotions(self, enabled: Mapping[str, bool]) -> None:
        """
        Merge per-emotion on/off switches. Takes effect from the next
        classifier sample.
        """
        self._enabled_emotions.update(enabled)
        log.info(f"Enabled emotions updated: {dict(enabled)}")

    @property
    def enabled_emotions(self) -> Dict[str, bool]:
        return dict(self._enabled_emotions)

    @property
    def alert_system(self) -> AlertSystem:
        return self._alerts

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def last_state(self) -> MonitorState:
        """Return the most recently computed state without re-processing."""
        return self._last_state
