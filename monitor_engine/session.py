# =============================================================================
# monitor_engine/session.py
#
# Session recording: samples MonitorState into emotion / eye-tracking
# snapshots (at most one of each per SNAPSHOT_INTERVAL_MS), keeps the alerts
# raised during the session, and computes the end-of-session summary.
# =============================================================================

import uuid
from typing import Dict, Optional

from config import SNAPSHOT_INTERVAL_MS
from core.clock import Clock, SystemClock
from core.logger import get_logger
from monitor_engine.data_structures import (
    AlertEvent, EmotionSnapshot, EyeTrackingSnapshot,
    MonitorState, SessionData, SessionSummary,
)

log = get_logger(__name__)


def new_session_id(now: float) -> str:
    return f"session_{int(now)}_{uuid.uuid4().hex[:9]}"


def dominant_emotion(emotions: Dict[str, float]) -> Optional[str]:
    if not emotions:
        return None
    return max(emotions.items(), key=lambda kv: kv[1])[0]


def calculate_session_summary(session: SessionData, now: float) -> SessionSummary:
    """
    Aggregate a session's snapshots.

    Averages are over snapshots; emotions absent from a snapshot do not count
    toward that emotion's sum but the divisor is the number of snapshots.
    Empty snapshot lists give zeros and a 'neutral' dominant emotion.
    """
    duration = (session.end_time if session.end_time is not None else now) - session.start_time

    sums: Dict[str, float] = {}
    for snap in session.emotion_snapshots:
        for emotion, value in snap.emotions.items():
            sums[emotion] = sums.get(emotion, 0.0) + value
    n_emotion = len(session.emotion_snapshots)
    avg_emotions = {k: v / n_emotion for k, v in sums.items()} if n_emotion else {}

    eye = session.eye_tracking_snapshots
    if eye:
        total_blinks   = eye[-1].blink_count
        avg_blink_rate = sum(s.blink_rate for s in eye) / len(eye)
        avg_attention  = sum(s.attention_score for s in eye) / len(eye)
    else:
        total_blinks, avg_blink_rate, avg_attention = 0, 0.0, 0.0

    return SessionSummary(
        duration=duration,
        avg_emotions=avg_emotions,
        dominant_emotion_overall=dominant_emotion(avg_emotions) or "neutral",
        total_blinks=total_blinks,
        avg_blink_rate=avg_blink_rate,
        avg_attention=avg_attention,
        alerts=list(session.alerts),
    )


class SessionRecorder:
    """
    Records one monitoring session.

    Usage:
        recorder = SessionRecorder(clock)
        recorder.start()
        recorder.record(state)          # every frame
        recorder.add_alert(event)       # from the AlertSystem callback
        session = recorder.stop()       # summary filled in
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        snapshot_interval: float = SNAPSHOT_INTERVAL_MS,
    ):
        self._clock = clock or SystemClock()
        self._interval = snapshot_interval
        self._session: Optional[SessionData] = None
        self._last_emotion_ts: Optional[float] = None
        self._last_eye_ts: Optional[float] = None

    def start(self) -> SessionData:
        now = self._clock.now()
        self._session = SessionData(id=new_session_id(now), start_time=now)
        self._last_emotion_ts = None
        self._last_eye_ts = None
        log.info(f"Session {self._session.id} started.")
        return self._session

    def _due(self, last: Optional[float], now: float) -> bool:
        return last is None or now - last >= self._interval

    def record(self, state: MonitorState) -> None:
        """Sample a frame into the session (rate-limited per snapshot kind)."""
        session = self._require_session()
        now = state.timestamp

        # Disabled emotions never reach the session record
        if state.active_emotions and self._due(self._last_emotion_ts, now):
            session.emotion_snapshots.append(EmotionSnapshot(
                timestamp=now,
                emotions=dict(state.active_emotions),
                dominant_emotion=state.dominant_emotion or dominant_emotion(state.active_emotions),
            ))
            self._last_emotion_ts = now

        if state.face_detected and state.eye_metrics is not None \
                and self._due(self._last_eye_ts, now):
            gaze = state.eye_metrics.gaze_direction
            session.eye_tracking_snapshots.append(EyeTrackingSnapshot(
                timestamp=now,
                blink_count=state.blink.blink_count,
                blink_rate=state.blink.blink_rate,
                attention_score=state.attention.attention_score,
                gaze_yaw=gaze.yaw,
                gaze_pitch=gaze.pitch,
                avg_ear=state.eye_metrics.avg_ear,
            ))
            self._last_eye_ts = now

    def add_alert(self, event: AlertEvent) -> None:
        self._require_session().alerts.append(event)

    def stop(self) -> SessionData:
        """Close the session and compute its summary."""
        session = self._require_session()
        now = self._clock.now()
        session.end_time = now
        session.summary = calculate_session_summary(session, now)
        log.info(
            f"Session {session.id} stopped after {session.summary.duration / 1000:.1f}s "
            f"({len(session.alerts)} alerts)."
        )
        self._session = None
        return session

    def _require_session(self) -> SessionData:
        if self._session is None:
            raise RuntimeError("SessionRecorder.start() must be called first")
        return self._session

    @property
    def session(self) -> Optional[SessionData]:
        return self._session

    @property
    def is_recording(self) -> bool:
        return self._session is not None
