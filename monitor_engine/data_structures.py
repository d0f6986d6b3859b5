# =============================================================================
# monitor_engine/data_structures.py
# Shared dataclasses that flow between every module in the monitor pipeline.
# All fields have sensible defaults so partial updates never crash downstream.
# =============================================================================

from dataclasses import dataclass, field, asdict, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from config import DEFAULT_ALERT_THRESHOLDS


# ── Landmarks ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Landmark:
    """One face-mesh point, normalized to the video frame."""
    x: float
    y: float
    z: float = 0.0


# ── Eye Metrics ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GazeDirection:
    """
    Gaze estimated from iris position inside the eye.
    yaw:   −1 = far left, +1 = far right
    pitch: −1 = far up,   +1 = far down  (image y grows downward)
    """
    horizontal: str = "center"     # "left" | "center" | "right"
    vertical:   str = "center"     # "up" | "center" | "down"
    yaw:   float = 0.0
    pitch: float = 0.0


@dataclass(frozen=True)
class IrisPosition:
    """Iris centre relative to the eye box; (0.5, 0.5) is dead centre."""
    x: float = 0.5
    y: float = 0.5


@dataclass(frozen=True)
class EyeMetrics:
    """Per-frame ocular measurements. Produced fresh every frame."""
    left_ear:  float = 0.0
    right_ear: float = 0.0
    avg_ear:   float = 0.0
    is_blinking: bool = False
    gaze_direction: GazeDirection = field(default_factory=GazeDirection)
    left_iris:  IrisPosition = field(default_factory=IrisPosition)
    right_iris: IrisPosition = field(default_factory=IrisPosition)
    # Distance between iris centres, a proxy for subject-to-camera distance
    pupil_distance: float = 0.0

    @property
    def iris_position(self) -> Dict[str, IrisPosition]:
        return {"left": self.left_iris, "right": self.right_iris}


# ── Trackers ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BlinkStats:
    """Blink frequency summary returned by the BlinkTracker."""
    # Lifetime blink count for the session (monotonic)
    blink_count: int = 0
    # Blinks in the trailing window (≈ blinks per minute)
    blink_rate: int = 0
    # Mean duration of the blinks still in the window (ms)
    avg_blink_duration: float = 0.0
    # End timestamp of the most recent blink (ms), 0 if none yet
    last_blink_time: float = 0.0


@dataclass(frozen=True)
class AttentionResult:
    attention_score: float = 1.0
    is_looking_away: bool = False
    look_away_count: int = 0


# ── Alerts ────────────────────────────────────────────────────────────────────

class AlertType(str, Enum):
    PROLONGED_SADNESS    = "prolonged_sadness"
    LOW_ATTENTION        = "low_attention"
    ABNORMAL_BLINK_RATE  = "abnormal_blink_rate"
    PROLONGED_INACTIVITY = "prolonged_inactivity"
    PAIN_DETECTED        = "pain_detected"
    LOW_ENGAGEMENT       = "low_engagement"


class Severity(str, Enum):
    LOW    = "low"
    MEDIUM = "medium"
    HIGH   = "high"


@dataclass(frozen=True)
class AlertThresholds:
    """
    Numeric knobs for every alert rule.
    Durations in ms, thresholds unitless 0–1, blink rates in blinks/min.
    """
    sadness_duration:         float = DEFAULT_ALERT_THRESHOLDS["sadness_duration"]
    sadness_threshold:        float = DEFAULT_ALERT_THRESHOLDS["sadness_threshold"]
    low_attention_duration:   float = DEFAULT_ALERT_THRESHOLDS["low_attention_duration"]
    low_attention_threshold:  float = DEFAULT_ALERT_THRESHOLDS["low_attention_threshold"]
    min_blink_rate:           float = DEFAULT_ALERT_THRESHOLDS["min_blink_rate"]
    max_blink_rate:           float = DEFAULT_ALERT_THRESHOLDS["max_blink_rate"]
    inactivity_duration:      float = DEFAULT_ALERT_THRESHOLDS["inactivity_duration"]
    pain_threshold:           float = DEFAULT_ALERT_THRESHOLDS["pain_threshold"]
    low_engagement_duration:  float = DEFAULT_ALERT_THRESHOLDS["low_engagement_duration"]
    low_engagement_threshold: float = DEFAULT_ALERT_THRESHOLDS["low_engagement_threshold"]
    alert_cooldown:           float = DEFAULT_ALERT_THRESHOLDS["alert_cooldown"]

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]


@dataclass
class AlertEvent:
    """
    A single emitted alert. Only the AlertSystem creates these;
    `acknowledged` is flipped later by whoever displays the alert.
    """
    id: str
    timestamp: float
    type: AlertType
    severity: Severity
    message: str
    acknowledged: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["severity"] = self.severity.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertEvent":
        return cls(
            id=data["id"],
            timestamp=float(data["timestamp"]),
            type=AlertType(data["type"]),
            severity=Severity(data["severity"]),
            message=data.get("message", ""),
            acknowledged=bool(data.get("acknowledged", False)),
        )


# ── Frame I/O ─────────────────────────────────────────────────────────────────

@dataclass
class FrameInput:
    """
    One frame from the external producers.
    landmarks is None when no face was detected; emotions is None when the
    expression classifier was not sampled on this frame.
    """
    landmarks:   Optional[Sequence[Any]] = None
    emotions:    Optional[Dict[str, float]] = None
    blendshapes: Optional[Dict[str, float]] = None
    # Frame timestamp in ms; None → read the monitor's clock
    timestamp:   Optional[float] = None

    @property
    def face_detected(self) -> bool:
        return self.landmarks is not None


@dataclass
class MonitorState:
    """
    Master output of MonitorCore for one frame.
    This is what the HUD, the session recorder and the replay CLI consume.
    """
    timestamp: float = 0.0
    frame_index: int = 0
    face_detected: bool = False
    # None when no face was detected this frame
    eye_metrics: Optional[EyeMetrics] = None
    blink:     BlinkStats      = field(default_factory=BlinkStats)
    attention: AttentionResult = field(default_factory=AttentionResult)
    # Latest emotion distribution (carried over between classifier samples)
    emotions: Dict[str, float] = field(default_factory=dict)
    # The same distribution minus disabled emotions; drives alerts and the session
    active_emotions: Dict[str, float] = field(default_factory=dict)
    dominant_emotion: Optional[str] = None
    # Alerts emitted while processing this frame
    alerts: List[AlertEvent] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """Flatten into the camelCase dict pushed to the HUD over WebSocket."""
        em = self.eye_metrics or EyeMetrics()
        return {
            "timestamp":        self.timestamp,
            "frame":            self.frame_index,
            "faceDetected":     self.face_detected,
            "ear":              round(em.avg_ear, 3),
            "earL":             round(em.left_ear, 3),
            "earR":             round(em.right_ear, 3),
            "isBlinking":       em.is_blinking,
            "gazeH":            em.gaze_direction.horizontal,
            "gazeV":            em.gaze_direction.vertical,
            "yaw":              round(em.gaze_direction.yaw, 3),
            "pitch":            round(em.gaze_direction.pitch, 3),
            "pupilDistance":    round(em.pupil_distance, 4),
            "blinkCount":       self.blink.blink_count,
            "blinkRate":        self.blink.blink_rate,
            "avgBlinkDuration": round(self.blink.avg_blink_duration, 1),
            "attentionScore":   round(self.attention.attention_score, 3),
            "isLookingAway":    self.attention.is_looking_away,
            "emotions":         dict(self.emotions),
            "activeEmotions":   dict(self.active_emotions),
            "dominantEmotion":  self.dominant_emotion,
            "alerts":           [a.to_dict() for a in self.alerts],
        }


# ── Session Records ───────────────────────────────────────────────────────────

@dataclass
class EmotionSnapshot:
    timestamp: float
    emotions: Dict[str, float]
    dominant_emotion: str


@dataclass
class EyeTrackingSnapshot:
    timestamp: float
    blink_count: int
    blink_rate: int
    attention_score: float
    gaze_yaw: float
    gaze_pitch: float
    avg_ear: float


@dataclass
class SessionSummary:
    duration: float                       # ms
    avg_emotions: Dict[str, float]
    dominant_emotion_overall: str
    total_blinks: int
    avg_blink_rate: float
    avg_attention: float
    alerts: List[AlertEvent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["alerts"] = [a.to_dict() for a in self.alerts]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionSummary":
        return cls(
            duration=float(data["duration"]),
            avg_emotions=dict(data.get("avg_emotions", {})),
            dominant_emotion_overall=data.get("dominant_emotion_overall", "neutral"),
            total_blinks=int(data.get("total_blinks", 0)),
            avg_blink_rate=float(data.get("avg_blink_rate", 0.0)),
            avg_attention=float(data.get("avg_attention", 0.0)),
            alerts=[AlertEvent.from_dict(a) for a in data.get("alerts", [])],
        )


@dataclass
class SessionData:
    id: str
    start_time: float
    end_time: Optional[float] = None
    emotion_snapshots:      List[EmotionSnapshot]     = field(default_factory=list)
    eye_tracking_snapshots: List[EyeTrackingSnapshot] = field(default_factory=list)
    alerts:  List[AlertEvent]         = field(default_factory=list)
    summary: Optional[SessionSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id":         self.id,
            "start_time": self.start_time,
            "end_time":   self.end_time,
            "emotion_snapshots":      [asdict(s) for s in self.emotion_snapshots],
            "eye_tracking_snapshots": [asdict(s) for s in self.eye_tracking_snapshots],
            "alerts":  [a.to_dict() for a in self.alerts],
            "summary": self.summary.to_dict() if self.summary else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionData":
        summary = data.get("summary")
        return cls(
            id=data["id"],
            start_time=float(data["start_time"]),
            end_time=data.get("end_time"),
            emotion_snapshots=[
                EmotionSnapshot(**s) for s in data.get("emotion_snapshots", [])
            ],
            eye_tracking_snapshots=[
                EyeTrackingSnapshot(**s) for s in data.get("eye_tracking_snapshots", [])
            ],
            alerts=[AlertEvent.from_dict(a) for a in data.get("alerts", [])],
            summary=SessionSummary.from_dict(summary) if summary else None,
        )
