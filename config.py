# =============================================================================
# config.py — Central Configuration for the Facial Affect Monitor
# All tunable parameters live here. Never hardcode values in modules.
# =============================================================================

import os

# ── Paths ─────────────────────────────────────────────────────────────────────
BASE_DIR    = os.path.dirname(os.path.abspath(__file__))
LOGS_DIR    = os.environ.get("MONITOR_LOGS_DIR", os.path.join(BASE_DIR, "logs"))
DATA_DIR    = os.environ.get("MONITOR_DATA_DIR", os.path.join(BASE_DIR, "data"))

DEBUG_MODE  = False

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_CONSOLE_LEVEL = os.environ.get("MONITOR_LOG_LEVEL", "INFO").upper()
LOG_TO_FILE       = os.environ.get("MONITOR_LOG_TO_FILE", "1") != "0"
LOG_DATE_FORMAT   = "%H:%M:%S"

# ── MediaPipe Face Mesh landmark indices ──────────────────────────────────────
# The landmark producer must emit the refined 478-point mesh (iris 468–477).
NUM_LANDMARKS           = 478

# EAR landmark indices (6 points per eye: p1..p6)
#   p1 / p4 = horizontal corners, p2-p6 and p3-p5 = vertical lid pairs
LEFT_EYE_EAR_IDX        = [33,  160, 158, 133, 153, 144]
RIGHT_EYE_EAR_IDX       = [362, 385, 387, 263, 373, 380]

# Iris centre + eye span landmarks: (corner_a, corner_b, upper_lid, lower_lid)
LEFT_IRIS_CENTER_IDX    = 468
RIGHT_IRIS_CENTER_IDX   = 473
LEFT_EYE_SPAN_IDX       = (33,  133, 159, 144)
RIGHT_EYE_SPAN_IDX      = (362, 263, 386, 373)

# ── Eye / Gaze ────────────────────────────────────────────────────────────────
EAR_BLINK_THRESHOLD     = 0.21    # Below this → eye considered closed
GAZE_CENTER_DEADBAND    = 0.15    # |yaw| / |pitch| within this → "center"

# ── Blink tracking ────────────────────────────────────────────────────────────
BLINK_WINDOW_MS         = 60_000  # Trailing window for blink rate (1 minute)

# ── Attention tracking ────────────────────────────────────────────────────────
ATTENTION_WINDOW_MS     = 5_000   # Trailing window of gaze samples
LOOK_AWAY_THRESHOLD     = 0.30    # |yaw| or |pitch| above this → looking away

# ── Alert rules ───────────────────────────────────────────────────────────────
# Durations in ms, thresholds unitless 0–1, blink rates in blinks/min.
DEFAULT_ALERT_THRESHOLDS = {
    "sadness_duration":          120_000,   # 2 minutes
    "sadness_threshold":         0.4,
    "low_attention_duration":    60_000,    # 1 minute
    "low_attention_threshold":   0.4,
    "min_blink_rate":            8,
    "max_blink_rate":            30,
    "inactivity_duration":       300_000,   # 5 minutes
    "pain_threshold":            0.5,
    "low_engagement_duration":   180_000,   # 3 minutes
    "low_engagement_threshold":  0.3,
    "alert_cooldown":            300_000,   # 5 minutes between same-type alerts
}

# FACS-derived pain indicators (AU4 brow lowerer, AU6 cheek raiser,
# AU7 lid tightener, AU9 nose wrinkler) as MediaPipe blendshape names
PAIN_BLENDSHAPES = [
    "browDownLeft",     "browDownRight",
    "cheekSquintLeft",  "cheekSquintRight",
    "eyeSquintLeft",    "eyeSquintRight",
    "noseSneerLeft",    "noseSneerRight",
]

# Engagement score = Σ weight · component
ENGAGEMENT_WEIGHTS = {
    "non_neutral":  0.3,
    "happy":        0.3,
    "attention":    0.4,
}

# ── Session recording ─────────────────────────────────────────────────────────
SNAPSHOT_INTERVAL_MS    = 1_000   # One emotion / eye snapshot per second

# ── WebSocket server ──────────────────────────────────────────────────────────
SERVER_HOST                 = "0.0.0.0"
SERVER_PORT                 = 5055
SERVER_CORS_ALLOWED_ORIGINS = "*"
EMIT_FRAME_EVENT            = "monitor_frame"
EMIT_ALERT_EVENT            = "monitor_alert"
