# =============================================================================
# monitor_engine/eye_metrics.py
#
# Stateless per-frame ocular metrics from MediaPipe face-mesh landmarks.
#
# Implements:
#   • Eye Aspect Ratio (EAR) per the Soukupová & Čech formula
#   • Blink flag (fixed EAR threshold, no smoothing; the trackers do that)
#   • Iris position inside each eye box
#   • Gaze direction (normalized yaw/pitch + categorical buckets)
#   • Inter-pupil distance
# =============================================================================

from typing import Any, Sequence, Tuple

import numpy as np

from config import (
    NUM_LANDMARKS,
    LEFT_EYE_EAR_IDX, RIGHT_EYE_EAR_IDX,
    LEFT_IRIS_CENTER_IDX, RIGHT_IRIS_CENTER_IDX,
    LEFT_EYE_SPAN_IDX, RIGHT_EYE_SPAN_IDX,
    EAR_BLINK_THRESHOLD, GAZE_CENTER_DEADBAND,
)
from monitor_engine.data_structures import EyeMetrics, GazeDirection, IrisPosition


def landmarks_to_array(landmarks: Sequence[Any]) -> np.ndarray:
    """
    Convert landmarks into an (N, 3) float array.

    Accepts objects exposing .x/.y/.z (z optional), or any (N, 2) / (N, 3)
    array-like. Missing z defaults to 0.
    """
    if isinstance(landmarks, np.ndarray):
        arr = landmarks.astype(np.float64, copy=False)
    elif len(landmarks) and hasattr(landmarks[0], "x"):
        arr = np.array(
            [[lm.x, lm.y, getattr(lm, "z", 0.0) or 0.0] for lm in landmarks],
            dtype=np.float64,
        )
    else:
        arr = np.asarray(landmarks, dtype=np.float64)

    if arr.ndim != 2 or arr.shape[1] not in (2, 3):
        raise ValueError(f"Expected (N, 2) or (N, 3) landmarks, got shape {arr.shape}")
    if arr.shape[1] == 2:
        arr = np.hstack([arr, np.zeros((arr.shape[0], 1))])
    if arr.shape[0] < NUM_LANDMARKS:
        raise ValueError(
            f"Expected at least {NUM_LANDMARKS} landmarks (refined iris mesh), "
            f"got {arr.shape[0]}"
        )
    return arr


# ── EAR Formula ───────────────────────────────────────────────────────────────
#
#          ||p2−p6|| + ||p3−p5||
#  EAR  =  ──────────────────────
#               2 · ||p1−p4||
#
# p1, p4 = eye corners;  p2, p3 = upper lid;  p5, p6 = lower lid

def compute_ear(landmarks: np.ndarray, idx: Sequence[int]) -> float:
    """
    Compute Eye Aspect Ratio for one eye.

    Args:
        landmarks: (N, 3) array of normalized (x, y, z)
        idx:       6-element list [p1, p2, p3, p4, p5, p6]

    Returns:
        EAR scalar value, 0.0 when the corners coincide
    """
    p1, p2, p3, p4, p5, p6 = (landmarks[i] for i in idx)

    d_top    = np.linalg.norm(p2 - p6)
    d_middle = np.linalg.norm(p3 - p5)
    d_horiz  = np.linalg.norm(p1 - p4)

    if d_horiz == 0.0:
        return 0.0

    return float((d_top + d_middle) / (2.0 * d_horiz))


# ── Iris / Gaze ───────────────────────────────────────────────────────────────

def compute_iris_position(
    landmarks: np.ndarray,
    iris_idx: int,
    span_idx: Tuple[int, int, int, int],
) -> IrisPosition:
    """
    Normalized iris centre inside the eye box.

    x: 0 = first corner, 1 = second corner
    y: 0 = upper lid,    1 = lower lid
    Both clamped to [0, 1]; a collapsed eye box yields the centre (0.5, 0.5).
    """
    iris = landmarks[iris_idx]
    corner_a, corner_b, upper, lower = (landmarks[i] for i in span_idx)

    eye_width  = np.linalg.norm(corner_a - corner_b)
    eye_height = np.linalg.norm(upper - lower)
    dx = corner_b[0] - corner_a[0]
    dy = lower[1] - upper[1]

    if eye_width == 0.0 or eye_height == 0.0 or dx == 0.0 or dy == 0.0:
        return IrisPosition()

    x = (iris[0] - corner_a[0]) / dx
    y = (iris[1] - upper[1]) / dy

    return IrisPosition(
        x=float(np.clip(x, 0.0, 1.0)),
        y=float(np.clip(y, 0.0, 1.0)),
    )


def _bucket(value: float, negative: str, positive: str) -> str:
    if value < -GAZE_CENTER_DEADBAND:
        return negative
    if value > GAZE_CENTER_DEADBAND:
        return positive
    return "center"


def compute_gaze_direction(left: IrisPosition, right: IrisPosition) -> GazeDirection:
    """Average both eyes, remap [0, 1] → [−1, 1], bucket each axis independently."""
    avg_x = (left.x + right.x) / 2.0
    avg_y = (left.y + right.y) / 2.0

    yaw   = (avg_x - 0.5) * 2.0
    pitch = (avg_y - 0.5) * 2.0

    return GazeDirection(
        horizontal=_bucket(yaw, "left", "right"),
        vertical=_bucket(pitch, "up", "down"),
        yaw=yaw,
        pitch=pitch,
    )


# ── Public API ────────────────────────────────────────────────────────────────

def compute_eye_metrics(landmarks: Sequence[Any]) -> EyeMetrics:
    """
    Main entry point. Compute every ocular metric for one frame.

    Args:
        landmarks: full face-mesh landmark sequence (≥ 478 points)

    Returns:
        EyeMetrics for this frame
    """
    lm = landmarks_to_array(landmarks)

    left_ear  = compute_ear(lm, LEFT_EYE_EAR_IDX)
    right_ear = compute_ear(lm, RIGHT_EYE_EAR_IDX)
    avg_ear   = (left_ear + right_ear) / 2.0

    left_iris  = compute_iris_position(lm, LEFT_IRIS_CENTER_IDX,  LEFT_EYE_SPAN_IDX)
    right_iris = compute_iris_position(lm, RIGHT_IRIS_CENTER_IDX, RIGHT_EYE_SPAN_IDX)

    pupil_distance = float(
        np.linalg.norm(lm[LEFT_IRIS_CENTER_IDX] - lm[RIGHT_IRIS_CENTER_IDX])
    )

    return EyeMetrics(
        left_ear=left_ear,
        right_ear=right_ear,
        avg_ear=avg_ear,
        is_blinking=avg_ear < EAR_BLINK_THRESHOLD,
        gaze_direction=compute_gaze_direction(left_iris, right_iris),
        left_iris=left_iris,
        right_iris=right_iris,
        pupil_distance=pupil_distance,
    )
