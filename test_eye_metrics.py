# =============================================================================
# test_eye_metrics.py — EAR, blink flag, iris position, gaze and pupil distance
# Run: pytest test_eye_metrics.py
# =============================================================================

import numpy as np
import pytest
from hypothesis import given, strategies as st

from conftest import build_face
from monitor_engine.data_structures import IrisPosition, Landmark
from monitor_engine.eye_metrics import (
    compute_ear, compute_eye_metrics, compute_gaze_direction, landmarks_to_array,
)
from config import LEFT_EYE_EAR_IDX


class TestEAR:
    def test_open_eyes(self):
        m = compute_eye_metrics(build_face(lid_gap=0.015))
        assert m.left_ear == pytest.approx(0.30)
        assert m.right_ear == pytest.approx(0.30)
        assert m.avg_ear == pytest.approx(0.30)
        assert m.is_blinking is False

    def test_closed_eyes_flag_blink(self):
        m = compute_eye_metrics(build_face(lid_gap=0.005))
        assert m.avg_ear == pytest.approx(0.10)
        assert m.is_blinking is True

    def test_blink_threshold_boundary(self):
        below = compute_eye_metrics(build_face(lid_gap=0.0104))
        above = compute_eye_metrics(build_face(lid_gap=0.0106))
        assert below.avg_ear == pytest.approx(0.208)
        assert above.avg_ear == pytest.approx(0.212)
        assert below.is_blinking is True
        assert above.is_blinking is False

    def test_zero_horizontal_distance_gives_zero(self):
        lm = build_face()
        lm[133] = lm[33]
        assert compute_ear(lm, LEFT_EYE_EAR_IDX) == 0.0
        m = compute_eye_metrics(lm)
        assert m.left_ear == 0.0
        assert m.right_ear == pytest.approx(0.30)

    def test_z_contributes_to_distance(self):
        lm = build_face(lid_gap=0.0)
        # Lids split only along z: vertical distances come entirely from depth
        for i in (160, 158):
            lm[i, 2] = -0.01
        for i in (144, 153):
            lm[i, 2] = 0.01
        assert compute_ear(lm, LEFT_EYE_EAR_IDX) == pytest.approx(0.2)

    @given(
        a=st.floats(min_value=0.0, max_value=0.05),
        b=st.floats(min_value=0.0, max_value=0.05),
    )
    def test_ear_non_negative_and_monotonic(self, a, b):
        ear_a = compute_eye_metrics(build_face(lid_gap=a)).avg_ear
        ear_b = compute_eye_metrics(build_face(lid_gap=b)).avg_ear
        assert ear_a >= 0.0 and ear_b >= 0.0
        if a < b:
            assert ear_a <= ear_b


class TestGaze:
    def test_centered(self):
        m = compute_eye_metrics(build_face())
        for iris in (m.left_iris, m.right_iris):
            assert iris.x == pytest.approx(0.5)
            assert iris.y == pytest.approx(0.5)
        g = m.gaze_direction
        assert g.yaw == pytest.approx(0.0)
        assert g.pitch == pytest.approx(0.0)
        assert (g.horizontal, g.vertical) == ("center", "center")

    def test_looking_right(self):
        g = compute_eye_metrics(build_face(iris_dx=0.01)).gaze_direction
        assert g.yaw == pytest.approx(0.2)
        assert g.horizontal == "right"
        assert g.vertical == "center"

    def test_looking_left_and_up(self):
        g = compute_eye_metrics(build_face(iris_dx=-0.02, iris_dy=-0.006)).gaze_direction
        assert g.yaw == pytest.approx(-0.4)
        assert g.pitch == pytest.approx(-0.4)
        assert (g.horizontal, g.vertical) == ("left", "up")

    def test_looking_down(self):
        g = compute_eye_metrics(build_face(iris_dy=0.006)).gaze_direction
        assert g.vertical == "down"

    def test_inside_deadband_is_center(self):
        g = compute_eye_metrics(build_face(iris_dx=0.005)).gaze_direction
        assert g.yaw == pytest.approx(0.1)
        assert g.horizontal == "center"

    def test_iris_position_clamped(self):
        m = compute_eye_metrics(build_face(iris_dx=0.2))
        assert m.left_iris.x == 1.0
        assert m.right_iris.x == 1.0
        assert m.gaze_direction.yaw == pytest.approx(1.0)

    def test_collapsed_eye_box_defaults_to_center(self):
        m = compute_eye_metrics(build_face(lid_gap=0.0, iris_dx=0.03))
        assert m.left_iris == IrisPosition(0.5, 0.5)
        assert m.gaze_direction.horizontal == "center"

    def test_axes_bucket_independently(self):
        g = compute_gaze_direction(IrisPosition(0.9, 0.5), IrisPosition(0.9, 0.5))
        assert g.horizontal == "right"
        assert g.vertical == "center"

    @given(
        lx=st.floats(0, 1), ly=st.floats(0, 1),
        rx=st.floats(0, 1), ry=st.floats(0, 1),
    )
    def test_yaw_pitch_in_range(self, lx, ly, rx, ry):
        g = compute_gaze_direction(IrisPosition(lx, ly), IrisPosition(rx, ry))
        assert -1.0 <= g.yaw <= 1.0
        assert -1.0 <= g.pitch <= 1.0


class TestPupilDistanceAndInput:
    def test_pupil_distance(self):
        m = compute_eye_metrics(build_face())
        assert m.pupil_distance == pytest.approx(0.30)

    def test_iris_position_mapping(self):
        m = compute_eye_metrics(build_face(iris_dx=0.01))
        assert set(m.iris_position) == {"left", "right"}
        assert m.iris_position["left"].x == pytest.approx(0.6)

    def test_accepts_landmark_objects(self):
        arr = build_face(iris_dx=0.01)
        points = [Landmark(x, y, z) for x, y, z in arr]
        assert compute_eye_metrics(points) == compute_eye_metrics(arr)

    def test_accepts_two_column_input(self):
        arr = build_face()
        m = compute_eye_metrics(arr[:, :2].tolist())
        assert m.avg_ear == pytest.approx(0.30)

    def test_too_few_landmarks_rejected(self):
        with pytest.raises(ValueError):
            compute_eye_metrics(build_face()[:468])

    def test_bad_shape_rejected(self):
        with pytest.raises(ValueError):
            landmarks_to_array(np.zeros(478))
