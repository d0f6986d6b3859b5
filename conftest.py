import os
import sys

# Add project root to sys.path so tests can import every top-level package
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import numpy as np
import pytest
from hypothesis import settings

from config import NUM_LANDMARKS
from core.clock import ManualClock

# CI profile: more examples for thorough testing
settings.register_profile("ci", max_examples=200)
# Dev profile: fewer examples for faster iteration
settings.register_profile("dev", max_examples=100)
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "dev"))


def build_face(lid_gap=0.015, iris_dx=0.0, iris_dy=0.0, n=NUM_LANDMARKS):
    """
    Synthetic face mesh with both eyes 0.10 wide, centred at y = 0.40.

    lid_gap is the half-opening of the eyelids: EAR = 20 · lid_gap
    (0.015 → 0.30 open, 0.005 → 0.10 closed). The iris sits at the eye centre
    shifted by (iris_dx, iris_dy): yaw = 20 · iris_dx, pitch = iris_dy / lid_gap.
    """
    lm = np.zeros((n, 3), dtype=np.float64)
    cy = 0.40
    h = lid_gap

    # Left eye: corners 33 → 133, lids 160/144, 158/153, iris box lids 159/144
    lm[33]  = [0.300, cy, 0.0]
    lm[133] = [0.400, cy, 0.0]
    lm[160] = [0.325, cy - h, 0.0]
    lm[144] = [0.325, cy + h, 0.0]
    lm[158] = [0.375, cy - h, 0.0]
    lm[153] = [0.375, cy + h, 0.0]
    lm[159] = [0.350, cy - h, 0.0]
    lm[468] = [0.350 + iris_dx, cy + iris_dy, 0.0]

    # Right eye: corners 362 → 263, lids 385/380, 387/373, iris box lids 386/373
    lm[362] = [0.600, cy, 0.0]
    lm[263] = [0.700, cy, 0.0]
    lm[385] = [0.625, cy - h, 0.0]
    lm[380] = [0.625, cy + h, 0.0]
    lm[387] = [0.675, cy - h, 0.0]
    lm[373] = [0.675, cy + h, 0.0]
    lm[386] = [0.650, cy - h, 0.0]
    lm[473] = [0.650 + iris_dx, cy + iris_dy, 0.0]
    return lm


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def face():
    return build_face


@pytest.fixture
def collected():
    """List-backed alert callback: pass `collected.append` as on_alert."""
    return []
