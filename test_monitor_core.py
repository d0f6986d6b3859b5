# =============================================================================
# test_monitor_core.py — per-frame pipeline through MonitorCore
# Run: pytest test_monitor_core.py
# =============================================================================

import pytest

from config import PAIN_BLENDSHAPES
from monitor_engine.data_structures import AlertType, FrameInput, Severity
from monitor_engine.monitor_core import MonitorCore

FRAME_MS = 1_000 / 30


@pytest.fixture
def core(clock, collected):
    return MonitorCore(clock=clock, on_alert=collected.append)


class TestFrames:
    def test_open_eyes_frame(self, core, clock, face):
        clock.advance(FRAME_MS)
        state = core.update(FrameInput(landmarks=face()))
        assert state.face_detected
        assert state.frame_index == 1
        assert state.eye_metrics.avg_ear == pytest.approx(0.30)
        assert state.blink.blink_count == 0
        assert state.attention.attention_score == pytest.approx(1.0)
        assert state.alerts == []
        assert core.last_state is state

    def test_no_face_frame(self, core, clock):
        clock.advance(FRAME_MS)
        state = core.update(FrameInput())
        assert not state.face_detected
        assert state.eye_metrics is None
        assert state.blink.blink_count == 0

    def test_blink_counted_through_pipeline(self, core, clock, face):
        for lid in (0.015, 0.005, 0.005, 0.015, 0.015):
            clock.advance(FRAME_MS)
            state = core.update(FrameInput(landmarks=face(lid_gap=lid)))
        assert state.blink.blink_count == 1
        assert state.blink.blink_rate == 1
        assert state.blink.avg_blink_duration == pytest.approx(2 * FRAME_MS)

    def test_gaze_drives_attention(self, core, clock, face):
        for _ in range(10):
            clock.advance(FRAME_MS)
            state = core.update(FrameInput(landmarks=face(iris_dx=0.025)))
        assert state.attention.attention_score == pytest.approx(0.5)
        assert state.attention.is_looking_away
        assert state.attention.look_away_count == 10

    def test_emotions_carried_between_samples(self, core, clock, face):
        clock.advance(FRAME_MS)
        core.update(FrameInput(landmarks=face(), emotions={"happy": 0.9, "neutral": 0.1}))
        clock.advance(FRAME_MS)
        state = core.update(FrameInput(landmarks=face()))
        assert state.emotions == {"happy": 0.9, "neutral": 0.1}
        assert state.dominant_emotion == "happy"

    def test_frame_timestamp_drives_manual_clock(self, core, clock, face):
        state = core.update(FrameInput(landmarks=face(), timestamp=5_000))
        assert clock.now() == 5_000
        assert state.timestamp == 5_000
        # stale timestamps never move the clock backwards
        state = core.update(FrameInput(landmarks=face(), timestamp=4_000))
        assert state.timestamp == 5_000

    def test_payload_is_camel_case(self, core, clock, face):
        clock.advance(FRAME_MS)
        payload = core.update(FrameInput(landmarks=face(iris_dx=0.01))).to_payload()
        assert payload["faceDetected"] is True
        assert payload["ear"] == pytest.approx(0.30)
        assert payload["gazeH"] == "right"
        assert payload["alerts"] == []


class TestAlertsThroughCore:
    def test_prolonged_inactivity(self, core, clock, collected):
        alert_states = []
        for _ in range(int(310_000 // 100)):
            clock.advance(100)
            state = core.update(FrameInput())
            if state.alerts:
                alert_states.append(state)
        assert len(collected) == 1
        assert collected[0].type is AlertType.PROLONGED_INACTIVITY
        assert alert_states[0].alerts == collected

    def test_pain_on_face_frame(self, core, clock, face, collected):
        clock.advance(FRAME_MS)
        state = core.update(FrameInput(
            landmarks=face(), blendshapes={n: 0.7 for n in PAIN_BLENDSHAPES},
        ))
        assert [a.type for a in state.alerts] == [AlertType.PAIN_DETECTED]
        assert state.alerts[0].severity is Severity.HIGH

    def test_blendshapes_ignored_without_face(self, core, clock, collected):
        clock.advance(FRAME_MS)
        core.update(FrameInput(blendshapes={n: 0.9 for n in PAIN_BLENDSHAPES}))
        assert collected == []

    def test_sink_and_callback_both_called(self, clock, face, collected):
        stored = []
        core = MonitorCore(clock=clock, sink=stored.append, on_alert=collected.append)
        clock.advance(FRAME_MS)
        core.update(FrameInput(landmarks=face(), blendshapes={n: 0.7 for n in PAIN_BLENDSHAPES}))
        assert stored == collected
        assert len(stored) == 1

    def test_thresholds_and_reset(self, clock, face, collected):
        core = MonitorCore(thresholds={"sadness_duration": 2_000}, clock=clock,
                           on_alert=collected.append)
        for _ in range(4):
            clock.advance(1_000)
            core.update(FrameInput(landmarks=face(), emotions={"sad": 0.9, "neutral": 0.1}))
        assert [a.type for a in collected] == [AlertType.PROLONGED_SADNESS]

        core.reset()
        assert core.frame_count == 0
        assert core.last_state.frame_index == 0
        assert core.alert_system.thresholds.sadness_duration == 2_000

    def test_set_thresholds(self, core):
        th = core.set_thresholds(pain_threshold=0.95)
        assert th.pain_threshold == 0.95
        with pytest.raises(ValueError):
            core.set_thresholds(unknown=1)

    def test_bad_landmarks_raise(self, core, clock):
        clock.advance(FRAME_MS)
        with pytest.raises(ValueError):
            core.update(FrameInput(landmarks=[[0.1, 0.2]] * 10))


class TestEnabledEmotions:
    def test_disabled_emotion_excluded_from_dominant(self, clock, face):
        core = MonitorCore(clock=clock, enabled_emotions={"neutral": False})
        clock.advance(FRAME_MS)
        state = core.update(FrameInput(landmarks=face(), emotions={"neutral": 0.7, "sad": 0.3}))
        assert state.emotions == {"neutral": 0.7, "sad": 0.3}
        assert state.active_emotions == {"sad": 0.3}
        assert state.dominant_emotion == "sad"

    @pytest.mark.parametrize("enabled, expected", [(None, 1), ({"neutral": False}, 0)])
    def test_disabling_neutral_raises_engagement(self, clock, enabled, expected):
        # attention stays 1.0: neutral counted → 0.3·0 + 0.4 = 0.4 (low)
        #                      neutral disabled → 0.3·1 + 0.4 = 0.7
        events = []
        core = MonitorCore(
            thresholds={"low_engagement_threshold": 0.5, "low_engagement_duration": 5_000},
            clock=clock, on_alert=events.append, enabled_emotions=enabled,
        )
        for _ in range(6):
            core.update(FrameInput(emotions={"neutral": 1.0}))
            clock.advance(1_000)
        low = [e for e in events if e.type is AlertType.LOW_ENGAGEMENT]
        assert len(low) == expected

    def test_disabled_sadness_never_alerts(self, clock, face, collected):
        core = MonitorCore(thresholds={"sadness_duration": 2_000}, clock=clock,
                           on_alert=collected.append, enabled_emotions={"sad": False})
        for _ in range(5):
            clock.advance(1_000)
            core.update(FrameInput(landmarks=face(), emotions={"sad": 0.9, "happy": 0.1}))
        assert collected == []

    def test_set_enabled_emotions_merges(self, core, clock, face):
        core.set_enabled_emotions({"happy": False})
        core.set_enabled_emotions({"sad": False})
        assert core.enabled_emotions == {"happy": False, "sad": False}
        clock.advance(FRAME_MS)
        state = core.update(FrameInput(landmarks=face(),
                                       emotions={"happy": 0.5, "sad": 0.3, "angry": 0.2}))
        assert state.dominant_emotion == "angry"
