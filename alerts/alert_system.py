# =============================================================================
# alerts/alert_system.py
#
# Behavioural Alert System — debounced alerts from emotion, attention, blink,
# face-presence and blendshape signals.
#
# Each check_* method is called once per frame (or whenever the caller samples
# that signal) and feeds one rule from alerts/alert_rules.py.
#
# Debounce is two-layered:
#   1. Duration rules need the condition to hold for a full episode.
#   2. A global per-type cooldown (5 min default) blocks any repeat of the
#      same alert type, whatever rule state or severity produced it.
#
# Cooldown suppression is silent for the caller; it is logged at DEBUG.
# =============================================================================

import uuid
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Mapping, Optional, Union

from alerts.alert_rules import (
    ALERT_RULES, ALERT_TITLES, RuleKind, step_episode, cooldown_elapsed,
    pain_score, engagement_score,
)
from core.clock import Clock, SystemClock
from core.logger import get_logger
from monitor_engine.data_structures import (
    AlertEvent, AlertThresholds, AlertType, Severity,
)

log = get_logger(__name__)

AlertCallback = Callable[[AlertEvent], None]


@dataclass(frozen=True)
class AlertSystemState:
    """Episode start per duration rule (None = idle) + last emission per type."""
    episode_starts: Dict[AlertType, Optional[float]] = field(
        default_factory=lambda: {
            t: None for t, rule in ALERT_RULES.items() if rule.kind is RuleKind.DURATION
        }
    )
    last_alert_times: Dict[AlertType, float] = field(default_factory=dict)


def merge_thresholds(
    base: AlertThresholds,
    overrides: Mapping[str, float],
) -> AlertThresholds:
    """Return `base` with `overrides` applied; unknown keys raise ValueError."""
    unknown = set(overrides) - set(AlertThresholds.field_names())
    if unknown:
        raise ValueError(f"Unknown alert threshold(s): {', '.join(sorted(unknown))}")
    return replace(base, **overrides)


def new_alert_id(now: float) -> str:
    return f"alert_{int(now)}_{uuid.uuid4().hex[:9]}"


class AlertSystem:
    """
    Runs the six alert rules and emits AlertEvents.

    Usage:
        alerts = AlertSystem(on_alert=handle_alert, sink=store.save_alert)
        alerts.check_face_presence(face_detected)
        alerts.check_attention(attention.attention_score)
        ...
        alerts.reset()      # new session
    """

    def __init__(
        self,
        on_alert: AlertCallback,
        thresholds: Union[AlertThresholds, Mapping[str, float], None] = None,
        clock: Optional[Clock] = None,
        sink: Optional[AlertCallback] = None,
    ):
        self._on_alert = on_alert
        self._sink = sink
        self._clock = clock or SystemClock()

        if isinstance(thresholds, AlertThresholds):
            self._thresholds = thresholds
        else:
            self._thresholds = merge_thresholds(AlertThresholds(), thresholds or {})

        self._state = AlertSystemState()
        log.info("AlertSystem initialized.")

    # ── Configuration ─────────────────────────────────────────────────────────

    def set_thresholds(self, **overrides: float) -> AlertThresholds:
        """Merge a partial threshold override into the current thresholds."""
        self._thresholds = merge_thresholds(self._thresholds, overrides)
        log.info(f"Alert thresholds updated: {overrides}")
        return self._thresholds

    @property
    def thresholds(self) -> AlertThresholds:
        return self._thresholds

    @property
    def state(self) -> AlertSystemState:
        return self._state

    # ── Signal checks ─────────────────────────────────────────────────────────

    def check_emotions(self, emotions: Mapping[str, float]) -> Optional[AlertEvent]:
        """Prolonged sadness: P(sad) ≥ threshold for sadness_duration."""
        sadness = emotions.get("sad", 0.0) or 0.0
        return self._check(AlertType.PROLONGED_SADNESS, sadness)

    def check_attention(self, attention_score: float) -> Optional[AlertEvent]:
        """Low attention: score < threshold for low_attention_duration."""
        return self._check(AlertType.LOW_ATTENTION, attention_score)

    def check_blink_rate(self, blink_rate: float) -> Optional[AlertEvent]:
        """
        Abnormal blink rate, evaluated immediately on every call.
        A rate of 0 means no blink has been observed in the window yet and
        is not evaluated.
        """
        if blink_rate <= 0:
            return None
        return self._check(AlertType.ABNORMAL_BLINK_RATE, blink_rate)

    def check_face_presence(self, face_detected: bool) -> Optional[AlertEvent]:
        """Prolonged inactivity: no face for inactivity_duration."""
        return self._check(AlertType.PROLONGED_INACTIVITY, 1.0 if face_detected else 0.0)

    def check_pain_indicators(self, blendshapes: Mapping[str, float]) -> Optional[AlertEvent]:
        """Pain: mean of the eight FACS pain blendshapes ≥ threshold (immediate)."""
        return self._check(AlertType.PAIN_DETECTED, pain_score(blendshapes))

    def check_engagement(
        self,
        emotions: Mapping[str, float],
        attention_score: float,
    ) -> Optional[AlertEvent]:
        """Low engagement: weighted score < threshold for low_engagement_duration."""
        return self._check(
            AlertType.LOW_ENGAGEMENT, engagement_score(emotions, attention_score)
        )

    # ── Engine ────────────────────────────────────────────────────────────────

    def _check(self, alert_type: AlertType, value: float) -> Optional[AlertEvent]:
        rule = ALERT_RULES[alert_type]
        now = self._clock.now()
        severity = rule.evaluate(value, self._thresholds)

        if rule.kind is RuleKind.DURATION:
            starts = self._state.episode_starts
            prev_start = starts.get(alert_type)
            start, fire = step_episode(
                prev_start, severity is not None, now, rule.duration(self._thresholds)
            )
            if start != prev_start:
                self._state = replace(self._state, episode_starts={**starts, alert_type: start})
            if not fire:
                return None
        elif severity is None:
            return None

        return self._emit(alert_type, severity, rule.message(value, self._thresholds), now)

    def _emit(
        self,
        alert_type: AlertType,
        severity: Severity,
        message: str,
        now: float,
    ) -> Optional[AlertEvent]:
        last = self._state.last_alert_times.get(alert_type)
        if not cooldown_elapsed(last, now, self._thresholds.alert_cooldown):
            log.debug(f"Alert {alert_type.value} suppressed by cooldown "
                      f"({now - last:.0f} ms since last)")
            return None

        event = AlertEvent(
            id=new_alert_id(now),
            timestamp=now,
            type=alert_type,
            severity=severity,
            message=message,
        )
        self._state = replace(
            self._state,
            last_alert_times={**self._state.last_alert_times, alert_type: now},
        )
        log.info(f"ALERT [{severity.value}] {ALERT_TITLES[alert_type]}: {message}")

        self._on_alert(event)
        if self._sink is not None:
            try:
                self._sink(event)
            except Exception as e:
                log.error(f"Alert sink failed for {event.id}: {e}", exc_info=True)
        return event

    # ── Utility ───────────────────────────────────────────────────────────────

    def reset(self) -> None:
        """Forget every episode and cooldown (new session). Thresholds are kept."""
        self._state = AlertSystemState()
        log.info("AlertSystem reset.")
