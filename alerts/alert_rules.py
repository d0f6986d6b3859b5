# =============================================================================
# alerts/alert_rules.py
#
# The six behavioural alert rules and the generic engine that evaluates them.
#
# Every rule has the same shape:
#     evaluate(value, thresholds) → Severity | None     (None = not triggered)
# and is one of two kinds:
#
#   IMMEDIATE: fires whenever evaluate() returns a severity
#   DURATION:  fires only after the condition has held continuously for
#               the rule's configured duration (an "episode"):
#
#         idle ──(triggered)──→ episode(start=now)
#           ↑                      │  now − start ≥ duration → FIRE, start = now
#           └──(not triggered)─────┘
#
# Leaving the condition discards the episode; partial episodes never add up.
# Cooldown between emissions of the same type is enforced by the AlertSystem.
# =============================================================================

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Tuple

from config import PAIN_BLENDSHAPES, ENGAGEMENT_WEIGHTS
from monitor_engine.data_structures import AlertThresholds, AlertType, Severity


class RuleKind(str, Enum):
    IMMEDIATE = "immediate"
    DURATION  = "duration"


@dataclass(frozen=True)
class AlertRule:
    alert_type: AlertType
    kind: RuleKind
    evaluate: Callable[[float, AlertThresholds], Optional[Severity]]
    message: Callable[[float, AlertThresholds], str]
    # Name of the AlertThresholds field holding the episode length (DURATION only)
    duration_field: Optional[str] = None

    def duration(self, thresholds: AlertThresholds) -> float:
        return float(getattr(thresholds, self.duration_field)) if self.duration_field else 0.0


# ── Signal helpers ────────────────────────────────────────────────────────────

def pain_score(blendshapes: Mapping[str, float]) -> float:
    """Mean activation of the FACS pain indicators; missing names count as 0."""
    return sum(blendshapes.get(name, 0.0) or 0.0 for name in PAIN_BLENDSHAPES) / len(PAIN_BLENDSHAPES)


def engagement_score(emotions: Mapping[str, float], attention_score: float) -> float:
    """
    engagement = 0.3 · (1 − neutral) + 0.3 · happy + 0.4 · attention
    Missing emotions count as 0.
    """
    w = ENGAGEMENT_WEIGHTS
    neutral = emotions.get("neutral", 0.0) or 0.0
    happy   = emotions.get("happy", 0.0) or 0.0
    return (
        w["non_neutral"] * (1.0 - neutral) +
        w["happy"]       * happy +
        w["attention"]   * attention_score
    )


def _minutes(ms: float) -> int:
    return round(ms / 60_000)


# ── Rule predicates ───────────────────────────────────────────────────────────

def _sadness(value: float, th: AlertThresholds) -> Optional[Severity]:
    return Severity.MEDIUM if value >= th.sadness_threshold else None


def _low_attention(value: float, th: AlertThresholds) -> Optional[Severity]:
    return Severity.LOW if value < th.low_attention_threshold else None


def _blink_rate(value: float, th: AlertThresholds) -> Optional[Severity]:
    if value < th.min_blink_rate:
        return Severity.MEDIUM
    if value > th.max_blink_rate:
        return Severity.LOW
    return None


def _inactivity(value: float, th: AlertThresholds) -> Optional[Severity]:
    # value is the face-presence flag as 0.0 / 1.0
    return Severity.HIGH if not value else None


def _pain(value: float, th: AlertThresholds) -> Optional[Severity]:
    return Severity.HIGH if value >= th.pain_threshold else None


def _low_engagement(value: float, th: AlertThresholds) -> Optional[Severity]:
    return Severity.MEDIUM if value < th.low_engagement_threshold else None


def _blink_rate_message(value: float, th: AlertThresholds) -> str:
    kind = "low" if value < th.min_blink_rate else "high"
    return (f"Abnormal blink rate ({kind}): {value:g} blinks/min "
            f"(expected {th.min_blink_rate:g}–{th.max_blink_rate:g})")


ALERT_RULES: Dict[AlertType, AlertRule] = {
    AlertType.PROLONGED_SADNESS: AlertRule(
        alert_type=AlertType.PROLONGED_SADNESS,
        kind=RuleKind.DURATION,
        evaluate=_sadness,
        duration_field="sadness_duration",
        message=lambda v, th: (
            f"Prolonged sadness detected for over {_minutes(th.sadness_duration)} minutes"
        ),
    ),
    AlertType.LOW_ATTENTION: AlertRule(
        alert_type=AlertType.LOW_ATTENTION,
        kind=RuleKind.DURATION,
        evaluate=_low_attention,
        duration_field="low_attention_duration",
        message=lambda v, th: (
            f"Low attention detected for over {_minutes(th.low_attention_duration)} minutes"
        ),
    ),
    AlertType.ABNORMAL_BLINK_RATE: AlertRule(
        alert_type=AlertType.ABNORMAL_BLINK_RATE,
        kind=RuleKind.IMMEDIATE,
        evaluate=_blink_rate,
        message=_blink_rate_message,
    ),
    AlertType.PROLONGED_INACTIVITY: AlertRule(
        alert_type=AlertType.PROLONGED_INACTIVITY,
        kind=RuleKind.DURATION,
        evaluate=_inactivity,
        duration_field="inactivity_duration",
        message=lambda v, th: (
            f"No face detected for over {_minutes(th.inactivity_duration)} minutes"
        ),
    ),
    AlertType.PAIN_DETECTED: AlertRule(
        alert_type=AlertType.PAIN_DETECTED,
        kind=RuleKind.IMMEDIATE,
        evaluate=_pain,
        message=lambda v, th: f"Possible pain indicators detected (score: {v * 100:.0f}%)",
    ),
    AlertType.LOW_ENGAGEMENT: AlertRule(
        alert_type=AlertType.LOW_ENGAGEMENT,
        kind=RuleKind.DURATION,
        evaluate=_low_engagement,
        duration_field="low_engagement_duration",
        message=lambda v, th: (
            f"Low engagement detected for over {_minutes(th.low_engagement_duration)} minutes"
        ),
    ),
}

ALERT_TITLES: Dict[AlertType, str] = {
    AlertType.PROLONGED_SADNESS:    "Prolonged Sadness",
    AlertType.LOW_ATTENTION:        "Low Attention",
    AlertType.ABNORMAL_BLINK_RATE:  "Abnormal Blink Rate",
    AlertType.PROLONGED_INACTIVITY: "Prolonged Inactivity",
    AlertType.PAIN_DETECTED:        "Possible Pain",
    AlertType.LOW_ENGAGEMENT:       "Low Engagement",
}


# ── Engine ────────────────────────────────────────────────────────────────────

def step_episode(
    start: Optional[float],
    triggered: bool,
    now: float,
    duration: float,
) -> Tuple[Optional[float], bool]:
    """
    Advance one duration-rule episode.

    Returns:
        (new_start, fire) — new_start is None when idle
    """
    if not triggered:
        return None, False
    if start is None:
        return now, False
    if now - start >= duration:
        return now, True
    return start, False


def cooldown_elapsed(last_emitted: Optional[float], now: float, cooldown: float) -> bool:
    """True when an alert type may be emitted again."""
    return last_emitted is None or now - last_emitted > cooldown
