"""Threshold rule table for the Insight Engine.

Each rule is independent: it reads one snapshot metric, tests one band, and
emits at most one insight. Bands for the same metric never overlap, so the
result does not depend on rule order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from vitalsync.domains.health.domain_logic.aggregator import round_half_up
from vitalsync.domains.health.domain_logic.health_models import (
    AggregatedSnapshot,
    BloodPressure,
    Insight,
    InsightKind,
    Priority,
    SleepStages,
)

_REC = InsightKind.RECOMMENDATION
_ALERT = InsightKind.ALERT
_ACHIEVEMENT = InsightKind.ACHIEVEMENT


@dataclass(frozen=True)
class InsightRule:
    """One metric band mapped to one insight."""

    metric: str
    matches: Callable[[Any], bool]
    kind: InsightKind
    title: str
    description: str
    category: str
    priority: Priority | None = None

    def evaluate(self, snapshot: AggregatedSnapshot, *, created_at: str = "") -> Insight | None:
        value = getattr(snapshot, self.metric, None)
        if value is None or not self.matches(value):
            return None
        return Insight(
            kind=self.kind,
            title=self.title,
            description=self.description,
            category=self.category,
            priority=self.priority,
            metric=self.metric,
            created_at=created_at,
        )


def _bp_high(bp: BloodPressure) -> bool:
    return bp.systolic >= 140 or bp.diastolic >= 90


def _bp_elevated(bp: BloodPressure) -> bool:
    return not _bp_high(bp) and (bp.systolic >= 130 or bp.diastolic >= 85)


def _stage_share(stages: SleepStages, stage: str) -> float | None:
    total = stages.total_sleep
    if total <= 0:
        return None
    return getattr(stages, stage) / total * 100


def _deep_sleep_low(stages: SleepStages) -> bool:
    share = _stage_share(stages, "deep")
    return share is not None and share < 15


def _rem_sleep_low(stages: SleepStages) -> bool:
    share = _stage_share(stages, "rem")
    return share is not None and share < 20


DEFAULT_RULES: tuple[InsightRule, ...] = (
    # Body mass index
    InsightRule(
        "bmi", lambda v: v < 18.5, _REC, "Weight Management",
        "Your BMI indicates you may be underweight. Consider consulting with a "
        "nutritionist for a balanced diet plan.",
        "nutrition", Priority.MEDIUM,
    ),
    InsightRule(
        "bmi", lambda v: v > 25, _REC, "Healthy Weight Goals",
        "Focus on balanced nutrition and regular exercise to achieve a healthy BMI range.",
        "fitness", Priority.MEDIUM,
    ),
    # Blood pressure
    InsightRule(
        "blood_pressure", _bp_high, _ALERT, "Blood Pressure Alert",
        "Your blood pressure is elevated. Consider lifestyle changes and consult "
        "your healthcare provider.",
        "cardiovascular", Priority.HIGH,
    ),
    InsightRule(
        "blood_pressure", _bp_elevated, _REC, "Blood Pressure Monitoring",
        "Your blood pressure is in the elevated range. Monitor regularly and "
        "consider stress management.",
        "wellness", Priority.MEDIUM,
    ),
    # Heart rate
    InsightRule(
        "heart_rate_bpm", lambda v: v > 100, _REC, "Heart Rate Management",
        "Your resting heart rate is elevated. Consider cardiovascular exercise "
        "and stress reduction.",
        "cardiovascular", Priority.MEDIUM,
    ),
    InsightRule(
        "heart_rate_bpm", lambda v: v < 60, _REC, "Low Heart Rate",
        "Your heart rate is below normal. This could be normal for athletes, but "
        "consult a doctor if concerned.",
        "cardiovascular", Priority.LOW,
    ),
    # Sleep duration
    InsightRule(
        "sleep_hours", lambda v: v < 7, _REC, "Sleep Optimization",
        "Aim for 7-9 hours of quality sleep. Establish a consistent sleep schedule "
        "and bedtime routine.",
        "wellness", Priority.HIGH,
    ),
    InsightRule(
        "sleep_hours", lambda v: 7 <= v <= 9, _ACHIEVEMENT, "Optimal Sleep",
        "Great job maintaining healthy sleep habits!",
        "wellness",
    ),
    InsightRule(
        "sleep_hours", lambda v: v > 9, _REC, "Sleep Duration Check",
        "You're getting more than 9 hours of sleep. This might be excessive for "
        "some people.",
        "wellness", Priority.LOW,
    ),
    # Sleep architecture
    InsightRule(
        "sleep_stages", _deep_sleep_low, _REC, "Deep Sleep Support",
        "Your deep sleep percentage is lower than ideal. Try to reduce stress and "
        "avoid screens before bed.",
        "wellness", Priority.LOW,
    ),
    InsightRule(
        "sleep_stages", _rem_sleep_low, _REC, "REM Sleep Support",
        "Your REM sleep percentage is lower than ideal. Consider improving your "
        "sleep environment.",
        "wellness", Priority.LOW,
    ),
    # Activity
    InsightRule(
        "steps", lambda v: v < 5000, _REC, "Increase Physical Activity",
        "Try to reach at least 7,500 steps daily for better health outcomes.",
        "fitness", Priority.MEDIUM,
    ),
    InsightRule(
        "steps", lambda v: v >= 10000, _ACHIEVEMENT, "Step Goal Achieved",
        "Excellent! You've reached the recommended daily step count.",
        "fitness",
    ),
    # Self-reported wellness
    InsightRule(
        "hydration_level", lambda v: v < 60, _REC, "Hydration Boost",
        "Increase your water intake to maintain proper hydration levels.",
        "nutrition", Priority.LOW,
    ),
    InsightRule(
        "stress_level", lambda v: v > 7, _REC, "Stress Management",
        "Your stress levels are high. Consider meditation, exercise, or "
        "professional support.",
        "wellness", Priority.HIGH,
    ),
    InsightRule(
        "energy_level", lambda v: v < 5, _REC, "Energy Boost",
        "Low energy levels may indicate poor sleep, stress, or nutritional needs.",
        "wellness", Priority.MEDIUM,
    ),
    # Metabolic
    InsightRule(
        "blood_glucose", lambda v: v > 140, _ALERT, "Blood Glucose Alert",
        "Your blood glucose is elevated. Monitor your diet and consult a "
        "healthcare provider.",
        "metabolic", Priority.MEDIUM,
    ),
    InsightRule(
        "body_fat_percentage", lambda v: v > 25, _REC, "Body Composition Goals",
        "Consider strength training and balanced nutrition to improve body composition.",
        "fitness", Priority.MEDIUM,
    ),
)


def sleep_quality_score(stages: SleepStages | None) -> int | None:
    """0-100 score weighting deep and REM sleep over light, penalising awake time."""
    if stages is None:
        return None
    total = stages.total_sleep
    if total == 0:
        return 0
    score = (
        stages.deep / total * 0.4
        + stages.rem / total * 0.3
        + stages.light / total * 0.2
        - stages.awake / total * 0.1
    ) * 100
    return max(0, min(100, round_half_up(score)))
