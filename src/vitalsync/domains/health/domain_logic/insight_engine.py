"""Insight Engine: rule table + trend labels + next steps over a snapshot.

Deterministic: the same snapshot, history and ``now`` always produce the same
report. Persisting the insights is the caller's job.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Sequence

from vitalsync.domains.health.domain_logic.health_models import (
    AggregatedSnapshot,
    Insight,
    InsightKind,
    InsightReport,
    Priority,
)
from vitalsync.domains.health.domain_logic.insight_rules import DEFAULT_RULES, InsightRule
from vitalsync.domains.health.domain_logic.trend_analyzer import TrendAnalyzer

NEXT_STEP_ADDRESS_ALERTS = "Address alerts first"
NEXT_STEP_HIGH_PRIORITY = "Focus on high-priority recommendations"
NEXT_STEP_KEEP_MONITORING = "Keep monitoring your health metrics"
NEXT_STEP_SET_GOALS = "Set specific, achievable health goals"


def derive_next_steps(
    recommendations: Sequence[Insight],
    alerts: Sequence[Insight],
) -> tuple[str, ...]:
    steps: list[str] = []
    if alerts:
        steps.append(NEXT_STEP_ADDRESS_ALERTS)
    if any(r.priority is Priority.HIGH for r in recommendations):
        steps.append(NEXT_STEP_HIGH_PRIORITY)
    steps.append(NEXT_STEP_KEEP_MONITORING)
    steps.append(NEXT_STEP_SET_GOALS)
    return tuple(steps)


class InsightEngine:
    """Applies the insight rule table and trend analysis to a snapshot.

    Usage::

        engine = InsightEngine()
        report = engine.evaluate(snapshot, history, now=now)
        report.alerts, report.trends, report.next_steps
    """

    def __init__(
        self,
        rules: Sequence[InsightRule] = DEFAULT_RULES,
        trend_analyzer: TrendAnalyzer | None = None,
    ) -> None:
        self._rules = tuple(rules)
        self._trends = trend_analyzer or TrendAnalyzer()

    @property
    def rules(self) -> tuple[InsightRule, ...]:
        return self._rules

    @property
    def trend_analyzer(self) -> TrendAnalyzer:
        return self._trends

    def evaluate_rules(
        self,
        snapshot: AggregatedSnapshot,
        *,
        now: datetime | None = None,
    ) -> list[Insight]:
        """Insights from every matching rule, in rule-table order."""
        created_at = now.isoformat() if now is not None else ""
        insights = []
        for rule in self._rules:
            insight = rule.evaluate(snapshot, created_at=created_at)
            if insight is not None:
                insights.append(insight)
        return insights

    def evaluate(
        self,
        snapshot: AggregatedSnapshot,
        history: Sequence[Mapping[str, Any]] = (),
        *,
        now: datetime | None = None,
    ) -> InsightReport:
        """Full evaluation pass.

        Args:
            snapshot: Merged cross-platform snapshot.
            history: Metric maps, oldest first, used for trend labels.
            now: Stamped onto each insight's ``created_at`` when given.
        """
        insights = self.evaluate_rules(snapshot, now=now)
        recommendations = tuple(i for i in insights if i.kind is InsightKind.RECOMMENDATION)
        alerts = tuple(i for i in insights if i.kind is InsightKind.ALERT)
        achievements = tuple(i for i in insights if i.kind is InsightKind.ACHIEVEMENT)

        return InsightReport(
            recommendations=recommendations,
            alerts=alerts,
            achievements=achievements,
            trends=self._trends.analyze(history),
            next_steps=derive_next_steps(recommendations, alerts),
        )
