"""Window-comparison trend labels for tracked health metrics.

The most recent ``window`` values of a metric are compared against the
``window`` values before them. A percentage change beyond the threshold is a
direction; anything smaller is stable.
"""

from __future__ import annotations

import logging
import statistics
from typing import Any, Mapping, Sequence

from vitalsync.domains.health.domain_logic.health_models import TrendLabel

logger = logging.getLogger(__name__)

# metric -> True when a higher value is better
TRACKED_METRICS: dict[str, bool] = {
    "steps": True,
    "heart_rate_bpm": False,
    "sleep_hours": True,
    "weight_kg": False,
}

DEFAULT_WINDOW = 7
DEFAULT_THRESHOLD_PCT = 5.0


def metric_series(history: Sequence[Mapping[str, Any]], metric: str) -> list[float]:
    """Values of one metric across history entries (oldest first), gaps skipped."""
    series = []
    for entry in history:
        value = entry.get(metric)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            series.append(float(value))
    return series


class TrendAnalyzer:
    """Labels each tracked metric as improving, declining, stable or insufficient_data.

    Usage::

        analyzer = TrendAnalyzer(window=7, threshold_pct=5.0)
        trends = analyzer.analyze(history)  # {"steps": TrendLabel.IMPROVING, ...}
    """

    def __init__(
        self,
        *,
        window: int = DEFAULT_WINDOW,
        threshold_pct: float = DEFAULT_THRESHOLD_PCT,
        metrics: Mapping[str, bool] | None = None,
    ) -> None:
        if window < 1:
            raise ValueError("Trend window must be at least 1")
        self.window = window
        self.threshold_pct = threshold_pct
        self.metrics = dict(metrics if metrics is not None else TRACKED_METRICS)

    def compute_metric_trend(
        self,
        values: Sequence[float],
        *,
        higher_is_better: bool = True,
    ) -> dict[str, Any]:
        """Compare the last window against the prior window.

        Args:
            values: Metric values, oldest first.
            higher_is_better: Polarity of the metric.

        Returns:
            Dict with: direction, data_points, and when enough data exists
            recent_mean, prior_mean, change_pct.
        """
        needed = self.window * 2
        if len(values) < needed:
            return {
                "direction": TrendLabel.INSUFFICIENT_DATA,
                "data_points": len(values),
                "required_points": needed,
            }

        recent = values[-self.window:]
        prior = values[-needed:-self.window]
        recent_mean = statistics.mean(recent)
        prior_mean = statistics.mean(prior)

        if prior_mean == 0:
            change_pct = 0.0 if recent_mean == 0 else (100.0 if recent_mean > 0 else -100.0)
        else:
            change_pct = (recent_mean - prior_mean) / abs(prior_mean) * 100

        if abs(change_pct) < self.threshold_pct:
            direction = TrendLabel.STABLE
        elif (change_pct > 0) == higher_is_better:
            direction = TrendLabel.IMPROVING
        else:
            direction = TrendLabel.DECLINING

        return {
            "direction": direction,
            "data_points": len(values),
            "recent_mean": round(recent_mean, 2),
            "prior_mean": round(prior_mean, 2),
            "change_pct": round(change_pct, 2),
        }

    def label(self, values: Sequence[float], *, higher_is_better: bool = True) -> TrendLabel:
        return self.compute_metric_trend(values, higher_is_better=higher_is_better)["direction"]

    def analyze(self, history: Sequence[Mapping[str, Any]]) -> dict[str, TrendLabel]:
        """Trend label for every tracked metric."""
        return {
            metric: self.label(metric_series(history, metric), higher_is_better=polarity)
            for metric, polarity in self.metrics.items()
        }

    def describe(self, history: Sequence[Mapping[str, Any]]) -> dict[str, dict[str, Any]]:
        """Detailed trend statistics for every tracked metric."""
        result = {}
        for metric, polarity in self.metrics.items():
            trend = self.compute_metric_trend(
                metric_series(history, metric), higher_is_better=polarity
            )
            trend["direction"] = trend["direction"].value
            result[metric] = trend
        return result
