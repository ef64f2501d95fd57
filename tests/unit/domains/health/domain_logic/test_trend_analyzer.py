"""Tests for the TrendAnalyzer window comparison."""

from __future__ import annotations

import pytest

from vitalsync.domains.health.domain_logic.health_models import TrendLabel
from vitalsync.domains.health.domain_logic.trend_analyzer import (
    DEFAULT_WINDOW,
    TrendAnalyzer,
    metric_series,
)


def _history(metric: str, values: list[float]) -> list[dict]:
    return [{metric: v} for v in values]


class TestComputeMetricTrend:
    def test_insufficient_data_below_two_windows(self):
        analyzer = TrendAnalyzer(window=7)
        result = analyzer.compute_metric_trend([1.0] * 13)
        assert result["direction"] is TrendLabel.INSUFFICIENT_DATA
        assert result["data_points"] == 13
        assert result["required_points"] == 14

    def test_improving_when_higher_is_better(self):
        analyzer = TrendAnalyzer(window=3)
        result = analyzer.compute_metric_trend([5000, 5000, 5000, 6000, 6000, 6000])
        assert result["direction"] is TrendLabel.IMPROVING
        assert result["recent_mean"] == 6000
        assert result["prior_mean"] == 5000
        assert result["change_pct"] == 20.0

    def test_rising_heart_rate_is_declining(self):
        analyzer = TrendAnalyzer(window=2)
        result = analyzer.compute_metric_trend([60, 60, 70, 70], higher_is_better=False)
        assert result["direction"] is TrendLabel.DECLINING

    def test_small_change_is_stable(self):
        analyzer = TrendAnalyzer(window=2, threshold_pct=5.0)
        result = analyzer.compute_metric_trend([100, 100, 103, 103])
        assert result["direction"] is TrendLabel.STABLE

    def test_only_last_two_windows_count(self):
        analyzer = TrendAnalyzer(window=2)
        # The leading 1s fall outside both windows.
        values = [1, 1, 1, 100, 100, 100, 100]
        assert analyzer.label(values) is TrendLabel.STABLE

    def test_zero_prior_mean(self):
        analyzer = TrendAnalyzer(window=1)
        assert analyzer.label([0, 0]) is TrendLabel.STABLE
        assert analyzer.label([0, 5]) is TrendLabel.IMPROVING

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            TrendAnalyzer(window=0)


class TestAnalyze:
    def test_labels_every_tracked_metric(self):
        analyzer = TrendAnalyzer()
        history = _history("steps", [4000] * DEFAULT_WINDOW + [8000] * DEFAULT_WINDOW)
        labels = analyzer.analyze(history)
        assert labels["steps"] is TrendLabel.IMPROVING
        assert labels["heart_rate_bpm"] is TrendLabel.INSUFFICIENT_DATA
        assert set(labels) == {"steps", "heart_rate_bpm", "sleep_hours", "weight_kg"}

    def test_empty_history(self):
        labels = TrendAnalyzer().analyze([])
        assert all(label is TrendLabel.INSUFFICIENT_DATA for label in labels.values())

    def test_weight_gain_is_declining(self):
        analyzer = TrendAnalyzer(window=2)
        labels = analyzer.analyze(_history("weight_kg", [70, 70, 80, 80]))
        assert labels["weight_kg"] is TrendLabel.DECLINING

    def test_custom_metrics(self):
        analyzer = TrendAnalyzer(window=1, metrics={"blood_glucose": False})
        assert analyzer.analyze(_history("blood_glucose", [100, 90])) == {
            "blood_glucose": TrendLabel.IMPROVING,
        }


class TestDescribe:
    def test_direction_is_plain_string(self):
        analyzer = TrendAnalyzer(window=1)
        described = analyzer.describe(_history("sleep_hours", [6.0, 8.0]))
        assert described["sleep_hours"]["direction"] == "improving"
        assert described["sleep_hours"]["change_pct"] == 33.33
        assert described["steps"]["direction"] == "insufficient_data"


class TestMetricSeries:
    def test_skips_gaps_and_non_numbers(self):
        history = [{"steps": 10}, {}, {"steps": None}, {"steps": "12"}, {"steps": True}, {"steps": 12.5}]
        assert metric_series(history, "steps") == [10.0, 12.5]
