"""Tests for physiological range validation."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from vitalsync.domains.health.domain_logic.health_models import (
    BloodPressure,
    HealthReading,
    Platform,
    SleepStages,
)
from vitalsync.domains.health.domain_logic.validation import (
    ValidationError,
    ensure_valid,
    validate_metrics,
    validate_reading,
)

_AT = datetime(2026, 2, 3, 12, 0, tzinfo=timezone.utc)


class TestValidateMetrics:
    def test_in_range_values_pass(self):
        assert validate_metrics({
            "steps": 8000,
            "heart_rate_bpm": 72,
            "sleep_hours": 7.5,
            "weight_kg": 70,
            "blood_pressure": {"systolic": 120, "diastolic": 80},
        }) == []

    @pytest.mark.parametrize("metric,value", [
        ("steps", -1),
        ("steps", 100_001),
        ("heart_rate_bpm", 29),
        ("heart_rate_bpm", 221),
        ("sleep_hours", 25),
        ("weight_kg", 19),
        ("blood_glucose", 700),
        ("stress_level", 11),
        ("calories_burned", -5),
    ])
    def test_out_of_range(self, metric, value):
        errors = validate_metrics({metric: value})
        assert len(errors) == 1

    def test_bounds_are_inclusive(self):
        assert validate_metrics({"heart_rate_bpm": 30, "sleep_hours": 24}) == []

    def test_non_numeric_rejected(self):
        assert validate_metrics({"steps": "lots"}) == ["Steps must be between 0 and 100,000"]
        assert validate_metrics({"steps": True})

    @pytest.mark.parametrize("metric,value", [
        ("steps", float("nan")),
        ("heart_rate_bpm", float("nan")),
        ("calories_burned", float("inf")),
        ("distance_km", float("inf")),
        ("weight_kg", float("-inf")),
    ])
    def test_non_finite_rejected(self, metric, value):
        assert len(validate_metrics({metric: value})) == 1

    def test_non_finite_blood_pressure_and_stages(self):
        errors = validate_metrics({
            "blood_pressure": {"systolic": float("nan"), "diastolic": 80},
            "sleep_stages": {"deep": float("inf"), "light": 4},
        })
        assert errors == [
            "Systolic blood pressure must be between 70 and 200 mmHg",
            "Sleep stage 'deep' must be between 0 and 24 hours",
        ]

    @pytest.mark.parametrize("metric,value,ok", [
        ("body_temperature_c", 36.8, True),
        ("body_temperature_c", 43, False),
        ("oxygen_saturation", 97, True),
        ("oxygen_saturation", 65, False),
        ("respiratory_rate", 16, True),
        ("respiratory_rate", 4, False),
    ])
    def test_vital_sign_ranges(self, metric, value, ok):
        assert (validate_metrics({metric: value}) == []) is ok

    def test_absent_values_ignored(self):
        assert validate_metrics({"steps": None}) == []

    def test_blood_pressure_components(self):
        errors = validate_metrics({"blood_pressure": BloodPressure(systolic=250, diastolic=30)})
        assert len(errors) == 2

    def test_sleep_stage_ranges(self):
        errors = validate_metrics({"sleep_stages": {"deep": -1, "light": 4}})
        assert errors == ["Sleep stage 'deep' must be between 0 and 24 hours"]


class TestReadingValidation:
    def test_validate_reading(self):
        reading = HealthReading(
            platform=Platform.FITBIT, captured_at=_AT,
            heart_rate_bpm=250, sleep_stages=SleepStages(deep=1, light=4, rem=1.5),
        )
        assert validate_reading(reading) == ["Heart rate must be between 30 and 220 bpm"]

    def test_ensure_valid_returns_reading(self):
        reading = HealthReading(platform=Platform.MANUAL, captured_at=_AT, steps=100)
        assert ensure_valid(reading) is reading

    def test_ensure_valid_raises_with_all_errors(self):
        reading = HealthReading(
            platform=Platform.MANUAL, captured_at=_AT, steps=-1, heart_rate_bpm=10,
        )
        with pytest.raises(ValidationError) as exc_info:
            ensure_valid(reading)
        assert len(exc_info.value.errors) == 2
        assert isinstance(exc_info.value, ValueError)
