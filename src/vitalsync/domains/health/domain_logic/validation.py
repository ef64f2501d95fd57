"""Physiological range checks applied before a reading enters a snapshot."""

from __future__ import annotations

import math
from numbers import Real
from typing import Any

from vitalsync.domains.health.domain_logic.health_models import HealthReading

# metric -> (min, max, message). ``None`` bound = unbounded.
PHYSIOLOGICAL_RANGES: dict[str, tuple[float | None, float | None, str]] = {
    "steps": (0, 100_000, "Steps must be between 0 and 100,000"),
    "heart_rate_bpm": (30, 220, "Heart rate must be between 30 and 220 bpm"),
    "sleep_hours": (0, 24, "Sleep hours must be between 0 and 24"),
    "weight_kg": (20, 500, "Weight must be between 20 and 500 kg"),
    "height_cm": (50, 300, "Height must be between 50 and 300 cm"),
    "blood_glucose": (20, 600, "Blood glucose must be between 20 and 600 mg/dL"),
    "body_fat_percentage": (2, 50, "Body fat percentage must be between 2% and 50%"),
    "hydration_level": (0, 100, "Hydration level must be between 0% and 100%"),
    "stress_level": (0, 10, "Stress level must be between 0 and 10"),
    "energy_level": (0, 10, "Energy level must be between 0 and 10"),
    "body_temperature_c": (35, 42, "Body temperature must be between 35 and 42 C"),
    "oxygen_saturation": (70, 100, "Oxygen saturation must be between 70% and 100%"),
    "respiratory_rate": (8, 40, "Respiratory rate must be between 8 and 40 breaths per minute"),
    "calories_burned": (0, None, "Calories burned must not be negative"),
    "distance_km": (0, None, "Distance must not be negative"),
    "bmi": (5, 100, "BMI must be between 5 and 100"),
}

_SYSTOLIC_RANGE = (70, 200, "Systolic blood pressure must be between 70 and 200 mmHg")
_DIASTOLIC_RANGE = (40, 130, "Diastolic blood pressure must be between 40 and 130 mmHg")


class ValidationError(ValueError):
    """Raised when health data is malformed or outside physiological ranges."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


def _is_number(value: Any) -> bool:
    """Finite real number; NaN and infinity are malformed input."""
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def _check(value: Any, lo: float | None, hi: float | None, message: str) -> str | None:
    if not _is_number(value):
        return message
    if lo is not None and value < lo:
        return message
    if hi is not None and value > hi:
        return message
    return None


def validate_metrics(metrics: dict[str, Any]) -> list[str]:
    """Return range violations for a mapping of metric name -> value.

    ``blood_pressure`` and ``sleep_stages`` may be given as their model
    objects or as plain dicts.
    """
    errors: list[str] = []

    for name, (lo, hi, message) in PHYSIOLOGICAL_RANGES.items():
        value = metrics.get(name)
        if value is None:
            continue
        error = _check(value, lo, hi, message)
        if error:
            errors.append(error)

    bp = metrics.get("blood_pressure")
    if bp is not None:
        systolic = bp.get("systolic") if isinstance(bp, dict) else getattr(bp, "systolic", None)
        diastolic = bp.get("diastolic") if isinstance(bp, dict) else getattr(bp, "diastolic", None)
        for value, (lo, hi, message) in ((systolic, _SYSTOLIC_RANGE), (diastolic, _DIASTOLIC_RANGE)):
            error = _check(value, lo, hi, message)
            if error:
                errors.append(error)

    stages = metrics.get("sleep_stages")
    if stages is not None:
        for stage in ("deep", "light", "rem", "awake"):
            value = stages.get(stage, 0) if isinstance(stages, dict) else getattr(stages, stage, 0)
            error = _check(value, 0, 24, f"Sleep stage '{stage}' must be between 0 and 24 hours")
            if error:
                errors.append(error)

    return errors


def validate_reading(reading: HealthReading) -> list[str]:
    """Return range violations for every metric the reading reports."""
    return validate_metrics(reading.metrics())


def ensure_valid(reading: HealthReading) -> HealthReading:
    """Return the reading unchanged, or raise ValidationError."""
    errors = validate_reading(reading)
    if errors:
        raise ValidationError(errors)
    return reading
