"""Cross-platform merge of health readings into one AggregatedSnapshot.

Merge policy is fixed per metric:
    summed       steps, calories_burned, distance_km
    averaged     heart_rate_bpm (nearest integer), sleep_hours (nearest 0.1)
    point sample everything else: first reading, in priority order, that reports it

Pure: no I/O, inputs are never mutated.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Sequence

from vitalsync.domains.health.domain_logic.health_models import (
    AVERAGED_METRICS,
    POINT_SAMPLE_METRICS,
    SUMMED_METRICS,
    AggregatedSnapshot,
    HealthReading,
    Platform,
)


def round_half_up(value: float, places: int = 0) -> float | int:
    """Round like a person would (0.5 goes up), not banker's rounding."""
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


def compute_bmi(weight_kg: float, height_cm: float) -> float:
    """Body mass index, one decimal place."""
    height_m = height_cm / 100
    return round_half_up(weight_kg / (height_m * height_m), 1)


def _present(readings: Iterable[HealthReading], name: str) -> list[Any]:
    return [getattr(r, name) for r in readings if getattr(r, name) is not None]


def aggregate_readings(readings: Sequence[HealthReading]) -> AggregatedSnapshot:
    """Merge readings (ordered highest priority first) into one snapshot.

    An empty list yields a snapshot with every field absent.
    """
    merged: dict[str, Any] = {}

    for name in SUMMED_METRICS:
        values = _present(readings, name)
        if values:
            merged[name] = sum(values)

    for name, places in AVERAGED_METRICS.items():
        values = _present(readings, name)
        if values:
            merged[name] = round_half_up(sum(values) / len(values), places)

    for name in POINT_SAMPLE_METRICS:
        values = _present(readings, name)
        if values:
            merged[name] = values[0]

    if "bmi" not in merged and "weight_kg" in merged and "height_cm" in merged:
        merged["bmi"] = compute_bmi(merged["weight_kg"], merged["height_cm"])

    contributors: list[Platform] = []
    for reading in readings:
        if not reading.is_empty() and reading.platform not in contributors:
            contributors.append(reading.platform)

    return AggregatedSnapshot(**merged, platforms=tuple(contributors))


def order_by_priority(
    readings: Iterable[HealthReading],
    priority: Sequence[Platform | str],
) -> list[HealthReading]:
    """Sort readings by platform priority; unlisted platforms go last, order kept."""
    rank = {Platform(p): i for i, p in enumerate(priority)}
    return sorted(readings, key=lambda r: rank.get(r.platform, len(rank)))
