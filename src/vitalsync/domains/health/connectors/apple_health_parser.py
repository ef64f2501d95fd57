"""Apple Health XML export parser.

Parses the ``export.xml`` file produced by Apple Health (iOS > Share > Export
Health Data). Large exports are streamed with iterparse.

HealthKit type mappings:
- HKQuantityTypeIdentifierStepCount -> steps (sum)
- HKQuantityTypeIdentifierActiveEnergyBurned -> calories_burned (sum)
- HKQuantityTypeIdentifierDistanceWalkingRunning -> distance_km (sum)
- HKQuantityTypeIdentifierRestingHeartRate / HeartRate -> heart_rate_bpm (mean)
- HKQuantityTypeIdentifierBodyMass -> weight_kg (latest)
- HKQuantityTypeIdentifierHeight -> height_cm (latest)
- HKQuantityTypeIdentifierBodyMassIndex -> bmi (latest)
- HKQuantityTypeIdentifierBodyFatPercentage -> body_fat_percentage (latest)
- HKQuantityTypeIdentifierBloodGlucose -> blood_glucose (latest)
- HKQuantityTypeIdentifierBloodPressureSystolic/Diastolic -> blood_pressure (latest)
- HKCategoryTypeIdentifierSleepAnalysis -> sleep_hours, sleep_stages
"""

from __future__ import annotations

import logging
import math
import statistics
import xml.etree.ElementTree as ET
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any

from vitalsync.domains.health.domain_logic.aggregator import round_half_up
from vitalsync.domains.health.domain_logic.health_models import (
    BloodPressure,
    SleepStages,
    TimeRange,
)

logger = logging.getLogger(__name__)

# HealthKit quantity type identifiers
_STEPS = "HKQuantityTypeIdentifierStepCount"
_ENERGY = "HKQuantityTypeIdentifierActiveEnergyBurned"
_DISTANCE = "HKQuantityTypeIdentifierDistanceWalkingRunning"
_HR = "HKQuantityTypeIdentifierHeartRate"
_RESTING_HR = "HKQuantityTypeIdentifierRestingHeartRate"
_BODY_MASS = "HKQuantityTypeIdentifierBodyMass"
_HEIGHT = "HKQuantityTypeIdentifierHeight"
_BMI = "HKQuantityTypeIdentifierBodyMassIndex"
_BODY_FAT = "HKQuantityTypeIdentifierBodyFatPercentage"
_GLUCOSE = "HKQuantityTypeIdentifierBloodGlucose"
_BP_SYS = "HKQuantityTypeIdentifierBloodPressureSystolic"
_BP_DIA = "HKQuantityTypeIdentifierBloodPressureDiastolic"

_SLEEP = "HKCategoryTypeIdentifierSleepAnalysis"

_QUANTITY_TYPES = {
    _STEPS, _ENERGY, _DISTANCE, _HR, _RESTING_HR,
    _BODY_MASS, _HEIGHT, _BMI, _BODY_FAT, _GLUCOSE,
    _BP_SYS, _BP_DIA,
}

# Sleep analysis category values -> stage
_SLEEP_STAGE = {
    "HKCategoryValueSleepAnalysisAsleepDeep": "deep",
    "HKCategoryValueSleepAnalysisAsleepREM": "rem",
    "HKCategoryValueSleepAnalysisAsleepCore": "light",
    "HKCategoryValueSleepAnalysisAsleepUnspecified": "light",
    "HKCategoryValueSleepAnalysisAsleep": "light",
    "HKCategoryValueSleepAnalysisAwake": "awake",
}
_SLEEP_IN_BED = "HKCategoryValueSleepAnalysisInBed"

_KG_PER_LB = 0.45359237
_KM_PER_MI = 1.609344
_KCAL_PER_KJ = 1 / 4.184
_MGDL_PER_MMOL = 18.0


class AppleHealthParseError(Exception):
    """Raised when parsing Apple Health export XML fails."""


def _parse_date(date_str: str) -> datetime:
    """Parse Apple Health date format: '2025-12-01 08:30:00 -0500'."""
    try:
        return datetime.strptime(date_str, "%Y-%m-%d %H:%M:%S %z")
    except ValueError:
        parsed = datetime.fromisoformat(date_str)
    if parsed.tzinfo is None:
        raise ValueError(f"Date has no UTC offset: {date_str!r}")
    return parsed


def parse_apple_health_export(
    export_path: str | Path,
    time_range: TimeRange,
) -> dict[str, list[dict[str, Any]]]:
    """Parse an Apple Health export.xml and return records grouped by type.

    Quantity records count when they start inside the range. Sleep records
    count when they end inside it, so last night's sleep belongs to today.

    Args:
        export_path: Path to the Apple Health export.xml file.
        time_range: Window the reading covers.

    Returns:
        Dict mapping record type to list of parsed records. Quantity
        records: {"value": float, "date": str, "unit": str}. Sleep records
        (under "sleep"): {"duration_hours": float, "date": str, "value": str}.

    Raises:
        AppleHealthParseError: If the file is missing or is not valid XML.
    """
    path = Path(export_path)
    if not path.is_file():
        raise AppleHealthParseError(f"Export file not found: {path}")

    records: dict[str, list[dict[str, Any]]] = defaultdict(list)
    sleep_records: list[dict[str, Any]] = []
    skipped = 0

    try:
        for _, elem in ET.iterparse(str(path), events=("end",)):
            if elem.tag != "Record":
                continue
            rec_type = elem.get("type", "")

            if rec_type in _QUANTITY_TYPES:
                try:
                    dt = _parse_date(elem.get("startDate", ""))
                    value = float(elem.get("value", ""))
                    if not math.isfinite(value):
                        raise ValueError(f"Non-finite value: {value}")
                except (ValueError, TypeError):
                    skipped += 1
                else:
                    if time_range.start <= dt < time_range.end:
                        records[rec_type].append({
                            "value": value,
                            "date": dt.isoformat(),
                            "unit": elem.get("unit", ""),
                        })

            elif rec_type == _SLEEP:
                try:
                    start_dt = _parse_date(elem.get("startDate", ""))
                    end_dt = _parse_date(elem.get("endDate", ""))
                except (ValueError, TypeError):
                    skipped += 1
                else:
                    if time_range.start < end_dt <= time_range.end:
                        sleep_records.append({
                            "duration_hours": (end_dt - start_dt).total_seconds() / 3600,
                            "date": end_dt.isoformat(),
                            "value": elem.get("value", ""),
                        })

            elem.clear()

    except ET.ParseError as exc:
        raise AppleHealthParseError(f"Invalid XML: {exc}") from exc

    result = dict(records)
    if sleep_records:
        result["sleep"] = sleep_records

    logger.info(
        "Parsed Apple Health export: %d record types, %d sleep records, %d skipped",
        len(records), len(sleep_records), skipped,
    )
    return result


def _latest(records: list[dict[str, Any]]) -> dict[str, Any]:
    return max(records, key=lambda r: r["date"])


def _to_kg(value: float, unit: str) -> float:
    return value * _KG_PER_LB if unit == "lb" else value


def _to_cm(value: float, unit: str) -> float:
    return {"m": value * 100, "in": value * 2.54, "ft": value * 30.48}.get(unit, value)


def _to_km(value: float, unit: str) -> float:
    return {"mi": value * _KM_PER_MI, "m": value / 1000}.get(unit, value)


def summarize_reading(parsed: dict[str, list[dict[str, Any]]]) -> dict[str, Any]:
    """Reduce parsed records to HealthReading metric kwargs."""
    result: dict[str, Any] = {}

    steps = parsed.get(_STEPS, [])
    if steps:
        result["steps"] = int(sum(r["value"] for r in steps))

    energy = parsed.get(_ENERGY, [])
    if energy:
        kcal = sum(r["value"] * _KCAL_PER_KJ if r["unit"] == "kJ" else r["value"] for r in energy)
        result["calories_burned"] = round_half_up(kcal, 1)

    distance = parsed.get(_DISTANCE, [])
    if distance:
        km = sum(_to_km(r["value"], r["unit"]) for r in distance)
        result["distance_km"] = round_half_up(km, 2)

    # Resting heart rate is what the insight thresholds are written for.
    heart = parsed.get(_RESTING_HR) or parsed.get(_HR, [])
    if heart:
        result["heart_rate_bpm"] = float(round_half_up(statistics.mean(r["value"] for r in heart)))

    weight = parsed.get(_BODY_MASS, [])
    if weight:
        latest = _latest(weight)
        result["weight_kg"] = round_half_up(_to_kg(latest["value"], latest["unit"]), 1)

    height = parsed.get(_HEIGHT, [])
    if height:
        latest = _latest(height)
        result["height_cm"] = round_half_up(_to_cm(latest["value"], latest["unit"]), 1)

    bmi = parsed.get(_BMI, [])
    if bmi:
        result["bmi"] = round_half_up(_latest(bmi)["value"], 1)

    body_fat = parsed.get(_BODY_FAT, [])
    if body_fat:
        # Stored as a fraction (0.22 = 22%)
        bf = _latest(body_fat)["value"]
        result["body_fat_percentage"] = round_half_up(bf * 100 if bf <= 1 else bf, 1)

    glucose = parsed.get(_GLUCOSE, [])
    if glucose:
        latest = _latest(glucose)
        value = latest["value"]
        if latest["unit"].lower().startswith("mmol"):
            value *= _MGDL_PER_MMOL
        result["blood_glucose"] = round_half_up(value, 1)

    systolic = parsed.get(_BP_SYS, [])
    diastolic = parsed.get(_BP_DIA, [])
    if systolic and diastolic:
        result["blood_pressure"] = BloodPressure(
            systolic=_latest(systolic)["value"],
            diastolic=_latest(diastolic)["value"],
        )

    sleep = parsed.get("sleep", [])
    if sleep:
        hours: dict[str, float] = defaultdict(float)
        for record in sleep:
            if record["value"] == _SLEEP_IN_BED:
                continue
            hours[_SLEEP_STAGE.get(record["value"], "awake")] += record["duration_hours"]
        asleep = hours["deep"] + hours["light"] + hours["rem"]
        if asleep or hours["awake"]:
            result["sleep_hours"] = round_half_up(asleep, 1)
            result["sleep_stages"] = SleepStages(
                deep=round_half_up(hours["deep"], 1),
                light=round_half_up(hours["light"], 1),
                rem=round_half_up(hours["rem"], 1),
                awake=round_half_up(hours["awake"], 1),
            )

    return result
