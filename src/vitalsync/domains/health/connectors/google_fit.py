"""Google Fit REST adapter. One ``dataset:aggregate`` call per reading."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

import httpx

from vitalsync.domains.health.connectors.errors import ProviderUnavailable
from vitalsync.domains.health.connectors.http_support import (
    DEFAULT_HTTP_TIMEOUT,
    client_session,
    request_json,
)
from vitalsync.domains.health.domain_logic.aggregator import round_half_up
from vitalsync.domains.health.domain_logic.health_models import (
    BloodPressure,
    HealthReading,
    Platform,
    SleepStages,
    TimeRange,
)

logger = logging.getLogger(__name__)

GOOGLE_FIT_API_BASE_URL = "https://www.googleapis.com/fitness/v1"

AGGREGATE_DATA_TYPES = (
    "com.google.step_count.delta",
    "com.google.heart_rate.bpm",
    "com.google.calories.expended",
    "com.google.distance.delta",
    "com.google.weight",
    "com.google.blood_pressure",
    "com.google.sleep.segment",
)

# com.google.sleep.segment values
_SLEEP_AWAKE = 1
_SLEEP_GENERIC = 2
_SLEEP_OUT_OF_BED = 3
_SLEEP_LIGHT = 4
_SLEEP_DEEP = 5
_SLEEP_REM = 6

_NANOS_PER_HOUR = 3600 * 1_000_000_000


def _millis(dt) -> int:
    return int(dt.timestamp() * 1000)


def build_aggregate_request(time_range: TimeRange) -> dict[str, Any]:
    start, end = _millis(time_range.start), _millis(time_range.end)
    return {
        "aggregateBy": [{"dataTypeName": name} for name in AGGREGATE_DATA_TYPES],
        "bucketByTime": {"durationMillis": max(end - start, 1)},
        "startTimeMillis": start,
        "endTimeMillis": end,
    }


def _num(value: dict[str, Any]) -> float:
    if "fpVal" in value:
        return float(value["fpVal"])
    return float(value.get("intVal", 0))


def parse_aggregate_response(payload: dict[str, Any]) -> dict[str, Any]:
    """Turn aggregate buckets into HealthReading metric kwargs."""
    points: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for bucket in payload.get("bucket") or []:
        for dataset in bucket.get("dataset") or []:
            for point in dataset.get("point") or []:
                points[point.get("dataTypeName", "")].append(point)

    metrics: dict[str, Any] = {}

    steps = points.get("com.google.step_count.delta")
    if steps:
        metrics["steps"] = int(sum(_num(p["value"][0]) for p in steps))

    heart = points.get("com.google.heart_rate.summary")
    if heart:
        averages = [_num(p["value"][0]) for p in heart]
        metrics["heart_rate_bpm"] = float(round_half_up(sum(averages) / len(averages)))

    calories = points.get("com.google.calories.expended")
    if calories:
        metrics["calories_burned"] = round_half_up(sum(_num(p["value"][0]) for p in calories), 1)

    distance = points.get("com.google.distance.delta")
    if distance:
        meters = sum(_num(p["value"][0]) for p in distance)
        metrics["distance_km"] = round_half_up(meters / 1000, 2)

    weight = points.get("com.google.weight.summary")
    if weight:
        latest = max(weight, key=lambda p: int(p.get("endTimeNanos", 0)))
        metrics["weight_kg"] = round_half_up(_num(latest["value"][0]), 1)

    pressure = points.get("com.google.blood_pressure.summary")
    if pressure:
        latest = max(pressure, key=lambda p: int(p.get("endTimeNanos", 0)))
        # [systolic avg, max, min, diastolic avg, max, min, ...]
        metrics["blood_pressure"] = BloodPressure(
            systolic=_num(latest["value"][0]),
            diastolic=_num(latest["value"][3]),
        )

    sleep = points.get("com.google.sleep.segment")
    if sleep:
        hours: dict[str, float] = defaultdict(float)
        for point in sleep:
            duration = (int(point["endTimeNanos"]) - int(point["startTimeNanos"])) / _NANOS_PER_HOUR
            segment = int(_num(point["value"][0]))
            if segment == _SLEEP_DEEP:
                hours["deep"] += duration
            elif segment == _SLEEP_REM:
                hours["rem"] += duration
            elif segment in (_SLEEP_LIGHT, _SLEEP_GENERIC):
                hours["light"] += duration
            elif segment == _SLEEP_OUT_OF_BED:
                continue
            else:
                hours["awake"] += duration
        stages = SleepStages(
            deep=round_half_up(hours["deep"], 1),
            light=round_half_up(hours["light"], 1),
            rem=round_half_up(hours["rem"], 1),
            awake=round_half_up(hours["awake"], 1),
        )
        metrics["sleep_hours"] = round_half_up(hours["deep"] + hours["light"] + hours["rem"], 1)
        metrics["sleep_stages"] = stages

    return metrics


class GoogleFitAdapter:
    """PlatformAdapter for the Google Fit REST API."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str = GOOGLE_FIT_API_BASE_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def platform(self) -> Platform:
        return Platform.GOOGLE_FIT

    async def fetch_reading(
        self,
        credential: str,
        time_range: TimeRange | None = None,
    ) -> HealthReading:
        time_range = time_range or TimeRange.today()
        async with client_session(self._client, self._timeout) as client:
            payload = await request_json(
                client,
                "POST",
                f"{self._base_url}/users/me/dataset:aggregate",
                platform=self.platform,
                credential=credential,
                json=build_aggregate_request(time_range),
            )

        try:
            metrics = parse_aggregate_response(payload)
        except (IndexError, KeyError, TypeError, ValueError) as exc:
            raise ProviderUnavailable(self.platform, "google-fit: malformed aggregate payload") from exc

        if not metrics:
            logger.info("Google Fit returned no samples for %s", time_range.to_dict())
        return HealthReading(platform=self.platform, captured_at=time_range.end, **metrics)
