"""Fitbit Web API adapter.

Four endpoints make up one reading, requested concurrently:
    activity summary  -> steps, calories_burned, distance_km
    heart rate        -> heart_rate_bpm (resting, else zone-weighted mean)
    sleep             -> sleep_hours, sleep_stages (main sleep session)
    weight log        -> weight_kg, bmi (latest entry)

Fitbit reports dates in the user's profile timezone; the reading covers the
calendar day of ``time_range.start``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from vitalsync.domains.health.connectors.errors import ProviderUnavailable, Unauthorized
from vitalsync.domains.health.connectors.http_support import (
    DEFAULT_HTTP_TIMEOUT,
    client_session,
    request_json,
)
from vitalsync.domains.health.domain_logic.aggregator import round_half_up
from vitalsync.domains.health.domain_logic.health_models import (
    HealthReading,
    Platform,
    SleepStages,
    TimeRange,
)

logger = logging.getLogger(__name__)

FITBIT_API_BASE_URL = "https://api.fitbit.com"


def _minutes_to_hours(minutes: float) -> float:
    return round_half_up(minutes / 60, 1)


def parse_activity_summary(payload: dict[str, Any]) -> dict[str, Any]:
    """Steps, calories and total distance. A day with no activity samples yields {}."""
    summary = payload.get("summary") or {}
    steps = summary.get("steps")
    distance = next(
        (d.get("distance") for d in summary.get("distances", []) if d.get("activity") == "total"),
        None,
    )
    # Fitbit zero-fills days without samples; BMR calories are always present.
    if not steps and not distance and not summary.get("activityCalories"):
        return {}

    result: dict[str, Any] = {}
    if steps is not None:
        result["steps"] = int(steps)
    if summary.get("caloriesOut") is not None:
        result["calories_burned"] = float(summary["caloriesOut"])
    if distance is not None:
        result["distance_km"] = float(distance)
    return result


def parse_heart_rate(payload: dict[str, Any]) -> dict[str, Any]:
    days = payload.get("activities-heart") or []
    if not days:
        return {}
    value = days[0].get("value") or {}

    resting = value.get("restingHeartRate")
    if resting is not None:
        return {"heart_rate_bpm": float(resting)}

    total_minutes = 0.0
    weighted = 0.0
    for zone in value.get("heartRateZones") or []:
        minutes = zone.get("minutes") or 0
        if minutes and zone.get("min") is not None and zone.get("max") is not None:
            weighted += (zone["min"] + zone["max"]) / 2 * minutes
            total_minutes += minutes
    if total_minutes == 0:
        return {}
    return {"heart_rate_bpm": float(round_half_up(weighted / total_minutes))}


def parse_sleep(payload: dict[str, Any]) -> dict[str, Any]:
    sessions = payload.get("sleep") or []
    if not sessions:
        return {}
    main = next((s for s in sessions if s.get("isMainSleep")), sessions[0])

    result: dict[str, Any] = {}
    if main.get("minutesAsleep") is not None:
        result["sleep_hours"] = _minutes_to_hours(main["minutesAsleep"])

    stage_summary = (main.get("levels") or {}).get("summary") or {}
    if any(stage in stage_summary for stage in ("deep", "light", "rem")):
        def _stage(name: str) -> float:
            return _minutes_to_hours((stage_summary.get(name) or {}).get("minutes", 0))

        result["sleep_stages"] = SleepStages(
            deep=_stage("deep"),
            light=_stage("light"),
            rem=_stage("rem"),
            awake=_stage("wake"),
        )
    return result


def parse_weight_log(payload: dict[str, Any]) -> dict[str, Any]:
    entries = payload.get("weight") or []
    if not entries:
        return {}
    latest = max(entries, key=lambda e: (e.get("date", ""), e.get("time", "")))
    result: dict[str, Any] = {}
    if latest.get("weight") is not None:
        result["weight_kg"] = float(latest["weight"])
    if latest.get("bmi") is not None:
        result["bmi"] = float(latest["bmi"])
    return result


class FitbitAdapter:
    """PlatformAdapter for the Fitbit Web API.

    Usage::

        adapter = FitbitAdapter(client=httpx.AsyncClient())
        reading = await adapter.fetch_reading(access_token)
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str = FITBIT_API_BASE_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def platform(self) -> Platform:
        return Platform.FITBIT

    async def fetch_reading(
        self,
        credential: str,
        time_range: TimeRange | None = None,
    ) -> HealthReading:
        time_range = time_range or TimeRange.today()
        day = time_range.start.date().isoformat()
        endpoints = (
            (f"/1/user/-/activities/date/{day}.json", parse_activity_summary),
            (f"/1/user/-/activities/heart/date/{day}/1d.json", parse_heart_rate),
            (f"/1.2/user/-/sleep/date/{day}.json", parse_sleep),
            (f"/1/user/-/body/log/weight/date/{day}.json", parse_weight_log),
        )

        async with client_session(self._client, self._timeout) as client:
            payloads = await asyncio.gather(
                *(
                    request_json(
                        client, "GET", self._base_url + path,
                        platform=self.platform, credential=credential,
                    )
                    for path, _ in endpoints
                ),
                return_exceptions=True,
            )

        failures = [p for p in payloads if isinstance(p, BaseException)]
        if failures:
            # Reconnecting beats retrying when both happen.
            raise next((f for f in failures if isinstance(f, Unauthorized)), failures[0])

        metrics: dict[str, Any] = {}
        try:
            for (_, parse), payload in zip(endpoints, payloads):
                metrics.update(parse(payload))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ProviderUnavailable(self.platform, "fitbit: malformed payload") from exc

        if not metrics:
            logger.info("Fitbit returned no samples for %s", day)
        return HealthReading(platform=self.platform, captured_at=time_range.end, **metrics)
