"""Tests for the Fitbit Web API adapter."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from vitalsync.domains.health.connectors.errors import ProviderUnavailable, Unauthorized
from vitalsync.domains.health.connectors.fitbit import (
    FitbitAdapter,
    parse_activity_summary,
    parse_heart_rate,
    parse_sleep,
    parse_weight_log,
)
from vitalsync.domains.health.domain_logic.health_models import Platform, SleepStages


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


_ACTIVITY = {
    "summary": {
        "steps": 8432,
        "caloriesOut": 2150,
        "activityCalories": 900,
        "distances": [
            {"activity": "tracker", "distance": 6.0},
            {"activity": "total", "distance": 6.2},
        ],
    }
}
_HEART = {"activities-heart": [{"dateTime": "2026-02-03", "value": {"restingHeartRate": 62}}]}
_SLEEP = {
    "sleep": [
        {"isMainSleep": False, "minutesAsleep": 40},
        {
            "isMainSleep": True,
            "minutesAsleep": 450,
            "levels": {
                "summary": {
                    "deep": {"minutes": 90},
                    "light": {"minutes": 240},
                    "rem": {"minutes": 120},
                    "wake": {"minutes": 30},
                }
            },
        },
    ]
}
_WEIGHT = {
    "weight": [
        {"date": "2026-02-03", "time": "06:00:00", "weight": 73.0},
        {"date": "2026-02-03", "time": "07:00:00", "weight": 72.5, "bmi": 23.1},
    ]
}


def _routes(**overrides):
    routes = {
        "activities/date": (200, _ACTIVITY),
        "activities/heart": (200, _HEART),
        "sleep/date": (200, _SLEEP),
        "body/log/weight": (200, _WEIGHT),
    }
    routes.update(overrides)
    return routes


def _fetch(routes, credential="token-abc", time_range=None, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        for fragment, (status, body) in routes.items():
            if fragment in request.url.path:
                if isinstance(body, Exception):
                    raise body
                return httpx.Response(status, json=body)
        return httpx.Response(404, json={})

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            adapter = FitbitAdapter(client=client, base_url="https://fitbit.test")
            return await adapter.fetch_reading(credential, time_range)

    return _run(go())


class TestFitbitAdapter:
    def test_full_reading(self, today):
        reading = _fetch(_routes(), time_range=today)
        assert reading.platform is Platform.FITBIT
        assert reading.captured_at == today.end
        assert reading.steps == 8432
        assert reading.calories_burned == 2150.0
        assert reading.distance_km == 6.2
        assert reading.heart_rate_bpm == 62.0
        assert reading.sleep_hours == 7.5
        assert reading.sleep_stages == SleepStages(deep=1.5, light=4.0, rem=2.0, awake=0.5)
        assert reading.weight_kg == 72.5
        assert reading.bmi == 23.1

    def test_requests_use_bearer_token_and_start_day(self, today):
        seen: list[httpx.Request] = []
        _fetch(_routes(), time_range=today, seen=seen)
        assert len(seen) == 4
        assert all(r.headers["Authorization"] == "Bearer token-abc" for r in seen)
        assert all("2026-02-03" in r.url.path for r in seen)
        assert {r.url.host for r in seen} == {"fitbit.test"}

    def test_missing_credential_is_unauthorized(self, today):
        seen: list[httpx.Request] = []
        with pytest.raises(Unauthorized):
            _fetch(_routes(), credential="", time_range=today, seen=seen)
        assert seen == []

    def test_rejected_token_is_unauthorized(self, today):
        with pytest.raises(Unauthorized) as exc_info:
            _fetch(_routes(**{"sleep/date": (401, {"errors": []})}), time_range=today)
        assert exc_info.value.status == "unauthorized"

    def test_unauthorized_wins_over_server_error(self, today):
        routes = _routes(**{
            "activities/date": (500, {}),
            "body/log/weight": (403, {}),
        })
        with pytest.raises(Unauthorized):
            _fetch(routes, time_range=today)

    def test_rate_limit_is_unavailable(self, today):
        with pytest.raises(ProviderUnavailable):
            _fetch(_routes(**{"activities/heart": (429, {})}), time_range=today)

    def test_transport_error_is_unavailable(self, today):
        routes = _routes(**{"activities/date": (0, httpx.ConnectError("refused"))})
        with pytest.raises(ProviderUnavailable):
            _fetch(routes, time_range=today)

    def test_malformed_payload_is_unavailable(self, today):
        with pytest.raises(ProviderUnavailable):
            _fetch(_routes(**{"sleep/date": (200, {"sleep": ["nope"]})}), time_range=today)

    def test_no_samples_gives_empty_reading(self, today):
        routes = _routes(**{
            "activities/date": (200, {"summary": {"steps": 0, "caloriesOut": 1650, "distances": []}}),
            "activities/heart": (200, {"activities-heart": []}),
            "sleep/date": (200, {"sleep": []}),
            "body/log/weight": (200, {"weight": []}),
        })
        reading = _fetch(routes, time_range=today)
        assert reading.is_empty()


class TestFitbitParsers:
    def test_zero_filled_activity_day_is_empty(self):
        payload = {"summary": {"steps": 0, "caloriesOut": 1700, "activityCalories": 0, "distances": []}}
        assert parse_activity_summary(payload) == {}

    def test_heart_rate_falls_back_to_zone_mean(self):
        payload = {"activities-heart": [{"value": {"heartRateZones": [
            {"name": "Out of Range", "min": 30, "max": 100, "minutes": 60},
            {"name": "Fat Burn", "min": 100, "max": 140, "minutes": 0},
        ]}}]}
        assert parse_heart_rate(payload) == {"heart_rate_bpm": 65.0}

    def test_sleep_without_stage_summary(self):
        assert parse_sleep({"sleep": [{"minutesAsleep": 390}]}) == {"sleep_hours": 6.5}

    def test_latest_weight_entry_wins(self):
        assert parse_weight_log(_WEIGHT) == {"weight_kg": 72.5, "bmi": 23.1}
        assert parse_weight_log({"weight": []}) == {}
