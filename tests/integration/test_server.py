"""Integration tests for the VitalSync MCP server."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from vitalsync.core.server.app import create_app
from vitalsync.domains.health.connectors.errors import Unauthorized
from vitalsync.domains.health.connectors.manual_entry import ManualEntryAdapter
from vitalsync.domains.health.connectors.registry import AdapterRegistry
from vitalsync.domains.health.domain_logic.health_models import HealthReading, Platform


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _payload(result) -> dict:
    content = getattr(result, "content", result)
    return json.loads(content[0].text)


class CannedAdapter:
    def __init__(self, platform: Platform, metrics=None, error=None):
        self._platform = platform
        self._metrics = metrics or {}
        self._error = error

    @property
    def platform(self) -> Platform:
        return self._platform

    async def fetch_reading(self, credential, time_range=None):
        if self._error is not None:
            raise self._error
        return HealthReading(platform=self._platform, captured_at=time_range.end, **self._metrics)


STATELESS_TOOLS = {"health_check", "analyze_health_metrics"}

STORAGE_TOOLS = {
    "connect_platform",
    "disconnect_platform",
    "list_connected_platforms",
    "refresh_health_insights",
    "get_health_insights",
    "mark_insight_read",
    "get_health_trends",
    "record_health_data",
    "delete_my_health_data",
    "audit_summary",
}


@pytest.fixture
def registry(health_repository) -> AdapterRegistry:
    registry = AdapterRegistry()
    fitbit = CannedAdapter(Platform.FITBIT, {"steps": 3000, "sleep_hours": 6.0})
    google = CannedAdapter(Platform.GOOGLE_FIT, error=Unauthorized(Platform.GOOGLE_FIT))
    registry.register(Platform.FITBIT, lambda: fitbit)
    registry.register(Platform.GOOGLE_FIT, lambda: google)
    registry.register(Platform.MANUAL, lambda: ManualEntryAdapter(health_repository))
    return registry


@pytest.fixture
def client(health_repository, audit_logger, registry):
    mcp = create_app(
        repository_override=health_repository,
        audit_logger_override=audit_logger,
        registry_override=registry,
    )
    return Client(mcp)


class TestToolRegistration:
    def test_all_tools_with_storage(self, client):
        async def _check():
            async with client:
                tools = await client.list_tools()
                assert {t.name for t in tools} == STATELESS_TOOLS | STORAGE_TOOLS
        _run(_check())

    def test_stateless_tools_without_encryption_key(self):
        async def _check():
            async with Client(create_app()) as bare:
                tools = await bare.list_tools()
                assert {t.name for t in tools} == STATELESS_TOOLS
                status = _payload(await bare.call_tool("health_check", {}))
                assert status["storage_enabled"] is False
        _run(_check())

    def test_health_check(self, client):
        async def _check():
            async with client:
                status = _payload(await client.call_tool("health_check", {}))
                assert status["status"] == "ok"
                assert status["storage_enabled"] is True
                assert status["platforms"] == ["fitbit", "google-fit", "manual"]
                assert status["insight_rules"] == 18
        _run(_check())


class TestAnalyzeHealthMetrics:
    def test_evaluates_without_storing(self, client, health_repository):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("analyze_health_metrics", {
                    "metrics": {"steps": 4000, "blood_pressure": {"systolic": 145, "diastolic": 95}},
                }))
                assert data["status"] == "ok"
                assert [a["title"] for a in data["insights"]["alerts"]] == ["Blood Pressure Alert"]
                assert data["insights"]["alerts"][0]["severity"] == "high"
                assert data["next_steps"][0] == "Address alerts first"
        _run(_check())
        assert health_repository.get_insights("anyone") == []

    def test_invalid_metrics(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("analyze_health_metrics", {
                    "metrics": {"heart_rate_bpm": 500},
                }))
                assert data["status"] == "error"
                assert data["errors"] == ["Heart rate must be between 30 and 220 bpm"]
        _run(_check())


class TestPlatformFlow:
    def test_connect_refresh_and_read(self, client, health_repository):
        async def _check():
            async with client:
                connected = _payload(await client.call_tool("connect_platform", {
                    "user_id": "u1", "platform": "fitbit", "credential": "tok",
                }))
                assert connected["status"] == "connected"
                await client.call_tool("connect_platform", {
                    "user_id": "u1", "platform": "google-fit", "credential": "expired",
                })

                refreshed = _payload(await client.call_tool("refresh_health_insights", {"user_id": "u1"}))
                assert refreshed["status"] == "ok"
                assert refreshed["sync"]["message"] == "1 of 2 platforms synced"
                assert refreshed["sync"]["needs_reauth"] == ["google-fit"]
                assert refreshed["aggregated_snapshot"]["steps"] == 3000
                assert len(refreshed["new_insight_ids"]) == 2

                listed = _payload(await client.call_tool("list_connected_platforms", {"user_id": "u1"}))
                statuses = {p["platform"]: p["last_status"] for p in listed["platforms"]}
                assert statuses == {"fitbit": "synced", "google-fit": "unauthorized"}

                insights = _payload(await client.call_tool("get_health_insights", {
                    "user_id": "u1", "unread_only": True,
                }))
                assert insights["count"] == 2
                first_id = insights["insights"][0]["id"]

                marked = _payload(await client.call_tool("mark_insight_read", {
                    "user_id": "u1", "insight_id": first_id,
                }))
                assert marked["status"] == "read"
                unread = _payload(await client.call_tool("get_health_insights", {
                    "user_id": "u1", "unread_only": True,
                }))
                assert unread["count"] == 1

                trends = _payload(await client.call_tool("get_health_trends", {"user_id": "u1"}))
                assert trends["window"] == 7
                assert trends["trends"]["steps"]["direction"] == "insufficient_data"
        _run(_check())

    def test_unknown_and_manual_platforms_rejected(self, client):
        async def _check():
            async with client:
                for platform in ("garmin", "manual"):
                    data = _payload(await client.call_tool("connect_platform", {
                        "user_id": "u1", "platform": platform, "credential": "x",
                    }))
                    assert data["status"] == "error"
                    assert "fitbit" in data["supported_platforms"]
        _run(_check())

    def test_disconnect(self, client):
        async def _check():
            async with client:
                await client.call_tool("connect_platform", {
                    "user_id": "u1", "platform": "fitbit", "credential": "tok",
                })
                first = _payload(await client.call_tool("disconnect_platform", {
                    "user_id": "u1", "platform": "fitbit",
                }))
                second = _payload(await client.call_tool("disconnect_platform", {
                    "user_id": "u1", "platform": "fitbit",
                }))
                assert first["status"] == "disconnected"
                assert second["status"] == "not_found"
        _run(_check())

    def test_invalid_time_range(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("refresh_health_insights", {
                    "user_id": "u1", "start": "2026-02-03T10:00:00+00:00", "end": "2026-02-02T10:00:00+00:00",
                }))
                assert data["status"] == "error"
        _run(_check())


class TestManualEntryTool:
    def test_record_health_data(self, client, health_repository):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("record_health_data", {
                    "user_id": "u1", "weight_kg": 50, "height_cm": 170, "sleep_hours": 8,
                }))
                assert data["status"] == "saved"
                assert data["recorded_metrics"] == ["bmi", "height_cm", "sleep_hours", "weight_kg"]
                assert data["aggregated_snapshot"]["bmi"] == 17.3
                assert [r["title"] for r in data["insights"]["recommendations"]] == ["Weight Management"]
                assert [a["title"] for a in data["insights"]["achievements"]] == ["Optimal Sleep"]
        _run(_check())
        assert health_repository.get_credentials("u1") == {"manual": "u1"}

    def test_blood_pressure_needs_both_values(self, client):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("record_health_data", {
                    "user_id": "u1", "systolic_bp": 120,
                }))
                assert data["status"] == "error"
        _run(_check())

    def test_out_of_range_rejected(self, client, health_repository):
        async def _check():
            async with client:
                data = _payload(await client.call_tool("record_health_data", {
                    "user_id": "u1", "stress_level": 42,
                }))
                assert data["status"] == "error"
                assert data["errors"] == ["Stress level must be between 0 and 10"]
        _run(_check())
        assert health_repository.count_readings("u1") == 0


class TestDataManagement:
    def test_delete_requires_confirmation(self, client, health_repository):
        health_repository.connect_platform("u1", "fitbit", "tok")

        async def _check():
            async with client:
                cancelled = _payload(await client.call_tool("delete_my_health_data", {"user_id": "u1"}))
                assert cancelled["status"] == "cancelled"
                deleted = _payload(await client.call_tool("delete_my_health_data", {
                    "user_id": "u1", "confirm": "DELETE_ALL",
                }))
                assert deleted["status"] == "all_deleted"
                assert deleted["deleted"]["platform_connections"] == 1
        _run(_check())
        assert health_repository.get_credentials("u1") == {}

    def test_audit_summary_counts_events(self, client):
        async def _check():
            async with client:
                await client.call_tool("health_check", {})
                await client.call_tool("delete_my_health_data", {"user_id": "u1", "confirm": "DELETE_ALL"})
                summary = _payload(await client.call_tool("audit_summary", {}))
                assert summary["deletions"] == 1
                assert "recent_events" in summary
        _run(_check())
