"""Tests for the shared tool helpers."""

from __future__ import annotations

import time
from datetime import datetime, timezone

import pytest

from vitalsync.domains.health.domain_logic.health_models import TimeRange
from vitalsync.domains.health.tools.tool_audit import log_tool, parse_time_range


class TestParseTimeRange:
    def test_defaults_to_today(self, now):
        assert parse_time_range(now=now) == TimeRange.today(now)

    def test_explicit_bounds(self, now):
        time_range = parse_time_range(
            "2026-02-01T00:00:00+00:00", "2026-02-02T00:00:00+00:00", now=now,
        )
        assert time_range.start == datetime(2026, 2, 1, tzinfo=timezone.utc)
        assert time_range.end == datetime(2026, 2, 2, tzinfo=timezone.utc)

    def test_only_start_given(self, now):
        time_range = parse_time_range("2026-02-03T06:00:00-05:00", now=now)
        assert time_range.end == now

    def test_naive_bounds_become_aware(self, now):
        time_range = parse_time_range("2026-02-01T00:00:00", "2026-02-01T12:00:00", now=now)
        assert time_range.start.tzinfo is not None

    def test_start_after_end(self, now):
        with pytest.raises(ValueError):
            parse_time_range("2026-02-03T10:00:00+00:00", "2026-02-03T09:00:00+00:00", now=now)

    def test_unparseable(self, now):
        with pytest.raises(ValueError):
            parse_time_range("yesterday", now=now)


class TestLogTool:
    def test_without_logger_is_noop(self):
        log_tool(None, "health_check", {}, time.monotonic())

    def test_records_duration(self, audit_logger):
        log_tool(audit_logger, "get_health_trends", {"user_id": "u1"}, time.monotonic())
        (event,) = audit_logger.get_events(tool_name="get_health_trends")
        assert event["duration_ms"] >= 0
