"""Tests for the manual entry adapter."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from vitalsync.domains.health.connectors.errors import Unauthorized
from vitalsync.domains.health.connectors.manual_entry import ManualEntryAdapter
from vitalsync.domains.health.domain_logic.health_models import (
    BloodPressure,
    HealthReading,
    Platform,
)


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class TestManualEntryAdapter:
    def test_platform(self, health_repository):
        assert ManualEntryAdapter(health_repository).platform is Platform.MANUAL

    def test_no_entries_is_empty(self, health_repository, today):
        reading = _run(ManualEntryAdapter(health_repository).fetch_reading("user-1", today))
        assert reading.is_empty()
        assert reading.platform is Platform.MANUAL

    def test_returns_latest_entry_in_range(self, health_repository, today, now):
        older = HealthReading(
            platform=Platform.MANUAL, captured_at=now - timedelta(hours=3), steps=1000,
        )
        latest = HealthReading(
            platform=Platform.MANUAL, captured_at=now - timedelta(hours=1),
            steps=6000, blood_pressure=BloodPressure(118, 76),
        )
        health_repository.save_reading("user-1", older.to_dict())
        health_repository.save_reading("user-1", latest.to_dict())

        reading = _run(ManualEntryAdapter(health_repository).fetch_reading("user-1", today))
        assert reading == latest

    def test_entry_before_range_is_ignored(self, health_repository, today, now):
        stale = HealthReading(platform=Platform.MANUAL, captured_at=now - timedelta(days=2), steps=500)
        health_repository.save_reading("user-1", stale.to_dict())
        reading = _run(ManualEntryAdapter(health_repository).fetch_reading("user-1", today))
        assert reading.is_empty()

    def test_other_users_entries_are_invisible(self, health_repository, today, now):
        entry = HealthReading(platform=Platform.MANUAL, captured_at=now, steps=500)
        health_repository.save_reading("user-2", entry.to_dict())
        reading = _run(ManualEntryAdapter(health_repository).fetch_reading("user-1", today))
        assert reading.is_empty()

    def test_empty_user_id_is_unauthorized(self, health_repository, today):
        with pytest.raises(Unauthorized):
            _run(ManualEntryAdapter(health_repository).fetch_reading("", today))
