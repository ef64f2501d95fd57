"""Tests for the AuditLogger and related utilities."""

from __future__ import annotations

import json

from vitalsync.core.audit.logger import AuditEvent, AuditLogger, _hash_input
from vitalsync.core.storage.database import HealthDatabase


class TestHashInput:
    def test_deterministic_and_order_independent(self):
        assert _hash_input({"a": 1, "b": 2}) == _hash_input({"b": 2, "a": 1})
        assert len(_hash_input({"a": 1})) == 64

    def test_different_inputs_differ(self):
        assert _hash_input({"user_id": "u1"}) != _hash_input({"user_id": "u2"})


class TestLogToolCall:
    def test_event_written(self, audit_logger):
        event_id = audit_logger.log_tool_call(
            "record_health_data", {"user_id": "u1", "blood_glucose": 187}, duration_ms=12.5,
        )
        assert event_id
        (event,) = audit_logger.get_events()
        assert event["action"] == "tool_invocation"
        assert event["tool_name"] == "record_health_data"
        assert event["duration_ms"] == 12.5
        assert event["status"] == "success"

    def test_raw_input_never_stored(self, audit_logger):
        audit_logger.log_tool_call("record_health_data", {"blood_glucose": 187.25})
        (event,) = audit_logger.get_events()
        assert "187.25" not in json.dumps(event)
        assert event["tool_input_hash"] == _hash_input({"blood_glucose": 187.25})

    def test_failure_metadata(self, audit_logger):
        audit_logger.log_tool_call(
            "connect_platform", status="failure", error_type="RepositoryError",
            metadata={"platform": "fitbit"},
        )
        (event,) = audit_logger.get_events(tool_name="connect_platform")
        assert event["status"] == "failure"
        assert event["error_type"] == "RepositoryError"
        assert json.loads(event["metadata_json"]) == {"platform": "fitbit"}


class TestPlatformAndDeleteEvents:
    def test_platform_sync(self, audit_logger):
        audit_logger.log_platform_sync("fitbit", "unauthorized", duration_ms=40.0, error_type="unauthorized")
        audit_logger.log_platform_sync("google-fit", "synced", duration_ms=80.0)
        fitbit = audit_logger.get_events(platform="fitbit")
        assert [e["status"] for e in fitbit] == ["unauthorized"]
        assert audit_logger.count_events(action="platform_sync") == 2

    def test_data_delete(self, audit_logger):
        audit_logger.log_data_delete(tool_name="delete_my_health_data", count=7)
        (event,) = audit_logger.get_events(action="data_delete")
        assert json.loads(event["metadata_json"]) == {"records_deleted": 7}


class TestQueries:
    def test_newest_first_and_limit(self, audit_logger):
        for name in ("a", "b", "c"):
            audit_logger.log_tool_call(name)
        events = audit_logger.get_events(limit=2)
        assert [e["tool_name"] for e in events] == ["c", "b"]

    def test_since_filter(self, audit_logger):
        audit_logger.log_tool_call("a")
        assert audit_logger.count_events(since="2999-01-01") == 0
        assert audit_logger.count_events(since="2000-01-01") == 1


class TestWriteFailure:
    def test_missing_table_drops_event(self):
        db = HealthDatabase(":memory:")
        db.initialize()
        audit = AuditLogger(db)
        db.connection.execute("DROP TABLE audit_log")
        assert audit.log_event(AuditEvent(action="tool_invocation")) == ""
        db.close()
