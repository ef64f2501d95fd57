"""Shared audit/timing helpers for MCP tool handlers."""

from __future__ import annotations

import time
from datetime import datetime
from typing import TYPE_CHECKING, Any

from vitalsync.domains.health.domain_logic.health_models import TimeRange

if TYPE_CHECKING:
    from vitalsync.core.audit.logger import AuditLogger


def log_tool(
    audit_logger: AuditLogger | None,
    tool_name: str,
    tool_input: Any,
    start_time: float,
    *,
    status: str = "success",
    error_type: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Audit one tool call; ``start_time`` comes from ``time.monotonic()``."""
    if audit_logger is None:
        return
    audit_logger.log_tool_call(
        tool_name=tool_name,
        tool_input=tool_input,
        duration_ms=(time.monotonic() - start_time) * 1000,
        status=status,
        error_type=error_type,
        metadata=metadata,
    )


def parse_time_range(start: str = "", end: str = "", now: datetime | None = None) -> TimeRange:
    """ISO 8601 bounds to a TimeRange. Missing bounds default to today.

    Naive timestamps are taken as local time.

    Raises:
        ValueError: Unparseable timestamps, or ``start`` after ``end``.
    """
    now = now or datetime.now().astimezone()
    today = TimeRange.today(now)

    def _parse(value: str, default: datetime) -> datetime:
        if not value:
            return default
        parsed = datetime.fromisoformat(value)
        return parsed if parsed.tzinfo is not None else parsed.astimezone()

    time_range = TimeRange(start=_parse(start, today.start), end=_parse(end, today.end))
    if time_range.start > time_range.end:
        raise ValueError("start must not be after end")
    return time_range
