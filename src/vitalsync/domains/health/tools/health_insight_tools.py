"""MCP tools for refreshing, reading and analysing health insights."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from vitalsync.domains.health.domain_logic.aggregator import aggregate_readings
from vitalsync.domains.health.domain_logic.health_models import InsightKind
from vitalsync.domains.health.domain_logic.validation import ValidationError
from vitalsync.domains.health.refresh import (
    build_manual_reading,
    row_to_insight,
    snapshot_to_dict,
)
from vitalsync.domains.health.tools.tool_audit import log_tool, parse_time_range

if TYPE_CHECKING:
    from vitalsync.core.audit.logger import AuditLogger
    from vitalsync.core.storage.repository import HealthRepository
    from vitalsync.domains.health.domain_logic.insight_engine import InsightEngine
    from vitalsync.domains.health.refresh import HealthRefreshService

logger = logging.getLogger(__name__)


def register_analysis_tools(
    mcp: FastMCP,
    engine: InsightEngine,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register the stateless analysis tool (works without storage)."""

    @mcp.tool
    async def analyze_health_metrics(
        ctx: Context,
        metrics: dict[str, Any],
        history: list[dict[str, Any]] | None = None,
    ) -> str:
        """Evaluate health metrics against the insight rules without storing anything.

        Args:
            metrics: Metric values, e.g. {"steps": 4000, "sleep_hours": 6.5,
                "blood_pressure": {"systolic": 145, "diastolic": 95}}.
            history: Optional earlier metric maps, oldest first, for trend labels.
        """
        start_time = time.monotonic()
        try:
            reading = build_manual_reading(metrics, parse_time_range().end)
        except ValidationError as exc:
            log_tool(audit_logger, "analyze_health_metrics", metrics, start_time,
                     status="failure", error_type="ValidationError")
            return json.dumps({"status": "error", "message": "Invalid health data", "errors": exc.errors})

        snapshot = aggregate_readings([reading])
        report = engine.evaluate(snapshot, history or [])
        log_tool(audit_logger, "analyze_health_metrics", metrics, start_time)
        return json.dumps({
            "status": "ok",
            "aggregated_snapshot": snapshot_to_dict(snapshot),
            **report.to_dict(),
        })


def register_health_insight_tools(
    mcp: FastMCP,
    service: HealthRefreshService,
    repository: HealthRepository,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register refresh, insight and trend tools (requires storage)."""

    @mcp.tool
    async def refresh_health_insights(
        ctx: Context,
        user_id: str,
        start: str = "",
        end: str = "",
    ) -> str:
        """Sync every connected platform, merge the data and derive insights.

        A platform that fails or times out is reported but never blocks the
        others; the summary says how many platforms synced.

        Args:
            user_id: Your user id.
            start: Range start (ISO 8601). Defaults to local midnight today.
            end: Range end (ISO 8601). Defaults to now.
        """
        start_time = time.monotonic()
        tool_input = {"user_id": user_id, "start": start, "end": end}
        try:
            time_range = parse_time_range(start, end)
        except ValueError as exc:
            log_tool(audit_logger, "refresh_health_insights", tool_input, start_time,
                     status="failure", error_type="ValueError")
            return json.dumps({"status": "error", "message": f"Invalid time range: {exc}"})

        try:
            result, new_insights = await service.refresh(user_id, time_range=time_range)
        except Exception as exc:
            log_tool(audit_logger, "refresh_health_insights", tool_input, start_time,
                     status="failure", error_type=type(exc).__name__)
            raise

        log_tool(
            audit_logger, "refresh_health_insights", tool_input, start_time,
            metadata={"synced": len(result.synced), "total": len(result.outcomes)},
        )
        return json.dumps({
            "status": "ok",
            **result.to_dict(),
            "new_insight_ids": [i.id for i in new_insights],
        })

    @mcp.tool
    async def get_health_insights(
        ctx: Context,
        user_id: str,
        unread_only: bool = False,
        kind: str = "",
        limit: int = 50,
    ) -> str:
        """List your stored insights, newest first.

        Args:
            user_id: Your user id.
            unread_only: Only insights not yet marked read.
            kind: Optional filter: 'recommendation', 'alert' or 'achievement'.
            limit: Maximum insights to return.
        """
        start_time = time.monotonic()
        tool_input = {"user_id": user_id, "unread_only": unread_only, "kind": kind}
        if kind and kind not in {k.value for k in InsightKind}:
            log_tool(audit_logger, "get_health_insights", tool_input, start_time,
                     status="failure", error_type="ValueError")
            return json.dumps({"status": "error", "message": f"Unknown insight kind {kind!r}."})

        rows = repository.get_insights(
            user_id, unread_only=unread_only, kind=kind or None, limit=max(1, limit)
        )
        log_tool(audit_logger, "get_health_insights", tool_input, start_time)
        return json.dumps({
            "insights": [row_to_insight(row).to_dict() for row in rows],
            "count": len(rows),
        })

    @mcp.tool
    async def mark_insight_read(
        ctx: Context,
        user_id: str,
        insight_id: str,
    ) -> str:
        """Mark one insight as read.

        Args:
            user_id: Your user id.
            insight_id: Id from get_health_insights or refresh_health_insights.
        """
        start_time = time.monotonic()
        updated = repository.mark_insight_read(user_id, insight_id)
        log_tool(audit_logger, "mark_insight_read", {"user_id": user_id, "insight_id": insight_id},
                 start_time, status="success" if updated else "failure",
                 error_type=None if updated else "NotFound")
        if not updated:
            return json.dumps({
                "status": "error",
                "insight_id": insight_id,
                "message": "No insight found with that id.",
            })
        return json.dumps({"status": "read", "insight_id": insight_id})

    @mcp.tool
    async def get_health_trends(
        ctx: Context,
        user_id: str,
    ) -> str:
        """Trend labels for steps, heart rate, sleep and weight over your stored history.

        Each metric compares the mean of the most recent window of entries with
        the window before it.

        Args:
            user_id: Your user id.
        """
        start_time = time.monotonic()
        trends = service.trends(user_id)
        analyzer = service.engine.trend_analyzer
        log_tool(audit_logger, "get_health_trends", {"user_id": user_id}, start_time)
        return json.dumps({
            "trends": trends,
            "window": analyzer.window,
            "threshold_pct": analyzer.threshold_pct,
        })
