"""MCP tools for manual health data entry.

Manual entries cover what no connected device reports: a clinic blood
pressure reading, a glucose test, how stressed or energetic you feel. Each
entry is validated against physiological ranges, stored encrypted, and
evaluated immediately.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from vitalsync.domains.health.domain_logic.validation import ValidationError
from vitalsync.domains.health.refresh import snapshot_to_dict
from vitalsync.domains.health.tools.tool_audit import log_tool

if TYPE_CHECKING:
    from vitalsync.core.audit.logger import AuditLogger
    from vitalsync.domains.health.refresh import HealthRefreshService

logger = logging.getLogger(__name__)


def register_manual_entry_tools(
    mcp: FastMCP,
    service: HealthRefreshService,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register manual health data entry tools on the MCP server."""

    @mcp.tool
    async def record_health_data(
        ctx: Context,
        user_id: str,
        steps: int | None = None,
        heart_rate_bpm: float | None = None,
        sleep_hours: float | None = None,
        calories_burned: float | None = None,
        distance_km: float | None = None,
        weight_kg: float | None = None,
        height_cm: float | None = None,
        systolic_bp: float | None = None,
        diastolic_bp: float | None = None,
        deep_sleep_hours: float | None = None,
        light_sleep_hours: float | None = None,
        rem_sleep_hours: float | None = None,
        awake_hours: float | None = None,
        blood_glucose: float | None = None,
        body_fat_percentage: float | None = None,
        hydration_level: float | None = None,
        stress_level: float | None = None,
        energy_level: float | None = None,
        body_temperature_c: float | None = None,
        oxygen_saturation: float | None = None,
        respiratory_rate: float | None = None,
    ) -> str:
        """Record health measurements by hand and get insights for them.

        BMI is computed when both weight and height are given.

        Args:
            user_id: Your user id.
            steps: Steps walked today.
            heart_rate_bpm: Resting heart rate in BPM.
            sleep_hours: Hours slept last night.
            calories_burned: Calories burned today.
            distance_km: Distance covered today in km.
            weight_kg: Body weight in kg.
            height_cm: Height in cm.
            systolic_bp: Systolic blood pressure (top number). Needs diastolic_bp.
            diastolic_bp: Diastolic blood pressure (bottom number). Needs systolic_bp.
            deep_sleep_hours: Hours of deep sleep.
            light_sleep_hours: Hours of light sleep.
            rem_sleep_hours: Hours of REM sleep.
            awake_hours: Hours awake during the night.
            blood_glucose: Blood glucose in mg/dL.
            body_fat_percentage: Body fat percentage.
            hydration_level: Hydration level, 0-100.
            stress_level: Stress level, 0-10.
            energy_level: Energy level, 0-10.
            body_temperature_c: Body temperature in degrees Celsius.
            oxygen_saturation: Blood oxygen saturation (SpO2), percent.
            respiratory_rate: Breaths per minute.
        """
        start_time = time.monotonic()
        metrics: dict[str, Any] = {
            "steps": steps,
            "heart_rate_bpm": heart_rate_bpm,
            "sleep_hours": sleep_hours,
            "calories_burned": calories_burned,
            "distance_km": distance_km,
            "weight_kg": weight_kg,
            "height_cm": height_cm,
            "blood_glucose": blood_glucose,
            "body_fat_percentage": body_fat_percentage,
            "hydration_level": hydration_level,
            "stress_level": stress_level,
            "energy_level": energy_level,
            "body_temperature_c": body_temperature_c,
            "oxygen_saturation": oxygen_saturation,
            "respiratory_rate": respiratory_rate,
        }

        errors: list[str] = []
        if (systolic_bp is None) != (diastolic_bp is None):
            errors.append("Blood pressure needs both systolic_bp and diastolic_bp")
        elif systolic_bp is not None:
            metrics["blood_pressure"] = {"systolic": systolic_bp, "diastolic": diastolic_bp}

        stage_hours = {
            "deep": deep_sleep_hours,
            "light": light_sleep_hours,
            "rem": rem_sleep_hours,
            "awake": awake_hours,
        }
        if any(v is not None for v in stage_hours.values()):
            metrics["sleep_stages"] = {k: v or 0.0 for k, v in stage_hours.items()}

        if not errors:
            try:
                reading, snapshot, report, new_insights = service.record_manual(user_id, metrics)
            except ValidationError as exc:
                errors = exc.errors

        if errors:
            log_tool(audit_logger, "record_health_data", {"user_id": user_id}, start_time,
                     status="failure", error_type="ValidationError")
            return json.dumps({"status": "error", "message": "Invalid health data", "errors": errors})

        recorded = sorted(reading.metrics())
        logger.info("Manual entry saved: %s", recorded)
        log_tool(audit_logger, "record_health_data", {"user_id": user_id}, start_time,
                 metadata={"metrics": recorded})
        return json.dumps({
            "status": "saved",
            "recorded_metrics": recorded,
            "aggregated_snapshot": snapshot_to_dict(snapshot),
            **report.to_dict(),
            "new_insight_ids": [i.id for i in new_insights],
        })
