"""Refresh pipeline: adapters -> aggregator -> insight engine.

``refresh_insights`` is the pure-ish core: it calls adapters but touches no
storage. ``HealthRefreshService`` wraps it with the repository: it loads
credentials and history, then persists readings, history, sync status and
de-duplicated insights.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Sequence

from vitalsync.core.audit.logger import AuditLogger
from vitalsync.core.storage.models import StoredInsight
from vitalsync.core.storage.repository import HealthRepository
from vitalsync.domains.health.connectors.composite import (
    DEFAULT_ADAPTER_TIMEOUT,
    UNAUTHORIZED,
    CompositeCollector,
    SyncOutcome,
)
from vitalsync.domains.health.connectors.registry import AdapterRegistry
from vitalsync.domains.health.domain_logic.aggregator import (
    aggregate_readings,
    compute_bmi,
    order_by_priority,
)
from vitalsync.domains.health.domain_logic.health_models import (
    METRIC_FIELDS,
    AggregatedSnapshot,
    BloodPressure,
    HealthReading,
    Insight,
    InsightKind,
    InsightReport,
    Platform,
    Priority,
    SleepStages,
    TimeRange,
)
from vitalsync.domains.health.domain_logic.insight_engine import InsightEngine
from vitalsync.domains.health.domain_logic.insight_rules import sleep_quality_score
from vitalsync.domains.health.domain_logic.validation import ValidationError, ensure_valid

logger = logging.getLogger(__name__)

DEFAULT_PLATFORM_PRIORITY: tuple[Platform, ...] = (
    Platform.APPLE_HEALTH,
    Platform.FITBIT,
    Platform.GOOGLE_FIT,
    Platform.MANUAL,
)

# Scalar snapshot metrics kept in the unencrypted history table.
HISTORY_METRICS = (
    "steps",
    "heart_rate_bpm",
    "sleep_hours",
    "calories_burned",
    "distance_km",
    "weight_kg",
    "bmi",
    "blood_glucose",
    "body_fat_percentage",
)


def history_entry(snapshot: AggregatedSnapshot) -> dict[str, float]:
    """The snapshot's scalar metrics as one trend-history entry."""
    return {
        name: getattr(snapshot, name)
        for name in HISTORY_METRICS
        if getattr(snapshot, name) is not None
    }


def snapshot_to_dict(snapshot: AggregatedSnapshot) -> dict[str, Any]:
    data = snapshot.to_dict()
    score = sleep_quality_score(snapshot.sleep_stages)
    if score is not None:
        data["sleep_quality_score"] = score
    return data


@dataclass(frozen=True)
class RefreshResult:
    """Everything one refresh produced, shaped for the caller."""

    snapshot: AggregatedSnapshot
    report: InsightReport
    outcomes: tuple[SyncOutcome, ...]
    time_range: TimeRange
    skipped: tuple[str, ...] = ()
    # Trend-history entry for this refresh; manual readings are already in history.
    new_history: dict[str, float] = field(default_factory=dict)

    @property
    def synced(self) -> list[SyncOutcome]:
        return [o for o in self.outcomes if o.merged]

    @property
    def needs_reauth(self) -> list[str]:
        return [o.platform.value for o in self.outcomes if o.status == UNAUTHORIZED]

    def sync_summary(self) -> dict[str, Any]:
        total = len(self.outcomes)
        return {
            "message": f"{len(self.synced)} of {total} platforms synced",
            "synced": len(self.synced),
            "total": total,
            "platforms": [o.to_dict() for o in self.outcomes],
            "needs_reauth": self.needs_reauth,
            "skipped": list(self.skipped),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "aggregated_snapshot": snapshot_to_dict(self.snapshot),
            **self.report.to_dict(),
            "sync": self.sync_summary(),
            "time_range": self.time_range.to_dict(),
        }


async def refresh_insights(
    credentials: Mapping[Platform | str, str],
    registry: AdapterRegistry,
    *,
    time_range: TimeRange | None = None,
    history: Sequence[Mapping[str, Any]] = (),
    now: datetime | None = None,
    timeout: float = DEFAULT_ADAPTER_TIMEOUT,
    priority: Sequence[Platform | str] = DEFAULT_PLATFORM_PRIORITY,
    engine: InsightEngine | None = None,
) -> RefreshResult:
    """Fetch every connected platform, merge, and evaluate.

    Args:
        credentials: Platform -> credential for each connected platform.
        registry: Adapter lookup.
        time_range: Window to fetch (defaults to today relative to ``now``).
        history: Earlier trend entries, oldest first. The non-manual part of
            the new snapshot is appended as the latest entry before trends are
            computed; manual entries join history when they are recorded.
        now: Evaluation time, stamped onto insights.
        timeout: Per-adapter timeout in seconds.
        priority: Platform order for point-sample metrics.
        engine: Insight engine (default rule table and trend settings).
    """
    now = now or datetime.now().astimezone()
    time_range = time_range or TimeRange.today(now)
    engine = engine or InsightEngine()

    fan_out = await CompositeCollector(registry, timeout=timeout).collect(credentials, time_range)
    snapshot = aggregate_readings(order_by_priority(fan_out.readings, priority))

    synced_elsewhere = [r for r in fan_out.readings if r.platform is not Platform.MANUAL]
    new_history = history_entry(aggregate_readings(order_by_priority(synced_elsewhere, priority)))
    trend_history = list(history)
    if new_history:
        trend_history.append(new_history)
    report = engine.evaluate(snapshot, trend_history, now=now)

    result = RefreshResult(
        snapshot=snapshot,
        report=report,
        outcomes=fan_out.outcomes,
        time_range=time_range,
        skipped=fan_out.skipped,
        new_history=new_history,
    )
    logger.info("Refresh complete: %s", result.sync_summary()["message"])
    return result


# ---------------------------------------------------------------------------
# Manual entry
# ---------------------------------------------------------------------------

def build_manual_reading(metrics: Mapping[str, Any], captured_at: datetime) -> HealthReading:
    """Validated manual reading; BMI is derived from weight and height when absent.

    Raises:
        ValidationError: Unknown metric names, malformed composite values,
            or values outside physiological ranges.
    """
    unknown = sorted(set(metrics) - set(METRIC_FIELDS))
    if unknown:
        raise ValidationError([f"Unknown metric: {name}" for name in unknown])

    values = {name: value for name, value in metrics.items() if value is not None}
    try:
        if isinstance(values.get("blood_pressure"), Mapping):
            bp = values["blood_pressure"]
            values["blood_pressure"] = BloodPressure(systolic=bp["systolic"], diastolic=bp["diastolic"])
        if isinstance(values.get("sleep_stages"), Mapping):
            values["sleep_stages"] = SleepStages(**values["sleep_stages"])
    except (KeyError, TypeError) as exc:
        raise ValidationError([f"Malformed composite metric: {exc}"]) from exc

    reading = HealthReading(platform=Platform.MANUAL, captured_at=captured_at, **values)
    ensure_valid(reading)

    if reading.bmi is None and reading.weight_kg is not None and reading.height_cm is not None:
        values["bmi"] = compute_bmi(reading.weight_kg, reading.height_cm)
        reading = HealthReading(platform=Platform.MANUAL, captured_at=captured_at, **values)
    return reading


# ---------------------------------------------------------------------------
# Insight <-> storage row
# ---------------------------------------------------------------------------

def insight_to_row(insight: Insight) -> StoredInsight:
    return StoredInsight(
        id=insight.id,
        user_id="",
        kind=insight.kind.value,
        title=insight.title,
        description=insight.description,
        category=insight.category,
        priority=insight.priority.value if insight.priority else None,
        metric=insight.metric,
        is_read=insight.is_read,
        created_at=insight.created_at,
    )


def row_to_insight(row: StoredInsight) -> Insight:
    return Insight(
        kind=InsightKind(row.kind),
        title=row.title,
        description=row.description,
        category=row.category,
        priority=Priority(row.priority) if row.priority else None,
        metric=row.metric,
        is_read=row.is_read,
        id=row.id,
        created_at=row.created_at,
    )


class HealthRefreshService:
    """Runs the refresh pipeline for a stored user and persists its results.

    Usage::

        service = HealthRefreshService(repository, default_registry(repository))
        result, new_insights = await service.refresh("user-1")
    """

    def __init__(
        self,
        repository: HealthRepository,
        registry: AdapterRegistry,
        *,
        engine: InsightEngine | None = None,
        timeout: float = DEFAULT_ADAPTER_TIMEOUT,
        priority: Sequence[Platform | str] = DEFAULT_PLATFORM_PRIORITY,
        history_limit: int = 60,
        audit: AuditLogger | None = None,
    ) -> None:
        self._repo = repository
        self._registry = registry
        self._engine = engine or InsightEngine()
        self._timeout = timeout
        self._priority = tuple(priority)
        self._history_limit = history_limit
        self._audit = audit

    @property
    def engine(self) -> InsightEngine:
        return self._engine

    def _store_insights(self, user_id: str, report: InsightReport) -> list[Insight]:
        saved = self._repo.save_insights(
            user_id, [insight_to_row(i) for i in report.all_insights()]
        )
        return [row_to_insight(row) for row in saved]

    async def refresh(
        self,
        user_id: str,
        *,
        time_range: TimeRange | None = None,
        now: datetime | None = None,
    ) -> tuple[RefreshResult, list[Insight]]:
        """Refresh one user.

        Returns:
            The refresh result and the insights newly stored by it (those not
            already waiting unread).
        """
        now = now or datetime.now().astimezone()
        result = await refresh_insights(
            self._repo.get_credentials(user_id),
            self._registry,
            time_range=time_range,
            history=self._repo.get_history(user_id, limit=self._history_limit),
            now=now,
            timeout=self._timeout,
            priority=self._priority,
            engine=self._engine,
        )

        synced_at = now.isoformat()
        for outcome in result.outcomes:
            self._repo.record_sync(user_id, outcome.platform.value, outcome.status, synced_at=synced_at)
            if self._audit is not None:
                self._audit.log_platform_sync(
                    outcome.platform.value,
                    outcome.status,
                    duration_ms=outcome.duration_ms,
                    error_type=None if outcome.merged else outcome.status,
                )
            # Manual readings already live in the store.
            if outcome.merged and outcome.platform is not Platform.MANUAL and outcome.reading:
                self._repo.save_reading(user_id, outcome.reading.to_dict())

        if result.new_history:
            self._repo.append_history(user_id, result.new_history, recorded_at=synced_at)

        return result, self._store_insights(user_id, result.report)

    def record_manual(
        self,
        user_id: str,
        metrics: Mapping[str, Any],
        *,
        now: datetime | None = None,
    ) -> tuple[HealthReading, AggregatedSnapshot, InsightReport, list[Insight]]:
        """Validate and store a manual reading, then evaluate it on its own.

        The manual platform is connected on first use (credential = user id).

        Raises:
            ValidationError: The metrics are unknown or out of range.
        """
        now = now or datetime.now().astimezone()
        reading = build_manual_reading(metrics, now)
        if reading.is_empty():
            raise ValidationError(["No health metrics provided"])

        connection = self._repo.get_connection(user_id, Platform.MANUAL.value)
        if connection is None or not connection.is_active:
            self._repo.connect_platform(user_id, Platform.MANUAL.value, user_id)

        self._repo.save_reading(user_id, reading.to_dict())
        snapshot = aggregate_readings([reading])
        self._repo.append_history(user_id, history_entry(snapshot), recorded_at=now.isoformat())

        history = self._repo.get_history(user_id, limit=self._history_limit)
        report = self._engine.evaluate(snapshot, history, now=now)
        return reading, snapshot, report, self._store_insights(user_id, report)

    def trends(self, user_id: str) -> dict[str, dict[str, Any]]:
        """Detailed trend statistics over the stored history."""
        history = self._repo.get_history(user_id, limit=self._history_limit)
        return self._engine.trend_analyzer.describe(history)
