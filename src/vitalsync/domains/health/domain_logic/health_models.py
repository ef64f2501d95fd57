"""Health reading, snapshot and insight models shared by adapters, aggregator and engine."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta
from enum import Enum
from typing import Any


class Platform(str, Enum):
    """Source of a health reading."""

    APPLE_HEALTH = "apple-health"
    GOOGLE_FIT = "google-fit"
    FITBIT = "fitbit"
    MANUAL = "manual"


class InsightKind(str, Enum):
    RECOMMENDATION = "recommendation"
    ALERT = "alert"
    ACHIEVEMENT = "achievement"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TrendLabel(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient_data"


# ---------------------------------------------------------------------------
# Composite metric values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BloodPressure:
    systolic: float
    diastolic: float

    def to_dict(self) -> dict[str, float]:
        return {"systolic": self.systolic, "diastolic": self.diastolic}


@dataclass(frozen=True)
class SleepStages:
    """Hours spent in each sleep stage."""

    deep: float = 0.0
    light: float = 0.0
    rem: float = 0.0
    awake: float = 0.0

    @property
    def total_sleep(self) -> float:
        """Hours asleep (awake time excluded)."""
        return self.deep + self.light + self.rem

    def to_dict(self) -> dict[str, float]:
        return {"deep": self.deep, "light": self.light, "rem": self.rem, "awake": self.awake}


@dataclass(frozen=True)
class TimeRange:
    """Half-open window a reading covers."""

    start: datetime
    end: datetime

    @classmethod
    def today(cls, now: datetime | None = None) -> TimeRange:
        """Local midnight up to ``now``."""
        now = now or datetime.now().astimezone()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return cls(start=midnight, end=now)

    @classmethod
    def last_days(cls, days: int, now: datetime | None = None) -> TimeRange:
        now = now or datetime.now().astimezone()
        return cls(start=now - timedelta(days=days), end=now)

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


# ---------------------------------------------------------------------------
# Metric field groups
# ---------------------------------------------------------------------------

# Additive across devices.
SUMMED_METRICS = ("steps", "calories_burned", "distance_km")

# Representative values: mean over reporting readings, rounded to N places.
AVERAGED_METRICS = {"heart_rate_bpm": 0, "sleep_hours": 1}

# Point samples: first reading in priority order that reports the field.
POINT_SAMPLE_METRICS = (
    "weight_kg",
    "blood_pressure",
    "sleep_stages",
    "height_cm",
    "bmi",
    "blood_glucose",
    "body_fat_percentage",
    "hydration_level",
    "stress_level",
    "energy_level",
    "body_temperature_c",
    "oxygen_saturation",
    "respiratory_rate",
)

METRIC_FIELDS = SUMMED_METRICS + tuple(AVERAGED_METRICS) + POINT_SAMPLE_METRICS


def _metric_to_json(value: Any) -> Any:
    if isinstance(value, (BloodPressure, SleepStages)):
        return value.to_dict()
    return value


def _metric_from_json(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name == "blood_pressure":
        return BloodPressure(systolic=value["systolic"], diastolic=value["diastolic"])
    if name == "sleep_stages":
        return SleepStages(**value)
    return value


@dataclass(frozen=True)
class HealthReading:
    """One platform's snapshot for a time window.

    ``None`` means "not reported by this source", never zero.
    """

    platform: Platform
    captured_at: datetime
    steps: float | None = None
    heart_rate_bpm: float | None = None
    sleep_hours: float | None = None
    calories_burned: float | None = None
    distance_km: float | None = None
    weight_kg: float | None = None
    blood_pressure: BloodPressure | None = None
    sleep_stages: SleepStages | None = None
    height_cm: float | None = None
    bmi: float | None = None
    blood_glucose: float | None = None
    body_fat_percentage: float | None = None
    hydration_level: float | None = None
    stress_level: float | None = None
    energy_level: float | None = None
    body_temperature_c: float | None = None
    oxygen_saturation: float | None = None
    respiratory_rate: float | None = None

    def metrics(self) -> dict[str, Any]:
        """Reported metrics only."""
        return {
            name: getattr(self, name)
            for name in METRIC_FIELDS
            if getattr(self, name) is not None
        }

    def is_empty(self) -> bool:
        return not self.metrics()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "platform": self.platform.value,
            "captured_at": self.captured_at.isoformat(),
        }
        for name, value in self.metrics().items():
            data[name] = _metric_to_json(value)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HealthReading:
        kwargs = {
            name: _metric_from_json(name, data.get(name))
            for name in METRIC_FIELDS
        }
        return cls(
            platform=Platform(data["platform"]),
            captured_at=datetime.fromisoformat(data["captured_at"]),
            **kwargs,
        )


@dataclass(frozen=True)
class AggregatedSnapshot:
    """Unified cross-platform view, recomputed on every refresh."""

    steps: float | None = None
    heart_rate_bpm: float | None = None
    sleep_hours: float | None = None
    calories_burned: float | None = None
    distance_km: float | None = None
    weight_kg: float | None = None
    blood_pressure: BloodPressure | None = None
    sleep_stages: SleepStages | None = None
    height_cm: float | None = None
    bmi: float | None = None
    blood_glucose: float | None = None
    body_fat_percentage: float | None = None
    hydration_level: float | None = None
    stress_level: float | None = None
    energy_level: float | None = None
    body_temperature_c: float | None = None
    oxygen_saturation: float | None = None
    respiratory_rate: float | None = None
    platforms: tuple[Platform, ...] = ()

    def metrics(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "platforms" and getattr(self, f.name) is not None
        }

    def is_empty(self) -> bool:
        return not self.metrics()

    def to_dict(self) -> dict[str, Any]:
        data = {name: _metric_to_json(value) for name, value in self.metrics().items()}
        data["platforms"] = [p.value for p in self.platforms]
        return data


@dataclass(frozen=True)
class Insight:
    """A recommendation, alert, or achievement.

    ``priority`` holds the priority of a recommendation or the severity of an
    alert; achievements have none.
    """

    kind: InsightKind
    title: str
    description: str
    category: str
    priority: Priority | None = None
    metric: str = ""
    is_read: bool = False
    id: str = ""
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "metric": self.metric,
            "is_read": self.is_read,
        }
        if self.priority is not None:
            key = "severity" if self.kind is InsightKind.ALERT else "priority"
            data[key] = self.priority.value
        if self.id:
            data["id"] = self.id
        if self.created_at:
            data["created_at"] = self.created_at
        return data


@dataclass(frozen=True)
class InsightReport:
    """Insight Engine output for one evaluation pass."""

    recommendations: tuple[Insight, ...] = ()
    alerts: tuple[Insight, ...] = ()
    achievements: tuple[Insight, ...] = ()
    trends: dict[str, TrendLabel] = field(default_factory=dict)
    next_steps: tuple[str, ...] = ()

    def all_insights(self) -> list[Insight]:
        return [*self.alerts, *self.recommendations, *self.achievements]

    def to_dict(self) -> dict[str, Any]:
        return {
            "insights": {
                "recommendations": [i.to_dict() for i in self.recommendations],
                "alerts": [i.to_dict() for i in self.alerts],
                "achievements": [i.to_dict() for i in self.achievements],
            },
            "trends": {metric: label.value for metric, label in self.trends.items()},
            "next_steps": list(self.next_steps),
        }
