"""Concurrent fan-out over every connected platform.

Each adapter runs under its own timeout. One adapter failing, timing out or
returning out-of-range data never affects the others: every platform ends in
exactly one SyncOutcome, and only ``synced`` outcomes carry a reading into the
merge.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping

from vitalsync.domains.health.connectors import PlatformAdapter
from vitalsync.domains.health.connectors.errors import AdapterError
from vitalsync.domains.health.connectors.registry import AdapterRegistry, UnknownPlatformError
from vitalsync.domains.health.domain_logic.health_models import (
    HealthReading,
    Platform,
    TimeRange,
)
from vitalsync.domains.health.domain_logic.validation import validate_reading

logger = logging.getLogger(__name__)

DEFAULT_ADAPTER_TIMEOUT = 10.0

SYNCED = "synced"
NO_DATA = "no_data"
UNAUTHORIZED = "unauthorized"
UNAVAILABLE = "unavailable"
INVALID = "invalid"


@dataclass(frozen=True)
class SyncOutcome:
    """Result of one adapter call during a refresh."""

    platform: Platform
    status: str
    reading: HealthReading | None = None
    error: str = ""
    violations: tuple[str, ...] = ()
    duration_ms: float = 0.0

    @property
    def merged(self) -> bool:
        return self.status == SYNCED

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"platform": self.platform.value, "status": self.status}
        if self.error:
            data["error"] = self.error
        if self.violations:
            data["violations"] = list(self.violations)
        return data


@dataclass(frozen=True)
class FanOutResult:
    outcomes: tuple[SyncOutcome, ...] = ()
    skipped: tuple[str, ...] = ()  # credentials for unregistered platforms

    @property
    def readings(self) -> list[HealthReading]:
        """Readings that may enter the merge, in outcome order."""
        return [o.reading for o in self.outcomes if o.merged and o.reading is not None]


class CompositeCollector:
    """Runs every connected platform's adapter concurrently.

    Usage::

        collector = CompositeCollector(registry, timeout=10.0)
        result = await collector.collect({"fitbit": token, "apple-health": path})
        result.readings, [o.status for o in result.outcomes]
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        *,
        timeout: float = DEFAULT_ADAPTER_TIMEOUT,
    ) -> None:
        if timeout <= 0:
            raise ValueError("Adapter timeout must be positive")
        self._registry = registry
        self._timeout = timeout

    async def collect(
        self,
        credentials: Mapping[Platform | str, str],
        time_range: TimeRange | None = None,
    ) -> FanOutResult:
        time_range = time_range or TimeRange.today()

        calls = []
        skipped: list[str] = []
        for platform, credential in credentials.items():
            try:
                adapter = self._registry.get(platform)
            except UnknownPlatformError:
                logger.warning("No adapter for platform %r, skipping", platform)
                skipped.append(str(getattr(platform, "value", platform)))
                continue
            calls.append(self._fetch_one(adapter, credential, time_range))

        outcomes = await asyncio.gather(*calls)
        return FanOutResult(outcomes=tuple(outcomes), skipped=tuple(skipped))

    async def _fetch_one(
        self, adapter: PlatformAdapter, credential: str, time_range: TimeRange
    ) -> SyncOutcome:
        platform = adapter.platform
        started = time.perf_counter()

        def elapsed() -> float:
            return round((time.perf_counter() - started) * 1000, 2)

        try:
            reading = await asyncio.wait_for(
                adapter.fetch_reading(credential, time_range), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Adapter %s timed out after %.1fs", platform.value, self._timeout)
            return SyncOutcome(
                platform, UNAVAILABLE, error=f"{platform.value}: timed out", duration_ms=elapsed()
            )
        except AdapterError as exc:
            logger.warning("Adapter %s failed: %s", platform.value, type(exc).__name__)
            return SyncOutcome(platform, exc.status, error=str(exc), duration_ms=elapsed())
        except Exception as exc:
            # Adapter defects are isolated to their own platform.
            logger.exception("Adapter %s raised unexpectedly", platform.value)
            return SyncOutcome(
                platform, UNAVAILABLE,
                error=f"{platform.value}: {type(exc).__name__}", duration_ms=elapsed(),
            )

        if reading.is_empty():
            return SyncOutcome(platform, NO_DATA, reading=reading, duration_ms=elapsed())

        violations = validate_reading(reading)
        if violations:
            logger.warning(
                "Adapter %s returned %d out-of-range values; reading excluded",
                platform.value, len(violations),
            )
            return SyncOutcome(
                platform, INVALID, reading=reading,
                violations=tuple(violations), duration_ms=elapsed(),
            )

        return SyncOutcome(platform, SYNCED, reading=reading, duration_ms=elapsed())
