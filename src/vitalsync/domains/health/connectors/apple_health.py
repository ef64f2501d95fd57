"""Apple Health adapter: reads from an exported Health data XML.

Users export via iOS Health app > Share > Export Health Data, which produces
export.xml. The credential for this platform is the path to that file.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from vitalsync.domains.health.connectors.apple_health_parser import (
    AppleHealthParseError,
    parse_apple_health_export,
    summarize_reading,
)
from vitalsync.domains.health.connectors.errors import ProviderUnavailable, Unauthorized
from vitalsync.domains.health.domain_logic.health_models import (
    HealthReading,
    Platform,
    TimeRange,
)

logger = logging.getLogger(__name__)


class AppleHealthAdapter:
    """PlatformAdapter backed by an Apple Health XML export.

    Usage::

        adapter = AppleHealthAdapter()
        reading = await adapter.fetch_reading("/path/to/export.xml")
    """

    @property
    def platform(self) -> Platform:
        return Platform.APPLE_HEALTH

    async def fetch_reading(
        self,
        credential: str,
        time_range: TimeRange | None = None,
    ) -> HealthReading:
        time_range = time_range or TimeRange.today()
        if not credential or not Path(credential).expanduser().is_file():
            raise Unauthorized(self.platform, "apple-health: export file not found, upload a new export")

        export_path = Path(credential).expanduser()
        try:
            # iterparse is blocking; keep it off the event loop.
            parsed = await asyncio.to_thread(parse_apple_health_export, export_path, time_range)
        except AppleHealthParseError as exc:
            logger.exception("Failed to parse Apple Health export")
            raise ProviderUnavailable(self.platform, f"apple-health: {exc}") from exc

        return HealthReading(
            platform=self.platform,
            captured_at=time_range.end,
            **summarize_reading(parsed),
        )
