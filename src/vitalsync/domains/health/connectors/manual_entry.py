"""Manual entry adapter: reads hand-entered readings from the health store.

Users enter metrics via the ``record_health_data`` tool. The credential for
this platform is the owning user id.
"""

from __future__ import annotations

import logging

from vitalsync.core.storage.encryption import EncryptionError
from vitalsync.core.storage.repository import HealthRepository
from vitalsync.domains.health.connectors.errors import ProviderUnavailable, Unauthorized
from vitalsync.domains.health.domain_logic.health_models import (
    HealthReading,
    Platform,
    TimeRange,
)

logger = logging.getLogger(__name__)


class ManualEntryAdapter:
    """PlatformAdapter backed by manually entered data in the health store.

    The latest manual reading counts when it was captured inside the range;
    otherwise the reading is empty.
    """

    def __init__(self, repository: HealthRepository) -> None:
        self._repo = repository

    @property
    def platform(self) -> Platform:
        return Platform.MANUAL

    async def fetch_reading(
        self,
        credential: str,
        time_range: TimeRange | None = None,
    ) -> HealthReading:
        time_range = time_range or TimeRange.today()
        if not credential:
            raise Unauthorized(self.platform, "manual: no user id")

        try:
            stored = self._repo.get_latest_reading(credential, self.platform.value)
        except EncryptionError as exc:
            raise ProviderUnavailable(self.platform, "manual: stored reading unreadable") from exc

        if stored is None:
            return HealthReading(platform=self.platform, captured_at=time_range.end)

        reading = HealthReading.from_dict(stored.reading)
        if not time_range.start <= reading.captured_at <= time_range.end:
            logger.info("Latest manual reading is outside the requested range")
            return HealthReading(platform=self.platform, captured_at=time_range.end)
        return reading
