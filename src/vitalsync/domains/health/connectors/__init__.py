"""Platform adapters: one capability interface over every health data source."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from vitalsync.domains.health.domain_logic.health_models import (
    HealthReading,
    Platform,
    TimeRange,
)


@runtime_checkable
class PlatformAdapter(Protocol):
    """Fetches one normalized HealthReading from a single platform.

    Adapters hold no per-user state: the credential travels with each call,
    so concurrent refreshes for different users never share a token.
    Metrics the platform cannot supply are left as ``None``.
    """

    @property
    def platform(self) -> Platform:
        """Platform this adapter reads from."""
        ...

    async def fetch_reading(
        self,
        credential: str,
        time_range: TimeRange | None = None,
    ) -> HealthReading:
        """Return the platform's reading for the range (defaults to today).

        Raises:
            Unauthorized: Credential missing, expired or revoked.
            ProviderUnavailable: Upstream failure; retry on a later refresh.
        """
        ...
