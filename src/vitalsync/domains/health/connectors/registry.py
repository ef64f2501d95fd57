"""Platform -> adapter factory map."""

from __future__ import annotations

import logging
from typing import Callable, Iterable

import httpx

from vitalsync.core.storage.repository import HealthRepository
from vitalsync.domains.health.connectors import PlatformAdapter
from vitalsync.domains.health.connectors.apple_health import AppleHealthAdapter
from vitalsync.domains.health.connectors.fitbit import FITBIT_API_BASE_URL, FitbitAdapter
from vitalsync.domains.health.connectors.google_fit import GOOGLE_FIT_API_BASE_URL, GoogleFitAdapter
from vitalsync.domains.health.connectors.http_support import DEFAULT_HTTP_TIMEOUT
from vitalsync.domains.health.connectors.manual_entry import ManualEntryAdapter
from vitalsync.domains.health.domain_logic.health_models import Platform

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[], PlatformAdapter]


class UnknownPlatformError(KeyError):
    """Raised when no adapter is registered for a platform."""


class AdapterRegistry:
    """Selects the adapter for a platform without scattered conditionals.

    Usage::

        registry = AdapterRegistry()
        registry.register(Platform.FITBIT, lambda: FitbitAdapter(client=http))
        adapter = registry.get("fitbit")
    """

    def __init__(self) -> None:
        self._factories: dict[Platform, AdapterFactory] = {}

    def register(self, platform: Platform | str, factory: AdapterFactory) -> None:
        key = Platform(platform)
        if key in self._factories:
            logger.warning("Replacing adapter factory for %s", key.value)
        self._factories[key] = factory

    def get(self, platform: Platform | str) -> PlatformAdapter:
        try:
            key = Platform(platform)
        except ValueError:
            raise UnknownPlatformError(f"Unknown platform: {platform!r}") from None
        factory = self._factories.get(key)
        if factory is None:
            raise UnknownPlatformError(f"No adapter registered for {key.value!r}")
        return factory()

    def __contains__(self, platform: object) -> bool:
        try:
            return Platform(platform) in self._factories
        except ValueError:
            return False

    @property
    def platforms(self) -> list[Platform]:
        return list(self._factories)

    def register_many(self, entries: Iterable[tuple[Platform | str, AdapterFactory]]) -> None:
        for platform, factory in entries:
            self.register(platform, factory)


def default_registry(
    repository: HealthRepository | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    fitbit_base_url: str = FITBIT_API_BASE_URL,
    google_fit_base_url: str = GOOGLE_FIT_API_BASE_URL,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> AdapterRegistry:
    """Registry with every built-in adapter.

    Manual entry is only available with a repository to read from.
    """
    registry = AdapterRegistry()
    registry.register(Platform.APPLE_HEALTH, AppleHealthAdapter)
    registry.register(
        Platform.FITBIT,
        lambda: FitbitAdapter(client=client, base_url=fitbit_base_url, timeout=timeout),
    )
    registry.register(
        Platform.GOOGLE_FIT,
        lambda: GoogleFitAdapter(client=client, base_url=google_fit_base_url, timeout=timeout),
    )
    if repository is not None:
        registry.register(Platform.MANUAL, lambda: ManualEntryAdapter(repository))
    return registry
