"""Adapter failure taxonomy.

"No data" is not an error: adapters return a reading with every metric absent.
"""

from __future__ import annotations

from vitalsync.domains.health.domain_logic.health_models import Platform


class AdapterError(Exception):
    """Base class for platform adapter failures."""

    status = "error"

    def __init__(self, platform: Platform, message: str = "") -> None:
        self.platform = platform
        super().__init__(message or f"{platform.value}: {self.status}")


class Unauthorized(AdapterError):
    """Credential is missing, expired or revoked; the user must reconnect."""

    status = "unauthorized"


class ProviderUnavailable(AdapterError):
    """Upstream request failed or timed out; retryable on the next refresh."""

    status = "unavailable"
