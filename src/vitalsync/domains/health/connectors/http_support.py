"""Shared HTTP plumbing for REST/OAuth2 platform adapters."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from vitalsync.domains.health.connectors.errors import ProviderUnavailable, Unauthorized
from vitalsync.domains.health.domain_logic.health_models import Platform

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 10.0


@asynccontextmanager
async def client_session(
    client: httpx.AsyncClient | None,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client, or a short-lived one closed on exit."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout) as owned:
        yield owned


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    platform: Platform,
    credential: str,
    **kwargs: Any,
) -> dict[str, Any]:
    """Send an authenticated request and return the decoded JSON body.

    Raises:
        Unauthorized: Missing credential, or HTTP 401/403.
        ProviderUnavailable: Transport error, 429, 5xx, other non-2xx, or a
            body that is not a JSON object.
    """
    if not credential:
        raise Unauthorized(platform, f"{platform.value}: no access token")

    headers = {"Authorization": f"Bearer {credential}", "Accept": "application/json"}
    headers.update(kwargs.pop("headers", {}) or {})

    try:
        response = await client.request(method, url, headers=headers, **kwargs)
    except httpx.HTTPError as exc:
        raise ProviderUnavailable(
            platform, f"{platform.value}: request failed ({type(exc).__name__})"
        ) from exc

    if response.status_code in (401, 403):
        raise Unauthorized(
            platform, f"{platform.value}: access token rejected (HTTP {response.status_code})"
        )
    if response.status_code >= 400:
        raise ProviderUnavailable(
            platform, f"{platform.value}: upstream returned HTTP {response.status_code}"
        )

    try:
        payload = response.json()
    except ValueError as exc:
        raise ProviderUnavailable(platform, f"{platform.value}: invalid JSON response") from exc
    if not isinstance(payload, dict):
        raise ProviderUnavailable(platform, f"{platform.value}: unexpected response shape")
    return payload
