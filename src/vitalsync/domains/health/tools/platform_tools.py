"""MCP tools for connecting and disconnecting health platforms.

Credentials arrive already issued (an OAuth access token, or for Apple Health
the path of an uploaded export.xml) and are stored encrypted.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from vitalsync.domains.health.domain_logic.health_models import Platform
from vitalsync.domains.health.tools.tool_audit import log_tool

if TYPE_CHECKING:
    from vitalsync.core.audit.logger import AuditLogger
    from vitalsync.core.storage.repository import HealthRepository
    from vitalsync.domains.health.connectors.registry import AdapterRegistry

logger = logging.getLogger(__name__)


def register_platform_tools(
    mcp: FastMCP,
    repository: HealthRepository,
    registry: AdapterRegistry,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register platform connection tools on the MCP server."""

    def _unknown(platform: str) -> str:
        return json.dumps({
            "status": "error",
            "message": f"Unknown platform {platform!r}.",
            "supported_platforms": [p.value for p in registry.platforms],
        })

    @mcp.tool
    async def connect_platform(
        ctx: Context,
        user_id: str,
        platform: str,
        credential: str,
    ) -> str:
        """Connect a health platform so refreshes include its data.

        Reconnecting replaces the stored credential.

        Args:
            user_id: Your user id.
            platform: One of 'apple-health', 'fitbit', 'google-fit'.
            credential: OAuth access token, or for Apple Health the path to export.xml.
        """
        start_time = time.monotonic()
        tool_input = {"user_id": user_id, "platform": platform}
        if platform not in registry or platform == Platform.MANUAL.value:
            log_tool(audit_logger, "connect_platform", tool_input, start_time,
                     status="failure", error_type="UnknownPlatformError")
            return _unknown(platform)
        if not credential:
            log_tool(audit_logger, "connect_platform", tool_input, start_time,
                     status="failure", error_type="ValueError")
            return json.dumps({"status": "error", "message": "Credential must not be empty."})

        connection = repository.connect_platform(user_id, platform, credential)
        log_tool(audit_logger, "connect_platform", tool_input, start_time)
        return json.dumps({"status": "connected", **connection.to_dict()})

    @mcp.tool
    async def disconnect_platform(
        ctx: Context,
        user_id: str,
        platform: str,
    ) -> str:
        """Disconnect a platform and delete its stored credential.

        Args:
            user_id: Your user id.
            platform: Platform to disconnect.
        """
        start_time = time.monotonic()
        removed = repository.disconnect_platform(user_id, platform)
        log_tool(audit_logger, "disconnect_platform", {"user_id": user_id, "platform": platform}, start_time)
        if not removed:
            return json.dumps({
                "status": "not_found",
                "platform": platform,
                "message": "No active connection for that platform.",
            })
        return json.dumps({"status": "disconnected", "platform": platform})

    @mcp.tool
    async def list_connected_platforms(
        ctx: Context,
        user_id: str,
    ) -> str:
        """List your connected platforms with the status of their last sync.

        Args:
            user_id: Your user id.
        """
        start_time = time.monotonic()
        connections = repository.list_connections(user_id)
        log_tool(audit_logger, "list_connected_platforms", {"user_id": user_id}, start_time)
        return json.dumps({
            "platforms": [c.to_dict() for c in connections],
            "count": len(connections),
        })
