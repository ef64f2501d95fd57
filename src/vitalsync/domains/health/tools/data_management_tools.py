"""MCP tools for health data management.

Implements the user's right to delete their health data. Deletions are
audit-logged with row counts only.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from vitalsync.core.audit.logger import AuditLogger
    from vitalsync.core.storage.repository import HealthRepository

logger = logging.getLogger(__name__)

DELETE_CONFIRMATION = "DELETE_ALL"


def register_data_management_tools(
    mcp: FastMCP,
    repository: HealthRepository,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register data management tools on the MCP server."""

    @mcp.tool
    async def delete_my_health_data(
        ctx: Context,
        user_id: str,
        confirm: str = "",
    ) -> str:
        """Permanently delete all of your stored health data.

        Removes readings, metric history, insights and platform connections
        (including stored credentials). It cannot be undone.

        Args:
            user_id: Your user id.
            confirm: Must be exactly 'DELETE_ALL' to proceed.
        """
        if confirm != DELETE_CONFIRMATION:
            return json.dumps({
                "status": "cancelled",
                "message": (
                    "To delete all health data, call this tool with "
                    "confirm='DELETE_ALL'. This action cannot be undone."
                ),
            })

        start_time = time.monotonic()
        counts = repository.delete_user_data(user_id)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None:
            audit_logger.log_data_delete(
                tool_name="delete_my_health_data",
                count=sum(counts.values()),
                metadata={"confirmed": True, "tables": counts},
            )

        return json.dumps({
            "status": "all_deleted",
            "deleted": counts,
            "duration_ms": round(elapsed_ms, 1),
            "message": "All of your health data has been permanently deleted.",
        })
