"""VitalSync MCP server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from vitalsync.core.audit.logger import AuditLogger
from vitalsync.core.config.settings import get_settings
from vitalsync.core.storage.database import DatabaseError, HealthDatabase
from vitalsync.core.storage.encryption import EncryptionError, FieldEncryptor
from vitalsync.core.storage.repository import HealthRepository
from vitalsync.domains.health.connectors.registry import AdapterRegistry, default_registry
from vitalsync.domains.health.domain_logic.insight_engine import InsightEngine
from vitalsync.domains.health.domain_logic.trend_analyzer import TrendAnalyzer
from vitalsync.domains.health.refresh import HealthRefreshService
from vitalsync.domains.health.tools.health_insight_tools import register_analysis_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "VitalSync Health"
SERVER_VERSION = "0.1.0"


def create_app(
    *,
    repository_override: HealthRepository | None = None,
    audit_logger_override: AuditLogger | None = None,
    registry_override: AdapterRegistry | None = None,
) -> FastMCP:
    """Create and configure the VitalSync MCP server.

    1. Creates the FastMCP server instance
    2. Builds the insight engine from the trend settings
    3. Initializes the encrypted storage layer, when a key is configured
    4. Builds the adapter registry
    5. Registers the tools (storage-backed tools only when storage exists)
    """
    settings = get_settings()

    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Aggregates health data from Apple Health, Fitbit, Google Fit and "
            "manual entries into one snapshot, and derives recommendations, "
            "alerts, achievements and trends from it."
        ),
    )

    engine = InsightEngine(
        trend_analyzer=TrendAnalyzer(
            window=settings.trend_window,
            threshold_pct=settings.trend_threshold_pct,
        ),
    )

    # --- Encrypted storage ---
    repository: HealthRepository | None = None
    audit_logger: AuditLogger | None = audit_logger_override
    if repository_override is not None:
        repository = repository_override
    elif settings.encryption_key:
        try:
            encryptor = FieldEncryptor(settings.encryption_key)
            health_db = HealthDatabase(settings.db_path)
            health_db.initialize()
            repository = HealthRepository(health_db, encryptor)
            if audit_logger is None:
                audit_logger = AuditLogger(health_db)
            logger.info(
                "Health store initialized: %s (schema v%d)",
                settings.db_path,
                health_db.get_schema_version(),
            )
        except (EncryptionError, DatabaseError) as exc:
            logger.error("Failed to initialize storage: %s", exc)
            logger.warning("Continuing without persistence, only stateless tools are available")
    else:
        logger.info(
            "No ENCRYPTION_KEY configured, running without persistence. "
            "Set ENCRYPTION_KEY to enable platform connections and stored insights."
        )

    registry = registry_override or default_registry(
        repository,
        fitbit_base_url=settings.fitbit_api_base_url,
        google_fit_base_url=settings.google_fit_api_base_url,
        timeout=settings.adapter_timeout_seconds,
    )

    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "storage_enabled": repository is not None,
            "platforms": [p.value for p in registry.platforms],
            "insight_rules": len(engine.rules),
        }
        return status

    register_analysis_tools(server, engine, audit_logger)

    # --- Storage-backed tools ---
    if repository is not None:
        from vitalsync.domains.health.tools.data_management_tools import (
            register_data_management_tools,
        )
        from vitalsync.domains.health.tools.health_insight_tools import (
            register_health_insight_tools,
        )
        from vitalsync.domains.health.tools.manual_entry_tools import register_manual_entry_tools
        from vitalsync.domains.health.tools.platform_tools import register_platform_tools

        service = HealthRefreshService(
            repository,
            registry,
            engine=engine,
            timeout=settings.adapter_timeout_seconds,
            priority=settings.platform_priority,
            history_limit=settings.history_limit,
            audit=audit_logger,
        )
        register_platform_tools(server, repository, registry, audit_logger)
        register_health_insight_tools(server, service, repository, audit_logger)
        register_manual_entry_tools(server, service, audit_logger)
        register_data_management_tools(server, repository, audit_logger)
        logger.info("Storage-backed health tools registered")

    if audit_logger is not None:
        from vitalsync.domains.health.tools.audit_tools import register_audit_tools

        register_audit_tools(server, audit_logger)

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when accessed (tests import create_app without side effects).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
