"""
Tool registration for the review orchestrator.

Single entry point for building the standard registry. Called at
bootstrap, not at import time, so importing the package has no side
effects (no database connections, no HTTP clients).
"""

from typing import Any, Dict, Optional

import structlog

from review_orchestrator.config import (
    OrchestratorSettings,
    ToolBounds,
    get_orchestrator_settings,
    get_tool_bounds,
)
from review_orchestrator.tools.catalog import ToolId, ToolRegistry


def register_all_tools(
    registry: ToolRegistry,
    *,
    database_path: Optional[str] = None,
    settings: Optional[OrchestratorSettings] = None,
    bounds: Optional[ToolBounds] = None,
    logger: Optional[Any] = None,
) -> Dict[str, Any]:
    """
    Register git, database, filesystem and notification tools.

    Args:
        registry: Registry to populate (must not be frozen)
        database_path: SQLite file for the database tool
        settings: Orchestrator settings (webhook URLs)
        bounds: Tool bounds shared by all tools
        logger: Optional logger instance

    Returns:
        Dict with registration results:
        - count: Number of tools registered
        - registered: List of registered tool names
    """
    if logger is None:
        logger = structlog.get_logger("tools.registration")
    settings = settings or get_orchestrator_settings()
    bounds = bounds or get_tool_bounds()

    # Deferred imports keep import-time side effects out of the package root
    from review_orchestrator.database import SQLiteClient
    from review_orchestrator.tools.database_tool import DatabaseTool
    from review_orchestrator.tools.filesystem_tool import FileSystemTool
    from review_orchestrator.tools.git_tool import GitTool
    from review_orchestrator.tools.notification_tool import NotificationTool

    logger.info("registering_review_tools")

    registry.register(GitTool(bounds=bounds, logger=logger))
    registry.register(DatabaseTool(SQLiteClient(database_path), bounds=bounds, logger=logger))
    registry.register(FileSystemTool(bounds=bounds, logger=logger))
    registry.register(
        NotificationTool(webhooks=settings.notification_webhooks, bounds=bounds, logger=logger)
    )

    registered_ids = [
        ToolId.GIT.value,
        ToolId.DATABASE.value,
        ToolId.FILESYSTEM.value,
        ToolId.NOTIFICATION.value,
    ]

    logger.info(
        "review_tools_registered",
        count=len(registered_ids),
        tools=registered_ids,
    )

    return {
        "count": len(registered_ids),
        "registered": registered_ids,
    }


def create_default_registry(**kwargs) -> ToolRegistry:
    """Build, populate and freeze a registry with the standard tools."""
    registry = ToolRegistry(logger=kwargs.get("logger"))
    register_all_tools(registry, **kwargs)
    registry.freeze()
    return registry


__all__ = ["register_all_tools", "create_default_registry"]
