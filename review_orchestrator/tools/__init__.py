"""
Tools for the review orchestrator.

Tools are registered at bootstrap time, not at import time.

Standard tools:
- git: read-only repository inspection
- database: fixed named queries over review history
- filesystem: bounded file reads and directory analysis
- notification: review alerts to Slack, Teams, email, webhooks or the log

Usage:
    from review_orchestrator.tools import create_default_registry

    # At bootstrap time
    registry = create_default_registry(database_path="./data/reviews.db")
"""

from .base import Tool, ToolDescriptor, ToolInvocationRequest, ToolResult
from .catalog import Capability, ToolId, ToolRegistry
from .registration import create_default_registry, register_all_tools

__all__ = [
    # Abstraction
    "Tool",
    "ToolDescriptor",
    "ToolInvocationRequest",
    "ToolResult",
    # Registry
    "Capability",
    "ToolId",
    "ToolRegistry",
    # Registration
    "register_all_tools",
    "create_default_registry",
]
