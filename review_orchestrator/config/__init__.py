"""Configuration for the review orchestrator.

- settings.py: model endpoint, deadlines, follow-up limits, concurrency
- bounds.py: resource limits enforced inside tool bodies
"""

from .bounds import (
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_TOOL_BOUNDS,
    ToolBounds,
    get_tool_bounds,
    reset_tool_bounds,
    set_tool_bounds,
)
from .settings import (
    DEFAULT_ORCHESTRATOR_SETTINGS,
    OrchestratorSettings,
    get_orchestrator_settings,
    reset_orchestrator_settings,
    set_orchestrator_settings,
)

__all__ = [
    # Bounds
    "DEFAULT_ALLOWED_EXTENSIONS",
    "DEFAULT_TOOL_BOUNDS",
    "ToolBounds",
    "get_tool_bounds",
    "set_tool_bounds",
    "reset_tool_bounds",
    # Settings
    "DEFAULT_ORCHESTRATOR_SETTINGS",
    "OrchestratorSettings",
    "get_orchestrator_settings",
    "set_orchestrator_settings",
    "reset_orchestrator_settings",
]
