"""Tool Bounds - resource limits applied by the standard tools.

A model decides which tools to call and with what parameters, so every
tool clamps its own work:
- File limits: allowed extensions, maximum size, walk depth
- Query limits: row limits and look-back windows for named queries
- Process limits: git sub-timeouts and log length
- Execution limits: per-tool sub-timeout

Usage:
    from review_orchestrator.config import ToolBounds, get_tool_bounds

    # Get singleton (registered at startup)
    bounds = get_tool_bounds()

    # Or create custom bounds
    bounds = ToolBounds(max_file_size=256 * 1024)
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

# Module-level singleton for registered bounds
_registered_bounds: Optional["ToolBounds"] = None


DEFAULT_ALLOWED_EXTENSIONS: FrozenSet[str] = frozenset([
    ".java", ".js", ".ts", ".py", ".md", ".yml", ".yaml",
    ".json", ".xml", ".properties", ".sql", ".sh", ".bat",
])


@dataclass
class ToolBounds:
    """Limits enforced inside tool bodies."""

    # ─── File Limits ───
    allowed_extensions: FrozenSet[str] = DEFAULT_ALLOWED_EXTENSIONS
    """Extensions the filesystem tool will read or report."""

    max_file_size: int = 1024 * 1024
    """Maximum bytes the filesystem tool will read (1 MiB)."""

    max_walk_depth: int = 10
    """Maximum directory depth for find_files."""

    max_structure_depth: int = 5
    """Default depth for analyze_structure."""

    max_listed_entries: int = 1000
    """Maximum entries returned by list_directory / find_files."""

    allowed_roots: Tuple[str, ...] = field(default_factory=tuple)
    """If non-empty, filesystem paths must resolve under one of these roots."""

    # ─── Query Limits ───
    max_query_limit: int = 100
    """Upper bound for the ``limit`` parameter of named queries."""

    max_query_days: int = 365
    """Upper bound for the ``days`` parameter of named queries."""

    # ─── Process Limits ───
    git_timeout_seconds: float = 30.0
    """Sub-timeout for a single git command."""

    max_log_entries: int = 50
    """Maximum commits returned by git log."""

    # ─── Execution Limits ───
    tool_timeout_seconds: float = 60.0
    """Outer sub-timeout applied to every tool execution."""

    def to_dict(self) -> dict:
        """Convert to dictionary for logging and diagnostics."""
        return {
            "allowed_extensions": sorted(self.allowed_extensions),
            "max_file_size": self.max_file_size,
            "max_walk_depth": self.max_walk_depth,
            "max_structure_depth": self.max_structure_depth,
            "max_listed_entries": self.max_listed_entries,
            "allowed_roots": list(self.allowed_roots),
            "max_query_limit": self.max_query_limit,
            "max_query_days": self.max_query_days,
            "git_timeout_seconds": self.git_timeout_seconds,
            "max_log_entries": self.max_log_entries,
            "tool_timeout_seconds": self.tool_timeout_seconds,
        }


# Default bounds instance
DEFAULT_TOOL_BOUNDS = ToolBounds()


def get_tool_bounds() -> ToolBounds:
    """Get the registered ToolBounds instance.

    Returns the bounds registered via set_tool_bounds(),
    or DEFAULT_TOOL_BOUNDS if none registered.
    """
    global _registered_bounds
    return _registered_bounds or DEFAULT_TOOL_BOUNDS


def set_tool_bounds(bounds: ToolBounds) -> None:
    """Register ToolBounds instance.

    Called at bootstrap to set custom bounds.

    Args:
        bounds: ToolBounds instance to register
    """
    global _registered_bounds
    _registered_bounds = bounds


def reset_tool_bounds() -> None:
    """Reset to default bounds (for testing)."""
    global _registered_bounds
    _registered_bounds = None
