"""
Tool Registry for the review orchestrator.

Typed tool identifiers, capability tags and the process-wide registry.

Architecture:
    Tools are registered at bootstrap, then the registry is frozen.
    After freezing it is read-only and shared by every session without
    synchronization. The catalog is the schema-only view sent to a model.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from review_orchestrator._logging import get_component_logger
from review_orchestrator.tools.base import Tool


class ToolId(str, Enum):
    """Identifiers of the standard tools."""

    GIT = "git"
    DATABASE = "database"
    FILESYSTEM = "filesystem"
    NOTIFICATION = "notification"


class Capability(str, Enum):
    """Capability tags a tool may require."""

    FILESYSTEM_READ = "filesystem:read"
    PROCESS_EXECUTE = "process:execute"
    DATABASE_READ = "database:read"
    NETWORK_SEND = "network:send"
    NOTIFICATION_SEND = "notification:send"


class ToolRegistry:
    """
    Fixed name -> Tool map.

    Example:
        registry = ToolRegistry()
        registry.register(GitTool())
        registry.freeze()

        tool = registry.lookup("git")
        entries = await registry.catalog(["git"])
    """

    def __init__(self, logger: Optional[Any] = None):
        self._tools: Dict[str, Tool] = {}
        self._frozen = False
        self._logger = get_component_logger("ToolRegistry", logger)

    def register(self, tool: Tool) -> None:
        """
        Register a tool.

        Raises:
            ValueError: if the name is already registered
            RuntimeError: if the registry has been frozen
        """
        if self._frozen:
            raise RuntimeError(f"Registry is frozen; cannot register {tool.name!r}")
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool
        self._logger.debug("tool_registered", tool=tool.name)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, name: str) -> Optional[Tool]:
        """Get tool by name, or None."""
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> List[str]:
        """Registered names in registration order."""
        return list(self._tools)

    @property
    def tool_count(self) -> int:
        return len(self._tools)

    async def aclose(self) -> None:
        """Close every registered tool; errors are logged per tool."""
        for tool in self._tools.values():
            try:
                await tool.aclose()
            except Exception as exc:
                self._logger.warning("tool_close_failed", tool=tool.name, error=str(exc))

    async def _probe(self, tool: Tool) -> bool:
        try:
            return bool(await tool.is_available())
        except Exception as exc:
            self._logger.warning(
                "tool_availability_probe_failed", tool=tool.name, error=str(exc)
            )
            return False

    async def catalog(
        self,
        allowed_names: Optional[Iterable[str]] = None,
        capabilities: Optional[Iterable[str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Schema-only view of currently available tools.

        Args:
            allowed_names: restrict to these names (None or empty = all)
            capabilities: granted capability tags; tools requiring anything
                outside this set are omitted (None = no filtering)

        Returns:
            List of {name, description, inputSchema} in registration order
        """
        allowed = set(allowed_names or ())
        granted: Optional[FrozenSet[str]] = (
            frozenset(c.value if isinstance(c, Capability) else c for c in capabilities)
            if capabilities is not None
            else None
        )

        candidates = [
            tool
            for name, tool in self._tools.items()
            if (not allowed or name in allowed)
            and (granted is None or tool.required_capabilities <= granted)
        ]
        availability = await asyncio.gather(*(self._probe(t) for t in candidates))

        return [
            tool.descriptor.to_catalog_entry()
            for tool, available in zip(candidates, availability)
            if available
        ]


__all__ = [
    "ToolId",
    "Capability",
    "ToolRegistry",
]
