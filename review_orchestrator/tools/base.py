"""Tool abstraction - descriptors, invocation requests and results.

Every tool is a Tool subclass exposing a ToolDescriptor and an async
``execute``. ``execute`` is a template method: it validates parameters
against the descriptor's JSON Schema, runs the tool body under the tool's
own sub-timeout, and turns every failure into ``ToolResult.failure``.
Tool bodies may raise; callers of ``execute`` never see it.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional

from jsonschema import Draft7Validator

from review_orchestrator._logging import get_component_logger
from review_orchestrator.errors import ErrorCategory

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not mapping:
        return _EMPTY
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ToolDescriptor:
    """Public description of a tool, as shown to the model."""

    name: str
    description: str
    input_schema: Mapping[str, Any] = field(default_factory=dict)
    required_capabilities: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tool name must be non-empty")
        object.__setattr__(self, "input_schema", _freeze(self.input_schema))
        object.__setattr__(
            self, "required_capabilities", frozenset(self.required_capabilities)
        )

    def to_catalog_entry(self) -> Dict[str, Any]:
        """Render the wire form sent to the model endpoint."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": _thaw(self.input_schema),
        }


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class ToolInvocationRequest:
    """A request to run one tool with a parameter map."""

    tool_name: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", _freeze(self.parameters))

    @classmethod
    def of(cls, tool_name: str, **parameters: Any) -> "ToolInvocationRequest":
        return cls(tool_name=tool_name, parameters=parameters)


@dataclass(frozen=True)
class ToolResult:
    """Tagged success/failure value returned by every tool invocation.

    Success carries ``content`` and optional ``metadata``; failure carries
    ``error`` and ``category``. Metadata is for observability only.
    """

    success: bool
    content: Any = None
    error: Optional[str] = None
    category: Optional[ErrorCategory] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    tool_name: Optional[str] = None
    mime_type: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.success:
            if self.error is not None or self.category is not None:
                raise ValueError("Successful ToolResult cannot carry an error")
        else:
            if not self.error:
                raise ValueError("Failed ToolResult requires an error message")
            if self.content is not None:
                raise ValueError("Failed ToolResult cannot carry content")
        object.__setattr__(self, "metadata", _freeze(self.metadata))

    @classmethod
    def ok(
        cls,
        content: Any,
        metadata: Optional[Mapping[str, Any]] = None,
        *,
        mime_type: Optional[str] = None,
        tool_name: Optional[str] = None,
    ) -> "ToolResult":
        return cls(
            success=True,
            content=content,
            metadata=metadata or {},
            mime_type=mime_type,
            tool_name=tool_name,
        )

    @classmethod
    def failure(
        cls,
        message: str,
        category: ErrorCategory = ErrorCategory.TOOL_EXECUTION,
        *,
        tool_name: Optional[str] = None,
    ) -> "ToolResult":
        return cls(success=False, error=message, category=category, tool_name=tool_name)

    @classmethod
    def not_found(cls, tool_name: str) -> "ToolResult":
        return cls.failure(
            f"tool not found: {tool_name}",
            ErrorCategory.TOOL_NOT_FOUND,
            tool_name=tool_name,
        )

    @property
    def is_failure(self) -> bool:
        return not self.success

    @property
    def severity(self) -> Optional[str]:
        value = self.metadata.get("severity")
        return str(value).lower() if value is not None else None

    def with_tool_name(self, tool_name: str) -> "ToolResult":
        if self.tool_name == tool_name:
            return self
        return ToolResult(
            success=self.success,
            content=self.content,
            error=self.error,
            category=self.category,
            metadata=self.metadata,
            tool_name=tool_name,
            mime_type=self.mime_type,
            timestamp=self.timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "tool": self.tool_name}
        if self.success:
            data["content"] = self.content
        else:
            data["error"] = self.error
            data["category"] = self.category.value if self.category else None
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        if self.mime_type:
            data["mimeType"] = self.mime_type
        return data


class Tool(ABC):
    """Base class for tools registered with the ToolRegistry.

    Subclasses provide ``descriptor`` and implement ``_run``. ``_run`` may
    raise; ``execute`` converts everything into a ToolResult.
    """

    descriptor: ToolDescriptor

    def __init__(
        self,
        *,
        timeout_seconds: Optional[float] = None,
        logger: Optional[Any] = None,
    ):
        self._timeout = timeout_seconds
        self._logger = get_component_logger(type(self).__name__, logger)
        self._validator: Optional[Draft7Validator] = None

    # ─── Descriptor accessors ───

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def description(self) -> str:
        return self.descriptor.description

    @property
    def input_schema(self) -> Mapping[str, Any]:
        return self.descriptor.input_schema

    @property
    def required_capabilities(self) -> FrozenSet[str]:
        return self.descriptor.required_capabilities

    async def is_available(self) -> bool:
        """Cheap availability probe. Never performs the real operation."""
        return True

    async def aclose(self) -> None:
        """Release resources held by the tool."""

    # ─── Execution ───

    def validate(self, parameters: Mapping[str, Any]) -> Optional[str]:
        """Return a validation error message, or None when parameters are valid."""
        if self._validator is None:
            self._validator = Draft7Validator(_thaw(self.input_schema))
        errors = sorted(
            self._validator.iter_errors(_thaw(parameters)),
            key=lambda e: list(e.absolute_path),
        )
        if not errors:
            return None
        messages = []
        for err in errors[:3]:
            location = ".".join(str(p) for p in err.absolute_path)
            messages.append(f"{location}: {err.message}" if location else err.message)
        return "; ".join(messages)

    async def execute(self, parameters: Optional[Mapping[str, Any]] = None) -> ToolResult:
        params = dict(parameters or {})

        problem = self.validate(params)
        if problem is not None:
            self._logger.info("tool_parameters_invalid", tool=self.name, error=problem)
            return ToolResult.failure(
                f"Invalid parameters for {self.name}: {problem}", tool_name=self.name
            )

        try:
            if self._timeout:
                result = await asyncio.wait_for(self._run(params), timeout=self._timeout)
            else:
                result = await self._run(params)
        except asyncio.TimeoutError as exc:
            if not self._timeout:
                return self._raised(exc)
            self._logger.warning("tool_timed_out", tool=self.name, timeout=self._timeout)
            return ToolResult.failure(
                f"{self.name} timed out after {self._timeout:g}s",
                ErrorCategory.TIMEOUT,
                tool_name=self.name,
            )
        except Exception as exc:
            return self._raised(exc)

        if not isinstance(result, ToolResult):
            return ToolResult.failure(
                f"{self.name} returned {type(result).__name__}, expected ToolResult",
                tool_name=self.name,
            )
        return result.with_tool_name(self.name)

    def _raised(self, exc: Exception) -> ToolResult:
        self._logger.error(
            "tool_execution_error",
            tool=self.name,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return ToolResult.failure(f"{self.name} failed: {exc}", tool_name=self.name)

    @abstractmethod
    async def _run(self, parameters: Dict[str, Any]) -> ToolResult:
        ...


def sub_parameters(parameters: Mapping[str, Any], key: str = "parameters") -> Dict[str, Any]:
    """Return the nested command-specific parameter map, or an empty dict."""
    value = parameters.get(key)
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def count_lines(text: str) -> int:
    return len(text.splitlines()) if text else 0


__all__ = [
    "ToolDescriptor",
    "ToolInvocationRequest",
    "ToolResult",
    "Tool",
    "sub_parameters",
    "count_lines",
]
