"""Model endpoint request/response types.

Wire format (JSON over HTTP POST):
    request  = {prompt, tools: [{name, description, inputSchema}], context,
                sessionId, options?}
    response = {content, toolCalls?: [{name, parameters}], metadata?}
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from review_orchestrator._serialization import to_jsonable
from review_orchestrator.errors import ErrorCategory, ModelEndpointError
from review_orchestrator.tools.base import ToolInvocationRequest, ToolResult


@dataclass(frozen=True)
class ToolCall:
    """A follow-up tool invocation requested by the model."""

    name: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_request(self) -> ToolInvocationRequest:
        return ToolInvocationRequest(self.name, self.parameters)

    @classmethod
    def from_payload(cls, data: Any) -> "ToolCall":
        if not isinstance(data, Mapping) or not isinstance(data.get("name"), str):
            raise ModelEndpointError(
                ErrorCategory.TRANSPORT, f"malformed tool call: {data!r}"
            )
        parameters = data.get("parameters") or {}
        if not isinstance(parameters, Mapping):
            raise ModelEndpointError(
                ErrorCategory.TRANSPORT,
                f"malformed parameters for tool call {data['name']!r}",
            )
        return cls(name=data["name"], parameters=dict(parameters))


@dataclass
class ModelRequest:
    prompt: str
    tools: List[Dict[str, Any]] = field(default_factory=list)
    context: Mapping[str, Any] = field(default_factory=dict)
    session_id: Optional[str] = None
    options: Optional[Mapping[str, Any]] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "prompt": self.prompt,
            "tools": to_jsonable(self.tools),
            "context": to_jsonable(self.context),
            "sessionId": self.session_id,
        }
        if self.options:
            payload["options"] = to_jsonable(self.options)
        return payload


@dataclass
class ModelResponse:
    """Outcome of a model round trip, including executed follow-up calls.

    A failed round trip has ``success=False`` with ``error`` and
    ``error_category`` set; it is returned, never raised.
    """

    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    tool_results: List[ToolResult] = field(default_factory=list)
    success: bool = True
    error: Optional[str] = None
    error_category: Optional[ErrorCategory] = None
    session_id: Optional[str] = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @classmethod
    def from_payload(cls, data: Any) -> "ModelResponse":
        """Parse a response body; absent and empty toolCalls are the same."""
        if not isinstance(data, Mapping):
            raise ModelEndpointError(
                ErrorCategory.TRANSPORT,
                f"expected a JSON object, got {type(data).__name__}",
                raw_backend=data,
            )
        content = data.get("content")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise ModelEndpointError(
                ErrorCategory.TRANSPORT, "response content is not a string", raw_backend=data
            )
        raw_calls = data.get("toolCalls") or []
        if not isinstance(raw_calls, list):
            raise ModelEndpointError(
                ErrorCategory.TRANSPORT, "toolCalls is not a list", raw_backend=data
            )
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            metadata = {"raw_metadata": metadata}
        return cls(
            content=content,
            tool_calls=[ToolCall.from_payload(c) for c in raw_calls],
            metadata=dict(metadata),
        )

    @classmethod
    def failure(
        cls,
        message: str,
        category: ErrorCategory,
        *,
        session_id: Optional[str] = None,
    ) -> "ModelResponse":
        return cls(success=False, error=message, error_category=category, session_id=session_id)

    def with_tool_results(self, results: List[ToolResult]) -> "ModelResponse":
        return replace(self, tool_results=list(self.tool_results) + list(results))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "content": self.content,
            "toolCalls": [{"name": c.name, "parameters": c.parameters} for c in self.tool_calls],
            "metadata": self.metadata,
            "toolResults": [r.to_dict() for r in self.tool_results],
            "sessionId": self.session_id,
        }
        if not self.success:
            data["error"] = self.error
            data["errorCategory"] = self.error_category.value if self.error_category else None
        return data


__all__ = ["ToolCall", "ModelRequest", "ModelResponse"]
