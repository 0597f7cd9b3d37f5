"""Error taxonomy for the tool orchestration layer.

Tool-level and transport-level problems travel as data (failed ToolResult
or ModelResponse) tagged with an ErrorCategory. Only caller bugs, such as
using a closed session, raise PreconditionViolation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    TOOL_NOT_FOUND = "tool_not_found"
    TOOL_EXECUTION = "tool_execution"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"


class PreconditionViolation(RuntimeError):
    """Raised when an operation is issued in a state that forbids it.

    This signals a programming error in the caller and must not be
    caught-and-continued.
    """


@dataclass
class ModelEndpointError(Exception):
    """Failure talking to the model endpoint.

    Raised inside the gateway only; the orchestrator converts it into a
    failed ModelResponse before it reaches callers.
    """

    category: ErrorCategory
    message: str
    status_code: Optional[int] = None
    raw_backend: Optional[Any] = None

    def __str__(self) -> str:
        return f"{self.category.value}: {self.message}"


__all__ = [
    "ErrorCategory",
    "PreconditionViolation",
    "ModelEndpointError",
]
