"""
Domain types for structured reviews.

Request/response shapes for ``Orchestrator.perform_structured_review`` and
``Orchestrator.stream_review``.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from review_orchestrator.gateway.types import ModelResponse
from review_orchestrator.tools.base import ToolResult


class UpdateStatus(str, Enum):
    COMPLETED = "completed"
    ERROR = "error"


DEFAULT_FOCUS_AREAS = ("security", "performance", "maintainability")


@dataclass
class ReviewTask:
    """The change under review (typically a pull request)."""

    id: str
    title: str
    author: str
    repository: str
    source_branch: str
    target_branch: str = "main"
    description: str = ""
    project_id: Optional[str] = None
    user_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "description": self.description,
            "repository": self.repository,
            "source_branch": self.source_branch,
            "target_branch": self.target_branch,
            "project_id": self.project_id,
        }


@dataclass
class ReviewOptions:
    focus_areas: List[str] = field(default_factory=lambda: list(DEFAULT_FOCUS_AREAS))
    severity_threshold: str = "medium"
    include_suggestions: bool = True
    consult_model: bool = True
    """When False, only the tool pipeline runs (no model round trip)."""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "focus_areas": list(self.focus_areas),
            "severity_threshold": self.severity_threshold,
            "include_suggestions": self.include_suggestions,
        }


@dataclass(frozen=True)
class ReviewUpdate:
    """Progress event for one finished tool result."""

    status: UpdateStatus
    stage: str
    tool_name: Optional[str] = None
    content: Any = None
    error: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_result(cls, stage: str, result: ToolResult) -> "ReviewUpdate":
        return cls(
            status=UpdateStatus.COMPLETED if result.success else UpdateStatus.ERROR,
            stage=stage,
            tool_name=result.tool_name,
            content=result.content,
            error=result.error,
            metadata=result.metadata,
        )


@dataclass
class StageSummary:
    name: str
    total: int
    failed: int

    @property
    def succeeded(self) -> int:
        return self.total - self.failed


@dataclass
class ReviewResult:
    session_id: Optional[str]
    success: bool
    error: Optional[str] = None
    model_response: Optional[ModelResponse] = None
    tool_results: List[ToolResult] = field(default_factory=list)
    stages: List[StageSummary] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def failed(cls, message: str, session_id: Optional[str] = None, **kwargs) -> "ReviewResult":
        return cls(session_id=session_id, success=False, error=message, **kwargs)


__all__ = [
    "UpdateStatus",
    "DEFAULT_FOCUS_AREAS",
    "ReviewTask",
    "ReviewOptions",
    "ReviewUpdate",
    "StageSummary",
    "ReviewResult",
]
