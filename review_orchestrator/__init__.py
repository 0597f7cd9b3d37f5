"""
Review orchestrator.

Coordinates a remote model endpoint with locally executed tools (git,
database, filesystem, notification) to produce code reviews. Each
conversation or review runs in an isolated session; tools run as
sequential chains, parallel batches or ordered streams.

Usage:
    from review_orchestrator import Orchestrator, ReviewTask

    orchestrator = Orchestrator.from_settings(database_path="./data/reviews.db")
    result = await orchestrator.perform_structured_review(
        ReviewTask(id="42", title="Fix login", author="alice",
                   repository="/srv/repos/app", source_branch="fix-login")
    )
    await orchestrator.aclose()
"""

__version__ = "0.1.0"

from review_orchestrator.errors import ErrorCategory, ModelEndpointError, PreconditionViolation
from review_orchestrator.gateway import HttpModelClient, ModelClient, ModelRequest, ModelResponse, ToolCall
from review_orchestrator.learning import ContextManager, ReviewFeedback
from review_orchestrator.orchestration import (
    Orchestrator,
    ReviewOptions,
    ReviewResult,
    ReviewTask,
    ReviewUpdate,
)
from review_orchestrator.session import Session, SessionState
from review_orchestrator.tools import (
    Tool,
    ToolDescriptor,
    ToolInvocationRequest,
    ToolRegistry,
    ToolResult,
    create_default_registry,
)

__all__ = [
    "__version__",
    "ErrorCategory",
    "ModelEndpointError",
    "PreconditionViolation",
    "HttpModelClient",
    "ModelClient",
    "ModelRequest",
    "ModelResponse",
    "ToolCall",
    "ContextManager",
    "ReviewFeedback",
    "Orchestrator",
    "ReviewOptions",
    "ReviewResult",
    "ReviewTask",
    "ReviewUpdate",
    "Session",
    "SessionState",
    "Tool",
    "ToolDescriptor",
    "ToolInvocationRequest",
    "ToolRegistry",
    "ToolResult",
    "create_default_registry",
]
