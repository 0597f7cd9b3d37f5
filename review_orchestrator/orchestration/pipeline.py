"""
Review pipeline configuration.

Context preparation: a sequential chain (diff, author history, prior
reviews) whose results seed the session context.

Review pipeline: three stages run one after another; each stage is a
parallel batch.

    context_gathering → file_analysis → quality_findings
"""

from dataclasses import dataclass
from typing import List, Tuple

from review_orchestrator.tools.base import ToolInvocationRequest
from review_orchestrator.tools.catalog import ToolId
from review_orchestrator.orchestration.types import ReviewTask

AUTHOR_HISTORY_WINDOW = "7 days ago"


@dataclass(frozen=True)
class ReviewStage:
    name: str
    requests: Tuple[ToolInvocationRequest, ...]


# ═══════════════════════════════════════════════════════════════
# CONTEXT PREPARATION
# ═══════════════════════════════════════════════════════════════

def task_context(task: ReviewTask) -> dict:
    """Caller-supplied context keys seeded before any tool runs."""
    return {
        "pull_request": task.to_dict(),
        "repository_url": task.repository,
        "branch": task.source_branch,
    }


def build_context_requests(task: ReviewTask) -> List[ToolInvocationRequest]:
    """Chain run before the pipeline; result i is stored as ``context_<i>``."""
    return [
        ToolInvocationRequest(ToolId.GIT.value, {
            "command": "diff",
            "repository": task.repository,
            "parameters": {"commit": task.source_branch},
        }),
        ToolInvocationRequest(ToolId.GIT.value, {
            "command": "log",
            "repository": task.repository,
            "parameters": {"author": task.author, "since": AUTHOR_HISTORY_WINDOW},
        }),
        ToolInvocationRequest(ToolId.DATABASE.value, {
            "query": "recent_reviews",
            "parameters": {"author": task.author},
        }),
    ]


# ═══════════════════════════════════════════════════════════════
# REVIEW PIPELINE
# ═══════════════════════════════════════════════════════════════

def build_review_pipeline(task: ReviewTask) -> List[ReviewStage]:
    repository = task.repository
    return [
        ReviewStage("context_gathering", (
            ToolInvocationRequest(ToolId.GIT.value, {"command": "status", "repository": repository}),
            ToolInvocationRequest(ToolId.DATABASE.value, {"query": "recent_reviews"}),
        )),
        ReviewStage("file_analysis", (
            ToolInvocationRequest(ToolId.FILESYSTEM.value, {
                "operation": "analyze_structure",
                "path": repository,
            }),
            ToolInvocationRequest(ToolId.GIT.value, {"command": "diff", "repository": repository}),
        )),
        ReviewStage("quality_findings", (
            ToolInvocationRequest(ToolId.DATABASE.value, {"query": "security_findings"}),
            ToolInvocationRequest(ToolId.DATABASE.value, {"query": "quality_trends"}),
        )),
    ]


__all__ = [
    "ReviewStage",
    "task_context",
    "build_context_requests",
    "build_review_pipeline",
]
