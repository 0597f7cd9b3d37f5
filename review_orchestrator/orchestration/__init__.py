"""Review orchestration: the Orchestrator, review pipeline and review types."""

from .orchestrator import Orchestrator
from .pipeline import ReviewStage, build_context_requests, build_review_pipeline, task_context
from .prompts import build_review_prompt
from .types import (
    ReviewOptions,
    ReviewResult,
    ReviewTask,
    ReviewUpdate,
    StageSummary,
    UpdateStatus,
)

__all__ = [
    "Orchestrator",
    "ReviewStage",
    "build_context_requests",
    "build_review_pipeline",
    "task_context",
    "build_review_prompt",
    "ReviewOptions",
    "ReviewResult",
    "ReviewTask",
    "ReviewUpdate",
    "StageSummary",
    "UpdateStatus",
]
