"""
Project and user context - long-lived aggregates across sessions.

Contexts are created lazily on first lookup and live as long as the
ContextManager. Learned project patterns are fed back into review prompts.

``learn_from_feedback`` is fire-and-forget: it schedules a tracked
background task and returns immediately. Learning failures are logged
and never reach the caller.
"""

import asyncio
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Set

from review_orchestrator._logging import get_component_logger


class ProjectContext:
    """Learned patterns, code metrics and preferences for one project."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        self._lock = threading.Lock()
        self._patterns: Dict[str, Any] = {}
        self._code_metrics: Dict[str, int] = {}
        self._preferences: Dict[str, Any] = {}

    def add_pattern(self, pattern: str, value: Any) -> None:
        with self._lock:
            self._patterns[pattern] = value

    def reinforce_pattern(self, pattern: str) -> int:
        """Increment a counted pattern and return its new count."""
        with self._lock:
            current = self._patterns.get(pattern)
            count = (current if isinstance(current, int) and not isinstance(current, bool) else 0) + 1
            self._patterns[pattern] = count
            return count

    def update_metric(self, metric: str, value: int) -> None:
        with self._lock:
            self._code_metrics[metric] = value

    def increment_metric(self, metric: str, amount: int = 1) -> int:
        with self._lock:
            self._code_metrics[metric] = self._code_metrics.get(metric, 0) + amount
            return self._code_metrics[metric]

    def set_preference(self, key: str, value: Any) -> None:
        with self._lock:
            self._preferences[key] = value

    @property
    def learned_patterns(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._patterns)

    @property
    def code_metrics(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._code_metrics)

    @property
    def preferences(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._preferences)


class UserContext:
    """Preferences and review history for one user."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        self._lock = threading.Lock()
        self._preferences: Dict[str, Any] = {}
        self._review_history: Dict[str, int] = {}

    def set_preference(self, key: str, value: Any) -> None:
        with self._lock:
            self._preferences[key] = value

    def record_review(self, outcome: str) -> None:
        with self._lock:
            self._review_history[outcome] = self._review_history.get(outcome, 0) + 1
            self._review_history["total"] = self._review_history.get("total", 0) + 1

    @property
    def preferences(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._preferences)

    @property
    def review_history(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._review_history)


@dataclass
class ReviewFeedback:
    review_id: str
    project_id: Optional[str] = None
    user_id: Optional[str] = None
    helpful: bool = True
    details: Dict[str, Any] = field(default_factory=dict)


class ContextManager:
    """
    Registry of project and user contexts.

    Example:
        manager = ContextManager()
        manager.learn_from_feedback(ReviewFeedback("r-1", project_id="p", helpful=True))
        await manager.wait_for_background_tasks()
        manager.learned_patterns("p")
    """

    def __init__(self, logger: Optional[Any] = None):
        self._lock = threading.Lock()
        self._projects: Dict[str, ProjectContext] = {}
        self._users: Dict[str, UserContext] = {}
        self._background_tasks: Set[asyncio.Task] = set()
        self._logger = get_component_logger("ContextManager", logger)

    def project_context(self, project_id: str) -> ProjectContext:
        """Get or create the context for a project."""
        with self._lock:
            context = self._projects.get(project_id)
            if context is None:
                context = self._projects[project_id] = ProjectContext(project_id)
            return context

    def user_context(self, user_id: str) -> UserContext:
        """Get or create the context for a user."""
        with self._lock:
            context = self._users.get(user_id)
            if context is None:
                context = self._users[user_id] = UserContext(user_id)
            return context

    def learned_patterns(self, project_id: str) -> Dict[str, Any]:
        return self.project_context(project_id).learned_patterns

    # ─── Feedback loop ───

    def learn_from_feedback(self, feedback: ReviewFeedback) -> Optional[asyncio.Task]:
        """Schedule learning from feedback and return without waiting.

        Returns the background task, or None when no event loop is running
        (learning then happens inline, still without raising).
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._apply_feedback_safely(feedback)
            return None

        task = loop.create_task(self._learn(feedback))
        self._track_task(task)
        return task

    def _track_task(self, task: asyncio.Task) -> None:
        """Track a background task and clean up when done."""
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _learn(self, feedback: ReviewFeedback) -> None:
        self._apply_feedback_safely(feedback)

    def _apply_feedback_safely(self, feedback: ReviewFeedback) -> None:
        try:
            self._apply_feedback(feedback)
            self._logger.info(
                "feedback_processed",
                review_id=feedback.review_id,
                helpful=feedback.helpful,
            )
        except Exception as exc:
            self._logger.error(
                "feedback_processing_failed",
                review_id=getattr(feedback, "review_id", None),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    def _apply_feedback(self, feedback: ReviewFeedback) -> None:
        outcome = "helpful" if feedback.helpful else "unhelpful"
        details = feedback.details or {}

        if feedback.project_id:
            project = self.project_context(feedback.project_id)
            project.increment_metric(f"{outcome}_reviews")
            patterns = details.get("patterns")
            if isinstance(patterns, Mapping):
                for name, value in patterns.items():
                    project.add_pattern(str(name), value)
            elif isinstance(patterns, (list, tuple, set)):
                for name in patterns:
                    if feedback.helpful:
                        project.reinforce_pattern(str(name))

        if feedback.user_id:
            user = self.user_context(feedback.user_id)
            user.record_review(outcome)
            preferences = details.get("preferences")
            if isinstance(preferences, Mapping):
                for key, value in preferences.items():
                    user.set_preference(str(key), value)

    async def wait_for_background_tasks(self, timeout: Optional[float] = None) -> None:
        """Wait for all background tasks to complete."""
        if self._background_tasks:
            await asyncio.wait(
                set(self._background_tasks),
                timeout=timeout,
                return_when=asyncio.ALL_COMPLETED,
            )


__all__ = [
    "ProjectContext",
    "UserContext",
    "ReviewFeedback",
    "ContextManager",
]
