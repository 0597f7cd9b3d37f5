"""Cross-session project and user context (feedback loop)."""

from .context_manager import ContextManager, ProjectContext, ReviewFeedback, UserContext

__all__ = ["ContextManager", "ProjectContext", "ReviewFeedback", "UserContext"]
