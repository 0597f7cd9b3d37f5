"""Sessions and their context stores."""

from .context_store import ContextStore, result_key
from .session import Session, SessionState, new_session_id

__all__ = [
    "ContextStore",
    "result_key",
    "Session",
    "SessionState",
    "new_session_id",
]
