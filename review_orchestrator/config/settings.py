"""Orchestrator settings - model endpoint, deadlines and work bounds.

Settings are a plain dataclass. ``OrchestratorSettings.from_env()`` applies
``REVIEW_ORCHESTRATOR_*`` environment overrides on top of the defaults.

Usage:
    from review_orchestrator.config import get_orchestrator_settings

    settings = get_orchestrator_settings()
    deadline = settings.model_timeout_seconds
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Dict, Optional

ENV_PREFIX = "REVIEW_ORCHESTRATOR_"

# Module-level singleton for registered settings
_registered_settings: Optional["OrchestratorSettings"] = None


def _env(name: str) -> Optional[str]:
    return os.getenv(ENV_PREFIX + name)


def _env_int(name: str, default: int) -> int:
    val = _env(name)
    if val is None or not val.strip():
        return default
    try:
        return int(val.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    val = _env(name)
    if val is None or not val.strip():
        return default
    try:
        return float(val.strip())
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    val = _env(name)
    if val is None:
        return default
    return val.strip()


@dataclass
class OrchestratorSettings:
    """Runtime configuration for the Orchestrator and its model gateway."""

    # ─── Model endpoint ───
    model_endpoint: str = "http://localhost:3000"
    """Base URL of the model endpoint."""

    api_key: str = ""
    """Bearer token sent with every model request (omitted when empty)."""

    chat_path: str = "/api/ai/chat-with-tools"
    review_path: str = "/api/ai/comprehensive-review"

    model_timeout_ms: int = 30000
    """Deadline for one model round trip."""

    comprehensive_timeout_multiplier: float = 2.0
    """Comprehensive reviews aggregate more context and get a longer deadline."""

    model_max_retries: int = 2
    """Attempts for transient connection errors, all within the deadline."""

    # ─── Follow-up tool calls ───
    max_follow_up_calls: int = 10
    """Tool calls executed per model response; extra calls fail as data."""

    max_tool_rounds: int = 1
    """Model round trips that may request tools before results are returned."""

    # ─── Execution ───
    max_parallel_tools: int = 8
    """Concurrency limit for parallel batches (0 = unbounded)."""

    stage_delay_ms: int = 100
    """Pacing delay between review pipeline stages, for incremental UIs."""

    # ─── Notifications ───
    critical_notification_channel: str = "slack"
    notification_webhooks: Dict[str, str] = field(default_factory=dict)
    """Channel name -> webhook URL used by the notification tool."""

    @property
    def model_timeout_seconds(self) -> float:
        return self.model_timeout_ms / 1000.0

    @property
    def comprehensive_timeout_seconds(self) -> float:
        return self.model_timeout_seconds * self.comprehensive_timeout_multiplier

    @property
    def stage_delay_seconds(self) -> float:
        return self.stage_delay_ms / 1000.0

    @classmethod
    def from_env(cls, **overrides) -> "OrchestratorSettings":
        """Build settings from defaults, environment, then explicit overrides."""
        base = cls()
        webhooks = dict(base.notification_webhooks)
        for channel in ("slack", "teams", "webhook"):
            url = _env_str(f"{channel.upper()}_WEBHOOK_URL", "")
            if url:
                webhooks[channel] = url

        settings = replace(
            base,
            model_endpoint=_env_str("MODEL_ENDPOINT", base.model_endpoint),
            api_key=_env_str("API_KEY", base.api_key),
            chat_path=_env_str("CHAT_PATH", base.chat_path),
            review_path=_env_str("REVIEW_PATH", base.review_path),
            model_timeout_ms=_env_int("MODEL_TIMEOUT_MS", base.model_timeout_ms),
            comprehensive_timeout_multiplier=_env_float(
                "COMPREHENSIVE_TIMEOUT_MULTIPLIER", base.comprehensive_timeout_multiplier
            ),
            model_max_retries=_env_int("MODEL_MAX_RETRIES", base.model_max_retries),
            max_follow_up_calls=_env_int("MAX_FOLLOW_UP_CALLS", base.max_follow_up_calls),
            max_tool_rounds=_env_int("MAX_TOOL_ROUNDS", base.max_tool_rounds),
            max_parallel_tools=_env_int("MAX_PARALLEL_TOOLS", base.max_parallel_tools),
            stage_delay_ms=_env_int("STAGE_DELAY_MS", base.stage_delay_ms),
            critical_notification_channel=_env_str(
                "CRITICAL_NOTIFICATION_CHANNEL", base.critical_notification_channel
            ),
            notification_webhooks=webhooks,
        )
        if overrides:
            settings = replace(settings, **overrides)
        return settings


# Default settings instance
DEFAULT_ORCHESTRATOR_SETTINGS = OrchestratorSettings()


def get_orchestrator_settings() -> OrchestratorSettings:
    """Get the registered OrchestratorSettings instance.

    Returns the settings registered via set_orchestrator_settings(),
    or DEFAULT_ORCHESTRATOR_SETTINGS if none registered.
    """
    global _registered_settings
    return _registered_settings or DEFAULT_ORCHESTRATOR_SETTINGS


def set_orchestrator_settings(settings: OrchestratorSettings) -> None:
    """Register OrchestratorSettings instance at bootstrap."""
    global _registered_settings
    _registered_settings = settings


def reset_orchestrator_settings() -> None:
    """Reset to default settings (for testing)."""
    global _registered_settings
    _registered_settings = None
