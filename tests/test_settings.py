"""Tests for settings, bounds and their registration singletons."""

from review_orchestrator.config import (
    DEFAULT_ORCHESTRATOR_SETTINGS,
    OrchestratorSettings,
    ToolBounds,
    get_orchestrator_settings,
    get_tool_bounds,
    reset_orchestrator_settings,
    set_orchestrator_settings,
    set_tool_bounds,
)


class TestOrchestratorSettings:
    def test_defaults(self):
        settings = OrchestratorSettings()
        assert settings.model_timeout_seconds == 30.0
        assert settings.comprehensive_timeout_seconds == 60.0
        assert settings.stage_delay_seconds == 0.1
        assert settings.chat_path == "/api/ai/chat-with-tools"
        assert settings.review_path == "/api/ai/comprehensive-review"
        assert settings.critical_notification_channel == "slack"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("REVIEW_ORCHESTRATOR_MODEL_ENDPOINT", "http://model:9000")
        monkeypatch.setenv("REVIEW_ORCHESTRATOR_MODEL_TIMEOUT_MS", "5000")
        monkeypatch.setenv("REVIEW_ORCHESTRATOR_MAX_FOLLOW_UP_CALLS", "not-a-number")
        monkeypatch.setenv("REVIEW_ORCHESTRATOR_SLACK_WEBHOOK_URL", "https://hooks/slack")

        settings = OrchestratorSettings.from_env(api_key="k")

        assert settings.model_endpoint == "http://model:9000"
        assert settings.model_timeout_seconds == 5.0
        assert settings.max_follow_up_calls == 10
        assert settings.notification_webhooks == {"slack": "https://hooks/slack"}
        assert settings.api_key == "k"

    def test_registration(self):
        assert get_orchestrator_settings() is DEFAULT_ORCHESTRATOR_SETTINGS
        custom = OrchestratorSettings(max_parallel_tools=2)
        set_orchestrator_settings(custom)
        assert get_orchestrator_settings() is custom
        reset_orchestrator_settings()
        assert get_orchestrator_settings() is DEFAULT_ORCHESTRATOR_SETTINGS


class TestToolBounds:
    def test_registration_and_to_dict(self):
        set_tool_bounds(ToolBounds(max_file_size=10))
        bounds = get_tool_bounds()
        assert bounds.max_file_size == 10
        data = bounds.to_dict()
        assert data["max_file_size"] == 10
        assert ".py" in data["allowed_extensions"]
