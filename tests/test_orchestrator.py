"""
Tests for the Orchestrator.

Validates:
1. executeWithToolCatalog: follow-up calls run in order, session always closed
2. Bounded model round trips (timeout -> failed response, not a hang)
3. Allow-list and follow-up cap produce failures as data
4. Structured review: context prep, three parallel stages, model review
5. Critical-severity hook fires a detached notification
6. stream_review yields per-result updates and cleans up
"""

import asyncio
import time

import pytest

from conftest import EchoTool, FailingTool, FakeGitTool, ScriptedModelClient
from review_orchestrator.config import OrchestratorSettings
from review_orchestrator.errors import ErrorCategory, ModelEndpointError, PreconditionViolation
from review_orchestrator.learning import ReviewFeedback
from review_orchestrator.orchestration import (
    Orchestrator,
    ReviewOptions,
    ReviewTask,
    UpdateStatus,
)
from review_orchestrator.orchestration.orchestrator import CRITICAL_ALERT_MESSAGE
from review_orchestrator.tools.catalog import ToolRegistry


@pytest.fixture
def task():
    return ReviewTask(
        id="42",
        title="Fix login",
        author="alice",
        repository="/repo",
        source_branch="fix-login",
        description="Fixes the login redirect",
    )


def _orchestrator(registry, client, settings, logger, **kwargs):
    return Orchestrator(registry, client, settings=settings, logger=logger, **kwargs)


def _database_call(query="recent_reviews"):
    return {"name": "database", "parameters": {"query": query}}


# =============================================================================
# Session management
# =============================================================================

class TestSessions:
    def test_create_and_close(self, registry, fast_settings, mock_logger):
        orchestrator = _orchestrator(registry, ScriptedModelClient(), fast_settings, mock_logger)
        session = orchestrator.create_session()
        assert orchestrator.get_session(session.id) is session
        orchestrator.close_session(session.id)
        orchestrator.close_session(session.id)
        assert orchestrator.get_session(session.id) is None
        assert not session.is_active

    def test_duplicate_id_rejected(self, registry, fast_settings, mock_logger):
        orchestrator = _orchestrator(registry, ScriptedModelClient(), fast_settings, mock_logger)
        orchestrator.create_session("fixed")
        with pytest.raises(PreconditionViolation):
            orchestrator.create_session("fixed")

    def test_active_sessions_is_a_snapshot(self, registry, fast_settings, mock_logger):
        orchestrator = _orchestrator(registry, ScriptedModelClient(), fast_settings, mock_logger)
        orchestrator.create_session("a")
        snapshot = orchestrator.active_sessions()
        orchestrator.create_session("b")
        assert list(snapshot) == ["a"]


# =============================================================================
# execute_with_tool_catalog
# =============================================================================

class TestExecuteWithToolCatalog:
    @pytest.mark.asyncio
    async def test_follow_up_call_is_executed_and_session_closed(
        self, registry, fast_settings, mock_logger
    ):
        client = ScriptedModelClient([{"content": "", "toolCalls": [_database_call()]}])
        orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)

        response = await orchestrator.execute_with_tool_catalog("review PR #1", [], {})

        assert response.success
        assert len(response.tool_results) == 1
        assert response.tool_results[0].tool_name == "database"
        assert response.tool_results[0].success
        assert orchestrator.get_session(response.session_id) is None
        assert orchestrator.active_sessions() == {}

    @pytest.mark.asyncio
    async def test_request_carries_catalog_and_context(self, registry, fast_settings, mock_logger):
        client = ScriptedModelClient()
        orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)

        response = await orchestrator.execute_with_tool_catalog(
            "review PR #1", None, {"pull_request": {"id": 1}}, options={"temperature": 0}
        )

        path, request = client.requests[0]
        assert path == "/api/ai/chat-with-tools"
        payload = request.to_payload()
        assert payload["prompt"] == "review PR #1"
        assert [t["name"] for t in payload["tools"]] == ["git", "database", "filesystem", "notification"]
        assert payload["context"] == {"pull_request": {"id": 1}}
        assert payload["sessionId"] == response.session_id
        assert payload["options"] == {"temperature": 0}
        assert response.tool_results == []

    @pytest.mark.asyncio
    async def test_follow_ups_run_in_order(self, registry, fast_settings, mock_logger):
        calls = [
            _database_call("top_authors"),
            {"name": "nonexistent", "parameters": {}},
            {"name": "git", "parameters": {"command": "status", "repository": "/r"}},
        ]
        client = ScriptedModelClient([{"content": "", "toolCalls": calls}])
        orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)

        response = await orchestrator.execute_with_tool_catalog("p")

        assert [r.tool_name for r in response.tool_results] == ["database", "nonexistent", "git"]
        assert response.tool_results[1].error == "tool not found: nonexistent"

    @pytest.mark.asyncio
    async def test_allow_list_filters_catalog_and_calls(self, registry, fast_settings, mock_logger):
        client = ScriptedModelClient([{
            "content": "",
            "toolCalls": [
                {"name": "git", "parameters": {"command": "status", "repository": "/r"}},
                _database_call(),
            ],
        }])
        orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)

        response = await orchestrator.execute_with_tool_catalog("p", ["database"])

        _, request = client.requests[0]
        assert [t["name"] for t in request.tools] == ["database"]
        assert response.tool_results[0].error == "tool not allowed: git"
        assert response.tool_results[1].success
        assert registry.lookup("git").calls == []

    @pytest.mark.asyncio
    async def test_follow_up_cap(self, registry, mock_logger):
        settings = OrchestratorSettings(max_follow_up_calls=2, stage_delay_ms=0)
        client = ScriptedModelClient([{"content": "", "toolCalls": [_database_call()] * 3}])
        orchestrator = _orchestrator(registry, client, settings, mock_logger)

        response = await orchestrator.execute_with_tool_catalog("p")

        assert [r.success for r in response.tool_results] == [True, True, False]
        assert "limit exceeded" in response.tool_results[2].error
        assert len(registry.lookup("database").calls) == 2

    @pytest.mark.asyncio
    async def test_results_fed_back_for_extra_rounds(self, registry, mock_logger):
        settings = OrchestratorSettings(max_tool_rounds=2, stage_delay_ms=0)
        client = ScriptedModelClient([
            {"content": "", "toolCalls": [_database_call()]},
            {"content": "final answer"},
        ])
        orchestrator = _orchestrator(registry, client, settings, mock_logger)

        response = await orchestrator.execute_with_tool_catalog("p")

        assert response.content == "final answer"
        assert len(response.tool_results) == 1
        _, second = client.requests[1]
        assert second.context["tool_results"][0]["tool"] == "database"

    @pytest.mark.asyncio
    async def test_round_trip_timeout_is_failure(self, registry, mock_logger):
        settings = OrchestratorSettings(model_timeout_ms=50, stage_delay_ms=0)
        client = ScriptedModelClient(delay=5.0)
        orchestrator = _orchestrator(registry, client, settings, mock_logger)

        started = time.monotonic()
        response = await orchestrator.execute_with_tool_catalog("p")
        elapsed = time.monotonic() - started

        assert not response.success
        assert response.error_category is ErrorCategory.TIMEOUT
        assert elapsed < 1.0
        assert orchestrator.active_sessions() == {}

    @pytest.mark.asyncio
    async def test_endpoint_error_is_failure(self, registry, fast_settings, mock_logger):
        client = ScriptedModelClient([
            ModelEndpointError(ErrorCategory.TRANSPORT, "HTTP 502", status_code=502)
        ])
        orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)

        response = await orchestrator.execute_with_tool_catalog("p")

        assert not response.success
        assert response.error_category is ErrorCategory.TRANSPORT
        assert "HTTP 502" in response.error
        assert response.session_id is not None

    @pytest.mark.asyncio
    async def test_unexpected_error_is_failure(self, registry, fast_settings, mock_logger):
        client = ScriptedModelClient([ValueError("surprise")])
        orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)

        response = await orchestrator.execute_with_tool_catalog("p")

        assert not response.success
        assert "surprise" in response.error
        assert orchestrator.active_sessions() == {}


# =============================================================================
# perform_structured_review
# =============================================================================

class TestStructuredReview:
    @pytest.mark.asyncio
    async def test_pipeline_and_model_review(self, registry, fast_settings, mock_logger, task):
        client = ScriptedModelClient([{"content": "LGTM"}])
        orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)

        result = await orchestrator.perform_structured_review(task)

        assert result.success
        assert result.model_response.content == "LGTM"
        assert [s.name for s in result.stages] == [
            "context_gathering", "file_analysis", "quality_findings"
        ]
        assert [s.total for s in result.stages] == [2, 2, 2]
        assert len(result.tool_results) == 6
        assert orchestrator.active_sessions() == {}

        path, request = client.requests[0]
        assert path == "/api/ai/comprehensive-review"
        assert request.options == ReviewOptions().to_payload()
        assert "Title: Fix login" in request.prompt
        context = request.context
        for key in ("pull_request", "repository_url", "branch", "context_0", "context_1", "context_2"):
            assert key in context
        assert context["branch"] == "fix-login"

    @pytest.mark.asyncio
    async def test_review_uses_comprehensive_deadline(self, registry, mock_logger, task):
        settings = OrchestratorSettings(
            model_timeout_ms=200, comprehensive_timeout_multiplier=2.0, stage_delay_ms=0
        )
        slow_client = ScriptedModelClient([{"content": "LGTM"}], delay=0.3)
        orchestrator = _orchestrator(registry, slow_client, settings, mock_logger)

        result = await orchestrator.perform_structured_review(task)
        assert result.success
        assert result.model_response.content == "LGTM"

        chat = await orchestrator.execute_with_tool_catalog("hi", [], {})
        assert not chat.success
        assert chat.error_category is ErrorCategory.TIMEOUT

    @pytest.mark.asyncio
    async def test_requests_use_endpoint_paths(self, registry, mock_logger, task):
        settings = OrchestratorSettings(
            model_timeout_ms=1000, stage_delay_ms=0,
            chat_path="/v2/chat", review_path="/v2/review",
        )
        client = ScriptedModelClient()
        orchestrator = _orchestrator(registry, client, settings, mock_logger)

        await orchestrator.execute_with_tool_catalog("hi", [], {})
        await orchestrator.perform_structured_review(task)
        assert [path for path, _ in client.requests] == ["/v2/chat", "/v2/review"]

    @pytest.mark.asyncio
    async def test_context_chain_requests(self, registry, fast_settings, mock_logger, task):
        orchestrator = _orchestrator(registry, ScriptedModelClient(), fast_settings, mock_logger)
        await orchestrator.perform_structured_review(task, ReviewOptions(consult_model=False))

        git_calls = registry.lookup("git").calls
        assert git_calls[0]["parameters"] == {"commit": "fix-login"}
        assert git_calls[1]["parameters"] == {"author": "alice", "since": "7 days ago"}
        assert registry.lookup("database").calls[0] == {
            "query": "recent_reviews", "parameters": {"author": "alice"}
        }

    @pytest.mark.asyncio
    async def test_tools_only_review_skips_model(self, registry, fast_settings, mock_logger, task):
        client = ScriptedModelClient()
        orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)

        result = await orchestrator.perform_structured_review(task, ReviewOptions(consult_model=False))

        assert result.success
        assert result.model_response is None
        assert client.requests == []

    @pytest.mark.asyncio
    async def test_model_failure(self, registry, fast_settings, mock_logger, task):
        client = ScriptedModelClient([ModelEndpointError(ErrorCategory.TRANSPORT, "down")])
        orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)

        result = await orchestrator.perform_structured_review(task)

        assert not result.success
        assert result.error.startswith("Comprehensive review failed:")
        assert len(result.tool_results) == 6
        assert orchestrator.active_sessions() == {}

    @pytest.mark.asyncio
    async def test_model_follow_ups(self, registry, fast_settings, mock_logger, task):
        client = ScriptedModelClient([{"content": "", "toolCalls": [_database_call("file_hotspots")]}])
        orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)

        result = await orchestrator.perform_structured_review(task)

        assert [r.tool_name for r in result.model_response.tool_results] == ["database"]

    @pytest.mark.asyncio
    async def test_stage_failures_do_not_abort(self, fast_settings, mock_logger, task):
        reg = ToolRegistry()
        reg.register(FakeGitTool())
        reg.register(FailingTool("database"))
        reg.register(EchoTool("filesystem"))
        reg.freeze()
        orchestrator = _orchestrator(reg, ScriptedModelClient(), fast_settings, mock_logger)

        result = await orchestrator.perform_structured_review(task)

        assert result.success
        assert [s.failed for s in result.stages] == [1, 0, 2]
        assert result.metadata["context_failures"] == 1

    @pytest.mark.asyncio
    async def test_learned_patterns_reach_prompt(self, registry, fast_settings, mock_logger, task):
        client = ScriptedModelClient()
        orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)
        orchestrator.context_manager.project_context("proj").add_pattern("null-checks", 3)
        task.project_id = "proj"

        await orchestrator.perform_structured_review(task)

        _, request = client.requests[0]
        assert request.context["learned_patterns"] == {"null-checks": 3}
        assert "- null-checks: 3" in request.prompt


# =============================================================================
# Critical hook
# =============================================================================

class TestCriticalHook:
    def _registry(self, notification):
        reg = ToolRegistry()
        reg.register(FakeGitTool())
        reg.register(EchoTool("database", metadata={"severity": "critical"}))
        reg.register(EchoTool("filesystem"))
        reg.register(notification)
        reg.freeze()
        return reg

    @pytest.mark.asyncio
    async def test_critical_result_triggers_notification(self, fast_settings, mock_logger, task):
        notification = EchoTool("notification")
        orchestrator = _orchestrator(
            self._registry(notification), ScriptedModelClient(), fast_settings, mock_logger
        )

        result = await orchestrator.perform_structured_review(task)
        await orchestrator.wait_for_background_tasks(timeout=1.0)

        assert result.success
        assert notification.calls
        sent = notification.calls[0]
        assert sent["channel"] == "slack"
        assert sent["message"] == CRITICAL_ALERT_MESSAGE
        assert sent["severity"] == "critical"
        assert sent["parameters"]["title"] == "Critical Code Review Alert"
        assert sent["parameters"]["findings"][0]["tool"] == "database"

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_affect_review(self, fast_settings, mock_logger, task):
        orchestrator = _orchestrator(
            self._registry(FailingTool("notification")), ScriptedModelClient(),
            fast_settings, mock_logger,
        )

        result = await orchestrator.perform_structured_review(task)
        await orchestrator.wait_for_background_tasks(timeout=1.0)

        assert result.success
        events = [c.args[0] for c in mock_logger.warning.call_args_list if c.args]
        assert "critical_notification_failed" in events

    @pytest.mark.asyncio
    async def test_no_notification_without_critical(self, registry, fast_settings, mock_logger, task):
        orchestrator = _orchestrator(registry, ScriptedModelClient(), fast_settings, mock_logger)
        await orchestrator.perform_structured_review(task)
        await orchestrator.wait_for_background_tasks(timeout=1.0)
        assert registry.lookup("notification").calls == []


# =============================================================================
# stream_review
# =============================================================================

class TestStreamReview:
    @pytest.mark.asyncio
    async def test_yields_update_per_result(self, registry, fast_settings, mock_logger, task):
        orchestrator = _orchestrator(registry, ScriptedModelClient(), fast_settings, mock_logger)

        updates = [u async for u in orchestrator.stream_review(task)]

        assert len(updates) == 6
        stages = [u.stage for u in updates]
        assert stages == sorted(stages, key=["context_gathering", "file_analysis", "quality_findings"].index)
        assert all(u.status is UpdateStatus.COMPLETED for u in updates)
        assert orchestrator.active_sessions() == {}

    @pytest.mark.asyncio
    async def test_early_stop_closes_session(self, registry, fast_settings, mock_logger, task):
        orchestrator = _orchestrator(registry, ScriptedModelClient(), fast_settings, mock_logger)

        stream = orchestrator.stream_review(task)
        first = await stream.__anext__()
        assert first.stage == "context_gathering"
        assert len(orchestrator.active_sessions()) == 1
        await stream.aclose()
        assert orchestrator.active_sessions() == {}

    @pytest.mark.asyncio
    async def test_stage_pacing(self, registry, mock_logger, task):
        settings = OrchestratorSettings(stage_delay_ms=30)
        orchestrator = _orchestrator(registry, ScriptedModelClient(), settings, mock_logger)

        started = time.monotonic()
        async for _ in orchestrator.stream_review(task):
            pass
        assert time.monotonic() - started >= 0.05


# =============================================================================
# Feedback & lifecycle
# =============================================================================

@pytest.mark.asyncio
async def test_learn_from_feedback_is_fire_and_forget(registry, fast_settings, mock_logger):
    orchestrator = _orchestrator(registry, ScriptedModelClient(), fast_settings, mock_logger)
    orchestrator.learn_from_feedback(ReviewFeedback("r-1", project_id="p", details={"patterns": ["x"]}))
    await orchestrator.wait_for_background_tasks(timeout=1.0)
    assert orchestrator.context_manager.learned_patterns("p") == {"x": 1}


@pytest.mark.asyncio
async def test_aclose_releases_everything(registry, fast_settings, mock_logger):
    client = ScriptedModelClient()
    orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)
    session = orchestrator.create_session()

    await orchestrator.aclose()

    assert client.closed
    assert not session.is_active
    assert orchestrator.active_sessions() == {}


@pytest.mark.asyncio
async def test_concurrent_operations_use_separate_sessions(registry, fast_settings, mock_logger):
    client = ScriptedModelClient(delay=0.01)
    orchestrator = _orchestrator(registry, client, fast_settings, mock_logger)

    responses = await asyncio.gather(*(orchestrator.execute_with_tool_catalog("p") for _ in range(3)))

    assert len({r.session_id for r in responses}) == 3
    assert orchestrator.active_sessions() == {}


@pytest.mark.asyncio
async def test_from_settings_builds_standard_registry(tmp_path, mock_logger):
    orchestrator = Orchestrator.from_settings(
        OrchestratorSettings(model_endpoint="http://model.test"),
        database_path=str(tmp_path / "reviews.db"),
        logger=mock_logger,
    )
    assert orchestrator.registry.names() == ["git", "database", "filesystem", "notification"]
    await orchestrator.aclose()
