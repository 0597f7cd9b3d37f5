"""Orchestrator - sessions, model round trips and structured reviews.

Owns the active-session map, talks to the model endpoint through a
ModelClient, executes model-requested follow-up tool calls through the
session's chain, and runs the three-stage review pipeline.

Every public operation returns data: timeouts, transport errors and
malformed responses become a failed ModelResponse or ReviewResult.
Sessions created for an operation are closed on every exit path.
"""

import asyncio
import threading
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Set

from review_orchestrator._logging import get_component_logger
from review_orchestrator.config import OrchestratorSettings, get_orchestrator_settings
from review_orchestrator.errors import ErrorCategory, ModelEndpointError, PreconditionViolation
from review_orchestrator.gateway.client import HttpModelClient, ModelClient
from review_orchestrator.gateway.endpoints import ModelEndpoint
from review_orchestrator.gateway.types import ModelRequest, ModelResponse, ToolCall
from review_orchestrator.learning.context_manager import ContextManager, ReviewFeedback
from review_orchestrator.orchestration.pipeline import (
    build_context_requests,
    build_review_pipeline,
    task_context,
)
from review_orchestrator.orchestration.prompts import build_review_prompt
from review_orchestrator.orchestration.types import (
    ReviewOptions,
    ReviewResult,
    ReviewTask,
    ReviewUpdate,
    StageSummary,
)
from review_orchestrator.session.session import Session, new_session_id
from review_orchestrator.tools.base import ToolResult
from review_orchestrator.tools.catalog import ToolId, ToolRegistry

CRITICAL_ALERT_MESSAGE = "Critical security vulnerabilities found in code review"
CRITICAL_ALERT_TITLE = "Critical Code Review Alert"


class Orchestrator:
    """
    Entry point for tool-assisted model conversations and reviews.

    Example:
        orchestrator = Orchestrator.from_settings(database_path="./data/reviews.db")
        response = await orchestrator.execute_with_tool_catalog(
            "review PR #1", ["git", "database"], {"pull_request": 1}
        )
        await orchestrator.aclose()
    """

    def __init__(
        self,
        registry: ToolRegistry,
        model_client: Optional[ModelClient] = None,
        *,
        settings: Optional[OrchestratorSettings] = None,
        context_manager: Optional[ContextManager] = None,
        owns_registry: bool = False,
        logger: Optional[Any] = None,
    ):
        self.settings = settings or get_orchestrator_settings()
        self.registry = registry
        self.context_manager = context_manager or ContextManager(logger=logger)
        self._logger = get_component_logger("Orchestrator", logger)
        self._base_logger = logger
        self.endpoint = ModelEndpoint.from_settings(self.settings)
        if model_client is None:
            model_client = HttpModelClient(
                self.endpoint,
                timeout=self.settings.comprehensive_timeout_seconds,
                max_retries=self.settings.model_max_retries,
                logger=logger,
            )
        self._client = model_client
        self._owns_registry = owns_registry
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._background_tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Optional[OrchestratorSettings] = None,
        *,
        database_path: Optional[str] = None,
        logger: Optional[Any] = None,
    ) -> "Orchestrator":
        """Build an orchestrator with the standard tools and an HTTP model client."""
        from review_orchestrator.tools.registration import create_default_registry

        settings = settings or get_orchestrator_settings()
        registry = create_default_registry(
            database_path=database_path, settings=settings, logger=logger
        )
        return cls(registry, settings=settings, owns_registry=True, logger=logger)

    # ─── Session management ───

    def create_session(self, session_id: Optional[str] = None) -> Session:
        """Create and register a session.

        Raises:
            PreconditionViolation: if ``session_id`` names an active session
        """
        sid = session_id or new_session_id()
        with self._lock:
            if sid in self._sessions:
                raise PreconditionViolation(f"Session {sid} is already active")
            session = Session(
                self.registry,
                sid,
                max_parallel=self.settings.max_parallel_tools,
                logger=self._base_logger,
            )
            self._sessions[sid] = session
        self._logger.info("session_created", session_id=sid)
        return session

    def close_session(self, session_id: str) -> None:
        """Remove and close a session. Unknown ids are ignored."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def active_sessions(self) -> Dict[str, Session]:
        with self._lock:
            return dict(self._sessions)

    # ─── Model round trips ───

    async def _round_trip(
        self, path: str, request: ModelRequest, timeout: float
    ) -> ModelResponse:
        """Send a request raced against ``timeout``; failures come back as data."""
        try:
            response = await asyncio.wait_for(self._client.send(path, request), timeout=timeout)
        except asyncio.TimeoutError:
            self._logger.warning(
                "model_round_trip_timed_out", path=path, timeout=timeout,
                session_id=request.session_id,
            )
            return ModelResponse.failure(
                f"Model endpoint did not respond within {timeout:g}s",
                ErrorCategory.TIMEOUT,
                session_id=request.session_id,
            )
        except ModelEndpointError as exc:
            self._logger.warning(
                "model_round_trip_failed", path=path, category=exc.category.value,
                error=exc.message, status_code=exc.status_code,
                session_id=request.session_id,
            )
            return ModelResponse.failure(
                f"Model endpoint error: {exc.message}", exc.category,
                session_id=request.session_id,
            )
        except Exception as exc:
            self._logger.error(
                "model_round_trip_failed", path=path, error=str(exc),
                error_type=type(exc).__name__, session_id=request.session_id,
            )
            return ModelResponse.failure(
                f"Model endpoint error: {exc}", ErrorCategory.TRANSPORT,
                session_id=request.session_id,
            )

        response.session_id = request.session_id
        return response

    async def _run_follow_ups(
        self,
        session: Session,
        calls: List[ToolCall],
        allowed_tool_names: Iterable[str] = (),
    ) -> List[ToolResult]:
        """Execute model-requested calls as a chain, one result per call.

        Calls beyond ``max_follow_up_calls`` and calls to tools outside a
        non-empty allow-list are not executed; they get failure results in
        their position.
        """
        allowed = set(allowed_tool_names)
        limit = self.settings.max_follow_up_calls
        results: List[Optional[ToolResult]] = [None] * len(calls)
        runnable = []

        for index, call in enumerate(calls):
            if index >= limit:
                results[index] = ToolResult.failure(
                    f"follow-up call limit exceeded ({limit}); {call.name} not executed",
                    tool_name=call.name,
                )
            elif allowed and call.name not in allowed:
                results[index] = ToolResult.failure(
                    f"tool not allowed: {call.name}", tool_name=call.name
                )
            else:
                runnable.append((index, call.to_request()))

        if len(calls) > limit:
            self._logger.warning(
                "follow_up_calls_truncated", requested=len(calls), limit=limit,
                session_id=session.id,
            )

        executed = await session.chain(request for _, request in runnable)
        for (index, _), result in zip(runnable, executed):
            results[index] = result
        return [r for r in results if r is not None]

    async def execute_with_tool_catalog(
        self,
        prompt: str,
        allowed_tool_names: Optional[Iterable[str]] = None,
        initial_context: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> ModelResponse:
        """Ask the model with a tool catalog and execute the tool calls it returns.

        Args:
            prompt: Prompt text
            allowed_tool_names: Catalog filter and follow-up allow-list (empty = all)
            initial_context: Context merged into the session before the request
            options: Passed through to the model as ``options``

        Returns:
            ModelResponse whose ``tool_results`` hold one result per executed
            follow-up call, in call order. Failed round trips return a
            failed ModelResponse.
        """
        allowed = list(allowed_tool_names or [])
        session = self.create_session()
        try:
            session.update_context(initial_context or {})
            catalog = await session.catalog(allowed or None)
            request = ModelRequest(
                prompt=prompt,
                tools=catalog,
                context=session.get_context(),
                session_id=session.id,
                options=options,
            )
            response = await self._round_trip(
                self.endpoint.chat_path, request, self.settings.model_timeout_seconds
            )

            collected: List[ToolResult] = []
            rounds = 0
            while response.success and response.has_tool_calls:
                results = await self._run_follow_ups(session, response.tool_calls, allowed)
                collected.extend(results)
                rounds += 1
                if rounds >= max(1, self.settings.max_tool_rounds):
                    break
                follow_up = ModelRequest(
                    prompt=prompt,
                    tools=catalog,
                    context={
                        **session.get_context(),
                        "tool_results": [r.to_dict() for r in results],
                    },
                    session_id=session.id,
                    options=options,
                )
                response = await self._round_trip(
                    self.endpoint.chat_path, follow_up, self.settings.model_timeout_seconds
                )

            response.tool_results = collected
            self._logger.info(
                "tool_catalog_request_completed",
                session_id=session.id,
                success=response.success,
                tool_results=len(collected),
                rounds=rounds,
            )
            return response
        finally:
            self.close_session(session.id)

    # ─── Structured review ───

    async def _prepare_review_context(self, session: Session, task: ReviewTask) -> List[ToolResult]:
        session.update_context(task_context(task))
        results = await session.chain(build_context_requests(task))
        for index, result in enumerate(results):
            session.add_context(
                f"context_{index}",
                result.content if result.success else {"error": result.error},
            )
        if task.project_id:
            patterns = self.context_manager.learned_patterns(task.project_id)
            if patterns:
                session.add_context("learned_patterns", patterns)
        return results

    def _notify_if_critical(self, results: List[ToolResult], task: ReviewTask) -> None:
        """Spawn a detached notification when any result is marked critical."""
        critical = [r for r in results if r.severity == "critical"]
        if not critical:
            return
        self._logger.warning(
            "critical_findings_detected", task_id=task.id, count=len(critical)
        )
        self._track_task(asyncio.ensure_future(self._send_critical_notification(critical, task)))

    async def _send_critical_notification(self, findings: List[ToolResult], task: ReviewTask) -> None:
        try:
            tool = self.registry.lookup(ToolId.NOTIFICATION.value)
            if tool is None:
                self._logger.warning("critical_notification_skipped", reason="no notification tool")
                return
            result = await tool.execute({
                "channel": self.settings.critical_notification_channel,
                "message": CRITICAL_ALERT_MESSAGE,
                "severity": "critical",
                "parameters": {
                    "title": CRITICAL_ALERT_TITLE,
                    "findings": [f.to_dict() for f in findings],
                },
            })
            if result.success:
                self._logger.info("critical_notification_sent", task_id=task.id)
            else:
                self._logger.warning(
                    "critical_notification_failed", task_id=task.id, error=result.error
                )
        except Exception as exc:
            self._logger.error("critical_notification_failed", task_id=task.id, error=str(exc))

    def _track_task(self, task: asyncio.Future) -> None:
        """Track a background task and clean up when done."""
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _run_stages(self, session: Session, task: ReviewTask):
        """Yield (stage name, results) per stage, pacing between stages."""
        delay = self.settings.stage_delay_seconds
        for index, stage in enumerate(build_review_pipeline(task)):
            if index and delay > 0:
                await asyncio.sleep(delay)
            results = await session.parallel(stage.requests)
            self._notify_if_critical(results, task)
            self._logger.info(
                "review_stage_completed",
                session_id=session.id,
                stage=stage.name,
                total=len(results),
                failed=sum(1 for r in results if not r.success),
            )
            yield stage.name, results

    async def perform_structured_review(
        self, task: ReviewTask, options: Optional[ReviewOptions] = None
    ) -> ReviewResult:
        """Run context preparation, the review pipeline and the model review.

        ``ReviewResult.tool_results`` holds the pipeline results in stage
        order; follow-up calls requested by the model are on
        ``model_response.tool_results``.
        """
        options = options or ReviewOptions()
        session = self.create_session()
        try:
            context_results = await self._prepare_review_context(session, task)

            pipeline_results: List[ToolResult] = []
            stages: List[StageSummary] = []
            async for name, results in self._run_stages(session, task):
                pipeline_results.extend(results)
                stages.append(
                    StageSummary(name, len(results), sum(1 for r in results if not r.success))
                )

            metadata = {
                "task_id": task.id,
                "context_results": len(context_results),
                "context_failures": sum(1 for r in context_results if not r.success),
            }
            if not options.consult_model:
                return ReviewResult(
                    session_id=session.id,
                    success=True,
                    tool_results=pipeline_results,
                    stages=stages,
                    metadata=metadata,
                )

            catalog = await session.catalog()
            prompt = build_review_prompt(
                task, options, catalog, session.get_context().get("learned_patterns")
            )
            request = ModelRequest(
                prompt=prompt,
                tools=catalog,
                context=session.get_context(),
                session_id=session.id,
                options=options.to_payload(),
            )
            response = await self._round_trip(
                self.endpoint.review_path, request, self.settings.comprehensive_timeout_seconds
            )
            if not response.success:
                return ReviewResult.failed(
                    f"Comprehensive review failed: {response.error}",
                    session.id,
                    model_response=response,
                    tool_results=pipeline_results,
                    stages=stages,
                    metadata=metadata,
                )

            if response.has_tool_calls:
                follow_ups = await self._run_follow_ups(session, response.tool_calls)
                response.tool_results = follow_ups
                self._notify_if_critical(follow_ups, task)

            self._logger.info(
                "structured_review_completed",
                session_id=session.id,
                task_id=task.id,
                pipeline_results=len(pipeline_results),
                follow_up_results=len(response.tool_results),
            )
            return ReviewResult(
                session_id=session.id,
                success=True,
                model_response=response,
                tool_results=pipeline_results,
                stages=stages,
                metadata=metadata,
            )
        finally:
            self.close_session(session.id)

    async def stream_review(
        self, task: ReviewTask, options: Optional[ReviewOptions] = None
    ) -> AsyncIterator[ReviewUpdate]:
        """Yield one ReviewUpdate per pipeline result as each stage completes.

        The session closes when the iterator is exhausted or closed early.
        """
        session = self.create_session()
        try:
            await self._prepare_review_context(session, task)
            async for name, results in self._run_stages(session, task):
                for result in results:
                    yield ReviewUpdate.from_result(name, result)
        finally:
            self.close_session(session.id)

    # ─── Feedback & lifecycle ───

    def learn_from_feedback(self, feedback: ReviewFeedback) -> None:
        """Fire-and-forget learning; never raises."""
        try:
            self.context_manager.learn_from_feedback(feedback)
        except Exception as exc:
            self._logger.error("feedback_schedule_failed", error=str(exc))

    async def wait_for_background_tasks(self, timeout: Optional[float] = None) -> None:
        """Wait for detached notifications and feedback learning to finish."""
        if self._background_tasks:
            await asyncio.wait(
                set(self._background_tasks),
                timeout=timeout,
                return_when=asyncio.ALL_COMPLETED,
            )
        await self.context_manager.wait_for_background_tasks(timeout=timeout)

    async def aclose(self) -> None:
        """Close remaining sessions, drain background work and release clients."""
        for session_id in list(self.active_sessions()):
            self.close_session(session_id)
        await self.wait_for_background_tasks(timeout=5.0)
        await self._client.aclose()
        if self._owns_registry:
            await self.registry.aclose()
        self._logger.info("orchestrator_closed")


__all__ = ["Orchestrator", "CRITICAL_ALERT_MESSAGE", "CRITICAL_ALERT_TITLE"]
