"""Session - isolated tool execution context.

A Session owns one ContextStore and references the shared, read-only
ToolRegistry. All execution disciplines are built on ``invoke``:

- chain: sequential, one result per request, input order
- parallel: concurrent (optionally bounded), one result per request,
  no ordering guarantee
- stream: chain order, each result yielded as soon as it completes

Only ACTIVE sessions accept work. Using a CLOSED session is a caller bug
and raises PreconditionViolation at call time.
"""

import asyncio
import uuid
from enum import Enum
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional

from review_orchestrator._logging import get_component_logger
from review_orchestrator.errors import PreconditionViolation
from review_orchestrator.session.context_store import ContextStore
from review_orchestrator.tools.base import ToolInvocationRequest, ToolResult
from review_orchestrator.tools.catalog import ToolRegistry


class SessionState(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


def new_session_id() -> str:
    return uuid.uuid4().hex


class Session:
    """Short-lived execution context for one conversation or review."""

    def __init__(
        self,
        registry: ToolRegistry,
        session_id: Optional[str] = None,
        *,
        initial_context: Optional[Mapping[str, Any]] = None,
        max_parallel: int = 0,
        logger: Optional[Any] = None,
    ):
        self.id = session_id or new_session_id()
        self.registry = registry
        self.context = ContextStore(initial_context)
        self.state = SessionState.ACTIVE
        self._max_parallel = max_parallel
        self._logger = get_component_logger("Session", logger).bind(session_id=self.id)

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, state={self.state.value})"

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def _ensure_active(self, operation: str) -> None:
        if self.state is not SessionState.ACTIVE:
            raise PreconditionViolation(
                f"Session {self.id} is closed; cannot {operation}"
            )

    # ─── Context ───

    def add_context(self, key: str, value: Any) -> None:
        self._ensure_active("add context")
        self.context.add(key, value)

    def update_context(self, values: Mapping[str, Any]) -> None:
        self._ensure_active("update context")
        self.context.update(values)

    def get_context(self) -> Mapping[str, Any]:
        """Immutable snapshot of the session context (empty once closed)."""
        return self.context.snapshot()

    async def catalog(
        self,
        allowed_names: Optional[Iterable[str]] = None,
        capabilities: Optional[Iterable[str]] = None,
    ) -> List[Dict[str, Any]]:
        self._ensure_active("build a catalog")
        return await self.registry.catalog(allowed_names, capabilities)

    # ─── Execution ───

    async def invoke(self, request: ToolInvocationRequest) -> ToolResult:
        """Run one tool. Unknown tools and tool errors come back as failures."""
        self._ensure_active("invoke a tool")
        return await self._invoke(request)

    async def invoke_tool(
        self, tool_name: str, parameters: Optional[Mapping[str, Any]] = None
    ) -> ToolResult:
        return await self.invoke(ToolInvocationRequest(tool_name, parameters or {}))

    async def _invoke(self, request: ToolInvocationRequest) -> ToolResult:
        tool = self.registry.lookup(request.tool_name)
        if tool is None:
            self._logger.info("tool_not_found", tool=request.tool_name)
            return ToolResult.not_found(request.tool_name)

        self._logger.debug("tool_invoked", tool=request.tool_name)
        try:
            result = await tool.execute(request.parameters)
        except Exception as exc:
            # Tool.execute contains its own failures; this covers overrides that do not.
            self._logger.error("tool_execute_raised", tool=request.tool_name, error=str(exc))
            result = ToolResult.failure(
                f"{request.tool_name} failed: {exc}", tool_name=request.tool_name
            )

        if result.success and self.is_active:
            self.context.record_result(request.tool_name, result.content)
        self._logger.debug(
            "tool_completed", tool=request.tool_name, success=result.success
        )
        return result

    async def chain(self, requests: Iterable[ToolInvocationRequest]) -> List[ToolResult]:
        """Run requests one after another; every request yields a result."""
        self._ensure_active("run a chain")
        results: List[ToolResult] = []
        for request in list(requests):
            self._ensure_active("run a chain")
            results.append(await self._invoke(request))
        return results

    async def parallel(self, requests: Iterable[ToolInvocationRequest]) -> List[ToolResult]:
        """Run requests concurrently and join; exactly one result per request."""
        self._ensure_active("run a parallel batch")
        batch = list(requests)
        if not batch:
            return []

        if self._max_parallel and self._max_parallel > 0:
            semaphore = asyncio.Semaphore(self._max_parallel)

            async def bounded(request: ToolInvocationRequest) -> ToolResult:
                async with semaphore:
                    return await self._invoke(request)

            coros = [bounded(r) for r in batch]
        else:
            coros = [self._invoke(r) for r in batch]

        return list(await asyncio.gather(*coros))

    def stream(self, requests: Iterable[ToolInvocationRequest]) -> AsyncIterator[ToolResult]:
        """Return an async iterator over results in request order.

        The session is checked here and again before each step, so closing
        it mid-stream raises on the next pull. A consumer may stop pulling at
        any time; an in-flight step is shielded and runs to completion.
        """
        self._ensure_active("stream")
        return self._stream(list(requests))

    async def _stream(self, batch: List[ToolInvocationRequest]) -> AsyncIterator[ToolResult]:
        for request in batch:
            self._ensure_active("stream")
            step = asyncio.ensure_future(self._invoke(request))
            yield await asyncio.shield(step)

    # ─── Lifecycle ───

    def close(self) -> None:
        """Transition to CLOSED and discard context. Idempotent."""
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        self.context.clear()
        self._logger.info("session_closed")

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["Session", "SessionState", "new_session_id"]
