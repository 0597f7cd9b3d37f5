"""
Root conftest - shared fixtures for the review orchestrator tests.

Provides a mock logger, small in-process tools and a scripted model client
so session and orchestrator tests run without git, a database or a model
endpoint.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

# Ensure project root is in Python path
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from review_orchestrator.config import (  # noqa: E402
    OrchestratorSettings,
    reset_orchestrator_settings,
    reset_tool_bounds,
)
from review_orchestrator.gateway.client import ModelClient  # noqa: E402
from review_orchestrator.gateway.types import ModelRequest, ModelResponse  # noqa: E402
from review_orchestrator.tools.base import Tool, ToolDescriptor, ToolResult  # noqa: E402
from review_orchestrator.tools.catalog import ToolRegistry  # noqa: E402


# ============================================================================
# Shared Test Fixtures
# ============================================================================

@pytest.fixture
def mock_logger():
    """Create a mock logger conforming to the structlog BoundLogger surface.

    The logger supports:
    - bind(**kwargs) -> logger (returns itself with context)
    - debug/info/warning/error/critical methods
    """
    logger = MagicMock()
    logger.bind.return_value = logger
    return logger


@pytest.fixture(autouse=True)
def _reset_config():
    yield
    reset_orchestrator_settings()
    reset_tool_bounds()


# ============================================================================
# Fake Tools
# ============================================================================

def _descriptor(name: str, properties: Optional[Dict[str, Any]] = None, required=()) -> ToolDescriptor:
    return ToolDescriptor(
        name=name,
        description=f"{name} test tool",
        input_schema={
            "type": "object",
            "properties": properties or {},
            "required": list(required),
        },
    )


class EchoTool(Tool):
    """Returns its parameters as content; optional metadata is attached."""

    def __init__(self, name: str = "echo", metadata: Optional[Dict[str, Any]] = None, **kwargs):
        self.descriptor = _descriptor(name)
        super().__init__(**kwargs)
        self._metadata = metadata or {}
        self.calls: List[Dict[str, Any]] = []

    async def _run(self, parameters: Dict[str, Any]) -> ToolResult:
        self.calls.append(parameters)
        return ToolResult.ok(dict(parameters), self._metadata)


class FakeGitTool(EchoTool):
    """Stands in for git: status returns a fixed porcelain listing."""

    def __init__(self, **kwargs):
        super().__init__("git", **kwargs)
        self.descriptor = _descriptor(
            "git",
            {"command": {"type": "string"}, "repository": {"type": "string"}},
            required=("command", "repository"),
        )

    async def _run(self, parameters: Dict[str, Any]) -> ToolResult:
        self.calls.append(parameters)
        if parameters["command"] == "status":
            return ToolResult.ok([" M app.py"], {"command": "status", "changed_files": 1})
        return ToolResult.ok("", {"command": parameters["command"]})


class FailingTool(Tool):
    """Raises from its body; execute turns that into a failure."""

    def __init__(self, name: str = "failing", **kwargs):
        self.descriptor = _descriptor(name)
        super().__init__(**kwargs)

    async def _run(self, parameters: Dict[str, Any]) -> ToolResult:
        raise RuntimeError("boom")


class SlowTool(Tool):
    """Sleeps before answering; records start and finish order."""

    def __init__(self, name: str = "slow", delay: float = 0.05, log: Optional[list] = None, **kwargs):
        self.descriptor = _descriptor(name)
        super().__init__(**kwargs)
        self.delay = delay
        self.log = log if log is not None else []

    async def _run(self, parameters: Dict[str, Any]) -> ToolResult:
        self.log.append(("start", self.name))
        await asyncio.sleep(self.delay)
        self.log.append(("end", self.name))
        return ToolResult.ok(self.name)


class UnavailableTool(EchoTool):
    async def is_available(self) -> bool:
        return False


@pytest.fixture
def registry(mock_logger):
    """Frozen registry with git, database and notification stand-ins."""
    reg = ToolRegistry(logger=mock_logger)
    reg.register(FakeGitTool(logger=mock_logger))
    reg.register(EchoTool("database", logger=mock_logger))
    reg.register(EchoTool("filesystem", logger=mock_logger))
    reg.register(EchoTool("notification", logger=mock_logger))
    reg.freeze()
    return reg


# ============================================================================
# Scripted Model Client
# ============================================================================

class ScriptedModelClient(ModelClient):
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, responses: Optional[list] = None, delay: float = 0.0):
        self.responses = list(responses or [])
        self.delay = delay
        self.requests: List[tuple] = []
        self.closed = False

    async def send(self, path: str, request: ModelRequest) -> ModelResponse:
        self.requests.append((path, request))
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.responses.pop(0) if self.responses else {"content": "done"}
        if isinstance(item, Exception):
            raise item
        return ModelResponse.from_payload(item)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fast_settings():
    return OrchestratorSettings(model_timeout_ms=1000, stage_delay_ms=0)
