"""
HTTP client for the model endpoint.

Errors are raised as ModelEndpointError with a category; the orchestrator
turns them into failed ModelResponses. Deadlines are enforced by the
caller (``asyncio.wait_for``); the client only retries transient
connection errors.
"""
from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from review_orchestrator._logging import get_component_logger
from review_orchestrator.errors import ErrorCategory, ModelEndpointError
from review_orchestrator.gateway.endpoints import ModelEndpoint
from review_orchestrator.gateway.types import ModelRequest, ModelResponse


def _categorize_exception(exc: Exception) -> ModelEndpointError:
    if isinstance(exc, ModelEndpointError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return ModelEndpointError(ErrorCategory.TIMEOUT, str(exc) or "request timed out")
    return ModelEndpointError(ErrorCategory.TRANSPORT, str(exc) or type(exc).__name__)


def _is_retryable(exc: Exception) -> bool:
    return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout, httpx.RemoteProtocolError))


class ModelClient(ABC):
    """Sends one request to a model endpoint path and parses the response."""

    @abstractmethod
    async def send(self, path: str, request: ModelRequest) -> ModelResponse:
        ...

    async def aclose(self) -> None:
        return None


class HttpModelClient(ModelClient):
    """
    httpx-based model client.

    Supports:
    - Bearer API key header
    - Retries with exponential backoff for connection failures
    - Injected transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        endpoint: ModelEndpoint,
        *,
        timeout: float = 120.0,
        max_retries: int = 2,
        retry_backoff: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[Any] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_backoff = retry_backoff
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._logger = get_component_logger("HttpModelClient", logger)

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.endpoint.base_url.rstrip("/"),
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                headers=self.endpoint.headers(),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, path: str, request: ModelRequest) -> ModelResponse:
        payload = request.to_payload()
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                resp = await self._http().post(path, json=payload)
            except httpx.HTTPError as exc:
                last_error = exc
                if _is_retryable(exc) and attempt < self.max_retries - 1:
                    self._logger.info(
                        "model_request_retry", path=path, attempt=attempt + 1, error=str(exc)
                    )
                    await asyncio.sleep(self.retry_backoff * (2 ** attempt))
                    continue
                raise _categorize_exception(exc)

            if resp.status_code < 200 or resp.status_code >= 300:
                raise ModelEndpointError(
                    ErrorCategory.TRANSPORT,
                    f"HTTP {resp.status_code} from {path}",
                    status_code=resp.status_code,
                    raw_backend=resp.text,
                )
            try:
                data = resp.json()
            except (json.JSONDecodeError, ValueError) as exc:
                raise ModelEndpointError(
                    ErrorCategory.TRANSPORT,
                    f"malformed JSON from {path}: {exc}",
                    status_code=resp.status_code,
                    raw_backend=resp.text,
                )
            return ModelResponse.from_payload(data)

        raise _categorize_exception(last_error or RuntimeError("no attempt made"))


__all__ = ["ModelClient", "HttpModelClient"]
