"""Model endpoint gateway: wire types and the HTTP client."""

from .client import HttpModelClient, ModelClient
from .endpoints import ModelEndpoint
from .types import ModelRequest, ModelResponse, ToolCall

__all__ = [
    "HttpModelClient",
    "ModelClient",
    "ModelEndpoint",
    "ModelRequest",
    "ModelResponse",
    "ToolCall",
]
