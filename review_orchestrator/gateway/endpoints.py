from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from review_orchestrator.config import OrchestratorSettings, get_orchestrator_settings


@dataclass
class ModelEndpoint:
    base_url: str
    chat_path: str = "/api/ai/chat-with-tools"
    review_path: str = "/api/ai/comprehensive-review"
    api_key: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Optional[OrchestratorSettings] = None) -> "ModelEndpoint":
        settings = settings or get_orchestrator_settings()
        return cls(
            base_url=settings.model_endpoint,
            chat_path=settings.chat_path,
            review_path=settings.review_path,
            api_key=settings.api_key or None,
        )

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers
