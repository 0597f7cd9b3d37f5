"""Notification tool - review alerts to chat, email, webhooks or the log.

Payloads are rendered per channel. Slack, Teams and generic webhooks are
delivered with an HTTP POST when a URL is configured (tool settings or the
call's ``webhook_url``); without one the rendered payload is returned with
``delivered=False``. Email is rendered only and requires recipients.
"""

import html
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Mapping, Optional

import httpx

from review_orchestrator.config import ToolBounds, get_tool_bounds
from review_orchestrator.tools.base import Tool, ToolDescriptor, ToolResult, sub_parameters
from review_orchestrator.tools.catalog import Capability, ToolId

NOTIFICATION_CHANNELS = ("slack", "teams", "email", "webhook", "console")
SEVERITIES = ("info", "warning", "error", "critical")

SEVERITY_COLORS = {
    "critical": "#ff0000",
    "error": "#ff6600",
    "warning": "#ffcc00",
}
DEFAULT_COLOR = "#36a64f"

CONSOLE_PREFIXES = {
    "critical": "CRITICAL",
    "error": "ERROR",
    "warning": "WARNING",
}

SYSTEM_NAME = "AI Code Review System"
RECENT_HISTORY_SIZE = 100

NOTIFICATION_DESCRIPTOR = ToolDescriptor(
    name=ToolId.NOTIFICATION.value,
    description=(
        "Send notifications about code review results, critical findings, or "
        "important updates to various channels like Slack, Teams, or email."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "channel": {
                "type": "string",
                "description": "Notification channel to use",
                "enum": list(NOTIFICATION_CHANNELS),
            },
            "message": {"type": "string", "description": "Notification message content"},
            "severity": {
                "type": "string",
                "description": "Notification severity level",
                "enum": list(SEVERITIES),
                "default": "info",
            },
            "parameters": {
                "type": "object",
                "description": "Channel-specific parameters",
                "properties": {
                    "webhook_url": {"type": "string", "description": "Webhook URL for notifications"},
                    "channel_id": {"type": "string", "description": "Channel or room ID"},
                    "recipients": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Email recipients",
                    },
                    "title": {"type": "string", "description": "Notification title"},
                    "pull_request_id": {"type": "integer", "description": "Related PR ID"},
                    "findings": {"type": "array", "description": "Review findings to include"},
                },
            },
        },
        "required": ["channel", "message"],
    },
    required_capabilities=frozenset(
        [Capability.NETWORK_SEND.value, Capability.NOTIFICATION_SEND.value]
    ),
)


def severity_color(severity: str) -> str:
    return SEVERITY_COLORS.get(severity, DEFAULT_COLOR)


def slack_payload(message: str, severity: str, params: Mapping[str, Any]) -> Dict[str, Any]:
    attachment = {
        "color": severity_color(severity),
        "title": params.get("title", "Code Review Update"),
        "text": message,
        "footer": SYSTEM_NAME,
        "ts": int(time.time()),
    }
    return {"channel": params.get("channel_id", "general"), "attachments": [attachment]}


def teams_payload(message: str, severity: str, params: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "@type": "MessageCard",
        "@context": "https://schema.org/extensions",
        "summary": params.get("title", "Code Review Update"),
        "themeColor": severity_color(severity).lstrip("#").upper(),
        "sections": [
            {
                "activityTitle": SYSTEM_NAME,
                "activitySubtitle": f"Severity: {severity.upper()}",
                "text": message,
            }
        ],
    }


def email_body(message: str, severity: str, title: str, params: Mapping[str, Any]) -> str:
    parts = [
        "<html><body>",
        f"<h2>{html.escape(title)}</h2>",
        f"<p><strong>Severity:</strong> {html.escape(severity.upper())}</p>",
        f"<p>{html.escape(message)}</p>",
    ]
    if "pull_request_id" in params:
        parts.append(
            f"<p><strong>Pull Request ID:</strong> {html.escape(str(params['pull_request_id']))}</p>"
        )
    parts.append("<hr>")
    parts.append(
        f"<p><em>This notification was generated automatically by the {SYSTEM_NAME}.</em></p>"
    )
    parts.append("</body></html>")
    return "".join(parts)


class NotificationTool(Tool):
    descriptor = NOTIFICATION_DESCRIPTOR

    def __init__(
        self,
        *,
        webhooks: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http_timeout: float = 10.0,
        history_size: int = RECENT_HISTORY_SIZE,
        bounds: Optional[ToolBounds] = None,
        logger: Optional[Any] = None,
    ):
        bounds = bounds or get_tool_bounds()
        super().__init__(timeout_seconds=bounds.tool_timeout_seconds, logger=logger)
        self._webhooks = dict(webhooks or {})
        self._transport = transport
        self._http_timeout = http_timeout
        self._client: Optional[httpx.AsyncClient] = None
        self.sent: Deque[Dict[str, Any]] = deque(maxlen=history_size)

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._http_timeout, connect=5.0),
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, url: str, payload: Dict[str, Any]) -> int:
        response = await self._http().post(url, json=payload)
        if response.status_code >= 400:
            raise httpx.HTTPStatusError(
                f"HTTP {response.status_code}", request=response.request, response=response
            )
        return response.status_code

    async def _run(self, parameters: Dict[str, Any]) -> ToolResult:
        channel = parameters["channel"]
        message = parameters["message"]
        severity = parameters.get("severity") or "info"
        params = sub_parameters(parameters)

        handler = {
            "slack": self._slack,
            "teams": self._teams,
            "email": self._email,
            "webhook": self._webhook,
            "console": self._console,
        }.get(channel)
        if handler is None:
            return ToolResult.failure(f"Unknown notification channel: {channel}")

        try:
            result = await handler(message, severity, params)
        except httpx.HTTPError as exc:
            self._logger.warning("notification_delivery_failed", channel=channel, error=str(exc))
            return ToolResult.failure(f"Failed to send {channel} notification: {exc}")

        self.sent.append({"channel": channel, "severity": severity, "message": message})
        return result

    async def _deliver(
        self, channel: str, severity: str, payload: Dict[str, Any], url: Optional[str],
        extra: Optional[Dict[str, Any]] = None,
    ) -> ToolResult:
        status_code = await self._post(url, payload) if url else None
        metadata = {
            "channel": channel,
            "delivered": status_code is not None,
            "sent_at": int(time.time() * 1000),
        }
        if status_code is not None:
            metadata["status_code"] = status_code
        metadata.update(extra or {})
        summary = (
            f"Notification sent via {channel}"
            if status_code is not None
            else f"Notification rendered for {channel} (no webhook configured)"
        )
        self._logger.info("notification_processed", channel=channel, notify_severity=severity,
                          delivered=status_code is not None)
        return ToolResult.ok({"summary": summary, "payload": payload}, metadata)

    async def _slack(self, message: str, severity: str, params: Dict[str, Any]) -> ToolResult:
        url = params.get("webhook_url") or self._webhooks.get("slack")
        return await self._deliver(
            "slack", severity, slack_payload(message, severity, params), url,
            {"channel_id": params.get("channel_id", "general")},
        )

    async def _teams(self, message: str, severity: str, params: Dict[str, Any]) -> ToolResult:
        url = params.get("webhook_url") or self._webhooks.get("teams")
        return await self._deliver("teams", severity, teams_payload(message, severity, params), url)

    async def _webhook(self, message: str, severity: str, params: Dict[str, Any]) -> ToolResult:
        url = params.get("webhook_url") or self._webhooks.get("webhook")
        if not url:
            return ToolResult.failure("Webhook URL required")
        payload = {
            "message": message,
            "severity": severity,
            "timestamp": int(time.time() * 1000),
            "source": "ai-code-review",
            "additional_data": {k: v for k, v in params.items() if k != "webhook_url"},
        }
        return await self._deliver("webhook", severity, payload, url, {"webhook_url": url})

    async def _email(self, message: str, severity: str, params: Dict[str, Any]) -> ToolResult:
        recipients = list(params.get("recipients") or [])
        if not recipients:
            return ToolResult.failure("Email recipients required")
        title = params.get("title", "Code Review Notification")
        payload = {
            "recipients": recipients,
            "title": title,
            "content": email_body(message, severity, title, params),
        }
        return await self._deliver(
            "email", severity, payload, None, {"recipients": recipients, "title": title}
        )

    async def _console(self, message: str, severity: str, params: Dict[str, Any]) -> ToolResult:
        prefix = CONSOLE_PREFIXES.get(severity, "INFO")
        line = f"[{datetime.now(timezone.utc).isoformat()}] {prefix}: {message}"
        self._logger.info("console_notification", line=line, notify_severity=severity)
        return ToolResult.ok(
            "Notification logged to console",
            {"channel": "console", "logged_at": int(time.time() * 1000)},
        )


__all__ = [
    "NotificationTool",
    "NOTIFICATION_DESCRIPTOR",
    "NOTIFICATION_CHANNELS",
    "slack_payload",
    "teams_payload",
    "email_body",
    "severity_color",
]
