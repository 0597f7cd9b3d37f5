"""Database tool - fixed named queries over review history.

Only the queries in NAMED_QUERIES can run. Caller input reaches SQL solely
as bound parameters: ``limit`` and ``days`` are clamped to ToolBounds and
``author`` is compared with ``=`` against a bound value.
"""

import asyncio
import time
from typing import Any, Dict, Mapping, Optional

from review_orchestrator.config import ToolBounds, get_tool_bounds
from review_orchestrator.database import REVIEW_SCHEMA, SQLiteClient
from review_orchestrator.tools.base import Tool, ToolDescriptor, ToolResult, sub_parameters
from review_orchestrator.tools.catalog import Capability, ToolId

_AUTHOR = "AND (:author IS NULL OR pr.author = :author)"


class NamedQuery:
    __slots__ = ("sql", "default_days", "default_limit")

    def __init__(self, sql: str, default_days: int = 30, default_limit: int = 100):
        self.sql = sql
        self.default_days = default_days
        self.default_limit = default_limit


NAMED_QUERIES: Dict[str, NamedQuery] = {
    "pull_requests_summary": NamedQuery(f"""
        SELECT pr.status, COUNT(*) AS count, AVG(pr.review_score) AS avg_score
        FROM pull_requests pr
        WHERE pr.created_at > datetime('now', :window) {_AUTHOR}
        GROUP BY pr.status
        ORDER BY pr.status
        LIMIT :limit
    """),
    "recent_reviews": NamedQuery(f"""
        SELECT pr.title, pr.author, cr.review_type, cr.overall_score, cr.created_at
        FROM pull_requests pr
        JOIN code_reviews cr ON pr.id = cr.pull_request_id
        WHERE cr.created_at > datetime('now', :window) {_AUTHOR}
        ORDER BY cr.created_at DESC
        LIMIT :limit
    """, default_days=7, default_limit=20),
    "top_authors": NamedQuery(f"""
        SELECT pr.author, COUNT(*) AS pr_count, AVG(pr.review_score) AS avg_score
        FROM pull_requests pr
        WHERE pr.created_at > datetime('now', :window) {_AUTHOR}
        GROUP BY pr.author
        ORDER BY pr_count DESC, pr.author
        LIMIT :limit
    """, default_limit=10),
    "security_findings": NamedQuery(f"""
        SELECT rf.severity, rf.category, COUNT(*) AS count
        FROM review_findings rf
        JOIN code_reviews cr ON rf.review_id = cr.id
        JOIN pull_requests pr ON cr.pull_request_id = pr.id
        WHERE cr.created_at > datetime('now', :window) {_AUTHOR}
          AND rf.category LIKE '%security%'
        GROUP BY rf.severity, rf.category
        ORDER BY count DESC
        LIMIT :limit
    """),
    "quality_trends": NamedQuery(f"""
        SELECT DATE(cr.created_at) AS date,
               AVG(cr.overall_score) AS avg_score,
               COUNT(*) AS review_count
        FROM code_reviews cr
        JOIN pull_requests pr ON cr.pull_request_id = pr.id
        WHERE cr.created_at > datetime('now', :window) {_AUTHOR}
        GROUP BY DATE(cr.created_at)
        ORDER BY date DESC
        LIMIT :limit
    """),
    "file_hotspots": NamedQuery(f"""
        SELECT rf.file_path, COUNT(*) AS issue_count,
               AVG(CASE WHEN rf.severity = 'CRITICAL' THEN 4
                        WHEN rf.severity = 'HIGH' THEN 3
                        WHEN rf.severity = 'MEDIUM' THEN 2
                        ELSE 1 END) AS severity_score
        FROM review_findings rf
        JOIN code_reviews cr ON rf.review_id = cr.id
        JOIN pull_requests pr ON cr.pull_request_id = pr.id
        WHERE cr.created_at > datetime('now', :window) {_AUTHOR}
        GROUP BY rf.file_path
        HAVING COUNT(*) > 1
        ORDER BY issue_count DESC, severity_score DESC
        LIMIT :limit
    """, default_limit=15),
}

DATABASE_DESCRIPTOR = ToolDescriptor(
    name=ToolId.DATABASE.value,
    description=(
        "Query database for metrics, statistics, and historical data about code "
        "reviews, pull requests, and quality trends. Only predefined safe queries "
        "are allowed."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Predefined query name to execute",
                "enum": list(NAMED_QUERIES),
            },
            "parameters": {
                "type": "object",
                "description": "Query parameters (if supported)",
                "properties": {
                    "limit": {"type": "integer", "minimum": 1, "description": "Result limit"},
                    "days": {
                        "type": "integer",
                        "minimum": 1,
                        "description": "Number of days to look back",
                    },
                    "author": {"type": "string", "description": "Filter by author"},
                },
            },
        },
        "required": ["query"],
    },
    required_capabilities=frozenset([Capability.DATABASE_READ.value]),
)


class DatabaseTool(Tool):
    descriptor = DATABASE_DESCRIPTOR

    def __init__(
        self,
        client: SQLiteClient,
        *,
        ensure_schema: bool = True,
        bounds: Optional[ToolBounds] = None,
        logger: Optional[Any] = None,
    ):
        self._bounds = bounds or get_tool_bounds()
        super().__init__(timeout_seconds=self._bounds.tool_timeout_seconds, logger=logger)
        self._client = client
        self._ensure_schema = ensure_schema
        self._connect_lock = asyncio.Lock()

    async def _ensure_connected(self) -> None:
        async with self._connect_lock:
            if not self._client.is_connected:
                await self._client.connect()
                if self._ensure_schema:
                    await self._client.initialize_schema(REVIEW_SCHEMA)

    async def aclose(self) -> None:
        await self._client.disconnect()

    async def is_available(self) -> bool:
        try:
            await self._ensure_connected()
            return await self._client.fetch_one("SELECT 1 AS ok") is not None
        except Exception as exc:
            self._logger.warning("database_unavailable", error=str(exc))
            return False

    def validate(self, parameters: Mapping[str, Any]) -> Optional[str]:
        query = parameters.get("query")
        if isinstance(query, str) and query not in NAMED_QUERIES:
            return (
                f"Unknown query: {query}. Available queries: "
                + ", ".join(NAMED_QUERIES)
            )
        return super().validate(parameters)

    def bind_parameters(self, named: NamedQuery, params: Dict[str, Any]) -> Dict[str, Any]:
        """Clamp caller parameters into SQL bind values."""
        limit = min(int(params.get("limit", named.default_limit)), self._bounds.max_query_limit)
        days = min(int(params.get("days", named.default_days)), self._bounds.max_query_days)
        author = params.get("author") or None
        return {"limit": limit, "window": f"-{days} days", "author": author}

    async def _run(self, parameters: Dict[str, Any]) -> ToolResult:
        query_name = parameters["query"]
        named = NAMED_QUERIES[query_name]
        binds = self.bind_parameters(named, sub_parameters(parameters))

        try:
            await self._ensure_connected()
            rows = await self._client.fetch_all(named.sql, binds)
        except Exception as exc:
            self._logger.warning("database_query_failed", query=query_name, error=str(exc))
            return ToolResult.failure(f"Database query failed: {exc}")

        return ToolResult.ok(
            rows,
            {
                "query": query_name,
                "result_count": len(rows),
                "limit": binds["limit"],
                "execution_time": int(time.time() * 1000),
            },
            mime_type="application/json",
        )


__all__ = ["DatabaseTool", "DATABASE_DESCRIPTOR", "NAMED_QUERIES", "NamedQuery"]
