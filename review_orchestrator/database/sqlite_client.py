"""SQLite database client for review history.

Thin async wrapper over aiosqlite returning rows as dicts.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

DEFAULT_DB_PATH = "./data/reviews.db"


class SQLiteClient:
    """Async SQLite client used by the database tool."""

    def __init__(self, database_path: Optional[str] = None):
        self.database_path = database_path or os.getenv(
            "REVIEW_ORCHESTRATOR_SQLITE_PATH", DEFAULT_DB_PATH
        )
        self._db: Optional[aiosqlite.Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._db is not None

    async def connect(self) -> None:
        if self._db is not None:
            return  # idempotent
        if self.database_path != ":memory:":
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self.database_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")

    async def disconnect(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("SQLiteClient is not connected")
        return self._db

    async def fetch_one(self, query: str, params=None) -> Optional[Dict[str, Any]]:
        cursor = await self._connection().execute(query, self._convert_params(params))
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def fetch_all(self, query: str, params=None) -> List[Dict[str, Any]]:
        cursor = await self._connection().execute(query, self._convert_params(params))
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def insert(self, table: str, data: Dict[str, Any]) -> None:
        db = self._connection()
        cols = ", ".join(data.keys())
        placeholders = ", ".join(f":{k}" for k in data.keys())
        await db.execute(f"INSERT INTO {table} ({cols}) VALUES ({placeholders})", data)
        await db.commit()

    async def initialize_schema(self, ddl: str) -> None:
        await self._connection().executescript(ddl)

    # -- internals --

    @staticmethod
    def _convert_params(params):
        if params is None:
            return []
        if isinstance(params, dict):
            return params
        return list(params)
