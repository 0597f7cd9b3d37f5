"""Review history storage read by the database tool."""

from review_orchestrator.database.schema import REVIEW_SCHEMA
from review_orchestrator.database.sqlite_client import SQLiteClient

__all__ = ["REVIEW_SCHEMA", "SQLiteClient"]
