"""Storage - SQLite-backed repositories and typed settings access"""

from __future__ import annotations

import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from calq.infrastructure.database import db_transaction, get_db_connection


class BaseRepository:
    """Base class for database repositories with common query helpers."""

    def __init__(self, table_name: str, db_path: Path | str | None = None) -> None:
        if not isinstance(table_name, str) or not table_name.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {table_name}")
        self.table_name = table_name
        self.db_path = db_path

    @contextmanager
    def _get_conn(self) -> Generator[sqlite3.Connection, None, None]:
        with get_db_connection(self.db_path) as conn:
            yield conn

    def query_one(self, query: str, params: tuple[Any, ...] | None = None) -> sqlite3.Row | None:
        with self._get_conn() as conn:
            return conn.execute(query, params or ()).fetchone()

    def execute(self, query: str, params: tuple[Any, ...] | None = None) -> int:
        """
        Execute a write query (INSERT, UPDATE, DELETE)

        Returns:
            Number of rows affected

        Side Effects:
            - Commits automatically (via db_transaction), rolls back on error
        """
        with db_transaction(self.db_path) as conn:
            cursor = conn.execute(query, params or ())
            return cursor.rowcount


__all__ = ["BaseRepository"]
