"""Storage - base repository over the pooled SQLite connection"""

from __future__ import annotations

import sqlite3
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from typing import Any

from scrollwise.infrastructure.database import db_transaction, get_db_connection


class BaseRepository:
    """Base class for database repositories with common query helpers."""

    def __init__(self, table_name: str) -> None:
        if not isinstance(table_name, str) or not table_name.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {table_name}")
        self.table_name = table_name

    @contextmanager
    def _get_conn(self) -> Generator[sqlite3.Connection, None, None]:
        with get_db_connection() as conn:
            yield conn

    def query_one(self, query: str, params: Iterable[Any] | None = None) -> sqlite3.Row | None:
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(query, tuple(params or ()))
            return cursor.fetchone()

    def query_all(self, query: str, params: Iterable[Any] | None = None) -> list[sqlite3.Row]:
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(query, tuple(params or ()))
            return cursor.fetchall()

    def execute(self, query: str, params: Iterable[Any] | dict[str, Any] | None = None) -> int:
        """
        Execute a write query (INSERT, UPDATE, DELETE)

        Returns:
            Number of rows affected

        Side Effects:
            - Writes to the table named in the query
            - Commits on success, rolls back on error (via db_transaction)
        """
        if params is None:
            params = ()
        elif not isinstance(params, dict):
            params = tuple(params)
        with db_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.rowcount


__all__ = ["BaseRepository"]
