"""
Database schema initialization for Scrollwise.

Contains the SQL schema and initialization logic, kept apart from database.py
so the pool module stays focused on connections.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from scrollwise.observability.logging import get_logger

logger = get_logger(__name__)

EXPECTED_TABLES = ("users", "tracking_events", "daily_metrics", "insights")

# Columns added after the first release; ALTERed onto older databases
ADDED_EVENT_COLUMNS = {
    "scroll_speed": "REAL",
    "max_scroll_depth": "REAL",
    "interaction_type": "TEXT",
}


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Safe to run multiple times - uses CREATE TABLE IF NOT EXISTS.

    Side Effects:
    - Creates tables in scrollwise.db if they don't exist
    - Creates indexes, including the two uniqueness guards that make
      keyed ingestion and insight caching race-safe
    - Adds columns missing from an older tracking_events table
    - Creates the data directory if needed
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        _add_missing_event_columns(conn)
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                email TEXT,
                display_name TEXT,
                tracking_paused INTEGER NOT NULL DEFAULT 0,
                account_status TEXT NOT NULL DEFAULT 'pending',
                presence_last_event_at TEXT,
                presence_last_event_type TEXT,
                presence_last_url TEXT,
                presence_last_domain TEXT,
                presence_last_duration_ms INTEGER,
                presence_last_scroll_distance REAL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tracking_events (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                type TEXT NOT NULL CHECK (type IN ('scroll', 'click', 'idle', 'focus', 'blur')),
                duration_ms INTEGER CHECK (duration_ms IS NULL OR duration_ms >= 0),
                scroll_distance REAL CHECK (scroll_distance IS NULL OR scroll_distance >= 0),
                scroll_speed REAL CHECK (scroll_speed IS NULL OR scroll_speed >= 0),
                max_scroll_depth REAL
                    CHECK (max_scroll_depth IS NULL OR max_scroll_depth BETWEEN 0 AND 100),
                interaction_type TEXT
                    CHECK (interaction_type IS NULL OR interaction_type IN ('passive', 'active')),
                url TEXT NOT NULL,
                domain TEXT NOT NULL,
                metadata TEXT NOT NULL DEFAULT '{}',
                started_at TEXT,
                created_at TEXT NOT NULL,
                idempotency_key TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_tracking_events_user_created
            ON tracking_events(user_id, created_at);

            CREATE INDEX IF NOT EXISTS idx_tracking_events_user_domain
            ON tracking_events(user_id, domain);

            CREATE UNIQUE INDEX IF NOT EXISTS idx_tracking_events_user_idempotency
            ON tracking_events(user_id, idempotency_key)
            WHERE idempotency_key IS NOT NULL;

            CREATE TABLE IF NOT EXISTS daily_metrics (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                date TEXT NOT NULL,
                totals TEXT NOT NULL,
                breakdown TEXT NOT NULL,
                last_computed_at TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE(user_id, date)
            );

            CREATE TABLE IF NOT EXISTS insights (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                title TEXT NOT NULL,
                body TEXT NOT NULL,
                metric_date TEXT NOT NULL,
                tags TEXT NOT NULL DEFAULT '[]',
                metric_signature TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_insights_user_updated
            ON insights(user_id, updated_at DESC, created_at DESC);

            CREATE INDEX IF NOT EXISTS idx_insights_user_date_updated
            ON insights(user_id, metric_date, updated_at DESC);

            CREATE UNIQUE INDEX IF NOT EXISTS idx_insights_user_date_signature
            ON insights(user_id, metric_date, metric_signature);
        """)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database schema ready at %s", db_path)


def _add_missing_event_columns(conn: sqlite3.Connection) -> None:
    present = {row[1] for row in conn.execute("PRAGMA table_info(tracking_events)")}
    if not present:
        return
    for column, column_type in ADDED_EVENT_COLUMNS.items():
        if column not in present:
            logger.info("Adding tracking_events.%s", column)
            conn.execute(f"ALTER TABLE tracking_events ADD COLUMN {column} {column_type}")
    conn.commit()


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Validate database has expected schema

    Raises:
        ValueError: If tables are missing
    """
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    present = {row[0] for row in rows}
    missing = [table for table in EXPECTED_TABLES if table not in present]
    if missing:
        raise ValueError(f"Missing tables: {', '.join(missing)}")
    return True
