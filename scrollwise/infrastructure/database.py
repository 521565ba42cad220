"""Centralized database configuration

**DATABASE POLICY**: Scrollwise uses ONE SQLite database: scrollwise/data/scrollwise.db

Tracking events, daily metrics, insights and the user presence snapshot all
live in this database and are reached through get_db_connection() /
db_transaction().

Provides:
- Connection pooling (reuses connections across requests)
- Single source of truth for database path
- Retry with backoff on SQLITE_BUSY
- Schema initialization
"""

from __future__ import annotations

import atexit
import os
import random
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import lru_cache, wraps
from pathlib import Path
from queue import Empty, Full, Queue
from threading import Lock
from typing import Any, TypeVar

from scrollwise.config import (
    DB_CONNECT_TIMEOUT,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
    DB_TEMP_CONN_MAX,
)
from scrollwise.observability.logging import get_logger
from scrollwise.observability.telemetry import counter, log_event

F = TypeVar("F", bound=Callable[..., Any])

# Database path
DB_PATH = Path(__file__).parent.parent / "data" / "scrollwise.db"

logger = get_logger(__name__)


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Decorator to retry database operations on SQLITE_BUSY errors

    Concurrent ingestion calls for the same user (several tabs or devices)
    can hit "database is locked". Retries use exponential backoff with jitter.

    Args:
        max_retries: Maximum number of retry attempts (default: 5)
        base_delay: Initial delay in seconds (default: 0.1)
        max_delay: Maximum delay between retries (default: 2.0)

    Side Effects:
        - Retries wrapped function up to max_retries times on database lock errors
        - Sleeps between retries
        - Logs a warning for each retry attempt
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_error = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)

                except sqlite3.OperationalError as e:
                    last_error = e

                    # Only retry on lock errors
                    if "locked" not in str(e).lower() and "busy" not in str(e).lower():
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            "Database lock retry exhausted after %d attempts: %s",
                            max_retries,
                            e,
                        )
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    sleep_time = delay + random.uniform(0, delay * DB_RETRY_JITTER)

                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.2fs: %s",
                        attempt + 1,
                        max_retries,
                        sleep_time,
                        e,
                    )

                    time.sleep(sleep_time)

            raise last_error  # type: ignore

        return wrapper  # type: ignore[return-value]

    return decorator


class DatabaseConnectionPool:
    """
    Thread-safe connection pool for SQLite

    Maintains a pool of reusable database connections configured with WAL
    mode and row factories.
    """

    def __init__(self, db_path, pool_size=DB_POOL_SIZE):
        self.db_path = db_path
        self.pool_size = pool_size
        self.pool = Queue(maxsize=pool_size)
        self.lock = Lock()
        self.closed = False
        self.temp_conn_count = 0
        self.temp_conn_max = DB_TEMP_CONN_MAX
        # ids of connections opened past pool_size; closed on return
        self._temp_conn_ids: set[int] = set()
        self._initialize_pool()

        atexit.register(self.close_all)

    def _create_connection(self):
        """
        Create optimized SQLite connection

        Raises:
            RuntimeError: If database corruption is detected
        """
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=DB_CONNECT_TIMEOUT,
            check_same_thread=False,  # Allow use across threads
        )

        try:
            result = conn.execute("PRAGMA quick_check(1)").fetchone()
            if result[0] != "ok":
                conn.close()
                logger.critical("Database corruption detected: %s", result[0])
                counter("database.corruption_detected")
                raise RuntimeError(f"Database corruption detected: {result[0]}")
        except sqlite3.DatabaseError as e:
            conn.close()
            logger.critical("Database corruption or error during integrity check: %s", e)
            counter("database.corruption_detected")
            raise RuntimeError(f"Database corruption detected: {e}") from e

        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.row_factory = sqlite3.Row

        return conn

    def _initialize_pool(self):
        for _ in range(self.pool_size):
            try:
                self.pool.put(self._create_connection())
            except Exception as e:
                logger.warning("Failed to create pooled connection: %s", e)

    def get_connection(self) -> sqlite3.Connection:
        """
        Get connection from pool

        Returns:
            sqlite3.Connection from pool (or new connection if pool exhausted)

        Raises:
            RuntimeError: If pool closed or temporary connection limit exceeded
        """
        if self.closed:
            raise RuntimeError("Connection pool has been closed")

        try:
            return self.pool.get(block=True, timeout=DB_POOL_TIMEOUT)
        except Empty:
            with self.lock:
                if self.temp_conn_count >= self.temp_conn_max:
                    logger.critical(
                        "Temporary connection limit reached: %d/%d (pool_size=%d)",
                        self.temp_conn_count,
                        self.temp_conn_max,
                        self.pool_size,
                    )
                    msg = (
                        "Database connection pool exhausted and temporary "
                        f"connection limit reached. pool_size={self.pool_size}, "
                        f"temp_conn_count={self.temp_conn_count}, "
                        f"temp_conn_max={self.temp_conn_max}."
                    )
                    raise RuntimeError(msg) from None

                self.temp_conn_count += 1
                temp_count = self.temp_conn_count

            logger.error(
                "Connection pool exhausted (pool_size=%d). Creating temporary connection %d/%d.",
                self.pool_size,
                temp_count,
                self.temp_conn_max,
            )
            log_event(
                "database.pool_exhausted",
                pool_size=self.pool_size,
                temp_conn_count=temp_count,
                severity="error",
            )

            conn = self._create_connection()
            with self.lock:
                self._temp_conn_ids.add(id(conn))
            return conn

    def return_connection(self, conn: sqlite3.Connection) -> None:
        """
        Return connection to pool

        Side Effects:
            - Closes temporary connections and decrements temp_conn_count
            - Returns pooled connections to the pool for reuse
        """
        with self.lock:
            is_temp = id(conn) in self._temp_conn_ids
            self._temp_conn_ids.discard(id(conn))

        if self.closed or is_temp:
            conn.close()
            if is_temp:
                with self.lock:
                    self.temp_conn_count -= 1
                logger.debug("Closed temporary connection (remaining: %d)", self.temp_conn_count)
            return

        try:
            self.pool.put_nowait(conn)
        except Full:
            logger.warning("Failed to return connection to pool (pool full), closing")
            conn.close()

    def close_all(self) -> None:
        """
        Close all pooled connections (cleanup)

        Side Effects:
            - Sets self.closed flag to True
            - Closes all database connections in pool
        """
        self.closed = True
        while not self.pool.empty():
            try:
                conn = self.pool.get_nowait()
                conn.close()
            except Empty:
                break


@lru_cache(maxsize=1)
def get_pool() -> DatabaseConnectionPool:
    """
    Get or create global connection pool

    Thread-safe singleton via @lru_cache.
    """
    return DatabaseConnectionPool(get_db_path(), pool_size=DB_POOL_SIZE)


def reset_pool() -> None:
    """
    Close the global pool and forget it so the next call reopens it.

    Used when SCROLLWISE_DB_PATH changes (tests, maintenance scripts).
    """
    if get_pool.cache_info().currsize:
        get_pool().close_all()
    get_pool.cache_clear()


def get_db_path() -> Path:
    """
    Get database path (environment-aware)

    Checks SCROLLWISE_DB_PATH environment variable first,
    falls back to default location.
    """
    if env_path := os.getenv("SCROLLWISE_DB_PATH"):
        return Path(env_path)

    return DB_PATH


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Get pooled database connection (context manager)

    Usage:
        with get_db_connection() as conn:
            rows = conn.execute("SELECT * FROM insights").fetchall()
        # Connection automatically returned to pool

    Raises:
        FileNotFoundError: If database doesn't exist
    """
    db_path = get_db_path()

    if not db_path.exists():
        raise FileNotFoundError(
            f"Database not found: {db_path}\nRun init_database() or start the API once."
        )

    pool = get_pool()
    conn = pool.get_connection()
    try:
        yield conn
    finally:
        pool.return_connection(conn)


@contextmanager
def db_transaction() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database transactions

    Automatically commits on success, rolls back on error.

    Usage:
        with db_transaction() as conn:
            conn.execute("INSERT INTO tracking_events ...")
        # Auto-commits on success, rolls back on error
    """
    with get_db_connection() as conn:
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            raise e


def get_pool_stats() -> dict[str, Any]:
    """
    Get connection pool health metrics

    Returns:
        dict with pool size, available connections, and usage stats
    """
    pool = get_pool()
    available = pool.pool.qsize()
    in_use = pool.pool_size - available
    usage_percent = (in_use / pool.pool_size) * 100 if pool.pool_size > 0 else 0

    return {
        "pool_size": pool.pool_size,
        "available": available,
        "in_use": in_use,
        "usage_percent": round(usage_percent, 1),
        "closed": pool.closed,
    }


def init_database() -> None:
    """
    Initialize database with schema (idempotent)

    Side Effects:
    - Creates the data directory and database file if needed
    - Creates tables and indexes that don't exist yet
    """
    from scrollwise.infrastructure.database_schema import init_database as _init_database

    _init_database(get_db_path())
