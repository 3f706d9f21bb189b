"""Local SQLite database for the encrypted settings store

CalQ keeps every persisted value in ONE SQLite file (calq.db in the data
directory, CALQ_DB_PATH to override). Traffic is a handful of reads per bridge
call plus two scheduled digests a day, so connections are opened per use
instead of pooled.

Provides:
- Environment-aware database path resolution
- Connection and transaction context managers
- Retry with backoff on SQLITE_BUSY (bridge calls and scheduler jobs run on
  different threads)
- Idempotent schema creation and validation
"""

from __future__ import annotations

import random
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import wraps
from pathlib import Path
from typing import Any, TypeVar

from calq import config
from calq.observability.logging import get_logger
from calq.observability.telemetry import counter

F = TypeVar("F", bound=Callable[..., Any])

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    encrypted_value TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
)
"""

REQUIRED_TABLES = {"settings"}


def retry_on_db_lock(
    max_retries: int = config.DB_RETRY_MAX,
    base_delay: float = config.DB_RETRY_BASE_DELAY,
    max_delay: float = config.DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Decorator to retry database operations on SQLITE_BUSY errors

    Args:
        max_retries: Maximum number of retry attempts (default: 5)
        base_delay: Initial delay in seconds (default: 0.1)
        max_delay: Maximum delay between retries (default: 2.0)

    Side Effects:
        - Sleeps between retries (exponential backoff with jitter)
        - Logs a warning per retry and an error when retries are exhausted
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)

                except sqlite3.OperationalError as e:
                    message = str(e).lower()
                    if "locked" not in message and "busy" not in message:
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            "Database lock retry exhausted after %d attempts: %s",
                            max_retries,
                            e,
                        )
                        counter("database.lock_retry_exhausted")
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    sleep_time = delay + random.uniform(0, delay * config.DB_RETRY_JITTER)
                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.2fs: %s",
                        attempt + 1,
                        max_retries,
                        sleep_time,
                        e,
                    )
                    time.sleep(sleep_time)

            raise RuntimeError("unreachable")  # pragma: no cover

        return wrapper  # type: ignore[return-value]

    return decorator


def get_db_path(override: Path | str | None = None) -> Path:
    """Resolve the database path: explicit override first, then config."""
    if override is not None:
        return Path(override)
    return config.DB_PATH


def _connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(
        str(db_path),
        timeout=config.DB_CONNECT_TIMEOUT,
        check_same_thread=False,
    )
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db_connection(db_path: Path | str | None = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Open a database connection (context manager)

    Usage:
        with get_db_connection() as conn:
            row = conn.execute("SELECT * FROM settings WHERE key = ?", (key,)).fetchone()

    Raises:
        FileNotFoundError: If the database has not been initialized
    """
    path = get_db_path(db_path)

    if not path.exists():
        raise FileNotFoundError(f"Database not found: {path}. Call init_database() first.")

    conn = _connect(path)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def db_transaction(db_path: Path | str | None = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database transactions

    Side Effects:
        - Commits on success, rolls back on exception
    """
    with get_db_connection(db_path) as conn:
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise


def init_database(db_path: Path | str | None = None) -> Path:
    """
    Initialize database with schema (idempotent)

    Side Effects:
        - Creates the data directory and calq.db if missing
        - Creates the settings table if missing

    Returns:
        The path of the initialized database
    """
    path = get_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(path)
    try:
        conn.execute(SCHEMA)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database ready at %s", path)
    return path


def validate_schema(db_path: Path | str | None = None) -> bool:
    """
    Validate database has expected schema

    Raises:
        ValueError: If tables are missing
    """
    with get_db_connection(db_path) as conn:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()

    missing = REQUIRED_TABLES - {row["name"] for row in rows}
    if missing:
        raise ValueError(f"Missing tables: {', '.join(sorted(missing))}")
    return True
