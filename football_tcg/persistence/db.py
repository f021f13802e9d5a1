"""
Database connection, transactions and initialization.

Connections run in autocommit mode: a single statement outside `transaction()` commits
on its own. Multi-step writes go through `transaction()`, which takes the SQLite write
lock up front (BEGIN IMMEDIATE) so read-check-write sequences cannot interleave.
"""
from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .schema import all_schema_sql

# Seconds to wait for another writer to release the lock
BUSY_TIMEOUT = 30.0


# Default DB path (project root / data / app.db)
def _default_db_path() -> Path:
    from football_tcg.config import get_settings

    configured = get_settings().database_path
    if configured:
        return Path(configured)
    return Path(__file__).resolve().parent.parent.parent / "data" / "app.db"


_db_path: Path | None = None


def set_db_path(path: str | Path) -> None:
    """Set the database path. Call before first get_connection if not using default."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    """Return the current database path."""
    if _db_path is not None:
        return _db_path
    return _default_db_path()


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """
    Return a new autocommit SQLite connection.
    Use as context manager or ensure close() is called.
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run the block as one atomic unit. Commits on success, rolls back on any error.
    Nested use joins the outer transaction.
    """
    if conn.in_transaction:
        yield conn
        return
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def _seed_default_formation(conn: sqlite3.Connection) -> None:
    from football_tcg.simulation.strength import DEFAULT_FORMATION

    conn.execute(
        "INSERT OR IGNORE INTO formations (id, name, positions, created_at) VALUES (?, ?, ?, ?)",
        (
            DEFAULT_FORMATION.id,
            DEFAULT_FORMATION.name,
            json.dumps(list(DEFAULT_FORMATION.positions)),
            datetime.now(timezone.utc).isoformat(timespec="microseconds"),
        ),
    )


def init_db(db_path: str | Path | None = None) -> None:
    """Create or ensure all tables exist and the default formation is present."""
    conn = get_connection(db_path)
    try:
        conn.executescript(all_schema_sql())
        _seed_default_formation(conn)
    finally:
        conn.close()
