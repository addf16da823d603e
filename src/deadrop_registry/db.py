"""SQLite storage for local dead drop registries.

The schema mirrors the in-memory registry state:
- drops: the drop table (id -> sender, recipient, payload, created_at)
- user_drops: the per-user index, ordered by insertion sequence
- registry_state: the next-id counter
- schema_version: applied schema versions

Connection Management:
    with scoped_connection("/path/to/.deaddrop/data.db") as conn:
        init_db_with_conn(conn)
        drop = insert_drop("alice", "bob", b"...", time.time(), conn=conn)

    # In-memory for testing
    with scoped_connection(":memory:") as conn:
        init_db_with_conn(conn)
        ...
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)

# Current schema version (increment when adding migrations)
SCHEMA_VERSION = 1

# Range of a SQLite INTEGER column
SQLITE_MIN_INTEGER = -(2**63)
SQLITE_MAX_INTEGER = 2**63 - 1


# --- Connection Management ---


def get_connection(db_path: str | Path) -> sqlite3.Connection:
    """Create a database connection.

    Args:
        db_path: Database file path. Special value ":memory:" creates an
                 in-memory database.

    Returns:
        SQLite connection with row_factory set to sqlite3.Row.
    """
    if str(db_path) == ":memory:":
        conn = sqlite3.connect(":memory:", check_same_thread=False)
    else:
        conn = sqlite3.connect(str(db_path), check_same_thread=False)
        # Enable WAL mode for better concurrent read/write performance
        conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    logger.debug("Opened registry database at %s", db_path)
    return conn


@contextmanager
def scoped_connection(db_path: str | Path) -> Iterator[sqlite3.Connection]:
    """Context manager for scoped database connections.

    Creates a new connection that is automatically closed when the context exits.

    Args:
        db_path: Path to database file, or ":memory:" for in-memory.

    Yields:
        SQLite connection.
    """
    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


# --- Schema ---


SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        description TEXT
    );

    CREATE TABLE IF NOT EXISTS registry_state (
        key TEXT PRIMARY KEY,
        value INTEGER NOT NULL
    );

    CREATE TABLE IF NOT EXISTS drops (
        id INTEGER PRIMARY KEY,
        sender TEXT NOT NULL,
        recipient TEXT NOT NULL,
        payload BLOB NOT NULL CHECK (length(payload) > 0),
        created_at REAL NOT NULL
    );

    -- No foreign key to drops: index entries outlive deleted drops.
    CREATE TABLE IF NOT EXISTS user_drops (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        principal TEXT NOT NULL,
        drop_id INTEGER NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_user_drops_principal ON user_drops(principal, seq);

    INSERT OR IGNORE INTO registry_state (key, value) VALUES ('next_drop_id', 0);
"""


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Get the current schema version from the database.

    Returns 0 if the schema has not been initialized.
    """
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'schema_version'"
    )
    if cursor.fetchone() is None:
        return 0
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row and row[0] is not None else 0


def init_db_with_conn(conn: sqlite3.Connection) -> None:
    """Initialize database schema with an explicit connection."""
    conn.executescript(SCHEMA_SQL)
    if get_schema_version(conn) < SCHEMA_VERSION:
        conn.execute(
            "INSERT INTO schema_version (version, description) VALUES (?, ?)",
            (SCHEMA_VERSION, "initial drop registry schema"),
        )
        logger.info("Initialized registry schema version %d", SCHEMA_VERSION)
    conn.commit()


def reset_db(conn: sqlite3.Connection) -> None:
    """Reset database (for testing)."""
    conn.executescript("""
        DROP TABLE IF EXISTS user_drops;
        DROP TABLE IF EXISTS drops;
        DROP TABLE IF EXISTS registry_state;
        DROP TABLE IF EXISTS schema_version;
    """)
    conn.commit()
    init_db_with_conn(conn)


# --- Drop Operations ---


def insert_drop(
    sender: str,
    recipient: str,
    payload: bytes,
    created_at: float,
    conn: sqlite3.Connection,
) -> dict[str, Any]:
    """Allocate the next drop id and store a drop with its index entries.

    The counter bump, the drop row and the index rows are written in one
    immediate transaction; nothing is kept if any statement fails.

    Returns:
        dict with keys: id, sender, recipient, payload, created_at
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        row = conn.execute(
            "SELECT value FROM registry_state WHERE key = 'next_drop_id'"
        ).fetchone()
        drop_id = row[0]
        conn.execute(
            "UPDATE registry_state SET value = ? WHERE key = 'next_drop_id'",
            (drop_id + 1,),
        )
        conn.execute(
            """INSERT INTO drops (id, sender, recipient, payload, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (drop_id, sender, recipient, payload, created_at),
        )
        # A self-addressed drop is indexed once
        participants = [sender] if sender == recipient else [sender, recipient]
        conn.executemany(
            "INSERT INTO user_drops (principal, drop_id) VALUES (?, ?)",
            [(principal, drop_id) for principal in participants],
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise

    return {
        "id": drop_id,
        "sender": sender,
        "recipient": recipient,
        "payload": payload,
        "created_at": created_at,
    }


def fits_integer_column(value: int) -> bool:
    """Whether a Python int can be bound to a SQLite INTEGER parameter."""
    return SQLITE_MIN_INTEGER <= value <= SQLITE_MAX_INTEGER


def get_drop(drop_id: int, conn: sqlite3.Connection) -> dict[str, Any] | None:
    """Get a drop by id, or None if it is not in the drop table."""
    cursor = conn.execute(
        "SELECT id, sender, recipient, payload, created_at FROM drops WHERE id = ?",
        (drop_id,),
    )
    row = cursor.fetchone()
    if row is None:
        return None
    data = dict(row)
    data["payload"] = bytes(data["payload"])
    return data


def delete_drop(drop_id: int, conn: sqlite3.Connection) -> bool:
    """Remove a drop from the drop table. Index entries are left in place."""
    cursor = conn.execute("DELETE FROM drops WHERE id = ?", (drop_id,))
    conn.commit()
    return cursor.rowcount > 0


def list_user_drops(principal: str, conn: sqlite3.Connection) -> list[int]:
    """List drop ids indexed for a principal, in creation order."""
    cursor = conn.execute(
        "SELECT drop_id FROM user_drops WHERE principal = ? ORDER BY seq",
        (principal,),
    )
    return [row[0] for row in cursor.fetchall()]


def count_drops(conn: sqlite3.Connection) -> int:
    """Count drops currently in the drop table."""
    row = conn.execute("SELECT COUNT(*) FROM drops").fetchone()
    return row[0]


def get_next_drop_id(conn: sqlite3.Connection) -> int:
    """Peek at the id the next insert will receive."""
    row = conn.execute("SELECT value FROM registry_state WHERE key = 'next_drop_id'").fetchone()
    return row[0]
