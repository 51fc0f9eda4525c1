# ahamai/database.py
import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from . import config

logger = logging.getLogger(__name__)

# ------------------------------
# Connection
# ------------------------------

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _connect_db() -> sqlite3.Connection:
    """Opens the configured database, creating its parent directory first."""
    path = config.db_path()
    db_dir = os.path.dirname(path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)
    return sqlite3.connect(path)


# ------------------------------
# Schema
# ------------------------------

# columns added after the first release of the sessions table
_SESSION_COLUMNS = {
    "user_id": "TEXT NOT NULL DEFAULT 'local'",
    "is_pinned": "INTEGER NOT NULL DEFAULT 0",
}


def init_db():
    """
    Creates the tables if needed and upgrades an older sessions table in place.
    """
    conn = _connect_db()
    c = conn.cursor()

    c.execute("""
        CREATE TABLE IF NOT EXISTS user_profiles (
            id TEXT PRIMARY KEY, name TEXT, created_at TEXT
        )
    """)
    c.execute("""
        CREATE TABLE IF NOT EXISTS sessions (
            id TEXT PRIMARY KEY, user_id TEXT NOT NULL DEFAULT 'local', title TEXT,
            created_at TEXT, is_pinned INTEGER NOT NULL DEFAULT 0
        )
    """)
    c.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id TEXT, role TEXT, content TEXT, tokens INTEGER, timestamp TEXT,
            FOREIGN KEY(session_id) REFERENCES sessions(id)
        )
    """)
    c.execute("""
        CREATE TABLE IF NOT EXISTS tool_usage (
            user_id TEXT NOT NULL, tool TEXT NOT NULL, count INTEGER NOT NULL DEFAULT 0, last_used TEXT,
            PRIMARY KEY (user_id, tool)
        )
    """)
    c.execute("""
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY, value TEXT, last_updated TEXT
        )
    """)

    c.execute("PRAGMA table_info(sessions)")
    existing = {row[1] for row in c.fetchall()}
    for column, ddl in _SESSION_COLUMNS.items():
        if column not in existing:
            logger.info("Upgrading sessions table: adding %s", column)
            c.execute(f"ALTER TABLE sessions ADD COLUMN {column} {ddl}")

    conn.commit()
    conn.close()


# ------------------------------
# Users
# ------------------------------

def ensure_user(user_id: str, name: Optional[str] = None) -> None:
    conn = _connect_db()
    c = conn.cursor()
    c.execute("INSERT OR IGNORE INTO user_profiles (id, name, created_at) VALUES (?, ?, ?)",
              (user_id, name, _now()))
    conn.commit()
    conn.close()


def get_user_profile(user_id: str) -> Optional[Dict[str, Any]]:
    conn = _connect_db()
    conn.row_factory = sqlite3.Row
    c = conn.cursor()
    c.execute("SELECT id, name, created_at FROM user_profiles WHERE id = ?", (user_id,))
    row = c.fetchone()
    conn.close()
    return dict(row) if row else None


def get_last_active(user_id: str) -> Optional[str]:
    conn = _connect_db()
    c = conn.cursor()
    c.execute("""
        SELECT MAX(m.timestamp) FROM messages m
        JOIN sessions s ON s.id = m.session_id
        WHERE s.user_id = ?
    """, (user_id,))
    row = c.fetchone()
    conn.close()
    return row[0] if row else None


# ------------------------------
# Sessions & Messages
# ------------------------------

def add_message(session_id: str, role: str, content: str, tokens: int = 0,
                user_id: str = "local", title: Optional[str] = None) -> None:
    now = _now()
    conn = _connect_db()
    c = conn.cursor()

    c.execute("INSERT OR IGNORE INTO user_profiles (id, name, created_at) VALUES (?, ?, ?)",
              (user_id, None, now))
    c.execute("INSERT OR IGNORE INTO sessions (id, user_id, title, created_at) VALUES (?, ?, ?, ?)",
              (session_id, user_id, title or f"Session {session_id[:8]}", now))
    c.execute("INSERT INTO messages (session_id, role, content, tokens, timestamp) VALUES (?, ?, ?, ?, ?)",
              (session_id, role, content, tokens, now))

    conn.commit()
    conn.close()


def get_chat_history(session_id: str, limit: int = 200) -> List[Dict[str, Any]]:
    """Latest `limit` messages of a session, oldest first."""
    conn = _connect_db()
    conn.row_factory = sqlite3.Row
    c = conn.cursor()
    c.execute("""
        SELECT role, content, timestamp, tokens FROM (
            SELECT id, role, content, timestamp, tokens
            FROM messages
            WHERE session_id = ?
            ORDER BY id DESC
            LIMIT ?
        ) ORDER BY id ASC
    """, (session_id, limit))
    rows = c.fetchall()
    conn.close()
    return [dict(row) for row in rows]


def set_session_pinned(session_id: str, pinned: bool) -> bool:
    conn = _connect_db()
    c = conn.cursor()
    c.execute("UPDATE sessions SET is_pinned = ? WHERE id = ?", (1 if pinned else 0, session_id))
    rows = c.rowcount
    conn.commit()
    conn.close()
    return rows > 0


def list_user_sessions(user_id: str, since: Optional[str] = None) -> List[Dict[str, Any]]:
    """Sessions of a user, newest first, with message count and last message."""
    conn = _connect_db()
    conn.row_factory = sqlite3.Row
    c = conn.cursor()
    c.execute("""
        SELECT s.id, s.title, s.created_at, s.is_pinned,
               COUNT(m.id) AS message_count,
               (SELECT content FROM messages WHERE session_id = s.id ORDER BY id DESC LIMIT 1) AS last_message
        FROM sessions s
        LEFT JOIN messages m ON m.session_id = s.id
        WHERE s.user_id = ? AND s.created_at >= ?
        GROUP BY s.id
        ORDER BY s.created_at DESC
    """, (user_id, since or ""))
    rows = c.fetchall()
    conn.close()
    return [{**dict(row), "is_pinned": bool(row["is_pinned"])} for row in rows]


def count_pinned_sessions(user_id: str) -> int:
    conn = _connect_db()
    c = conn.cursor()
    c.execute("SELECT COUNT(*) FROM sessions WHERE user_id = ? AND is_pinned = 1", (user_id,))
    count = c.fetchone()[0]
    conn.close()
    return count


# ------------------------------
# Tool Usage
# ------------------------------

def record_tool_usage(user_id: str, tool: str) -> None:
    conn = _connect_db()
    c = conn.cursor()
    c.execute("""
        INSERT INTO tool_usage (user_id, tool, count, last_used)
        VALUES (?, ?, 1, ?)
        ON CONFLICT(user_id, tool) DO UPDATE SET
            count = count + 1, last_used = excluded.last_used
    """, (user_id, tool, _now()))
    conn.commit()
    conn.close()


def get_tool_usage(user_id: str) -> Dict[str, int]:
    conn = _connect_db()
    c = conn.cursor()
    c.execute("SELECT tool, count FROM tool_usage WHERE user_id = ? ORDER BY count DESC, tool", (user_id,))
    rows = c.fetchall()
    conn.close()
    return {row[0]: row[1] for row in rows}


# ------------------------------
# App Settings
# ------------------------------

def get_app_setting(key: str) -> Optional[str]:
    """Retrieves a single setting value by key."""
    conn = _connect_db()
    c = conn.cursor()
    c.execute("SELECT value FROM app_settings WHERE key = ?", (key,))
    row = c.fetchone()
    conn.close()
    return row[0] if row else None


def set_app_setting(key: str, value: str) -> None:
    """Upserts a setting value."""
    conn = _connect_db()
    c = conn.cursor()
    c.execute("""
        INSERT INTO app_settings (key, value, last_updated)
        VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET
            value=excluded.value, last_updated=excluded.last_updated
    """, (key, value, _now()))
    conn.commit()
    conn.close()
