"""SQLite storage for chats and extraction scripts."""

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from config import DB_PATH
from models import Chat, ChatData, ChatDataError, Script

logger = logging.getLogger(__name__)


def now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


SCHEMA = """
CREATE TABLE IF NOT EXISTS chats (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    chat_id INTEGER NOT NULL UNIQUE,
    data TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME
);

CREATE TABLE IF NOT EXISTS scripts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pattern TEXT NOT NULL,
    script TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
"""


def get_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path or DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def init_db(db_path: Optional[str] = None):
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.close()


# ──────────────────────────────────────────────
# Chats
# ──────────────────────────────────────────────

def _row_to_chat(row: sqlite3.Row) -> Chat:
    return Chat(chat_id=row["chat_id"], data=ChatData.from_db(row["data"]), id=row["id"])


def get_all_chats(conn: sqlite3.Connection) -> list[Chat]:
    """All chats with readable data. Rows that fail to decode are logged and skipped."""
    chats = []
    for row in conn.execute("SELECT * FROM chats ORDER BY id").fetchall():
        try:
            chats.append(_row_to_chat(row))
        except ChatDataError as e:
            logger.error(f"Skipping chat {row['chat_id']}: {e}")
    return chats


def get_chat(conn: sqlite3.Connection, chat_id: int) -> Optional[Chat]:
    """Look up one chat. Raises ChatDataError if its stored data is malformed."""
    row = conn.execute(
        "SELECT * FROM chats WHERE chat_id = ?", (chat_id,)
    ).fetchone()
    return _row_to_chat(row) if row else None


def save_chat(conn: sqlite3.Connection, chat: Chat) -> Chat:
    """Insert or replace the chat's data. Returns the chat with its row id."""
    conn.execute(
        """INSERT INTO chats (chat_id, data, updated_at) VALUES (?, ?, ?)
           ON CONFLICT(chat_id) DO UPDATE SET
               data = excluded.data, updated_at = excluded.updated_at""",
        (chat.chat_id, chat.data.to_db(), now()),
    )
    conn.commit()
    row = conn.execute(
        "SELECT id FROM chats WHERE chat_id = ?", (chat.chat_id,)
    ).fetchone()
    chat.id = row["id"]
    return chat


# ──────────────────────────────────────────────
# Scripts
# ──────────────────────────────────────────────

def get_all_scripts(conn: sqlite3.Connection) -> list[Script]:
    rows = conn.execute("SELECT id, pattern, script FROM scripts ORDER BY id").fetchall()
    return [Script(pattern=r["pattern"], script=r["script"], id=r["id"]) for r in rows]


def save_script(conn: sqlite3.Connection, script: Script) -> Script:
    cursor = conn.execute(
        "INSERT INTO scripts (pattern, script) VALUES (?, ?)",
        (script.pattern, script.script),
    )
    conn.commit()
    script.id = cursor.lastrowid
    return script
