"""SQLite-backed conversation history."""

from __future__ import annotations

import sqlite3
import threading
from datetime import UTC, datetime

from bitmore.channels.events import StoredMessage


class MessageStore:
    """SQLite-based message store with thread-safe access."""

    def __init__(self, db_path: str = ":memory:") -> None:
        self.db_path = db_path
        self._local = threading.local()

    @property
    def _conn(self) -> sqlite3.Connection:
        if not hasattr(self._local, "conn") or self._local.conn is None:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            self._init_db(conn)
            self._local.conn = conn
            return conn
        return self._local.conn  # type: ignore[no-any-return]

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                conversation_id TEXT NOT NULL,
                sender_id TEXT NOT NULL,
                content_type TEXT NOT NULL,
                content TEXT NOT NULL,
                sent_at REAL NOT NULL
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages (conversation_id, sent_at)")
        conn.commit()

    def add_message(self, msg: StoredMessage) -> None:
        self._conn.execute(
            """INSERT OR IGNORE INTO messages
            (id, conversation_id, sender_id, content_type, content, sent_at)
            VALUES (?, ?, ?, ?, ?, ?)""",
            (
                msg.id,
                msg.conversation_id,
                msg.sender_id,
                msg.content_type,
                msg.content,
                msg.sent_at.timestamp(),
            ),
        )
        self._conn.commit()

    def get_messages(self, conversation_id: str) -> list[StoredMessage]:
        rows = self._conn.execute(
            "SELECT * FROM messages WHERE conversation_id = ? ORDER BY sent_at, seq",
            (conversation_id,),
        ).fetchall()
        return [
            StoredMessage(
                id=row["id"],
                conversation_id=row["conversation_id"],
                sender_id=row["sender_id"],
                content=row["content"],
                content_type=row["content_type"],
                sent_at=datetime.fromtimestamp(row["sent_at"], UTC),
            )
            for row in rows
        ]

    def has_conversation(self, conversation_id: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM messages WHERE conversation_id = ? LIMIT 1",
            (conversation_id,),
        ).fetchone()
        return row is not None

    def close(self) -> None:
        if hasattr(self._local, "conn") and self._local.conn:
            self._local.conn.close()
            self._local.conn = None
