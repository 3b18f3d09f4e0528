"""Conversation and turn storage."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from pincer.memory.database import Database, fts_query, utc_now


@dataclass
class Conversation:
    id: str
    title: str
    created_at: str
    updated_at: str


@dataclass
class ConversationTurn:
    """One persisted message within a conversation. Never updated after insert."""
    id: str
    conversation_id: str
    role: str
    content: str
    profile: str
    token_count: int
    created_at: str


class ConversationStore:
    """Append-only turn log grouped into conversations."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, title: str = "New Conversation", conversation_id: str | None = None) -> Conversation:
        conv_id = conversation_id or str(uuid.uuid4())
        now = utc_now()
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO conversations (id, title, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (conv_id, title, now, now),
            )
            conn.commit()
        return Conversation(id=conv_id, title=title, created_at=now, updated_at=now)

    def get(self, conversation_id: str) -> Conversation | None:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
            ).fetchone()
        if not row:
            return None
        return Conversation(row["id"], row["title"], row["created_at"], row["updated_at"])

    def list(self, limit: int = 50) -> list[Conversation]:
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM conversations ORDER BY updated_at DESC LIMIT ?", (limit,)
            ).fetchall()
        return [Conversation(r["id"], r["title"], r["created_at"], r["updated_at"]) for r in rows]

    def update_title(self, conversation_id: str, title: str) -> None:
        with self.db.connect() as conn:
            conn.execute(
                "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ?",
                (title, utc_now(), conversation_id),
            )
            conn.commit()

    def delete(self, conversation_id: str) -> None:
        with self.db.connect() as conn:
            conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
            conn.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
            conn.commit()

    def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        profile: str,
        token_count: int = 0,
    ) -> ConversationTurn:
        """Append a turn, creating the conversation row on first use."""
        turn_id = str(uuid.uuid4())
        now = utc_now()
        with self.db.connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO conversations (id, title, created_at, updated_at) "
                "VALUES (?, 'New Conversation', ?, ?)",
                (conversation_id, now, now),
            )
            conn.execute(
                "INSERT INTO messages (id, conversation_id, role, content, profile, token_count, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (turn_id, conversation_id, role, content, profile, token_count, now),
            )
            conn.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?", (now, conversation_id)
            )
            conn.commit()
        return ConversationTurn(turn_id, conversation_id, role, content, profile, token_count, now)

    def get_messages(self, conversation_id: str, limit: int = 100) -> list[ConversationTurn]:
        """Most recent `limit` turns, returned oldest first."""
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM ("
                "  SELECT *, rowid AS seq FROM messages WHERE conversation_id = ? "
                "  ORDER BY created_at DESC, seq DESC LIMIT ?"
                ") ORDER BY created_at ASC, seq ASC",
                (conversation_id, limit),
            ).fetchall()
        return [self._map_row(r) for r in rows]

    def count_messages(self, conversation_id: str) -> int:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS cnt FROM messages WHERE conversation_id = ?", (conversation_id,)
            ).fetchone()
        return row["cnt"]

    def search_messages(self, query: str, limit: int = 20) -> list[dict]:
        """Full-text search over all turns, returning conversation, title and snippet."""
        match = fts_query(query)
        if not match:
            return []
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT m.conversation_id, c.title, "
                "snippet(messages_fts, 0, '<b>', '</b>', '...', 32) AS snippet, m.created_at "
                "FROM messages_fts "
                "JOIN messages m ON m.rowid = messages_fts.rowid "
                "JOIN conversations c ON c.id = m.conversation_id "
                "WHERE messages_fts MATCH ? ORDER BY rank LIMIT ?",
                (match, limit),
            ).fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def _map_row(r) -> ConversationTurn:
        return ConversationTurn(
            id=r["id"],
            conversation_id=r["conversation_id"],
            role=r["role"],
            content=r["content"],
            profile=r["profile"],
            token_count=r["token_count"] or 0,
            created_at=r["created_at"],
        )
