"""Long-term remembered facts with full-text recall."""

import uuid
from dataclasses import dataclass

from pincer.memory.database import Database, fts_query, utc_now


@dataclass
class Fact:
    id: str
    content: str
    category: str
    source: str
    created_at: str
    updated_at: str


class FactStore:
    """Facts about the user, ranked by FTS5 relevance on recall."""

    def __init__(self, db: Database):
        self.db = db

    def add(self, content: str, category: str = "general", source: str = "") -> Fact:
        fact_id = str(uuid.uuid4())
        now = utc_now()
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO facts (id, content, category, source, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (fact_id, content, category, source, now, now),
            )
            conn.commit()
        return Fact(fact_id, content, category, source, now, now)

    def update(self, fact_id: str, content: str, category: str | None = None) -> bool:
        with self.db.connect() as conn:
            if category is None:
                cursor = conn.execute(
                    "UPDATE facts SET content = ?, updated_at = ? WHERE id = ?",
                    (content, utc_now(), fact_id),
                )
            else:
                cursor = conn.execute(
                    "UPDATE facts SET content = ?, category = ?, updated_at = ? WHERE id = ?",
                    (content, category, utc_now(), fact_id),
                )
            conn.commit()
            return cursor.rowcount > 0

    def delete(self, fact_id: str) -> bool:
        with self.db.connect() as conn:
            cursor = conn.execute("DELETE FROM facts WHERE id = ?", (fact_id,))
            conn.commit()
            return cursor.rowcount > 0

    def get_all(self) -> list[Fact]:
        with self.db.connect() as conn:
            rows = conn.execute("SELECT * FROM facts ORDER BY updated_at DESC").fetchall()
        return [self._map_row(r) for r in rows]

    def search(self, query: str, limit: int = 5) -> list[Fact]:
        """Top `limit` facts matching any word of `query`, best match first."""
        match = fts_query(query)
        if not match or limit <= 0:
            return []
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT f.* FROM facts_fts "
                "JOIN facts f ON f.rowid = facts_fts.rowid "
                "WHERE facts_fts MATCH ? ORDER BY rank LIMIT ?",
                (match, limit),
            ).fetchall()
        return [self._map_row(r) for r in rows]

    @staticmethod
    def _map_row(r) -> Fact:
        return Fact(
            id=r["id"],
            content=r["content"],
            category=r["category"],
            source=r["source"],
            created_at=r["created_at"],
            updated_at=r["updated_at"],
        )
