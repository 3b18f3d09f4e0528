"""Ingested social content, de-duplicated on (platform, external_id)."""

import uuid
from dataclasses import dataclass, field
from typing import Literal

from pincer.memory.database import Database, fts_query, utc_now

Platform = Literal["twitter", "reddit"]
PostType = Literal["tweet", "article", "thread"]


@dataclass
class SocialPost:
    platform: Platform
    external_id: str
    content: str
    author: str = ""
    url: str = ""
    subreddit: str | None = None
    title: str | None = None
    score: int = 0
    reply_count: int = 0
    repost_count: int = 0
    post_type: PostType = "tweet"
    source_query: str = ""
    posted_at: str = field(default_factory=utc_now)
    ingested_at: str = ""
    id: str = ""


_COLUMNS = (
    "id, platform, external_id, author, content, url, subreddit, title, score, "
    "reply_count, repost_count, post_type, source_query, posted_at, ingested_at"
)


class SocialPostStore:
    """Ingest log for X and Reddit results."""

    def __init__(self, db: Database):
        self.db = db

    def upsert(self, post: SocialPost) -> bool:
        """Insert unless the (platform, external_id) pair already exists. Returns True when inserted."""
        return self.upsert_many([post]) == 1

    def upsert_many(self, posts: list[SocialPost]) -> int:
        """Insert new posts, ignoring already ingested ones. Returns how many were inserted."""
        inserted = 0
        now = utc_now()
        with self.db.connect() as conn:
            for post in posts:
                post.id = post.id or str(uuid.uuid4())
                post.ingested_at = post.ingested_at or now
                cursor = conn.execute(
                    f"INSERT OR IGNORE INTO social_posts ({_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (post.id, post.platform, post.external_id, post.author, post.content,
                     post.url, post.subreddit, post.title, post.score, post.reply_count,
                     post.repost_count, post.post_type, post.source_query, post.posted_at,
                     post.ingested_at),
                )
                inserted += cursor.rowcount
            conn.commit()
        return inserted

    def exists_by_external_id(self, platform: Platform, external_id: str) -> bool:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM social_posts WHERE platform = ? AND external_id = ?",
                (platform, external_id),
            ).fetchone()
        return row is not None

    def search(
        self,
        query: str,
        platform: Platform | None = None,
        author: str | None = None,
        subreddit: str | None = None,
        limit: int = 20,
    ) -> list[SocialPost]:
        """Full-text search; with an empty query falls back to the most recent posts."""
        match = fts_query(query) if query else None
        if not match:
            return self.get_recent(platform=platform, author=author, subreddit=subreddit, limit=limit)

        sql = (
            "SELECT p.* FROM social_posts_fts "
            "JOIN social_posts p ON p.rowid = social_posts_fts.rowid "
            "WHERE social_posts_fts MATCH ?"
        )
        params: list = [match]
        sql, params = self._filters(sql, params, platform, author, subreddit, prefix="p.")
        sql += " ORDER BY rank LIMIT ?"
        params.append(limit)
        with self.db.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._map_row(r) for r in rows]

    def get_recent(
        self,
        platform: Platform | None = None,
        author: str | None = None,
        subreddit: str | None = None,
        limit: int = 20,
    ) -> list[SocialPost]:
        sql = "SELECT * FROM social_posts WHERE 1 = 1"
        sql, params = self._filters(sql, [], platform, author, subreddit)
        sql += " ORDER BY ingested_at DESC, posted_at DESC LIMIT ?"
        params.append(limit)
        with self.db.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._map_row(r) for r in rows]

    def count(self, platform: Platform | None = None) -> int:
        with self.db.connect() as conn:
            if platform:
                row = conn.execute(
                    "SELECT COUNT(*) AS cnt FROM social_posts WHERE platform = ?", (platform,)
                ).fetchone()
            else:
                row = conn.execute("SELECT COUNT(*) AS cnt FROM social_posts").fetchone()
        return row["cnt"]

    @staticmethod
    def _filters(sql, params, platform, author, subreddit, prefix=""):
        if platform:
            sql += f" AND {prefix}platform = ?"
            params.append(platform)
        if author:
            sql += f" AND LOWER({prefix}author) = LOWER(?)"
            params.append(author.lstrip("@"))
        if subreddit:
            sql += f" AND LOWER({prefix}subreddit) = LOWER(?)"
            params.append(subreddit)
        return sql, params

    @staticmethod
    def _map_row(r) -> SocialPost:
        return SocialPost(
            id=r["id"],
            platform=r["platform"],
            external_id=r["external_id"],
            author=r["author"],
            content=r["content"],
            url=r["url"],
            subreddit=r["subreddit"],
            title=r["title"],
            score=r["score"] or 0,
            reply_count=r["reply_count"] or 0,
            repost_count=r["repost_count"] or 0,
            post_type=r["post_type"],
            source_query=r["source_query"],
            posted_at=r["posted_at"],
            ingested_at=r["ingested_at"],
        )
