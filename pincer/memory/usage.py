"""Per-profile daily token ledger."""

from dataclasses import dataclass
from datetime import datetime, timezone

from pincer.memory.database import Database, utc_now


@dataclass
class UsageRecord:
    profile: str
    date: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class UsageCheck:
    allowed: bool
    used: int
    remaining: int


def today() -> str:
    """Current UTC day as YYYY-MM-DD."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class UsageStore:
    """
    Append-only token accounting.

    Every completed model call adds one row; the daily total is always a
    SUM over the rows of that (profile, date), never an in-place counter.
    """

    def __init__(self, db: Database):
        self.db = db

    def record(self, profile: str, prompt_tokens: int, completion_tokens: int) -> UsageRecord:
        record = UsageRecord(
            profile=profile,
            date=today(),
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO usage (profile, date, prompt_tokens, completion_tokens, total_tokens, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (record.profile, record.date, record.prompt_tokens,
                 record.completion_tokens, record.total_tokens, utc_now()),
            )
            conn.commit()
        return record

    def get_daily_usage(self, profile: str, date: str | None = None) -> int:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT COALESCE(SUM(total_tokens), 0) AS total FROM usage WHERE profile = ? AND date = ?",
                (profile, date or today()),
            ).fetchone()
        return int(row["total"])

    def check_limit(self, profile: str, max_tokens_per_day: int) -> UsageCheck:
        used = self.get_daily_usage(profile)
        return UsageCheck(
            allowed=used < max_tokens_per_day,
            used=used,
            remaining=max(0, max_tokens_per_day - used),
        )

    def get_history(self, profile: str, days: int = 7) -> list[dict]:
        """Daily totals for the last `days` days that have any usage, newest first."""
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT date, SUM(prompt_tokens) AS prompt_tokens, "
                "SUM(completion_tokens) AS completion_tokens, SUM(total_tokens) AS total_tokens "
                "FROM usage WHERE profile = ? GROUP BY date ORDER BY date DESC LIMIT ?",
                (profile, days),
            ).fetchall()
        return [dict(r) for r in rows]
