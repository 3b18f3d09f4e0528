"""Durable cron job rows."""

import uuid

from pincer.cron.types import CronJob
from pincer.memory.database import Database, utc_now


class CronJobStore:
    """CRUD over the cron_jobs table. Names are unique."""

    def __init__(self, db: Database):
        self.db = db

    def add(self, name: str, cron: str, message: str, profile: str, enabled: bool = True) -> CronJob:
        job = CronJob(
            id=str(uuid.uuid4()),
            name=name,
            cron=cron,
            message=message,
            profile=profile,
            enabled=enabled,
            last_run=None,
            created_at=utc_now(),
        )
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO cron_jobs (id, name, cron, message, profile, enabled, last_run, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (job.id, job.name, job.cron, job.message, job.profile,
                 1 if job.enabled else 0, None, job.created_at),
            )
            conn.commit()
        return job

    def get(self, name: str) -> CronJob | None:
        with self.db.connect() as conn:
            row = conn.execute("SELECT * FROM cron_jobs WHERE name = ?", (name,)).fetchone()
        return self._map_row(row) if row else None

    def list_all(self) -> list[CronJob]:
        with self.db.connect() as conn:
            rows = conn.execute("SELECT * FROM cron_jobs ORDER BY name").fetchall()
        return [self._map_row(r) for r in rows]

    def list_enabled(self) -> list[CronJob]:
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM cron_jobs WHERE enabled = 1 ORDER BY name"
            ).fetchall()
        return [self._map_row(r) for r in rows]

    def set_enabled(self, name: str, enabled: bool) -> bool:
        with self.db.connect() as conn:
            cursor = conn.execute(
                "UPDATE cron_jobs SET enabled = ? WHERE name = ?", (1 if enabled else 0, name)
            )
            conn.commit()
            return cursor.rowcount > 0

    def mark_run(self, name: str, when: str | None = None) -> str:
        stamp = when or utc_now()
        with self.db.connect() as conn:
            conn.execute("UPDATE cron_jobs SET last_run = ? WHERE name = ?", (stamp, name))
            conn.commit()
        return stamp

    def delete(self, name: str) -> bool:
        with self.db.connect() as conn:
            cursor = conn.execute("DELETE FROM cron_jobs WHERE name = ?", (name,))
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def _map_row(r) -> CronJob:
        return CronJob(
            id=r["id"],
            name=r["name"],
            cron=r["cron"],
            message=r["message"],
            profile=r["profile"],
            enabled=bool(r["enabled"]),
            last_run=r["last_run"],
            created_at=r["created_at"],
        )
