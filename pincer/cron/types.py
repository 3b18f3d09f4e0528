"""Cron types."""

from dataclasses import dataclass
from datetime import datetime

from pincer.cron.scheduling import compute_next_run


@dataclass
class CronJob:
    """A named, durable schedule that injects `message` into `profile` on each fire."""
    id: str
    name: str
    cron: str
    message: str
    profile: str
    enabled: bool = True
    last_run: str | None = None
    created_at: str = ""

    @property
    def next_run(self) -> datetime | None:
        if not self.enabled:
            return None
        return compute_next_run(self.cron)
