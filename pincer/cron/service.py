"""Cron service that turns scheduled jobs into synthetic inbound messages."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from loguru import logger

from pincer.cron import scheduling
from pincer.cron.types import CronJob
from pincer.errors import DuplicateJobError, InvalidScheduleError, JobNotFoundError

if TYPE_CHECKING:
    from pincer.memory.cron_jobs import CronJobStore

MessageHandler = Callable[[str, str], Coroutine[Any, Any, Any]]


class CronService:
    """
    Durable registry of named cron jobs with one live timer per enabled job.

    Every public mutation performs its durable write and its timer arm/disarm
    without yielding to the event loop in between, so the set of armed timers
    always matches the enabled flags in the store. Fires missed while the
    service was stopped are not replayed.
    """

    def __init__(self, store: CronJobStore, on_message: MessageHandler | None = None):
        self.store = store
        self.on_message = on_message  # (profile, message)
        self._timers: dict[str, asyncio.Task] = {}
        self._running = False

    def set_message_handler(self, handler: MessageHandler) -> None:
        self.on_message = handler

    async def start(self) -> None:
        """Reload enabled jobs and arm their timers."""
        self._running = True
        jobs = self.store.list_enabled()
        for job in jobs:
            self._arm(job)
        logger.info(f"Cron service started with {len(jobs)} active jobs")

    def stop(self) -> None:
        """Disarm every timer."""
        self._running = False
        for name in list(self._timers):
            self._disarm(name)
        logger.info("Cron service stopped")

    @property
    def armed_jobs(self) -> set[str]:
        return set(self._timers)

    # ========== Timers ==========

    def _arm(self, job: CronJob, after: datetime | None = None) -> None:
        self._disarm(job.name)
        if not self._running:
            return
        scheduled = scheduling.next_fire(job.cron, after=after)
        if scheduled is None:
            logger.warning(f"Cron: job '{job.name}' has an invalid expression '{job.cron}', not armed")
            return
        fires_at, delay = scheduled

        async def tick():
            await asyncio.sleep(delay)
            await self._on_timer(job.name, fires_at)

        self._timers[job.name] = asyncio.create_task(tick(), name=f"cron:{job.name}")
        logger.debug(f"Cron: armed '{job.name}' in {delay:.1f}s")

    def _disarm(self, name: str) -> None:
        task = self._timers.pop(name, None)
        if task and task is not asyncio.current_task():
            task.cancel()

    async def _on_timer(self, name: str, fired_at: datetime) -> None:
        if self._timers.get(name) is not asyncio.current_task():
            return
        # The job is firing, not armed; a disable during the handler has nothing to cancel.
        del self._timers[name]
        await self._fire(name)

        job = self.store.get(name)
        if job and job.enabled and self._running and name not in self._timers:
            # Strictly after the instant just handled, even if the wall clock still reads earlier.
            self._arm(job, after=fired_at)

    async def _fire(self, name: str) -> None:
        job = self.store.get(name)
        if job is None:
            return
        self.store.mark_run(name)
        logger.info(f"Cron: firing job '{name}' for profile '{job.profile}'")

        if not self.on_message:
            return
        try:
            await self.on_message(job.profile, job.message)
        except Exception as e:
            logger.error(f"Cron: job '{name}' failed: {e}")

    # ========== Public API ==========

    def add_job(self, name: str, cron: str, message: str, profile: str) -> CronJob:
        """Validate, persist and arm a new job."""
        if not scheduling.is_valid_expression(cron):
            raise InvalidScheduleError(f"Invalid cron expression: {cron}")
        if self.store.get(name):
            raise DuplicateJobError(f'A job named "{name}" already exists.')

        job = self.store.add(name=name, cron=cron, message=message, profile=profile)
        self._arm(job)
        logger.info(f"Cron: added job '{name}' ({cron})")
        return job

    def remove_job(self, name: str) -> bool:
        """Disarm then delete. Returns False when no such job exists."""
        self._disarm(name)
        removed = self.store.delete(name)
        if removed:
            logger.info(f"Cron: removed job '{name}'")
        return removed

    def toggle_job(self, name: str, enabled: bool) -> CronJob:
        """Write the enabled flag and arm or disarm the timer to match."""
        if not self.store.set_enabled(name, enabled):
            raise JobNotFoundError(f'Job "{name}" not found.')
        job = self.store.get(name)
        if enabled:
            self._arm(job)
        else:
            self._disarm(name)
        logger.info(f"Cron: job '{name}' {'enabled' if enabled else 'disabled'}")
        return job

    def list_jobs(self) -> list[CronJob]:
        """All jobs ordered by name."""
        return self.store.list_all()

    async def run_job(self, name: str, force: bool = False) -> bool:
        """Fire a job now, outside its schedule."""
        job = self.store.get(name)
        if job is None or (not force and not job.enabled):
            return False
        await self._fire(name)
        return True

    def status(self) -> dict:
        jobs = self.store.list_all()
        return {
            "running": self._running,
            "jobs": len(jobs),
            "armed": len(self._timers),
        }
