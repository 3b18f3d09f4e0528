"""Cron service for scheduled agent messages."""

from pincer.cron.service import CronService
from pincer.cron.types import CronJob

__all__ = ["CronService", "CronJob"]
