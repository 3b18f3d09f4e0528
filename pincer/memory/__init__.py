"""SQLite-backed storage for conversations, facts, usage, cron jobs and social posts."""

from pincer.memory.conversations import Conversation, ConversationStore, ConversationTurn
from pincer.memory.cron_jobs import CronJobStore
from pincer.memory.database import Database
from pincer.memory.facts import Fact, FactStore
from pincer.memory.social_posts import SocialPost, SocialPostStore
from pincer.memory.usage import UsageCheck, UsageRecord, UsageStore

__all__ = [
    "Conversation",
    "ConversationStore",
    "ConversationTurn",
    "CronJobStore",
    "Database",
    "Fact",
    "FactStore",
    "SocialPost",
    "SocialPostStore",
    "UsageCheck",
    "UsageRecord",
    "UsageStore",
]
