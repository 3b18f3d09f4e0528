"""Agent tools module."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from pincer.agent.tools.base import InvocationState, Tool, ToolContext, ToolInvocation
from pincer.agent.tools.registry import ToolRegistry
from pincer.agent.tools.reminders import (
    ListRemindersTool,
    RemoveReminderTool,
    SetReminderTool,
    ToggleReminderTool,
)
from pincer.agent.tools.shell import RunCommandTool
from pincer.agent.tools.skills import ListSkillsTool, ReadSkillTool, WriteSkillTool
from pincer.agent.tools.social import (
    PhantomBusterClient,
    QueryRedditPostsTool,
    QueryTweetsTool,
    RedditClient,
    RedditMonitorTool,
    RedditSearchTool,
    XSearchKeywordsTool,
    XTrackAccountTool,
)
from pincer.agent.tools.web_search import WebSearchTool
from pincer.config.schema import ToolsConfig
from pincer.cron.service import CronService
from pincer.memory.social_posts import SocialPostStore

if TYPE_CHECKING:
    from pincer.agent.confirmation import ConfirmationGate

__all__ = [
    "InvocationState",
    "Tool",
    "ToolContext",
    "ToolInvocation",
    "ToolRegistry",
    "register_builtin_tools",
]


def register_builtin_tools(
    registry: ToolRegistry,
    config: ToolsConfig,
    gate: ConfirmationGate,
    cron: CronService,
    social_store: SocialPostStore | None = None,
) -> None:
    """Register every built-in tool whose requirements are configured."""
    if config.search.brave_api_key:
        registry.register(WebSearchTool(config.search.brave_api_key, config.search.max_results))

    for skill_tool in (WriteSkillTool, ReadSkillTool, ListSkillsTool):
        registry.register(skill_tool(config.skills.directory))

    registry.register(RunCommandTool(gate, config.exec))

    for reminder_tool in (SetReminderTool, ListRemindersTool, RemoveReminderTool, ToggleReminderTool):
        registry.register(reminder_tool(cron))

    if social_store is not None:
        pb = config.phantom_buster
        if pb.api_key:
            client = PhantomBusterClient(pb.api_key, timeout_seconds=pb.poll_timeout_seconds)
            registry.register(XTrackAccountTool(social_store, pb, client))
            registry.register(XSearchKeywordsTool(social_store, pb, client))
            registry.register(QueryTweetsTool(social_store))
        if config.reddit_enabled:
            reddit = RedditClient()
            registry.register(RedditSearchTool(social_store, reddit))
            registry.register(RedditMonitorTool(social_store, reddit))
            registry.register(QueryRedditPostsTool(social_store))

    logger.info(f"Registered {len(registry)} tools: {', '.join(registry.tool_names)}")
