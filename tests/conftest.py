"""Shared fixtures: a temporary database, stores and a scripted model provider."""

from typing import Any

import pytest

from pincer.config.schema import Config, ProfileConfig
from pincer.memory import (
    ConversationStore,
    CronJobStore,
    Database,
    FactStore,
    SocialPostStore,
    UsageStore,
)
from pincer.providers.base import LLMProvider, StreamOptions


class ScriptedProvider(LLMProvider):
    """
    Provider whose steps are scripted.

    Each entry of `steps` is either a list of events (TextDelta,
    ToolCallRequest, Usage) yielded by one step, or an exception raised when
    the step starts. Extra calls beyond the script yield `default`.
    """

    def __init__(self, steps: list[Any] | None = None, default: list[Any] | None = None):
        self.steps = list(steps or [])
        self.default = default or []
        self.calls: list[dict[str, Any]] = []

    async def _stream_step(self, profile, messages, tools, options: StreamOptions):
        self.calls.append({"profile": profile, "messages": list(messages), "tools": tools, "options": options})
        step = self.steps.pop(0) if self.steps else self.default
        if isinstance(step, BaseException):
            raise step
        for event in step:
            if isinstance(event, BaseException):
                raise event
            yield event


@pytest.fixture
def db(tmp_path):
    return Database(tmp_path / "memory.db")


@pytest.fixture
def conversations(db):
    return ConversationStore(db)


@pytest.fixture
def facts(db):
    return FactStore(db)


@pytest.fixture
def usage(db):
    return UsageStore(db)


@pytest.fixture
def cron_store(db):
    return CronJobStore(db)


@pytest.fixture
def social_store(db):
    return SocialPostStore(db)


@pytest.fixture
def config(tmp_path):
    return Config(
        data_dir=str(tmp_path),
        profiles={"free": ProfileConfig(max_tokens_per_day=1000)},
    )


@pytest.fixture
def scripted():
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider
