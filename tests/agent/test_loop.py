import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from pincer.agent.context import ContextBuilder
from pincer.agent.fact_extractor import FactExtractor
from pincer.agent.loop import AgentLoop
from pincer.agent.persona import PersonaDocument
from pincer.agent.tools.base import Tool, ToolContext
from pincer.agent.tools.registry import ToolRegistry
from pincer.bus.events import InboundMessage, OutboundMessage, StreamChunk, StreamEnd, ToolActivity
from pincer.bus.queue import MessageBus
from pincer.providers.base import LLMProvider, TextDelta, ToolCallRequest, Usage


class EchoTool(Tool):
    name = "echo"
    description = "Echo text back"
    parameters = {
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "required": ["text"],
    }

    def __init__(self):
        self.contexts: list[ToolContext] = []

    async def execute(self, ctx: ToolContext, text: str) -> str:
        self.contexts.append(ctx)
        return f"echo: {text}"


def _mock_background():
    extractor = MagicMock()
    extractor.extract = AsyncMock(return_value=0)
    titles = MagicMock()
    titles.generate = AsyncMock()
    return extractor, titles


def _build(tmp_path, config, conversations, facts, usage, provider, tools=None, **kwargs):
    bus = MessageBus()
    events: list = []

    async def record(event):
        events.append(event)

    for event_type in (StreamChunk, StreamEnd, OutboundMessage, ToolActivity):
        bus.subscribe(event_type, record)

    if "fact_extractor" not in kwargs or "title_generator" not in kwargs:
        extractor, titles = _mock_background()
        kwargs.setdefault("fact_extractor", extractor)
        kwargs.setdefault("title_generator", titles)

    context = ContextBuilder(PersonaDocument(tmp_path / "SOUL.md"), facts, conversations)
    loop = AgentLoop(
        bus=bus,
        provider=provider,
        config=config,
        conversations=conversations,
        usage=usage,
        context=context,
        tools=tools,
        **kwargs,
    )
    return loop, events


def _msg(content="Hi", conversation_id="c1", profile="free", channel="webchat"):
    return InboundMessage(conversation_id=conversation_id, channel=channel, profile=profile, content=content)


def _kinds(events):
    return [type(e).__name__ for e in events]


@pytest.mark.asyncio
async def test_reply_streams_chunks_then_single_end_then_message(tmp_path, scripted, config, conversations, facts, usage):
    provider = scripted([[TextDelta("Hel"), TextDelta("lo"), Usage(10, 5)]])
    loop, events = _build(tmp_path, config, conversations, facts, usage, provider)

    reply = await loop.process_message(_msg())
    await loop.drain_background()

    assert reply.content == "Hello"
    assert _kinds(events) == ["StreamChunk", "StreamChunk", "StreamEnd", "OutboundMessage"]
    assert [e.seq for e in events if isinstance(e, StreamChunk)] == [0, 1]

    turns = conversations.get_messages("c1")
    assert [(t.role, t.content) for t in turns] == [("user", "Hi"), ("assistant", "Hello")]
    assert turns[1].token_count == 5
    assert usage.get_daily_usage("free") == 15


@pytest.mark.asyncio
async def test_unknown_profile_is_rejected_without_persisting(tmp_path, scripted, config, conversations, facts, usage):
    provider = scripted()
    loop, events = _build(tmp_path, config, conversations, facts, usage, provider)

    reply = await loop.process_message(_msg(profile="ghost"))

    assert reply.content == 'Error: Profile "ghost" not found.'
    assert _kinds(events) == ["StreamEnd", "OutboundMessage"]
    assert provider.calls == []
    assert conversations.count_messages("c1") == 0


@pytest.mark.asyncio
async def test_exhausted_quota_skips_model_call(tmp_path, scripted, config, conversations, facts, usage):
    usage.record("free", 600, 400)
    provider = scripted([[TextDelta("never")]])
    loop, events = _build(tmp_path, config, conversations, facts, usage, provider)

    reply = await loop.process_message(_msg())

    assert reply.content.startswith('Daily token limit reached for profile "free"')
    assert "Used: 1000, Limit: 1000" in reply.content
    assert provider.calls == []
    assert usage.get_daily_usage("free") == 1000
    assert _kinds(events) == ["StreamEnd", "OutboundMessage"]


@pytest.mark.asyncio
async def test_tool_call_runs_between_steps(tmp_path, scripted, config, conversations, facts, usage):
    registry = ToolRegistry()
    echo = EchoTool()
    registry.register(echo)
    provider = scripted([
        [ToolCallRequest("call-1", "echo", {"text": "ping"}), Usage(5, 1)],
        [TextDelta("done"), Usage(6, 2)],
    ])
    loop, events = _build(tmp_path, config, conversations, facts, usage, provider, tools=registry)

    reply = await loop.process_message(_msg())

    assert reply.content == "done"
    assert provider.calls[0]["tools"][0]["function"]["name"] == "echo"
    tool_messages = [m for m in provider.calls[1]["messages"] if m["role"] == "tool"]
    assert tool_messages == [
        {"role": "tool", "tool_call_id": "call-1", "name": "echo", "content": "echo: ping"}
    ]

    activity = [e for e in events if isinstance(e, ToolActivity)]
    assert [a.status for a in activity] == ["started", "completed"]
    assert activity[0].invocation_id == activity[1].invocation_id
    assert activity[1].result == "echo: ping"
    assert echo.contexts[0].conversation_id == "c1"
    assert echo.contexts[0].profile == "free"

    assert _kinds(events).count("StreamEnd") == 1
    assert usage.get_daily_usage("free") == 14
    assert len(usage.get_history("free")) == 1


@pytest.mark.asyncio
async def test_stream_failure_becomes_reply(tmp_path, scripted, config, conversations, facts, usage):
    provider = scripted([RuntimeError("backend down")])
    loop, events = _build(tmp_path, config, conversations, facts, usage, provider)

    reply = await loop.process_message(_msg())

    assert reply.content == "Error: backend down"
    assert _kinds(events) == ["StreamEnd", "OutboundMessage"]
    turns = conversations.get_messages("c1")
    assert turns[-1].role == "assistant"
    assert turns[-1].content == "Error: backend down"
    assert turns[-1].token_count == 0
    assert usage.get_history("free") == []


@pytest.mark.asyncio
async def test_failure_mid_stream_still_ends_once(tmp_path, scripted, config, conversations, facts, usage):
    provider = scripted([[TextDelta("par"), RuntimeError("boom")]])
    loop, events = _build(tmp_path, config, conversations, facts, usage, provider)

    reply = await loop.process_message(_msg())

    assert reply.content == "Error: boom"
    assert _kinds(events) == ["StreamChunk", "StreamEnd", "OutboundMessage"]


@pytest.mark.asyncio
async def test_unexpected_failure_becomes_apology(tmp_path, scripted, config, conversations, facts, usage, monkeypatch):
    provider = scripted([[TextDelta("ok")]])
    loop, events = _build(tmp_path, config, conversations, facts, usage, provider)

    def explode(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(conversations, "add_message", explode)
    reply = await loop.process_message(_msg())

    assert reply.content == "Sorry, I encountered an error: disk full"
    assert _kinds(events) == ["StreamEnd", "OutboundMessage"]


@pytest.mark.asyncio
async def test_usage_recording_failure_is_not_fatal(tmp_path, scripted, config, conversations, facts, usage, monkeypatch):
    provider = scripted([[TextDelta("fine"), Usage(3, 3)]])
    loop, _ = _build(tmp_path, config, conversations, facts, usage, provider)

    def explode(*args, **kwargs):
        raise RuntimeError("locked")

    monkeypatch.setattr(usage, "record", explode)
    reply = await loop.process_message(_msg())

    assert reply.content == "fine"
    assert conversations.count_messages("c1") == 2


@pytest.mark.asyncio
async def test_background_work_starts_after_reply(tmp_path, scripted, config, conversations, facts, usage):
    provider = scripted(default=[TextDelta("Hello")])
    extractor, titles = _mock_background()
    loop, _ = _build(
        tmp_path, config, conversations, facts, usage, provider,
        fact_extractor=extractor, title_generator=titles,
    )

    await loop.process_message(_msg("Hi"))
    await loop.process_message(_msg("Again"))
    await loop.drain_background()

    titles.generate.assert_awaited_once_with("c1", "Hi", "Hello")
    assert extractor.extract.await_count == 2
    extractor.extract.assert_awaited_with("Again", "Hello")


@pytest.mark.asyncio
async def test_fact_extraction_failure_does_not_touch_reply(tmp_path, scripted, config, conversations, facts, usage):
    provider = scripted([
        [TextDelta("Hi there"), Usage(1, 1)],
        [TextDelta("this is not json")],
    ])
    _, titles = _mock_background()
    extractor = FactExtractor(provider, facts, config.get_profile("free"))
    loop, _ = _build(
        tmp_path, config, conversations, facts, usage, provider,
        fact_extractor=extractor, title_generator=titles,
    )

    reply = await loop.process_message(_msg())
    await loop.drain_background()

    assert reply.content == "Hi there"
    assert facts.get_all() == []


class GatedProvider(LLMProvider):
    """Blocks every step until released, tracking overlap per conversation key."""

    def __init__(self):
        self.release = asyncio.Event()
        self.started: list[str] = []
        self.inflight: dict[str, int] = {}
        self.max_inflight: dict[str, int] = {}

    async def _stream_step(self, profile, messages, tools, options):
        content = messages[-1]["content"]
        key = content[0]
        self.started.append(content)
        self.inflight[key] = self.inflight.get(key, 0) + 1
        self.max_inflight[key] = max(self.max_inflight.get(key, 0), self.inflight[key])
        await self.release.wait()
        yield TextDelta(content.upper())
        self.inflight[key] -= 1


@pytest.mark.asyncio
async def test_turns_of_one_conversation_never_overlap(tmp_path, config, conversations, facts, usage):
    provider = GatedProvider()
    loop, events = _build(tmp_path, config, conversations, facts, usage, provider)

    loop.submit(_msg("a1", conversation_id="A"))
    loop.submit(_msg("a2", conversation_id="A"))
    loop.submit(_msg("b1", conversation_id="B"))
    await asyncio.sleep(0.05)

    assert sorted(provider.started) == ["a1", "b1"]
    assert loop.active_conversations == 2

    provider.release.set()
    await loop.wait_idle()

    assert provider.max_inflight == {"a": 1, "b": 1}
    assert provider.started.index("a1") < provider.started.index("a2")
    replies_a = [e.content for e in events if isinstance(e, OutboundMessage) and e.conversation_id == "A"]
    assert replies_a == ["A1", "A2"]
    assert loop.active_conversations == 0


@pytest.mark.asyncio
async def test_scheduled_message_uses_cron_channel(tmp_path, scripted, config, conversations, facts, usage):
    provider = scripted([[TextDelta("Good morning!")]])
    loop, events = _build(tmp_path, config, conversations, facts, usage, provider)

    await loop.handle_scheduled("free", "good morning")
    await loop.wait_idle()

    outbound = [e for e in events if isinstance(e, OutboundMessage)]
    assert len(outbound) == 1
    assert outbound[0].channel == "cron"
    assert outbound[0].conversation_id.startswith("cron-")
    assert outbound[0].content == "Good morning!"
