import json
from types import SimpleNamespace

import pytest

from pincer.config.schema import ProfileConfig
from pincer.providers import litellm_provider
from pincer.providers.base import (
    StreamDone,
    StreamOptions,
    TextDelta,
    ToolCallRequest,
    ToolResultEvent,
    Usage,
)
from pincer.providers.litellm_provider import LiteLLMProvider

TOOLS = [{"type": "function", "function": {"name": "lookup", "parameters": {"type": "object"}}}]


async def _collect(provider, options):
    return [e async for e in provider.stream(ProfileConfig(), [{"role": "user", "content": "hi"}], options)]


@pytest.mark.asyncio
async def test_text_only_stream_ends_with_usage(scripted):
    provider = scripted([[TextDelta("a"), TextDelta("b"), Usage(3, 2)]])

    events = await _collect(provider, StreamOptions(tools=TOOLS))

    assert events == [TextDelta("a"), TextDelta("b"), StreamDone(Usage(3, 2))]


@pytest.mark.asyncio
async def test_tool_results_are_fed_back(scripted):
    provider = scripted([
        [TextDelta("Let me check. "), ToolCallRequest("t1", "lookup", {"q": "x"}), Usage(4, 1)],
        [TextDelta("Found it."), Usage(8, 3)],
    ])
    executed = []

    async def executor(call):
        executed.append(call.id)
        return "42"

    events = await _collect(provider, StreamOptions(tools=TOOLS, tool_executor=executor))

    assert executed == ["t1"]
    assert isinstance(events[2], ToolResultEvent) and events[2].result == "42"
    assert events[-1] == StreamDone(Usage(12, 4))
    assert [e for e in events if isinstance(e, StreamDone)] == [events[-1]]

    second = provider.calls[1]["messages"]
    assert second[1]["role"] == "assistant"
    assert second[1]["content"] == "Let me check. "
    assert json.loads(second[1]["tool_calls"][0]["function"]["arguments"]) == {"q": "x"}
    assert second[2] == {"role": "tool", "tool_call_id": "t1", "name": "lookup", "content": "42"}


@pytest.mark.asyncio
async def test_step_budget_forces_final_answer_without_tools(scripted):
    provider = scripted(default=[ToolCallRequest("again", "lookup", {}), Usage(1, 1)])
    executed = []

    async def executor(call):
        executed.append(call.id)
        return "more"

    events = await _collect(provider, StreamOptions(tools=TOOLS, max_steps=2, tool_executor=executor))

    assert len(provider.calls) == 3
    assert [c["tools"] for c in provider.calls] == [TOOLS, TOOLS, None]
    assert len(executed) == 2
    assert events[-1] == StreamDone(Usage(3, 3))


@pytest.mark.asyncio
async def test_complete_returns_text(scripted):
    provider = scripted([[TextDelta("Short "), TextDelta("title")]])

    assert await provider.complete(ProfileConfig(), [{"role": "user", "content": "x"}], max_tokens=20) == "Short title"
    assert provider.calls[0]["options"].max_tokens == 20


def test_model_names_carry_backend_prefix():
    assert LiteLLMProvider.resolve_model(ProfileConfig(provider="openai", model="gpt-4o")) == "openai/gpt-4o"
    assert LiteLLMProvider.resolve_model(ProfileConfig(provider="google", model="gemini-2.0-flash")) == (
        "gemini/gemini-2.0-flash"
    )
    assert LiteLLMProvider.resolve_model(ProfileConfig(provider="ollama", model="llama3")) == "ollama_chat/llama3"
    assert LiteLLMProvider.resolve_model(ProfileConfig(provider="anthropic", model="anthropic/claude-3")) == (
        "anthropic/claude-3"
    )


def _chunk(content=None, tool_calls=None, usage=None):
    choices = []
    if content is not None or tool_calls is not None:
        choices = [SimpleNamespace(delta=SimpleNamespace(content=content, tool_calls=tool_calls))]
    return SimpleNamespace(choices=choices, usage=usage)


def _tool_delta(arguments, id=None, name=None):
    return SimpleNamespace(index=0, id=id, function=SimpleNamespace(name=name, arguments=arguments))


@pytest.mark.asyncio
async def test_litellm_stream_reassembles_tool_calls(monkeypatch):
    captured = {}

    async def chunks():
        yield _chunk(content="Checking")
        yield _chunk(tool_calls=[_tool_delta('{"q": ', id="call_a", name="lookup")])
        yield _chunk(tool_calls=[_tool_delta('"x"}')])
        yield _chunk(usage=SimpleNamespace(prompt_tokens=12, completion_tokens=7))

    async def fake_acompletion(**kwargs):
        captured.update(kwargs)
        return chunks()

    monkeypatch.setattr(litellm_provider, "acompletion", fake_acompletion)
    provider = LiteLLMProvider()
    profile = ProfileConfig(provider="anthropic", model="claude-haiku", api_key="sk-test", temperature=0.2)

    events = [
        e async for e in provider._stream_step(
            profile, [{"role": "user", "content": "hi"}], TOOLS, StreamOptions(max_tokens=256)
        )
    ]

    assert events == [
        TextDelta("Checking"),
        ToolCallRequest("call_a", "lookup", {"q": "x"}),
        Usage(12, 7),
    ]
    assert captured["model"] == "anthropic/claude-haiku"
    assert captured["api_key"] == "sk-test"
    assert captured["max_tokens"] == 256
    assert captured["stream_options"] == {"include_usage": True}
    assert captured["tools"] == TOOLS
    assert "temperature" not in captured


def test_malformed_tool_arguments_are_kept_raw():
    call = LiteLLMProvider._to_tool_call({"id": "", "name": "lookup", "arguments": "{oops"}, 2)

    assert call == ToolCallRequest("call_2", "lookup", {"raw": "{oops"})
