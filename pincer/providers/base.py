"""Base LLM provider interface and stream event types."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable

from loguru import logger

from pincer.config.schema import ProfileConfig


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            self.prompt_tokens + other.prompt_tokens,
            self.completion_tokens + other.completion_tokens,
        )


@dataclass
class TextDelta:
    """A fragment of assistant text."""
    text: str


@dataclass
class ToolCallRequest:
    """A tool call request from the LLM."""
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResultEvent:
    """Result of a tool call, already fed back into the working message list."""
    call: ToolCallRequest
    result: str


@dataclass
class StreamDone:
    """Terminal event of a stream, carrying usage summed over every step."""
    usage: Usage


StreamEvent = TextDelta | ToolCallRequest | ToolResultEvent | StreamDone
ToolExecutor = Callable[[ToolCallRequest], Awaitable[str]]


@dataclass
class StreamOptions:
    tools: list[dict[str, Any]] | None = None
    temperature: float | None = None
    top_p: float | None = None
    max_steps: int = 5
    max_tokens: int | None = None
    tool_executor: ToolExecutor | None = None


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implementations provide a single model step (`_stream_step`); the
    multi-step tool loop lives here so every backend shares it.
    """

    @abstractmethod
    def _stream_step(
        self,
        profile: ProfileConfig,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        options: StreamOptions,
    ) -> AsyncIterator[TextDelta | ToolCallRequest | Usage]:
        """
        Run one model call.

        Yields text fragments as they arrive, every complete tool call the
        model requested, and the step's token usage.
        """

    async def stream(
        self,
        profile: ProfileConfig,
        messages: list[dict[str, Any]],
        options: StreamOptions | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream a reply, executing tool calls between steps.

        At most `max_steps` steps may request tools; if the model still wants
        tools after that, one last step runs without tools to force an answer.
        Ends with exactly one StreamDone.
        """
        options = options or StreamOptions()
        working = list(messages)
        total = Usage()

        for step in range(options.max_steps + 1):
            tools = options.tools if step < options.max_steps else None
            text_parts: list[str] = []
            calls: list[ToolCallRequest] = []

            async for event in self._stream_step(profile, working, tools, options):
                if isinstance(event, Usage):
                    total = total + event
                    continue
                if isinstance(event, TextDelta):
                    text_parts.append(event.text)
                else:
                    calls.append(event)
                yield event

            # Calls from a step that was offered no tools are never executed.
            if not calls or not tools or options.tool_executor is None:
                break

            logger.debug(f"Step {step + 1}: {len(calls)} tool call(s)")
            working.append(assistant_tool_message("".join(text_parts), calls))
            for call in calls:
                result = await options.tool_executor(call)
                working.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "name": call.name,
                    "content": result,
                })
                yield ToolResultEvent(call=call, result=result)

        yield StreamDone(usage=total)

    async def complete(
        self,
        profile: ProfileConfig,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
    ) -> str:
        """Single tool-less call returning the full text."""
        parts: list[str] = []
        options = StreamOptions(max_steps=1, max_tokens=max_tokens)
        async for event in self.stream(profile, messages, options):
            if isinstance(event, TextDelta):
                parts.append(event.text)
        return "".join(parts)


def assistant_tool_message(content: str, calls: list[ToolCallRequest]) -> dict[str, Any]:
    """Assistant message recording the tool calls of one step, in OpenAI format."""
    return {
        "role": "assistant",
        "content": content or None,
        "tool_calls": [
            {
                "id": c.id,
                "type": "function",
                "function": {"name": c.name, "arguments": json.dumps(c.arguments)},
            }
            for c in calls
        ],
    }
