"""LLM provider abstraction module."""

from pincer.providers.base import (
    LLMProvider,
    StreamDone,
    StreamOptions,
    TextDelta,
    ToolCallRequest,
    ToolResultEvent,
    Usage,
)
from pincer.providers.litellm_provider import LiteLLMProvider

__all__ = [
    "LLMProvider",
    "LiteLLMProvider",
    "StreamDone",
    "StreamOptions",
    "TextDelta",
    "ToolCallRequest",
    "ToolResultEvent",
    "Usage",
]
