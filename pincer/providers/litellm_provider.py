"""LiteLLM provider implementation for multi-provider support."""

import json
from typing import Any, AsyncIterator

import litellm
from litellm import acompletion
from litellm.exceptions import APIConnectionError, RateLimitError, ServiceUnavailableError
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pincer.config.schema import ProfileConfig
from pincer.providers.base import LLMProvider, StreamOptions, TextDelta, ToolCallRequest, Usage

# Profile provider name -> LiteLLM model prefix
_PREFIXES = {
    "openai": "openai",
    "anthropic": "anthropic",
    "google": "gemini",
    "mistral": "mistral",
    "ollama": "ollama_chat",
}


def _log_retry(retry_state) -> None:
    logger.warning(
        f"Model stream open failed (attempt {retry_state.attempt_number}): "
        f"{retry_state.outcome.exception()}; retrying"
    )


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM for multi-provider support.

    The profile decides backend, model and credentials on every call, so one
    instance serves all profiles.
    """

    def __init__(self, extra_headers: dict[str, str] | None = None):
        self.extra_headers = extra_headers or {}
        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        # Drop unsupported parameters for providers
        litellm.drop_params = True

    @staticmethod
    def resolve_model(profile: ProfileConfig) -> str:
        """Apply the LiteLLM provider prefix to the profile's model."""
        prefix = _PREFIXES.get(profile.provider, profile.provider)
        if profile.model.startswith(f"{prefix}/"):
            return profile.model
        return f"{prefix}/{profile.model}"

    def _build_kwargs(
        self,
        profile: ProfileConfig,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        options: StreamOptions,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.resolve_model(profile),
            "messages": messages,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if profile.api_key:
            kwargs["api_key"] = profile.api_key
        if profile.api_base:
            kwargs["api_base"] = profile.api_base
        if options.max_tokens:
            kwargs["max_tokens"] = options.max_tokens
        if options.temperature is not None:
            kwargs["temperature"] = options.temperature
        if options.top_p is not None:
            kwargs["top_p"] = options.top_p
        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        return kwargs

    @retry(
        retry=retry_if_exception_type((RateLimitError, APIConnectionError, ServiceUnavailableError)),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        stop=stop_after_attempt(3),
        reraise=True,
        before_sleep=_log_retry,
    )
    async def _open_stream(self, kwargs: dict[str, Any]) -> Any:
        return await acompletion(**kwargs)

    async def _stream_step(
        self,
        profile: ProfileConfig,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        options: StreamOptions,
    ) -> AsyncIterator[TextDelta | ToolCallRequest | Usage]:
        kwargs = self._build_kwargs(profile, messages, tools, options)
        logger.debug(f"Opening stream on {kwargs['model']} ({len(messages)} messages)")
        response = await self._open_stream(kwargs)

        # Tool call fragments arrive keyed by index and are only complete at stream end.
        pending: dict[int, dict[str, str]] = {}
        usage: Usage | None = None

        async for chunk in response:
            chunk_usage = getattr(chunk, "usage", None)
            if chunk_usage:
                usage = Usage(
                    prompt_tokens=chunk_usage.prompt_tokens or 0,
                    completion_tokens=chunk_usage.completion_tokens or 0,
                )
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta is None:
                continue
            if delta.content:
                yield TextDelta(delta.content)
            for tc in getattr(delta, "tool_calls", None) or []:
                entry = pending.setdefault(tc.index or 0, {"id": "", "name": "", "arguments": ""})
                if tc.id:
                    entry["id"] = tc.id
                if tc.function is not None:
                    if tc.function.name:
                        entry["name"] = tc.function.name
                    if tc.function.arguments:
                        entry["arguments"] += tc.function.arguments

        for index in sorted(pending):
            yield self._to_tool_call(pending[index], index)

        if usage:
            yield usage

    @staticmethod
    def _to_tool_call(entry: dict[str, str], index: int) -> ToolCallRequest:
        raw = entry["arguments"] or "{}"
        try:
            args = json.loads(raw)
        except json.JSONDecodeError:
            args = {"raw": raw}
        if not isinstance(args, dict):
            args = {"raw": args}
        return ToolCallRequest(id=entry["id"] or f"call_{index}", name=entry["name"], arguments=args)
