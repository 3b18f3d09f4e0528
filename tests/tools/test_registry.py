from typing import Any

import pytest

from pincer.agent.tools.base import Tool, ToolContext
from pincer.agent.tools.registry import ToolRegistry
from pincer.errors import DuplicateToolError, ToolError


class SampleTool(Tool):
    name = "sample"
    description = "sample tool"
    parameters = {
        "type": "object",
        "properties": {
            "query": {"type": "string", "minLength": 2},
            "count": {"type": "integer", "minimum": 1, "maximum": 10},
            "mode": {"type": "string", "enum": ["fast", "full"]},
            "meta": {
                "type": "object",
                "properties": {
                    "tag": {"type": "string"},
                    "flags": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["tag"],
            },
        },
        "required": ["query", "count"],
    }

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> str:
        return f"ran with {sorted(kwargs)}"


class FailingTool(Tool):
    name = "failing"
    description = "always fails"
    parameters = {"type": "object", "properties": {}}

    def __init__(self, exc: Exception):
        self.exc = exc

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> str:
        raise self.exc


CTX = ToolContext(conversation_id="c1", channel="webchat", profile="free")


def test_validate_params_missing_required():
    errors = SampleTool().validate_params({"query": "hi"})
    assert "missing required count" in "; ".join(errors)


def test_validate_params_type_and_range():
    tool = SampleTool()

    errors = tool.validate_params({"query": "hi", "count": 0})
    assert any("count must be >= 1" in e for e in errors)

    errors = tool.validate_params({"query": "hi", "count": "2"})
    assert any("count should be integer" in e for e in errors)

    errors = tool.validate_params({"query": "hi", "count": True})
    assert any("count should be integer" in e for e in errors)


def test_validate_params_enum_and_min_length():
    errors = SampleTool().validate_params({"query": "h", "count": 2, "mode": "slow"})
    assert any("query must be at least 2 chars" in e for e in errors)
    assert any("mode must be one of" in e for e in errors)


def test_validate_params_nested_object_and_array():
    errors = SampleTool().validate_params({"query": "hi", "count": 2, "meta": {"flags": [1, "ok"]}})
    joined = "; ".join(errors)
    assert "missing required meta.tag" in joined
    assert "meta.flags[0] should be string" in joined


def test_validate_params_ignores_unknown_fields():
    errors = SampleTool().validate_params({"query": "hi", "count": 2, "extra": "x"})
    assert errors == []


def test_duplicate_registration_is_rejected():
    registry = ToolRegistry()
    registry.register(SampleTool())

    with pytest.raises(DuplicateToolError):
        registry.register(SampleTool())
    assert len(registry) == 1


def test_definitions_use_function_schema():
    registry = ToolRegistry()
    registry.register(SampleTool())

    [definition] = registry.get_definitions()
    assert definition["type"] == "function"
    assert definition["function"]["name"] == "sample"
    assert definition["function"]["parameters"]["required"] == ["query", "count"]


def test_unregister():
    registry = ToolRegistry()
    registry.register(SampleTool())

    assert registry.unregister("sample") is True
    assert registry.unregister("sample") is False
    assert "sample" not in registry


@pytest.mark.asyncio
async def test_execute_unknown_tool_returns_error_text():
    registry = ToolRegistry()
    registry.register(SampleTool())

    result = await registry.execute("nope", {}, CTX)
    assert result == "Error: Tool 'nope' not found. Available: sample"


@pytest.mark.asyncio
async def test_execute_rejects_invalid_params():
    registry = ToolRegistry()
    registry.register(SampleTool())

    result = await registry.execute("sample", {"query": "hi"}, CTX)
    assert result.startswith("Error: Invalid parameters for tool 'sample':")


@pytest.mark.asyncio
async def test_execute_renders_tool_errors_as_text():
    registry = ToolRegistry()
    registry.register(FailingTool(ToolError("quota gone")))

    assert await registry.execute("failing", {}, CTX) == "Error: quota gone"


@pytest.mark.asyncio
async def test_execute_renders_unexpected_errors_as_text():
    registry = ToolRegistry()
    registry.register(FailingTool(KeyError("x")))

    assert await registry.execute("failing", {}, CTX) == "Error executing failing: 'x'"


@pytest.mark.asyncio
async def test_execute_passes_valid_params():
    registry = ToolRegistry()
    registry.register(SampleTool())

    result = await registry.execute("sample", {"query": "hi", "count": 3}, CTX)
    assert result == "ran with ['count', 'query']"
