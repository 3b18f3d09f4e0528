"""Tool registry for dynamic tool management."""

from typing import Any

from loguru import logger

from pincer.agent.tools.base import Tool, ToolContext
from pincer.errors import DuplicateToolError, ToolError


class ToolRegistry:
    """
    Registry for agent tools.

    Registration is read-mostly: tools are added at startup and looked up on
    every call. A name can only be registered once.
    """

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool. Raises DuplicateToolError if the name is taken."""
        if tool.name in self._tools:
            raise DuplicateToolError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def unregister(self, name: str) -> bool:
        """Unregister a tool by name."""
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def list_all(self) -> list[Tool]:
        return list(self._tools.values())

    def get_definitions(self) -> list[dict[str, Any]]:
        """Get all tool definitions in OpenAI format."""
        return [tool.to_schema() for tool in self._tools.values()]

    async def execute(self, name: str, params: dict[str, Any], ctx: ToolContext) -> str:
        """
        Execute a tool by name.

        Every failure is returned as "Error: ..." text so the model can react
        to it; nothing raised by a tool escapes this method.
        """
        tool = self._tools.get(name)
        if not tool:
            return f"Error: Tool '{name}' not found. Available: {', '.join(self.tool_names)}"

        try:
            errors = tool.validate_params(params)
            if errors:
                return f"Error: Invalid parameters for tool '{name}': " + "; ".join(errors)
            return await tool.execute(ctx, **params)
        except ToolError as e:
            return f"Error: {e}"
        except Exception as e:
            logger.exception(f"Tool '{name}' raised")
            return f"Error executing {name}: {e}"

    @property
    def tool_names(self) -> list[str]:
        """Get list of registered tool names."""
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
