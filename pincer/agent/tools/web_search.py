"""Web search tool (Brave Search API)."""

from typing import Any

import httpx
from loguru import logger

from pincer.agent.tools.base import Tool, ToolContext
from pincer.errors import ToolError

BRAVE_ENDPOINT = "https://api.search.brave.com/res/v1/web/search"


class WebSearchTool(Tool):
    """Search the web using Brave."""

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return (
            "Search the web for current information. Use this when the user asks about recent "
            "events, facts you are unsure about, or anything that benefits from real-time web data."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "The search query"},
                "count": {"type": "integer", "description": "Results (1-10)", "minimum": 1, "maximum": 10},
            },
            "required": ["query"],
        }

    def __init__(
        self,
        api_key: str,
        max_results: int = 5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.max_results = max_results
        self._transport = transport

    async def execute(self, ctx: ToolContext, query: str, count: int | None = None, **kwargs: Any) -> str:
        n = min(max(count or self.max_results, 1), 10)
        async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
            r = await client.get(
                BRAVE_ENDPOINT,
                params={"q": query, "count": n},
                headers={"Accept": "application/json", "X-Subscription-Token": self.api_key},
            )
        if r.status_code != 200:
            logger.warning(f"Brave search failed: HTTP {r.status_code}")
            raise ToolError(f"Brave search failed: HTTP {r.status_code}")

        results = r.json().get("web", {}).get("results", [])
        if not results:
            return "No results found."

        return "\n\n".join(
            f"{i}. **{item.get('title', '')}**\n   {item.get('url', '')}\n   {item.get('description', '')}"
            for i, item in enumerate(results[:n], 1)
        )
