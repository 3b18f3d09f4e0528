"""Social intelligence tools: X (via PhantomBuster) and Reddit ingestion and recall."""

import asyncio
import json
import time
from datetime import datetime, timezone
from typing import Any

import httpx
from loguru import logger

from pincer.agent.tools.base import Tool, ToolContext
from pincer.config.schema import PhantomBusterConfig
from pincer.errors import ToolError
from pincer.memory.social_posts import SocialPost, SocialPostStore

PHANTOMBUSTER_API = "https://api.phantombuster.com/api/v2"
REDDIT_BASE = "https://www.reddit.com"
USER_AGENT = "pincer/0.3"


def _clip(text: str, n: int) -> str:
    return text[:n] + ("..." if len(text) > n else "")


def _iso(value: Any) -> str:
    if not value:
        return datetime.now(timezone.utc).isoformat()
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).isoformat()
    except ValueError:
        return str(value)


# ========== Clients ==========


class PhantomBusterClient:
    """Launches a PhantomBuster agent and polls until its output is ready."""

    def __init__(
        self,
        api_key: str,
        timeout_seconds: float = 120,
        poll_interval: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval
        self._transport = transport

    async def launch_and_wait(self, agent_id: str, args: dict[str, Any]) -> Any:
        headers = {"X-Phantombuster-Key": self.api_key}
        async with httpx.AsyncClient(transport=self._transport, timeout=30.0) as client:
            r = await client.post(
                f"{PHANTOMBUSTER_API}/agents/launch",
                headers=headers,
                json={"id": agent_id, "argument": json.dumps(args)},
            )
            if r.status_code != 200:
                raise ToolError(f"PhantomBuster launch failed (HTTP {r.status_code}): {r.text}")
            container_id = r.json().get("containerId")
            logger.info(f"PhantomBuster agent {agent_id} launched (container {container_id})")

            start = time.monotonic()
            while time.monotonic() - start < self.timeout_seconds:
                await asyncio.sleep(self.poll_interval)
                r = await client.get(
                    f"{PHANTOMBUSTER_API}/agents/fetch-output",
                    headers=headers,
                    params={"id": agent_id, "containerId": container_id},
                )
                if r.status_code != 200:
                    continue
                data = r.json()
                if data.get("status") == "finished":
                    return data.get("output")
                if data.get("status") == "error":
                    raise ToolError("PhantomBuster agent finished with an error")

        raise ToolError(f"PhantomBuster agent timed out after {self.timeout_seconds:g}s")


class RedditClient:
    """Public Reddit JSON search."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    async def search(
        self,
        query: str,
        subreddit: str | None = None,
        sort: str = "relevance",
        limit: int = 25,
    ) -> list[dict[str, Any]]:
        url = f"{REDDIT_BASE}/r/{subreddit}/search.json" if subreddit else f"{REDDIT_BASE}/search.json"
        params = {
            "q": query,
            "sort": sort,
            "limit": str(min(limit, 100)),
            "restrict_sr": "true" if subreddit else "false",
            "type": "link",
        }
        async with httpx.AsyncClient(transport=self._transport, timeout=15.0) as client:
            r = await client.get(url, params=params, headers={"User-Agent": USER_AGENT})
        if r.status_code == 429:
            raise ToolError("Reddit rate limit reached. Try again in a minute.")
        if r.status_code != 200:
            raise ToolError(f"Reddit search failed: HTTP {r.status_code}")
        return [c.get("data", {}) for c in r.json().get("data", {}).get("children", [])]


# ========== Normalization ==========


def detect_post_type(t: dict[str, Any]) -> str:
    """Classify a PhantomBuster tweet row as article, thread or plain tweet."""
    url = t.get("tweetUrl")
    if (
        t.get("type") == "article"
        or t.get("noteText")
        or t.get("articleBody")
        or t.get("articleTitle")
        or (isinstance(url, str) and "/articles/" in url)
    ):
        return "article"
    conversation = t.get("conversationCount")
    if t.get("isThread") or t.get("threadLength") or (
        isinstance(conversation, int) and not isinstance(conversation, bool) and conversation > 1
    ):
        return "thread"
    return "tweet"


def tweet_to_post(t: dict[str, Any], author: str, source_query: str) -> SocialPost:
    title = t.get("articleTitle") or t.get("noteTitle") or t.get("title")
    return SocialPost(
        platform="twitter",
        external_id=str(t.get("tweetId") or t.get("id") or ""),
        author=author,
        content=str(t.get("articleBody") or t.get("noteText") or t.get("text") or t.get("tweetText") or ""),
        title=str(title) if title else None,
        url=str(t.get("tweetUrl") or t.get("url") or ""),
        score=int(t.get("likeCount") or 0),
        reply_count=int(t.get("replyCount") or 0),
        repost_count=int(t.get("retweetCount") or 0),
        post_type=detect_post_type(t),
        source_query=source_query,
        posted_at=_iso(t.get("timestamp")),
    )


def reddit_to_post(d: dict[str, Any], source_query: str) -> SocialPost:
    created = d.get("created_utc")
    posted = (
        datetime.fromtimestamp(float(created), tz=timezone.utc).isoformat() if created else _iso(None)
    )
    return SocialPost(
        platform="reddit",
        external_id=str(d.get("id", "")),
        author=d.get("author") or "[deleted]",
        content=d.get("selftext") or d.get("body") or "",
        url=f"{REDDIT_BASE}{d.get('permalink', '')}",
        subreddit=d.get("subreddit"),
        title=d.get("title"),
        score=int(d.get("score") or 0),
        reply_count=int(d.get("num_comments") or 0),
        post_type="thread",
        source_query=source_query,
        posted_at=posted,
    )


def _tweet_summary(posts: list[SocialPost]) -> str:
    return "\n".join(
        f"{i}. [{p.post_type}] @{p.author}: {_clip(p.title or p.content, 120)}"
        for i, p in enumerate(posts[:5], 1)
    )


# ========== X / Twitter ==========


class XTrackAccountTool(Tool):
    @property
    def name(self) -> str:
        return "x_track_account"

    @property
    def description(self) -> str:
        return (
            "Fetch recent tweets from a specific X/Twitter account using PhantomBuster. "
            "Ingests them into the database for later querying."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "handle": {"type": "string", "description": "X/Twitter handle (with or without @)"},
                "count": {"type": "integer", "description": "Number of tweets to fetch", "minimum": 1, "maximum": 100},
            },
            "required": ["handle"],
        }

    def __init__(self, store: SocialPostStore, config: PhantomBusterConfig, client: PhantomBusterClient):
        self.store = store
        self.config = config
        self.client = client

    async def execute(self, ctx: ToolContext, handle: str, count: int = 20, **kwargs: Any) -> str:
        if not self.config.api_key or not self.config.tweet_extractor_agent_id:
            return "PhantomBuster Tweet Extractor is not configured."
        clean = handle.lstrip("@")
        try:
            output = await self.client.launch_and_wait(
                self.config.tweet_extractor_agent_id,
                {"twitterHandle": clean, "numberOfTweets": count},
            )
        except (ToolError, httpx.HTTPError) as e:
            return f"Failed to fetch tweets: {e}"

        tweets = output if isinstance(output, list) else []
        if not tweets:
            return f"No tweets found for @{clean}."
        posts = [tweet_to_post(t, clean, f"account:{clean}") for t in tweets]
        inserted = self.store.upsert_many(posts)
        articles = sum(1 for p in posts if p.post_type == "article")
        return (
            f"Fetched {len(tweets)} posts from @{clean} ({inserted} new, {articles} articles).\n\n"
            f"Top results:\n{_tweet_summary(posts)}"
        )


class XSearchKeywordsTool(Tool):
    @property
    def name(self) -> str:
        return "x_search_keywords"

    @property
    def description(self) -> str:
        return (
            "Search X/Twitter for tweets matching keywords using PhantomBuster. "
            "Ingests results into the database."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "keywords": {"type": "string", "description": "Search keywords or phrase"},
                "count": {"type": "integer", "description": "Number of results to fetch", "minimum": 1, "maximum": 100},
            },
            "required": ["keywords"],
        }

    def __init__(self, store: SocialPostStore, config: PhantomBusterConfig, client: PhantomBusterClient):
        self.store = store
        self.config = config
        self.client = client

    async def execute(self, ctx: ToolContext, keywords: str, count: int = 20, **kwargs: Any) -> str:
        if not self.config.api_key or not self.config.search_export_agent_id:
            return "PhantomBuster Search Export is not configured."
        try:
            output = await self.client.launch_and_wait(
                self.config.search_export_agent_id,
                {"searchTerms": keywords, "numberOfTweets": count},
            )
        except (ToolError, httpx.HTTPError) as e:
            return f"Failed to search tweets: {e}"

        tweets = output if isinstance(output, list) else []
        if not tweets:
            return f'No tweets found for "{keywords}".'
        posts = [
            tweet_to_post(t, str(t.get("handle") or t.get("username") or ""), f"search:{keywords}")
            for t in tweets
        ]
        inserted = self.store.upsert_many(posts)
        articles = sum(1 for p in posts if p.post_type == "article")
        return (
            f'Found {len(tweets)} posts for "{keywords}" ({inserted} new, {articles} articles).\n\n'
            f"Top results:\n{_tweet_summary(posts)}"
        )


class QueryTweetsTool(Tool):
    @property
    def name(self) -> str:
        return "query_tweets"

    @property
    def description(self) -> str:
        return (
            "Search previously ingested tweets using full-text search. Use this to find tweets "
            "already collected by x_track_account or x_search_keywords."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "author": {"type": "string", "description": "Filter by author handle"},
                "limit": {"type": "integer", "description": "Max results", "minimum": 1, "maximum": 50},
            },
            "required": ["query"],
        }

    def __init__(self, store: SocialPostStore):
        self.store = store

    async def execute(
        self, ctx: ToolContext, query: str, author: str | None = None, limit: int = 10, **kwargs: Any
    ) -> str:
        if author:
            results = self.store.get_recent(platform="twitter", author=author, limit=limit)
            if query:
                lower = query.lower()
                results = [
                    p for p in results
                    if lower in p.content.lower() or lower in (p.title or "").lower()
                ]
        else:
            results = self.store.search(query, platform="twitter", limit=limit)

        if not results:
            return "No matching tweets found in the database."
        return "\n".join(
            f"{i}. [{p.post_type}] @{p.author} ({p.posted_at[:10]}): {_clip(p.title or p.content, 150)}\n   {p.url}"
            for i, p in enumerate(results, 1)
        )


# ========== Reddit ==========


class RedditSearchTool(Tool):
    @property
    def name(self) -> str:
        return "reddit_search"

    @property
    def description(self) -> str:
        return (
            "Search Reddit for posts matching a query. Optionally restrict to a specific subreddit. "
            "Results are ingested into the database for later querying."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "subreddit": {"type": "string", "description": "Restrict to a specific subreddit (without r/)"},
                "sort": {
                    "type": "string",
                    "enum": ["relevance", "hot", "top", "new", "comments"],
                    "description": "Sort order",
                },
                "limit": {"type": "integer", "description": "Max results", "minimum": 1, "maximum": 100},
            },
            "required": ["query"],
        }

    def __init__(self, store: SocialPostStore, client: RedditClient):
        self.store = store
        self.client = client

    async def execute(
        self,
        ctx: ToolContext,
        query: str,
        subreddit: str | None = None,
        sort: str = "relevance",
        limit: int = 25,
        **kwargs: Any,
    ) -> str:
        try:
            children = await self.client.search(query, subreddit, sort, limit)
        except (ToolError, httpx.HTTPError) as e:
            return f"Reddit search failed: {e}"
        if not children:
            return f'No Reddit posts found for "{query}".'

        posts = [reddit_to_post(c, query) for c in children]
        inserted = self.store.upsert_many(posts)
        summary = "\n".join(
            f"{i}. r/{p.subreddit} - **{(p.title or '')[:80]}** (score: {p.score}, {p.reply_count} comments)\n"
            f"   by u/{p.author} - {p.url}"
            for i, p in enumerate(posts[:5], 1)
        )
        return f'Found {len(children)} Reddit posts for "{query}" ({inserted} new).\n\n{summary}'


class RedditMonitorTool(Tool):
    @property
    def name(self) -> str:
        return "reddit_monitor"

    @property
    def description(self) -> str:
        return (
            "Check a subreddit for NEW posts matching keywords (only returns posts not already in "
            "the database). Designed to pair with set_reminder for recurring monitoring."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "subreddit": {"type": "string", "description": "Subreddit to monitor (without r/)"},
                "keywords": {"type": "string", "description": "Keywords to search for"},
            },
            "required": ["subreddit", "keywords"],
        }

    def __init__(self, store: SocialPostStore, client: RedditClient):
        self.store = store
        self.client = client

    async def execute(self, ctx: ToolContext, subreddit: str, keywords: str, **kwargs: Any) -> str:
        try:
            children = await self.client.search(keywords, subreddit, "new", 50)
        except (ToolError, httpx.HTTPError) as e:
            return f"Reddit monitor failed: {e}"
        if not children:
            return f'No posts found in r/{subreddit} for "{keywords}".'

        fresh = [c for c in children if not self.store.exists_by_external_id("reddit", str(c.get("id", "")))]
        if not fresh:
            return f'No new posts in r/{subreddit} for "{keywords}" since last check.'

        posts = [reddit_to_post(c, f"monitor:{subreddit}:{keywords}") for c in fresh]
        self.store.upsert_many(posts)
        summary = "\n".join(
            f"{i}. **{(p.title or '')[:80]}** (score: {p.score})\n   by u/{p.author} - {p.url}"
            for i, p in enumerate(posts[:5], 1)
        )
        return f'{len(fresh)} new post(s) in r/{subreddit} for "{keywords}":\n\n{summary}'


class QueryRedditPostsTool(Tool):
    @property
    def name(self) -> str:
        return "query_reddit_posts"

    @property
    def description(self) -> str:
        return (
            "Search previously ingested Reddit posts using full-text search. Use this to find posts "
            "already collected by reddit_search or reddit_monitor."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "subreddit": {"type": "string", "description": "Filter by subreddit"},
                "limit": {"type": "integer", "description": "Max results", "minimum": 1, "maximum": 50},
            },
            "required": ["query"],
        }

    def __init__(self, store: SocialPostStore):
        self.store = store

    async def execute(
        self, ctx: ToolContext, query: str, subreddit: str | None = None, limit: int = 10, **kwargs: Any
    ) -> str:
        results = self.store.search(query, platform="reddit", subreddit=subreddit, limit=limit)
        if not results:
            return "No matching Reddit posts found in the database."
        return "\n".join(
            f"{i}. r/{p.subreddit} - **{(p.title or '')[:80]}** (score: {p.score})\n"
            f"   by u/{p.author} ({p.posted_at[:10]})\n   {p.url}"
            for i, p in enumerate(results, 1)
        )
