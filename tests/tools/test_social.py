import httpx
import pytest

from pincer.agent.tools.base import ToolContext
from pincer.agent.tools.social import (
    PhantomBusterClient,
    QueryRedditPostsTool,
    QueryTweetsTool,
    RedditClient,
    RedditMonitorTool,
    RedditSearchTool,
    XTrackAccountTool,
    detect_post_type,
    reddit_to_post,
)
from pincer.config.schema import PhantomBusterConfig

CTX = ToolContext(conversation_id="c1", channel="webchat", profile="free")


def _reddit_child(post_id: str, title: str, subreddit: str = "python") -> dict:
    return {"data": {
        "id": post_id,
        "title": title,
        "selftext": f"body of {title}",
        "author": "alice",
        "subreddit": subreddit,
        "permalink": f"/r/{subreddit}/comments/{post_id}/",
        "score": 10,
        "num_comments": 2,
        "created_utc": 1767225600,
    }}


def _reddit_transport(children: list[dict], status: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if status != 200:
            return httpx.Response(status)
        return httpx.Response(200, json={"data": {"children": children}})

    return httpx.MockTransport(handler)


def test_post_type_detection():
    assert detect_post_type({"text": "hello"}) == "tweet"
    assert detect_post_type({"tweetUrl": "https://x.com/a/articles/1"}) == "article"
    assert detect_post_type({"noteText": "long form"}) == "article"
    assert detect_post_type({"conversationCount": 3}) == "thread"
    assert detect_post_type({"conversationCount": True}) == "tweet"


def test_reddit_posts_are_threads():
    post = reddit_to_post(_reddit_child("abc", "Hello")["data"], "hello")

    assert post.post_type == "thread"
    assert post.url == "https://www.reddit.com/r/python/comments/abc/"
    assert post.posted_at.startswith("2026-01-01")


@pytest.mark.asyncio
async def test_reddit_search_ingests_each_post_once(social_store):
    children = [_reddit_child("p1", "Async tips"), _reddit_child("p2", "Typing tricks")]
    tool = RedditSearchTool(social_store, RedditClient(transport=_reddit_transport(children)))

    first = await tool.execute(CTX, query="python")
    second = await tool.execute(CTX, query="python")

    assert first.startswith('Found 2 Reddit posts for "python" (2 new).')
    assert second.startswith('Found 2 Reddit posts for "python" (0 new).')
    assert social_store.count("reddit") == 2


@pytest.mark.asyncio
async def test_reddit_rate_limit_message(social_store):
    tool = RedditSearchTool(social_store, RedditClient(transport=_reddit_transport([], status=429)))

    result = await tool.execute(CTX, query="python")

    assert result == "Reddit search failed: Reddit rate limit reached. Try again in a minute."


@pytest.mark.asyncio
async def test_reddit_monitor_reports_only_new_posts(social_store):
    social_store.upsert(reddit_to_post(_reddit_child("old", "Seen before")["data"], "earlier"))
    children = [_reddit_child("old", "Seen before"), _reddit_child("new", "Brand new")]
    tool = RedditMonitorTool(social_store, RedditClient(transport=_reddit_transport(children)))

    result = await tool.execute(CTX, subreddit="python", keywords="asyncio")

    assert result.startswith('1 new post(s) in r/python for "asyncio":')
    assert "Brand new" in result
    assert "Seen before" not in result

    again = await tool.execute(CTX, subreddit="python", keywords="asyncio")
    assert again == 'No new posts in r/python for "asyncio" since last check.'


@pytest.mark.asyncio
async def test_query_reddit_posts(social_store):
    social_store.upsert(reddit_to_post(_reddit_child("p1", "Async tips")["data"], "python"))
    tool = QueryRedditPostsTool(social_store)

    assert "Async tips" in await tool.execute(CTX, query="async")
    assert await tool.execute(CTX, query="haskell") == "No matching Reddit posts found in the database."


def _phantom_transport(statuses: list[str], output):
    calls = {"launch": 0, "fetch": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/agents/launch"):
            calls["launch"] += 1
            assert request.headers["X-Phantombuster-Key"] == "pb-key"
            return httpx.Response(200, json={"containerId": "ctr-1"})
        calls["fetch"] += 1
        status = statuses.pop(0) if statuses else "finished"
        return httpx.Response(200, json={"status": status, "output": output if status == "finished" else None})

    return httpx.MockTransport(handler), calls


@pytest.mark.asyncio
async def test_x_track_account_polls_until_finished(social_store):
    tweets = [
        {"tweetId": "t1", "text": "Shipping pincer today", "likeCount": 5},
        {"tweetId": "t2", "articleTitle": "Why crabs", "articleBody": "Long read"},
    ]
    transport, calls = _phantom_transport(["running", "running"], tweets)
    config = PhantomBusterConfig(api_key="pb-key", tweet_extractor_agent_id="agent-1")
    client = PhantomBusterClient("pb-key", poll_interval=0, transport=transport)
    tool = XTrackAccountTool(social_store, config, client)

    result = await tool.execute(CTX, handle="@crabdev")

    assert result.startswith("Fetched 2 posts from @crabdev (2 new, 1 articles).")
    assert calls == {"launch": 1, "fetch": 3}
    assert social_store.count("twitter") == 2

    recalled = await QueryTweetsTool(social_store).execute(CTX, query="crabs")
    assert "[article] @crabdev" in recalled


@pytest.mark.asyncio
async def test_x_track_account_agent_error(social_store):
    transport, _ = _phantom_transport(["error"], None)
    config = PhantomBusterConfig(api_key="pb-key", tweet_extractor_agent_id="agent-1")
    tool = XTrackAccountTool(
        social_store, config, PhantomBusterClient("pb-key", poll_interval=0, transport=transport)
    )

    result = await tool.execute(CTX, handle="crabdev")

    assert result == "Failed to fetch tweets: PhantomBuster agent finished with an error"


@pytest.mark.asyncio
async def test_x_tools_require_agent_configuration(social_store):
    tool = XTrackAccountTool(social_store, PhantomBusterConfig(api_key="pb-key"), PhantomBusterClient("pb-key"))

    assert await tool.execute(CTX, handle="crabdev") == "PhantomBuster Tweet Extractor is not configured."
