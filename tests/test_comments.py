"""Tests for the YouTube and Reddit comment sources."""

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from nba_news_hub.ingest.comments import (
    CommentSource,
    NullCommentSource,
    RedditCommentSource,
    YouTubeCommentSource,
    create_comment_source,
)


def youtube_thread(text, author="fan", likes=0):
    return {"snippet": {"topLevelComment": {"snippet": {
        "textDisplay": text,
        "authorDisplayName": author,
        "likeCount": likes,
    }}}}


def reddit_comment(body, author="fan", score=1):
    return {"kind": "t1", "data": {"body": body, "author": author, "score": score}}


@pytest_asyncio.fixture
async def api_server():
    state = {"youtube_status": 200, "seen": []}

    async def youtube_search(request):
        state["seen"].append(dict(request.query))
        if state["youtube_status"] != 200:
            return web.json_response({"error": {"message": "quota"}}, status=state["youtube_status"])
        return web.json_response({"items": [{"id": {"kind": "youtube#video", "videoId": "vid123"}}]})

    async def youtube_comments(request):
        assert request.query["videoId"] == "vid123"
        return web.json_response({"items": [
            youtube_thread("LeBron is still the best player in this league", "a", 40),
            youtube_thread("short", "b", 2),
            youtube_thread("That comeback was absolutely incredible to watch", "c", 12),
        ]})

    async def reddit_search(request):
        return web.json_response({"data": {"children": [
            {"data": {"permalink": "/r/nba/comments/quiet/thread/", "num_comments": 1}},
            {"data": {"permalink": "/r/nba/comments/busy/thread/", "num_comments": 120}},
        ]}})

    async def reddit_thread(request):
        return web.json_response([
            {"data": {"children": []}},
            {"data": {"children": [
                reddit_comment("Warriors defense was nowhere tonight", "u1", 55),
                reddit_comment("[deleted]"),
                reddit_comment("I am a bot, and this action was performed automatically"),
                reddit_comment("ok"),
                {"kind": "more", "data": {}},
                reddit_comment("Curry needs more help from the bench", "u2", 9),
            ]}},
        ])

    app = web.Application()
    app.router.add_get("/search", youtube_search)
    app.router.add_get("/commentThreads", youtube_comments)
    app.router.add_get("/r/nba/search.json", reddit_search)
    app.router.add_get("/r/nba/comments/busy/thread.json", reddit_thread)

    server = TestServer(app)
    await server.start_server()
    server.state = state
    yield server
    await server.close()


def base_url(server):
    return str(server.make_url("/")).rstrip("/")


@pytest.mark.asyncio
async def test_youtube_comments_from_top_video(api_server):
    source = YouTubeCommentSource(api_key="test-key", base_url=base_url(api_server))

    comments = await source.search_comments("Lakers Warriors")

    assert [c.author for c in comments] == ["a", "c"]
    assert comments[0].like_count == 40
    search = api_server.state["seen"][0]
    assert search["key"] == "test-key"
    assert search["q"] == "Lakers Warriors NBA"
    assert search["type"] == "video"


@pytest.mark.asyncio
async def test_youtube_respects_max_comments(api_server):
    source = YouTubeCommentSource(api_key="k", base_url=base_url(api_server), max_comments=1)
    assert len(await source.search_comments("Lakers")) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [403, 400, 500])
async def test_youtube_errors_degrade_to_empty(api_server, status):
    api_server.state["youtube_status"] = status
    source = YouTubeCommentSource(api_key="k", base_url=base_url(api_server))

    assert await source.search_comments("Lakers") == []


@pytest.mark.asyncio
async def test_youtube_network_failure_degrades_to_empty():
    source = YouTubeCommentSource(api_key="k", base_url="http://127.0.0.1:9", timeout=1)
    assert await source.search_comments("Lakers") == []


@pytest.mark.asyncio
async def test_empty_query_skips_request(api_server):
    source = YouTubeCommentSource(api_key="k", base_url=base_url(api_server))
    assert await source.search_comments("") == []
    assert api_server.state["seen"] == []


@pytest.mark.asyncio
async def test_reddit_comments_from_busiest_thread(api_server):
    source = RedditCommentSource(base_url=base_url(api_server))

    comments = await source.search_comments("Warriors Curry")

    assert [c.text for c in comments] == [
        "Warriors defense was nowhere tonight",
        "Curry needs more help from the bench",
    ]
    assert comments[0].like_count == 55


@pytest.mark.asyncio
async def test_null_source():
    source = NullCommentSource()
    assert isinstance(source, CommentSource)
    assert await source.search_comments("Lakers") == []


def test_create_comment_source_prefers_youtube(settings):
    configured = settings.model_copy(update={"youtube_api_key": "abc"})
    assert isinstance(create_comment_source(configured), YouTubeCommentSource)


def test_create_comment_source_reddit_then_none(settings):
    assert isinstance(create_comment_source(settings), RedditCommentSource)

    disabled = settings.model_copy(update={"reddit_enabled": False})
    assert isinstance(create_comment_source(disabled), NullCommentSource)
