"""Tests for the HTTP query surface."""

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer
from conftest import FakeCommentSource, FakeScorer

from nba_news_hub.api import create_app
from nba_news_hub.orchestrator import NewsService
from nba_news_hub.processing.sentiment import SentimentAggregator
from nba_news_hub.schema import Comment
from nba_news_hub.storage.polls import InMemoryPollStore, PollService
from nba_news_hub.storage.sqlite_store import SQLiteNewsStore


async def start_client(app):
    client = TestClient(TestServer(app))
    await client.start_server()
    return client


@pytest.fixture
def news_service(settings, sample_comments):
    return NewsService(
        settings.model_copy(update={"mock": True}),
        aggregator=SentimentAggregator(scorer=FakeScorer()),
        comment_source=FakeCommentSource(sample_comments),
        sleep=lambda delay: _no_sleep(),
    )


async def _no_sleep():
    return None


@pytest_asyncio.fixture
async def client(news_service):
    app = create_app(news_service, PollService(InMemoryPollStore()))
    client = await start_client(app)
    yield client
    await client.close()


@pytest_asyncio.fixture
async def store_client(news_service, temp_dir):
    store = SQLiteNewsStore(temp_dir / "news.db")
    app = create_app(news_service, PollService(store), store)
    client = await start_client(app)
    client.store = store
    yield client
    await client.close()


@pytest.mark.asyncio
async def test_news_endpoint(client):
    response = await client.get("/api/news")
    assert response.status == 200

    body = await response.json()
    assert set(body) == {"items", "cached", "lastUpdated", "total"}
    assert body["cached"] is False
    assert body["total"] == len(body["items"]) == 4
    assert body["items"][0]["sentiment_source"] == "reddit"

    again = await (await client.get("/api/news")).json()
    assert again["cached"] is True


@pytest.mark.asyncio
async def test_news_team_filter_and_refresh(client):
    await client.get("/api/news")

    body = await (await client.get("/api/news", params={"team": "LAL", "refresh": "true"})).json()

    assert body["cached"] is False
    assert body["total"] >= 1
    assert all("LAL" in item["teams"] for item in body["items"])


@pytest.mark.asyncio
async def test_security_headers(client):
    response = await client.get("/api/polls")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Server"] == "NBA-News-Hub"


@pytest.mark.asyncio
async def test_list_polls(client):
    response = await client.get("/api/polls")
    body = await response.json()

    assert response.status == 200
    assert [poll["id"] for poll in body["polls"]] == ["1", "2", "3", "4"]


@pytest.mark.asyncio
async def test_vote_and_duplicate_vote(client):
    headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}

    response = await client.post("/api/polls", json={"pollId": "1", "optionIndex": 0}, headers=headers)
    body = await response.json()
    assert response.status == 200
    assert body["success"] is True
    assert body["poll"]["options"][0]["votes"] == 1
    assert "SGA" in body["insight"]

    repeat = await client.post("/api/polls", json={"pollId": "1", "optionIndex": 1},
                               headers={"X-Forwarded-For": "203.0.113.7"})
    repeat_body = await repeat.json()
    assert repeat.status == 400
    assert repeat_body["alreadyVoted"] is True
    assert repeat_body["classification"] == "already_voted"


@pytest.mark.asyncio
async def test_voter_key_falls_back_to_real_ip(client):
    first = await client.post("/api/polls", json={"pollId": "2", "optionIndex": 0},
                              headers={"X-Real-IP": "198.51.100.1"})
    second = await client.post("/api/polls", json={"pollId": "2", "optionIndex": 0},
                               headers={"X-Real-IP": "198.51.100.2"})

    assert first.status == 200
    assert second.status == 200
    assert (await second.json())["poll"]["options"][0]["votes"] == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("payload, status, error", [
    ({"optionIndex": 0}, 400, "Missing required fields: pollId, optionIndex"),
    ({"pollId": "1"}, 400, "Missing required fields: pollId, optionIndex"),
    ({"pollId": "1", "optionIndex": 9}, 400, "Invalid option index"),
    ({"pollId": "99", "optionIndex": 0}, 404, "Poll not found"),
])
async def test_vote_errors(client, payload, status, error):
    response = await client.post("/api/polls", json=payload)
    body = await response.json()

    assert response.status == status
    assert body["error"] == error
    assert "Traceback" not in str(body)


@pytest.mark.asyncio
async def test_vote_rejects_malformed_body(client):
    response = await client.post("/api/polls", data="not json", headers={"Content-Type": "application/json"})
    assert response.status == 400
    assert (await response.json())["classification"] == "invalid_request"

    response = await client.post("/api/polls", data="pollId=1", headers={"Content-Type": "text/plain"})
    assert response.status == 400


@pytest.mark.asyncio
async def test_comments_require_url(client):
    response = await client.get("/api/comments")
    assert response.status == 400
    assert (await response.json())["error"] == "Missing required parameter: url"


@pytest.mark.asyncio
async def test_comments_empty_without_store(client):
    response = await client.get("/api/comments", params={"url": "https://example.com/a"})
    assert await response.json() == {"comments": []}


@pytest.mark.asyncio
async def test_comments_from_store(store_client):
    await store_client.store.replace_comments("https://example.com/a", [
        Comment("first comment here", "a", 2),
        Comment("second comment here", "b", 9),
    ])

    response = await store_client.get("/api/comments", params={"url": "https://example.com/a"})
    body = await response.json()

    assert [c["author"] for c in body["comments"]] == ["b", "a"]
    assert body["comments"][0] == {"text": "second comment here", "author": "b", "like_count": 9}
