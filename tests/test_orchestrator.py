"""Tests for the news service pipeline and caching."""

from datetime import timedelta

import pytest
from conftest import NOW, FakeCommentSource, FakeScorer

from nba_news_hub import orchestrator
from nba_news_hub.errors import PipelineError, StoreError
from nba_news_hub.orchestrator import NewsService, build_services
from nba_news_hub.processing.sentiment import SentimentAggregator
from nba_news_hub.storage.cache import NewsStore
from nba_news_hub.storage.sqlite_store import SQLiteNewsStore


class Clock:
    def __init__(self):
        self.now = NOW

    def __call__(self):
        return self.now


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class BrokenStore(NewsStore):
    """Store whose every news operation fails."""

    def is_configured(self):
        return True

    async def read_news(self, limit):
        raise StoreError("Failed to read news cache", details="disk I/O error")

    async def upsert_news(self, items):
        raise StoreError("Failed to write news cache", details="disk I/O error")

    async def read_polls(self, active_only=True):
        return []

    async def get_poll(self, poll_id):
        return None

    async def update_poll_options(self, poll_id, options):
        raise StoreError("Failed to update poll")

    async def insert_vote_record(self, poll_id, voter_key, option_index):
        raise StoreError("Failed to record vote")

    async def record_vote(self, poll_id, voter_key, option_index):
        raise StoreError("Failed to record vote")

    async def read_comments(self, url, limit=10):
        return []

    async def replace_comments(self, url, comments):
        raise StoreError("Failed to store comments")


@pytest.fixture
def mock_settings(settings):
    return settings.model_copy(update={"mock": True})


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_service(mock_settings, clock, sleep, sample_comments):
    def factory(store=None, comments=sample_comments):
        return NewsService(
            mock_settings,
            store=store,
            aggregator=SentimentAggregator(scorer=FakeScorer()),
            comment_source=FakeCommentSource(comments),
            sleep=sleep,
            clock=clock,
        )
    return factory


@pytest.mark.asyncio
async def test_fresh_batch_runs_whole_pipeline(make_service, sleep):
    response = await make_service().get_news()

    assert response.cached is False
    assert response.last_updated == NOW
    # five mock articles, one duplicate story
    assert response.total == 4
    assert len({item.url for item in response.items}) == 4
    published = [item.published_at for item in response.items]
    assert published == sorted(published, reverse=True)

    for item in response.items:
        assert item.sentiment_source == "reddit"
        assert item.sentiment_comment_count == 4
        assert item.created_at == NOW
        breakdown = item.sentiment_breakdown
        assert breakdown.positive + breakdown.neutral + breakdown.negative == 100

    assert sleep.delays == [0.2] * 4


@pytest.mark.asyncio
async def test_headline_sentiment_does_not_pause(make_service, sleep):
    response = await make_service(comments=[]).get_news()

    assert {item.sentiment_source for item in response.items} == {"headline"}
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_second_request_served_from_memory_cache(make_service, clock, monkeypatch):
    service = make_service()
    first = await service.get_news()

    async def fail(*args, **kwargs):
        raise AssertionError("pipeline should not run")

    monkeypatch.setattr(orchestrator, "gather_articles", fail)
    clock.now = NOW + timedelta(minutes=5)
    second = await service.get_news()

    assert second.cached is True
    assert second.last_updated == NOW
    assert [item.url for item in second.items] == [item.url for item in first.items]


@pytest.mark.asyncio
async def test_cache_expires_after_ttl(make_service, clock):
    service = make_service()
    await service.get_news()

    clock.now = NOW + timedelta(minutes=15)
    response = await service.get_news()

    assert response.cached is False
    assert response.last_updated == clock.now


@pytest.mark.asyncio
async def test_force_refresh_bypasses_cache(make_service):
    service = make_service()
    await service.get_news()

    response = await service.get_news(force_refresh=True)
    assert response.cached is False


@pytest.mark.asyncio
async def test_team_filter(make_service):
    service = make_service()
    everything = await service.get_news(team_filter="ALL")
    lakers = await service.get_news(team_filter="lal")

    assert everything.total == 4
    assert lakers.total == len(lakers.items) >= 1
    assert all("LAL" in item.teams for item in lakers.items)
    assert lakers.cached is True


@pytest.mark.asyncio
async def test_store_backed_cache_and_comments(make_service, temp_dir, sample_comments):
    store = SQLiteNewsStore(temp_dir / "news.db")
    service = make_service(store=store)

    fresh = await service.get_news()
    cached = await service.get_news()

    assert fresh.cached is False
    assert cached.cached is True
    assert cached.last_updated == NOW
    assert sorted(item.url for item in cached.items) == sorted(item.url for item in fresh.items)

    comments = await store.read_comments(fresh.items[0].url)
    assert [c.like_count for c in comments] == sorted((c.like_count for c in sample_comments), reverse=True)


@pytest.mark.asyncio
async def test_store_failures_degrade_to_fresh_data(make_service):
    service = make_service(store=BrokenStore())

    response = await service.get_news()

    assert response.cached is False
    assert response.total == 4


@pytest.mark.asyncio
async def test_unexpected_failure_wrapped(make_service, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("feed parser exploded")

    monkeypatch.setattr(orchestrator, "gather_articles", explode)

    with pytest.raises(PipelineError) as excinfo:
        await make_service().get_news()

    payload = excinfo.value.to_payload()
    assert payload["classification"] == "pipeline_failed"
    assert payload["details"] == "feed parser exploded"


def test_response_payload_shape():
    response = orchestrator.NewsResponse(items=[], cached=True, last_updated=NOW, total=0)
    assert response.to_payload() == {
        "items": [],
        "cached": True,
        "lastUpdated": "2025-01-15T20:00:00+00:00",
        "total": 0,
    }


def test_build_services_in_memory(settings):
    services = build_services(settings)
    assert services.store is None
    assert services.news.store is None


def test_build_services_with_database(settings, temp_dir):
    services = build_services(settings.model_copy(update={"database_path": temp_dir / "news.db"}))
    assert isinstance(services.store, SQLiteNewsStore)
    assert services.polls.store is services.store
