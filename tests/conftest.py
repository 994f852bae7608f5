"""Pytest configuration and fixtures."""

import os
import tempfile
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Generator

import pytest

# Set test environment
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["JSON_LOGGING"] = "false"
os.environ.pop("YOUTUBE_API_KEY", None)
os.environ.pop("DATABASE_PATH", None)

from nba_news_hub.config import Settings  # noqa: E402
from nba_news_hub.processing.teams import match_teams  # noqa: E402
from nba_news_hub.schema import Comment, RawArticle  # noqa: E402

NOW = datetime(2025, 1, 15, 20, 0, tzinfo=UTC)


class FakeScorer:
    """Polarity scorer driven by keyword lookups; unknown text scores 0."""

    def __init__(self, lexicon: dict[str, float] | None = None, error: Exception | None = None):
        self.lexicon = lexicon or {"great": 0.8, "win": 0.5, "terrible": -0.8, "loss": -0.5}
        self.error = error
        self.calls: list[str] = []

    def score(self, text: str) -> float:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        lowered = text.lower()
        for word, value in self.lexicon.items():
            if word in lowered:
                return value
        return 0.0


class FakeCommentSource:
    """Comment source returning canned comments and recording queries."""

    def __init__(self, comments: list[Comment] | None = None, name: str = "reddit", error: Exception | None = None):
        self.name = name
        self.comments = comments or []
        self.error = error
        self.queries: list[str] = []

    async def search_comments(self, query: str) -> list[Comment]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.comments)


def make_article(
    headline: str = "Lakers beat Warriors",
    summary: str = "",
    url: str | None = None,
    published_at: datetime = NOW,
    source: str = "ESPN",
    source_id: str = "espn",
    image_url: str | None = None,
) -> RawArticle:
    """Build a RawArticle with teams matched from its text."""
    return RawArticle(
        id=str(uuid.uuid4()),
        headline=headline,
        summary=summary,
        source=source,
        source_id=source_id,
        url=url if url is not None else f"https://example.com/{uuid.uuid4().hex}",
        published_at=published_at,
        image_url=image_url,
        teams=match_teams(headline, summary),
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only, ignoring any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def article_factory():
    return make_article


@pytest.fixture
def fake_scorer() -> FakeScorer:
    return FakeScorer()


@pytest.fixture
def sample_comments() -> list[Comment]:
    return [
        Comment(text="What a great win for the Lakers tonight", author="fan1", like_count=12),
        Comment(text="LeBron is great, nothing else to say", author="fan2", like_count=7),
        Comment(text="Terrible defense from the Warriors all game", author="fan3", like_count=3),
        Comment(text="I was at the arena and it felt normal", author="fan4", like_count=1),
    ]


@pytest.fixture
def sample_articles() -> list[RawArticle]:
    """Two versions of one story an hour apart plus an unrelated one."""
    return [
        make_article(
            "Lakers rally past Warriors as LeBron James scores 40",
            "LeBron James scored 40 as the Lakers beat Golden State.",
            url="https://example.com/espn-lakers",
            published_at=NOW - timedelta(hours=1),
        ),
        make_article(
            "LeBron James drops 40 as Lakers beat Warriors",
            "The Lakers beat Golden State behind 40 from LeBron James.",
            url="https://example.com/br-lakers",
            published_at=NOW - timedelta(hours=2),
            source="Bleacher Report",
            source_id="bleacher-report",
        ),
        make_article(
            "Thunder extend win streak to nine games",
            "Oklahoma City keeps rolling.",
            url="https://example.com/thunder",
            published_at=NOW - timedelta(hours=3),
        ),
    ]
