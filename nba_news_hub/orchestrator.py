import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

import click

from .config import FeedConfig, Settings, get_feed_config, get_settings, validate_config
from .errors import NewsHubError, PipelineError, StoreError
from .ingest.comments import CommentSource, NullCommentSource, create_comment_source
from .ingest.sources import SourceRegistry, gather_articles
from .logging import (
    PerformanceLogger,
    get_logger,
    log_cache_lookup,
    log_error,
    log_processing_stage,
    setup_logging,
)
from .processing.dedupe import ArticleDeduplicator
from .processing.relevance import filter_content
from .processing.scoring import ArticleScorer
from .processing.sentiment import SentimentAggregator
from .processing.teams import TEAM_REGISTRY, filter_by_team, normalize_team
from .schema import Comment, NewsItem, RawArticle
from .storage.cache import (
    Clock,
    MemoryNewsCache,
    NewsStore,
    batch_is_fresh,
    newest_created_at,
    oldest_created_at,
    utc_now,
)
from .storage.polls import InMemoryPollStore, PollService
from .storage.sqlite_store import SQLiteNewsStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class NewsResponse:
    """Result of a news query."""
    items: list[NewsItem]
    cached: bool
    last_updated: datetime
    total: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "items": [item.to_record() for item in self.items],
            "cached": self.cached,
            "lastUpdated": self.last_updated.isoformat(),
            "total": self.total,
        }


class NewsService:
    """Serves processed news from cache, running the pipeline when the cache is stale.

    With a configured store the cache lives in SQLite; otherwise a single-slot
    in-process cache holds the last batch.
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[NewsStore] = None,
        memory_cache: Optional[MemoryNewsCache] = None,
        registry: Optional[SourceRegistry] = None,
        feed_config: Optional[FeedConfig] = None,
        aggregator: Optional[SentimentAggregator] = None,
        comment_source: Optional[CommentSource] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Clock = utc_now,
    ):
        self.settings = settings
        self.store = store if store is not None and store.is_configured() else None
        self.clock = clock
        self.memory_cache = memory_cache or MemoryNewsCache(settings.news_cache_ttl_seconds, clock=clock)
        self.registry = registry
        self.feed_config = feed_config or get_feed_config()
        self.aggregator = aggregator or SentimentAggregator(
            min_comments=settings.min_comments_for_sentiment,
            max_comments=settings.max_comments_per_article,
        )
        self.comment_source = comment_source
        self.sleep = sleep
        self.ttl = timedelta(seconds=settings.news_cache_ttl_seconds)

    async def get_news(self, team_filter: Optional[str] = None, force_refresh: bool = False) -> NewsResponse:
        """Return news for a team (or all teams), refreshing the cache when needed.

        Raises:
            PipelineError: an unexpected failure while building the batch
        """
        try:
            cached = None if force_refresh else await self._read_cache()
            if cached is not None:
                items, last_updated = cached
                return self._respond(items, True, last_updated, team_filter)

            items = await self.run_pipeline()
            return self._respond(items, False, self.clock(), team_filter)

        except NewsHubError:
            raise
        except Exception as e:
            logger.error(**log_error(e, context="get_news"), exc_info=True)
            raise PipelineError("Failed to fetch news", details=str(e)) from e

    def _respond(
        self,
        items: Sequence[NewsItem],
        cached: bool,
        last_updated: datetime,
        team_filter: Optional[str],
    ) -> NewsResponse:
        filtered = filter_by_team(items, team_filter)
        return NewsResponse(items=filtered, cached=cached, last_updated=last_updated, total=len(filtered))

    async def _read_cache(self) -> Optional[tuple[list[NewsItem], datetime]]:
        now = self.clock()
        if self.store is None:
            batch = self.memory_cache.get_fresh()
            if batch is None:
                logger.debug(**log_cache_lookup("memory", hit=False))
                return None
            age = (now - batch.fetched_at).total_seconds()
            logger.debug(**log_cache_lookup("memory", hit=True, items=len(batch.items), age_seconds=age))
            return list(batch.items), batch.fetched_at

        try:
            items = await self.store.read_news(self.settings.news_read_limit)
        except StoreError as e:
            logger.warning("News cache read failed, treating as stale", error=e.message, details=e.details)
            return None

        if not batch_is_fresh(items, self.ttl, now):
            logger.debug(**log_cache_lookup("store", hit=False, items=len(items)))
            return None
        last_updated = newest_created_at(items)
        age = (now - oldest_created_at(items)).total_seconds()
        logger.debug(**log_cache_lookup("store", hit=True, items=len(items), age_seconds=age))
        return items, last_updated

    async def run_pipeline(self) -> list[NewsItem]:
        """Fetch, filter, deduplicate and score a fresh batch, then write it to the cache."""
        with PerformanceLogger("news_pipeline", logger):
            articles = await gather_articles(mock=self.settings.mock, registry=self.registry)

            scorer = ArticleScorer(source_bonuses=self.feed_config.get_source_bonuses())
            filtered = filter_content(articles, self.feed_config.get_exclude_paths())
            logger.info(
                **log_processing_stage(
                    stage="content_filter",
                    input_count=len(articles),
                    output_count=len(filtered.kept),
                    dropped=filtered.dropped_total,
                )
            )

            unique, groups = ArticleDeduplicator(self.settings, scorer).deduplicate_articles(filtered.kept)
            logger.info(
                **log_processing_stage(
                    stage="deduplication",
                    input_count=len(filtered.kept),
                    output_count=len(unique),
                    groups=len(groups),
                )
            )

            items, comments = await self._analyze(unique)
            await self._write(items, comments)
            return items

    async def _analyze(self, articles: Sequence[RawArticle]) -> tuple[list[NewsItem], dict[str, tuple[Comment, ...]]]:
        comment_source = self.comment_source
        if comment_source is None:
            comment_source = NullCommentSource() if self.settings.mock else create_comment_source(self.settings)

        created_at = self.clock()
        items: list[NewsItem] = []
        comments: dict[str, tuple[Comment, ...]] = {}

        # Sequential on purpose: comment APIs rate-limit per client.
        for article in articles:
            sentiment = await self.aggregator.analyze_article(
                article.headline, article.summary, comment_source
            )
            items.append(NewsItem.from_article(article, sentiment, created_at=created_at))

            if sentiment.comments:
                comments[article.url] = sentiment.comments
                await self.sleep(self.settings.comment_request_delay)

        logger.info(
            **log_processing_stage(
                stage="sentiment",
                input_count=len(articles),
                output_count=len(items),
                comment_derived=len(comments),
            )
        )
        return items, comments

    async def _write(self, items: list[NewsItem], comments: dict[str, tuple[Comment, ...]]) -> None:
        if self.store is None:
            self.memory_cache.put(items)
            return

        try:
            await self.store.upsert_news(items)
            for url, evidence in comments.items():
                await self.store.replace_comments(url, evidence)
        except StoreError as e:
            logger.error("News cache write failed", error=e.message, details=e.details)


@dataclass
class Services:
    news: NewsService
    polls: PollService
    store: Optional[NewsStore]


def build_services(settings: Settings) -> Services:
    """Wire the news and poll services for the configured backend."""
    store = SQLiteNewsStore(settings.database_path) if settings.database_path else None
    poll_store = store if store is not None else InMemoryPollStore()
    return Services(
        news=NewsService(settings, store=store),
        polls=PollService(poll_store),
        store=store,
    )


def _configure_cli_logging(log_level: str) -> None:
    setup_logging(log_level=log_level, json_logging=False)
    for noisy in ("aiohttp", "aiosqlite", "asyncio"):
        logging.getLogger(noisy).setLevel(max(logging.WARNING, logging.getLogger().level))


def _load_settings(mock: bool = False) -> Settings:
    settings = get_settings()
    if mock:
        settings.mock = True
    if not validate_config(settings):
        click.echo("❌ Configuration validation failed", err=True)
        sys.exit(1)
    return settings


@click.group()
def cli():
    """NBA News Hub - NBA headlines with duplicate removal and fan sentiment."""


@cli.command()
@click.option("--team", help="Team abbreviation to filter by (e.g. LAL)")
@click.option("--refresh", is_flag=True, help="Bypass the cache and refetch")
@click.option("--mock", is_flag=True, help="Use mock articles instead of live feeds")
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON payload")
@click.option("--log-level", default="ERROR", help="Log level")
def news(team, refresh, mock, as_json, log_level):
    """Fetch the latest NBA news."""
    from .render import render_news, render_payload

    _configure_cli_logging(log_level)
    settings = _load_settings(mock)

    wanted = normalize_team(team)
    if wanted is not None and wanted not in TEAM_REGISTRY:
        raise click.BadParameter(f"Unknown team: {team}", param_hint="--team")

    services = build_services(settings)
    try:
        response = asyncio.run(services.news.get_news(team_filter=team, force_refresh=refresh))
    except NewsHubError as e:
        click.echo(f"❌ Error: {e.message}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(render_payload(response.to_payload()))
    else:
        render_news(response)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON payload")
@click.option("--log-level", default="ERROR", help="Log level")
def polls(as_json, log_level):
    """List active fan polls."""
    from .render import render_payload, render_polls

    _configure_cli_logging(log_level)
    services = build_services(_load_settings())

    try:
        active = asyncio.run(services.polls.list_active_polls())
    except NewsHubError as e:
        click.echo(f"❌ Error: {e.message}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(render_payload({"polls": [poll.to_record() for poll in active]}))
    else:
        render_polls(active)


@cli.command()
@click.argument("poll_id")
@click.argument("option_index", type=int)
@click.option("--voter", required=True, help="Voter key (one vote per poll per key)")
@click.option("--log-level", default="ERROR", help="Log level")
def vote(poll_id, option_index, voter, log_level):
    """Vote on a poll."""
    from .render import render_vote

    _configure_cli_logging(log_level)
    services = build_services(_load_settings())

    try:
        result = asyncio.run(services.polls.vote(poll_id, option_index, voter))
    except NewsHubError as e:
        click.echo(f"❌ {e.message}", err=True)
        sys.exit(1)

    render_vote(result)


@cli.command()
@click.option("--host", help="Bind address (defaults to API_HOST)")
@click.option("--port", type=int, help="Port (defaults to API_PORT)")
@click.option("--mock", is_flag=True, help="Use mock articles instead of live feeds")
@click.option("--log-level", default="INFO", help="Log level")
def serve(host, port, mock, log_level):
    """Run the HTTP API."""
    from aiohttp import web

    from .api import create_app

    setup_logging(log_level=log_level)
    settings = _load_settings(mock)
    services = build_services(settings)

    app = create_app(services.news, services.polls, services.store)
    web.run_app(app, host=host or settings.api_host, port=port or settings.api_port)


if __name__ == "__main__":
    cli()
