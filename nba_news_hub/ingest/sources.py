"""News source registry and adapter framework."""

import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from typing import Any, Dict, List, Optional

import aiohttp
import feedparser

from ..config import FeedConfig, Settings, SourceConfig, get_feed_config, get_settings
from ..logging import PerformanceLogger, get_logger, log_processing_stage
from ..processing.teams import match_teams
from ..processing.text_utils import clean_html_text, first_image_src
from ..schema import RawArticle
from ..utils import AsyncSemaphore, extract_domain, parse_date_string, retry_async, truncate_text
from .enrichment import OgImageEnricher

logger = get_logger(__name__)

NO_TITLE = "No title"
CONTENT_SNIPPET_LENGTH = 300


class SourceAdapter(ABC):
    """Abstract base class for news source adapters."""

    def __init__(self, source_config: SourceConfig, settings: Optional[Settings] = None):
        self.config = source_config
        self.url = str(source_config.url)
        self.domain = extract_domain(self.url)

        self.settings = settings or get_settings()
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """Async context manager entry."""
        timeout = aiohttp.ClientTimeout(total=self.settings.feed_timeout_seconds)
        connector = aiohttp.TCPConnector(limit=10, limit_per_host=5)

        self.session = aiohttp.ClientSession(
            timeout=timeout,
            connector=connector,
            headers={'User-Agent': self.settings.user_agent}
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.session:
            await self.session.close()

    @abstractmethod
    async def fetch_articles(self, limit: Optional[int] = None) -> List[RawArticle]:
        """Fetch articles from the source.

        Args:
            limit: Maximum number of articles to fetch

        Returns:
            List of RawArticle objects
        """

    async def _fetch_url(self, url: str, retry_count: int = 3) -> str:
        """Fetch URL content with error handling and retry logic.

        Args:
            url: URL to fetch
            retry_count: Number of retry attempts

        Returns:
            Response text

        Raises:
            aiohttp.ClientError: If request fails after all retries
        """
        if not self.session:
            raise RuntimeError("Session not initialized. Use async context manager.")

        logger.debug("Fetching URL", url=url, domain=self.domain)

        async def fetch_with_session():
            async with self.session.get(url) as response:
                response.raise_for_status()
                content = await response.text()

                logger.debug(
                    "URL fetched successfully",
                    url=url,
                    status=response.status,
                    content_length=len(content)
                )

                return content

        try:
            return await retry_async(
                fetch_with_session,
                max_retries=retry_count,
                backoff_factor=2.0,
                exceptions=(aiohttp.ClientError, asyncio.TimeoutError)
            )
        except Exception as e:
            logger.error(
                "Failed to fetch URL after retries",
                url=url,
                domain=self.domain,
                error=str(e)
            )
            raise


def extract_image_url(entry: Any) -> Optional[str]:
    """Pick an image for a feed entry.

    Checks media:thumbnail, media:content and image enclosures, then falls
    back to the first <img> in the entry markup.
    """
    for key in ('media_thumbnail', 'media_content'):
        for media in entry.get(key) or []:
            url = media.get('url')
            if url:
                return url

    for enclosure in entry.get('enclosures') or []:
        href = enclosure.get('href') or enclosure.get('url')
        media_type = enclosure.get('type') or ''
        if href and (not media_type or media_type.startswith('image/')):
            return href

    for markup in _entry_markup(entry):
        src = first_image_src(markup)
        if src:
            return src

    return None


def _entry_markup(entry: Any) -> List[str]:
    markup = [block.get('value', '') for block in entry.get('content') or []]
    if entry.get('summary'):
        markup.append(entry['summary'])
    return markup


def _entry_content_text(entry: Any) -> str:
    blocks = entry.get('content') or []
    if not blocks:
        return ""
    return clean_html_text(blocks[0].get('value', ''))


def _entry_published(entry: Any) -> datetime:
    parsed = entry.get('published_parsed') or entry.get('updated_parsed')
    if parsed:
        return datetime(*parsed[:6], tzinfo=UTC)

    raw = entry.get('published') or entry.get('updated')
    if raw:
        published = parse_date_string(raw)
        if published:
            return published

    return datetime.now(UTC)


class RSSFeedAdapter(SourceAdapter):
    """RSS/Atom feed adapter backed by feedparser."""

    async def fetch_articles(self, limit: Optional[int] = None) -> List[RawArticle]:
        """Fetch and normalize the feed's entries."""
        feed_text = await self._fetch_url(self.url, retry_count=self.settings.feed_retry_attempts)
        articles = self.parse_feed(feed_text)

        if limit:
            articles = articles[:limit]

        logger.info(
            "RSS articles fetched",
            source=self.config.id,
            parsed_articles=len(articles)
        )
        return articles

    def parse_feed(self, feed_text: str) -> List[RawArticle]:
        """Parse feed markup into articles, skipping entries that fail."""
        feed = feedparser.parse(feed_text)
        if feed.bozo and not feed.entries:
            raise ValueError(f"Unparseable feed from {self.config.id}: {feed.get('bozo_exception')}")

        articles = []
        for entry in feed.entries:
            try:
                articles.append(self._parse_entry(entry))
            except Exception as e:
                logger.warning(
                    "Failed to parse feed entry",
                    source=self.config.id,
                    error=str(e)
                )
        return articles

    def _parse_entry(self, entry: Any) -> RawArticle:
        title = clean_html_text(entry.get('title') or '')
        snippet = clean_html_text(entry.get('summary') or '')

        summary = snippet or _entry_content_text(entry)[:CONTENT_SNIPPET_LENGTH]
        summary = truncate_text(summary, self.settings.summary_max_length)

        return RawArticle(
            id=str(uuid.uuid4()),
            headline=title or NO_TITLE,
            summary=summary,
            source=self.config.name,
            source_id=self.config.id,
            url=entry.get('link') or '',
            published_at=_entry_published(entry),
            image_url=extract_image_url(entry),
            teams=match_teams(title, snippet),
        )


class SourceHealthMonitor:
    """Monitor source health and availability."""

    def __init__(self):
        self.source_status: Dict[str, Dict[str, Any]] = {}
        self.failure_threshold = 3

    def record_success(self, name: str, response_time: float, entry_count: int):
        """Record successful source fetch."""
        self.source_status[name] = {
            'status': 'healthy',
            'last_success': datetime.now(UTC),
            'response_time': response_time,
            'entry_count': entry_count,
            'consecutive_failures': 0,
            'last_error': None,
        }
        logger.debug(
            "Source health: success recorded",
            name=name,
            response_time=response_time,
            entries=entry_count,
        )

    def record_failure(self, name: str, error: str):
        """Record failed source fetch."""
        if name not in self.source_status:
            self.source_status[name] = {
                'status': 'unknown',
                'consecutive_failures': 0,
            }

        status = self.source_status[name]
        status['consecutive_failures'] += 1
        status['last_error'] = error
        status['last_failure'] = datetime.now(UTC)

        if status['consecutive_failures'] >= self.failure_threshold:
            status['status'] = 'unhealthy'
            logger.error(
                "Source marked as unhealthy",
                name=name,
                failures=status['consecutive_failures'],
                error=error,
            )
        else:
            status['status'] = 'degraded'
            logger.warning(
                "Source experiencing issues",
                name=name,
                failures=status['consecutive_failures'],
                error=error,
            )

    def get_health_report(self) -> Dict[str, Any]:
        """Get health report for all monitored sources."""
        total = len(self.source_status)
        healthy = sum(1 for s in self.source_status.values() if s['status'] == 'healthy')
        degraded = sum(1 for s in self.source_status.values() if s['status'] == 'degraded')
        unhealthy = sum(1 for s in self.source_status.values() if s['status'] == 'unhealthy')

        report = {
            'timestamp': datetime.now(UTC).isoformat(),
            'summary': {
                'total': total,
                'healthy': healthy,
                'degraded': degraded,
                'unhealthy': unhealthy,
            },
            'sources': self.source_status,
        }
        logger.info(
            "Source health report",
            total=total,
            healthy=healthy,
            degraded=degraded,
            unhealthy=unhealthy,
        )
        return report


# Global health monitor instance
_health_monitor = SourceHealthMonitor()


def get_source_health_monitor() -> SourceHealthMonitor:
    """Get global source health monitor instance."""
    return _health_monitor


class SourceRegistry:
    """Registry for managing news sources and their adapters."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        feed_config: Optional[FeedConfig] = None,
        health_monitor: Optional[SourceHealthMonitor] = None,
        enricher: Optional[OgImageEnricher] = None,
    ):
        self.settings = settings or get_settings()
        self.feed_config = feed_config or get_feed_config()
        self.health_monitor = health_monitor or get_source_health_monitor()
        self.enricher = enricher or OgImageEnricher(self.settings)
        self.sources: List[SourceConfig] = []
        self._load_sources()

    def _load_sources(self):
        """Load sources from configuration."""
        try:
            self.sources = self.feed_config.get_sources()
            logger.info("Loaded sources", total=len(self.sources))
        except Exception as e:
            logger.error("Failed to load sources", error=str(e))
            self.sources = []

    def create_adapter(self, source_config: SourceConfig) -> SourceAdapter:
        """Create the adapter for a source."""
        return RSSFeedAdapter(source_config, self.settings)

    async def fetch_source(
        self,
        source_config: SourceConfig,
        semaphore: AsyncSemaphore,
        limit: Optional[int] = None,
    ) -> List[RawArticle]:
        """Fetch one source; failures are logged and yield no articles."""
        domain = extract_domain(str(source_config.url))
        start = time.monotonic()

        await semaphore.acquire(domain)
        try:
            adapter = self.create_adapter(source_config)
            async with adapter:
                with PerformanceLogger(f"fetch_{source_config.id}", logger):
                    articles = await adapter.fetch_articles(limit=limit)

            if source_config.enrich_images:
                articles = await self.enricher.enrich(articles)

            self.health_monitor.record_success(
                source_config.id, time.monotonic() - start, len(articles)
            )
            logger.info(
                **log_processing_stage(
                    stage=f"fetch_{source_config.id}",
                    input_count=1,
                    output_count=len(articles)
                )
            )
            return articles

        except Exception as e:
            self.health_monitor.record_failure(source_config.id, str(e))
            logger.error(
                "Failed to fetch from source",
                source=source_config.id,
                error=str(e)
            )
            return []
        finally:
            semaphore.release(domain)

    async def fetch_all_articles(self, limit_per_source: Optional[int] = None) -> List[RawArticle]:
        """Fetch articles from all sources concurrently."""
        if not self.sources:
            logger.warning("No sources configured")
            return []

        semaphore = AsyncSemaphore(
            global_limit=self.settings.global_parallel,
            domain_limits={extract_domain(str(source.url)): 2 for source in self.sources}
        )

        with PerformanceLogger("fetch_all_sources", logger):
            tasks = [self.fetch_source(source, semaphore, limit_per_source) for source in self.sources]
            results = await asyncio.gather(*tasks, return_exceptions=True)

        all_articles: List[RawArticle] = []
        for source, result in zip(self.sources, results):
            if isinstance(result, list):
                all_articles.extend(result)
            elif isinstance(result, BaseException):
                logger.error("Source fetch failed", source=source.id, error=str(result))

        logger.info(
            **log_processing_stage(
                stage="fetch_all_sources",
                input_count=len(self.sources),
                output_count=len(all_articles)
            )
        )

        return all_articles


# Global registry instance
_registry = None


def get_source_registry() -> SourceRegistry:
    """Get global source registry instance."""
    global _registry
    if _registry is None:
        _registry = SourceRegistry()
    return _registry


async def gather_articles(
    mock: bool = False,
    limit_per_source: Optional[int] = None,
    registry: Optional[SourceRegistry] = None,
) -> List[RawArticle]:
    """Gather articles from all configured sources.

    Args:
        mock: Use mock data instead of real sources
        limit_per_source: Limit articles per source
        registry: Registry to fetch with (defaults to the global one)

    Returns:
        List of articles
    """
    if mock:
        return _generate_mock_articles()

    registry = registry or get_source_registry()
    return await registry.fetch_all_articles(limit_per_source)


def _mock_article(
    headline: str,
    summary: str,
    source: str,
    source_id: str,
    url: str,
    published_at: datetime,
    image_url: Optional[str] = None,
) -> RawArticle:
    return RawArticle(
        id=str(uuid.uuid4()),
        headline=headline,
        summary=summary,
        source=source,
        source_id=source_id,
        url=url,
        published_at=published_at,
        image_url=image_url,
        teams=match_teams(headline, summary),
    )


def _generate_mock_articles(now: Optional[datetime] = None) -> List[RawArticle]:
    """Generate mock articles for offline runs and tests."""
    now = now or datetime.now(UTC)

    return [
        _mock_article(
            "Lakers rally past Warriors as LeBron James scores 40",
            "LeBron James poured in 40 points and the Lakers erased a 15-point deficit to beat Golden State.",
            "ESPN",
            "espn",
            "https://www.espn.com/nba/story/_/id/1001/lakers-rally-past-warriors",
            now - timedelta(minutes=30),
            "https://a.espncdn.com/photo/lakers-warriors.jpg",
        ),
        _mock_article(
            "LeBron James drops 40 as Lakers come back to beat Warriors",
            "The Lakers overcame a double-digit deficit behind 40 points from LeBron James against Golden State.",
            "Bleacher Report",
            "bleacher-report",
            "https://bleacherreport.com/articles/2001-lebron-40-lakers-warriors",
            now - timedelta(hours=1),
        ),
        _mock_article(
            "Thunder extend win streak behind Shai Gilgeous-Alexander",
            "Shai Gilgeous-Alexander scored 35 as Oklahoma City won its ninth straight game.",
            "ESPN",
            "espn",
            "https://www.espn.com/nba/story/_/id/1002/thunder-win-streak",
            now - timedelta(hours=3),
        ),
        _mock_article(
            "Pistons' young core keeps climbing the East standings",
            "Cade Cunningham and Detroit have won seven of ten as the Pistons push toward a top-four seed.",
            "Bleacher Report",
            "bleacher-report",
            "https://bleacherreport.com/articles/2002-pistons-young-core",
            now - timedelta(hours=5),
        ),
        _mock_article(
            "Victor Wembanyama ruled out with ankle sprain",
            "The Spurs say Wembanyama will miss at least a week after spraining his left ankle in practice.",
            "ESPN",
            "espn",
            "https://www.espn.com/nba/story/_/id/1003/wembanyama-ankle",
            now - timedelta(hours=8),
        ),
    ]


if __name__ == "__main__":
    async def test_sources():
        articles = await gather_articles(mock=True)
        print(f"Fetched {len(articles)} articles")
        for article in articles:
            print(f"- {article.headline} ({article.source})")

    asyncio.run(test_sources())
