"""
Content filtering for NBA news articles.

Two independent predicates run after fetching and before deduplication:
an off-topic filter (other sports and events) and a promotional filter
(betting and sportsbook content).
"""

import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from ..schema import RawArticle

logger = logging.getLogger(__name__)


class FilterReason(Enum):
    """Why an article was dropped."""
    OFF_TOPIC_URL = "off_topic_url"
    OFF_TOPIC_PHRASE = "off_topic_phrase"
    PROMOTIONAL = "promotional"


@dataclass
class FilterResult:
    """Articles kept by the content filters plus per-reason drop counts."""
    kept: list[RawArticle]
    dropped: Counter

    @property
    def dropped_total(self) -> int:
        return sum(self.dropped.values())


# Multi-word phrases only: single words like "bowl" or "cup" appear in NBA copy
OFF_TOPIC_PHRASES = (
    "super bowl",
    "stanley cup",
    "world series",
    "march madness",
    "final four",
    "college football",
    "fantasy football",
    "nfl draft",
    "mlb draft",
    "nhl draft",
    "premier league",
    "champions league",
    "world cup",
    "grand slam",
    "ryder cup",
    "formula 1",
    "ufc fight night",
    "wnba finals",
)

# "odds" alone is not listed: "playoff odds" is normal NBA coverage
PROMOTIONAL_KEYWORDS = (
    "best bets",
    "betting odds",
    "betting picks",
    "betting tips",
    "betting lines",
    "player props",
    "prop bets",
    "prop picks",
    "sportsbook",
    "draftkings",
    "fanduel",
    "betmgm",
    "caesars sportsbook",
    "bet365",
    "promo code",
    "bonus bets",
    "bonus code",
    "parlay",
    "odds boost",
    "moneyline",
    "point spread",
    "against the spread",
    "over/under picks",
    "expert picks",
    "free picks",
)


def _article_text(article: RawArticle) -> str:
    return f"{article.headline} {article.summary}".lower()


def is_off_topic(
    article: RawArticle,
    exclude_paths: Mapping[str, Iterable[str]] | None = None,
) -> bool:
    """True when the article covers another sport or event."""
    return off_topic_reason(article, exclude_paths) is not None


def off_topic_reason(
    article: RawArticle,
    exclude_paths: Mapping[str, Iterable[str]] | None = None,
) -> FilterReason | None:
    """Classify why an article is off-topic, or None when it is on-topic."""
    url = (article.url or "").lower()
    segments = (exclude_paths or {}).get(article.source_id, ())
    if url and any(segment.lower() in url for segment in segments):
        return FilterReason.OFF_TOPIC_URL

    text = _article_text(article)
    if any(phrase in text for phrase in OFF_TOPIC_PHRASES):
        return FilterReason.OFF_TOPIC_PHRASE

    return None


def is_promotional(article: RawArticle) -> bool:
    """True when the article is betting or sportsbook promotion."""
    text = _article_text(article)
    return any(keyword in text for keyword in PROMOTIONAL_KEYWORDS)


def filter_content(
    articles: Iterable[RawArticle],
    exclude_paths: Mapping[str, Iterable[str]] | None = None,
) -> FilterResult:
    """Drop off-topic and promotional articles, preserving input order."""
    articles = list(articles)
    logger.info(f"Filtering {len(articles)} articles for NBA relevance")

    kept: list[RawArticle] = []
    dropped: Counter = Counter()

    for article in articles:
        reason = off_topic_reason(article, exclude_paths)
        if reason is None and is_promotional(article):
            reason = FilterReason.PROMOTIONAL

        if reason is None:
            kept.append(article)
        else:
            dropped[reason.value] += 1
            logger.debug(f"Dropped '{article.headline}' ({reason.value})")

    if dropped:
        summary = ", ".join(f"{reason}={count}" for reason, count in sorted(dropped.items()))
        logger.info(f"Filtered to {len(kept)} articles; dropped {summary}")
    else:
        logger.info(f"Filtered to {len(kept)} articles")

    return FilterResult(kept=kept, dropped=dropped)
