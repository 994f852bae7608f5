"""
Quality scoring for NBA news articles.

The score is an additive rule table. Each rule contributes independently:
- Summary length (substance)
- Source bonus (configured per source)
- Clickbait phrases, exclamation marks, shouting caps (penalties)
- Recency (small bonus for fresh stories)

The score picks the representative article in fingerprint deduplication and
annotates dedup logging; it never reorders the final feed.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from ..schema import RawArticle
from ..utils import ensure_utc

logger = logging.getLogger(__name__)

CLICKBAIT_PHRASES = (
    "you won't believe",
    "shocking",
    "incredible",
    "amazing",
    "must see",
    "will blow your mind",
    "here's why",
    "the reason will",
    "what happened next",
    "breaking:",
    "just in:",
    "wow!",
)

ALLOWED_ACRONYMS = frozenset({"NBA", "MVP", "ESPN", "NFL", "USA", "TNT"})

SUMMARY_CAP = 200
CLICKBAIT_PENALTY = -150
EXCLAMATION_PENALTY = -50
CAPS_PENALTY = -30
RECENCY_BONUS = 20
RECENCY_WINDOW = timedelta(hours=1)


@dataclass(frozen=True)
class ScoringContext:
    """Inputs shared by every rule."""
    source_bonuses: Mapping[str, float]
    now: datetime


@dataclass(frozen=True)
class ScoringRule:
    """A named contribution to the quality score."""
    name: str
    evaluate: Callable[[RawArticle, ScoringContext], float]


@dataclass
class ArticleScore:
    """Complete scoring breakdown for an article."""
    total_score: float
    contributions: dict[str, float] = field(default_factory=dict)

    @property
    def reasoning(self) -> str:
        return " | ".join(f"{name}: {value:+g}" for name, value in self.contributions.items())


def count_shouting_words(headline: str) -> int:
    """Count all-caps words longer than two characters, ignoring known acronyms."""
    count = 0
    for word in headline.split():
        stripped = word.strip(".,:;!?\"'()[]")
        if len(stripped) <= 2 or not stripped.isupper():
            continue
        if stripped in ALLOWED_ACRONYMS:
            continue
        count += 1
    return count


def _summary_length(article: RawArticle, ctx: ScoringContext) -> float:
    return min(len(article.summary or ""), SUMMARY_CAP)


def _source_bonus(article: RawArticle, ctx: ScoringContext) -> float:
    return ctx.source_bonuses.get(article.source_id, 0)


def _clickbait(article: RawArticle, ctx: ScoringContext) -> float:
    headline = article.headline.lower()
    if any(phrase in headline for phrase in CLICKBAIT_PHRASES):
        return CLICKBAIT_PENALTY
    return 0


def _exclamations(article: RawArticle, ctx: ScoringContext) -> float:
    count = article.headline.count("!")
    return EXCLAMATION_PENALTY * count if count > 1 else 0


def _caps_words(article: RawArticle, ctx: ScoringContext) -> float:
    count = count_shouting_words(article.headline)
    return CAPS_PENALTY * count if count > 1 else 0


def _recency(article: RawArticle, ctx: ScoringContext) -> float:
    age = ctx.now - ensure_utc(article.published_at)
    return RECENCY_BONUS if age < RECENCY_WINDOW else 0


DEFAULT_RULES: tuple[ScoringRule, ...] = (
    ScoringRule("summary_length", _summary_length),
    ScoringRule("source_bonus", _source_bonus),
    ScoringRule("clickbait", _clickbait),
    ScoringRule("exclamations", _exclamations),
    ScoringRule("caps_words", _caps_words),
    ScoringRule("recency", _recency),
)


class ArticleScorer:
    """Rule-table quality scorer for NBA news articles."""

    def __init__(
        self,
        source_bonuses: Mapping[str, float] | None = None,
        rules: tuple[ScoringRule, ...] = DEFAULT_RULES,
    ):
        self.source_bonuses = dict(source_bonuses or {})
        self.rules = rules

    def score_article(self, article: RawArticle, now: datetime | None = None) -> ArticleScore:
        """Calculate the quality score for an article."""
        ctx = ScoringContext(
            source_bonuses=self.source_bonuses,
            now=ensure_utc(now) if now else datetime.now(UTC),
        )

        contributions = {rule.name: rule.evaluate(article, ctx) for rule in self.rules}
        return ArticleScore(total_score=sum(contributions.values()), contributions=contributions)

    def score_articles(
        self, articles: list[RawArticle], now: datetime | None = None
    ) -> dict[str, ArticleScore]:
        """Score a batch, keyed by article id."""
        logger.info(f"Scoring {len(articles)} articles")
        now = now or datetime.now(UTC)
        return {article.id: self.score_article(article, now) for article in articles}
