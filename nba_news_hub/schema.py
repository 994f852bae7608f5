"""Article, sentiment and poll records shared across the pipeline.

Articles move through the pipeline as immutable stages: a source fetcher
produces a ``RawArticle``; filters and the deduplicator pass ``RawArticle``
values through (the og:image enricher returns copies with ``image_url`` set);
the sentiment stage turns each one into a ``NewsItem`` ready for the cache.
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from .utils import ensure_utc, parse_date_string

SENTIMENT_LABELS = ("positive", "neutral", "negative")


@dataclass(frozen=True)
class RawArticle:
    """A normalized feed entry before any sentiment analysis."""
    id: str
    headline: str
    summary: str
    source: str
    source_id: str
    url: str
    published_at: datetime
    image_url: str | None = None
    teams: frozenset[str] = field(default_factory=frozenset)

    def with_image(self, image_url: str) -> "RawArticle":
        return replace(self, image_url=image_url)


@dataclass(frozen=True)
class SentimentBreakdown:
    """Positive/neutral/negative percentages that always sum to 100."""
    positive: int
    neutral: int
    negative: int

    def __post_init__(self):
        values = (self.positive, self.neutral, self.negative)
        if any(v < 0 for v in values) or sum(values) != 100:
            raise ValueError(f"Invalid sentiment breakdown: {values}")

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class Comment:
    """A social comment used as sentiment evidence."""
    text: str
    author: str = ""
    like_count: int = 0

    def to_record(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SentimentResult:
    """Outcome of analyzing one article's sentiment.

    ``comments`` holds the evidence when the result is comment-derived.
    """
    score: float
    label: str
    breakdown: SentimentBreakdown
    source: str
    comment_count: int = 0
    comments: tuple[Comment, ...] = ()


@dataclass(frozen=True)
class NewsItem:
    """A fully processed article as stored in the cache and returned to callers."""
    id: str
    headline: str
    summary: str
    source: str
    source_id: str
    url: str
    published_at: datetime
    image_url: str | None
    teams: frozenset[str]
    sentiment_score: float | None
    sentiment_label: str | None
    sentiment_breakdown: SentimentBreakdown | None
    sentiment_source: str | None
    sentiment_comment_count: int
    created_at: datetime

    @classmethod
    def from_article(
        cls,
        article: RawArticle,
        sentiment: SentimentResult,
        created_at: datetime | None = None,
    ) -> "NewsItem":
        """Attach sentiment to a raw article."""
        return cls(
            id=article.id,
            headline=article.headline,
            summary=article.summary,
            source=article.source,
            source_id=article.source_id,
            url=article.url,
            published_at=article.published_at,
            image_url=article.image_url,
            teams=article.teams,
            sentiment_score=sentiment.score,
            sentiment_label=sentiment.label,
            sentiment_breakdown=sentiment.breakdown,
            sentiment_source=sentiment.source,
            sentiment_comment_count=sentiment.comment_count,
            created_at=created_at or datetime.now(UTC),
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        return {
            "id": self.id,
            "headline": self.headline,
            "summary": self.summary,
            "source": self.source,
            "source_id": self.source_id,
            "url": self.url,
            "published_at": ensure_utc(self.published_at).isoformat(),
            "image_url": self.image_url,
            "teams": sorted(self.teams),
            "sentiment_score": self.sentiment_score,
            "sentiment_label": self.sentiment_label,
            "sentiment_breakdown": (
                self.sentiment_breakdown.as_dict() if self.sentiment_breakdown else None
            ),
            "sentiment_source": self.sentiment_source,
            "sentiment_comment_count": self.sentiment_comment_count,
            "created_at": ensure_utc(self.created_at).isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "NewsItem":
        """Rebuild an item from a stored dict."""
        breakdown = record.get("sentiment_breakdown")
        return cls(
            id=record["id"],
            headline=record["headline"],
            summary=record.get("summary") or "",
            source=record["source"],
            source_id=record.get("source_id") or "",
            url=record["url"],
            published_at=_as_datetime(record["published_at"]),
            image_url=record.get("image_url"),
            teams=frozenset(record.get("teams") or ()),
            sentiment_score=record.get("sentiment_score"),
            sentiment_label=record.get("sentiment_label"),
            sentiment_breakdown=SentimentBreakdown(**breakdown) if breakdown else None,
            sentiment_source=record.get("sentiment_source"),
            sentiment_comment_count=record.get("sentiment_comment_count") or 0,
            created_at=_as_datetime(record["created_at"]),
        )


@dataclass
class PollOption:
    text: str
    votes: int = 0


@dataclass
class Poll:
    """A fan poll with an ordered list of options."""
    id: str
    question: str
    options: list[PollOption]
    event_context: str = ""
    active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "options": [asdict(option) for option in self.options],
            "event_context": self.event_context,
            "active": self.active,
            "created_at": ensure_utc(self.created_at).isoformat(),
        }


@dataclass(frozen=True)
class PollResponse:
    poll_id: str
    option_index: int
    voter_key: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    parsed = parse_date_string(str(value))
    if parsed is None:
        raise ValueError(f"Invalid timestamp: {value!r}")
    return parsed
