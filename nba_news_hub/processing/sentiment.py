"""
Fan sentiment aggregation for NBA news articles.

Sentiment comes from social comments when a comment source turns up enough
of them, otherwise from the article's own headline and summary. Every
breakdown emitted here sums to exactly 100.
"""

import logging
import math
from collections import Counter
from collections.abc import Sequence
from typing import TYPE_CHECKING, Optional

from ..models.sentiment_client import TextPolarityScorer, get_polarity_scorer
from ..schema import Comment, SentimentBreakdown, SentimentResult
from .text_utils import extract_search_terms

if TYPE_CHECKING:
    from ..ingest.comments import CommentSource

logger = logging.getLogger(__name__)

POSITIVE_THRESHOLD = 0.05
NEGATIVE_THRESHOLD = -0.05

HEADLINE_SOURCE = "headline"
FALLBACK_SOURCE = "fallback"

# Order used to break ties when correcting rounding drift
_TIE_ORDER = ("neutral", "positive", "negative")


def label_for_score(score: float) -> str:
    """Discretize a compound score into positive / neutral / negative."""
    if score >= POSITIVE_THRESHOLD:
        return "positive"
    if score <= NEGATIVE_THRESHOLD:
        return "negative"
    return "neutral"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_percentages(positive: float, neutral: float, negative: float) -> SentimentBreakdown:
    """Round a percentage triple and correct it to sum to exactly 100.

    The rounding difference is added to the largest rounded value; ties go
    to neutral, then positive, then negative.
    """
    rounded = {
        "positive": _round_half_up(max(positive, 0.0)),
        "neutral": _round_half_up(max(neutral, 0.0)),
        "negative": _round_half_up(max(negative, 0.0)),
    }

    diff = 100 - sum(rounded.values())
    if diff:
        largest = max(_TIE_ORDER, key=lambda name: (rounded[name], -_TIE_ORDER.index(name)))
        rounded[largest] = max(rounded[largest] + diff, 0)

    # Extreme out-of-range input can still leave drift after clamping
    if sum(rounded.values()) != 100:
        return SentimentBreakdown(positive=0, neutral=100, negative=0)

    return SentimentBreakdown(**rounded)


def breakdown_from_counts(positive: int, neutral: int, negative: int) -> SentimentBreakdown:
    """Label-count distribution scaled to 100."""
    total = positive + neutral + negative
    if total <= 0:
        return SentimentBreakdown(positive=0, neutral=100, negative=0)

    return normalize_percentages(
        positive * 100 / total,
        neutral * 100 / total,
        negative * 100 / total,
    )


def breakdown_from_score(score: float) -> SentimentBreakdown:
    """Synthetic distribution for a single compound score.

    Positive scores lean the distribution positive, negative scores lean it
    negative; the raw shares are scaled to 100 before rounding.
    """
    score = max(-1.0, min(1.0, score))
    normalized = (score + 1) / 2

    if score >= POSITIVE_THRESHOLD:
        raw = (
            50 + normalized * 40,
            20 + (1 - normalized) * 20,
            10 + (1 - normalized) * 10,
        )
    elif score <= NEGATIVE_THRESHOLD:
        raw = (
            10 + normalized * 10,
            20 + normalized * 20,
            50 + (1 - normalized) * 40,
        )
    else:
        raw = (
            25 + normalized * 15,
            40 + abs(0.5 - normalized) * 20,
            25 + (1 - normalized) * 15,
        )

    total = sum(raw)
    return normalize_percentages(*(value * 100 / total for value in raw))


def fallback_result() -> SentimentResult:
    return SentimentResult(
        score=0.0,
        label="neutral",
        breakdown=SentimentBreakdown(positive=33, neutral=34, negative=33),
        source=FALLBACK_SOURCE,
    )


class SentimentAggregator:
    """Scores article sentiment from comments or article text."""

    def __init__(
        self,
        scorer: Optional[TextPolarityScorer] = None,
        min_comments: int = 3,
        max_comments: int = 25,
    ):
        self.scorer = scorer or get_polarity_scorer()
        self.min_comments = min_comments
        self.max_comments = max_comments

    def analyze_text(self, text: str) -> SentimentResult:
        """Score a single text with a synthetic breakdown."""
        score = self.scorer.score(text)
        return SentimentResult(
            score=score,
            label=label_for_score(score),
            breakdown=breakdown_from_score(score),
            source=HEADLINE_SOURCE,
        )

    def analyze_texts(self, texts: Sequence[str], source: str = HEADLINE_SOURCE) -> SentimentResult:
        """Aggregate many texts: label counts for the breakdown, mean score for the label."""
        if not texts:
            return SentimentResult(
                score=0.0,
                label="neutral",
                breakdown=SentimentBreakdown(positive=0, neutral=100, negative=0),
                source=source,
            )

        scores = [self.scorer.score(text) for text in texts]
        labels = Counter(label_for_score(score) for score in scores)
        mean = sum(scores) / len(scores)

        return SentimentResult(
            score=mean,
            label=label_for_score(mean),
            breakdown=breakdown_from_counts(labels["positive"], labels["neutral"], labels["negative"]),
            source=source,
            comment_count=len(scores),
        )

    async def _fetch_comments(self, headline: str, comment_source: Optional["CommentSource"]) -> list[Comment]:
        if comment_source is None:
            return []

        query = extract_search_terms(headline)
        if not query:
            return []

        try:
            comments = await comment_source.search_comments(query)
        except Exception as e:
            logger.warning(f"Comment lookup via {comment_source.name} failed: {e}")
            return []

        usable = [comment for comment in comments if comment.text and comment.text.strip()]
        return usable[:self.max_comments]

    async def analyze_article(
        self,
        headline: str,
        summary: str,
        comment_source: Optional["CommentSource"] = None,
    ) -> SentimentResult:
        """Sentiment for one article. Never raises."""
        try:
            comments = await self._fetch_comments(headline, comment_source)

            if comment_source is not None and len(comments) >= self.min_comments:
                result = self.analyze_texts([c.text for c in comments], source=comment_source.name)
                logger.debug(f"Comment sentiment for '{headline}': {result.label} from {len(comments)} comments")
                return SentimentResult(
                    score=result.score,
                    label=result.label,
                    breakdown=result.breakdown,
                    source=result.source,
                    comment_count=result.comment_count,
                    comments=tuple(comments),
                )

            return self.analyze_text(f"{headline} {summary or ''}".strip())

        except Exception as e:
            logger.error(f"Sentiment analysis failed for '{headline}': {e}")
            return fallback_result()
