"""VADER polarity scorer for fan sentiment analysis."""

import logging
from typing import Optional, Protocol, runtime_checkable

from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

logger = logging.getLogger(__name__)


@runtime_checkable
class TextPolarityScorer(Protocol):
    """Anything that maps text to a compound polarity in [-1, 1]."""

    def score(self, text: str) -> float:
        ...


class VaderPolarityScorer:
    """Compound polarity scores from VADER.

    VADER is tuned for short social media text, which suits comment threads
    and headlines alike.
    """

    def __init__(self, analyzer: Optional[SentimentIntensityAnalyzer] = None):
        self._analyzer = analyzer or SentimentIntensityAnalyzer()

    def score(self, text: str) -> float:
        """Return the VADER compound score for a text.

        Args:
            text: Text to score

        Returns:
            Compound score clamped to [-1, 1]
        """
        if not text or not text.strip():
            return 0.0

        compound = self._analyzer.polarity_scores(text).get("compound", 0.0)
        return max(-1.0, min(1.0, float(compound)))


# Global scorer instance
_polarity_scorer: Optional[VaderPolarityScorer] = None


def get_polarity_scorer() -> VaderPolarityScorer:
    """Get or create the global polarity scorer (the VADER lexicon loads once)."""
    global _polarity_scorer
    if _polarity_scorer is None:
        _polarity_scorer = VaderPolarityScorer()
        logger.debug("VADER polarity scorer initialized")
    return _polarity_scorer
