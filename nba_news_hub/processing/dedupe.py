"""
Deduplication of NBA news stories across sources.

This module provides two strategies:
1. Fuzzy deduplication (default): articles published within a time window
   that share enough stemmed content words, or enough capitalised headline
   names, are the same story; the newest report survives.
2. Fingerprint deduplication (fallback): articles whose normalized headline
   prefix matches are grouped and the highest quality-scored one survives.

Both run after an exact-URL pass.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from ..config import Settings
from ..schema import RawArticle
from ..utils import ensure_utc
from .scoring import ArticleScorer
from .text_utils import content_words, headline_entities, headline_fingerprint, jaccard_similarity

logger = logging.getLogger(__name__)


@dataclass
class DuplicateGroup:
    """Group of duplicate articles."""
    canonical_article: RawArticle
    duplicates: List[RawArticle]
    similarity_scores: List[float]
    method: str  # 'url', 'fuzzy', 'fingerprint'


@dataclass(frozen=True)
class _Features:
    words: frozenset
    entities: frozenset
    published_at: datetime


def canonical_order(articles: List[RawArticle]) -> List[RawArticle]:
    """Newest first, ties broken by url."""
    by_url = sorted(articles, key=lambda a: a.url)
    return sorted(by_url, key=lambda a: ensure_utc(a.published_at), reverse=True)


class ArticleDeduplicator:
    """Multi-strategy article deduplication system."""

    def __init__(self, settings: Settings, scorer: Optional[ArticleScorer] = None):
        """Initialize deduplicator."""
        self.settings = settings
        self.scorer = scorer or ArticleScorer()

        self.strategy = settings.dedupe_strategy
        self.similarity_threshold = settings.dedupe_similarity_threshold
        self.min_shared_entities = settings.dedupe_min_shared_entities
        self.window = timedelta(hours=settings.dedupe_window_hours)

    def deduplicate_by_url(self, articles: List[RawArticle]) -> Tuple[List[RawArticle], List[DuplicateGroup]]:
        """Remove exact URL duplicates and articles without a URL."""
        first_by_url: Dict[str, RawArticle] = {}
        groups: Dict[str, DuplicateGroup] = {}
        unique_articles = []
        missing_url = 0

        for article in articles:
            url = article.url
            if not url:
                missing_url += 1
                continue

            if url in first_by_url:
                group = groups.setdefault(url, DuplicateGroup(
                    canonical_article=first_by_url[url],
                    duplicates=[],
                    similarity_scores=[],
                    method='url'
                ))
                group.duplicates.append(article)
                group.similarity_scores.append(1.0)
            else:
                first_by_url[url] = article
                unique_articles.append(article)

        if missing_url:
            logger.info(f"Dropped {missing_url} articles without a URL")
        logger.info(f"URL deduplication: {len(articles)} -> {len(unique_articles)} articles")
        return unique_articles, list(groups.values())

    def _features(self, article: RawArticle) -> _Features:
        return _Features(
            words=content_words(f"{article.headline} {article.summary}"),
            entities=headline_entities(article.headline),
            published_at=ensure_utc(article.published_at),
        )

    def compare(self, first: RawArticle, second: RawArticle) -> Tuple[bool, float, int]:
        """Judge whether two articles report the same story.

        Returns:
            (is_duplicate, similarity, shared_entities)
        """
        return self._judge(self._features(first), self._features(second))

    def _judge(self, first: _Features, second: _Features) -> Tuple[bool, float, int]:
        if abs(first.published_at - second.published_at) > self.window:
            return False, 0.0, 0

        similarity = jaccard_similarity(first.words, second.words)
        shared = len(first.entities & second.entities)
        duplicate = similarity >= self.similarity_threshold or shared >= self.min_shared_entities
        return duplicate, similarity, shared

    def deduplicate_fuzzy(self, articles: List[RawArticle]) -> Tuple[List[RawArticle], List[DuplicateGroup]]:
        """Remove near-duplicate stories, keeping the newest report of each."""
        ordered = canonical_order(articles)
        features = [self._features(article) for article in ordered]
        removed = [False] * len(ordered)
        groups: Dict[int, DuplicateGroup] = {}

        for i in range(len(ordered)):
            if removed[i]:
                continue
            for j in range(i + 1, len(ordered)):
                if removed[j]:
                    continue

                duplicate, similarity, shared = self._judge(features[i], features[j])
                if not duplicate:
                    continue

                # ordered newest first, so j is the older (or tied, later) article
                removed[j] = True
                group = groups.setdefault(i, DuplicateGroup(
                    canonical_article=ordered[i],
                    duplicates=[],
                    similarity_scores=[],
                    method='fuzzy'
                ))
                group.duplicates.append(ordered[j])
                group.similarity_scores.append(similarity)
                logger.debug(
                    f"Duplicate story: '{ordered[j].headline}' -> '{ordered[i].headline}' "
                    f"(similarity={similarity:.2f}, shared_entities={shared})"
                )

        survivors = [article for article, gone in zip(ordered, removed) if not gone]
        logger.info(f"Fuzzy deduplication: {len(articles)} -> {len(survivors)} articles")
        return survivors, list(groups.values())

    def deduplicate_by_fingerprint(
        self, articles: List[RawArticle], now: Optional[datetime] = None
    ) -> Tuple[List[RawArticle], List[DuplicateGroup]]:
        """Keep the best-scored article per normalized headline prefix."""
        buckets: Dict[str, List[RawArticle]] = {}
        unfingerprinted = []
        for article in articles:
            fingerprint = headline_fingerprint(article.headline)
            if not fingerprint:
                unfingerprinted.append(article)
                continue
            buckets.setdefault(fingerprint, []).append(article)

        scores = self.scorer.score_articles(articles, now)
        unique_articles = []
        duplicate_groups = []

        for members in buckets.values():
            best = members[0]
            for candidate in members[1:]:
                if scores[candidate.id].total_score > scores[best.id].total_score:
                    best = candidate
            unique_articles.append(best)

            if len(members) > 1:
                duplicates = [member for member in members if member is not best]
                duplicate_groups.append(DuplicateGroup(
                    canonical_article=best,
                    duplicates=duplicates,
                    similarity_scores=[1.0] * len(duplicates),
                    method='fingerprint'
                ))
                logger.debug(
                    f"Kept '{best.headline}' ({scores[best.id].reasoning}) "
                    f"over {len(duplicates)} duplicates"
                )

        unique_articles = canonical_order(unique_articles + unfingerprinted)
        logger.info(f"Fingerprint deduplication: {len(articles)} -> {len(unique_articles)} articles")
        return unique_articles, duplicate_groups

    def deduplicate_articles(
        self, articles: List[RawArticle], now: Optional[datetime] = None
    ) -> Tuple[List[RawArticle], List[DuplicateGroup]]:
        """Full deduplication pipeline using the configured strategy."""
        logger.info(f"Starting deduplication of {len(articles)} articles ({self.strategy})")

        all_duplicate_groups = []

        articles, url_dupes = self.deduplicate_by_url(articles)
        all_duplicate_groups.extend(url_dupes)

        if self.strategy == 'fingerprint':
            articles, story_dupes = self.deduplicate_by_fingerprint(articles, now)
        else:
            articles, story_dupes = self.deduplicate_fuzzy(articles)
        all_duplicate_groups.extend(story_dupes)

        logger.info(f"Deduplication complete: {len(articles)} unique articles, "
                    f"{len(all_duplicate_groups)} duplicate groups found")

        return articles, all_duplicate_groups


def deduplicate_articles(
    articles: List[RawArticle],
    settings: Settings,
    scorer: Optional[ArticleScorer] = None,
) -> Tuple[List[RawArticle], List[DuplicateGroup]]:
    """Convenience function for article deduplication."""
    deduplicator = ArticleDeduplicator(settings, scorer)
    return deduplicator.deduplicate_articles(articles)
