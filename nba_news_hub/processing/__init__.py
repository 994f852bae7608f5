"""Content processing module."""

from .dedupe import ArticleDeduplicator, DuplicateGroup, deduplicate_articles
from .relevance import FilterResult, filter_content, is_off_topic, is_promotional
from .scoring import ArticleScore, ArticleScorer
from .sentiment import SentimentAggregator, label_for_score, normalize_percentages
from .teams import TEAM_REGISTRY, filter_by_team, match_teams
from .text_utils import clean_html_text, extract_search_terms, headline_fingerprint

__all__ = [
    'filter_content',
    'FilterResult',
    'is_off_topic',
    'is_promotional',
    'deduplicate_articles',
    'ArticleDeduplicator',
    'DuplicateGroup',
    'ArticleScore',
    'ArticleScorer',
    'SentimentAggregator',
    'label_for_score',
    'normalize_percentages',
    'TEAM_REGISTRY',
    'filter_by_team',
    'match_teams',
    'clean_html_text',
    'extract_search_terms',
    'headline_fingerprint',
]
