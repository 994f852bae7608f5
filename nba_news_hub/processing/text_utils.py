"""Text processing utilities for NBA News Hub."""

import re
from unicodedata import normalize

from selectolax.parser import HTMLParser

from ..logging import get_logger

logger = get_logger(__name__)

FINGERPRINT_LENGTH = 60

STOP_WORDS = frozenset({
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for',
    'of', 'with', 'by', 'from', 'up', 'about', 'into', 'through', 'during',
    'before', 'after', 'above', 'below', 'between', 'among', 'this', 'that',
    'these', 'those', 'is', 'are', 'was', 'were', 'be', 'been', 'being',
    'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could',
    'should', 'may', 'might', 'must', 'can', 'shall', 'it', 'he', 'she',
    'they', 'we', 'you', 'i', 'me', 'him', 'her', 'them', 'us', 'my',
    'your', 'his', 'its', 'our', 'their', 'as', 'vs', 'over', 'out', 'off',
    'not', 'no', 'new', 'how', 'what', 'why', 'who', 'when',
    'where', 'all', 'more', 'most', 'than', 'just', 'now', 'nba',
})

# Words dropped when building a comment search query. Basketball action
# words such as "trade" or "injury" stay in.
SEARCH_STOP_WORDS = frozenset({
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for',
    'of', 'with', 'by', 'from', 'as', 'is', 'was', 'are', 'were', 'been',
    'be', 'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would',
    'could', 'should', 'may', 'might', 'must', 'shall', 'can', 'need',
    'this', 'that', 'these', 'those', 'it', 'its', 'he', 'she', 'they',
    'we', 'you', 'i', 'me', 'him', 'her', 'us', 'them', 'my', 'your',
    'his', 'their', 'our', 'who', 'what', 'when', 'where', 'why', 'how',
    'all', 'each', 'every', 'both', 'few', 'more', 'most', 'other',
    'some', 'such', 'no', 'not', 'only', 'same', 'so', 'than', 'too',
    'very', 'just', 'also', 'now', 'here', 'there', 'then', 'once',
    'nba', 'says', 'said', 'according', 'per', 'via', 'new', 'latest',
    'update', 'breaking', 'report', 'reports', 'sources',
})

# (suffix, replacement), longest first
_SUFFIXES = (
    ('ments', ''),
    ('ment', ''),
    ('tions', 't'),
    ('tion', 't'),
    ('ings', ''),
    ('ing', ''),
    ('ies', 'y'),
    ('ed', ''),
    ('s', ''),
)
_MIN_STEM = 3


def stem(word: str) -> str:
    """Strip one common English suffix.

    The stem must keep at least three characters, and words ending in
    "ss", "us" or "is" keep their final "s".
    """
    for suffix, replacement in _SUFFIXES:
        if not word.endswith(suffix):
            continue
        if suffix == 's' and word.endswith(('ss', 'us', 'is')):
            return word
        base = word[:-len(suffix)] + replacement
        if len(base) >= _MIN_STEM:
            return base
        return word
    return word


def content_words(text: str) -> frozenset[str]:
    """Stemmed content words of a text.

    Args:
        text: Headline plus summary

    Returns:
        Set of stems with stop words and 1-char tokens removed
    """
    if not text:
        return frozenset()

    text = normalize('NFKD', text.lower())
    text = re.sub(r'[^a-z0-9\s]', ' ', text)

    return frozenset(
        stem(token) for token in text.split()
        if len(token) > 1 and token not in STOP_WORDS
    )


def headline_entities(headline: str) -> frozenset[str]:
    """Capitalised headline tokens, lowercased.

    Args:
        headline: Article headline

    Returns:
        Set of likely names (players, teams, places)
    """
    if not headline:
        return frozenset()

    entities = set()
    for raw in headline.split():
        token = raw.strip(".,:;!?\"'()[]{}“”‘’")
        token = re.sub(r"['’]s$", '', token)
        if len(token) < 2 or not token[0].isupper():
            continue
        lowered = token.lower()
        if lowered in STOP_WORDS:
            continue
        entities.add(lowered)

    return frozenset(entities)


def jaccard_similarity(first: frozenset[str], second: frozenset[str]) -> float:
    """Jaccard index of two sets; 0.0 when both are empty."""
    union = first | second
    if not union:
        return 0.0
    return len(first & second) / len(union)


def headline_fingerprint(headline: str) -> str:
    """Normalized headline prefix used by the fingerprint dedup strategy.

    Args:
        headline: Article headline

    Returns:
        First 60 characters of the lowercased alphanumeric headline
    """
    if not headline:
        return ""

    text = headline.lower()
    text = re.sub(r'[^a-z0-9\s]', '', text)
    text = re.sub(r'\s+', ' ', text).strip()

    return text[:FINGERPRINT_LENGTH]


def clean_html_text(html_text: str) -> str:
    """Clean HTML text content.

    Args:
        html_text: HTML text

    Returns:
        Cleaned plain text
    """
    if not html_text:
        return ""

    if '<' not in html_text and '&' not in html_text:
        return re.sub(r'\s+', ' ', html_text.strip())

    tree = HTMLParser(html_text)
    text = tree.body.text(separator=' ') if tree.body is not None else html_text

    return re.sub(r'\s+', ' ', text.strip())


def first_image_src(html_text: str) -> str | None:
    """Return the src of the first <img> in a markup fragment."""
    if not html_text or '<img' not in html_text.lower():
        return None

    node = HTMLParser(html_text).css_first('img[src]')
    if node is None:
        return None
    return node.attributes.get('src') or None


def extract_search_terms(headline: str, max_terms: int = 4) -> str:
    """Build a short comment search query from a headline.

    Proper nouns come first, then the remaining lowercase words.

    Args:
        headline: Article headline
        max_terms: Number of words to keep

    Returns:
        Space-joined query, empty when nothing meaningful remains
    """
    if not headline:
        return ""

    cleaned = re.sub(r"[^\w\s'-]", ' ', headline)
    proper_nouns: list[str] = []
    regular_words: list[str] = []

    for word in cleaned.split():
        if len(word) < 2:
            continue
        lower = word.lower()
        if lower in SEARCH_STOP_WORDS or lower.isdigit():
            continue
        if word[0].isupper():
            proper_nouns.append(word)
        else:
            regular_words.append(lower)

    return ' '.join((proper_nouns + regular_words)[:max_terms])
