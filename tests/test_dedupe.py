"""Tests for cross-source story deduplication."""

import random
from datetime import UTC, datetime, timedelta

import pytest
from conftest import NOW, make_article

from nba_news_hub.config import Settings
from nba_news_hub.processing.dedupe import ArticleDeduplicator, canonical_order, deduplicate_articles
from nba_news_hub.processing.scoring import ArticleScorer
from nba_news_hub.processing.text_utils import content_words, jaccard_similarity


@pytest.fixture
def deduplicator(settings):
    return ArticleDeduplicator(settings)


def ids(articles):
    return [article.id for article in articles]


def test_url_pass_keeps_first_occurrence(deduplicator):
    first = make_article("Nets waive forward", url="https://example.com/a")
    repeat = make_article("Nets waive forward (updated)", url="https://example.com/a")
    other = make_article("Kings sign guard", url="https://example.com/b")

    unique, groups = deduplicator.deduplicate_by_url([first, repeat, other])

    assert unique == [first, other]
    assert len(groups) == 1
    assert groups[0].canonical_article is first
    assert groups[0].duplicates == [repeat]
    assert groups[0].method == "url"


def test_url_pass_drops_articles_without_url(deduplicator):
    missing = make_article("Nets waive forward", url="")
    unique, _ = deduplicator.deduplicate_by_url([missing])
    assert unique == []


def test_identical_headlines_outside_window_not_merged(deduplicator):
    headline = "Heat acquire guard in three-team trade"
    newer = make_article(headline, published_at=NOW)
    older = make_article(headline, published_at=NOW - timedelta(hours=12, seconds=1))

    unique, groups = deduplicator.deduplicate_articles([newer, older])

    assert len(unique) == 2
    assert groups == []


def test_similar_headlines_inside_window_merged(deduplicator):
    newer = make_article("Heat acquire guard in three-team trade", published_at=NOW)
    older = make_article("Heat acquire guard in three-team deal", published_at=NOW - timedelta(hours=11, minutes=59))

    unique, groups = deduplicator.deduplicate_articles([older, newer])

    assert unique == [newer]
    assert groups[0].method == "fuzzy"
    assert groups[0].duplicates == [older]
    assert groups[0].similarity_scores[0] >= 0.45


def test_entity_overlap_alone_marks_duplicate(deduplicator):
    first = make_article("Jokic, Murray lead Nuggets", published_at=NOW)
    second = make_article("Denver tops Phoenix behind Jokic and Murray", published_at=NOW - timedelta(hours=2))

    duplicate, similarity, shared = deduplicator.compare(first, second)

    assert similarity < 0.45
    assert shared == 2
    assert duplicate


def test_unrelated_stories_not_merged(deduplicator):
    first = make_article("Celtics sign veteran center", published_at=NOW)
    second = make_article("Grizzlies guard out for season", published_at=NOW)

    duplicate, _, _ = deduplicator.compare(first, second)
    assert not duplicate


def test_newest_report_survives_and_unrelated_story_stays(deduplicator):
    day = datetime(2025, 1, 15, tzinfo=UTC)
    morning = make_article("Lakers beat Warriors behind LeBron", published_at=day.replace(hour=9))
    later = make_article("Lakers top Warriors as LeBron shines", published_at=day.replace(hour=9, minute=30))
    evening = make_article("Celtics sign veteran center", published_at=day.replace(hour=20))

    unique, _ = deduplicator.deduplicate_articles([morning, later, evening])

    assert unique == [evening, later]


def test_compare_is_symmetric(deduplicator, sample_articles):
    for first in sample_articles:
        for second in sample_articles:
            assert deduplicator.compare(first, second) == deduplicator.compare(second, first)


def test_deduplication_is_idempotent(deduplicator, sample_articles):
    once, _ = deduplicator.deduplicate_articles(sample_articles)
    twice, groups = deduplicator.deduplicate_articles(once)

    assert twice == once
    assert groups == []


def test_output_independent_of_input_order(deduplicator, sample_articles):
    expected, _ = deduplicator.deduplicate_articles(sample_articles)

    shuffled = list(sample_articles)
    for seed in range(5):
        random.Random(seed).shuffle(shuffled)
        result, _ = deduplicator.deduplicate_articles(shuffled)
        assert ids(result) == ids(expected)


def test_sample_story_pairs_collapse(deduplicator, sample_articles):
    unique, groups = deduplicator.deduplicate_articles(sample_articles)

    assert [a.url for a in unique] == ["https://example.com/espn-lakers", "https://example.com/thunder"]
    assert sum(len(group.duplicates) for group in groups) == 1


def test_three_similar_reports_leave_only_newest(deduplicator):
    newest = make_article("Heat acquire guard in three-team trade", published_at=NOW)
    middle = make_article("Heat acquire guard in three-team deal", published_at=NOW - timedelta(hours=1))
    oldest = make_article("Heat acquire guard in a three-team trade", published_at=NOW - timedelta(hours=2))

    for order in ([oldest, middle, newest], [middle, newest, oldest], [newest, oldest, middle]):
        unique, groups = deduplicator.deduplicate_articles(order)

        assert unique == [newest]
        assert len(groups) == 1
        assert sorted(ids(groups[0].duplicates)) == sorted(ids([middle, oldest]))


def test_headlines_without_words_never_match(deduplicator):
    first = make_article("!!", published_at=NOW)
    second = make_article("??", published_at=NOW)

    assert jaccard_similarity(content_words("!!"), content_words("??")) == 0.0
    duplicate, similarity, shared = deduplicator.compare(first, second)
    assert (duplicate, similarity, shared) == (False, 0.0, 0)

    unique, groups = deduplicator.deduplicate_articles([first, second])
    assert len(unique) == 2
    assert groups == []


def test_canonical_order_breaks_ties_by_url():
    b = make_article("B", url="https://example.com/b", published_at=NOW)
    a = make_article("A", url="https://example.com/a", published_at=NOW)
    old = make_article("C", url="https://example.com/0", published_at=NOW - timedelta(hours=1))

    assert canonical_order([old, b, a]) == [a, b, old]


def test_empty_input(deduplicator):
    unique, groups = deduplicator.deduplicate_articles([])
    assert unique == []
    assert groups == []


def test_fingerprint_strategy_keeps_best_scored():
    settings = Settings(_env_file=None, dedupe_strategy="fingerprint")
    scorer = ArticleScorer(source_bonuses={"bleacher-report": 100})
    espn = make_article("Heat acquire guard in trade", published_at=NOW - timedelta(hours=3))
    br = make_article("Heat acquire guard in trade!", published_at=NOW - timedelta(hours=4),
                      source_id="bleacher-report")

    unique, groups = ArticleDeduplicator(settings, scorer).deduplicate_articles([espn, br], now=NOW)

    assert unique == [br]
    assert groups[0].method == "fingerprint"
    assert groups[0].duplicates == [espn]


def test_fingerprint_strategy_tie_keeps_first_seen():
    settings = Settings(_env_file=None, dedupe_strategy="fingerprint")
    first = make_article("Heat acquire guard in trade", published_at=NOW - timedelta(hours=3))
    second = make_article("Heat acquire guard in trade", published_at=NOW - timedelta(hours=3))

    unique, _ = ArticleDeduplicator(settings).deduplicate_by_fingerprint([first, second], now=NOW)

    assert unique == [first]


def test_fingerprint_strategy_passes_through_symbol_only_headlines():
    settings = Settings(_env_file=None, dedupe_strategy="fingerprint")
    article = make_article("!!!", published_at=NOW - timedelta(hours=3))

    unique, groups = ArticleDeduplicator(settings).deduplicate_by_fingerprint([article], now=NOW)

    assert unique == [article]
    assert groups == []


def test_module_level_helper(settings, sample_articles):
    unique, _ = deduplicate_articles(sample_articles, settings)
    assert len(unique) == 2
