"""Tests for the rule-table quality scorer."""

from datetime import timedelta

from conftest import NOW, make_article

from nba_news_hub.processing.scoring import (
    CAPS_PENALTY,
    CLICKBAIT_PENALTY,
    DEFAULT_RULES,
    EXCLAMATION_PENALTY,
    RECENCY_BONUS,
    ArticleScorer,
    ScoringRule,
    count_shouting_words,
)


def old(headline, summary=""):
    """An article well outside the recency window."""
    return make_article(headline, summary, published_at=NOW - timedelta(hours=6))


def test_rule_table_names():
    assert [rule.name for rule in DEFAULT_RULES] == [
        "summary_length", "source_bonus", "clickbait", "exclamations", "caps_words", "recency",
    ]


def test_summary_length_is_capped():
    scorer = ArticleScorer()
    short = scorer.score_article(old("Nets waive forward", "x" * 50), now=NOW)
    long = scorer.score_article(old("Nets waive forward", "x" * 500), now=NOW)

    assert short.contributions["summary_length"] == 50
    assert long.contributions["summary_length"] == 200


def test_source_bonus_from_config():
    scorer = ArticleScorer(source_bonuses={"bleacher-report": 100})
    article = make_article("Nets waive forward", source_id="bleacher-report",
                           published_at=NOW - timedelta(hours=6))

    score = scorer.score_article(article, now=NOW)

    assert score.contributions["source_bonus"] == 100
    assert score.total_score == 100


def test_clickbait_penalty():
    score = ArticleScorer().score_article(old("You won't believe what Jokic did"), now=NOW)
    assert score.contributions["clickbait"] == CLICKBAIT_PENALTY


def test_single_exclamation_is_free_but_more_are_penalised():
    scorer = ArticleScorer()
    one = scorer.score_article(old("Buzzer beater!"), now=NOW)
    three = scorer.score_article(old("Buzzer beater!!!"), now=NOW)

    assert one.contributions["exclamations"] == 0
    assert three.contributions["exclamations"] == EXCLAMATION_PENALTY * 3


def test_shouting_words_ignore_acronyms_and_short_words():
    assert count_shouting_words("NBA MVP race: SGA leads") == 1
    assert count_shouting_words("HUGE TRADE shakes up the West") == 2
    assert count_shouting_words("LeBron and AD win") == 0


def test_caps_penalty_needs_more_than_one_word():
    scorer = ArticleScorer()
    single = scorer.score_article(old("HUGE night for the Magic"), now=NOW)
    double = scorer.score_article(old("HUGE TRADE shakes up the West"), now=NOW)

    assert single.contributions["caps_words"] == 0
    assert double.contributions["caps_words"] == CAPS_PENALTY * 2


def test_recency_bonus():
    scorer = ArticleScorer()
    fresh = scorer.score_article(make_article("Nets waive forward", published_at=NOW - timedelta(minutes=20)), now=NOW)
    stale = scorer.score_article(old("Nets waive forward"), now=NOW)

    assert fresh.contributions["recency"] == RECENCY_BONUS
    assert stale.contributions["recency"] == 0


def test_custom_rule_table():
    rules = (ScoringRule("constant", lambda article, ctx: 7),)
    score = ArticleScorer(rules=rules).score_article(old("Anything"), now=NOW)

    assert score.total_score == 7
    assert score.reasoning == "constant: +7"


def test_score_articles_keyed_by_id():
    articles = [old("Nets waive forward"), old("Kings sign guard")]
    scores = ArticleScorer().score_articles(articles, now=NOW)
    assert set(scores) == {article.id for article in articles}
