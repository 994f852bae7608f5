"""Tests for terminal rendering and the CLI."""

import orjson
import pytest
from click.testing import CliRunner
from conftest import NOW, make_article
from rich.console import Console

from nba_news_hub.orchestrator import NewsResponse, cli
from nba_news_hub.render import (
    build_news_table,
    format_breakdown,
    format_sentiment,
    render_news,
    render_payload,
    render_polls,
)
from nba_news_hub.schema import NewsItem, SentimentBreakdown, SentimentResult
from nba_news_hub.storage.polls import default_polls


def scored_item():
    sentiment = SentimentResult(
        score=0.42,
        label="positive",
        breakdown=SentimentBreakdown(60, 30, 10),
        source="reddit",
        comment_count=12,
    )
    return NewsItem.from_article(make_article("Lakers beat Warriors"), sentiment, created_at=NOW)


def test_format_sentiment_and_breakdown():
    item = scored_item()

    assert "positive" in format_sentiment(item)
    assert "+0.42" in format_sentiment(item)
    assert "(reddit, 12)" in format_sentiment(item)
    assert format_breakdown(item) == "60/30/10"


def test_news_table_has_row_per_item():
    table = build_news_table([scored_item(), scored_item()])
    assert table.row_count == 2


def test_render_news_and_polls():
    console = Console(record=True, width=160)
    response = NewsResponse(items=[scored_item()], cached=True, last_updated=NOW, total=1)

    render_news(response, console=console)
    render_polls(default_polls(), console=console)
    output = console.export_text()

    assert "Lakers beat Warriors" in output
    assert "cached" in output
    assert "Who wins the 2025-26 NBA MVP?" in output


def test_render_empty_news():
    console = Console(record=True)
    render_news(NewsResponse(items=[], cached=False, last_updated=NOW, total=0), console=console)
    assert "No news found" in console.export_text()


def test_render_payload_is_json():
    assert render_payload({"total": 0}) == '{\n  "total": 0\n}'


def test_cli_rejects_unknown_team():
    result = CliRunner().invoke(cli, ["news", "--mock", "--team", "XYZ"])
    assert result.exit_code != 0
    assert "XYZ" in result.output


@pytest.mark.parametrize("team", ["ALL", "lal", "BOS"])
def test_cli_accepts_known_teams_and_all(team):
    result = CliRunner().invoke(cli, ["news", "--mock", "--json", "--team", team])

    assert result.exit_code == 0, result.output
    payload = orjson.loads(result.output)
    if team != "ALL":
        assert all(team.upper() in item["teams"] for item in payload["items"])


def test_cli_polls_json():
    result = CliRunner().invoke(cli, ["polls", "--json"])
    assert result.exit_code == 0
    assert '"polls"' in result.output
