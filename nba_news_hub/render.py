"""
Terminal rendering for news and poll results.

Tables go through rich; ``--json`` output is serialized with orjson so
datetimes and nested records come out the same way the HTTP API returns them.
"""

import logging
from typing import TYPE_CHECKING, Any, Optional, Sequence

import orjson
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .schema import NewsItem, Poll

if TYPE_CHECKING:
    from .orchestrator import NewsResponse
    from .storage.polls import VoteResult

logger = logging.getLogger(__name__)

SENTIMENT_STYLES = {
    "positive": "green",
    "neutral": "yellow",
    "negative": "red",
}


def render_payload(payload: Any) -> str:
    """Pretty JSON for API-shaped payloads."""
    return orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8")


def format_sentiment(item: NewsItem) -> str:
    """One-cell sentiment summary, e.g. ``positive +0.42 (reddit, 12)``."""
    if item.sentiment_label is None:
        return "-"

    style = SENTIMENT_STYLES.get(item.sentiment_label, "white")
    score = item.sentiment_score or 0.0
    provenance = item.sentiment_source or "-"
    if item.sentiment_comment_count:
        provenance = f"{provenance}, {item.sentiment_comment_count}"
    return f"[{style}]{item.sentiment_label}[/{style}] {score:+.2f} [dim]({provenance})[/dim]"


def format_breakdown(item: NewsItem) -> str:
    breakdown = item.sentiment_breakdown
    if breakdown is None:
        return "-"
    return f"{breakdown.positive}/{breakdown.neutral}/{breakdown.negative}"


def build_news_table(items: Sequence[NewsItem], title: Optional[str] = None) -> Table:
    """Build a rich table with one row per news item."""
    table = Table(
        title=title,
        box=box.ROUNDED,
        show_header=True,
        header_style="bold cyan",
    )

    table.add_column("Published", style="dim", no_wrap=True)
    table.add_column("Source", no_wrap=True)
    table.add_column("Headline", overflow="fold")
    table.add_column("Teams", justify="center")
    table.add_column("Sentiment")
    table.add_column("+/=/-", justify="right")

    for item in items:
        table.add_row(
            item.published_at.strftime("%Y-%m-%d %H:%M"),
            item.source,
            item.headline,
            ", ".join(sorted(item.teams)) or "-",
            format_sentiment(item),
            format_breakdown(item),
        )

    return table


def render_news(response: "NewsResponse", console: Optional[Console] = None) -> None:
    """Print a news response as a table with a cache summary line."""
    console = console or Console()

    if not response.items:
        console.print("[yellow]No news found.[/yellow]")
        return

    state = "cached" if response.cached else "fresh"
    console.print(build_news_table(response.items, title=f"NBA News ({response.total}, {state})"))
    console.print(f"[dim]Last updated {response.last_updated.isoformat()}[/dim]")


def build_poll_panel(poll: Poll) -> Panel:
    total = sum(option.votes for option in poll.options)
    lines = []
    for index, option in enumerate(poll.options):
        share = (option.votes / total * 100) if total else 0.0
        lines.append(f"[bold]{index}[/bold]  {option.text}  [dim]{option.votes} votes ({share:.0f}%)[/dim]")

    return Panel(
        "\n".join(lines),
        title=f"[bold]#{poll.id} {poll.question}[/bold]",
        subtitle=poll.event_context or None,
        border_style="cyan",
    )


def render_polls(polls: Sequence[Poll], console: Optional[Console] = None) -> None:
    console = console or Console()

    if not polls:
        console.print("[yellow]No active polls.[/yellow]")
        return

    for poll in polls:
        console.print(build_poll_panel(poll))


def render_vote(result: "VoteResult", console: Optional[Console] = None) -> None:
    console = console or Console()
    console.print("[green]✓ Vote recorded[/green]")
    console.print(build_poll_panel(result.poll))
    console.print(f"[italic]{result.insight}[/italic]")
