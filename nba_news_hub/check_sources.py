#!/usr/bin/env python3
"""Source health check utility."""

import asyncio
import sys
import time
from typing import Optional

import click
import orjson
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .ingest.sources import SourceHealthMonitor, SourceRegistry
from .logging import get_logger, setup_logging

logger = get_logger(__name__)
console = Console()

CHECK_LIMIT = 5


async def check_all_sources(
    registry: Optional[SourceRegistry] = None,
    quiet: bool = False,
) -> dict:
    """Fetch each configured source once and return the health report."""
    health_monitor = SourceHealthMonitor()
    registry = registry or SourceRegistry(health_monitor=health_monitor)
    health_monitor = registry.health_monitor

    if not quiet:
        console.print("\n[bold cyan]Checking all sources...[/bold cyan]\n")

    for source in registry.sources:
        adapter = registry.create_adapter(source)
        if not quiet:
            console.print(f"Checking {source.name}... ", end="")

        start = time.monotonic()
        try:
            async with adapter:
                articles = await adapter.fetch_articles(limit=CHECK_LIMIT)
            response_time = time.monotonic() - start

            if articles:
                health_monitor.record_success(source.id, response_time, len(articles))
                if not quiet:
                    console.print(f"[green]✓[/green] ({len(articles)} articles, {response_time:.2f}s)")
            else:
                health_monitor.record_failure(source.id, "No articles found")
                if not quiet:
                    console.print("[yellow]⚠️  No articles[/yellow]")

        except Exception as e:
            health_monitor.record_failure(source.id, str(e))
            if not quiet:
                console.print(f"[red]✗ {e}[/red]")

    return health_monitor.get_health_report()


def build_health_table(report: dict) -> Table:
    """Detailed per-source status table."""
    table = Table(
        title="\nDetailed Source Status",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold cyan"
    )

    table.add_column("Source", style="dim", overflow="fold")
    table.add_column("Status", justify="center")
    table.add_column("Response Time", justify="right")
    table.add_column("Entries", justify="right")
    table.add_column("Failures", justify="right")
    table.add_column("Last Error", overflow="fold")

    for source_id, status in report['sources'].items():
        status_color = {
            'healthy': 'green',
            'degraded': 'yellow',
            'unhealthy': 'red',
            'unknown': 'dim'
        }.get(status['status'], 'white')

        response_time = status.get('response_time') or 0
        entry_count = status.get('entry_count') or 0
        failures = status.get('consecutive_failures') or 0

        last_error = status.get('last_error') or '-'
        if len(last_error) > 50:
            last_error = last_error[:47] + "..."

        table.add_row(
            source_id,
            f"[{status_color}]{status['status'].upper()}[/{status_color}]",
            f"{response_time:.2f}s" if response_time > 0 else "-",
            str(entry_count) if entry_count > 0 else "-",
            f"[red]{failures}[/red]" if failures > 0 else "-",
            last_error
        )

    return table


def display_health_report(report: dict):
    """Display health report as a summary panel plus a table."""
    console.print("\n")

    summary = report['summary']
    console.print(Panel(
        f"[green]Healthy: {summary['healthy']}[/green] | "
        f"[yellow]Degraded: {summary['degraded']}[/yellow] | "
        f"[red]Unhealthy: {summary['unhealthy']}[/red] | "
        f"Total: {summary['total']}",
        title="[bold]Source Health Summary[/bold]",
        border_style="cyan"
    ))

    if report['sources']:
        console.print(build_health_table(report))


@click.command()
@click.option('--verbose', '-v', is_flag=True, help='Show verbose output')
@click.option('--json', 'output_json', is_flag=True, help='Output as JSON')
def main(verbose: bool, output_json: bool):
    """Check health status of all configured sources."""
    setup_logging(log_level="DEBUG" if verbose else "ERROR", json_logging=False)

    try:
        report = asyncio.run(check_all_sources(quiet=output_json))

        if output_json:
            click.echo(orjson.dumps(report, option=orjson.OPT_INDENT_2).decode("utf-8"))
        else:
            display_health_report(report)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        logger.error("Source check failed", error=str(e), exc_info=verbose)
        console.print(f"\n[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
