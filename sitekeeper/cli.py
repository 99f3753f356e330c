"""CLI entry point for the maintenance bot."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from sitekeeper.models.config import MaintenanceSettings
from sitekeeper.models.pipeline import SiteRunResult, StageStatus
from sitekeeper.orchestrator import Orchestrator
from sitekeeper.sites import load_sites

console = Console()

_OUTCOME_STYLE = {
    StageStatus.SUCCESS: "green",
    StageStatus.SKIP: "yellow",
    StageStatus.FAIL: "red",
}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _summary_table(results: list[SiteRunResult]) -> Table:
    table = Table(title="Maintenance Summary")
    table.add_column("Site", style="bold")
    table.add_column("Outcome")
    table.add_column("Verdict")
    table.add_column("Pull request")
    table.add_column("Merge")
    table.add_column("Reason")
    table.add_column("Duration", justify="right")
    for r in results:
        style = _OUTCOME_STYLE[r.outcome]
        table.add_row(
            r.site,
            f"[{style}]{r.outcome.value}[/{style}]",
            r.verdict_status or "-",
            r.pr_url or "-",
            r.merge_outcome or "-",
            r.reason or "",
            f"{r.duration_seconds:.1f}s",
        )
    return table


@click.command()
@click.argument("target", required=False)
@click.option("--config", "-c", default="sitekeeper.json", help="Settings file path")
@click.option("--date", "run_date", default=None, help="Run date (YYYY-MM-DD), defaults to today")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(target: Optional[str], config: str, run_date: Optional[str], verbose: bool) -> None:
    """Update Hugo modules for a site, a folder of sites, or every site.

    TARGET is a folder name under the data directory or a site name; omit it
    to process all sites.
    """
    setup_logging(verbose)
    load_dotenv()

    if Path(config).exists():
        settings = MaintenanceSettings.load(config)
    else:
        logging.getLogger(__name__).info("No settings file at %s, using defaults", config)
        settings = MaintenanceSettings()

    sites = load_sites(settings.data_dir, target)
    if not sites:
        console.print(f"[red]No sites found for '{target or 'all'}' in {settings.data_dir}[/red]")
        sys.exit(1)

    orchestrator = Orchestrator(settings)
    results = orchestrator.run_sites(sites, date=run_date)

    console.print("\n[bold green]Maintenance Complete[/bold green]")
    console.print(_summary_table(results))


if __name__ == "__main__":
    cli()
