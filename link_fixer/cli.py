"""Command-line entry point for the download link fixer.

Usage:
    fix-download-links [--apply] [--limit N] [--format csv ...]

Runs in dry-run mode unless ``--apply`` is given. Connection settings come
from the environment (``MONGODB_BIND_ADDR``, ``MONGODB_DATABASE``, ...) and
can be overridden with options.
"""

import sys
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from .config_manager import create_config_from_env, setup_logging
from .exceptions import LinkFixerError
from .fixer import LinkFixer
from .models import FixReport
from .store import InstanceStore


def exit_with_error(message: str, code: int = 1) -> None:
    """Exit with error message."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


def print_summary(report: FixReport, console: Optional[Console] = None) -> None:
    """Render per-rule results as a table on stderr."""
    console = console or Console(stderr=True)
    mode = "dry run" if report.dry_run else "applied"
    table = Table(
        title=f"Download link fixes ({mode})",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Format", style="cyan")
    table.add_column("Rule", style="cyan")
    table.add_column("Matched", justify="right")
    table.add_column("Rewritten", justify="right", style="green")
    table.add_column("No-op", justify="right", style="yellow")
    table.add_column("Conflicts", justify="right", style="red")

    for result in report.results:
        if not result.matched:
            continue
        table.add_row(
            result.format,
            result.rule,
            str(result.matched),
            str(result.rewritten),
            str(result.unchanged),
            str(result.conflicts),
        )

    console.print(table)
    if report.count_done:
        console.print("[yellow]Re-run until count_done is 0.[/yellow]")
    else:
        console.print("[green]No stale download links found.[/green]")


@click.command("fix-download-links")
@click.option(
    "--limit",
    "-l",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum documents rewritten per format and rule (default 10)",
)
@click.option(
    "--format",
    "-f",
    "formats",
    multiple=True,
    help="Download format to process; repeat for several (default xlsx, xls, csv, csvw)",
)
@click.option(
    "--apply",
    is_flag=True,
    help="Write changes to MongoDB (without it, only print intended changes)",
)
@click.option(
    "--dry-run",
    "dry_run",
    is_flag=True,
    help="Only print intended changes; overrides LINK_FIXER_DRY_RUN=false",
)
@click.option(
    "--skip-unchanged",
    is_flag=True,
    help="Do not write or count matches that lack the substring being replaced",
)
@click.option(
    "--repeat",
    is_flag=True,
    help="Repeat passes until no more links change",
)
@click.option(
    "--max-passes",
    type=click.IntRange(min=1),
    default=None,
    help="Upper bound on passes with --repeat (default 100)",
)
@click.option("--mongo-uri", default=None, help="MongoDB URI (overrides MONGODB_BIND_ADDR)")
@click.option("--database", default=None, help="Database name (default datasets)")
@click.option("--collection", default=None, help="Collection name (default instances)")
@click.option(
    "--summary/--no-summary",
    default=True,
    help="Print a per-rule summary table on stderr",
)
@click.option(
    "--log-level",
    default=None,
    help="Logging level (DEBUG, INFO, WARNING, ERROR); overrides LOG_LEVEL",
)
def fix_download_links(
    limit: Optional[int],
    formats: Tuple[str, ...],
    apply: bool,
    dry_run: bool,
    skip_unchanged: bool,
    repeat: bool,
    max_passes: Optional[int],
    mongo_uri: Optional[str],
    database: Optional[str],
    collection: Optional[str],
    summary: bool,
    log_level: Optional[str],
) -> None:
    """Rewrite stale download links on dataset instances."""
    if apply and dry_run:
        exit_with_error("--apply and --dry-run are mutually exclusive")
        return

    # Unset flags defer to the environment
    dry_run_override: Optional[bool] = None
    if apply:
        dry_run_override = False
    elif dry_run:
        dry_run_override = True

    try:
        config = create_config_from_env(
            limit=limit,
            formats=formats,
            dry_run=dry_run_override,
            skip_unchanged=skip_unchanged or None,
            repeat_until_clean=repeat or None,
            max_passes=max_passes,
            mongo_uri=mongo_uri,
            database=database,
            collection=collection,
            log_level=log_level,
        )
    except ValueError as e:
        exit_with_error(str(e))
        return

    setup_logging(config.logging)
    config.log_configuration_summary()

    try:
        with InstanceStore(config.mongo) as store:
            report = LinkFixer(store, config.fixer).run()
    except LinkFixerError as e:
        exit_with_error(str(e))
        return

    if summary:
        print_summary(report)


def main() -> None:
    """Main entry point."""
    fix_download_links()


if __name__ == "__main__":
    main()
