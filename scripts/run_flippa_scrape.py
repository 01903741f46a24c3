"""Run a Flippa.com search scan and save results to the database."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections import Counter

from rich.console import Console
from rich.table import Table

from flippa_harvester.config import config
from flippa_harvester.db.operations import SqliteListingSink, get_all_listings, close_db
from flippa_harvester.models.listing import ListingRecord
from flippa_harvester.scrapers.base import ScanResult
from flippa_harvester.scrapers.flippa import FlippaScraper

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)

console = Console()


# =============================================================================
# Display Helpers
# =============================================================================

def _money(value: int | None) -> str:
    return f"${value:,}" if value is not None else "-"


def display_quality(records: list[ListingRecord]) -> None:
    """Print how many listings carry each field."""
    if not records:
        return
    total = len(records)
    counts = {
        "title": sum(1 for r in records if r.title),
        "url": sum(1 for r in records if r.url),
        "price": sum(1 for r in records if r.price is not None),
        "recurring": sum(1 for r in records if r.monthly_recurring_value is not None),
        "multiple": sum(1 for r in records if r.multiple is not None),
        "real id": sum(1 for r in records if not r.synthetic_identifier),
    }
    console.print("\n[bold]Field coverage:[/bold]")
    for name, count in counts.items():
        console.print(f"  {name}: {count}/{total} ({count / total:.0%})")

    methods = Counter(r.extraction_method or "(unknown)" for r in records)
    console.print("\n[bold]Container strategies:[/bold]")
    for method, count in methods.most_common():
        console.print(f"  {method}: {count}")


def display_sample(records: list[ListingRecord], limit: int = 15) -> None:
    """Print a table of the first few listings."""
    table = Table(title=f"Sample listings ({min(limit, len(records))} of {len(records)})")
    table.add_column("ID", style="dim")
    table.add_column("Title", max_width=50)
    table.add_column("Price", justify="right")
    table.add_column("Monthly", justify="right")
    table.add_column("Multiple", justify="right")
    table.add_column("Conf", justify="right")

    for record in records[:limit]:
        monthly = _money(record.monthly_recurring_value)
        if record.recurring_basis and record.monthly_recurring_value is not None:
            monthly += f" ({record.recurring_basis})"
        multiple = f"{record.multiple}x" if record.multiple is not None else "-"
        if record.multiple_derived:
            multiple += "*"
        table.add_row(
            record.identifier,
            record.title or "-",
            _money(record.price),
            monthly,
            multiple,
            str(record.extraction_confidence),
        )
    console.print(table)


# =============================================================================
# Main Scan Function
# =============================================================================

async def run_scan(
    max_pages: int | None = None,
    workers: int | None = None,
    dry_run: bool = False,
    headless: bool = True,
) -> ScanResult:
    """Run the Flippa.com scan and save results.

    Args:
        max_pages: Maximum number of search pages to scan (None = config limit)
        workers: Pages fetched concurrently (None = config value)
        dry_run: If True, scan but don't save to DB
        headless: Run the browser headless

    Returns:
        The scan result.
    """
    scraper = FlippaScraper(headless=headless)

    console.print("\n[bold blue]Starting Flippa.com scan[/bold blue]")
    console.print(f"  Max pages: {max_pages or config.scan.max_pages}")
    console.print(f"  Workers: {workers or config.scan.workers}")
    console.print(f"  Min confidence: {config.extraction.min_confidence}")
    console.print(f"  Dry run: {dry_run}")
    console.print()

    sink = None if dry_run else SqliteListingSink()
    try:
        result = await scraper.scan(max_pages=max_pages, workers=workers, sink=sink)
    finally:
        if sink is not None:
            sink.close()

    console.print(
        f"[green]Scan complete:[/green] {result.success_count} listings from "
        f"{result.pages_scanned} pages ({result.empty_pages} empty), "
        f"stopped: {result.stop_reason}"
    )
    if result.accumulator.duplicates:
        console.print(f"  Duplicates dropped: {result.accumulator.duplicates}")
    if result.errors:
        console.print(f"[red]{result.error_count} pages failed:[/red]")
        for error in result.errors[:5]:
            console.print(f"  - {error.url}: {error.error_type}: {error.error_message}")
    if not dry_run:
        console.print(f"  Saved: {result.flushed}")

    records = result.records
    display_quality(records)
    if records:
        display_sample(records)
    return result


def main() -> int:
    parser = argparse.ArgumentParser(description="Scan Flippa.com search results")
    parser.add_argument("--max-pages", type=int, default=None, help="Maximum search pages to scan")
    parser.add_argument("--workers", type=int, default=None, help="Pages fetched concurrently")
    parser.add_argument("--dry-run", action="store_true", help="Scan without saving to the database")
    parser.add_argument("--show-browser", action="store_true", help="Run with a visible browser window")
    parser.add_argument("--list", action="store_true", help="Show stored listings and exit")
    args = parser.parse_args()

    if args.list:
        rows = get_all_listings()
        close_db()
        console.print(f"{len(rows)} listings stored in {config.db_path}")
        return 0

    try:
        asyncio.run(
            run_scan(
                max_pages=args.max_pages,
                workers=args.workers,
                dry_run=args.dry_run,
                headless=not args.show_browser,
            )
        )
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
