"""
Rich renderings of pipeline results.

Builders return Rich renderables so callers decide where they are printed;
the ``show_*`` helpers print straight to a console.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core.models import ImportResult, Puzzle
from ..importer.bulk import DumpAnalysis, ImportReport
from ..store.database import StoreStats
from ..store.library import ValidationReport

TIER_NAMES = {1: "Easy", 2: "Medium", 3: "Hard"}

# Errors listed before the rest are summarized
MAX_LISTED_ERRORS = 20


def _rating(value) -> str:
    return "-" if value is None else str(value)


def create_stats_table(stats: StoreStats, title: str = "Puzzle Store") -> Table:
    """Totals plus per-partition, per-category and per-tier counts."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="white", justify="right")

    table.add_row("Total puzzles", f"{stats.total:,}")
    table.add_row("Active puzzles", f"{stats.active:,}")
    table.add_row("Rating range", f"{_rating(stats.min_rating)} - {_rating(stats.max_rating)}")
    table.add_row("Average rating", _rating(stats.avg_rating))
    table.add_row("Distinct themes", f"{stats.theme_count:,}")

    for partition, count in stats.by_partition.items():
        table.add_row(f"Partition: {partition}", f"{count:,}")
    for category, count in stats.by_category.items():
        table.add_row(f"Category: {category}", f"{count:,}")
    for tier, count in stats.by_tier.items():
        table.add_row(f"Tier {tier} ({TIER_NAMES.get(tier, '?')})", f"{count:,}")
    return table


def create_import_panel(report: ImportReport, title: str = "Import Summary", failed: bool = False) -> Panel:
    lines = [
        f"Processed: {report.processed:,}",
        f"Imported:  {report.imported:,} ({report.inserted:,} new, {report.duplicates:,} already stored)",
        f"Skipped:   {report.skipped:,}",
        f"Rejected:  {report.rejected:,}",
        f"Batches:   {report.batches:,} ({report.failed_batches} failed)",
        f"Elapsed:   {report.elapsed:.1f}s ({report.rate:,.0f} rows/sec)",
    ]
    style = "red" if failed or report.failed_batches else "green"
    return Panel("\n".join(lines), title=title, border_style=style)


def create_analysis_panel(analysis: DumpAnalysis) -> Panel:
    lines = [
        f"File: {analysis.path}",
        f"Header row: {'yes' if analysis.has_header else 'no'}",
        f"Columns: {', '.join(analysis.headers)}",
        f"Rows scanned: {analysis.rows_scanned:,}",
        f"Rating range: {_rating(analysis.min_rating)} - {_rating(analysis.max_rating)}"
        f" (avg {_rating(analysis.avg_rating)})",
        f"Distinct themes: {len(analysis.theme_counts):,}",
    ]
    return Panel("\n".join(lines), title="Dump Analysis", border_style="blue")


def create_samples_table(analysis: DumpAnalysis) -> Table:
    table = Table(title="Sample Rows", show_lines=False)
    for header in analysis.headers:
        table.add_column(header, overflow="fold")
    for row in analysis.samples:
        cells = list(row[:len(analysis.headers)])
        cells += [""] * (len(analysis.headers) - len(cells))
        table.add_row(*cells)
    return table


def create_themes_table(analysis: DumpAnalysis, limit: int = 20) -> Table:
    table = Table(title="Top Themes")
    table.add_column("Theme", style="cyan")
    table.add_column("Count", justify="right")
    for theme, count in analysis.top_themes(limit):
        table.add_row(theme, f"{count:,}")
    return table


def create_puzzle_table(puzzles: Iterable[Puzzle], title: str = "Puzzles") -> Table:
    table = Table(title=title, expand=True)
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Rating", justify="right", style="green")
    table.add_column("Tier", justify="center")
    table.add_column("Category", style="magenta")
    table.add_column("Themes", style="yellow")
    table.add_column("Moves", style="dim")

    for puzzle in puzzles:
        table.add_row(
            puzzle.puzzle_id,
            _rating(puzzle.rating),
            str(puzzle.difficulty),
            puzzle.category,
            puzzle.themes_text,
            puzzle.moves_text,
        )
    return table


def create_errors_panel(errors: List[str], title: str = "Errors") -> Optional[Panel]:
    if not errors:
        return None
    shown = errors[:MAX_LISTED_ERRORS]
    text = "\n".join(shown)
    if len(errors) > len(shown):
        text += f"\n... and {len(errors) - len(shown)} more"
    return Panel(text, title=f"{title} ({len(errors)})", border_style="red")


def show_import_result(console: Console, result: ImportResult, title: str = "Loaded") -> None:
    """Print the outcome of a load or lint run, listing every error."""
    style = "green" if result.success else "yellow"
    console.print(f"[{style}]{title}: {result.count} puzzle(s), {len(result.errors)} error(s)[/{style}]")
    for notice in result.notices:
        console.print(f"[dim]Renamed duplicate id {notice.original_id} -> {notice.assigned_id}[/dim]")
    for error in result.errors:
        console.print(f"[red]  {error}[/red]")


def show_validation(console: Console, report: ValidationReport) -> None:
    if report.valid:
        console.print(f"[green]All {report.checked} stored puzzles are valid[/green]")
        return
    console.print(f"[yellow]Checked {report.checked} puzzles, found {len(report.errors)} problem(s)[/yellow]")
    panel = create_errors_panel(report.errors, title="Problems")
    if panel is not None:
        console.print(panel)


def show_analysis(console: Console, analysis: DumpAnalysis) -> None:
    console.print(create_analysis_panel(analysis))
    if analysis.samples:
        console.print(create_samples_table(analysis))
    if analysis.theme_counts:
        console.print(create_themes_table(analysis))
