"""
Command-line interface for the chess puzzle pipeline.

Sub-commands cover the whole ingestion workflow: analyzing and bulk importing
large dumps, loading and linting small puzzle files, re-validating and
exporting the store, and browsing it.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from . import __version__
from .core.errors import DumpReadError, PuzzleError
from .core.models import Config, PoolMode
from .formats import FORMAT_CHOICES
from .importer import BulkImporter
from .store import PuzzleLibrary, PuzzleStore
from .ui import (
    create_errors_panel,
    create_import_panel,
    create_puzzle_table,
    create_stats_table,
    show_analysis,
    show_import_result,
    show_validation,
)

console = Console()
logger = logging.getLogger(__name__)

POOL_CHOICES = [mode.value for mode in PoolMode]


def setup_logging(level=logging.WARNING):
    """Route log records through Rich on stderr, replacing existing handlers."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)


def _split_themes(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [theme for theme in value.replace(",", " ").split() if theme]


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="chess-puzzle-trainer",
        description="Import, validate and query chess puzzles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Look at the first rows of a Lichess dump
  %(prog)s analyze lichess_db_puzzle.csv.zst

  # Import mid-rated fork and pin puzzles
  %(prog)s import lichess_db_puzzle.csv.zst --min-rating 1200 --max-rating 1800 --themes fork,pin

  # Check a file without writing anything
  %(prog)s lint my_puzzles.pgn

  # Load it into the custom set and export everything as CSV
  %(prog)s load my_puzzles.pgn
  %(prog)s export --format csv -o puzzles.csv
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--db", type=str, help="Database file (default: $PUZZLE_DB_PATH or data/puzzles.db)")
    parser.add_argument("--no-seed", action="store_true", help="Do not seed the built-in puzzle set")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.required = True

    analyze = commands.add_parser("analyze", help="Inspect the first rows of a dump without importing")
    analyze.add_argument("path", type=Path)
    analyze.add_argument("--rows", type=int, default=None, help="Rows to scan (default: 1000)")

    bulk = commands.add_parser("import", help="Stream a large dump into the store")
    bulk.add_argument("path", type=Path)
    bulk.add_argument("--min-rating", type=int, help="Inclusive minimum rating")
    bulk.add_argument("--max-rating", type=int, help="Inclusive maximum rating")
    bulk.add_argument("--max-count", type=int, help="Stop after this many puzzles")
    bulk.add_argument("--themes", type=str, help="Comma separated theme allow-list")
    bulk.add_argument("--batch-size", type=int, help="Rows per store write (default: 1000)")
    bulk.add_argument("--no-validate", action="store_true", help="Skip move replay validation")
    bulk.add_argument("--partition", choices=["builtin", "custom"], help="Target partition (default: custom)")

    commands.add_parser("stats", help="Show store statistics").add_argument(
        "--pool", choices=POOL_CHOICES, default="all")

    load = commands.add_parser("load", help="Validate a puzzle file and add it to the custom set")
    load.add_argument("path", type=Path)
    load.add_argument("--format", dest="fmt", choices=FORMAT_CHOICES, default="auto")

    lint = commands.add_parser("lint", help="Validate a puzzle file and list every rejection")
    lint.add_argument("path", type=Path)
    lint.add_argument("--format", dest="fmt", choices=FORMAT_CHOICES, default="auto")

    commands.add_parser("validate", help="Re-validate the stored puzzles").add_argument(
        "--pool", choices=POOL_CHOICES, default="all")

    export = commands.add_parser("export", help="Export puzzles as JSON, PGN or CSV")
    export.add_argument("--format", dest="fmt", choices=["json", "pgn", "csv"], default="json")
    export.add_argument("--pool", choices=POOL_CHOICES, default="all")
    export.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")

    search = commands.add_parser("search", help="Search themes, ids, openings and descriptions")
    search.add_argument("term")
    search.add_argument("--limit", type=int, default=None)
    search.add_argument("--pool", choices=POOL_CHOICES, default="all")

    random_cmd = commands.add_parser("random", help="Draw random puzzles")
    random_cmd.add_argument("--count", type=int, default=1)
    random_cmd.add_argument("--min-rating", type=int)
    random_cmd.add_argument("--max-rating", type=int)
    random_cmd.add_argument("--themes", type=str, help="Comma separated themes")
    random_cmd.add_argument("--pool", choices=POOL_CHOICES, default="all")

    return parser


def build_config(args: argparse.Namespace) -> Config:
    config = Config()
    if args.db:
        config.db_path = args.db
    if args.no_seed:
        config.seed_builtin = False
    if getattr(args, "batch_size", None):
        config.batch_size = args.batch_size
    if getattr(args, "no_validate", False):
        config.validate_moves = False
    if getattr(args, "partition", None):
        config.partition = args.partition
    return Config.from_dict(config.to_dict())


def _print_import_report(report, failed: bool = False) -> None:
    title = "Import Stopped" if failed else "Import Summary"
    console.print(create_import_panel(report, title=title, failed=failed))
    panel = create_errors_panel(report.errors)
    if panel is not None:
        console.print(panel)


async def run_import(args: argparse.Namespace, importer: BulkImporter) -> int:
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Importing puzzles...", total=None)

            def on_progress(report):
                progress.update(task, description=f"Imported {report.imported:,} puzzles ({report.processed:,} rows read)")

            report = await importer.import_dump(
                args.path,
                min_rating=args.min_rating,
                max_rating=args.max_rating,
                max_count=args.max_count,
                themes=_split_themes(args.themes),
                progress=on_progress,
            )
    except DumpReadError as e:
        if e.report is not None and e.report.processed:
            _print_import_report(e.report, failed=True)
        raise

    _print_import_report(report)
    stats = await importer.store.get_stats(importer.config.partition)
    console.print(create_stats_table(stats, title=f"Puzzle Store ({importer.config.partition})"))
    return 1 if report.failed_batches else 0


async def dispatch(args: argparse.Namespace, config: Config, store: PuzzleStore) -> int:
    library = PuzzleLibrary(store, config)

    if args.command == "analyze":
        analysis = await BulkImporter(store, config).analyze_dump(args.path, args.rows)
        show_analysis(console, analysis)
        return 0

    if args.command == "import":
        return await run_import(args, BulkImporter(store, config))

    if args.command == "stats":
        stats = await library.statistics(args.pool)
        console.print(create_stats_table(stats, title=f"Puzzle Store ({args.pool})"))
        return 0

    if args.command in ("load", "lint"):
        text = args.path.read_text(encoding="utf-8")
        if args.command == "lint":
            result = library.lint(text, args.fmt, args.path)
            show_import_result(console, result, title="Valid")
            return 0 if not result.errors else 1
        result = await library.import_text(text, args.fmt, args.path)
        show_import_result(console, result)
        return 0 if result.success else 1

    if args.command == "validate":
        report = await library.validate(args.pool)
        show_validation(console, report)
        return 0 if report.valid else 1

    if args.command == "export":
        output = await library.export(args.fmt, args.pool)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(output, encoding="utf-8")
            console.print(f"[green]Exported to {args.output}[/green]")
        else:
            sys.stdout.write(output)
        return 0

    if args.command == "search":
        puzzles = await store.search(args.term, args.limit or config.query_limit, args.pool)
        console.print(create_puzzle_table(puzzles, title=f"Search: {args.term} ({len(puzzles)})"))
        return 0

    if args.command == "random":
        puzzles = await store.random_sample(
            args.count, args.min_rating, args.max_rating, _split_themes(args.themes), args.pool
        )
        if not puzzles:
            console.print("[yellow]No puzzles match those filters[/yellow]")
            return 1
        console.print(create_puzzle_table(puzzles, title="Random Puzzles"))
        return 0

    raise ValueError(f"Unknown command: {args.command}")


async def main_async(args: argparse.Namespace) -> int:
    """Main async entry point."""
    try:
        config = build_config(args)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        return 2

    store = PuzzleStore(config.db_path, max_id_retries=config.max_id_retries)
    try:
        if config.seed_builtin:
            await store.seed_builtin()
        return await dispatch(args, config, store)
    except (PuzzleError, OSError) as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        logger.debug("Command failed", exc_info=True)
        return 1
    finally:
        store.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        return asyncio.run(main_async(args))
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Interrupted by user[/bold yellow]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
