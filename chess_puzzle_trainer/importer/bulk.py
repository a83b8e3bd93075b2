"""
Bulk importer for large puzzle dumps.

Rows stream in one at a time from a (possibly compressed) Lichess-layout dump,
pass the rating and theme filters, go through the normalizer and are flushed
to the store in bounded batches. Memory use is bounded by the batch size no
matter how large the dump is.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from itertools import islice
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Union

from ..core.errors import DumpReadError, RejectionError, StoreWriteError
from ..core.models import Config, Partition, Puzzle, PuzzleRecord
from ..core.normalizer import PuzzleNormalizer
from ..core.vocabulary import theme_tokens
from ..formats.lichess_format import LICHESS_COLUMNS, is_header, parse_fields
from ..store.database import PuzzleStore
from .streams import iter_rows, open_dump

logger = logging.getLogger(__name__)

# Cap on error messages kept in a report; counts are always exact
MAX_REPORTED_ERRORS = 100

# Rows pulled from the stream per worker-thread read
READ_CHUNK_ROWS = 1000

ProgressCallback = Callable[["ImportReport"], None]


def _take_rows(rows: Iterator[Sequence[str]], count: int) -> List[Sequence[str]]:
    return list(islice(rows, count))


@dataclass
class ImportReport:
    """Counters for one bulk import run."""

    processed: int = 0          # Data rows read
    imported: int = 0           # Rows that passed filters and validation
    inserted: int = 0           # New rows written to the store
    skipped: int = 0            # Rows removed by the rating or theme filter
    rejected: int = 0           # Rows that failed parsing or validation
    failed_batches: int = 0
    batches: int = 0
    lost: int = 0               # Accepted rows dropped with a failed batch
    errors: List[str] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def duplicates(self) -> int:
        """Accepted rows that were already in the store."""
        return max(self.imported - self.inserted - self.lost, 0)

    @property
    def rate(self) -> float:
        return self.processed / self.elapsed if self.elapsed > 0 else 0.0

    def add_error(self, message: str) -> None:
        if len(self.errors) < MAX_REPORTED_ERRORS:
            self.errors.append(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "imported": self.imported,
            "inserted": self.inserted,
            "skipped": self.skipped,
            "rejected": self.rejected,
            "failed_batches": self.failed_batches,
            "batches": self.batches,
            "errors": list(self.errors),
            "elapsed": round(self.elapsed, 2),
        }


@dataclass
class DumpAnalysis:
    """Summary of the first rows of a dump, produced without writing anything."""

    path: str
    headers: List[str] = field(default_factory=list)
    has_header: bool = False
    samples: List[List[str]] = field(default_factory=list)
    rows_scanned: int = 0
    min_rating: Optional[int] = None
    max_rating: Optional[int] = None
    avg_rating: Optional[float] = None
    theme_counts: Counter = field(default_factory=Counter)

    def top_themes(self, n: int = 20):
        return self.theme_counts.most_common(n)


class BulkImporter:
    """Streams dump rows into a PuzzleStore in batches."""

    def __init__(self, store: PuzzleStore, config: Optional[Config] = None,
                 normalizer: Optional[PuzzleNormalizer] = None):
        self.store = store
        self.config = config or Config()
        self.normalizer = normalizer or PuzzleNormalizer(
            max_id_retries=self.config.max_id_retries,
            validate_moves=self.config.validate_moves,
        )

    @staticmethod
    def _passes_filters(record: PuzzleRecord, min_rating: Optional[int], max_rating: Optional[int],
                        allowed: Optional[Set[str]]) -> bool:
        rating = record.rating
        if min_rating is not None and (rating is None or rating < min_rating):
            return False
        if max_rating is not None and (rating is None or rating > max_rating):
            return False
        if allowed:
            tokens = {token.lower() for token in theme_tokens(record.themes)}
            if not tokens & allowed:
                return False
        return True

    async def import_rows(self, rows: Iterable[Sequence[str]], min_rating: Optional[int] = None,
                          max_rating: Optional[int] = None, max_count: Optional[int] = None,
                          themes: Optional[Sequence[str]] = None,
                          partition: Union[Partition, str, None] = None,
                          progress: Optional[ProgressCallback] = None,
                          report: Optional[ImportReport] = None) -> ImportReport:
        """
        Import already-split rows in the Lichess column layout.

        Args:
            rows: Iterable of column lists; a header row is skipped
            min_rating: Inclusive lower rating bound
            max_rating: Inclusive upper rating bound
            max_count: Stop after this many rows have been accepted
            themes: Allow-list; a row needs at least one of these theme tokens
            partition: Target partition (defaults to the configured one)
            progress: Called with the running report every ``progress_interval`` accepted rows
            report: Report to fill in; a fresh one is created when omitted

        Returns:
            ImportReport with the run's counters
        """
        min_rating = self.config.min_rating if min_rating is None else min_rating
        max_rating = self.config.max_rating if max_rating is None else max_rating
        max_count = self.config.max_count if max_count is None else max_count
        themes = self.config.themes if themes is None else themes
        if not isinstance(partition, Partition):
            partition = Partition(partition or self.config.partition)
        allowed = {theme.lower() for theme in themes} if themes else None

        report = report if report is not None else ImportReport()
        batch: List[Puzzle] = []
        taken: Set[str] = set()
        started = time.time()
        row_iter = iter(rows)

        async def flush() -> None:
            report.batches += 1
            try:
                report.inserted += await self.store.insert_many(batch, partition)
            except StoreWriteError as e:
                report.failed_batches += 1
                report.lost += len(batch)
                report.add_error(f"Batch {report.batches}: {e}")
                logger.error(f"Batch {report.batches} failed: {e}")
            batch.clear()
            taken.clear()

        logger.info(f"Starting import into {partition.value} (batch size {self.config.batch_size})")
        try:
            while max_count is None or report.imported < max_count:
                # Decompression and CSV splitting run off the event loop
                chunk = await asyncio.to_thread(_take_rows, row_iter, READ_CHUNK_ROWS)
                if not chunk:
                    break

                for fields in chunk:
                    if is_header(fields):
                        continue
                    if max_count is not None and report.imported >= max_count:
                        break

                    report.processed += 1
                    try:
                        record = parse_fields(fields)
                        if not self._passes_filters(record, min_rating, max_rating, allowed):
                            report.skipped += 1
                            continue
                        puzzle = self.normalizer.normalize(record, report.processed, taken)
                    except RejectionError as e:
                        report.rejected += 1
                        report.add_error(f"Row {report.processed}: {e}")
                        continue

                    batch.append(puzzle)
                    report.imported += 1
                    if len(batch) >= self.config.batch_size:
                        await flush()

                    if report.imported % self.config.progress_interval == 0:
                        report.elapsed = time.time() - started
                        logger.info(f"Imported {report.imported:,} puzzles ({report.rate:,.0f} rows/sec)")
                        if progress is not None:
                            progress(report)
        finally:
            # Rows accepted before a stream failure are still written
            if batch:
                await flush()
            report.elapsed = time.time() - started
        logger.info(
            f"Import finished: {report.processed} processed, {report.imported} imported, "
            f"{report.inserted} new, {report.skipped} skipped, {report.rejected} rejected"
        )
        return report

    async def import_dump(self, path: Union[str, Path], min_rating: Optional[int] = None,
                          max_rating: Optional[int] = None, max_count: Optional[int] = None,
                          themes: Optional[Sequence[str]] = None,
                          partition: Union[Partition, str, None] = None,
                          progress: Optional[ProgressCallback] = None) -> ImportReport:
        """
        Stream a dump file (``.zst``, ``.gz``, ``.bz2`` or plain CSV) into the store.

        Raises:
            DumpReadError: if the file cannot be opened or decompressed. Batches
                written before a mid-stream failure stay committed and the
                error carries the partial report.
        """
        report = ImportReport()
        try:
            with open_dump(path) as stream:
                return await self.import_rows(
                    iter_rows(stream), min_rating, max_rating, max_count, themes, partition, progress,
                    report=report,
                )
        except DumpReadError as e:
            if report.processed:
                report.add_error(str(e))
                logger.error(f"Import stopped after {report.processed} rows: {e}")
            e.report = report
            raise

    def _analyze_sync(self, path: Union[str, Path], sample_rows: int) -> DumpAnalysis:
        analysis = DumpAnalysis(path=str(path), headers=list(LICHESS_COLUMNS))
        ratings: List[int] = []

        with open_dump(path) as stream:
            for fields in iter_rows(stream):
                if is_header(fields):
                    analysis.headers = [f.strip() for f in fields]
                    analysis.has_header = True
                    continue
                if analysis.rows_scanned >= sample_rows:
                    break

                analysis.rows_scanned += 1
                if len(analysis.samples) < self.config.sample_rows:
                    analysis.samples.append(list(fields))
                try:
                    record = parse_fields(fields)
                except RejectionError:
                    continue
                if record.rating is not None:
                    ratings.append(record.rating)
                analysis.theme_counts.update(theme_tokens(record.themes))

        if ratings:
            analysis.min_rating = min(ratings)
            analysis.max_rating = max(ratings)
            analysis.avg_rating = round(sum(ratings) / len(ratings), 1)
        return analysis

    async def analyze_dump(self, path: Union[str, Path], sample_rows: Optional[int] = None) -> DumpAnalysis:
        """Scan the first ``sample_rows`` data rows of a dump; nothing is written."""
        return await asyncio.to_thread(self._analyze_sync, path, sample_rows or self.config.analyze_rows)
