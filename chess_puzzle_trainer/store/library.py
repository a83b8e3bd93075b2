"""
Puzzle library facade.

Ties the parsers, the normalizer and the store together for small payloads:
loading a file into the custom partition, linting it without writing,
re-validating what is stored, and exporting or filtering a pool.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from ..core.errors import FormatDetectionError, Rejection, RejectionError
from ..core.models import Config, ImportResult, Partition, PoolMode, Puzzle, PuzzleRecord
from ..core.normalizer import PuzzleNormalizer
from ..formats import PuzzleFormat, export_puzzles, parse_text
from .database import PoolLike, PuzzleStore, StoreStats

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    """Result of re-validating the stored pool."""

    checked: int = 0
    rejections: List[Rejection] = field(default_factory=list)
    duplicate_ids: Dict[str, List[str]] = field(default_factory=dict)   # id -> partitions

    @property
    def valid(self) -> bool:
        return not self.rejections and not self.duplicate_ids

    @property
    def errors(self) -> List[str]:
        messages = [str(rejection) for rejection in self.rejections]
        for puzzle_id, partitions in sorted(self.duplicate_ids.items()):
            messages.append(f"Duplicate id {puzzle_id} in partitions: {', '.join(partitions)}")
        return messages


class PuzzleLibrary:
    """Loads, lints, validates and exports puzzles against a PuzzleStore."""

    def __init__(self, store: PuzzleStore, config: Optional[Config] = None,
                 normalizer: Optional[PuzzleNormalizer] = None):
        self.store = store
        self.config = config or Config()
        self.normalizer = normalizer or PuzzleNormalizer(
            max_id_retries=self.config.max_id_retries,
            validate_moves=self.config.validate_moves,
        )

    def lint(self, text: str, fmt: Union[PuzzleFormat, str, None] = None,
             path: Union[str, Path, None] = None) -> ImportResult:
        """
        Parse and validate a payload without writing anything.

        Parse errors and rejections both end up in ``errors``; a payload whose
        format cannot be determined yields a single error and no puzzles.
        """
        try:
            parsed = parse_text(text, fmt, path)
        except FormatDetectionError as e:
            return ImportResult(errors=[str(e)])

        result = self.normalizer.normalize_all(parsed.records)
        result.errors = parsed.errors + result.errors
        return result

    async def import_text(self, text: str, fmt: Union[PuzzleFormat, str, None] = None,
                          path: Union[str, Path, None] = None) -> ImportResult:
        """Validate a payload and add the accepted puzzles to the custom partition."""
        result = self.lint(text, fmt, path)
        if not result.puzzles:
            logger.warning(f"No puzzles accepted ({len(result.errors)} errors)")
            return result

        report = await self.store.add_custom(result.puzzles)
        result.puzzles = report.added
        result.notices.extend(report.renamed)
        for puzzle_id in report.dropped:
            result.errors.append(f"Puzzle {puzzle_id}: could not assign a unique id in the custom set")
        logger.info(f"Loaded {result.count} puzzles into the custom set")
        return result

    async def import_file(self, path: Union[str, Path],
                          fmt: Union[PuzzleFormat, str, None] = None) -> ImportResult:
        path = Path(path)
        text = path.read_text(encoding="utf-8")
        return await self.import_text(text, fmt, path)

    async def validate(self, pool: PoolLike = PoolMode.ALL) -> ValidationReport:
        """
        Replay every stored puzzle and look for ids shared across partitions.

        Stored rows are checked with the same position and solution rules
        applied at import time.
        """
        report = ValidationReport()
        puzzles = await self.store.all_puzzles(pool)

        for index, puzzle in enumerate(puzzles, start=1):
            report.checked += 1
            record = PuzzleRecord(fen=puzzle.fen, moves=puzzle.moves, puzzle_id=puzzle.puzzle_id)
            try:
                fen = self.normalizer.check_position(record)
                self.normalizer.check_solution(fen, record)
            except RejectionError as e:
                report.rejections.append(Rejection(index=index, code=e.code, message=f"{puzzle.puzzle_id}: {e.message}"))

        mode = pool if isinstance(pool, PoolMode) else PoolMode(pool)
        if mode is PoolMode.ALL:
            partitions_by_id = defaultdict(list)
            for partition in Partition:
                for puzzle_id in await self.store.partition_ids(partition):
                    partitions_by_id[puzzle_id].append(partition.value)
            report.duplicate_ids = {
                puzzle_id: partitions
                for puzzle_id, partitions in partitions_by_id.items()
                if len(partitions) > 1
            }

        logger.info(f"Validated {report.checked} puzzles: {len(report.errors)} problems")
        return report

    async def export(self, fmt: Union[PuzzleFormat, str] = PuzzleFormat.JSON,
                     pool: PoolLike = PoolMode.ALL, active_only: bool = True) -> str:
        puzzles = await self.store.all_puzzles(pool, active_only=active_only)
        return export_puzzles(puzzles, fmt)

    async def filter(self, difficulty: Optional[int] = None, category: Optional[str] = None,
                     themes: Optional[Sequence[str]] = None,
                     pool: PoolLike = PoolMode.ALL) -> List[Puzzle]:
        return await self.store.filter_puzzles(difficulty, category, themes, pool=pool)

    async def statistics(self, pool: PoolLike = PoolMode.ALL) -> StoreStats:
        return await self.store.get_stats(pool)
