"""
Puzzle exporters.

Each exporter produces text that the matching parser reads back without loss
of the core fields: position, moves, rating/difficulty, category, themes and
description.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import date
from typing import Iterable, List, Optional, Union

from ..core.errors import FormatDetectionError
from ..core.models import Puzzle
from .base import PuzzleFormat, resolve_format
from .tagblock_format import escape

CSV_HEADERS = ["id", "fen", "moves", "difficulty", "category", "themes", "description"]

EXPORT_SITE = "Chess Puzzle Trainer"


def export_json(puzzles: Iterable[Puzzle]) -> str:
    return json.dumps([puzzle.to_dict() for puzzle in puzzles], indent=2)


def _tag(name: str, value) -> str:
    # Line breaks and tabs are written as \n and \t escapes
    return f'[{name} "{escape(value)}"]'


def export_tag_blocks(puzzles: Iterable[Puzzle], export_date: Optional[date] = None) -> str:
    """One PGN-like block per puzzle: headers, blank line, solution line."""
    stamp = (export_date or date.today()).strftime("%Y.%m.%d")
    blocks: List[str] = []

    for index, puzzle in enumerate(puzzles, start=1):
        lines = [
            _tag("Event", puzzle.source or f"Puzzle {puzzle.puzzle_id or index}"),
            _tag("Site", EXPORT_SITE),
            _tag("Date", stamp),
            _tag("PuzzleId", puzzle.puzzle_id),
            _tag("FEN", puzzle.fen),
        ]
        if puzzle.rating is not None:
            lines.append(_tag("Rating", puzzle.rating))
        lines.extend([
            _tag("Difficulty", puzzle.difficulty),
            _tag("Category", puzzle.category),
            _tag("Themes", puzzle.themes_text),
            _tag("Description", puzzle.description),
            "",
            puzzle.moves_text,
        ])
        blocks.append("\n".join(lines))

    return "\n\n".join(blocks) + ("\n" if blocks else "")


def export_csv(puzzles: Iterable[Puzzle]) -> str:
    """Header-led CSV with every field quoted; ``difficulty`` carries the rating when known."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    for puzzle in puzzles:
        writer.writerow([
            puzzle.puzzle_id,
            puzzle.fen,
            puzzle.moves_text,
            puzzle.rating if puzzle.rating is not None else puzzle.difficulty,
            puzzle.category,
            puzzle.themes_text,
            puzzle.description,
        ])

    return buffer.getvalue()


EXPORTERS = {
    PuzzleFormat.JSON: export_json,
    PuzzleFormat.TAG_BLOCK: export_tag_blocks,
    PuzzleFormat.CSV: export_csv,
}


def export_puzzles(puzzles: Iterable[Puzzle], fmt: Union[PuzzleFormat, str] = PuzzleFormat.JSON) -> str:
    """
    Export puzzles as JSON, tag-block text or CSV.

    Raises:
        FormatDetectionError: for formats without an exporter
    """
    if isinstance(fmt, str):
        fmt = resolve_format(fmt)
    try:
        exporter = EXPORTERS[fmt]
    except KeyError:
        raise FormatDetectionError(f"Unsupported export format: {fmt.value}")
    return exporter(list(puzzles))
