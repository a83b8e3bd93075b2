"""
Lichess puzzle export format.

Comma separated lines with fixed column positions:

    PuzzleId,FEN,Moves,Rating,RatingDeviation,Popularity,NbPlays,Themes,GameUrl,OpeningTags

Moves are space separated UCI; themes and opening tags are space separated.
Malformed lines are reported and skipped.
"""

from __future__ import annotations

import csv
import logging
from typing import Optional, Sequence

from ..core.errors import MissingRequiredFieldError, RejectionError
from ..core.models import ParseResult, PuzzleRecord
from .base import FormatParser, PuzzleFormat, register_parser

logger = logging.getLogger(__name__)

LICHESS_COLUMNS = [
    "PuzzleId", "FEN", "Moves", "Rating", "RatingDeviation",
    "Popularity", "NbPlays", "Themes", "GameUrl", "OpeningTags",
]

MIN_COLUMNS = 3


def is_header(fields: Sequence[str]) -> bool:
    return bool(fields) and fields[0].strip().lower() == "puzzleid"


def _column(fields: Sequence[str], index: int) -> str:
    return fields[index].strip() if index < len(fields) else ""


def _int_column(fields: Sequence[str], index: int, name: str) -> Optional[int]:
    value = _column(fields, index)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise RejectionError(f"{name} is not an integer: '{value}'")


def parse_fields(fields: Sequence[str]) -> PuzzleRecord:
    """
    Build a record from one line's columns.

    Raises:
        RejectionError: if the line is too short or a numeric column is malformed
    """
    if len(fields) < MIN_COLUMNS:
        raise MissingRequiredFieldError(
            f"expected at least {MIN_COLUMNS} columns, got {len(fields)}"
        )

    puzzle_id = _column(fields, 0)
    rating = _int_column(fields, 3, "Rating")
    extras = {
        "rating_deviation": _int_column(fields, 4, "RatingDeviation"),
        "popularity": _int_column(fields, 5, "Popularity"),
        "nb_plays": _int_column(fields, 6, "NbPlays"),
        "game_url": _column(fields, 8),
        "opening_tags": _column(fields, 9),
    }

    return PuzzleRecord(
        fen=_column(fields, 1),
        moves=_column(fields, 2).split(),
        rating=rating,
        themes=_column(fields, 7),
        description=f"Lichess puzzle {puzzle_id}" if puzzle_id else None,
        puzzle_id=puzzle_id or None,
        source="lichess",
        extras={k: v for k, v in extras.items() if v not in (None, "")},
    )


@register_parser(PuzzleFormat.BULK)
class LichessParser(FormatParser):
    """Line-oriented parser for the Lichess puzzle export."""

    def parse(self, text: str) -> ParseResult:
        result = ParseResult()
        for line_no, line in enumerate(text.strip().splitlines(), start=1):
            if not line.strip():
                continue
            try:
                fields = next(csv.reader([line]))
            except csv.Error as e:
                result.errors.append(f"Lichess format line {line_no}: {e}")
                continue
            if is_header(fields):
                continue
            try:
                result.records.append(parse_fields(fields))
            except RejectionError as e:
                result.errors.append(f"Lichess format line {line_no}: {e}")

        logger.debug(f"Parsed {len(result.records)} Lichess records")
        return result
