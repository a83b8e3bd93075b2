"""
Delimited text with a header row.

Columns are matched to canonical fields through a table of header synonyms.
Quoted fields may contain commas and doubled quotes.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Dict, List, Optional, Sequence

from ..core.errors import MissingRequiredFieldError
from ..core.models import ParseResult, PuzzleRecord
from .base import FormatParser, PuzzleFormat, register_parser

logger = logging.getLogger(__name__)

# Canonical field -> accepted header names (lowercase), first match wins
FIELD_SYNONYMS = {
    "fen": ("fen", "position", "board"),
    "moves": ("moves", "solution", "answer"),
    "difficulty": ("difficulty", "rating", "level"),
    "category": ("category", "type", "theme"),
    "description": ("description", "comment", "instruction"),
    "puzzle_id": ("id", "puzzleid", "puzzle_id"),
    "themes": ("themes", "tags"),
}

REQUIRED_FIELDS = ("fen", "moves")


def split_csv_line(line: str) -> List[str]:
    """Split one delimited line, honouring quoted fields."""
    rows = list(csv.reader([line], skipinitialspace=True))
    return [value.strip() for value in rows[0]] if rows else []


def map_headers(headers: Sequence[str]) -> Dict[str, int]:
    """Return the column index of every canonical field present in ``headers``."""
    normalized = [h.strip().lower() for h in headers]
    indexes: Dict[str, int] = {}
    for name, synonyms in FIELD_SYNONYMS.items():
        for synonym in synonyms:
            if synonym in normalized:
                indexes[name] = normalized.index(synonym)
                break
    return indexes


def _value(values: Sequence[str], index: Optional[int]) -> Optional[str]:
    if index is None or index >= len(values):
        return None
    return values[index] or None


@register_parser(PuzzleFormat.CSV)
class CsvParser(FormatParser):
    """Parses header-led CSV payloads into PuzzleRecords."""

    def parse(self, text: str) -> ParseResult:
        result = ParseResult()
        reader = csv.reader(io.StringIO(text.strip()), skipinitialspace=True)

        try:
            headers = next(reader)
        except StopIteration:
            result.errors.append("CSV parsing error: empty input")
            result.fatal = True
            return result
        except csv.Error as e:
            result.errors.append(f"CSV parsing error: {e}")
            result.fatal = True
            return result

        columns = map_headers(headers)
        missing = [name for name in REQUIRED_FIELDS if name not in columns]

        while True:
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                result.errors.append(f"CSV line {reader.line_num}: {e}")
                continue

            line_no = reader.line_num
            values = [value.strip() for value in row]
            if not any(values):
                continue

            if missing:
                error = MissingRequiredFieldError(
                    f"missing required column(s): {', '.join(missing)}"
                )
                result.errors.append(f"CSV line {line_no}: {error}")
                continue

            record = PuzzleRecord(
                fen=_value(values, columns.get("fen")),
                moves=_value(values, columns.get("moves")),
                difficulty=_value(values, columns.get("difficulty")),
                category=_value(values, columns.get("category")),
                themes=_value(values, columns.get("themes")),
                description=_value(values, columns.get("description")),
                puzzle_id=_value(values, columns.get("puzzle_id")),
            )
            result.records.append(record)

        logger.debug(f"Parsed {len(result.records)} CSV records, {len(result.errors)} errors")
        return result
