"""
Puzzle source formats.

Parsers for JSON, CSV, PGN-like tag blocks, the Lichess export and mate-in-N
move-list text, plus exporters for the round-trippable formats. Importing this
package registers every parser with the format dispatcher.
"""

from .base import (
    FORMAT_CHOICES,
    FormatParser,
    PuzzleFormat,
    detect_format,
    format_from_path,
    get_parser,
    parse_text,
    resolve_format,
)
from .json_format import JsonParser
from .csv_format import CsvParser, split_csv_line
from .tagblock_format import TagBlockParser, extract_moves
from .lichess_format import LICHESS_COLUMNS, LichessParser, is_header, parse_fields
from .movelist_format import MoveListParser, repair_fen
from .export import export_csv, export_json, export_puzzles, export_tag_blocks

__all__ = [
    "FORMAT_CHOICES",
    "FormatParser",
    "PuzzleFormat",
    "detect_format",
    "format_from_path",
    "get_parser",
    "parse_text",
    "resolve_format",
    "JsonParser",
    "CsvParser",
    "split_csv_line",
    "TagBlockParser",
    "extract_moves",
    "LICHESS_COLUMNS",
    "LichessParser",
    "is_header",
    "parse_fields",
    "MoveListParser",
    "repair_fen",
    "export_csv",
    "export_json",
    "export_puzzles",
    "export_tag_blocks",
]
