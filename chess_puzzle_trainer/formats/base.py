"""
Format dispatch for puzzle sources.

A payload's format is resolved once, from an explicit name, a file extension
or content sniffing, into a ``PuzzleFormat``. The matching parser object then
turns the text into PuzzleRecords through the common ``parse`` interface.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Type, Union

from ..core.errors import FormatDetectionError
from ..core.models import ParseResult

logger = logging.getLogger(__name__)


class PuzzleFormat(Enum):
    """Supported puzzle source formats."""

    JSON = "json"
    CSV = "csv"
    TAG_BLOCK = "pgn"
    BULK = "lichess"
    MOVE_LIST = "movelist"


FORMAT_ALIASES = {
    "json": PuzzleFormat.JSON,
    "csv": PuzzleFormat.CSV,
    "pgn": PuzzleFormat.TAG_BLOCK,
    "tagblock": PuzzleFormat.TAG_BLOCK,
    "lichess": PuzzleFormat.BULK,
    "bulk": PuzzleFormat.BULK,
    "movelist": PuzzleFormat.MOVE_LIST,
    "mates": PuzzleFormat.MOVE_LIST,
}

FORMAT_CHOICES = ["auto"] + list(FORMAT_ALIASES)

EXTENSION_FORMATS = {
    ".json": PuzzleFormat.JSON,
    ".pgn": PuzzleFormat.TAG_BLOCK,
    ".csv": PuzzleFormat.CSV,
}

TAG_BLOCK_MARKERS = ("[Event", "[FEN")
FIELD_NAME_MARKERS = ("PuzzleId", "Rating")

# "<White> vs <Black> <place> <year>" followed by a FEN line
MOVE_LIST_HEADER = re.compile(r"^.+ vs .+\d{4}.*$", re.MULTILINE)
FEN_LINE = re.compile(r"^\s*([pnbrqkPNBRQK1-8]+/){7}[pnbrqkPNBRQK1-8]+\s+[wb]\b", re.MULTILINE)


class FormatParser:
    """
    Base class for format parsers.

    Subclasses implement ``parse`` and never raise for a single bad record;
    problems are reported through ``ParseResult.errors``.
    """

    format: PuzzleFormat

    def parse(self, text: str) -> ParseResult:
        raise NotImplementedError


_REGISTRY: Dict[PuzzleFormat, Type[FormatParser]] = {}


def register_parser(fmt: PuzzleFormat):
    """Class decorator registering a parser for a format."""
    def decorator(cls: Type[FormatParser]) -> Type[FormatParser]:
        cls.format = fmt
        _REGISTRY[fmt] = cls
        return cls
    return decorator


def get_parser(fmt: PuzzleFormat) -> FormatParser:
    """Instantiate the parser registered for ``fmt``."""
    try:
        return _REGISTRY[fmt]()
    except KeyError:
        raise FormatDetectionError(f"No parser registered for format {fmt.value}")


def _looks_like_move_list(text: str) -> bool:
    header = MOVE_LIST_HEADER.search(text)
    if not header:
        return False
    following = text[header.end():].lstrip("\r\n")
    return bool(FEN_LINE.match(following))


def detect_format(text: str) -> PuzzleFormat:
    """
    Classify ambiguous text.

    JSON is tried first, then tag-block markers, the move-list text layout,
    comma separated lines, and finally known field-name markers.

    Raises:
        FormatDetectionError: if nothing matches
    """
    stripped = text.strip()
    if not stripped:
        raise FormatDetectionError("Unable to detect puzzle format: empty input")

    try:
        parsed = json.loads(stripped)
    except ValueError:
        parsed = None
    if isinstance(parsed, (list, dict)):
        return PuzzleFormat.JSON

    if any(marker in stripped for marker in TAG_BLOCK_MARKERS):
        return PuzzleFormat.TAG_BLOCK

    if _looks_like_move_list(stripped):
        return PuzzleFormat.MOVE_LIST

    if "," in stripped and "\n" in stripped:
        return PuzzleFormat.CSV

    if any(marker in stripped for marker in FIELD_NAME_MARKERS):
        return PuzzleFormat.BULK

    raise FormatDetectionError("Unable to detect puzzle format: unrecognized format")


def format_from_path(path: Union[str, Path]) -> Optional[PuzzleFormat]:
    """Map a file extension to a format; None means detect from content."""
    return EXTENSION_FORMATS.get(Path(path).suffix.lower())


def resolve_format(name: Optional[str] = None, text: Optional[str] = None,
                   path: Union[str, Path, None] = None) -> PuzzleFormat:
    """
    Resolve a format from an explicit name, then the file extension, then content.

    Raises:
        FormatDetectionError: if the name is unknown or detection fails
    """
    if name and name.lower() != "auto":
        try:
            return FORMAT_ALIASES[name.lower()]
        except KeyError:
            raise FormatDetectionError(f"Unsupported puzzle format: {name}")

    if path is not None:
        fmt = format_from_path(path)
        if fmt is not None:
            return fmt

    if text is None:
        raise FormatDetectionError("Unable to detect puzzle format: no content")

    fmt = detect_format(text)
    logger.debug(f"Detected format {fmt.value}")
    return fmt


def parse_text(text: str, fmt: Union[PuzzleFormat, str, None] = None,
               path: Union[str, Path, None] = None) -> ParseResult:
    """Parse a payload with the parser for its declared or detected format."""
    if not isinstance(fmt, PuzzleFormat):
        fmt = resolve_format(fmt, text, path)
    return get_parser(fmt).parse(text)
