"""
PGN-like tag-block text.

Each game is a run of ``[Key "Value"]`` header lines followed by a move body.
The FEN header is mandatory; the body is stripped of comments, variations,
NAGs, move numbers and results before being tokenized.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from ..core.errors import MissingRequiredFieldError
from ..core.models import ParseResult, PuzzleRecord
from .base import FormatParser, PuzzleFormat, register_parser

logger = logging.getLogger(__name__)

GAME_SPLIT = re.compile(r"\n[ \t]*\r?\n(?=[ \t]*\[)")
HEADER_LINE = re.compile(r'^\s*\[(\w+)\s+"((?:[^"\\]|\\.)*)"\s*\]\s*$')
COMMENT = re.compile(r"\{[^}]*\}")
LINE_COMMENT = re.compile(r";[^\n]*")
VARIATION = re.compile(r"\([^()]*\)")
NAG = re.compile(r"\$\d+")
MOVE_NUMBER = re.compile(r"\b\d+\.(\.\.)?")
RESULTS = {"1-0", "0-1", "1/2-1/2", "*"}
ESCAPES = {"n": "\n", "t": "\t"}


def unescape(value: str) -> str:
    return re.sub(r"\\(.)", lambda m: ESCAPES.get(m.group(1), m.group(1)), value)


def escape(value: str) -> str:
    text = str(value).replace("\r\n", "\n").replace("\r", "\n")
    text = text.replace("\\", "\\\\").replace('"', '\\"')
    return text.replace("\n", "\\n").replace("\t", "\\t")


def extract_moves(body: str) -> List[str]:
    """Tokenize a move body, dropping everything that is not a move."""
    cleaned = COMMENT.sub(" ", body)
    cleaned = LINE_COMMENT.sub(" ", cleaned)
    previous = None
    while previous != cleaned:
        previous = cleaned
        cleaned = VARIATION.sub(" ", cleaned)
    cleaned = NAG.sub(" ", cleaned)
    cleaned = MOVE_NUMBER.sub(" ", cleaned)
    return [token for token in cleaned.split() if token not in RESULTS]


def _header(headers: Dict[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = headers.get(name)
        if value:
            return value
    return None


@register_parser(PuzzleFormat.TAG_BLOCK)
class TagBlockParser(FormatParser):
    """Parses PGN-like blocks into PuzzleRecords."""

    def split_games(self, text: str) -> List[str]:
        normalized = text.replace("\r\n", "\n").strip()
        return [game for game in GAME_SPLIT.split(normalized) if game.strip()]

    def parse_game(self, game: str) -> PuzzleRecord:
        headers: Dict[str, str] = {}
        body_lines: List[str] = []
        in_headers = True

        for line in game.split("\n"):
            match = HEADER_LINE.match(line) if in_headers else None
            if match:
                headers[match.group(1)] = unescape(match.group(2))
                continue
            if line.strip():
                in_headers = False
            body_lines.append(line)

        fen = _header(headers, "FEN")
        if not fen:
            raise MissingRequiredFieldError("missing FEN header")

        return PuzzleRecord(
            fen=fen,
            moves=extract_moves("\n".join(body_lines)),
            rating=_header(headers, "Rating", "PuzzleRating"),
            difficulty=_header(headers, "Difficulty"),
            category=_header(headers, "Category"),
            themes=_header(headers, "Themes", "Theme", "Tags"),
            description=_header(headers, "Description", "Comment"),
            puzzle_id=_header(headers, "PuzzleId"),
            source=_header(headers, "Event", "Site") or "",
        )

    def parse(self, text: str) -> ParseResult:
        result = ParseResult()
        for index, game in enumerate(self.split_games(text), start=1):
            try:
                result.records.append(self.parse_game(game))
            except MissingRequiredFieldError as e:
                result.errors.append(f"PGN game {index}: {e}")

        logger.debug(f"Parsed {len(result.records)} tag-block records")
        return result
