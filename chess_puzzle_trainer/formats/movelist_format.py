"""
Mate-in-N collection text.

Puzzles come in three-line blocks::

    Paul Morphy vs Duke Isouard, Paris 1858
    4kb1r/p2n1ppp/4q3/4p1B1/4P3/1Q6/PPP2PPP/2KR4 w k - 1 0
    1. Qb8+ Nxb8 2. Rd8#

Collections of this kind often carry a bogus ``- 1 0`` move-counter pair,
which is repaired to ``- 0 1`` before validation.
"""

from __future__ import annotations

import logging
import re
from typing import List

from ..core.models import ParseResult, PuzzleRecord
from .base import FEN_LINE, FormatParser, PuzzleFormat, register_parser

logger = logging.getLogger(__name__)

GAME_HEADER = re.compile(r" vs .*\d{4}")
YEAR = re.compile(r"\d{4}")
BAD_COUNTERS = re.compile(r"- 1 0$")
MOVE_NUMBER = re.compile(r"\d+\.(\.\.)?\s*")

MATE_IN_TWO_THEMES = ["mateIn2", "tactics"]
MATE_IN_TWO_TIER = 2


def repair_fen(fen: str) -> str:
    return BAD_COUNTERS.sub("- 0 1", fen.strip())


def solution_moves(line: str) -> List[str]:
    return MOVE_NUMBER.sub(" ", line).split()


@register_parser(PuzzleFormat.MOVE_LIST)
class MoveListParser(FormatParser):
    """Parses "<game> / <FEN> / <solution>" blocks."""

    def __init__(self, themes: List[str] = None, difficulty: int = MATE_IN_TWO_TIER,
                 title: str = "Mate in 2"):
        self.themes = list(themes or MATE_IN_TWO_THEMES)
        self.difficulty = difficulty
        self.title = title

    def parse(self, text: str) -> ParseResult:
        result = ParseResult()
        lines = text.splitlines()
        i = 0

        while i < len(lines):
            line = lines[i].strip()
            if not line or not GAME_HEADER.search(line):
                i += 1
                continue

            fen_line = lines[i + 1].strip() if i + 1 < len(lines) else ""
            solution_line = lines[i + 2].strip() if i + 2 < len(lines) else ""
            if not fen_line or not solution_line or not FEN_LINE.match(fen_line):
                result.errors.append(f"Move list line {i + 1}: incomplete puzzle block after '{line}'")
                i += 1
                continue

            year = YEAR.search(line)
            result.records.append(PuzzleRecord(
                fen=repair_fen(fen_line),
                moves=solution_moves(solution_line),
                difficulty=self.difficulty,
                category="tactics",
                themes=list(self.themes),
                description=f"{self.title} - {line}",
                source=line,
                extras={"year": int(year.group(0))} if year else {},
            ))
            i += 3

        logger.debug(f"Parsed {len(result.records)} move-list records")
        return result
