"""
Puzzle normalizer and validator.

Every PuzzleRecord passes through ``PuzzleNormalizer`` before it becomes a
Puzzle. Validation runs in a fixed order and short-circuits on the first
failure:

1. position loads under the oracle
2. solution is present
3. every ply replays legally in sequence
4. difficulty, category and themes are mapped onto the controlled vocabulary
5. a batch-unique identifier is assigned and provenance is stamped

Rejections are collected as ``"Puzzle <n>: <Code>: <reason>"`` messages; a
record is either fully accepted or not at all.
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set

from .errors import (
    DuplicateIdentifier,
    EmptySolutionError,
    IllegalMoveError,
    InvalidPositionError,
    MissingRequiredFieldError,
    Rejection,
    RejectionError,
)
from .models import ImportResult, Puzzle, PuzzleRecord
from .oracle import ChessOracle
from .vocabulary import (
    DEFAULT_DESCRIPTION,
    normalize_category,
    normalize_difficulty,
    normalize_themes,
    parse_rating,
    rating_to_tier,
)

logger = logging.getLogger(__name__)

MOVE_SPLIT_PATTERN = re.compile(r"[,\s]+")

DUPLICATE_SUFFIX = "_dup"


def split_moves(moves) -> List[str]:
    """Turn a move field (list or free text) into a list of tokens."""
    if moves is None:
        return []
    if isinstance(moves, str):
        return [m for m in MOVE_SPLIT_PATTERN.split(moves.strip()) if m]
    if isinstance(moves, Iterable):
        tokens: List[str] = []
        for move in moves:
            tokens.extend(split_moves(str(move)))
        return tokens
    return split_moves(str(moves))


def _optional_int(value) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(float(value))
    except (OverflowError, TypeError, ValueError):
        return None


def generate_puzzle_id(fen: str, index: int) -> str:
    """Derive an identifier from the position hash, a timestamp and the batch index."""
    digest = hashlib.sha1(fen.encode("utf-8")).hexdigest()[:8]
    return f"imported_{digest}_{int(time.time() * 1000)}_{index}"


def resolve_identifier(puzzle_id: str, taken: Set[str], max_retries: int) -> Optional[str]:
    """
    Append ``_dup`` until the id is free, giving up after ``max_retries``.

    Returns None when no free id was found.
    """
    candidate = puzzle_id
    for _ in range(max_retries + 1):
        if candidate not in taken:
            return candidate
        candidate += DUPLICATE_SUFFIX
    return None


class PuzzleNormalizer:
    """Validates PuzzleRecords against the oracle and canonicalizes them."""

    def __init__(self, oracle: Optional[ChessOracle] = None, max_id_retries: int = 10,
                 validate_moves: bool = True):
        """
        Args:
            oracle: Chess rule oracle (a default one is created if None)
            max_id_retries: Bound on ``_dup`` suffix attempts per identifier
            validate_moves: Replay solutions through the oracle. Disabling this
                only skips the replay; the position is always checked.
        """
        self.oracle = oracle or ChessOracle()
        self.max_id_retries = max_id_retries
        self.validate_moves = validate_moves

    def check_position(self, record: PuzzleRecord) -> str:
        if record.fen is None or not str(record.fen).strip():
            raise MissingRequiredFieldError("missing position (FEN)")
        fen = str(record.fen).strip()
        if not self.oracle.load_position(fen):
            raise InvalidPositionError(f"invalid FEN position '{fen}'")
        return fen

    def check_solution(self, fen: str, record: PuzzleRecord) -> List[str]:
        moves = split_moves(record.moves)
        if not moves:
            raise EmptySolutionError("puzzle must have solution moves")

        if self.validate_moves:
            results = self.oracle.replay(fen, moves)
            for ply, result in enumerate(results, start=1):
                if not result.ok:
                    raise IllegalMoveError(ply, moves[ply - 1], result.error)
        return moves

    def normalize(self, record: PuzzleRecord, index: int = 1,
                  taken_ids: Optional[Set[str]] = None,
                  notices: Optional[List[DuplicateIdentifier]] = None) -> Puzzle:
        """
        Validate and canonicalize a single record.

        Args:
            record: Raw puzzle record
            index: 1-based position of the record in its batch
            taken_ids: Identifiers already used in this batch; updated in place
            notices: Receives a DuplicateIdentifier entry when the id is renamed

        Raises:
            RejectionError: if the record fails validation
        """
        fen = self.check_position(record)
        moves = self.check_solution(fen, record)

        rating = parse_rating(record.rating)
        if rating is None:
            rating = parse_rating(record.difficulty)
        difficulty = rating_to_tier(rating) if rating is not None else normalize_difficulty(record.difficulty)

        themes = normalize_themes(record.themes)
        category = normalize_category(record.category, themes)

        taken = taken_ids if taken_ids is not None else set()
        original_id = str(record.puzzle_id).strip() if record.puzzle_id not in (None, "") else ""
        base_id = original_id or generate_puzzle_id(fen, index)
        puzzle_id = resolve_identifier(base_id, taken, self.max_id_retries)
        if puzzle_id is None:
            raise RejectionError(f"could not assign a unique id for '{base_id}'")
        if puzzle_id != base_id:
            logger.debug(f"Renamed duplicate id {base_id} -> {puzzle_id}")
            if notices is not None:
                notices.append(DuplicateIdentifier(base_id, puzzle_id, index))
        taken.add(puzzle_id)

        extras = record.extras or {}
        return Puzzle(
            puzzle_id=puzzle_id,
            fen=fen,
            moves=moves,
            difficulty=difficulty,
            category=category,
            themes=themes,
            rating=rating,
            description=(str(record.description).strip() if record.description else "") or DEFAULT_DESCRIPTION,
            source=str(record.source or ""),
            rating_deviation=_optional_int(extras.get("rating_deviation")),
            popularity=_optional_int(extras.get("popularity")),
            nb_plays=_optional_int(extras.get("nb_plays")),
            game_url=str(extras.get("game_url") or ""),
            opening_tags=str(extras.get("opening_tags") or ""),
            imported=True,
            import_date=datetime.now(timezone.utc),
        )

    def normalize_all(self, records: Iterable[PuzzleRecord],
                      taken_ids: Optional[Set[str]] = None) -> ImportResult:
        """Normalize a batch, collecting rejections instead of raising."""
        result = ImportResult()
        taken = set(taken_ids) if taken_ids else set()

        for index, record in enumerate(records, start=1):
            try:
                puzzle = self.normalize(record, index, taken, result.notices)
            except RejectionError as e:
                rejection = Rejection(index=index, code=e.code, message=e.message)
                result.rejections.append(rejection)
                result.errors.append(str(rejection))
                continue
            result.puzzles.append(puzzle)

        logger.info(f"Normalized {result.count} puzzles, rejected {len(result.rejections)}")
        return result
