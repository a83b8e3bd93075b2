"""
Chess rule oracle.

Thin adapter over python-chess used by the normalizer to check that a position
loads and that every solution ply applies in sequence. Move tokens may be SAN
(``Nf6+``, ``O-O``, ``e8=Q``) or UCI (``e2e4``, ``e7e8q``); different source
formats use different notations.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import chess

logger = logging.getLogger(__name__)

UCI_PATTERN = re.compile(r"^[a-h][1-8][a-h][1-8][qrbn]?$")

# Trailing annotation glyphs ("!", "?!", "!!") are not part of the move
ANNOTATION_PATTERN = re.compile(r"[!?]+$")


@dataclass
class MoveResult:
    """Outcome of applying a single move token to a position."""

    ok: bool
    fen: Optional[str] = None       # Resulting position (when ok)
    san: Optional[str] = None
    uci: Optional[str] = None
    error: str = ""


class ChessOracle:
    """
    Validates positions and move legality.

    The oracle never mutates boards handed to it by callers; ``apply_move``
    works on a copy so a failed move leaves the caller's position intact.
    """

    def __init__(self, require_valid_status: bool = True):
        """
        Args:
            require_valid_status: Reject positions python-chess loads but flags
                as invalid (missing kings, side not to move in check, ...)
        """
        self.require_valid_status = require_valid_status

    def board_from_fen(self, fen: str) -> chess.Board:
        """Load a FEN into a board, raising ValueError when it is not usable."""
        if not isinstance(fen, str) or not fen.strip():
            raise ValueError("empty position")

        board = chess.Board(fen.strip())
        if self.require_valid_status and not board.is_valid():
            raise ValueError(f"illegal position ({board.status()!r})")
        return board

    def load_position(self, fen: str) -> bool:
        """Return True when the FEN parses and represents a usable position."""
        try:
            self.board_from_fen(fen)
        except ValueError as e:
            logger.debug(f"Rejected position {fen!r}: {e}")
            return False
        return True

    def parse_move(self, board: chess.Board, token: str) -> chess.Move:
        """
        Resolve a move token against a board.

        Raises:
            ValueError: if the token is malformed, ambiguous or illegal
        """
        move_str = ANNOTATION_PATTERN.sub("", token.strip())
        if not move_str:
            raise ValueError("empty move token")

        if UCI_PATTERN.match(move_str):
            move = chess.Move.from_uci(move_str)
            if move in board.legal_moves:
                return move
            # A handful of SAN tokens also look like UCI; fall through to SAN

        move = board.parse_san(move_str)
        # parse_san maps "--", "0000" and "Z0" to the null move
        if not move or move not in board.legal_moves:
            raise ValueError(f"not a legal move: {move_str}")
        return move

    def apply_move(self, position: Union[str, chess.Board], token: str) -> MoveResult:
        """
        Apply a move token to a position.

        Args:
            position: FEN string or board (the board is not modified)
            token: Move in SAN or UCI notation

        Returns:
            MoveResult with the resulting FEN on success
        """
        try:
            board = self.board_from_fen(position) if isinstance(position, str) else position.copy()
        except ValueError as e:
            return MoveResult(ok=False, error=f"invalid position: {e}")

        try:
            move = self.parse_move(board, token)
        except ValueError as e:
            return MoveResult(ok=False, error=str(e) or "illegal move")

        san = board.san(move)
        board.push(move)
        return MoveResult(ok=True, fen=board.fen(), san=san, uci=move.uci())

    def replay(self, fen: str, moves: Sequence[str]) -> List[MoveResult]:
        """
        Replay a move sequence from a position, stopping at the first failure.

        The returned list has one entry per attempted ply; the last entry is
        the failing one when replay stopped early.
        """
        results: List[MoveResult] = []
        try:
            board = self.board_from_fen(fen)
        except ValueError as e:
            return [MoveResult(ok=False, error=f"invalid position: {e}")]

        for token in moves:
            try:
                move = self.parse_move(board, token)
            except ValueError as e:
                results.append(MoveResult(ok=False, error=str(e) or "illegal move"))
                break

            san = board.san(move)
            board.push(move)
            results.append(MoveResult(ok=True, fen=board.fen(), san=san, uci=move.uci()))

        return results
