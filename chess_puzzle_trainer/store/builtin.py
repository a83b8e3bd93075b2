"""
Built-in puzzle set.

A small curated collection seeded into the read-only built-in partition so a
fresh store always has something to serve. Every solution replays legally
from its position.
"""

from __future__ import annotations

from typing import List

from ..core.models import Puzzle
from ..core.vocabulary import rating_to_tier

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


def _puzzle(puzzle_id: str, fen: str, moves: str, rating: int, category: str,
            themes: str, description: str) -> Puzzle:
    return Puzzle(
        puzzle_id=puzzle_id,
        fen=fen,
        moves=moves.split(),
        difficulty=rating_to_tier(rating),
        category=category,
        themes=themes.split(),
        rating=rating,
        description=description,
        source="builtin",
    )


def builtin_puzzles() -> List[Puzzle]:
    """Return fresh copies of the built-in puzzles."""
    return [
        # Mates
        _puzzle(
            "builtin_scholars_mate",
            "r1bqkb1r/pppp1ppp/2n2n2/4p2Q/2B1P3/8/PPPP1PPP/RNB1K1NR w KQkq - 4 4",
            "Qxf7#", 900, "tactics", "mate mateIn1 attackingF2F7 opening",
            "Scholar's mate: the queen and bishop hit f7",
        ),
        _puzzle(
            "builtin_back_rank",
            "6k1/5ppp/8/8/8/8/5PPP/4R1K1 w - - 0 1",
            "Re8#", 1000, "tactics", "mate mateIn1 backRankMate",
            "Back rank mate: the king is boxed in by its own pawns",
        ),
        _puzzle(
            "builtin_fools_mate",
            "rnbqkbnr/pppp1ppp/8/4p3/6P1/5P2/PPPPP2P/RNBQKBNR b KQkq - 0 2",
            "Qh4#", 800, "tactics", "mate mateIn1 opening exposedKing",
            "Fool's mate: punish the weakened kingside",
        ),
        _puzzle(
            "builtin_queen_mate",
            "7k/8/6K1/8/8/8/8/1Q6 w - - 0 1",
            "Qb8#", 1100, "endgame", "mate mateIn1 queenEndgame",
            "King and queen against king: deliver mate",
        ),

        # Endgames
        _puzzle(
            "builtin_promotion",
            "8/4P1k1/8/8/8/8/8/4K3 w - - 0 1",
            "e7e8q", 950, "endgame", "promotion pawnEndgame advancedPawn",
            "Promote the pawn",
        ),

        # Openings
        _puzzle(
            "builtin_italian_opening",
            START_FEN,
            "e4 e5 Nf3 Nc6 Bc4", 1200, "opening", "opening",
            "Play the Italian Game",
        ),

        # Motifs
        _puzzle(
            "builtin_knight_fork",
            "r3k3/8/8/3N4/8/8/8/6K1 w - - 0 1",
            "Nc7+ Kd7 Nxa8", 1600, "tactics", "fork material",
            "Fork the king and rook",
        ),
        _puzzle(
            "builtin_skewer",
            "K7/8/8/8/3k3q/8/8/R7 w - - 0 1",
            "Ra4+ Ke5 Rxh4", 1850, "tactics", "skewer material",
            "Check the king and win the queen behind it",
        ),
    ]
