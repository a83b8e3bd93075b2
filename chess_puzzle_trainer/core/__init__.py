"""
Core package for the chess puzzle pipeline.

This package contains the data models, error taxonomy, controlled vocabulary,
the chess rule oracle and the normalizer every imported puzzle passes through.
"""

from .models import (
    Config,
    ImportResult,
    ParseResult,
    Partition,
    PoolMode,
    Puzzle,
    PuzzleRecord,
)

from .errors import (
    DumpReadError,
    DuplicateIdentifier,
    EmptySolutionError,
    FormatDetectionError,
    IllegalMoveError,
    InvalidPositionError,
    MissingRequiredFieldError,
    PuzzleError,
    ReadOnlyPartitionError,
    Rejection,
    RejectionError,
    StoreError,
    StoreWriteError,
)

from .oracle import ChessOracle, MoveResult
from .normalizer import PuzzleNormalizer, split_moves

__all__ = [
    # Data models
    "Config",
    "ImportResult",
    "ParseResult",
    "Partition",
    "PoolMode",
    "Puzzle",
    "PuzzleRecord",

    # Errors
    "DumpReadError",
    "DuplicateIdentifier",
    "EmptySolutionError",
    "FormatDetectionError",
    "IllegalMoveError",
    "InvalidPositionError",
    "MissingRequiredFieldError",
    "PuzzleError",
    "ReadOnlyPartitionError",
    "Rejection",
    "RejectionError",
    "StoreError",
    "StoreWriteError",

    # Validation
    "ChessOracle",
    "MoveResult",
    "PuzzleNormalizer",
    "split_moves",
]
