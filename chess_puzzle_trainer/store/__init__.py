"""
Puzzle storage.

The SQLite-backed PuzzleStore, the built-in puzzle set it is seeded with, and
the PuzzleLibrary facade used for loading and exporting small payloads.
"""

from .database import AddReport, PuzzleStore, StoreStats
from .builtin import builtin_puzzles
from .library import PuzzleLibrary, ValidationReport

__all__ = [
    "AddReport",
    "PuzzleStore",
    "StoreStats",
    "builtin_puzzles",
    "PuzzleLibrary",
    "ValidationReport",
]
