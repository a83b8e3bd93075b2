"""
Chess Puzzle Trainer - puzzle ingestion and normalization pipeline.

This package parses chess puzzles from heterogeneous sources (JSON, CSV,
PGN-like tag blocks, the Lichess puzzle export and mate-in-N collections),
validates every position and solution against the chess rules, maps free-form
metadata onto a controlled vocabulary, and loads the result into a queryable
SQLite store.
"""

__version__ = "0.3.0"
__author__ = "Chess Puzzle Trainer Team"
__license__ = "MIT"

# Core imports
from .core.models import Config, Puzzle, PuzzleRecord
from .core.normalizer import PuzzleNormalizer
from .core.oracle import ChessOracle
from .formats import detect_format, export_puzzles, parse_text
from .importer import BulkImporter
from .store import PuzzleLibrary, PuzzleStore
from .cli import main

__all__ = [
    "Config",
    "Puzzle",
    "PuzzleRecord",
    "PuzzleNormalizer",
    "ChessOracle",
    "detect_format",
    "export_puzzles",
    "parse_text",
    "BulkImporter",
    "PuzzleLibrary",
    "PuzzleStore",
    "main",
]
