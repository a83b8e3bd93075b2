#!/usr/bin/env python3
"""
Example configuration file for Chess Puzzle Trainer.

This file shows how to configure the puzzle pipeline for a few common import
scenarios. Copy it to config.py and modify as needed, or use it as a
reference for command-line arguments and environment variables.
"""

import os
from chess_puzzle_trainer.core.models import Config

# =============================================================================
# Storage Configuration
# =============================================================================

# Database file; the CLI --db flag overrides it
PUZZLE_DB_PATH = os.getenv("PUZZLE_DB_PATH", "data/puzzles.db")

# Lichess puzzle dump, available from https://database.lichess.org/#puzzles
LICHESS_DUMP = os.getenv("LICHESS_DUMP", "lichess_db_puzzle.csv.zst")

# =============================================================================
# Import Configurations
# =============================================================================

# Quick trial import: a small, fully validated sample
QUICK_CONFIG = Config(
    db_path=PUZZLE_DB_PATH,
    max_count=10_000,
    batch_size=500,
)

# Club training set: mid-rated tactical puzzles
CLUB_CONFIG = Config(
    db_path=PUZZLE_DB_PATH,
    min_rating=1200,
    max_rating=1800,
    themes=["fork", "pin", "skewer", "discoveredAttack", "mateIn2"],
    max_count=100_000,
)

# Endgame study set
ENDGAME_CONFIG = Config(
    db_path=PUZZLE_DB_PATH,
    themes=["endgame", "rookEndgame", "pawnEndgame", "queenEndgame"],
    max_count=50_000,
)

# Full dump import; move replay is skipped because Lichess solutions are
# already engine checked
FULL_CONFIG = Config(
    db_path=PUZZLE_DB_PATH,
    batch_size=5000,
    progress_interval=50_000,
    validate_moves=False,
)

# =============================================================================
# Rating Windows
# =============================================================================

RATING_WINDOWS = {
    "beginner": (400, 1200),
    "intermediate": (1200, 1800),
    "advanced": (1800, 2400),
    "expert": (2400, 3200),
}

# =============================================================================
# Usage Examples
# =============================================================================

if __name__ == "__main__":
    print("Chess Puzzle Trainer - Configuration Examples")
    print("=" * 50)

    print(f"Database: {PUZZLE_DB_PATH}")
    print(f"Lichess dump: {LICHESS_DUMP}")

    print("\nAvailable configurations:")
    print("- QUICK_CONFIG: Small validated sample")
    print("- CLUB_CONFIG: Mid-rated tactics")
    print("- ENDGAME_CONFIG: Endgame themes only")
    print("- FULL_CONFIG: Whole dump, no move replay")

    print("\nTo use a configuration:")
    print("from config import CLUB_CONFIG")
    print("importer = BulkImporter(PuzzleStore(CLUB_CONFIG.db_path), CLUB_CONFIG)")
