#!/usr/bin/env python3
"""
Chess Puzzle Trainer - Main Entry Point

Runs the command-line interface from the chess_puzzle_trainer package without
installing it.

Quick Examples:
    # Inspect a Lichess dump
    python main.py analyze lichess_db_puzzle.csv.zst

    # Import up to 50,000 puzzles rated 1000-2000
    python main.py import lichess_db_puzzle.csv.zst --min-rating 1000 --max-rating 2000 --max-count 50000

    # Lint and load a PGN puzzle file
    python main.py lint puzzles.pgn
    python main.py load puzzles.pgn

Installation:
    pip install -e .
"""

import sys
from pathlib import Path

# Add the project root to the Python path so we can import our package
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

try:
    from chess_puzzle_trainer.cli import main
except ImportError as e:
    print(f"Error importing chess_puzzle_trainer package: {e}", file=sys.stderr)
    print("\nInstall the package in development mode:", file=sys.stderr)
    print("  pip install -e .", file=sys.stderr)
    sys.exit(1)

if __name__ == "__main__":
    sys.exit(main())
