#!/usr/bin/env python3
"""
Setup script for Chess Puzzle Trainer.

Puzzle ingestion pipeline: parses puzzles from several source formats,
validates them against the chess rules and loads them into a SQLite store.
"""

from pathlib import Path
from setuptools import setup, find_packages

# Read the contents of README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8') if (this_directory / "README.md").exists() else ""

# Read version from package
version_file = this_directory / "chess_puzzle_trainer" / "__init__.py"
version = "0.3.0"  # Default version
if version_file.exists():
    with open(version_file, encoding='utf-8') as f:
        for line in f:
            if line.startswith('__version__'):
                version = line.split('=')[1].strip().strip('"').strip("'")
                break

setup(
    name="chess-puzzle-trainer",
    version=version,
    description="Import, validate and query chess puzzles from JSON, CSV, PGN and Lichess dumps",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Chess Puzzle Trainer Team",

    # Package discovery
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",

    # Dependencies
    install_requires=[
        "python-chess>=1.999",
        "rich>=13.0.0",
        "zstandard>=0.21.0",
    ],

    # Optional dependencies
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },

    # Entry points for CLI
    entry_points={
        "console_scripts": [
            "chess-puzzle-trainer=chess_puzzle_trainer.cli:main",
        ],
    },

    # Classifiers
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Games/Entertainment :: Board Games",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
        "Environment :: Console",
        "Framework :: AsyncIO",
    ],

    keywords=[
        "chess",
        "puzzles",
        "tactics",
        "lichess",
        "pgn",
        "fen",
        "import",
    ],

    zip_safe=False,
)
