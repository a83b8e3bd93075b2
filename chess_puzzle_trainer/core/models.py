"""
Core data models for the puzzle ingestion pipeline.

This module defines the raw and validated puzzle representations, the result
objects returned by parsers and the normalizer, store partitions, and the
runtime configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .errors import DuplicateIdentifier, Rejection
from .vocabulary import DEFAULT_DESCRIPTION


class Partition(Enum):
    """Store partitions. Puzzle ids are unique within a partition."""

    BUILTIN = "builtin"
    CUSTOM = "custom"


class PoolMode(Enum):
    """Which partitions a query draws from."""

    ALL = "all"
    BUILTIN = "builtin"
    CUSTOM = "custom"

    @property
    def partitions(self) -> Tuple[Partition, ...]:
        if self is PoolMode.BUILTIN:
            return (Partition.BUILTIN,)
        if self is PoolMode.CUSTOM:
            return (Partition.CUSTOM,)
        return (Partition.BUILTIN, Partition.CUSTOM)


# Key synonyms accepted on puzzle-shaped mappings (JSON objects, dict rows)
RECORD_KEY_SYNONYMS = {
    "fen": ("fen", "position", "board", "FEN"),
    "moves": ("moves", "solution", "answer", "Moves"),
    "rating": ("rating", "Rating", "elo"),
    "difficulty": ("difficulty", "level", "Difficulty"),
    "category": ("category", "type", "Category"),
    "themes": ("themes", "theme", "tags", "Themes"),
    "description": ("description", "comment", "instruction", "Description"),
    "puzzle_id": ("id", "puzzle_id", "puzzleId", "PuzzleId"),
    "source": ("source", "event", "Event"),
}

EXTRA_KEYS = {
    "rating_deviation": ("rating_deviation", "RatingDeviation"),
    "popularity": ("popularity", "Popularity"),
    "nb_plays": ("nb_plays", "NbPlays"),
    "game_url": ("game_url", "gameUrl", "GameUrl"),
    "opening_tags": ("opening_tags", "OpeningTags"),
}


def _first_present(data: Mapping[str, Any], keys) -> Any:
    for key in keys:
        if key in data and data[key] not in (None, ""):
            return data[key]
    return None


@dataclass
class PuzzleRecord:
    """A raw, unvalidated puzzle as produced by a format parser."""

    fen: Optional[str] = None
    moves: Union[List[str], str, None] = None
    rating: Any = None
    difficulty: Any = None
    category: Optional[str] = None
    themes: Any = None
    description: Optional[str] = None
    puzzle_id: Optional[str] = None
    source: str = ""
    extras: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PuzzleRecord:
        """Build a record from a puzzle-shaped mapping, honouring key synonyms."""
        values = {name: _first_present(data, keys) for name, keys in RECORD_KEY_SYNONYMS.items()}
        extras = {}
        for name, keys in EXTRA_KEYS.items():
            value = _first_present(data, keys)
            if value is not None:
                extras[name] = value

        puzzle_id = values["puzzle_id"]
        return cls(
            fen=values["fen"],
            moves=values["moves"],
            rating=values["rating"],
            difficulty=values["difficulty"],
            category=values["category"],
            themes=values["themes"],
            description=values["description"],
            puzzle_id=str(puzzle_id) if puzzle_id is not None else None,
            source=str(values["source"] or ""),
            extras=extras,
        )


@dataclass
class Puzzle:
    """A validated puzzle in canonical form."""

    puzzle_id: str
    fen: str
    moves: List[str]
    difficulty: int                                 # Tier 1-3
    category: str
    themes: List[str] = field(default_factory=list)
    rating: Optional[int] = None                    # Numeric rating when known
    description: str = DEFAULT_DESCRIPTION
    source: str = ""

    # Lichess export metadata
    rating_deviation: Optional[int] = None
    popularity: Optional[int] = None
    nb_plays: Optional[int] = None
    game_url: str = ""
    opening_tags: str = ""

    # Provenance
    imported: bool = False
    import_date: Optional[datetime] = None
    active: bool = True

    def __post_init__(self):
        """Validate structural invariants after initialization."""
        if not self.puzzle_id:
            raise ValueError("Puzzle id cannot be empty")
        if not self.moves:
            raise ValueError("Puzzle must have at least one solution move")

    @property
    def themes_text(self) -> str:
        """Space separated theme field as stored."""
        return " ".join(self.themes)

    @property
    def moves_text(self) -> str:
        return " ".join(self.moves)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        data = {
            "id": self.puzzle_id,
            "fen": self.fen,
            "moves": list(self.moves),
            "rating": self.rating,
            "difficulty": self.difficulty,
            "category": self.category,
            "themes": list(self.themes),
            "description": self.description,
            "source": self.source,
            "imported": self.imported,
            "importDate": self.import_date.isoformat() if self.import_date else None,
            "active": self.active,
        }
        for name in ("rating_deviation", "popularity", "nb_plays"):
            if getattr(self, name) is not None:
                data[name] = getattr(self, name)
        for name in ("game_url", "opening_tags"):
            if getattr(self, name):
                data[name] = getattr(self, name)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Puzzle:
        """Rebuild a puzzle from ``to_dict`` output (no validation)."""
        import_date = data.get("importDate") or data.get("import_date")
        if isinstance(import_date, str):
            import_date = datetime.fromisoformat(import_date)
        moves = data.get("moves") or []
        if isinstance(moves, str):
            moves = moves.split()
        themes = data.get("themes") or []
        if isinstance(themes, str):
            themes = themes.split()
        return cls(
            puzzle_id=str(data.get("id") or data.get("puzzle_id")),
            fen=data["fen"],
            moves=list(moves),
            difficulty=int(data.get("difficulty") or 1),
            category=data.get("category") or "tactics",
            themes=list(themes),
            rating=data.get("rating"),
            description=data.get("description") or DEFAULT_DESCRIPTION,
            source=data.get("source") or "",
            rating_deviation=data.get("rating_deviation"),
            popularity=data.get("popularity"),
            nb_plays=data.get("nb_plays"),
            game_url=data.get("game_url") or "",
            opening_tags=data.get("opening_tags") or "",
            imported=bool(data.get("imported", False)),
            import_date=import_date,
            active=bool(data.get("active", True)),
        )


@dataclass
class ParseResult:
    """Records produced by a format parser plus per-record parse errors."""

    records: List[PuzzleRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    fatal: bool = False     # The payload as a whole could not be parsed

    @property
    def success(self) -> bool:
        return not self.fatal and len(self.records) > 0


@dataclass
class ImportResult:
    """Outcome of parsing and normalizing one payload."""

    puzzles: List[Puzzle] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    rejections: List[Rejection] = field(default_factory=list)
    notices: List[DuplicateIdentifier] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.puzzles)

    @property
    def success(self) -> bool:
        """True when at least one puzzle was accepted."""
        return self.count > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "puzzles": [p.to_dict() for p in self.puzzles],
            "errors": list(self.errors),
            "count": self.count,
        }


@dataclass
class Config:
    """Configuration settings for the puzzle pipeline."""

    # Store settings
    db_path: str = field(default_factory=lambda: os.getenv("PUZZLE_DB_PATH", "data/puzzles.db"))
    seed_builtin: bool = True

    # Bulk import settings
    batch_size: int = field(default_factory=lambda: int(os.getenv("PUZZLE_BATCH_SIZE", "1000")))
    progress_interval: int = 5000
    validate_moves: bool = True
    min_rating: Optional[int] = None
    max_rating: Optional[int] = None
    max_count: Optional[int] = None
    themes: Optional[List[str]] = None
    partition: str = Partition.CUSTOM.value

    # Analysis settings
    analyze_rows: int = 1000
    sample_rows: int = 5

    # Identifier collision handling
    max_id_retries: int = 10

    # Retrieval defaults
    query_limit: int = 50

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.batch_size < 1:
            raise ValueError("Batch size must be positive")
        if self.min_rating is not None and self.max_rating is not None and self.min_rating > self.max_rating:
            raise ValueError("min_rating cannot exceed max_rating")
        Partition(self.partition)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            field.name: getattr(self, field.name)
            for field in self.__dataclass_fields__.values()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Config:
        """Create config from dictionary."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
