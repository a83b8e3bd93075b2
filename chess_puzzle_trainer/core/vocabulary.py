"""
Controlled vocabulary for puzzle metadata.

Free-text difficulty, category and theme values from the various source
formats are mapped onto the fixed scales defined here. All mappings are
idempotent: normalizing an already normalized value returns it unchanged.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Union


class Category(Enum):
    """Coarse puzzle buckets."""

    TACTICS = "tactics"
    POSITIONAL = "positional"
    ENDGAME = "endgame"
    OPENING = "opening"


DEFAULT_CATEGORY = Category.TACTICS
DEFAULT_THEMES = ["material"]
DEFAULT_DESCRIPTION = "Find the best move"

MIN_TIER = 1
MAX_TIER = 3

# Numbers at or above this are ratings, below it tiers
RATING_FLOOR = 100

# Upper bounds (exclusive) of the rating bands for tiers 1 and 2
TIER_BANDS = (1500, 1800)

# Canonical theme tags. Lichess names keep their camelCase spelling.
THEME_VOCABULARY = [
    # Motifs
    "fork", "pin", "skewer", "discoveredAttack", "doubleCheck", "sacrifice",
    "deflection", "attraction", "decoy", "clearance", "interference",
    "intermezzo", "xRayAttack", "zugzwang", "quietMove", "defensiveMove",
    "capturingDefender", "hangingPiece", "trappedPiece", "exposedKing",
    "kingsideAttack", "queensideAttack", "attackingF2F7", "advancedPawn",
    "promotion", "underPromotion", "enPassant", "castling",
    # Mates
    "mate", "mateIn1", "mateIn2", "mateIn3", "mateIn4", "mateIn5",
    "backRankMate", "smotheredMate", "anastasiaMate", "arabianMate",
    "bodenMate", "doubleBishopMate", "dovetailMate", "hookMate",
    # Phases and endgame types
    "opening", "middlegame", "endgame", "pawnEndgame", "rookEndgame",
    "bishopEndgame", "knightEndgame", "queenEndgame", "queenRookEndgame",
    # Evaluation and length
    "advantage", "crushing", "equality", "oneMove", "short", "long", "veryLong",
    # Source
    "master", "masterVsMaster", "superGM",
    # Trainer tags
    "checkmate", "defense", "material", "tactics", "positional", "trap",
]

_VOCABULARY_LOOKUP = {theme.lower(): theme for theme in THEME_VOCABULARY}

# Keyword substring table for tokens outside the vocabulary, checked in order
THEME_KEYWORDS = [
    (("fork",), "fork"),
    (("pin",), "pin"),
    (("skewer",), "skewer"),
    (("sacrifice", "sac"), "sacrifice"),
    (("mate",), "checkmate"),
    (("promotion",), "promotion"),
    (("defend",), "defense"),
]

DIFFICULTY_WORDS = [
    (("easy", "beginner"), 1),
    (("medium", "intermediate"), 2),
    (("hard", "advanced", "expert"), 3),
]

CATEGORY_KEYWORDS = [
    (("tactic",), Category.TACTICS),
    (("position", "strateg"), Category.POSITIONAL),
    (("endgame", "ending"), Category.ENDGAME),
    (("opening",), Category.OPENING),
]

# Order matters when deriving a category from themes: phase tags first
THEME_CATEGORY_KEYWORDS = [
    (("endgame", "ending"), Category.ENDGAME),
    (("opening",), Category.OPENING),
    (("positional", "strategic"), Category.POSITIONAL),
]

_SPLIT_PATTERN = re.compile(r"[,\s]+")
_NON_LETTERS = re.compile(r"[^a-z]")


def rating_to_tier(rating: Union[int, float]) -> int:
    """Band a numeric rating into a 1-3 tier."""
    if rating < TIER_BANDS[0]:
        return 1
    if rating < TIER_BANDS[1]:
        return 2
    return 3


def clamp_tier(value: Union[int, float]) -> int:
    return min(MAX_TIER, max(MIN_TIER, int(round(value))))


def _as_number(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (OverflowError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_rating(value) -> Optional[int]:
    """Return an integer rating when ``value`` is a rating-sized number."""
    number = _as_number(value)
    if number is None or number < RATING_FLOOR:
        return None
    return int(round(number))


def normalize_difficulty(value) -> int:
    """
    Map a numeric or textual difficulty onto the 1-3 tier scale.

    Numbers at or above RATING_FLOOR are treated as ratings and banded,
    smaller numbers are rounded and clamped, words are matched by substring.
    Anything unrecognized falls back to tier 1.
    """
    number = _as_number(value)
    if number is not None:
        if number >= RATING_FLOOR:
            return rating_to_tier(number)
        return clamp_tier(number)

    if value is None:
        return MIN_TIER

    text = str(value).lower()
    for words, tier in DIFFICULTY_WORDS:
        if any(word in text for word in words):
            return tier
    return MIN_TIER


def normalize_category(value, themes: Sequence[str] = ()) -> str:
    """Map a free-text category onto the four buckets, falling back to themes."""
    if value:
        text = str(value).lower()
        for keywords, category in CATEGORY_KEYWORDS:
            if any(keyword in text for keyword in keywords):
                return category.value
    return category_from_themes(themes)


def category_from_themes(themes: Sequence[str]) -> str:
    if not themes:
        return DEFAULT_CATEGORY.value

    joined = " ".join(themes).lower()
    for keywords, category in THEME_CATEGORY_KEYWORDS:
        if any(keyword in joined for keyword in keywords):
            return category.value
    return DEFAULT_CATEGORY.value


def split_themes(value) -> List[str]:
    """Split a theme field (string or sequence) into raw tokens."""
    if value is None:
        return []
    if isinstance(value, str):
        return [token for token in _SPLIT_PATTERN.split(value) if token]
    if isinstance(value, Iterable):
        tokens: List[str] = []
        for item in value:
            tokens.extend(split_themes(str(item)))
        return tokens
    return split_themes(str(value))


def normalize_theme(token: str) -> str:
    """Normalize one theme token. Returns "" for tokens with no letters."""
    known = _VOCABULARY_LOOKUP.get(token.strip().lower())
    if known:
        return known

    cleaned = _NON_LETTERS.sub("", token.lower())
    if not cleaned:
        return ""

    known = _VOCABULARY_LOOKUP.get(cleaned)
    if known:
        return known

    for keywords, theme in THEME_KEYWORDS:
        if any(keyword in cleaned for keyword in keywords):
            return theme
    return cleaned


def normalize_themes(value) -> List[str]:
    """Normalize a theme field into an ordered, de-duplicated tag list."""
    themes: List[str] = []
    for token in split_themes(value):
        theme = normalize_theme(token)
        if theme and theme not in themes:
            themes.append(theme)
    return themes or list(DEFAULT_THEMES)


def theme_tokens(value) -> List[str]:
    """Whole-word tokens of a stored theme field, without normalization."""
    return split_themes(value)
