"""
Error taxonomy for the puzzle ingestion pipeline.

Per-record problems (bad position, empty or illegal solution, missing column)
are raised inside the normalizer and parsers as ``RejectionError`` subclasses,
then collected into result objects so a batch never aborts on a single record.
Structural failures (unreadable dump, store unavailable) propagate to the
caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class PuzzleError(Exception):
    """Base class for all puzzle pipeline errors."""
    pass


class FormatDetectionError(PuzzleError):
    """Raised when auto-detection cannot classify an input payload."""
    pass


class DumpReadError(PuzzleError):
    """
    Raised when a dump file cannot be opened or decompressed.

    When the failure happens mid-stream, ``report`` holds the counters of the
    rows handled before it.
    """

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report


class RejectionError(PuzzleError):
    """A single record was rejected. ``code`` names the rejection reason."""

    code = "Rejected"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class MissingRequiredFieldError(RejectionError):
    code = "MissingRequiredField"


class InvalidPositionError(RejectionError):
    code = "InvalidPosition"


class EmptySolutionError(RejectionError):
    code = "EmptySolution"


class IllegalMoveError(RejectionError):
    """A solution ply could not be applied. ``ply`` is 1-based."""

    code = "IllegalMove"

    def __init__(self, ply: int, move: str, reason: str = ""):
        detail = f"ply {ply} ({move}) is illegal"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)
        self.ply = ply
        self.move = move


class StoreError(PuzzleError):
    """Base class for storage layer errors."""
    pass


class StoreWriteError(StoreError):
    """A batch write failed; nothing from that batch was committed."""

    def __init__(self, message: str, batch_size: int = 0):
        super().__init__(message)
        self.batch_size = batch_size


class ReadOnlyPartitionError(StoreError):
    """Raised on attempts to modify the built-in partition."""
    pass


@dataclass
class Rejection:
    """Structured form of a rejected record, kept alongside the message list."""

    index: int          # 1-based record position within its batch
    code: str
    message: str

    def __str__(self) -> str:
        return f"Puzzle {self.index}: {self.code}: {self.message}"


@dataclass
class DuplicateIdentifier:
    """Notice that an identifier collided and was renamed."""

    original_id: str
    assigned_id: str
    index: Optional[int] = None

    def __str__(self) -> str:
        where = f"Puzzle {self.index}: " if self.index is not None else ""
        return f"{where}DuplicateIdentifier: '{self.original_id}' renamed to '{self.assigned_id}'"
