"""JSON puzzle arrays (or a single puzzle object)."""

from __future__ import annotations

import json
import logging
from typing import Any, List

from ..core.errors import MissingRequiredFieldError
from ..core.models import ParseResult, PuzzleRecord
from .base import FormatParser, PuzzleFormat, register_parser

logger = logging.getLogger(__name__)


@register_parser(PuzzleFormat.JSON)
class JsonParser(FormatParser):
    """Passes each puzzle-shaped object through to the normalizer as-is."""

    def parse(self, text: str) -> ParseResult:
        result = ParseResult()
        try:
            data = json.loads(text)
        except ValueError as e:
            result.errors.append(f"JSON parsing error: {e}")
            result.fatal = True
            return result

        items: List[Any] = data if isinstance(data, list) else [data]
        for index, item in enumerate(items, start=1):
            if not isinstance(item, dict):
                error = MissingRequiredFieldError(f"expected a puzzle object, got {type(item).__name__}")
                result.errors.append(f"Puzzle {index}: {error}")
                continue
            result.records.append(PuzzleRecord.from_mapping(item))

        logger.debug(f"Parsed {len(result.records)} JSON records")
        return result
