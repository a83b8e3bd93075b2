"""
Test package for Chess Puzzle Trainer.

This package contains unit tests for the oracle, vocabulary, normalizer,
format parsers and exporters, the puzzle store, the bulk importer and the CLI.
"""

import asyncio
import functools

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


def async_test(test_func):
    """Decorator running an async test method to completion."""
    @functools.wraps(test_func)
    def wrapper(self, *args, **kwargs):
        return asyncio.run(test_func(self, *args, **kwargs))
    return wrapper
