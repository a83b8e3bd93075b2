"""
Unit tests for the puzzle exporters.

Each exported payload is read back with the matching parser and normalizer;
the core fields must survive unchanged.
"""

import csv
import io
import json
import unittest
from datetime import date

from chess_puzzle_trainer.core.errors import FormatDetectionError
from chess_puzzle_trainer.core.normalizer import PuzzleNormalizer
from chess_puzzle_trainer.formats import PuzzleFormat, export_puzzles, export_tag_blocks, parse_text
from chess_puzzle_trainer.store.builtin import builtin_puzzles

CORE_FIELDS = ("puzzle_id", "fen", "moves", "difficulty", "category", "themes", "description", "rating")


def core(puzzle):
    return {name: getattr(puzzle, name) for name in CORE_FIELDS}


class ExportRoundTripTests(unittest.TestCase):

    def setUp(self):
        self.puzzles = builtin_puzzles()
        self.puzzles[0].description = 'Quotes "inside", commas, and \\ backslashes'
        self.normalizer = PuzzleNormalizer()

    def reimport(self, text, fmt):
        parsed = parse_text(text, fmt)
        self.assertEqual(parsed.errors, [])
        result = self.normalizer.normalize_all(parsed.records)
        self.assertEqual(result.errors, [])
        return result.puzzles

    def assertRoundTrip(self, fmt):
        text = export_puzzles(self.puzzles, fmt)
        restored = self.reimport(text, fmt)
        self.assertEqual([core(p) for p in restored], [core(p) for p in self.puzzles])

    def test_json_round_trip(self):
        self.assertRoundTrip(PuzzleFormat.JSON)

    def test_tag_block_round_trip(self):
        self.assertRoundTrip(PuzzleFormat.TAG_BLOCK)

    def test_csv_round_trip(self):
        self.assertRoundTrip(PuzzleFormat.CSV)

    def test_tag_block_keeps_line_breaks(self):
        self.puzzles[1].description = "First line\nSecond  line\twith tab"
        text = export_tag_blocks(self.puzzles)
        self.assertIn('[Description "First line\\nSecond  line\\twith tab"]', text)
        restored = self.reimport(text, PuzzleFormat.TAG_BLOCK)
        self.assertEqual(restored[1].description, "First line\nSecond  line\twith tab")

    def test_csv_keeps_line_breaks(self):
        self.puzzles[1].description = "First line\nSecond  line"
        self.assertRoundTrip(PuzzleFormat.CSV)

    def test_format_names(self):
        self.assertEqual(export_puzzles(self.puzzles, "pgn"), export_puzzles(self.puzzles, PuzzleFormat.TAG_BLOCK))
        with self.assertRaises(FormatDetectionError):
            export_puzzles(self.puzzles, "lichess")


class ExportLayoutTests(unittest.TestCase):

    def setUp(self):
        self.puzzles = builtin_puzzles()[:2]

    def test_json_array(self):
        data = json.loads(export_puzzles(self.puzzles, "json"))
        self.assertEqual(len(data), 2)
        self.assertEqual(data[0]["id"], self.puzzles[0].puzzle_id)
        self.assertIn("importDate", data[0])

    def test_csv_header_and_quoting(self):
        text = export_puzzles(self.puzzles, "csv")
        lines = text.splitlines()
        self.assertEqual(lines[0], '"id","fen","moves","difficulty","category","themes","description"')
        rows = list(csv.reader(io.StringIO(text)))
        self.assertEqual(rows[1][3], str(self.puzzles[0].rating))

    def test_tag_block_headers(self):
        text = export_tag_blocks(self.puzzles, export_date=date(2024, 3, 1))
        self.assertIn('[Date "2024.03.01"]', text)
        self.assertIn(f'[FEN "{self.puzzles[0].fen}"]', text)
        self.assertIn(f'[Rating "{self.puzzles[0].rating}"]', text)
        self.assertEqual(text.count("[Event "), 2)

    def test_empty(self):
        self.assertEqual(export_puzzles([], "json"), "[]")
        self.assertEqual(export_puzzles([], "pgn"), "")


if __name__ == "__main__":
    unittest.main()
