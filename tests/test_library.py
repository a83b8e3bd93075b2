"""
Unit tests for the PuzzleLibrary facade: load, lint, validate and export.
"""

import json
import os
import tempfile
import unittest

from chess_puzzle_trainer.core.models import Config, Partition, PoolMode, Puzzle
from chess_puzzle_trainer.store import PuzzleLibrary, PuzzleStore
from tests import START_FEN, async_test

PGN_TEXT = """[Event "Back rank"]
[FEN "6k1/5ppp/8/8/8/8/5PPP/4R1K1 w - - 0 1"]
[PuzzleId "pgn1"]
[Rating "1100"]

1. Re8# 1-0

[Event "Broken"]
[FEN "6k1/5ppp/8/8/8/8/5PPP/4R1K1 w - - 0 1"]

1. Rf8
"""


class LibraryTests(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.store = PuzzleStore(os.path.join(self.temp_dir.name, "puzzles.db"))
        self.library = PuzzleLibrary(self.store, Config())

    def tearDown(self):
        self.store.close()
        self.temp_dir.cleanup()

    def test_lint_reports_every_rejection(self):
        result = self.library.lint(PGN_TEXT)
        self.assertEqual(result.count, 1)
        self.assertEqual(len(result.errors), 1)
        self.assertIn("Puzzle 2: IllegalMove: ply 1 (Rf8)", result.errors[0])

    def test_lint_unrecognized_payload(self):
        result = self.library.lint("nothing to see here")
        self.assertFalse(result.success)
        self.assertEqual(len(result.errors), 1)

    def test_lint_parse_errors_first(self):
        text = json.dumps([{"fen": "not-a-fen", "moves": "e4"}, 5])
        result = self.library.lint(text)
        self.assertEqual(len(result.errors), 2)
        self.assertTrue(result.errors[0].startswith("Puzzle 2: MissingRequiredField"))
        self.assertTrue(result.errors[1].startswith("Puzzle 1: InvalidPosition"))

    @async_test
    async def test_lint_writes_nothing(self):
        self.library.lint(PGN_TEXT)
        self.assertEqual(await self.store.count_matching(), 0)

    @async_test
    async def test_import_text_into_custom(self):
        result = await self.library.import_text(PGN_TEXT)
        self.assertTrue(result.success)

        stored = await self.store.get_puzzle("pgn1", pool=PoolMode.CUSTOM)
        self.assertEqual(stored.rating, 1100)
        self.assertEqual(stored.moves, ["Re8#"])
        self.assertEqual(await self.store.count_matching(pool=PoolMode.BUILTIN), 0)

    @async_test
    async def test_import_twice_renames(self):
        await self.library.import_text(PGN_TEXT)
        result = await self.library.import_text(PGN_TEXT)

        self.assertEqual(len(result.notices), 1)
        self.assertEqual(result.notices[0].assigned_id, "pgn1_dup")
        self.assertEqual(result.puzzles[0].puzzle_id, "pgn1_dup")
        self.assertEqual(await self.store.count_matching(pool=PoolMode.CUSTOM), 2)

    @async_test
    async def test_import_file_uses_extension(self):
        path = os.path.join(self.temp_dir.name, "puzzles.csv")
        with open(path, "w", encoding="utf-8") as f:
            f.write(f'id,fen,moves,difficulty\ncsv1,{START_FEN},"e4 e5",hard\n')

        result = await self.library.import_file(path)
        self.assertEqual(result.count, 1)
        stored = await self.store.get_puzzle("csv1")
        self.assertEqual(stored.difficulty, 3)
        self.assertIsNone(stored.rating)

    @async_test
    async def test_validate_finds_bad_rows_and_shadowed_ids(self):
        await self.store.seed_builtin()
        good = Puzzle(puzzle_id="builtin_back_rank", fen=START_FEN, moves=["e4"], difficulty=1, category="tactics")
        bad = Puzzle(puzzle_id="bad", fen=START_FEN, moves=["e4", "e4"], difficulty=1, category="tactics")
        await self.store.insert_many([good, bad], Partition.CUSTOM)

        report = await self.library.validate()
        self.assertFalse(report.valid)
        self.assertEqual(len(report.rejections), 1)
        self.assertEqual(report.rejections[0].code, "IllegalMove")
        self.assertEqual(report.duplicate_ids, {"builtin_back_rank": ["builtin", "custom"]})

        report = await self.library.validate(PoolMode.BUILTIN)
        self.assertTrue(report.valid)

    @async_test
    async def test_export_and_statistics(self):
        await self.library.import_text(PGN_TEXT)
        data = json.loads(await self.library.export("json", PoolMode.CUSTOM))
        self.assertEqual([item["id"] for item in data], ["pgn1"])

        stats = await self.library.statistics(PoolMode.CUSTOM)
        self.assertEqual(stats.total, 1)
        self.assertEqual(stats.min_rating, 1100)

    @async_test
    async def test_filter(self):
        await self.store.seed_builtin()
        endgames = await self.library.filter(category="endgame")
        self.assertTrue(endgames)
        self.assertTrue(all(p.category == "endgame" for p in endgames))


if __name__ == "__main__":
    unittest.main()
