"""
Unit tests for the command-line interface.

Each test drives ``main`` against a database in a temporary directory and
checks the exit code and what ended up in the store.
"""

import asyncio
import gzip
import io
import json
import os
import tempfile
import unittest
from unittest.mock import patch

from rich.console import Console

from chess_puzzle_trainer.cli import build_config, create_argument_parser, main
from chess_puzzle_trainer.core.models import Partition, PoolMode
from chess_puzzle_trainer.store import PuzzleStore, builtin_puzzles
from tests import START_FEN

PGN_TEXT = """[Event "Back rank"]
[FEN "6k1/5ppp/8/8/8/8/5PPP/4R1K1 w - - 0 1"]
[PuzzleId "pgn1"]
[Themes "backRankMate mateIn1"]

1. Re8# 1-0
"""

BROKEN_PGN = """[Event "Broken"]
[FEN "6k1/5ppp/8/8/8/8/5PPP/4R1K1 w - - 0 1"]

1. Rf8
"""


class ArgumentParserTests(unittest.TestCase):

    def setUp(self):
        self.parser = create_argument_parser()

    def test_import_options(self):
        args = self.parser.parse_args([
            "--db", "x.db", "import", "dump.csv.zst", "--min-rating", "1200",
            "--themes", "fork,pin", "--batch-size", "500", "--no-validate",
        ])
        config = build_config(args)
        self.assertEqual(config.db_path, "x.db")
        self.assertEqual(config.batch_size, 500)
        self.assertFalse(config.validate_moves)
        self.assertEqual(args.min_rating, 1200)

    def test_format_option(self):
        args = self.parser.parse_args(["load", "p.pgn", "--format", "pgn"])
        self.assertEqual(args.fmt, "pgn")
        args = self.parser.parse_args(["lint", "p.txt"])
        self.assertEqual(args.fmt, "auto")

    def test_command_required(self):
        with patch("sys.stderr"):
            with self.assertRaises(SystemExit):
                self.parser.parse_args([])


class CommandTests(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "puzzles.db")
        self.output = io.StringIO()
        self.console = patch("chess_puzzle_trainer.cli.console", Console(file=self.output, width=120))
        self.console.start()

    def tearDown(self):
        self.console.stop()
        self.temp_dir.cleanup()

    def run_cli(self, *argv):
        return main(["--db", self.db_path, *argv])

    def write_file(self, name, text):
        path = os.path.join(self.temp_dir.name, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    def partition_ids(self, partition):
        store = PuzzleStore(self.db_path)
        try:
            return asyncio.run(store.partition_ids(partition))
        finally:
            store.close()

    def test_stats_seeds_builtin(self):
        self.assertEqual(self.run_cli("stats"), 0)
        self.assertEqual(len(self.partition_ids(Partition.BUILTIN)), len(builtin_puzzles()))

    def test_no_seed(self):
        self.assertEqual(self.run_cli("--no-seed", "stats"), 0)
        self.assertEqual(self.partition_ids(Partition.BUILTIN), set())

    def test_load(self):
        path = self.write_file("puzzles.pgn", PGN_TEXT)
        self.assertEqual(self.run_cli("load", path), 0)
        self.assertEqual(self.partition_ids(Partition.CUSTOM), {"pgn1"})

    def test_load_nothing_accepted(self):
        path = self.write_file("broken.pgn", BROKEN_PGN)
        self.assertEqual(self.run_cli("load", path), 1)
        self.assertEqual(self.partition_ids(Partition.CUSTOM), set())

    def test_lint(self):
        self.assertEqual(self.run_cli("lint", self.write_file("ok.pgn", PGN_TEXT)), 0)
        self.assertEqual(self.run_cli("lint", self.write_file("bad.pgn", PGN_TEXT + "\n" + BROKEN_PGN)), 1)
        self.assertEqual(self.partition_ids(Partition.CUSTOM), set())

    def test_missing_file(self):
        self.assertEqual(self.run_cli("load", os.path.join(self.temp_dir.name, "nope.pgn")), 1)

    def test_export_to_file(self):
        self.run_cli("load", self.write_file("puzzles.pgn", PGN_TEXT))
        output = os.path.join(self.temp_dir.name, "out", "custom.json")

        self.assertEqual(self.run_cli("export", "--pool", "custom", "-o", output), 0)
        with open(output, encoding="utf-8") as f:
            data = json.load(f)
        self.assertEqual([item["id"] for item in data], ["pgn1"])

    def test_export_csv_to_stdout(self):
        with patch("chess_puzzle_trainer.cli.sys.stdout", new_callable=io.StringIO) as stdout:
            self.assertEqual(self.run_cli("export", "--format", "csv", "--pool", "builtin"), 0)
        text = stdout.getvalue()
        self.assertTrue(text.startswith('"id","fen"'))
        self.assertEqual(len(text.splitlines()), len(builtin_puzzles()) + 1)

    def test_validate(self):
        self.assertEqual(self.run_cli("validate"), 0)
        self.run_cli("load", self.write_file("shadow.json", json.dumps(
            [{"id": "builtin_back_rank", "fen": START_FEN, "moves": "e4"}]
        )))
        self.assertEqual(self.run_cli("validate"), 1)
        self.assertEqual(self.run_cli("validate", "--pool", "custom"), 0)

    def test_search_and_random(self):
        self.assertEqual(self.run_cli("search", "fork"), 0)
        self.assertEqual(self.run_cli("random", "--count", "3", "--max-rating", "1000"), 0)
        self.assertEqual(self.run_cli("random", "--min-rating", "3000"), 1)

    def test_import_and_analyze(self):
        rows = ["PuzzleId,FEN,Moves,Rating,RatingDeviation,Popularity,NbPlays,Themes,GameUrl,OpeningTags"]
        rows += [f"q{i},{START_FEN},e2e4 e7e5,{1000 + i},75,90,100,fork,," for i in range(20)]
        path = self.write_file("dump.csv", "\n".join(rows) + "\n")

        self.assertEqual(self.run_cli("analyze", path, "--rows", "5"), 0)
        self.assertEqual(self.partition_ids(Partition.CUSTOM), set())

        self.assertEqual(self.run_cli("import", path, "--max-count", "12", "--batch-size", "5"), 0)
        self.assertEqual(len(self.partition_ids(Partition.CUSTOM)), 12)
        output = self.output.getvalue()
        self.assertIn("Import Summary", output)
        self.assertIn("Puzzle Store (custom)", output)
        self.assertIn("Partition: custom", output)

    def test_truncated_dump_reports_partial_import(self):
        rows = ["PuzzleId,FEN,Moves,Rating,RatingDeviation,Popularity,NbPlays,Themes,GameUrl,OpeningTags"]
        rows += [f"t{i},{START_FEN},e2e4 e7e5,1500,75,90,100,fork,," for i in range(3000)]
        data = gzip.compress(("\n".join(rows) + "\n").encode("utf-8"))
        path = os.path.join(self.temp_dir.name, "dump.csv.gz")
        with open(path, "wb") as f:
            f.write(data[:-40])

        self.assertEqual(self.run_cli("--no-seed", "import", path, "--batch-size", "500"), 1)
        output = self.output.getvalue()
        self.assertIn("Import Stopped", output)
        self.assertIn("Failed to read dump", output)
        self.assertGreater(len(self.partition_ids(Partition.CUSTOM)), 0)

    def test_import_missing_dump(self):
        self.assertEqual(self.run_cli("import", os.path.join(self.temp_dir.name, "missing.csv.zst")), 1)

    def test_invalid_configuration(self):
        self.assertEqual(self.run_cli("import", "x.csv", "--batch-size", "-1"), 2)

    def test_pool_counts_after_load(self):
        self.run_cli("load", self.write_file("puzzles.pgn", PGN_TEXT))
        store = PuzzleStore(self.db_path)
        try:
            count = asyncio.run(store.count_matching(pool=PoolMode.ALL))
        finally:
            store.close()
        self.assertEqual(count, len(builtin_puzzles()) + 1)


if __name__ == "__main__":
    unittest.main()
