"""
Unit tests for the streaming bulk importer.
"""

import bz2
import gzip
import os
import tempfile
import threading
import unittest

import zstandard

from chess_puzzle_trainer.core.errors import DumpReadError, StoreWriteError
from chess_puzzle_trainer.core.models import Config, Partition, PoolMode
from chess_puzzle_trainer.importer import BulkImporter, ImportReport
from chess_puzzle_trainer.importer.bulk import MAX_REPORTED_ERRORS
from chess_puzzle_trainer.store import PuzzleStore
from tests import START_FEN, async_test

HEADER = "PuzzleId,FEN,Moves,Rating,RatingDeviation,Popularity,NbPlays,Themes,GameUrl,OpeningTags"


def make_row(index, rating=1500, themes="fork short", moves="e2e4 e7e5"):
    return [f"p{index:05d}", START_FEN, moves, str(rating), "75", "90", "100", themes,
            f"https://lichess.org/game{index}", ""]


def make_dump(rows, header=True):
    lines = [HEADER] if header else []
    lines.extend(",".join(row) for row in rows)
    return "\n".join(lines) + "\n"


class RecordingStore(PuzzleStore):
    """Store that remembers the size of every batch it is handed."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.batch_sizes = []

    async def insert_many(self, puzzles, partition=Partition.CUSTOM):
        self.batch_sizes.append(len(puzzles))
        return await super().insert_many(puzzles, partition)


class FailingStore(RecordingStore):
    """Store whose second batch write fails."""

    async def insert_many(self, puzzles, partition=Partition.CUSTOM):
        if len(self.batch_sizes) == 1:
            self.batch_sizes.append(len(puzzles))
            raise StoreWriteError("disk full", len(puzzles))
        return await super().insert_many(puzzles, partition)


class BulkImportTestCase(unittest.TestCase):

    store_class = RecordingStore

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.store = self.store_class(os.path.join(self.temp_dir.name, "puzzles.db"))
        self.config = Config(batch_size=1000, progress_interval=1000)
        self.importer = BulkImporter(self.store, self.config)

    def tearDown(self):
        self.store.close()
        self.temp_dir.cleanup()

    def write_file(self, name, data):
        path = os.path.join(self.temp_dir.name, name)
        with open(path, "wb") as f:
            f.write(data)
        return path


class ImportRowsTests(BulkImportTestCase):

    @async_test
    async def test_batches_are_bounded(self):
        rows = [make_row(i) for i in range(2500)]
        report = await self.importer.import_rows(rows)

        self.assertEqual(self.store.batch_sizes, [1000, 1000, 500])
        self.assertEqual(report.batches, 3)
        self.assertEqual(report.processed, 2500)
        self.assertEqual(report.imported, 2500)
        self.assertEqual(report.inserted, 2500)
        self.assertEqual(await self.store.count_matching(pool=PoolMode.CUSTOM), 2500)

    @async_test
    async def test_rows_read_off_event_loop(self):
        loop_thread = threading.get_ident()
        reader_threads = set()

        def rows():
            for i in range(1500):
                reader_threads.add(threading.get_ident())
                yield make_row(i)

        report = await self.importer.import_rows(rows())
        self.assertEqual(report.imported, 1500)
        self.assertEqual(self.store.batch_sizes, [1000, 500])
        self.assertNotIn(loop_thread, reader_threads)

    @async_test
    async def test_rating_and_theme_filters(self):
        rows = [
            make_row(1, rating=1000),
            make_row(2, rating=1500),
            make_row(3, rating=1500, themes="endgame"),
            make_row(4, rating=2500),
            make_row(5, rating=1900, themes="Fork"),
        ]
        report = await self.importer.import_rows(rows, min_rating=1200, max_rating=2000, themes=["fork"])

        self.assertEqual(report.processed, 5)
        self.assertEqual(report.imported, 2)
        self.assertEqual(report.skipped, 3)
        ids = await self.store.partition_ids(Partition.CUSTOM)
        self.assertEqual(ids, {"p00002", "p00005"})

    @async_test
    async def test_max_count_stops_early(self):
        rows = [make_row(i) for i in range(50)]
        report = await self.importer.import_rows(rows, max_count=10)
        self.assertEqual(report.imported, 10)
        self.assertEqual(report.processed, 10)

    @async_test
    async def test_rejected_rows_counted(self):
        rows = [
            make_row(1),
            make_row(2, moves="e2e5"),
            ["short", "row"],
            make_row(3),
        ]
        report = await self.importer.import_rows(rows)

        self.assertEqual(report.imported, 2)
        self.assertEqual(report.rejected, 2)
        self.assertTrue(report.errors[0].startswith("Row 2: IllegalMove"))
        self.assertTrue(report.errors[1].startswith("Row 3: MissingRequiredField"))

    @async_test
    async def test_error_list_is_capped(self):
        rows = [make_row(i, moves="e2e5") for i in range(MAX_REPORTED_ERRORS + 20)]
        report = await self.importer.import_rows(rows)
        self.assertEqual(report.rejected, MAX_REPORTED_ERRORS + 20)
        self.assertEqual(len(report.errors), MAX_REPORTED_ERRORS)

    @async_test
    async def test_header_rows_skipped(self):
        rows = [HEADER.split(","), make_row(1)]
        report = await self.importer.import_rows(rows)
        self.assertEqual(report.processed, 1)
        self.assertEqual(report.imported, 1)

    @async_test
    async def test_existing_rows_counted_as_duplicates(self):
        rows = [make_row(i) for i in range(5)]
        await self.importer.import_rows(rows)
        report = await self.importer.import_rows(rows)
        self.assertEqual(report.imported, 5)
        self.assertEqual(report.inserted, 0)
        self.assertEqual(report.duplicates, 5)

    @async_test
    async def test_progress_callback(self):
        seen = []
        rows = [make_row(i) for i in range(2500)]
        await self.importer.import_rows(rows, progress=lambda r: seen.append(r.imported))
        self.assertEqual(seen, [1000, 2000])

    @async_test
    async def test_builtin_partition(self):
        await self.importer.import_rows([make_row(1)], partition="builtin")
        self.assertEqual(await self.store.partition_ids(Partition.BUILTIN), {"p00001"})
        self.assertEqual(await self.store.partition_ids(Partition.CUSTOM), set())


class FailedBatchTests(BulkImportTestCase):

    store_class = FailingStore

    @async_test
    async def test_import_continues_after_failed_batch(self):
        rows = [make_row(i) for i in range(2500)]
        report = await self.importer.import_rows(rows)

        self.assertEqual(report.batches, 3)
        self.assertEqual(report.failed_batches, 1)
        self.assertEqual(report.lost, 1000)
        self.assertEqual(report.inserted, 1500)
        self.assertEqual(report.duplicates, 0)
        self.assertIn("Batch 2", report.errors[0])
        self.assertEqual(await self.store.count_matching(), 1500)


class DumpFileTests(BulkImportTestCase):

    def setUp(self):
        super().setUp()
        self.text = make_dump([make_row(i, rating=1000 + i * 100) for i in range(10)])

    @async_test
    async def test_zstandard_dump(self):
        data = zstandard.ZstdCompressor().compress(self.text.encode("utf-8"))
        path = self.write_file("puzzles.csv.zst", data)

        report = await self.importer.import_dump(path)
        self.assertEqual(report.imported, 10)
        stored = await self.store.get_puzzle("p00003")
        self.assertEqual(stored.rating, 1300)
        self.assertEqual(stored.game_url, "https://lichess.org/game3")

    @async_test
    async def test_gzip_dump(self):
        path = self.write_file("puzzles.csv.gz", gzip.compress(self.text.encode("utf-8")))
        report = await self.importer.import_dump(path, max_rating=1400)
        self.assertEqual(report.imported, 5)
        self.assertEqual(report.skipped, 5)

    @async_test
    async def test_bzip2_dump(self):
        path = self.write_file("puzzles.csv.bz2", bz2.compress(self.text.encode("utf-8")))
        report = await self.importer.import_dump(path)
        self.assertEqual(report.imported, 10)

    @async_test
    async def test_plain_dump(self):
        path = self.write_file("puzzles.csv", self.text.encode("utf-8"))
        report = await self.importer.import_dump(path)
        self.assertIsInstance(report, ImportReport)
        self.assertEqual(report.inserted, 10)

    @async_test
    async def test_missing_file(self):
        with self.assertRaises(DumpReadError):
            await self.importer.import_dump(os.path.join(self.temp_dir.name, "missing.csv.zst"))

    @async_test
    async def test_corrupt_zstandard(self):
        path = self.write_file("broken.csv.zst", b"definitely not zstandard")
        with self.assertRaises(DumpReadError):
            await self.importer.import_dump(path)

    @async_test
    async def test_truncated_gzip_keeps_committed_batches(self):
        text = make_dump([make_row(i) for i in range(3000)])
        data = gzip.compress(text.encode("utf-8"))
        path = self.write_file("truncated.csv.gz", data[:-40])

        with self.assertRaises(DumpReadError) as ctx:
            await self.importer.import_dump(path)

        report = ctx.exception.report
        self.assertIsNotNone(report)
        self.assertGreater(report.processed, 0)
        self.assertGreater(report.inserted, 0)
        self.assertTrue(report.errors[-1].startswith("Failed to read dump"))
        self.assertEqual(await self.store.count_matching(pool=PoolMode.CUSTOM), report.inserted)

    @async_test
    async def test_truncated_bzip2(self):
        data = bz2.compress(self.text.encode("utf-8"))
        path = self.write_file("truncated.csv.bz2", data[:-10])
        with self.assertRaises(DumpReadError) as ctx:
            await self.importer.import_dump(path)
        self.assertEqual(ctx.exception.report.processed, 0)

    @async_test
    async def test_corrupt_gzip(self):
        path = self.write_file("broken.csv.gz", b"definitely not gzip data")
        with self.assertRaises(DumpReadError):
            await self.importer.import_dump(path)


class AnalyzeTests(BulkImportTestCase):

    @async_test
    async def test_analyze_dump(self):
        rows = [make_row(i, rating=1000 + i * 100, themes="fork short" if i % 2 else "pin") for i in range(10)]
        path = self.write_file("puzzles.csv", make_dump(rows).encode("utf-8"))

        analysis = await self.importer.analyze_dump(path, sample_rows=8)

        self.assertTrue(analysis.has_header)
        self.assertEqual(analysis.headers[0], "PuzzleId")
        self.assertEqual(analysis.rows_scanned, 8)
        self.assertEqual(len(analysis.samples), 5)
        self.assertEqual(analysis.min_rating, 1000)
        self.assertEqual(analysis.max_rating, 1700)
        self.assertEqual(analysis.avg_rating, 1350.0)
        self.assertEqual(analysis.top_themes(1), [("pin", 4)])
        self.assertEqual(analysis.theme_counts["fork"], 4)
        self.assertEqual(await self.store.count_matching(), 0)

    @async_test
    async def test_analyze_without_header(self):
        path = self.write_file("puzzles.csv.gz", gzip.compress(make_dump([make_row(1)], header=False).encode("utf-8")))
        analysis = await self.importer.analyze_dump(path)
        self.assertFalse(analysis.has_header)
        self.assertEqual(analysis.headers[1], "FEN")
        self.assertEqual(analysis.rows_scanned, 1)


if __name__ == "__main__":
    unittest.main()
