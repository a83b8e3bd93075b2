"""
Unit tests for the chess rule oracle.
"""

import unittest

import chess

from chess_puzzle_trainer.core.oracle import ChessOracle
from tests import START_FEN


class ChessOracleTests(unittest.TestCase):
    """Test position loading and move application."""

    def setUp(self):
        self.oracle = ChessOracle()

    def test_load_position(self):
        self.assertTrue(self.oracle.load_position(START_FEN))
        self.assertFalse(self.oracle.load_position("not-a-fen"))
        self.assertFalse(self.oracle.load_position(""))

    def test_position_without_kings_rejected(self):
        self.assertFalse(self.oracle.load_position("8/8/8/8/8/8/8/8 w - - 0 1"))
        lenient = ChessOracle(require_valid_status=False)
        self.assertTrue(lenient.load_position("8/8/8/8/8/8/8/8 w - - 0 1"))

    def test_apply_san_and_uci(self):
        san = self.oracle.apply_move(START_FEN, "e4")
        uci = self.oracle.apply_move(START_FEN, "e2e4")

        self.assertTrue(san.ok)
        self.assertTrue(uci.ok)
        self.assertEqual(san.fen, uci.fen)
        self.assertEqual(uci.san, "e4")
        self.assertEqual(san.uci, "e2e4")

    def test_annotations_ignored(self):
        result = self.oracle.apply_move(START_FEN, "Nf3!?")
        self.assertTrue(result.ok)
        self.assertEqual(result.uci, "g1f3")

    def test_illegal_move(self):
        result = self.oracle.apply_move(START_FEN, "e5")
        self.assertFalse(result.ok)
        self.assertIsNone(result.fen)
        self.assertTrue(result.error)

    def test_null_move_tokens_rejected(self):
        for token in ("--", "0000", "Z0"):
            result = self.oracle.apply_move(START_FEN, token)
            self.assertFalse(result.ok, token)
            self.assertIsNone(result.fen)

        results = self.oracle.replay(START_FEN, ["e4", "--", "e5"])
        self.assertEqual(len(results), 2)
        self.assertFalse(results[1].ok)

    def test_promotion_notations(self):
        fen = "8/4P1k1/8/8/8/8/8/4K3 w - - 0 1"
        self.assertTrue(self.oracle.apply_move(fen, "e8=Q").ok)
        self.assertTrue(self.oracle.apply_move(fen, "e7e8q").ok)

    def test_castling(self):
        fen = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"
        result = self.oracle.apply_move(fen, "O-O")
        self.assertTrue(result.ok)
        self.assertEqual(result.uci, "e1g1")

    def test_board_not_mutated(self):
        board = chess.Board(START_FEN)
        self.oracle.apply_move(board, "e4")
        self.assertEqual(board.fen(), START_FEN)

    def test_replay_stops_at_first_failure(self):
        results = self.oracle.replay(START_FEN, ["e4", "e4", "Nf3"])
        self.assertEqual(len(results), 2)
        self.assertTrue(results[0].ok)
        self.assertFalse(results[1].ok)

    def test_replay_full_sequence(self):
        results = self.oracle.replay(START_FEN, ["e4", "e5", "Nf3", "Nc6", "Bc4"])
        self.assertEqual(len(results), 5)
        self.assertTrue(all(r.ok for r in results))


if __name__ == "__main__":
    unittest.main()
