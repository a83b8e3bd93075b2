"""
Puzzle store backed by SQLite.

This module provides the persistent repository for validated puzzles. Puzzles
live in one of two partitions (built-in and custom) with ids unique per
partition. Themes are additionally stored one token per row so theme queries
match whole tokens only.

Features:
- Idempotent inserts (``INSERT OR IGNORE``) and batch-atomic bulk writes
- Rating range, theme, random and free-text retrieval over a chosen pool
- Soft disabling of puzzles without deleting them
- Custom partition editing with bounded id-collision retry
- Aggregate statistics

All public methods are coroutines; the blocking SQLite work runs in a worker
thread through ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..core.errors import DuplicateIdentifier, ReadOnlyPartitionError, StoreError, StoreWriteError
from ..core.models import Partition, PoolMode, Puzzle
from ..core.normalizer import resolve_identifier
from ..core.vocabulary import DEFAULT_DESCRIPTION

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

SCHEMA = """
    CREATE TABLE IF NOT EXISTS puzzles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        partition_name TEXT NOT NULL,
        puzzle_id TEXT NOT NULL,
        fen TEXT NOT NULL,
        moves TEXT NOT NULL,
        rating INTEGER,
        difficulty INTEGER NOT NULL,
        category TEXT NOT NULL,
        themes TEXT NOT NULL DEFAULT '',
        description TEXT,
        source TEXT,
        rating_deviation INTEGER,
        popularity INTEGER,
        nb_plays INTEGER,
        game_url TEXT,
        opening_tags TEXT,
        imported BOOLEAN DEFAULT 0,
        import_date TEXT,
        active BOOLEAN DEFAULT 1,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (partition_name, puzzle_id)
    );

    CREATE TABLE IF NOT EXISTS puzzle_themes (
        puzzle_row INTEGER NOT NULL REFERENCES puzzles (id) ON DELETE CASCADE,
        theme TEXT NOT NULL COLLATE NOCASE
    );

    CREATE INDEX IF NOT EXISTS idx_puzzles_rating ON puzzles (rating);
    CREATE INDEX IF NOT EXISTS idx_puzzles_rating_active ON puzzles (rating, active);
    CREATE INDEX IF NOT EXISTS idx_puzzle_themes_theme ON puzzle_themes (theme);
    CREATE INDEX IF NOT EXISTS idx_puzzle_themes_row ON puzzle_themes (puzzle_row);
"""

COLUMNS = [
    "puzzle_id", "fen", "moves", "rating", "difficulty", "category", "themes",
    "description", "source", "rating_deviation", "popularity", "nb_plays",
    "game_url", "opening_tags", "imported", "import_date", "active",
]

# Fields update_custom accepts
EDITABLE_FIELDS = {
    "fen", "moves", "rating", "difficulty", "category", "themes", "description",
    "source", "active",
}

PoolLike = Union[PoolMode, str]


@dataclass
class StoreStats:
    """Aggregate statistics over a pool."""

    total: int = 0
    active: int = 0
    min_rating: Optional[int] = None
    max_rating: Optional[int] = None
    avg_rating: Optional[float] = None
    theme_count: int = 0                          # Distinct theme tokens
    by_partition: Dict[str, int] = field(default_factory=dict)
    by_category: Dict[str, int] = field(default_factory=dict)
    by_tier: Dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "active": self.active,
            "min_rating": self.min_rating,
            "max_rating": self.max_rating,
            "avg_rating": self.avg_rating,
            "theme_count": self.theme_count,
            "by_partition": dict(self.by_partition),
            "by_category": dict(self.by_category),
            "by_tier": dict(self.by_tier),
        }


@dataclass
class AddReport:
    """Outcome of adding puzzles to the custom partition."""

    added: List[Puzzle] = field(default_factory=list)
    renamed: List[DuplicateIdentifier] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)   # ids that exhausted the retry bound
    inserted: int = 0                                  # rows actually written

    @property
    def count(self) -> int:
        return self.inserted


def _pool(pool: PoolLike) -> PoolMode:
    return pool if isinstance(pool, PoolMode) else PoolMode(pool)


def _partition(partition: Union[Partition, str]) -> Partition:
    return partition if isinstance(partition, Partition) else Partition(partition)


def _pool_clause(pool: PoolLike, alias: str = "p") -> Tuple[str, List[str]]:
    partitions = [p.value for p in _pool(pool).partitions]
    placeholders = ", ".join("?" for _ in partitions)
    return f"{alias}.partition_name IN ({placeholders})", partitions


def _theme_clause(themes: Sequence[str], alias: str = "p") -> Tuple[str, List[str]]:
    placeholders = ", ".join("?" for _ in themes)
    clause = (
        f"EXISTS (SELECT 1 FROM puzzle_themes t WHERE t.puzzle_row = {alias}.id "
        f"AND t.theme IN ({placeholders}))"
    )
    return clause, list(themes)


def _puzzle_values(puzzle: Puzzle) -> Tuple:
    return (
        puzzle.puzzle_id,
        puzzle.fen,
        puzzle.moves_text,
        puzzle.rating,
        puzzle.difficulty,
        puzzle.category,
        puzzle.themes_text,
        puzzle.description,
        puzzle.source,
        puzzle.rating_deviation,
        puzzle.popularity,
        puzzle.nb_plays,
        puzzle.game_url,
        puzzle.opening_tags,
        puzzle.imported,
        puzzle.import_date.isoformat() if puzzle.import_date else None,
        puzzle.active,
    )


def _row_to_puzzle(row: sqlite3.Row) -> Puzzle:
    import_date = row["import_date"]
    return Puzzle(
        puzzle_id=row["puzzle_id"],
        fen=row["fen"],
        moves=row["moves"].split(),
        difficulty=row["difficulty"],
        category=row["category"],
        themes=(row["themes"] or "").split(),
        rating=row["rating"],
        description=row["description"] or DEFAULT_DESCRIPTION,
        source=row["source"] or "",
        rating_deviation=row["rating_deviation"],
        popularity=row["popularity"],
        nb_plays=row["nb_plays"],
        game_url=row["game_url"] or "",
        opening_tags=row["opening_tags"] or "",
        imported=bool(row["imported"]),
        import_date=datetime.fromisoformat(import_date) if import_date else None,
        active=bool(row["active"]),
    )


class PuzzleStore:
    """SQLite repository of validated puzzles."""

    def __init__(self, db_path: Union[str, Path] = MEMORY_DB, max_id_retries: int = 10):
        """
        Open (and create if needed) the store.

        Args:
            db_path: Database file, or ``":memory:"``
            max_id_retries: Bound on ``_dup`` attempts in ``add_custom``
        """
        self.db_path = str(db_path)
        self.max_id_retries = max_id_retries
        if self.db_path != MEMORY_DB:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._lock:
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def _insert_row(self, puzzle: Puzzle, partition: Partition) -> bool:
        placeholders = ", ".join("?" for _ in range(len(COLUMNS) + 1))
        cursor = self._conn.execute(
            f"INSERT OR IGNORE INTO puzzles (partition_name, {', '.join(COLUMNS)}) VALUES ({placeholders})",
            (partition.value,) + _puzzle_values(puzzle),
        )
        if cursor.rowcount != 1:
            return False
        self._conn.executemany(
            "INSERT INTO puzzle_themes (puzzle_row, theme) VALUES (?, ?)",
            [(cursor.lastrowid, theme) for theme in dict.fromkeys(puzzle.themes)],
        )
        return True

    def _insert_many_sync(self, puzzles: List[Puzzle], partition: Partition) -> int:
        with self._lock:
            try:
                self._conn.execute("BEGIN")
                inserted = sum(1 for puzzle in puzzles if self._insert_row(puzzle, partition))
                self._conn.execute("COMMIT")
            except (sqlite3.Error, OverflowError) as e:
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                raise StoreWriteError(f"Batch write of {len(puzzles)} puzzles failed: {e}", len(puzzles))
        return inserted

    async def insert_many(self, puzzles: Iterable[Puzzle],
                          partition: Union[Partition, str] = Partition.CUSTOM) -> int:
        """
        Insert a batch in one transaction, skipping ids already present.

        Returns:
            Number of newly inserted rows

        Raises:
            StoreWriteError: if the write failed; nothing from the batch is kept
        """
        batch = list(puzzles)
        if not batch:
            return 0
        inserted = await asyncio.to_thread(self._insert_many_sync, batch, _partition(partition))
        logger.debug(f"Inserted {inserted}/{len(batch)} puzzles into {_partition(partition).value}")
        return inserted

    async def insert_if_absent(self, puzzle: Puzzle,
                               partition: Union[Partition, str] = Partition.CUSTOM) -> bool:
        """Insert a single puzzle unless its id already exists in the partition."""
        return await self.insert_many([puzzle], partition) == 1

    def _set_active_sync(self, puzzle_id: str, partition: Partition, active: bool) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE puzzles SET active = ? WHERE partition_name = ? AND puzzle_id = ?",
                (active, partition.value, puzzle_id),
            )
        return cursor.rowcount > 0

    async def soft_disable(self, puzzle_id: str,
                           partition: Union[Partition, str] = Partition.CUSTOM) -> bool:
        """Mark a puzzle inactive so retrieval no longer returns it."""
        return await asyncio.to_thread(self._set_active_sync, puzzle_id, _partition(partition), False)

    async def enable(self, puzzle_id: str,
                     partition: Union[Partition, str] = Partition.CUSTOM) -> bool:
        return await asyncio.to_thread(self._set_active_sync, puzzle_id, _partition(partition), True)

    async def seed_builtin(self, puzzles: Optional[Iterable[Puzzle]] = None) -> int:
        """Insert the built-in puzzle set; running it again adds nothing."""
        if puzzles is None:
            from .builtin import builtin_puzzles
            puzzles = builtin_puzzles()
        return await self.insert_many(puzzles, Partition.BUILTIN)

    # ------------------------------------------------------------------ #
    # Custom partition
    # ------------------------------------------------------------------ #

    def _ids_sync(self, partition: Partition) -> set:
        with self._lock:
            rows = self._conn.execute(
                "SELECT puzzle_id FROM puzzles WHERE partition_name = ?", (partition.value,)
            ).fetchall()
        return {row["puzzle_id"] for row in rows}

    async def add_custom(self, puzzles: Iterable[Puzzle]) -> AddReport:
        """
        Add puzzles to the custom partition, renaming colliding ids.

        An id already present gets ``_dup`` appended until it is free, at most
        ``max_id_retries`` times; puzzles that still collide are dropped and
        listed in the report.
        """
        report = AddReport()
        taken = await asyncio.to_thread(self._ids_sync, Partition.CUSTOM)
        accepted: List[Puzzle] = []

        for index, puzzle in enumerate(puzzles, start=1):
            puzzle_id = resolve_identifier(puzzle.puzzle_id, taken, self.max_id_retries)
            if puzzle_id is None:
                logger.warning(f"Dropping puzzle {puzzle.puzzle_id}: no free id after {self.max_id_retries} retries")
                report.dropped.append(puzzle.puzzle_id)
                continue
            if puzzle_id != puzzle.puzzle_id:
                report.renamed.append(DuplicateIdentifier(puzzle.puzzle_id, puzzle_id, index))
                puzzle = replace(puzzle, puzzle_id=puzzle_id)
            taken.add(puzzle_id)
            accepted.append(puzzle)

        report.inserted = await self.insert_many(accepted, Partition.CUSTOM)
        report.added = accepted
        if report.inserted < len(accepted):
            logger.warning(f"Only {report.inserted} of {len(accepted)} custom puzzles were written")
        logger.info(f"Added {report.count} custom puzzles ({len(report.renamed)} renamed)")
        return report

    @staticmethod
    def _check_writable(partition: Union[Partition, str]) -> None:
        if _partition(partition) is Partition.BUILTIN:
            raise ReadOnlyPartitionError("The built-in puzzle set is read-only")

    def _update_sync(self, puzzle_id: str, updates: Dict[str, Any]) -> bool:
        assignments = []
        values: List[Any] = []
        for name, value in updates.items():
            if name in ("moves", "themes") and not isinstance(value, str):
                value = " ".join(value)
            assignments.append(f"{name} = ?")
            values.append(value)

        with self._lock:
            try:
                self._conn.execute("BEGIN")
                row = self._conn.execute(
                    "SELECT id FROM puzzles WHERE partition_name = ? AND puzzle_id = ?",
                    (Partition.CUSTOM.value, puzzle_id),
                ).fetchone()
                if row is None:
                    self._conn.execute("ROLLBACK")
                    return False
                self._conn.execute(
                    f"UPDATE puzzles SET {', '.join(assignments)} WHERE id = ?", values + [row["id"]]
                )
                if "themes" in updates:
                    self._conn.execute("DELETE FROM puzzle_themes WHERE puzzle_row = ?", (row["id"],))
                    themes = updates["themes"]
                    tokens = themes.split() if isinstance(themes, str) else list(themes)
                    self._conn.executemany(
                        "INSERT INTO puzzle_themes (puzzle_row, theme) VALUES (?, ?)",
                        [(row["id"], theme) for theme in dict.fromkeys(tokens)],
                    )
                self._conn.execute("COMMIT")
            except (sqlite3.Error, OverflowError) as e:
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                raise StoreError(f"Failed to update puzzle {puzzle_id}: {e}")
        return True

    async def update_custom(self, puzzle_id: str, updates: Dict[str, Any],
                            partition: Union[Partition, str] = Partition.CUSTOM) -> bool:
        """
        Update fields of a custom puzzle.

        Returns:
            False if no custom puzzle has that id

        Raises:
            ReadOnlyPartitionError: when targeting the built-in partition
            ValueError: for fields that cannot be edited
        """
        self._check_writable(partition)
        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        if not updates:
            return False
        return await asyncio.to_thread(self._update_sync, puzzle_id, dict(updates))

    def _delete_sync(self, puzzle_id: Optional[str]) -> int:
        where = "partition_name = ?"
        params: List[Any] = [Partition.CUSTOM.value]
        if puzzle_id is not None:
            where += " AND puzzle_id = ?"
            params.append(puzzle_id)
        with self._lock:
            try:
                self._conn.execute("BEGIN")
                self._conn.execute(
                    f"DELETE FROM puzzle_themes WHERE puzzle_row IN (SELECT id FROM puzzles WHERE {where})",
                    params,
                )
                cursor = self._conn.execute(f"DELETE FROM puzzles WHERE {where}", params)
                self._conn.execute("COMMIT")
            except sqlite3.Error as e:
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                raise StoreError(f"Failed to delete custom puzzles: {e}")
        return cursor.rowcount

    async def delete_custom(self, puzzle_id: str,
                            partition: Union[Partition, str] = Partition.CUSTOM) -> bool:
        self._check_writable(partition)
        return await asyncio.to_thread(self._delete_sync, puzzle_id) > 0

    async def clear_custom(self) -> int:
        """Delete every custom puzzle. Returns the number removed."""
        removed = await asyncio.to_thread(self._delete_sync, None)
        logger.info(f"Cleared {removed} custom puzzles")
        return removed

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def _select_sync(self, where: List[str], params: List[Any], order: str = "",
                     limit: Optional[int] = None, offset: int = 0) -> List[Puzzle]:
        sql = "SELECT p.* FROM puzzles p"
        if where:
            sql += " WHERE " + " AND ".join(where)
        if order:
            sql += f" ORDER BY {order}"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params = params + [limit, offset]
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [_row_to_puzzle(row) for row in rows]

    @staticmethod
    def _filters(pool: PoolLike, min_rating: Optional[int] = None, max_rating: Optional[int] = None,
                 themes: Optional[Sequence[str]] = None,
                 active_only: bool = True) -> Tuple[List[str], List[Any]]:
        clause, params = _pool_clause(pool)
        where = [clause]
        if active_only:
            where.append("p.active = 1")
        if min_rating is not None:
            where.append("p.rating >= ?")
            params.append(min_rating)
        if max_rating is not None:
            where.append("p.rating <= ?")
            params.append(max_rating)
        if themes:
            theme_clause, theme_params = _theme_clause(themes)
            where.append(theme_clause)
            params.extend(theme_params)
        return where, params

    async def query_by_rating_range(self, min_rating: int, max_rating: int, active_only: bool = True,
                                    limit: int = 50, offset: int = 0,
                                    pool: PoolLike = PoolMode.ALL) -> List[Puzzle]:
        """Puzzles rated within ``[min_rating, max_rating]``, lowest rating first."""
        where, params = self._filters(pool, min_rating, max_rating, active_only=active_only)
        return await asyncio.to_thread(self._select_sync, where, params, "p.rating ASC, p.id ASC", limit, offset)

    async def query_by_themes(self, themes: Sequence[str], limit: int = 50,
                              min_rating: Optional[int] = None, max_rating: Optional[int] = None,
                              pool: PoolLike = PoolMode.ALL) -> List[Puzzle]:
        """Puzzles carrying any of ``themes`` as a whole theme token."""
        if not themes:
            return []
        where, params = self._filters(pool, min_rating, max_rating, themes)
        return await asyncio.to_thread(self._select_sync, where, params, "p.rating ASC, p.id ASC", limit)

    async def random_sample(self, count: int = 10, min_rating: Optional[int] = None,
                            max_rating: Optional[int] = None, themes: Optional[Sequence[str]] = None,
                            pool: PoolLike = PoolMode.ALL) -> List[Puzzle]:
        """A uniform random sample chosen by the database."""
        where, params = self._filters(pool, min_rating, max_rating, themes)
        return await asyncio.to_thread(self._select_sync, where, params, "RANDOM()", count)

    async def get_random_puzzle(self, min_rating: Optional[int] = None, max_rating: Optional[int] = None,
                                themes: Optional[Sequence[str]] = None,
                                pool: PoolLike = PoolMode.ALL) -> Optional[Puzzle]:
        sample = await self.random_sample(1, min_rating, max_rating, themes, pool)
        return sample[0] if sample else None

    async def get_puzzle(self, puzzle_id: str, pool: PoolLike = PoolMode.ALL,
                         active_only: bool = True) -> Optional[Puzzle]:
        """Look up a puzzle by id; a custom puzzle shadows a built-in one with the same id."""
        where, params = self._filters(pool, active_only=active_only)
        where.append("p.puzzle_id = ?")
        params.append(puzzle_id)
        order = f"CASE p.partition_name WHEN '{Partition.CUSTOM.value}' THEN 0 ELSE 1 END"
        found = await asyncio.to_thread(self._select_sync, where, params, order, 1)
        return found[0] if found else None

    def _count_sync(self, where: List[str], params: List[Any]) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM puzzles p WHERE " + " AND ".join(where), params
            ).fetchone()
        return row[0]

    async def count_matching(self, min_rating: Optional[int] = None, max_rating: Optional[int] = None,
                             themes: Optional[Sequence[str]] = None,
                             pool: PoolLike = PoolMode.ALL) -> int:
        where, params = self._filters(pool, min_rating, max_rating, themes)
        return await asyncio.to_thread(self._count_sync, where, params)

    async def filter_puzzles(self, difficulty: Optional[int] = None, category: Optional[str] = None,
                             themes: Optional[Sequence[str]] = None, limit: Optional[int] = None,
                             pool: PoolLike = PoolMode.ALL) -> List[Puzzle]:
        """Active puzzles matching a tier, a category and any of ``themes``."""
        where, params = self._filters(pool, themes=themes)
        if difficulty is not None:
            where.append("p.difficulty = ?")
            params.append(difficulty)
        if category is not None:
            where.append("p.category = ?")
            params.append(category)
        return await asyncio.to_thread(self._select_sync, where, params, "p.partition_name, p.id", limit)

    async def search(self, term: str, limit: int = 50, pool: PoolLike = PoolMode.ALL) -> List[Puzzle]:
        """Case-insensitive substring search over themes, id, opening tags and description."""
        where, params = self._filters(pool)
        pattern = f"%{term.strip().lower()}%"
        where.append(
            "(LOWER(p.themes) LIKE ? OR LOWER(p.puzzle_id) LIKE ? "
            "OR LOWER(p.opening_tags) LIKE ? OR LOWER(p.description) LIKE ?)"
        )
        params.extend([pattern] * 4)
        return await asyncio.to_thread(self._select_sync, where, params, "p.rating ASC, p.id ASC", limit)

    async def all_puzzles(self, pool: PoolLike = PoolMode.ALL, active_only: bool = False) -> List[Puzzle]:
        where, params = self._filters(pool, active_only=active_only)
        return await asyncio.to_thread(self._select_sync, where, params, "p.partition_name, p.id")

    async def partition_ids(self, partition: Union[Partition, str]) -> set:
        return await asyncio.to_thread(self._ids_sync, _partition(partition))

    def _stats_sync(self, pool: PoolLike) -> StoreStats:
        clause, params = _pool_clause(pool)
        stats = StoreStats()
        with self._lock:
            row = self._conn.execute(
                f"""SELECT COUNT(*) AS total, COALESCE(SUM(p.active), 0) AS active,
                           MIN(CASE WHEN p.active THEN p.rating END) AS min_rating,
                           MAX(CASE WHEN p.active THEN p.rating END) AS max_rating,
                           AVG(CASE WHEN p.active THEN p.rating END) AS avg_rating
                    FROM puzzles p WHERE {clause}""",
                params,
            ).fetchone()
            stats.total = row["total"]
            stats.active = row["active"]
            stats.min_rating = row["min_rating"]
            stats.max_rating = row["max_rating"]
            stats.avg_rating = round(row["avg_rating"], 1) if row["avg_rating"] is not None else None

            stats.theme_count = self._conn.execute(
                f"""SELECT COUNT(DISTINCT LOWER(t.theme)) FROM puzzle_themes t
                    JOIN puzzles p ON p.id = t.puzzle_row WHERE {clause} AND p.active = 1""",
                params,
            ).fetchone()[0]

            for column, target in (("partition_name", stats.by_partition),
                                   ("category", stats.by_category),
                                   ("difficulty", stats.by_tier)):
                for group in self._conn.execute(
                    f"SELECT p.{column} AS key, COUNT(*) AS n FROM puzzles p WHERE {clause} AND p.active = 1 "
                    f"GROUP BY p.{column} ORDER BY p.{column}",
                    params,
                ):
                    target[group["key"]] = group["n"]
        return stats

    async def get_stats(self, pool: PoolLike = PoolMode.ALL) -> StoreStats:
        """
        Aggregate statistics over a pool.

        ``total`` counts every row; all other figures cover active puzzles only.
        """
        return await asyncio.to_thread(self._stats_sync, pool)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
