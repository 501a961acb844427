#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/storysearch/search/fts.py
"""SQLite FTS5 story index.

The index lives in one SQLite database holding two tables:

``story_index``
    FTS5 virtual table with searchable ``story_name``, ``tokenized_content``
    and ``story_code`` columns and unindexed ``story_id``, ``category`` and
    ``raw_content`` columns.
``story_index_meta``
    Key/value table with ``index_version``, ``last_built_at`` and
    ``total_count``.

When the stored ``index_version`` is older than ``INDEX_VERSION`` the virtual
table is dropped and recreated before use. A rebuild deletes every row and
reinserts inside one transaction.

"""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from storysearch.constants import INDEX_VERSION
from storysearch.exceptions import IndexQueryError, IndexUnavailableError, SearchIndexError
from storysearch.progress import ProgressCallback, emit_progress
from storysearch.search.index import META_INDEX_VERSION, META_LAST_BUILT_AT, META_TOTAL_COUNT, BaseStoryIndex
from storysearch.search.query import CompiledQuery
from storysearch.search.types import IndexHit, IndexRow

logger = logging.getLogger(__name__)

_CREATE_META_SQL = """
CREATE TABLE IF NOT EXISTS story_index_meta (
    key TEXT PRIMARY KEY,
    value TEXT
)
"""

_INDEX_COLUMNS_SQL = """
    story_id UNINDEXED,
    story_name,
    category UNINDEXED,
    tokenized_content,
    story_code,
    raw_content UNINDEXED,
    tokenize = 'unicode61 remove_diacritics 2',
    prefix = '2 3 4'
"""

_CREATE_INDEX_SQL = f"CREATE VIRTUAL TABLE story_index USING fts5({_INDEX_COLUMNS_SQL})"
_ENSURE_INDEX_SQL = f"CREATE VIRTUAL TABLE IF NOT EXISTS story_index USING fts5({_INDEX_COLUMNS_SQL})"

_UPSERT_META_SQL = """
INSERT INTO story_index_meta (key, value) VALUES (?, ?)
ON CONFLICT(key) DO UPDATE SET value = excluded.value
"""

_INSERT_ROW_SQL = """
INSERT INTO story_index (story_id, story_name, category, tokenized_content, story_code, raw_content)
VALUES (?, ?, ?, ?, ?, ?)
"""

_SEARCH_SQL = """
SELECT story_id, story_name, category, raw_content,
       snippet(story_index, -1, '', '', '...', 24) AS snip,
       bm25(story_index) AS score
FROM story_index
WHERE story_index MATCH ?
ORDER BY bm25(story_index)
LIMIT ?
"""


def fts5_available() -> bool:
    """Return True if the linked SQLite library was compiled with FTS5."""
    try:
        with closing(sqlite3.connect(":memory:")) as conn:
            conn.execute("CREATE VIRTUAL TABLE fts5_check USING fts5(body)")
    except sqlite3.Error:
        return False
    return True


class Fts5StoryIndex(BaseStoryIndex):
    """Story index stored in an SQLite FTS5 table.

    Parameters
    ----------
    path : Path
        Database file. Created on first rebuild.

    """

    backend_name = "fts5"

    def _open(self) -> sqlite3.Connection:
        """Open the database in autocommit mode with WAL journaling."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.path, isolation_level=None)
        except (OSError, sqlite3.Error) as exc:
            raise IndexUnavailableError(f"Failed to open story index {self.path}: {exc}", original_error=exc) from exc
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            self._init_tables(conn)
        except sqlite3.Error as exc:
            conn.close()
            raise IndexUnavailableError(
                f"Failed to initialise story index {self.path}: {exc}", original_error=exc
            ) from exc
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._open()
        try:
            yield conn
        finally:
            conn.close()

    @staticmethod
    def _stored_version(conn: sqlite3.Connection) -> int:
        row = conn.execute("SELECT value FROM story_index_meta WHERE key = ?", (META_INDEX_VERSION,)).fetchone()
        if row is None:
            return 0
        try:
            return int(row[0])
        except (TypeError, ValueError):
            return 0

    def _init_tables(self, conn: sqlite3.Connection) -> None:
        """Create tables, recreating the virtual table when its schema generation is outdated."""
        conn.execute(_CREATE_META_SQL)
        stored_version = self._stored_version(conn)
        if stored_version < INDEX_VERSION:
            logger.info("Recreating story index (schema %d -> %d)", stored_version, INDEX_VERSION)
            conn.execute("DROP TABLE IF EXISTS story_index")
            conn.execute(_CREATE_INDEX_SQL)
            conn.execute(_UPSERT_META_SQL, (META_INDEX_VERSION, str(INDEX_VERSION)))
        else:
            conn.execute(_ENSURE_INDEX_SQL)

    def exists(self) -> bool:
        return self.path.is_file()

    def row_count(self) -> int:
        if not self.exists():
            return 0
        with self._connection() as conn:
            try:
                (total,) = conn.execute("SELECT COUNT(*) FROM story_index").fetchone()
            except sqlite3.Error as exc:
                raise IndexUnavailableError(f"Failed to count story index rows: {exc}", original_error=exc) from exc
        return int(total or 0)

    def read_metadata(self) -> dict[str, str]:
        if not self.exists():
            return {}
        with self._connection() as conn:
            try:
                rows = conn.execute("SELECT key, value FROM story_index_meta").fetchall()
            except sqlite3.Error as exc:
                raise IndexUnavailableError(f"Failed to read story index metadata: {exc}", original_error=exc) from exc
        return {str(key): str(value) for key, value in rows if value is not None}

    def rebuild(self, rows: Iterable[IndexRow], *, progress_callback: ProgressCallback | None = None) -> int:
        """Delete every row and insert ``rows`` in a single transaction.

        ``rows`` is consumed inside the transaction, so an exception raised
        while producing rows also rolls the rebuild back.

        Raises
        ------
        SearchIndexError
            If the database rejects the rebuild. The previous content is kept.

        """
        with self._connection() as conn:
            total = 0
            try:
                conn.execute("BEGIN IMMEDIATE")
                conn.execute("DELETE FROM story_index")
                for row in rows:
                    conn.execute(
                        _INSERT_ROW_SQL,
                        (
                            row.story_id,
                            row.story_name,
                            row.category,
                            row.tokenized_content,
                            row.story_code,
                            row.raw_content,
                        ),
                    )
                    total += 1
                conn.execute(_UPSERT_META_SQL, (META_LAST_BUILT_AT, str(int(time.time()))))
                conn.execute(_UPSERT_META_SQL, (META_TOTAL_COUNT, str(total)))
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise SearchIndexError(f"Failed to rebuild story index: {exc}", original_error=exc) from exc
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

        emit_progress(progress_callback, "item_done", "Story index committed", total, total, item_type="index")
        return total

    def search(self, query: CompiledQuery, *, limit: int) -> list[IndexHit]:
        """Run ``query`` through FTS5 ``MATCH``, ranked by ``bm25()``.

        Raises
        ------
        IndexUnavailableError
            If the database cannot be opened
        IndexQueryError
            If FTS5 rejects or fails the expression

        """
        expression = query.to_fts5()
        with self._connection() as conn:
            try:
                rows = conn.execute(_SEARCH_SQL, (expression, limit)).fetchall()
            except sqlite3.Error as exc:
                raise IndexQueryError(
                    f"Story index query failed: {exc}", expression=expression, original_error=exc
                ) from exc

        return [
            IndexHit(
                story_id=story_id,
                story_name=story_name,
                category=category,
                raw_content=raw_content,
                snippet=snip or "",
                score=float(score or 0.0),
            )
            for story_id, story_name, category, raw_content, snip, score in rows
        ]

    def clear(self) -> None:
        """Remove the database file together with its WAL side files."""
        for suffix in ("", "-wal", "-shm"):
            target = Path(f"{self.path}{suffix}")
            try:
                target.unlink()
            except FileNotFoundError:
                continue


__all__ = ["Fts5StoryIndex", "fts5_available"]
