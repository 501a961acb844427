"""Unit tests for the SQLite FTS5 story index."""

import sqlite3
from contextlib import closing

import pytest
from utils import requires_fts5

from storysearch.constants import INDEX_VERSION
from storysearch.exceptions import IndexQueryError, SearchIndexError
from storysearch.search.fts import Fts5StoryIndex
from storysearch.search.query import compile_query
from storysearch.search.tokenizer import build_tokenized_content
from storysearch.search.types import IndexRow


def _row(story_id: str, name: str, text: str, code: str = "") -> IndexRow:
    raw = f"{name}\n{text}"
    return IndexRow(
        story_id=story_id,
        story_name=name,
        category="主线 | 测试",
        tokenized_content=build_tokenized_content(raw),
        story_code=code,
        raw_content=raw,
    )


@pytest.fixture
def sample_rows() -> list[IndexRow]:
    return [
        _row("s1", "坍塌", "阿米娅：博士，您醒了吗？\n凯尔希：博士，我们需要撤离。", code="0-1"),
        _row("s2", "切城", "杜宾：可恶......\n阿米娅：我们走。", code="0-2"),
        _row("s3", "前进", "Ace：Keep moving, rookie!", code="2-1"),
        _row("s4", "猎人的誓言", "苦艾：我要找到真相。", code="gt-1"),
    ]


@pytest.fixture
def index(tmp_path, sample_rows) -> Fts5StoryIndex:
    fts = Fts5StoryIndex(tmp_path / "index" / "story_index.db")
    fts.rebuild(sample_rows)
    return fts


def _ids(hits) -> list[str]:
    return [hit.story_id for hit in hits]


@requires_fts5
@pytest.mark.unit
class TestFts5Maintenance:
    """Test rebuilding, metadata and clearing."""

    def test_missing_index(self, tmp_path):
        fts = Fts5StoryIndex(tmp_path / "nope.db")
        assert not fts.exists()
        assert fts.row_count() == 0
        assert fts.read_metadata() == {}
        assert not fts.status().ready

    def test_rebuild_and_status(self, index):
        assert index.exists()
        assert index.row_count() == 4
        metadata = index.read_metadata()
        assert metadata["index_version"] == str(INDEX_VERSION)
        assert metadata["total_count"] == "4"

        status = index.status()
        assert status.ready
        assert status.total == 4
        assert isinstance(status.last_built_at, int)
        assert index.is_ready()

    def test_rebuild_replaces_rows(self, index, sample_rows):
        assert index.rebuild(sample_rows[:1]) == 1
        assert index.row_count() == 1
        assert index.read_metadata()["total_count"] == "1"

    def test_failed_rebuild_keeps_previous_rows(self, index, sample_rows):
        """An exception while producing rows rolls the whole rebuild back."""

        def broken_rows():
            yield sample_rows[0]
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            index.rebuild(broken_rows())
        assert index.row_count() == 4

    def test_rebuild_when_database_is_locked(self, index, sample_rows):
        """A transaction that cannot start surfaces as an index error."""

        class LockedConnection:
            def __init__(self, conn):
                self._conn = conn

            def execute(self, sql, *params):
                if sql == "BEGIN IMMEDIATE":
                    raise sqlite3.OperationalError("database is locked")
                return self._conn.execute(sql, *params)

            def __getattr__(self, name):
                return getattr(self._conn, name)

        class LockedIndex(Fts5StoryIndex):
            def _open(self):
                return LockedConnection(super()._open())

        with pytest.raises(SearchIndexError, match="database is locked"):
            LockedIndex(index.path).rebuild(sample_rows[:1])
        assert index.row_count() == 4

    def test_rebuild_reports_progress(self, tmp_path, sample_rows):
        events = []
        fts = Fts5StoryIndex(tmp_path / "story_index.db")
        fts.rebuild(sample_rows, progress_callback=events.append)
        assert [(e.event_type, e.metadata.get("item_type")) for e in events] == [("item_done", "index")]
        assert events[0].total == 4

    def test_outdated_schema_is_recreated(self, index):
        with closing(sqlite3.connect(index.path)) as conn, conn:
            conn.execute("UPDATE story_index_meta SET value = '1' WHERE key = 'index_version'")
        assert index.row_count() == 0
        assert index.read_metadata()["index_version"] == str(INDEX_VERSION)

    def test_clear(self, index):
        index.clear()
        assert not index.exists()
        assert not index.status().ready
        for suffix in ("-wal", "-shm"):
            assert not index.path.with_name(index.path.name + suffix).exists()
        index.clear()

    def test_corrupt_database_is_not_ready(self, tmp_path):
        path = tmp_path / "story_index.db"
        path.write_bytes(b"definitely not a sqlite database" * 8)
        status = Fts5StoryIndex(path).status()
        assert not status.ready
        assert status.total == 0


@requires_fts5
@pytest.mark.unit
class TestFts5Search:
    """Test query execution."""

    def test_cjk_phrase(self, index):
        hits = index.search(compile_query("凯尔希"), limit=10)
        assert _ids(hits) == ["s1"]
        assert hits[0].story_name == "坍塌"
        assert hits[0].category == "主线 | 测试"
        assert "凯尔希" in hits[0].raw_content

    def test_phrase_requires_contiguous_characters(self, index):
        assert index.search(compile_query("凯希"), limit=10) == []

    def test_multiple_matches(self, index):
        assert sorted(_ids(index.search(compile_query("阿米娅"), limit=10))) == ["s1", "s2"]

    def test_prefix(self, index):
        assert _ids(index.search(compile_query("Kee"), limit=10)) == ["s3"]

    def test_and_not(self, index):
        assert _ids(index.search(compile_query("阿米娅 -凯尔希"), limit=10)) == ["s2"]

    def test_or(self, index):
        assert sorted(_ids(index.search(compile_query("杜宾 or 苦艾"), limit=10))) == ["s2", "s4"]

    def test_story_code(self, index):
        assert _ids(index.search(compile_query("GT-1"), limit=10)) == ["s4"]

    def test_limit(self, index):
        assert len(index.search(compile_query("阿米娅"), limit=1)) == 1

    def test_scores_and_snippets(self, index):
        (hit,) = index.search(compile_query("苦艾"), limit=10)
        assert isinstance(hit.score, float)
        assert isinstance(hit.snippet, str)

    def test_rejected_expression(self, index):
        """Expressions FTS5 cannot parse raise IndexQueryError with the expression attached."""
        with pytest.raises(IndexQueryError) as exc_info:
            index.search(compile_query("-凯尔希"), limit=10)
        assert exc_info.value.expression == 'NOT "凯 尔 希"'
