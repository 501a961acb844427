"""Unit tests for progress events and their delivery."""

import pytest

from storysearch.progress import ProgressEvent, emit_progress


@pytest.mark.unit
class TestProgressEvent:
    """Test ProgressEvent."""

    def test_str_with_total(self):
        event = ProgressEvent(event_type="item_done", message="Scanned 3 / 9", current=3, total=9)
        assert str(event) == "[ITEM_DONE] Scanned 3 / 9 (3/9)"

    def test_str_without_total(self):
        assert str(ProgressEvent(event_type="started", message="Indexing")) == "[STARTED] Indexing"

    def test_metadata_default_is_per_instance(self):
        first = ProgressEvent(event_type="started", message="a")
        first.metadata["phase"] = "scan"
        assert ProgressEvent(event_type="started", message="b").metadata == {}


@pytest.mark.unit
class TestEmitProgress:
    """Test emit_progress."""

    def test_delivers_event(self):
        events = []
        emit_progress(events.append, "detected", "Matched s1", 2, 5, phase="scan", story_id="s1")
        (event,) = events
        assert event.event_type == "detected"
        assert (event.current, event.total) == (2, 5)
        assert event.metadata == {"phase": "scan", "story_id": "s1"}

    def test_no_callback(self):
        emit_progress(None, "finished", "done")

    def test_callback_errors_are_logged(self, caplog):
        def broken(event):
            raise ValueError("display closed")

        emit_progress(broken, "finished", "done", 1, 1)
        assert any("Progress callback failed" in record.getMessage() for record in caplog.records)
