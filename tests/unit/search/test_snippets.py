"""Unit tests for context snippet extraction."""

import pytest

from storysearch.search import snippets
from storysearch.search.snippets import build_context_snippet, extract_context
from storysearch.utils.text import normalize_text


@pytest.mark.unit
class TestBuildContextSnippet:
    """Test build_context_snippet."""

    def test_window_around_match(self):
        content = "0123456789凯尔希abcdef"
        assert build_context_snippet(content, 10, 3, window=3) == "...789凯尔希abc..."

    def test_window_clamped_to_content(self):
        assert build_context_snippet("凯尔希", 0, 3, window=50) == "...凯尔希..."

    def test_context_is_trimmed(self):
        assert build_context_snippet("   abc   ", 3, 3, window=2) == "...abc..."

    def test_out_of_range(self):
        assert build_context_snippet("abc", 10, 1) == ""
        assert build_context_snippet("abc", -1, 1) == ""
        assert build_context_snippet("", 0, 1) == ""


@pytest.mark.unit
class TestExtractContext:
    """Test extract_context."""

    def test_match_in_cjk_text(self):
        content = "阿米娅：博士，您醒了吗？\n凯尔希：博士，我们需要撤离。"
        snippet = extract_context(content, "凯尔希", window=4)
        assert snippet == "...了吗？\n凯尔希：博士，..."

    def test_snippet_keeps_original_text(self):
        """The match is located on normalized text but cut from the original."""
        snippet = extract_context("我喜欢 Ｃａｆé 的味道", "cafe", window=0)
        assert snippet == "...Ｃａｆé..."

    def test_case_insensitive(self):
        assert extract_context("Keep moving, rookie!", "moving", window=5) == "...Keep moving, roo..."

    def test_falls_back_to_query_parts(self):
        """Each whitespace-separated part is tried when the full query does not match."""
        snippet = extract_context("切尔诺伯格的天空一片灰暗。", "天空 月亮", window=1)
        assert snippet == "...的天空一..."

    def test_no_match(self):
        assert extract_context("切尔诺伯格", "龙门", window=5) == ""

    def test_empty_inputs(self):
        assert extract_context("", "a") == ""
        assert extract_context("abc", "") == ""

    def test_default_window(self):
        content = "x" * 100 + "凯尔希" + "y" * 100
        snippet = extract_context(content, "凯尔希")
        assert snippet == "..." + "x" * 50 + "凯尔希" + "y" * 50 + "..."

    def test_offsets_after_expanding_character(self):
        """A character that normalizes to two characters does not shift the snippet."""
        assert extract_context("㍻元年，凯尔希出发。", "凯尔希", window=0) == "...凯尔希..."

    def test_late_match_in_long_text(self):
        content = "Ｗ" * 3000 + "凯尔希" + "Ｗ" * 3000
        assert extract_context(content, "凯尔希", window=2) == "...ＷＷ凯尔希ＷＷ..."

    def test_normalizes_only_up_to_the_match(self, monkeypatch):
        calls = []

        def counting_normalize(text):
            calls.append(text)
            return normalize_text(text)

        monkeypatch.setattr(snippets, "normalize_text", counting_normalize)
        content = "凯尔希：博士，我们需要撤离。" + "切尔诺伯格" * 2000
        assert extract_context(content, "凯尔希", window=1) == "...凯尔希：..."
        assert len(calls) < 50
