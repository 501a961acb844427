"""Unit tests for the CJK-aware index tokenizer."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from storysearch.search.tokenizer import build_tokenized_content, tokenize_for_index


@pytest.mark.unit
class TestTokenizeForIndex:
    """Test tokenize_for_index."""

    def test_mixed_text(self):
        """ASCII words stay together and each ideograph is its own token."""
        assert tokenize_for_index("Hello，凯尔希 42!") == ["hello", "凯", "尔", "希", "42"]

    def test_punctuation_splits_words(self):
        assert tokenize_for_index("abc-def.ghi") == ["abc", "def", "ghi"]

    def test_cjk_punctuation_dropped(self):
        assert tokenize_for_index("「你好」。") == ["你", "好"]

    def test_diacritics_and_width_normalized(self):
        assert tokenize_for_index("Café ＷＯＲＬＤ") == ["cafe", "world"]

    def test_kana_split_per_character(self):
        assert tokenize_for_index("あいう") == ["あ", "い", "う"]

    def test_symbols_kept(self):
        """Characters that are neither letters nor common punctuation still become tokens."""
        assert tokenize_for_index("♪凯") == ["♪", "凯"]

    def test_repeated_tokens_kept(self):
        assert tokenize_for_index("哈哈 ha ha") == ["哈", "哈", "ha", "ha"]

    def test_empty_and_blank(self):
        assert tokenize_for_index("") == []
        assert tokenize_for_index("  \n\t ") == []
        assert tokenize_for_index("，。！") == []

    @given(st.text(max_size=200))
    def test_tokens_never_contain_whitespace(self, text):
        """Tokens are never empty and never contain whitespace."""
        for token in tokenize_for_index(text):
            assert token
            assert not any(ch.isspace() for ch in token)


@pytest.mark.unit
class TestBuildTokenizedContent:
    """Test build_tokenized_content."""

    def test_space_joined(self):
        assert build_tokenized_content("凯尔希说：Go!") == "凯 尔 希 说 go"

    def test_empty(self):
        assert build_tokenized_content("...") == ""
