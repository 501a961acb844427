"""Text normalization helpers shared by the tokenizer, query compiler and scanners.

Every comparison in the search path goes through ``normalize_text``; callers
must normalize both haystack and needle with it or matches will be missed.
"""

from __future__ import annotations

import string
import unicodedata

from storysearch.constants import CJK_RANGES, COMMON_CJK_PUNCTUATION

_ASCII_PUNCTUATION = frozenset(string.punctuation)


def normalize_text(text: str) -> str:
    """Canonicalize text for comparison.

    Applies NFKC compatibility normalization, lowercases each character and
    drops every character whose canonical combining class is non-zero. The
    lowercased text is decomposed before the combining-class filter so that
    precomposed letters lose their marks ("café" -> "cafe"); the result is
    recomposed so the output is stable under repeated application.

    Parameters
    ----------
    text : str
        Arbitrary input

    Returns
    -------
    str
        Normalized text. Never raises.

    """
    if not text:
        return ""
    lowered = "".join(ch.lower() for ch in unicodedata.normalize("NFKC", text))
    decomposed = unicodedata.normalize("NFD", lowered)
    stripped = "".join(ch for ch in decomposed if unicodedata.combining(ch) == 0)
    return unicodedata.normalize("NFC", stripped)


def is_cjk(ch: str) -> bool:
    """Return True if ``ch`` is a CJK Unified Ideograph (basic block or extensions A-E)."""
    code = ord(ch)
    return any(low <= code <= high for low, high in CJK_RANGES)


def is_ascii_punctuation(ch: str) -> bool:
    return ch in _ASCII_PUNCTUATION


def is_common_punctuation(ch: str) -> bool:
    """Return True for ASCII punctuation and the common CJK/fullwidth marks dropped by the tokenizer."""
    return ch in _ASCII_PUNCTUATION or ch in COMMON_CJK_PUNCTUATION


def is_ascii_alphanumeric(ch: str) -> bool:
    return ch.isascii() and ch.isalnum()
