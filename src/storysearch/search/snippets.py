"""Context snippet extraction for search results.

Matches are located in normalized text but the snippet is cut from the
original text, so a result shows what the story actually says. Normalization
can change the number of characters (compatibility forms expand, marks are
dropped), so each original character is normalized on its own and the
resulting offsets are kept for the text up to the match. A match found in
that piecewise form maps back to exact original positions. When the
piecewise form misses a match that the whole-string normalization finds
(sequences that only normalize together), the normalized character index is
used directly as an approximation.
"""

from __future__ import annotations

from storysearch.constants import DEFAULT_CONTEXT_WINDOW, SNIPPET_ELLIPSIS
from storysearch.utils.text import normalize_text

_ALIGNMENT_SLACK = 16


def build_context_snippet(content: str, start: int, length: int, window: int = DEFAULT_CONTEXT_WINDOW) -> str:
    """Cut ``window`` characters of context around ``content[start:start + length]``.

    Parameters
    ----------
    content : str
        Original text
    start : int
        Character index of the match in ``content``
    length : int
        Match length in characters
    window : int, default 50
        Characters of context kept on each side

    Returns
    -------
    str
        ``"...{context}..."`` with the context trimmed, or "" when there is nothing to show

    """
    if not content or start < 0 or start > len(content):
        return ""
    snippet_start = max(start - window, 0)
    snippet_end = min(start + max(length, 0) + window, len(content))
    snippet = content[snippet_start:snippet_end]
    if not snippet:
        return ""
    return f"{SNIPPET_ELLIPSIS}{snippet.strip()}{SNIPPET_ELLIPSIS}"


def _piecewise_normalize(content: str, min_length: int) -> tuple[str, list[int]]:
    """Normalize ``content`` one character at a time until ``min_length`` characters are produced.

    Returns the normalized prefix and, for each of its characters, the index
    of the original character it came from.
    """
    pieces: list[str] = []
    origins: list[int] = []
    for idx, ch in enumerate(content):
        if len(origins) >= min_length:
            break
        normalized = normalize_text(ch)
        pieces.append(normalized)
        origins.extend([idx] * len(normalized))
    return "".join(pieces), origins


def _locate(content: str, whole: str, needle: str) -> tuple[int, int] | None:
    pos = whole.find(needle)
    if pos < 0:
        return None

    # Piecewise and whole-string forms only differ around sequences that compose
    piecewise, origins = _piecewise_normalize(content, pos + len(needle) + _ALIGNMENT_SLACK)
    piece_pos = piecewise.find(needle)
    if piece_pos >= 0:
        start = origins[piece_pos]
        end = origins[piece_pos + len(needle) - 1] + 1
        return start, end - start
    return min(pos, len(content)), len(needle)


def extract_context(content: str, normalized_query: str, window: int = DEFAULT_CONTEXT_WINDOW) -> str:
    """Return a snippet of ``content`` around the first match of ``normalized_query``.

    The full query is tried first, then each whitespace-separated part of it.
    Only the text up to the match is normalized character by character.

    Parameters
    ----------
    content : str
        Original, non-normalized text
    normalized_query : str
        Query already passed through ``normalize_text``
    window : int, default 50
        Characters of context kept on each side

    Returns
    -------
    str
        The snippet, or "" when nothing matches

    """
    if not content or not normalized_query:
        return ""

    whole = normalize_text(content)
    candidates = [normalized_query]
    candidates.extend(part for part in normalized_query.split() if part and part != normalized_query)
    for needle in candidates:
        located = _locate(content, whole, needle)
        if located is not None:
            return build_context_snippet(content, located[0], located[1], window)
    return ""


__all__ = ["extract_context", "build_context_snippet"]
