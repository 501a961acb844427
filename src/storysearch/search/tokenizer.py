"""CJK-aware tokenizer used to build the indexed column of the story index.

Story text has no whitespace word boundaries, so every non-ASCII letter or
ideograph becomes its own token. ASCII letters and digits are kept together
as words. Joining the tokens with spaces lets the index engine match each
CJK character independently and match contiguous runs with a phrase query.
"""

from __future__ import annotations

from storysearch.utils.text import is_ascii_alphanumeric, is_common_punctuation, normalize_text


def tokenize_for_index(text: str) -> list[str]:
    """Split ``text`` into index tokens, in order and without de-duplication.

    The text is normalized first. Runs of ASCII letters and digits form one
    token, whitespace separates, common ASCII and CJK punctuation is dropped,
    and every other character becomes a single-character token.

    Parameters
    ----------
    text : str
        Arbitrary text

    Returns
    -------
    list[str]
        Tokens in reading order

    Examples
    --------
    >>> tokenize_for_index("Hello，凯尔希 42!")
    ['hello', '凯', '尔', '希', '42']

    """
    tokens: list[str] = []
    ascii_buffer: list[str] = []

    for ch in normalize_text(text):
        if is_ascii_alphanumeric(ch):
            ascii_buffer.append(ch.lower())
            continue

        if ascii_buffer:
            tokens.append("".join(ascii_buffer))
            ascii_buffer = []

        if ch.isspace() or is_common_punctuation(ch):
            continue

        tokens.append(ch.lower() if ch.isalnum() else ch)

    if ascii_buffer:
        tokens.append("".join(ascii_buffer))

    return tokens


def build_tokenized_content(text: str) -> str:
    """Return the space-joined tokens of ``text``; the unit stored in the index."""
    return " ".join(tokenize_for_index(text))


__all__ = ["tokenize_for_index", "build_tokenized_content"]
