#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/storysearch/search/query.py
"""Compile free-form user queries into boolean full-text expressions.

Grammar, evaluated left to right:

- whitespace separates terms and the default connective is ``AND``
- a standalone ``or`` (any case) makes the next term join with ``OR``;
  a trailing ``or`` is ignored
- a leading ``-`` negates a term
- ``"double quoted"`` spans form one term, taken literally

Each term is then rendered by kind:

- all-CJK terms become a quoted phrase of single characters (``"苦 艾"``),
  matching the one-token-per-character layout of the index
- ASCII letter/digit terms become prefix matches (``abc*``)
- anything else is quoted verbatim with inner quotes removed

Terms that contain nothing indexable (pure punctuation) are discarded, and a
query left without terms compiles to ``None`` rather than matching
everything.

"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from storysearch.search.tokenizer import tokenize_for_index
from storysearch.utils.text import is_ascii_alphanumeric, is_cjk, normalize_text

logger = logging.getLogger(__name__)

Connective = Literal["AND", "OR"]
TermKind = Literal["phrase", "prefix", "literal"]

_OR_KEYWORD = "or"
_NEGATION_PREFIX = "-"


@dataclass(frozen=True)
class QueryTerm:
    """One compiled term.

    Parameters
    ----------
    text : str
        Normalized term text without negation prefix or quotes
    negated : bool
        Whether the term is excluded (``NOT``)
    connective : {"AND", "OR"}
        How the term joins the terms before it. Always "AND" for the first term.
    kind : {"phrase", "prefix", "literal"}
        Matching strategy

    """

    text: str
    negated: bool
    connective: Connective
    kind: TermKind

    @property
    def characters(self) -> tuple[str, ...]:
        """Characters of a phrase term, in order."""
        return tuple(ch for ch in self.text if not ch.isspace())

    def render(self) -> str:
        """Return the term in expression syntax, without connective or negation."""
        if self.kind == "phrase":
            return '"' + " ".join(self.characters) + '"'
        if self.kind == "prefix":
            return f"{self.text}*"
        return '"' + self.text.replace('"', "") + '"'


@dataclass(frozen=True)
class CompiledQuery:
    """Terms of a compiled query plus their expression string."""

    terms: tuple[QueryTerm, ...]
    expression: str

    def __str__(self) -> str:
        return self.expression

    def to_fts5(self) -> str:
        """Render the terms in SQLite FTS5 syntax.

        FTS5 ``NOT`` is a binary operator, so ``a AND NOT b`` is written
        ``a NOT b``. A leading negation or ``OR NOT`` has no FTS5 form and is
        left as-is for the engine to reject.
        """
        parts: list[str] = []
        for idx, term in enumerate(self.terms):
            piece = term.render()
            if idx == 0:
                parts.append(f"NOT {piece}" if term.negated else piece)
            elif term.negated and term.connective == "AND":
                parts.append(f"NOT {piece}")
            else:
                parts.append(term.connective)
                parts.append(f"NOT {piece}" if term.negated else piece)
        return " ".join(parts)


def classify_term(text: str) -> TermKind:
    """Decide how a term is matched."""
    has_cjk = False
    all_cjk = True
    for ch in text:
        if is_cjk(ch):
            has_cjk = True
        elif not ch.isspace():
            all_cjk = False
    if has_cjk and all_cjk:
        return "phrase"
    if all(is_ascii_alphanumeric(ch) for ch in text):
        return "prefix"
    return "literal"


def split_query_terms(normalized: str) -> list[tuple[str, bool, bool]]:
    """Split a normalized query into ``(text, negated, joined_by_or)`` triples.

    Quoted spans are single non-negated terms. ``or`` keywords are consumed
    and flag the following term.
    """
    terms: list[tuple[str, bool, bool]] = []
    buffer: list[str] = []
    in_quotes = False
    pending_or = False

    def flush_bare() -> None:
        nonlocal pending_or
        token = "".join(buffer)
        buffer.clear()
        if not token.strip():
            return
        if token == _OR_KEYWORD:
            pending_or = True
            return
        negated = token.startswith(_NEGATION_PREFIX)
        content = token.lstrip(_NEGATION_PREFIX) if negated else token
        if content:
            terms.append((content, negated, pending_or))
            pending_or = False

    for ch in normalized:
        if ch == '"':
            if in_quotes:
                in_quotes = False
                phrase = "".join(buffer)
                buffer.clear()
                if phrase:
                    terms.append((phrase, False, pending_or))
                    pending_or = False
            else:
                flush_bare()
                in_quotes = True
        elif ch.isspace() and not in_quotes:
            flush_bare()
        else:
            buffer.append(ch)

    # an unterminated quote is treated as a bare token
    flush_bare()
    return terms


def compile_query(raw_query: str) -> Optional[CompiledQuery]:
    """Compile a user query.

    Parameters
    ----------
    raw_query : str
        Free-form query text

    Returns
    -------
    CompiledQuery or None
        None when the query has no indexable terms

    Examples
    --------
    >>> str(compile_query("苦艾"))
    '"苦 艾"'
    >>> str(compile_query("abc OR -def"))
    'abc* OR NOT def*'

    """
    normalized = normalize_text(raw_query.strip())
    if not normalized:
        return None

    compiled_terms: list[QueryTerm] = []
    pending_or = False
    for text, negated, joined_by_or in split_query_terms(normalized):
        pending_or = pending_or or joined_by_or
        if not tokenize_for_index(text):
            logger.debug("Dropping query term without indexable characters: %r", text)
            continue
        connective: Connective = "OR" if pending_or and compiled_terms else "AND"
        compiled_terms.append(QueryTerm(text=text, negated=negated, connective=connective, kind=classify_term(text)))
        pending_or = False

    if not compiled_terms:
        return None

    parts: list[str] = []
    for idx, term in enumerate(compiled_terms):
        if idx > 0:
            parts.append(term.connective)
        parts.append(f"NOT {term.render()}" if term.negated else term.render())

    return CompiledQuery(terms=tuple(compiled_terms), expression=" ".join(parts))


__all__ = ["QueryTerm", "CompiledQuery", "compile_query", "classify_term", "split_query_terms"]
