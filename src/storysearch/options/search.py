"""Configuration options for story search."""

from __future__ import annotations

from dataclasses import dataclass, field

from storysearch.constants import (
    DEFAULT_BM25_B,
    DEFAULT_BM25_K1,
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_INDEX_BACKEND,
    DEFAULT_NICKNAME_LABEL,
    DEFAULT_PREVIEW_CHARS,
    DEFAULT_RESULT_LIMIT,
    INDEX_BACKENDS,
)
from storysearch.options.base import CloneFrozenMixin


@dataclass(frozen=True)
class SearchOptions(CloneFrozenMixin):
    """Search configuration used by the service, the CLI and the API."""

    result_limit: int = field(
        default=DEFAULT_RESULT_LIMIT,
        metadata={
            "help": "Maximum number of results returned by one search",
            "type": int,
            "importance": "core",
        },
    )
    context_window: int = field(
        default=DEFAULT_CONTEXT_WINDOW,
        metadata={
            "help": "Characters of context shown on each side of a match",
            "type": int,
            "importance": "core",
        },
    )
    index_backend: str = field(
        default=DEFAULT_INDEX_BACKEND,
        metadata={
            "help": "Index backend to use",
            "choices": list(INDEX_BACKENDS),
            "importance": "core",
        },
    )
    bm25_k1: float = field(
        default=DEFAULT_BM25_K1,
        metadata={
            "help": "BM25 k1 parameter (bm25 backend only)",
            "type": float,
            "importance": "advanced",
        },
    )
    bm25_b: float = field(
        default=DEFAULT_BM25_B,
        metadata={
            "help": "BM25 b parameter (bm25 backend only)",
            "type": float,
            "importance": "advanced",
        },
    )
    nickname_label: str = field(
        default=DEFAULT_NICKNAME_LABEL,
        metadata={
            "help": "Text substituted for the player nickname placeholder",
            "importance": "advanced",
        },
    )
    preview_chars: int = field(
        default=DEFAULT_PREVIEW_CHARS,
        metadata={
            "help": "Characters of story text shown when no match context can be located",
            "type": int,
            "importance": "advanced",
        },
    )

    def __post_init__(self) -> None:
        """Validate numeric ranges and the backend name at construction time."""
        if self.result_limit <= 0:
            raise ValueError("result_limit must be positive")
        if self.context_window < 0:
            raise ValueError("context_window cannot be negative")
        if self.index_backend not in INDEX_BACKENDS:
            raise ValueError(f"index_backend must be one of: {', '.join(INDEX_BACKENDS)}")
        if self.bm25_k1 <= 0:
            raise ValueError("bm25_k1 must be positive")
        if not (0 <= self.bm25_b <= 1):
            raise ValueError("bm25_b must be between 0 and 1")
        if self.preview_chars <= 0:
            raise ValueError("preview_chars must be positive")


__all__ = ["SearchOptions"]
