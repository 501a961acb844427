"""storysearch - full-text search over interactive story scripts.

storysearch parses the bracketed markup of story scripts into structured
segments, indexes them for CJK-aware full-text search and answers queries
with a hybrid of ranked index lookups and an exact linear scan.

Key Features
------------
- Markup parser producing dialogue, narration, decision and system segments
- Unicode normalization and one-token-per-character CJK tokenization
- Boolean query syntax with ``or``, ``-negation`` and quoted phrases
- SQLite FTS5 index (default) or a BM25 index backed by rank-bm25
- Context snippets cut from the original text around each match

Requirements
------------
- Python 3.10+
- SQLite with FTS5 for the default index backend
- ``rank-bm25`` for the optional BM25 backend

Examples
--------
    >>> from storysearch import StoryCatalog, StorySearchService
    >>> service = StorySearchService(StoryCatalog("/data/arknights"))
    >>> service.rebuild_index()
    >>> for result in service.search("凯尔希"):
    ...     print(result.story_name, result.matched_text)

"""

from __future__ import annotations

from storysearch.catalog import StoryCatalog, StorySource, format_category_label
from storysearch.exceptions import (
    DependencyError,
    FileError,
    IndexQueryError,
    IndexUnavailableError,
    MalformedDataError,
    NotInstalledError,
    SearchIndexError,
    StoryNotFoundError,
    StoryReadError,
    StorySearchError,
    ValidationError,
)
from storysearch.models import (
    Decision,
    Dialogue,
    Header,
    IndexedStory,
    Narration,
    ParsedStoryContent,
    Sticker,
    StoryEntry,
    StorySegment,
    Subtitle,
    System,
    flatten_segments,
)
from storysearch.options import SearchOptions
from storysearch.parsers import MarkupParser, parse_story_text
from storysearch.progress import ProgressCallback, ProgressEvent
from storysearch.search import build_search_service, rebuild_story_index, search_stories
from storysearch.search.query import CompiledQuery, compile_query
from storysearch.search.service import StorySearchService
from storysearch.search.snippets import extract_context
from storysearch.search.tokenizer import tokenize_for_index
from storysearch.search.types import IndexStatus, SearchDebugResponse, SearchResult
from storysearch.utils.text import normalize_text

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Parsing
    "MarkupParser",
    "parse_story_text",
    "ParsedStoryContent",
    "StorySegment",
    "Dialogue",
    "Narration",
    "Decision",
    "System",
    "Subtitle",
    "Sticker",
    "Header",
    "flatten_segments",
    # Catalog
    "StoryCatalog",
    "StorySource",
    "StoryEntry",
    "IndexedStory",
    "format_category_label",
    # Search
    "SearchOptions",
    "StorySearchService",
    "SearchResult",
    "SearchDebugResponse",
    "IndexStatus",
    "CompiledQuery",
    "compile_query",
    "normalize_text",
    "tokenize_for_index",
    "extract_context",
    "build_search_service",
    "rebuild_story_index",
    "search_stories",
    # Progress
    "ProgressEvent",
    "ProgressCallback",
    # Exceptions
    "StorySearchError",
    "ValidationError",
    "NotInstalledError",
    "MalformedDataError",
    "StoryNotFoundError",
    "FileError",
    "StoryReadError",
    "SearchIndexError",
    "IndexUnavailableError",
    "IndexQueryError",
    "DependencyError",
]
