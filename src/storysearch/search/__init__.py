"""Search subsystem exposed to the public API."""

from __future__ import annotations

from pathlib import Path

from storysearch.catalog import StoryCatalog
from storysearch.options.search import SearchOptions
from storysearch.progress import ProgressCallback
from storysearch.search.service import StorySearchService
from storysearch.search.types import IndexStatus, SearchDebugResponse, SearchResult


def build_search_service(
    data_dir: Path | str,
    *,
    options: SearchOptions | None = None,
    index_path: Path | str | None = None,
) -> StorySearchService:
    """Create a search service over the story content installed in ``data_dir``."""
    return StorySearchService(StoryCatalog(data_dir), options=options, index_path=index_path)


def rebuild_story_index(
    data_dir: Path | str,
    *,
    options: SearchOptions | None = None,
    index_path: Path | str | None = None,
    progress_callback: ProgressCallback | None = None,
) -> int:
    """Rebuild the story index for ``data_dir`` and return the number of rows written."""
    service = build_search_service(data_dir, options=options, index_path=index_path)
    return service.rebuild_index(progress_callback=progress_callback)


def search_stories(
    data_dir: Path | str,
    query: str,
    *,
    options: SearchOptions | None = None,
    index_path: Path | str | None = None,
    progress_callback: ProgressCallback | None = None,
) -> list[SearchResult]:
    """Search the stories installed in ``data_dir`` in a single convenience call."""
    service = build_search_service(data_dir, options=options, index_path=index_path)
    if progress_callback is not None:
        return service.search_with_progress(query, progress_callback)
    return service.search(query)


__all__ = [
    "IndexStatus",
    "SearchDebugResponse",
    "SearchResult",
    "StorySearchService",
    "build_search_service",
    "rebuild_story_index",
    "search_stories",
]
