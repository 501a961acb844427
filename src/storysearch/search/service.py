#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/storysearch/search/service.py
"""High-level orchestration for indexing and searching stories.

A search runs in two phases that share one code path for the plain, debug
and progress entry points:

1. The persisted index is queried with the compiled expression when it is
   ready. Index failures are logged and treated as "no index".
2. A linear scan over every story matches the normalized query against the
   story name and then the flattened story text.

Index results keep their ranked order; scan results are appended when their
story id has not been seen, and the merged list is capped at
``SearchOptions.result_limit``.

"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Iterable, Optional

from storysearch.catalog import StorySource, format_category_label
from storysearch.constants import DEFAULT_INDEX_FILENAME, SNIPPET_ELLIPSIS
from storysearch.exceptions import DependencyError, SearchIndexError, StoryReadError, ValidationError
from storysearch.options.search import SearchOptions
from storysearch.parsers.markup import MarkupParser
from storysearch.progress import ProgressCallback, emit_progress
from storysearch.search.bm25 import BM25StoryIndex, KeywordIndexConfig
from storysearch.search.builder import IndexBuilder
from storysearch.search.fts import Fts5StoryIndex
from storysearch.search.index import BaseStoryIndex
from storysearch.search.query import CompiledQuery, compile_query
from storysearch.search.snippets import extract_context
from storysearch.search.types import IndexHit, IndexStatus, SearchDebugResponse, SearchResult
from storysearch.utils.text import normalize_text

logger = logging.getLogger(__name__)

BM25_INDEX_DIRNAME = "story_index_bm25"


def default_index_path(data_dir: Path | str, backend: str) -> Path:
    """Return the conventional index location inside ``data_dir`` for ``backend``."""
    base = Path(data_dir)
    if backend == "bm25":
        return base / BM25_INDEX_DIRNAME
    return base / DEFAULT_INDEX_FILENAME


def create_index(path: Path | str, options: SearchOptions | None = None) -> BaseStoryIndex:
    """Instantiate the index backend selected by ``options.index_backend``.

    Raises
    ------
    ValidationError
        If the backend name is unknown

    """
    options = options or SearchOptions()
    if options.index_backend == "fts5":
        return Fts5StoryIndex(path)
    if options.index_backend == "bm25":
        return BM25StoryIndex(path, config=KeywordIndexConfig(k1=options.bm25_k1, b=options.bm25_b))
    raise ValidationError(
        f"Unknown index backend: {options.index_backend}",
        parameter_name="index_backend",
        parameter_value=options.index_backend,
    )


class _SearchTrace:
    """Collects human-readable trace lines for the debug entry point."""

    def __init__(self, enabled: bool) -> None:
        self.enabled = enabled
        self.lines: list[str] = []

    def log(self, message: str) -> None:
        logger.debug(message)
        if self.enabled:
            self.lines.append(message)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def merge_results(
    index_results: Iterable[SearchResult], fallback_results: Iterable[SearchResult], limit: int
) -> tuple[list[SearchResult], int]:
    """Merge index and scan results, de-duplicated by story id and capped at ``limit``.

    Returns
    -------
    tuple
        (merged results, number of results contributed by the scan)

    """
    seen: set[str] = set()
    merged: list[SearchResult] = []
    for result in index_results:
        if len(merged) >= limit:
            break
        if result.story_id not in seen:
            seen.add(result.story_id)
            merged.append(result)

    added = 0
    for result in fallback_results:
        if len(merged) >= limit:
            break
        if result.story_id not in seen:
            seen.add(result.story_id)
            merged.append(result)
            added += 1
    return merged, added


class StorySearchService:
    """Service object coordinating index maintenance and story search.

    Every public operation holds the service lock for its whole duration.

    Parameters
    ----------
    source : StorySource
        Content source, usually a ``StoryCatalog``
    index : BaseStoryIndex, optional
        Index backend. Created from ``options`` and ``index_path`` when omitted.
    options : SearchOptions, optional
        Search configuration
    index_path : Path, optional
        Index location used when ``index`` is omitted. Defaults to a location
        inside the source's ``data_dir``.

    """

    def __init__(
        self,
        source: StorySource,
        index: BaseStoryIndex | None = None,
        *,
        options: SearchOptions | None = None,
        index_path: Path | str | None = None,
    ) -> None:
        """Initialise the service with its content source and index backend."""
        self.source = source
        self.options = options or SearchOptions()
        if index is None:
            if index_path is None:
                data_dir = getattr(source, "data_dir", None)
                if data_dir is None:
                    raise ValidationError(
                        "index_path is required when the story source has no data_dir",
                        parameter_name="index_path",
                    )
                index_path = default_index_path(data_dir, self.options.index_backend)
            index = create_index(index_path, self.options)
        self.index = index
        self._parser = MarkupParser(nickname_label=self.options.nickname_label)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Index maintenance
    # ------------------------------------------------------------------

    def rebuild_index(self, progress_callback: ProgressCallback | None = None) -> int:
        """Rebuild the index from every story of the source.

        Returns
        -------
        int
            Number of rows written

        Raises
        ------
        NotInstalledError
            If no content is installed
        SearchIndexError
            If the backend fails; the previous index content is kept

        """
        with self._lock:
            builder = IndexBuilder(self.source, nickname_label=self.options.nickname_label)
            return builder.rebuild(self.index, progress_callback=progress_callback)

    def index_status(self) -> IndexStatus:
        """Return the readiness of the persisted index."""
        with self._lock:
            return self.index.status()

    def invalidate_index(self) -> None:
        """Delete the persisted index so the next search falls back to scanning."""
        with self._lock:
            logger.info("Invalidating story index at %s", self.index.path)
            self.index.clear()

    # ------------------------------------------------------------------
    # Search entry points
    # ------------------------------------------------------------------

    def search(self, query: str) -> list[SearchResult]:
        """Search stories for ``query``.

        Raises
        ------
        NotInstalledError
            If no content is installed

        """
        with self._lock:
            return self._run(query, _SearchTrace(enabled=False), None)

    def search_with_debug(self, query: str) -> SearchDebugResponse:
        """Search stories and return the results with trace lines of each decision."""
        with self._lock:
            trace = _SearchTrace(enabled=True)
            results = self._run(query, trace, None)
            return SearchDebugResponse(results=results, logs=trace.lines)

    def search_with_progress(self, query: str, progress_callback: ProgressCallback | None) -> list[SearchResult]:
        """Search stories, reporting scan progress to ``progress_callback``.

        Events carry ``metadata["phase"]``: ``"scan"`` during the linear scan
        and ``"done"`` once at the end. The index query reports nothing.
        """
        with self._lock:
            return self._run(query, _SearchTrace(enabled=False), progress_callback)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(self, query: str, trace: _SearchTrace, progress_callback: ProgressCallback | None) -> list[SearchResult]:
        trimmed = query.strip()
        normalized = normalize_text(trimmed)
        if not normalized:
            trace.log("Query is empty after normalization, returning no results")
            emit_progress(progress_callback, "finished", "Query is empty", 1, 1, phase="done")
            return []

        start = time.perf_counter()
        limit = self.options.result_limit
        trace.log(f'Searching for "{trimmed}"')
        trace.log(f'Normalized query: "{normalized}"')

        compiled = compile_query(trimmed)
        if compiled is None:
            trace.log("Compiled query is empty (punctuation or no indexable characters)")
        else:
            trace.log(f"Index query: {compiled.expression}")

        index_start = time.perf_counter()
        index_ready = self._index_ready(trace)
        index_results: list[SearchResult] = []
        if index_ready:
            if compiled is None:
                trace.log("Index is ready but the query has no indexable terms, returning no results")
                emit_progress(progress_callback, "finished", "No indexable terms", 1, 1, phase="done")
                return []
            hits = self._query_index(compiled, limit, trace)
            if hits is not None:
                index_results = [self._result_from_hit(hit, normalized) for hit in hits]
                trace.log(f"Index query finished in {_elapsed_ms(index_start)} ms with {len(index_results)} results")
        else:
            trace.log(f"Index is not available or not built ({_elapsed_ms(index_start)} ms)")

        scan_start = time.perf_counter()
        known_ids = {result.story_id for result in index_results}
        fallback_results = self._scan(normalized, limit - len(known_ids), known_ids, progress_callback)
        trace.log(f"Linear scan finished in {_elapsed_ms(scan_start)} ms with {len(fallback_results)} new results")
        if len(known_ids) + len(fallback_results) >= limit:
            trace.log(f"Result limit of {limit} reached, consider narrowing the query")

        merged, added = merge_results(index_results, fallback_results, limit)
        if added:
            trace.log(f"Linear scan added {added} results not found by the index")
        trace.log(f"Search finished in {_elapsed_ms(start)} ms with {len(merged)} results")
        emit_progress(progress_callback, "finished", "Search finished", 1, 1, phase="done", results=len(merged))
        return merged

    def _index_ready(self, trace: _SearchTrace) -> bool:
        try:
            return self.index.exists() and self.index.row_count() > 0
        except SearchIndexError as exc:
            logger.warning("Story index unavailable, falling back to linear scan: %s", exc)
            trace.log(f"Index could not be opened: {exc}")
            return False

    def _query_index(self, compiled: CompiledQuery, limit: int, trace: _SearchTrace) -> Optional[list[IndexHit]]:
        try:
            return self.index.search(compiled, limit=limit)
        except (SearchIndexError, DependencyError) as exc:
            logger.warning("Story index query failed, falling back to linear scan: %s", exc)
            trace.log(f"Index query failed, falling back to linear scan: {exc}")
            return None

    def _result_from_hit(self, hit: IndexHit, normalized_query: str) -> SearchResult:
        matched_text = extract_context(hit.raw_content, normalized_query, self.options.context_window)
        if not matched_text.strip() and hit.snippet.strip():
            matched_text = hit.snippet.replace("\n", " ").replace("\r", " ").replace("  ", " ")
        if not matched_text:
            preview = hit.raw_content[: self.options.preview_chars]
            matched_text = f"{preview}{SNIPPET_ELLIPSIS}" if len(preview) < len(hit.raw_content) else preview
        return SearchResult(
            story_id=hit.story_id,
            story_name=hit.story_name,
            matched_text=matched_text,
            category=hit.category,
        )

    def _scan(
        self,
        normalized_query: str,
        limit: int,
        known_ids: set[str],
        progress_callback: ProgressCallback | None,
    ) -> list[SearchResult]:
        """Match every story by name, then by flattened text, until ``limit`` new results.

        Stories in ``known_ids`` were already returned by the index and are not read.
        """
        stories = self.source.collect_stories_for_index()
        total = len(stories)
        emit_progress(progress_callback, "started", "Scanning stories", 0, max(total, 1), phase="scan")

        results: list[SearchResult] = []
        for idx, indexed in enumerate(stories, start=1):
            if len(results) >= limit:
                break
            story = indexed.story
            if story.story_id in known_ids:
                emit_progress(progress_callback, "item_done", f"Scanned {idx} / {total}", idx, total, phase="scan")
                continue
            category = format_category_label(indexed.entry_type, indexed.category_name)

            if normalized_query in normalize_text(story.story_name):
                results.append(SearchResult(story.story_id, story.story_name, story.story_name, category))
                emit_progress(
                    progress_callback, "detected", f"Matched {story.story_id}", idx, total, phase="scan"
                )
            else:
                try:
                    raw_text = self.source.read_story_text(story.story_txt)
                except StoryReadError as exc:
                    logger.debug("Skipping story %s during scan: %s", story.story_id, exc)
                    raw_text = None
                if raw_text is not None:
                    flattened = self._parser.parse(raw_text).flatten()
                    if normalized_query in normalize_text(flattened):
                        matched_text = extract_context(flattened, normalized_query, self.options.context_window)
                        results.append(SearchResult(story.story_id, story.story_name, matched_text, category))
                        emit_progress(
                            progress_callback, "detected", f"Matched {story.story_id}", idx, total, phase="scan"
                        )

            emit_progress(progress_callback, "item_done", f"Scanned {idx} / {total}", idx, total, phase="scan")

        return results


__all__ = ["StorySearchService", "create_index", "default_index_path", "merge_results"]
