"""BM25 story index backed by rank-bm25.

Rows are stored as JSON lines next to a ``manifest.json`` in the index
directory. A rebuild writes a fresh rows file first and then swaps the
manifest in, so readers always see either the old or the new generation.

Queries are evaluated against each row's token list: phrase terms must
appear as a contiguous run of character tokens, prefix terms must start a
token, and literal terms must appear as a contiguous run of their own
tokens. Terms combine left to right with their ``AND``/``OR`` connective and
optional ``NOT``. Matching rows are ranked by BM25 score.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from storysearch.constants import DEFAULT_BM25_B, DEFAULT_BM25_K1, DEPS_SEARCH_BM25, INDEX_VERSION
from storysearch.exceptions import IndexUnavailableError, SearchIndexError
from storysearch.progress import ProgressCallback, emit_progress
from storysearch.search.index import BaseStoryIndex, FileIndexMixin, IndexManifest, manifest_is_current
from storysearch.search.query import CompiledQuery, QueryTerm
from storysearch.search.tokenizer import tokenize_for_index
from storysearch.search.types import IndexHit, IndexRow
from storysearch.utils.decorators import requires_dependencies

logger = logging.getLogger(__name__)


@dataclass
class KeywordIndexConfig:
    """Configuration settings for BM25 ranking."""

    k1: float = DEFAULT_BM25_K1
    b: float = DEFAULT_BM25_B


def _contains_run(tokens: Sequence[str], run: Sequence[str]) -> bool:
    """Return True if ``run`` occurs contiguously in ``tokens``."""
    width = len(run)
    if width == 0:
        return False
    first = run[0]
    for idx in range(len(tokens) - width + 1):
        if tokens[idx] == first and list(tokens[idx : idx + width]) == list(run):
            return True
    return False


def _document_tokens(row: IndexRow) -> list[str]:
    tokens = row.tokenized_content.split()
    if row.story_code:
        tokens.extend(tokenize_for_index(row.story_code))
    return tokens


class BM25StoryIndex(FileIndexMixin, BaseStoryIndex):
    """Story index persisted as JSON lines and ranked with BM25.

    Parameters
    ----------
    path : Path
        Index directory
    config : KeywordIndexConfig, optional
        BM25 ``k1`` and ``b`` parameters

    """

    backend_name = "bm25"

    def __init__(self, path, *, config: KeywordIndexConfig | None = None) -> None:
        """Bind the index to ``path``; rows are loaded lazily on first search."""
        super().__init__(path)
        self.config = config or KeywordIndexConfig()
        self._loaded_id: str | None = None
        self._rows: list[IndexRow] = []
        self._corpus: list[list[str]] = []
        self._backend: Any = None
        self._bm25_constructor: type | None = None

    @requires_dependencies("search_bm25", DEPS_SEARCH_BM25)
    def _ensure_backend(self) -> None:
        if self._bm25_constructor is None:
            from rank_bm25 import BM25Okapi

            self._bm25_constructor = BM25Okapi

    def exists(self) -> bool:
        return self._manifest_path().is_file()

    def row_count(self) -> int:
        if not self.exists():
            return 0
        return self._read_manifest().total_count

    def read_metadata(self) -> dict[str, str]:
        if not self.exists():
            return {}
        return self._read_manifest().metadata()

    def rebuild(self, rows: Iterable[IndexRow], *, progress_callback: ProgressCallback | None = None) -> int:
        """Write ``rows`` to a new generation and publish it via the manifest.

        Raises
        ------
        SearchIndexError
            If the rows or manifest cannot be written. The previous generation is kept.

        """
        previous: IndexManifest | None = None
        if self.exists():
            try:
                previous = self._read_manifest()
            except IndexUnavailableError as exc:
                logger.warning("Ignoring unreadable manifest during rebuild: %s", exc)

        rows_file = self._new_rows_filename()
        rows_path = self.path / rows_file
        total = 0
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            with rows_path.open("w", encoding="utf-8") as handle:
                for row in rows:
                    handle.write(json.dumps(row.to_json(), ensure_ascii=False) + "\n")
                    total += 1
            manifest = IndexManifest(
                version=INDEX_VERSION,
                backend=self.backend_name,
                index_id=rows_file.removesuffix(".jsonl"),
                created_at=self._now_iso(),
                last_built_at=int(time.time()),
                total_count=total,
                rows_file=rows_file,
                options={"k1": self.config.k1, "b": self.config.b},
            )
            self._write_manifest(manifest)
        except OSError as exc:
            rows_path.unlink(missing_ok=True)
            raise SearchIndexError(f"Failed to write story index to {self.path}: {exc}", original_error=exc) from exc
        except BaseException:
            rows_path.unlink(missing_ok=True)
            raise

        if previous is not None and previous.rows_file and previous.rows_file != rows_file:
            (self.path / previous.rows_file).unlink(missing_ok=True)
        self._loaded_id = None

        emit_progress(progress_callback, "item_done", "Story index committed", total, total, item_type="index")
        return total

    def _load(self) -> None:
        """Load the current generation unless it is already in memory."""
        manifest = self._read_manifest()
        if manifest.index_id == self._loaded_id:
            return
        if not manifest_is_current(manifest):
            raise IndexUnavailableError(
                f"Story index at {self.path} has schema {manifest.version}, expected {INDEX_VERSION}"
            )

        rows: list[IndexRow] = []
        rows_path = self.path / manifest.rows_file
        try:
            with rows_path.open("r", encoding="utf-8") as handle:
                for line in handle:
                    if not line.strip():
                        continue
                    raw = json.loads(line)
                    if not isinstance(raw, dict):
                        raise ValueError(f"row is not an object: {line.strip()[:40]}")
                    rows.append(
                        IndexRow(
                            story_id=str(raw["story_id"]),
                            story_name=str(raw.get("story_name", "")),
                            category=str(raw.get("category", "")),
                            tokenized_content=str(raw.get("tokenized_content", "")),
                            story_code=str(raw.get("story_code", "")),
                            raw_content=str(raw.get("raw_content", "")),
                        )
                    )
        except (OSError, ValueError, KeyError) as exc:
            raise IndexUnavailableError(f"Failed to load story index rows from {rows_path}: {exc}") from exc

        self._ensure_backend()
        self._rows = rows
        self._corpus = [_document_tokens(row) for row in rows]
        if self._corpus and self._bm25_constructor is not None:
            self._backend = self._bm25_constructor(self._corpus, k1=self.config.k1, b=self.config.b)
        else:
            self._backend = None
        self._loaded_id = manifest.index_id
        logger.debug("Loaded %d story index rows from %s", len(rows), rows_path)

    def _term_matches(self, term: QueryTerm, tokens: Sequence[str]) -> bool:
        if term.kind == "phrase":
            return _contains_run(tokens, term.characters)
        if term.kind == "prefix":
            return any(token.startswith(term.text) for token in tokens)
        return _contains_run(tokens, tokenize_for_index(term.text))

    def _matches(self, query: CompiledQuery, tokens: Sequence[str]) -> bool:
        result = False
        for idx, term in enumerate(query.terms):
            value = self._term_matches(term, tokens) != term.negated
            if idx == 0:
                result = value
            elif term.connective == "OR":
                result = result or value
            else:
                result = result and value
        return result

    def _scoring_tokens(self, query: CompiledQuery) -> list[str]:
        vocabulary = {token for tokens in self._corpus for token in tokens}
        scoring: list[str] = []
        for term in query.terms:
            if term.negated:
                continue
            if term.kind == "prefix":
                scoring.extend(sorted(token for token in vocabulary if token.startswith(term.text)))
            else:
                scoring.extend(tokenize_for_index(term.text))
        return scoring

    def search(self, query: CompiledQuery, *, limit: int) -> list[IndexHit]:
        """Return rows satisfying ``query`` ranked by BM25 score, best first."""
        self._load()
        if self._backend is None or limit <= 0:
            return []

        matched = [idx for idx, tokens in enumerate(self._corpus) if self._matches(query, tokens)]
        if not matched:
            return []

        scoring = self._scoring_tokens(query)
        scores = self._backend.get_scores(scoring) if scoring else [0.0] * len(self._corpus)
        ranked = sorted(matched, key=lambda idx: (-float(scores[idx]), idx))

        hits: list[IndexHit] = []
        for idx in ranked[:limit]:
            row = self._rows[idx]
            hits.append(
                IndexHit(
                    story_id=row.story_id,
                    story_name=row.story_name,
                    category=row.category,
                    raw_content=row.raw_content,
                    score=float(scores[idx]),
                )
            )
        return hits

    def clear(self) -> None:
        """Remove the manifest and every rows file in the index directory."""
        if not self.path.is_dir():
            return
        self._manifest_path().unlink(missing_ok=True)
        for rows_path in self.path.glob("rows-*.jsonl"):
            rows_path.unlink(missing_ok=True)
        self._loaded_id = None
        self._rows = []
        self._corpus = []
        self._backend = None


__all__ = ["BM25StoryIndex", "KeywordIndexConfig"]
