"""Index abstractions and manifest utilities for story index backends."""

from __future__ import annotations

import json
import logging
import os
import secrets
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, ClassVar, Iterable, Mapping, MutableMapping

from storysearch.constants import INDEX_VERSION
from storysearch.exceptions import IndexUnavailableError
from storysearch.progress import ProgressCallback
from storysearch.search.query import CompiledQuery
from storysearch.search.types import IndexHit, IndexRow, IndexStatus

logger = logging.getLogger(__name__)

META_INDEX_VERSION = "index_version"
META_LAST_BUILT_AT = "last_built_at"
META_TOTAL_COUNT = "total_count"


@dataclass(frozen=True)
class IndexManifest:
    """Metadata stored alongside file-based index backends."""

    version: int
    backend: str
    index_id: str
    created_at: str
    last_built_at: int
    total_count: int
    rows_file: str
    options: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> "IndexManifest":
        """Create manifest from JSON-compatible mapping."""
        return cls(
            version=int(raw.get("version", 0)),
            backend=str(raw.get("backend", "unknown")),
            index_id=str(raw.get("index_id", "unknown")),
            created_at=str(raw.get("created_at", "")),
            last_built_at=int(raw.get("last_built_at", 0)),
            total_count=int(raw.get("total_count", 0)),
            rows_file=str(raw.get("rows_file", "")),
            options=dict(raw.get("options", {})),
        )

    def to_json(self) -> MutableMapping[str, Any]:
        """Return JSON-compatible manifest payload."""
        payload = asdict(self)
        payload["options"] = dict(self.options)
        return payload

    def metadata(self) -> dict[str, str]:
        """Return the manifest as index metadata key/value pairs."""
        return {
            META_INDEX_VERSION: str(self.version),
            META_LAST_BUILT_AT: str(self.last_built_at),
            META_TOTAL_COUNT: str(self.total_count),
        }


class BaseStoryIndex(ABC):
    """Abstract base class for persisted story index backends.

    A backend stores ``IndexRow`` records and answers ``CompiledQuery``
    searches ranked best first. ``rebuild`` replaces the whole content
    atomically: a failure part way through leaves the previous content in
    place.

    Parameters
    ----------
    path : Path
        Location of the persisted index (a database file or a directory,
        depending on the backend)

    """

    backend_name: ClassVar[str] = "base"

    def __init__(self, path: Path | str) -> None:
        """Bind the backend to its on-disk location."""
        self.path = Path(path)

    @abstractmethod
    def exists(self) -> bool:
        """Return True if a persisted index is present at ``path``."""

    @abstractmethod
    def row_count(self) -> int:
        """Return the number of stored rows, 0 when the index is missing."""

    @abstractmethod
    def rebuild(self, rows: Iterable[IndexRow], *, progress_callback: ProgressCallback | None = None) -> int:
        """Replace the index content with ``rows`` and return the number written."""

    @abstractmethod
    def search(self, query: CompiledQuery, *, limit: int) -> list[IndexHit]:
        """Execute ``query`` and return at most ``limit`` hits, best first."""

    @abstractmethod
    def read_metadata(self) -> dict[str, str]:
        """Return stored metadata (``index_version``, ``last_built_at``, ``total_count``)."""

    @abstractmethod
    def clear(self) -> None:
        """Delete the persisted index."""

    def status(self) -> IndexStatus:
        """Report whether the index holds rows and when it was built."""
        if not self.exists():
            return IndexStatus(ready=False, total=0, last_built_at=None)
        try:
            total = self.row_count()
            metadata = self.read_metadata()
        except IndexUnavailableError as exc:
            logger.warning("Story index at %s is unreadable: %s", self.path, exc)
            return IndexStatus(ready=False, total=0, last_built_at=None)

        last_built_at: int | None
        try:
            last_built_at = int(metadata[META_LAST_BUILT_AT])
        except (KeyError, ValueError):
            last_built_at = None
        return IndexStatus(ready=total > 0, total=max(total, 0), last_built_at=last_built_at)

    def is_ready(self) -> bool:
        """Return True if the index exists and holds at least one row."""
        return self.status().ready


class FileIndexMixin:
    """Manifest handling for backends persisted as a directory of files."""

    manifest_name: ClassVar[str] = "manifest.json"
    path: Path

    def _manifest_path(self) -> Path:
        return self.path / self.manifest_name

    def _new_rows_filename(self) -> str:
        return f"rows-{secrets.token_hex(6)}.jsonl"

    def _write_manifest(self, manifest: IndexManifest) -> None:
        """Write the manifest and swap it into place in one rename."""
        self.path.mkdir(parents=True, exist_ok=True)
        temp_path = self.path / f".{self.manifest_name}.{secrets.token_hex(4)}.tmp"
        temp_path.write_text(json.dumps(manifest.to_json(), indent=2), encoding="utf-8")
        os.replace(temp_path, self._manifest_path())

    def _read_manifest(self) -> IndexManifest:
        """Read the manifest from disk."""
        path = self._manifest_path()
        if not path.exists():
            raise IndexUnavailableError(f"Index manifest not found at {path}")
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise IndexUnavailableError(f"Index manifest at {path} is unreadable: {exc}", original_error=exc) from exc
        if not isinstance(raw, dict):
            raise IndexUnavailableError(f"Index manifest at {path} must contain an object")
        try:
            return IndexManifest.from_json(raw)
        except (TypeError, ValueError) as exc:
            raise IndexUnavailableError(f"Index manifest at {path} is invalid: {exc}", original_error=exc) from exc

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()


def manifest_is_current(manifest: IndexManifest) -> bool:
    """Return True if the manifest was written by the current schema generation."""
    return manifest.version >= INDEX_VERSION


__all__ = [
    "BaseStoryIndex",
    "FileIndexMixin",
    "IndexManifest",
    "manifest_is_current",
    "META_INDEX_VERSION",
    "META_LAST_BUILT_AT",
    "META_TOTAL_COUNT",
]
