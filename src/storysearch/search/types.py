"""Shared data structures for the search subsystem."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, MutableMapping, Optional


@dataclass(frozen=True)
class IndexRow:
    """One persisted row of the story index.

    ``story_name``, ``tokenized_content`` and ``story_code`` are searchable;
    ``story_id``, ``category`` and ``raw_content`` are stored for display.
    """

    story_id: str
    story_name: str
    category: str
    tokenized_content: str
    story_code: str
    raw_content: str

    def to_json(self) -> MutableMapping[str, Any]:
        """Return a JSON-compatible mapping of the row."""
        return {
            "story_id": self.story_id,
            "story_name": self.story_name,
            "category": self.category,
            "tokenized_content": self.tokenized_content,
            "story_code": self.story_code,
            "raw_content": self.raw_content,
        }


@dataclass(frozen=True)
class IndexHit:
    """A row matched by an index backend, with the backend's own snippet if any."""

    story_id: str
    story_name: str
    category: str
    raw_content: str
    snippet: str = ""
    score: float = 0.0


@dataclass(frozen=True)
class SearchResult:
    """A story matching a query, with the text shown for the match."""

    story_id: str
    story_name: str
    matched_text: str
    category: str

    def to_dict(self) -> MutableMapping[str, Any]:
        """Return the result in the camelCase layout used by the application layer."""
        return {
            "storyId": self.story_id,
            "storyName": self.story_name,
            "matchedText": self.matched_text,
            "category": self.category,
        }


@dataclass(frozen=True)
class IndexStatus:
    """Readiness of the persisted index."""

    ready: bool
    total: int
    last_built_at: Optional[int] = None

    def to_dict(self) -> MutableMapping[str, Any]:
        return {"ready": self.ready, "total": self.total, "lastBuiltAt": self.last_built_at}


@dataclass
class SearchDebugResponse:
    """Search results plus the trace lines recorded while producing them."""

    results: list[SearchResult] = field(default_factory=list)
    logs: list[str] = field(default_factory=list)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {"results": [result.to_dict() for result in self.results], "logs": list(self.logs)}
