#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/storysearch/models.py
"""Data model for parsed story content and catalog entries.

Parsed story content is an ordered sequence of segments. ``StorySegment`` is
a closed union of frozen dataclasses, one per narrative shape, so dispatch
over segment kinds stays exhaustive. ``StoryEntry`` mirrors the metadata
records of the upstream review table, and ``IndexedStory`` pairs an entry with
the category it was discovered under.

"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Iterable, Mapping, Optional, Union

from storysearch.constants import DECISION_SEPARATOR, DIALOGUE_SEPARATOR
from storysearch.exceptions import MalformedDataError


@dataclass(frozen=True)
class Dialogue:
    """A line spoken by a named character."""

    kind: ClassVar[str] = "dialogue"

    speaker: str
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "speaker": self.speaker, "text": self.text}


@dataclass(frozen=True)
class Narration:
    """Unattributed narrative text."""

    kind: ClassVar[str] = "narration"

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "text": self.text}


@dataclass(frozen=True)
class Decision:
    """A player choice with its options in display order."""

    kind: ClassVar[str] = "decision"

    options: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "options": list(self.options)}


@dataclass(frozen=True)
class System:
    """A system popup or tutorial message, optionally attributed."""

    kind: ClassVar[str] = "system"

    text: str
    speaker: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "speaker": self.speaker, "text": self.text}


@dataclass(frozen=True)
class Subtitle:
    """On-screen caption text."""

    kind: ClassVar[str] = "subtitle"

    text: str
    alignment: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "text": self.text, "alignment": self.alignment}


@dataclass(frozen=True)
class Sticker:
    """Decorative or animated overlay text."""

    kind: ClassVar[str] = "sticker"

    text: str
    alignment: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "text": self.text, "alignment": self.alignment}


@dataclass(frozen=True)
class Header:
    """A section or chapter title."""

    kind: ClassVar[str] = "header"

    title: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "title": self.title}


StorySegment = Union[Dialogue, Narration, Decision, System, Subtitle, Sticker, Header]


@dataclass
class ParsedStoryContent:
    """Ordered segments produced by parsing one story script."""

    segments: list[StorySegment] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self):
        return iter(self.segments)

    def flatten(self) -> str:
        """Return the plain-text form used for indexing and snippets."""
        return flatten_segments(self.segments)

    def to_dict(self) -> dict[str, Any]:
        return {"segments": [segment.to_dict() for segment in self.segments]}


def segment_text(segment: StorySegment) -> str:
    """Render a single segment as one line of plain text."""
    if isinstance(segment, Dialogue):
        return f"{segment.speaker}{DIALOGUE_SEPARATOR}{segment.text}"
    if isinstance(segment, Decision):
        return DECISION_SEPARATOR.join(segment.options)
    if isinstance(segment, Header):
        return segment.title
    return segment.text


def flatten_segments(segments: Iterable[StorySegment]) -> str:
    """Join segments into plain text, one line per segment."""
    return "\n".join(segment_text(segment) for segment in segments)


# Field name on the dataclass -> key in the upstream JSON record
_STORY_ENTRY_KEYS = {
    "story_id": "storyId",
    "story_name": "storyName",
    "story_code": "storyCode",
    "story_group": "storyGroup",
    "story_sort": "storySort",
    "avg_tag": "avgTag",
    "story_txt": "storyTxt",
    "story_info": "storyInfo",
    "story_review_type": "storyReviewType",
    "unlock_type": "unLockType",
    "story_dependence": "storyDependence",
    "story_can_show": "storyCanShow",
    "story_can_enter": "storyCanEnter",
    "stage_count": "stageCount",
    "required_stages": "requiredStages",
    "cost_item_type": "costItemType",
    "cost_item_id": "costItemId",
    "cost_item_count": "costItemCount",
}

_REQUIRED_STRING_FIELDS = ("story_id", "story_name", "story_group", "story_txt")


@dataclass(frozen=True)
class StoryEntry:
    """Metadata record for one story, as listed in the review table.

    Only the identifying fields and ``story_txt`` are required; the unlock
    and requirement metadata is carried through untouched.
    """

    story_id: str
    story_name: str
    story_group: str
    story_sort: int
    story_txt: str
    story_code: Optional[str] = None
    avg_tag: Optional[str] = None
    story_info: Optional[str] = None
    story_review_type: Optional[str] = None
    unlock_type: Optional[str] = None
    story_dependence: Optional[str] = None
    story_can_show: Optional[int] = None
    story_can_enter: Optional[int] = None
    stage_count: Optional[int] = None
    required_stages: Optional[tuple[Mapping[str, Any], ...]] = None
    cost_item_type: Optional[str] = None
    cost_item_id: Optional[str] = None
    cost_item_count: Optional[int] = None

    @classmethod
    def from_json(cls, raw: Any) -> "StoryEntry":
        """Build an entry from an upstream ``infoUnlockDatas`` record.

        Raises
        ------
        MalformedDataError
            If the record is not an object, a required field is missing, or a
            field has the wrong type.

        """
        if not isinstance(raw, Mapping):
            raise MalformedDataError(f"Story record must be an object, got {type(raw).__name__}")

        source = str(raw.get("storyId"))
        values: dict[str, Any] = {}
        for attr, key in _STORY_ENTRY_KEYS.items():
            value = raw.get(key)
            if attr in _REQUIRED_STRING_FIELDS:
                if not isinstance(value, str):
                    raise MalformedDataError(f"Story record field '{key}' must be a string", source=source)
            elif attr == "story_sort":
                if isinstance(value, bool) or not isinstance(value, int):
                    raise MalformedDataError(f"Story record field '{key}' must be an integer", source=source)
            elif attr == "required_stages":
                if value is not None:
                    if not isinstance(value, list):
                        raise MalformedDataError(f"Story record field '{key}' must be a list")
                    value = tuple(dict(stage) for stage in value if isinstance(stage, Mapping))
            elif attr in ("story_can_show", "story_can_enter", "stage_count", "cost_item_count"):
                if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                    raise MalformedDataError(f"Story record field '{key}' must be an integer")
            elif value is not None and not isinstance(value, str):
                raise MalformedDataError(f"Story record field '{key}' must be a string")
            values[attr] = value
        return cls(**values)

    def to_json(self) -> dict[str, Any]:
        """Return the record in the upstream camelCase layout."""
        payload = asdict(self)
        if payload["required_stages"] is not None:
            payload["required_stages"] = [dict(stage) for stage in payload["required_stages"]]
        return {key: payload[attr] for attr, key in _STORY_ENTRY_KEYS.items()}


@dataclass(frozen=True)
class IndexedStory:
    """A story scheduled for indexing, with the category it was found under."""

    category_name: str
    entry_type: str
    story: StoryEntry


__all__ = [
    "Dialogue",
    "Narration",
    "Decision",
    "System",
    "Subtitle",
    "Sticker",
    "Header",
    "StorySegment",
    "ParsedStoryContent",
    "segment_text",
    "flatten_segments",
    "StoryEntry",
    "IndexedStory",
]
