#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/storysearch/catalog.py
"""Story catalog backed by the upstream game data layout.

The catalog reads ``zh_CN/gamedata/excel/story_review_table.json`` and the
story scripts under ``zh_CN/gamedata/story/`` inside a data directory. It is
the content source for index rebuilds and fallback scans and also serves
grouped story listings.

Every operation checks for installed content first and raises
``NotInstalledError`` when the review table is missing.

"""

from __future__ import annotations

import functools
import json
import logging
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from storysearch.constants import (
    DEFAULT_ACTIVITY_GROUP_NAME,
    DEFAULT_MAIN_GROUP_NAME,
    DEFAULT_SIDESTORY_GROUP_NAME,
    ENTRY_TYPE_DISPLAY_NAMES,
    STORY_DIRECTORY_SEPARATOR,
    STORY_FILE_SUFFIX,
    STORY_REVIEW_TABLE_PATH,
    STORY_TEXT_ROOT,
    UNKNOWN_ENTRY_TYPE,
)
from storysearch.exceptions import (
    FileError,
    MalformedDataError,
    NotInstalledError,
    StoryNotFoundError,
    StoryReadError,
)
from storysearch.models import IndexedStory, StoryEntry

logger = logging.getLogger(__name__)

StoryGroup = tuple[str, list[StoryEntry]]

_INT32_MAX = 2**31 - 1
_MISSING_START_TIME = 2**63 - 1


@runtime_checkable
class StorySource(Protocol):
    """Content source consumed by the index builder and the search service."""

    def is_installed(self) -> bool:
        """Return True once story content is available."""
        ...

    def collect_stories_for_index(self) -> list[IndexedStory]:
        """Return every indexable story, de-duplicated and sorted by story id."""
        ...

    def read_story_text(self, story_path: str) -> str:
        """Return the raw markup of the story referenced by ``story_path``."""
        ...


def entry_type_display_name(entry_type: str) -> str:
    """Return the display name of an entry type, or the type itself when unknown."""
    return ENTRY_TYPE_DISPLAY_NAMES.get(entry_type, entry_type)


def format_category_label(entry_type: str, category_name: str) -> str:
    """Build the category label stored with each index row.

    Examples
    --------
    >>> format_category_label("MAINLINE", "黑暗时代·上")
    '主线 | 黑暗时代·上'
    >>> format_category_label("NONE", "干员密录")
    '干员密录'

    """
    prefix = entry_type_display_name(entry_type)
    name = category_name.strip()
    if not name or name == prefix:
        return prefix
    return f"{prefix} | {name}"


def extract_numeric_parts(text: str) -> list[int]:
    """Return the runs of ASCII digits in ``text`` as integers.

    Runs too large for a 32-bit signed integer are skipped.
    """
    parts: list[int] = []
    current: list[str] = []
    for ch in text + " ":
        if "0" <= ch <= "9":
            current.append(ch)
            continue
        if current:
            value = int("".join(current))
            if value <= _INT32_MAX:
                parts.append(value)
            current = []
    return parts


def compare_story_group_ids(a: str, b: str) -> int:
    """Order group ids by their numeric parts, then lexically.

    Numeric parts are compared element-wise with the shorter list padded with
    zeros, so ``main_2`` sorts before ``main_10``.

    Returns
    -------
    int
        Negative, zero or positive like a classic ``cmp`` function

    """
    a_parts = extract_numeric_parts(a)
    b_parts = extract_numeric_parts(b)
    if a_parts or b_parts:
        width = max(len(a_parts), len(b_parts))
        a_parts.extend([0] * (width - len(a_parts)))
        b_parts.extend([0] * (width - len(b_parts)))
        for a_part, b_part in zip(a_parts, b_parts):
            if a_part != b_part:
                return -1 if a_part < b_part else 1
    return (a > b) - (a < b)


group_id_sort_key = functools.cmp_to_key(compare_story_group_ids)


def _group_name(value: Mapping[str, Any], default: str) -> str:
    name = value.get("name")
    return name if isinstance(name, str) else default


def _parse_entries(unlock_datas: Iterable[Any]) -> list[StoryEntry]:
    """Parse unlock records, skipping the ones that are not valid stories."""
    stories: list[StoryEntry] = []
    for raw in unlock_datas:
        try:
            stories.append(StoryEntry.from_json(raw))
        except MalformedDataError as exc:
            logger.debug("Skipping story record: %s", exc)
    return stories


def _sorted_by_story_sort(stories: list[StoryEntry]) -> list[StoryEntry]:
    return sorted(stories, key=lambda story: story.story_sort)


class StoryCatalog:
    """Read access to installed story content.

    Parameters
    ----------
    data_dir : Path or str
        Directory holding the ``zh_CN/gamedata`` tree

    """

    def __init__(self, data_dir: Path | str) -> None:
        """Bind the catalog to ``data_dir``."""
        self.data_dir = Path(data_dir)

    def __repr__(self) -> str:
        return f"StoryCatalog(data_dir={str(self.data_dir)!r})"

    @property
    def review_table_path(self) -> Path:
        return self.data_dir / STORY_REVIEW_TABLE_PATH

    @property
    def story_root(self) -> Path:
        return self.data_dir / STORY_TEXT_ROOT

    def is_installed(self) -> bool:
        """Return True if the story review table exists."""
        return self.review_table_path.is_file()

    def _require_installed(self) -> None:
        if not self.is_installed():
            raise NotInstalledError(data_dir=str(self.data_dir))

    def _load_review_table(self) -> dict[str, Any]:
        """Read and decode the review table.

        Raises
        ------
        NotInstalledError
            If the table does not exist
        FileError
            If the table cannot be read
        MalformedDataError
            If the table is not a JSON object

        """
        self._require_installed()
        path = self.review_table_path
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise FileError(
                f"Failed to read story review table: {exc}", file_path=str(path), original_error=exc
            ) from exc
        try:
            data = json.loads(content)
        except ValueError as exc:
            raise MalformedDataError(
                f"Failed to parse story review table: {exc}", source=str(path), original_error=exc
            ) from exc
        if not isinstance(data, dict):
            raise MalformedDataError("Story review table must be a JSON object", source=str(path))
        return data

    def _groups(self) -> Iterable[tuple[str, Mapping[str, Any]]]:
        for group_id, value in self._load_review_table().items():
            if isinstance(value, Mapping):
                yield group_id, value

    # ------------------------------------------------------------------
    # Indexing support
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_category_name(entry_type: str, group_id: str, value: Mapping[str, Any]) -> str:
        """Return the group's trimmed name, or ``"{display} ({group_id})"`` when it has none."""
        name = value.get("name")
        if isinstance(name, str) and name.strip():
            return name.strip()
        return f"{entry_type_display_name(entry_type)} ({group_id})"

    def collect_stories_for_index(self) -> list[IndexedStory]:
        """Return every indexable story.

        Records that fail to parse or have an empty ``storyTxt`` are skipped;
        the first occurrence of a story id wins.

        Returns
        -------
        list[IndexedStory]
            Stories sorted by ``story_id``

        """
        seen: set[str] = set()
        stories: list[IndexedStory] = []
        for group_id, value in self._groups():
            unlock_datas = value.get("infoUnlockDatas")
            if not isinstance(unlock_datas, list):
                continue
            entry_type = value.get("entryType")
            if not isinstance(entry_type, str):
                entry_type = UNKNOWN_ENTRY_TYPE
            category_name = self.resolve_category_name(entry_type, group_id, value)

            for story in _parse_entries(unlock_datas):
                if not story.story_txt.strip() or story.story_id in seen:
                    continue
                seen.add(story.story_id)
                stories.append(IndexedStory(category_name=category_name, entry_type=entry_type, story=story))

        stories.sort(key=lambda indexed: indexed.story.story_id)
        return stories

    def _resolve_story_path(self, story_path: str) -> Path:
        """Resolve ``story_path`` under the story root, rejecting traversal.

        Raises
        ------
        StoryReadError
            If the reference is absolute or escapes the story root

        """
        normalized = story_path.replace("\\", "/").strip()
        pure = PurePosixPath(normalized)
        if not normalized or pure.is_absolute() or ":" in normalized or ".." in pure.parts:
            raise StoryReadError(story_path, message=f"Unsafe story path: {story_path}")

        root = self.story_root.resolve()
        candidate = (self.story_root / pure).resolve()
        try:
            candidate.relative_to(root)
        except ValueError as exc:
            raise StoryReadError(story_path, message=f"Unsafe story path: {story_path}") from exc
        return self.story_root / pure

    def read_story_text(self, story_path: str) -> str:
        """Read the raw markup of a story.

        A reference naming a directory yields its ``.txt`` files in sorted
        name order separated by a blank line; any other reference reads
        ``{story_path}.txt``.

        Raises
        ------
        NotInstalledError
            If no content is installed
        StoryReadError
            If the reference is unsafe, the directory holds no scripts, or a
            file cannot be read

        """
        self._require_installed()
        base = self._resolve_story_path(story_path)

        if base.is_dir():
            names = sorted(
                child.name for child in base.iterdir() if child.is_file() and child.name.endswith(STORY_FILE_SUFFIX)
            )
            if not names:
                raise StoryReadError(story_path, message=f"No story files found in directory: {story_path}")
            parts: list[str] = []
            for name in names:
                file_path = base / name
                try:
                    parts.append(file_path.read_text(encoding="utf-8"))
                except (OSError, UnicodeDecodeError) as exc:
                    raise StoryReadError(story_path, file_path=str(file_path), original_error=exc) from exc
            return STORY_DIRECTORY_SEPARATOR.join(parts)

        file_path = base.with_name(base.name + STORY_FILE_SUFFIX)
        try:
            return file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StoryReadError(story_path, file_path=str(file_path), original_error=exc) from exc

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def get_story_entry(self, story_id: str) -> StoryEntry:
        """Return the entry with ``story_id``.

        Raises
        ------
        StoryNotFoundError
            If no indexable story has that id

        """
        for indexed in self.collect_stories_for_index():
            if indexed.story.story_id == story_id:
                return indexed.story
        raise StoryNotFoundError(story_id)

    def get_main_stories_grouped(self) -> list[StoryGroup]:
        """Return mainline chapters ordered by the numeric parts of their group id."""
        groups: list[tuple[str, str, list[StoryEntry]]] = []
        for group_id, value in self._groups():
            if value.get("entryType") != "MAINLINE":
                continue
            unlock_datas = value.get("infoUnlockDatas")
            if not isinstance(unlock_datas, list):
                continue
            stories = _sorted_by_story_sort(_parse_entries(unlock_datas))
            groups.append((group_id, _group_name(value, DEFAULT_MAIN_GROUP_NAME), stories))

        groups.sort(key=lambda group: group_id_sort_key(group[0]))
        return [(name, stories) for _, name, stories in groups]

    def get_activity_stories_grouped(self) -> list[StoryGroup]:
        """Return activity groups ordered by start time, groups without one last."""
        groups: list[tuple[int, str, str, list[StoryEntry]]] = []
        for group_id, value in self._groups():
            if value.get("entryType") not in ("ACTIVITY", "MINI_ACTIVITY"):
                continue
            unlock_datas = value.get("infoUnlockDatas")
            if not isinstance(unlock_datas, list):
                continue
            stories = _parse_entries(unlock_datas)
            if not stories:
                continue

            start_time = value.get("startTime")
            if isinstance(start_time, bool) or not isinstance(start_time, int) or start_time <= 0:
                start_time = _MISSING_START_TIME
            sort_id = value.get("id")
            if not isinstance(sort_id, str):
                sort_id = group_id
            groups.append(
                (start_time, sort_id, _group_name(value, DEFAULT_ACTIVITY_GROUP_NAME), _sorted_by_story_sort(stories))
            )

        groups.sort(key=lambda group: (group[0], group_id_sort_key(group[1])))
        return [(name, stories) for _, _, name, stories in groups]

    def get_sidestory_stories_grouped(self) -> list[StoryGroup]:
        """Return large side stories (``ACTIVITY`` groups with ``actType`` ``ACTIVITY_STORY``)."""
        groups: list[tuple[str, str, list[StoryEntry]]] = []
        for group_id, value in self._groups():
            if value.get("entryType") != "ACTIVITY" or value.get("actType") != "ACTIVITY_STORY":
                continue
            unlock_datas = value.get("infoUnlockDatas")
            if not isinstance(unlock_datas, list):
                continue
            stories = _parse_entries(unlock_datas)
            if not stories:
                continue
            groups.append((group_id, _group_name(value, DEFAULT_SIDESTORY_GROUP_NAME), _sorted_by_story_sort(stories)))

        groups.sort(key=lambda group: group_id_sort_key(group[0]))
        return [(name, stories) for _, name, stories in groups]

    def get_memory_stories(self) -> list[StoryEntry]:
        """Return operator records (entry type ``NONE``) ordered by ``story_sort``."""
        stories: list[StoryEntry] = []
        for _, value in self._groups():
            if value.get("entryType") != "NONE":
                continue
            unlock_datas = value.get("infoUnlockDatas")
            if isinstance(unlock_datas, list):
                stories.extend(_parse_entries(unlock_datas))
        return _sorted_by_story_sort(stories)


__all__ = [
    "StoryCatalog",
    "StoryGroup",
    "StorySource",
    "compare_story_group_ids",
    "entry_type_display_name",
    "extract_numeric_parts",
    "format_category_label",
]
