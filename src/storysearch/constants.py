#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/storysearch/constants.py
"""Constants and default values for the storysearch library.

This module centralizes the hardcoded values used across the parser, the
search index and the story catalog so they can be referenced consistently
and overridden through ``SearchOptions`` where that makes sense.

"""

from __future__ import annotations

from typing import Literal

# =============================================================================
# Upstream content layout
# =============================================================================

STORY_REVIEW_TABLE_PATH = "zh_CN/gamedata/excel/story_review_table.json"
"""Review table listing every story group and its entries, relative to the data dir."""

STORY_TEXT_ROOT = "zh_CN/gamedata/story"
"""Directory holding story script files, relative to the data dir."""

STORY_FILE_SUFFIX = ".txt"

STORY_DIRECTORY_SEPARATOR = "\n\n"
"""Separator used when a ``storyTxt`` reference names a directory of scripts."""

DEFAULT_INDEX_FILENAME = "story_index.db"

# =============================================================================
# Markup parsing
# =============================================================================

NICKNAME_PLACEHOLDER = "{@nickname}"
DEFAULT_NICKNAME_LABEL = "博士"

SPEAKER_ID_PREFIXES = (
    "char_",
    "npc_",
    "avg_",
    "avatar_",
    "trap_",
    "voice_",
    "item_",
    "act_",
    "story_",
)
"""Internal identifier prefixes stripped (at most one) when humanizing speaker ids."""

MEANINGLESS_PUNCTUATION_MAX_LENGTH = 3

DIALOGUE_SEPARATOR = "："
"""Full-width colon placed between speaker and text when flattening dialogue."""

DECISION_SEPARATOR = " / "

# =============================================================================
# Tokenizer and search
# =============================================================================

COMMON_CJK_PUNCTUATION = frozenset("，、。！？：；（）【】「」『』《》〈〉—～…·﹑﹔﹗﹖﹐﹒﹕︰")

CJK_RANGES: tuple[tuple[int, int], ...] = (
    (0x4E00, 0x9FFF),  # Unified Ideographs
    (0x3400, 0x4DBF),  # Extension A
    (0x20000, 0x2A6DF),  # Extension B
    (0x2A700, 0x2B73F),  # Extension C
    (0x2B740, 0x2B81F),  # Extension D
    (0x2B820, 0x2CEAF),  # Extension E
)

INDEX_VERSION = 2
"""Schema generation of the full-text index. Older stored generations are dropped and recreated."""

DEFAULT_RESULT_LIMIT = 500
DEFAULT_CONTEXT_WINDOW = 50
DEFAULT_PREVIEW_CHARS = 120
SNIPPET_ELLIPSIS = "..."

IndexBackendName = Literal["fts5", "bm25"]
DEFAULT_INDEX_BACKEND: IndexBackendName = "fts5"
INDEX_BACKENDS: tuple[str, ...] = ("fts5", "bm25")

DEFAULT_BM25_K1 = 1.5
DEFAULT_BM25_B = 0.75

# =============================================================================
# Catalog
# =============================================================================

ENTRY_TYPE_DISPLAY_NAMES: dict[str, str] = {
    "MAINLINE": "主线",
    "ACTIVITY": "活动",
    "MINI_ACTIVITY": "活动",
    "ROGUELIKE": "肉鸽",
    "SIDESTORY": "支线",
    "NONE": "干员密录",
    "RECORD": "主线笔记",
    "RUNE": "危机合约",
}

UNKNOWN_ENTRY_TYPE = "UNKNOWN"
DEFAULT_MAIN_GROUP_NAME = "未知章节"
DEFAULT_ACTIVITY_GROUP_NAME = "未知活动"
DEFAULT_SIDESTORY_GROUP_NAME = "支线剧情"

# =============================================================================
# Optional dependencies
# =============================================================================

# (install_name, import_name, version_spec)
DEPS_SEARCH_BM25 = [("rank-bm25", "rank_bm25", ">=0.2.2")]
