"""Test utilities: installed story content on disk and an in-memory index double."""

import json
from pathlib import Path
from typing import Any, Optional

import pytest

from storysearch.constants import STORY_REVIEW_TABLE_PATH, STORY_TEXT_ROOT
from storysearch.search.fts import fts5_available
from storysearch.search.index import BaseStoryIndex
from storysearch.search.query import CompiledQuery
from storysearch.search.types import IndexHit, IndexRow

requires_fts5 = pytest.mark.skipif(not fts5_available(), reason="SQLite was built without FTS5")


def make_entry(
    story_id: str,
    story_name: str,
    story_txt: str,
    story_sort: int = 1,
    story_code: Optional[str] = None,
    story_group: Optional[str] = None,
    avg_tag: Optional[str] = None,
) -> dict[str, Any]:
    """Return an ``infoUnlockDatas`` record in the upstream layout."""
    return {
        "storyId": story_id,
        "storyName": story_name,
        "storyCode": story_code,
        "storyGroup": story_group or story_id.rsplit("_", 1)[0],
        "storySort": story_sort,
        "avgTag": avg_tag,
        "storyTxt": story_txt,
        "storyInfo": None,
        "storyReviewType": "COMPLETE",
        "unLockType": "DIRECT",
        "storyDependence": None,
        "storyCanShow": 0,
        "storyCanEnter": 1,
        "stageCount": 0,
        "requiredStages": None,
        "costItemType": "NONE",
        "costItemId": None,
        "costItemCount": 0,
    }


class StoryDataGenerator:
    """Writes a review table and story scripts under a data directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.groups: dict[str, dict[str, Any]] = {}

    @property
    def story_root(self) -> Path:
        return self.data_dir / STORY_TEXT_ROOT

    def add_group(
        self,
        group_id: str,
        name: Optional[str],
        entry_type: str,
        entries: list[Any],
        act_type: str = "NONE",
        start_time: int = 0,
    ) -> None:
        self.groups[group_id] = {
            "id": group_id,
            "name": name,
            "entryType": entry_type,
            "actType": act_type,
            "startTime": start_time,
            "endTime": -1,
            "infoUnlockDatas": entries,
        }

    def write_story(self, story_txt: str, content: str) -> Path:
        """Write ``content`` to the file referenced by ``story_txt``."""
        path = self.story_root / f"{story_txt}.txt"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def write_story_directory(self, story_txt: str, files: dict[str, str]) -> Path:
        """Write a directory of scripts referenced by ``story_txt``."""
        directory = self.story_root / story_txt
        directory.mkdir(parents=True, exist_ok=True)
        for name, content in files.items():
            (directory / name).write_text(content, encoding="utf-8")
        return directory

    def write_review_table(self) -> Path:
        path = self.data_dir / STORY_REVIEW_TABLE_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.groups, ensure_ascii=False, indent=2), encoding="utf-8")
        return path


def build_sample_data(data_dir: Path) -> StoryDataGenerator:
    """Install a small corpus covering every listing and reading path.

    Readable stories: main_00-01, main_00-02, main_02-01, main_10-01,
    act1_01, act2_01 (a directory of scripts), mem_amiya_1, mem_amiya_2.
    act3_01 references a missing file.
    """
    generator = StoryDataGenerator(data_dir)

    generator.add_group(
        "main_0",
        "黑暗时代·上",
        "MAINLINE",
        [
            make_entry("main_00-01", "坍塌", "obt/main/level_main_00-01_beg", story_sort=1, story_code="0-1"),
            make_entry("main_00-02", "切城", "obt/main/level_main_00-02", story_sort=2, story_code="0-2"),
            {"storyId": "broken_record"},
        ],
    )
    generator.add_group(
        "main_10",
        "破碎日冕",
        "MAINLINE",
        [make_entry("main_10-01", "怒火", "obt/main/level_main_10-01", story_code="10-1")],
    )
    generator.add_group(
        "main_2",
        "怒号光明",
        "MAINLINE",
        [make_entry("main_02-01", "前进", "obt/main/level_main_02-01", story_code="2-1")],
    )
    generator.add_group(
        "act1",
        "骑兵与猎人",
        "ACTIVITY",
        [make_entry("act1_01", "猎人的誓言", "activities/act1/level_act1_01", story_code="GT-1")],
        act_type="ACTIVITY_STORY",
        start_time=1600000000,
    )
    generator.add_group(
        "act2",
        "午夜邮差",
        "MINI_ACTIVITY",
        [make_entry("act2_01", "夜班", "activities/act2/level_act2_01")],
        act_type="MINISTORY",
        start_time=1500000000,
    )
    generator.add_group(
        "act3",
        "失落的活动",
        "ACTIVITY",
        [make_entry("act3_01", "遗失", "activities/act3/level_act3_01")],
        act_type="MINISTORY",
        start_time=0,
    )
    generator.add_group(
        "char_memory",
        "干员密录",
        "NONE",
        [
            make_entry("mem_amiya_2", "第二段回忆", "obt/memory/story_amiya_2", story_sort=2),
            make_entry("mem_amiya_1", "第一段回忆", "obt/memory/story_amiya_1", story_sort=1),
        ],
    )

    generator.write_story(
        "obt/main/level_main_00-01_beg",
        "\n".join(
            [
                '[HEADER(key="title_test", is_skippable=true)] 序章',
                '[name="阿米娅"]  博士，您醒了吗？',
                '[name="凯尔希"]  {@nickname}，我们需要撤离。',
                '[Decision(options="我是谁？;这是哪里？", values="1;2")]',
            ]
        ),
    )
    generator.write_story(
        "obt/main/level_main_00-02",
        '[name="杜宾"]  可恶......\n切尔诺伯格的天空一片灰暗。',
    )
    generator.write_story("obt/main/level_main_10-01", '[name="维什戴尔"]  萨卡兹的怒火。')
    generator.write_story("obt/main/level_main_02-01", '[name="Ace"]  Keep moving, rookie!')
    generator.write_story(
        "activities/act1/level_act1_01",
        '[name="苦艾"]  我要找到真相。\n[Subtitle(text="骑兵与猎人", alignment="center")]',
    )
    generator.write_story_directory(
        "activities/act2/level_act2_01",
        {
            "b_part.txt": '[PopupDialog(dialogHead="$avatar_sys")] 请尽可能多地与其他组织建立良好关系',
            "a_part.txt": '[name="杰西卡"]  邮件送达。',
            "notes.md": "ignored",
        },
    )
    generator.write_story("obt/memory/story_amiya_1", '[name="阿米娅"]  这是一段回忆。')
    generator.write_story("obt/memory/story_amiya_2", '[name="阿米娅"]  我喜欢 Café 的味道。')

    generator.write_review_table()
    return generator


class MemoryStoryIndex(BaseStoryIndex):
    """In-memory index double with canned hits and an optional search failure."""

    backend_name = "memory"

    def __init__(self, hits=None, fail_with: Optional[Exception] = None, built: bool = False):
        super().__init__("memory-index")
        self.rows: list[IndexRow] = []
        self.hits: list[IndexHit] = list(hits or [])
        self.fail_with = fail_with
        self.built = built or bool(self.hits)
        self.queries: list[CompiledQuery] = []

    def exists(self) -> bool:
        return self.built

    def row_count(self) -> int:
        if not self.built:
            return 0
        return max(len(self.rows), len(self.hits), 1)

    def rebuild(self, rows, *, progress_callback=None) -> int:
        self.rows = list(rows)
        self.built = True
        return len(self.rows)

    def search(self, query: CompiledQuery, *, limit: int) -> list[IndexHit]:
        self.queries.append(query)
        if self.fail_with is not None:
            raise self.fail_with
        return self.hits[:limit]

    def read_metadata(self) -> dict[str, str]:
        return {"last_built_at": "1700000000"} if self.built else {}

    def clear(self) -> None:
        self.rows = []
        self.hits = []
        self.built = False


def make_hit(
    story_id: str, story_name: str, raw_content: str, category: str = "主线 | 测试", snippet: str = ""
) -> IndexHit:
    return IndexHit(
        story_id=story_id, story_name=story_name, category=category, raw_content=raw_content, snippet=snippet
    )
