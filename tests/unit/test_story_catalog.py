"""Unit tests for the story catalog."""

import pytest
from utils import StoryDataGenerator, make_entry

from storysearch.catalog import (
    StoryCatalog,
    StorySource,
    compare_story_group_ids,
    extract_numeric_parts,
    format_category_label,
    group_id_sort_key,
)
from storysearch.exceptions import (
    MalformedDataError,
    NotInstalledError,
    StoryNotFoundError,
    StoryReadError,
)
from storysearch.models import StoryEntry


@pytest.mark.unit
class TestCategoryHelpers:
    """Test category labels and group id ordering."""

    def test_format_category_label(self):
        assert format_category_label("MAINLINE", "黑暗时代·上") == "主线 | 黑暗时代·上"
        assert format_category_label("MINI_ACTIVITY", " 午夜邮差 ") == "活动 | 午夜邮差"
        assert format_category_label("NONE", "干员密录") == "干员密录"
        assert format_category_label("RUNE", "") == "危机合约"
        assert format_category_label("CUSTOM", "自定义") == "CUSTOM | 自定义"

    def test_extract_numeric_parts(self):
        assert extract_numeric_parts("main_10_2") == [10, 2]
        assert extract_numeric_parts("act17side") == [17]
        assert extract_numeric_parts("none") == []

    def test_numeric_parts_overflow_skipped(self):
        """Runs too large for a 32-bit signed integer are ignored."""
        assert extract_numeric_parts("a_99999999999_3") == [3]

    def test_compare_story_group_ids(self):
        assert compare_story_group_ids("main_2", "main_10") < 0
        assert compare_story_group_ids("main_10", "main_2") > 0
        assert compare_story_group_ids("main_1", "main_1") == 0
        assert compare_story_group_ids("main_1", "main_1_0") < 0
        assert compare_story_group_ids("alpha", "beta") < 0

    def test_group_id_sort_key(self):
        ids = ["main_10", "main_0", "main_2", "main_1"]
        assert sorted(ids, key=group_id_sort_key) == ["main_0", "main_1", "main_2", "main_10"]


@pytest.mark.unit
class TestStoryCatalogInstallation:
    """Test installation checks."""

    def test_is_installed(self, story_catalog, empty_catalog):
        assert story_catalog.is_installed()
        assert not empty_catalog.is_installed()

    def test_satisfies_story_source(self, story_catalog):
        assert isinstance(story_catalog, StorySource)

    @pytest.mark.parametrize(
        "operation",
        [
            lambda catalog: catalog.collect_stories_for_index(),
            lambda catalog: catalog.read_story_text("obt/main/level_main_00-02"),
            lambda catalog: catalog.get_main_stories_grouped(),
            lambda catalog: catalog.get_activity_stories_grouped(),
            lambda catalog: catalog.get_sidestory_stories_grouped(),
            lambda catalog: catalog.get_memory_stories(),
        ],
    )
    def test_operations_require_installation(self, empty_catalog, operation):
        """Every read raises NotInstalledError before content is installed."""
        with pytest.raises(NotInstalledError):
            operation(empty_catalog)

    def test_malformed_review_table(self, tmp_path):
        generator = StoryDataGenerator(tmp_path)
        path = generator.write_review_table()
        path.write_text("[1, 2, 3]", encoding="utf-8")
        with pytest.raises(MalformedDataError):
            StoryCatalog(tmp_path).collect_stories_for_index()

        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(MalformedDataError):
            StoryCatalog(tmp_path).collect_stories_for_index()


@pytest.mark.unit
class TestCollectStoriesForIndex:
    """Test collect_stories_for_index."""

    def test_sorted_and_complete(self, story_catalog):
        stories = story_catalog.collect_stories_for_index()
        assert [indexed.story.story_id for indexed in stories] == [
            "act1_01",
            "act2_01",
            "act3_01",
            "main_00-01",
            "main_00-02",
            "main_02-01",
            "main_10-01",
            "mem_amiya_1",
            "mem_amiya_2",
        ]

    def test_category_names(self, story_catalog):
        by_id = {indexed.story.story_id: indexed for indexed in story_catalog.collect_stories_for_index()}
        assert by_id["main_00-01"].category_name == "黑暗时代·上"
        assert by_id["main_00-01"].entry_type == "MAINLINE"
        assert by_id["act2_01"].entry_type == "MINI_ACTIVITY"
        assert by_id["mem_amiya_1"].category_name == "干员密录"

    def test_duplicates_and_empty_story_txt_skipped(self, tmp_path):
        """The first occurrence of a story id wins and stories without text are skipped."""
        generator = StoryDataGenerator(tmp_path)
        generator.add_group("main_0", "第一章", "MAINLINE", [make_entry("s1", "一", "a/s1")])
        generator.add_group(
            "act9",
            None,
            "ACTIVITY",
            [make_entry("s1", "重复", "a/dup"), make_entry("s2", "空", "  "), make_entry("s3", "三", "a/s3")],
        )
        generator.add_group("weird", "坏组", "MAINLINE", "not-a-list")
        generator.write_review_table()

        stories = StoryCatalog(tmp_path).collect_stories_for_index()
        assert [(s.story.story_id, s.category_name) for s in stories] == [
            ("s1", "第一章"),
            ("s3", "活动 (act9)"),
        ]

    def test_missing_entry_type(self, tmp_path):
        generator = StoryDataGenerator(tmp_path)
        generator.groups["odd"] = {"name": "", "infoUnlockDatas": [make_entry("s1", "一", "a/s1")]}
        generator.write_review_table()

        (indexed,) = StoryCatalog(tmp_path).collect_stories_for_index()
        assert indexed.entry_type == "UNKNOWN"
        assert indexed.category_name == "UNKNOWN (odd)"


@pytest.mark.unit
class TestReadStoryText:
    """Test read_story_text."""

    def test_read_file(self, story_catalog):
        assert story_catalog.read_story_text("obt/main/level_main_10-01") == '[name="维什戴尔"]  萨卡兹的怒火。'

    def test_read_directory(self, story_catalog):
        """Directory references join their .txt files in name order."""
        text = story_catalog.read_story_text("activities/act2/level_act2_01")
        assert text == (
            '[name="杰西卡"]  邮件送达。\n\n'
            '[PopupDialog(dialogHead="$avatar_sys")] 请尽可能多地与其他组织建立良好关系'
        )

    def test_backslash_separators(self, story_catalog):
        assert "萨卡兹" in story_catalog.read_story_text("obt\\main\\level_main_10-01")

    def test_empty_directory(self, story_catalog, story_data):
        (story_data.story_root / "empty_dir").mkdir()
        with pytest.raises(StoryReadError, match="No story files found"):
            story_catalog.read_story_text("empty_dir")

    def test_missing_file(self, story_catalog):
        with pytest.raises(StoryReadError) as exc_info:
            story_catalog.read_story_text("activities/act3/level_act3_01")
        assert exc_info.value.story_path == "activities/act3/level_act3_01"

    @pytest.mark.parametrize(
        "story_path",
        ["../secret", "obt/../../secret", "/etc/passwd", "C:/Windows/win", "", "obt\\..\\..\\secret"],
    )
    def test_unsafe_paths_rejected(self, story_catalog, story_path):
        with pytest.raises(StoryReadError, match="Unsafe story path"):
            story_catalog.read_story_text(story_path)


@pytest.mark.unit
class TestListings:
    """Test grouped listings."""

    def test_main_stories_grouped(self, story_catalog):
        """Mainline groups follow the numeric order of their ids."""
        groups = story_catalog.get_main_stories_grouped()
        assert [name for name, _ in groups] == ["黑暗时代·上", "怒号光明", "破碎日冕"]
        assert [entry.story_id for entry in groups[0][1]] == ["main_00-01", "main_00-02"]

    def test_activity_stories_grouped(self, story_catalog):
        """Activities are ordered by start time with undated groups last."""
        groups = story_catalog.get_activity_stories_grouped()
        assert [name for name, _ in groups] == ["午夜邮差", "骑兵与猎人", "失落的活动"]

    def test_sidestory_stories_grouped(self, story_catalog):
        groups = story_catalog.get_sidestory_stories_grouped()
        assert [name for name, _ in groups] == ["骑兵与猎人"]
        assert [entry.story_code for entry in groups[0][1]] == ["GT-1"]

    def test_memory_stories(self, story_catalog):
        stories = story_catalog.get_memory_stories()
        assert [entry.story_id for entry in stories] == ["mem_amiya_1", "mem_amiya_2"]

    def test_get_story_entry(self, story_catalog):
        entry = story_catalog.get_story_entry("main_00-01")
        assert isinstance(entry, StoryEntry)
        assert entry.story_name == "坍塌"
        assert entry.story_code == "0-1"

        with pytest.raises(StoryNotFoundError):
            story_catalog.get_story_entry("missing")


@pytest.mark.unit
class TestStoryEntry:
    """Test StoryEntry decoding."""

    def test_round_trip_layout(self):
        raw = make_entry("main_00-01", "坍塌", "obt/main/x", story_code="0-1")
        assert StoryEntry.from_json(raw).to_json() == raw

    @pytest.mark.parametrize(
        "raw",
        [
            "not a dict",
            {"storyId": "x"},
            {**make_entry("x", "n", "t"), "storySort": "1"},
            {**make_entry("x", "n", "t"), "storySort": True},
            {**make_entry("x", "n", "t"), "storyCode": 5},
            {**make_entry("x", "n", "t"), "requiredStages": "stage"},
        ],
    )
    def test_malformed_records(self, raw):
        with pytest.raises(MalformedDataError):
            StoryEntry.from_json(raw)
