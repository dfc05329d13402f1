"""Level switching: label matching, idempotence and the level-1 safety check."""
import pytest

from fakes import EditorPage, TaskListPage, make_settings
from labmirror.levels import is_level_locked, switch_to_level
from labmirror.site import TASK_ITEM, level_pattern


def _item_link(i: int) -> str:
    return f"{TASK_ITEM} >> nth={i} >> a"


class TestLevelPattern:
    def test_matches_numbered_and_chinese_labels(self):
        assert level_pattern(2).search("2. 循环结构")
        assert level_pattern(2).search("第2关 循环结构")
        assert level_pattern(2).search("任务 2. 循环")

    def test_does_not_match_longer_numbers(self):
        assert not level_pattern(3).search("13. 决策树")
        assert not level_pattern(1).search("第11关")


class TestSwitchToLevel:
    @pytest.mark.asyncio
    async def test_switch_clicks_the_labelled_item(self):
        page = TaskListPage(["1. 数据准备", "2. 模型训练", "3. 模型评估"])
        assert await switch_to_level(page, 3, make_settings())
        assert page.clicked == [_item_link(2)]
        assert page.active == 2

    @pytest.mark.asyncio
    async def test_switch_is_idempotent(self):
        page = TaskListPage(["1. 数据准备", "2. 模型训练", "3. 模型评估"])
        settings = make_settings()
        assert await switch_to_level(page, 2, settings)
        assert await switch_to_level(page, 2, settings)
        assert page.clicked == [_item_link(1)]
        assert page.active == 1

    @pytest.mark.asyncio
    async def test_active_item_is_a_noop(self):
        page = TaskListPage(["第1关 数据准备", "第2关 模型训练"], active=1)
        assert await switch_to_level(page, 2, make_settings())
        assert page.clicked == []

    @pytest.mark.asyncio
    async def test_heading_already_naming_the_level_is_a_noop(self):
        page = TaskListPage(["1. a", "2. b"])
        page.visible.add("h3|第2关")
        assert await switch_to_level(page, 2, make_settings())
        assert page.clicked == []

    @pytest.mark.asyncio
    async def test_positional_fallback_refuses_a_level_one_item(self):
        page = TaskListPage(["准备工作", "第1关 数据准备", "附加题"])
        assert not await switch_to_level(page, 2, make_settings())
        assert page.clicked == []

    @pytest.mark.asyncio
    async def test_positional_fallback_clicks_an_unlabelled_item(self):
        page = TaskListPage(["准备工作", "模型训练", "附加题"])
        assert await switch_to_level(page, 2, make_settings())
        assert page.clicked == [_item_link(1)]

    @pytest.mark.asyncio
    async def test_level_beyond_the_list_fails(self):
        page = TaskListPage(["1. a", "2. b"])
        assert not await switch_to_level(page, 3, make_settings())
        assert page.clicked == []

    @pytest.mark.asyncio
    async def test_empty_task_list_fails(self):
        page = TaskListPage([])
        assert not await switch_to_level(page, 1, make_settings())


class TestLocked:
    @pytest.mark.asyncio
    async def test_locked_flag_comes_from_page_text(self):
        page = EditorPage()

        async def evaluate(script, arg=None):
            return "完成上一关才能解锁" in arg

        page.evaluate = evaluate
        assert await is_level_locked(page)
