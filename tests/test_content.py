"""Content channels: skip classification, read precedence, writes and choice forms."""
import pytest
from playwright.async_api import Error as PlaywrightError

from fakes import EditorPage, FakePage, make_settings
from labmirror import content
from labmirror.content import (
    ChoiceAnswer,
    ChoiceContent,
    CodeContent,
    SkipContent,
    SkipReason,
    join_view_lines,
    read_content,
    read_via_api,
    write_choice_answers,
    write_content,
    write_via_api,
)
from labmirror.errors import ExtractionFailure
from labmirror.site import CHOICE_CONTAINER, CHOICE_OPTION, CHOICE_QUESTION

CODE = "def f(x):\n    return x * 2\n"


class TestSkipClassification:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", list(SkipReason))
    async def test_skip_reason_short_circuits_extraction(self, reason):
        page = EditorPage(model=CODE, skip=reason.value)
        result = await read_content(page, make_settings())
        assert result == SkipContent(reason)
        assert content._READ_API_JS not in page.scripts

    @pytest.mark.asyncio
    async def test_no_skip_reads_code(self):
        page = EditorPage(model=CODE)
        assert await read_content(page, make_settings()) == CodeContent(CODE)


class TestReadPrecedence:
    @pytest.mark.asyncio
    async def test_api_channel_wins(self):
        page = EditorPage(model=CODE, dom_text="stale dom text")
        assert (await read_content(page, make_settings())).text == CODE
        assert content._READ_DOM_JS not in page.scripts

    @pytest.mark.asyncio
    async def test_clipboard_before_dom(self, monkeypatch):
        calls = []

        async def clipboard(ctx):
            calls.append("clipboard")
            return "from clipboard"

        async def dom(ctx):
            calls.append("dom")
            return "from dom"

        monkeypatch.setattr(content, "read_via_clipboard", clipboard)
        monkeypatch.setattr(content, "read_via_dom", dom)
        result = await read_content(EditorPage(model=None), make_settings())
        assert result.text == "from clipboard"
        assert calls == ["clipboard"]

    @pytest.mark.asyncio
    async def test_dom_channel_when_api_and_clipboard_are_empty(self):
        page = EditorPage(model=None, dom_text="    indented line")
        result = await read_content(page, make_settings())
        assert result.text == "    indented line"

    @pytest.mark.asyncio
    async def test_frames_are_searched_last(self):
        page = EditorPage(model=None)
        frame = EditorPage(model="print('in frame')")
        page.frames = [page.main_frame, frame]
        result = await read_content(page, make_settings())
        assert result.text == "print('in frame')"

    @pytest.mark.asyncio
    async def test_all_channels_empty_raises(self):
        with pytest.raises(ExtractionFailure):
            await read_content(EditorPage(model=None), make_settings())


class TestWrite:
    @pytest.mark.asyncio
    async def test_api_write_then_api_read_returns_same_text(self):
        page = EditorPage(model="")
        assert await write_via_api(page, CODE)
        assert await read_via_api(page) == CODE

    @pytest.mark.asyncio
    async def test_write_content_uses_api_first(self):
        page = EditorPage(model="old")
        assert await write_content(page, CodeContent(CODE)) == "api"
        assert page.model == CODE
        assert page.keyboard.presses == []

    @pytest.mark.asyncio
    async def test_write_falls_back_to_clipboard_paste(self):
        page = EditorPage(model=None)
        assert await write_content(page, CodeContent(CODE)) == "clipboard"
        assert page.keyboard.presses == ["Control+A", "Backspace", "Control+V"]
        assert "clipboard-write" in page.context.permissions

    @pytest.mark.asyncio
    async def test_skip_content_is_not_writable(self):
        with pytest.raises(ValueError):
            await write_content(EditorPage(), SkipContent(SkipReason.COMMAND_LINE_ONLY))


class ChoicePage(FakePage):
    """Every question and option exists; `checked` holds the selected option keys."""

    def is_present(self, key):
        return key == CHOICE_CONTAINER or key.startswith(CHOICE_QUESTION)


def _option(q: int, o: int) -> str:
    return f"{CHOICE_QUESTION} >> nth={q} >> {CHOICE_OPTION} >> nth={o}"


class TestChoice:
    @pytest.mark.asyncio
    async def test_choice_form_is_scraped_instead_of_the_editor(self):
        page = EditorPage(model=CODE)
        page.visible.add(".choose-container")

        async def evaluate(script, arg=None):
            if script == content._CHOICE_READ_JS:
                return [{"questionIndex": 0, "selectedOptions": [1]}, {"questionIndex": 2, "selectedOptions": [0, 3]}]
            return None

        page.evaluate = evaluate
        result = await read_content(page, make_settings())
        assert result == ChoiceContent(
            answers=(ChoiceAnswer(0, frozenset({1})), ChoiceAnswer(2, frozenset({0, 3})))
        )

    @pytest.mark.asyncio
    async def test_write_skips_options_already_selected(self):
        page = ChoicePage()
        page.checked.add(_option(1, 0))
        answers = ChoiceContent(answers=(ChoiceAnswer(0, frozenset({2})), ChoiceAnswer(1, frozenset({0, 1}))))
        clicks = await write_choice_answers(page, answers)
        assert clicks == 2
        assert page.clicked == [_option(0, 2), _option(1, 1)]


class TestDomChannel:
    def test_lines_are_ordered_by_top_and_nbsp_becomes_space(self):
        fragments = [
            {"top": 38, "text": "    return x * 2"},
            {"top": 0, "text": "def f(x):"},
            {"top": 19, "text": "\u00a0\u00a0\u00a0\u00a0# double it"},
        ]
        assert join_view_lines(fragments) == "def f(x):\n    # double it\n    return x * 2"

    @pytest.mark.asyncio
    async def test_read_content_joins_out_of_order_fragments(self):
        page = EditorPage(model=None, dom_text=[{"top": 19, "text": "b"}, {"top": 0, "text": "a"}])
        assert await read_content(page, make_settings()) == CodeContent("a\nb")

    @pytest.mark.asyncio
    async def test_blank_fragments_are_not_content(self):
        page = EditorPage(model=None, dom_text=[{"top": 0, "text": " "}])
        with pytest.raises(ExtractionFailure):
            await read_content(page, make_settings())


class NoClipboardPage(EditorPage):
    """No editor API and a clipboard the page refuses to write."""

    async def evaluate(self, script, arg=None):
        if "navigator.clipboard" in script:
            raise PlaywrightError("Write permission denied.")
        return await super().evaluate(script, arg)


class TestKeystrokeFallback:
    @pytest.mark.asyncio
    async def test_failed_paste_types_the_code(self):
        page = NoClipboardPage(model=None)
        assert await write_content(page, CodeContent(CODE)) == "keystrokes"
        assert page.keyboard.inserted == [CODE]
        assert page.keyboard.presses == ["Control+A", "Backspace"]


class TestPageErrors:
    @pytest.mark.asyncio
    async def test_page_error_during_choice_read_is_an_extraction_failure(self):
        page = EditorPage(model=CODE)
        page.visible.add(".choose-container")

        async def evaluate(script, arg=None):
            if script == content._CHOICE_READ_JS:
                raise PlaywrightError("Execution context was destroyed")
            return None

        page.evaluate = evaluate
        with pytest.raises(ExtractionFailure):
            await read_content(page, make_settings())
