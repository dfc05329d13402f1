"""Editor content channels: structured API, clipboard, rendered DOM, frames; plus choice forms."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Frame, Page

from .config import Settings
from .errors import ExtractionFailure
from .site import CHOICE_CHECKED_CLASSES, CHOICE_CONTAINER, CHOICE_OPTION, CHOICE_QUESTION, EDITOR_SELECTOR, LOCKED_TEXTS

logger = logging.getLogger(__name__)


class ContentKind(str, Enum):
    CODE = "CODE"
    CHOICE = "CHOICE"
    SKIP = "SKIP"


class SkipReason(str, Enum):
    NO_EVALUATION_BUTTON = "NO_EVALUATION_BUTTON"
    COMMAND_LINE_ONLY = "COMMAND_LINE_ONLY"
    ENV_START_REQUIRED = "ENV_START_REQUIRED"
    LEVEL_LOCKED = "LEVEL_LOCKED"


@dataclass(frozen=True)
class CodeContent:
    text: str
    kind: ContentKind = ContentKind.CODE


@dataclass(frozen=True)
class ChoiceAnswer:
    question_index: int  # 0-based
    selected_options: frozenset


@dataclass(frozen=True)
class ChoiceContent:
    answers: tuple
    kind: ContentKind = ContentKind.CHOICE


@dataclass(frozen=True)
class SkipContent:
    reason: SkipReason
    kind: ContentKind = ContentKind.SKIP


ExtractedContent = Union[CodeContent, ChoiceContent, SkipContent]

# Page or Frame: both expose evaluate/locator/query_selector
Context = Union[Page, Frame]

_SKIP_JS = """(lockedTexts) => {
    const hasSubmit = document.querySelector('#submit_code_btn')
        || document.querySelector('.submit-code-btn')
        || Array.from(document.querySelectorAll('button')).some(b => (b.innerText || '').includes('评测'));
    if (!hasSubmit) return 'NO_EVALUATION_BUTTON';
    const mtk = document.querySelector('span.mtk1');
    if (mtk && (mtk.innerText || '').includes('请在右侧命令行中直接操作')) return 'COMMAND_LINE_ONLY';
    if (Array.from(document.querySelectorAll('p')).some(p => (p.innerText || '').includes('点击上方按钮，启动实验环境'))) {
        return 'ENV_START_REQUIRED';
    }
    const body = (document.body && document.body.innerText) || '';
    if (lockedTexts.some(t => body.includes(t))) return 'LEVEL_LOCKED';
    return null;
}"""

_READ_API_JS = """() => {
    if (window.monaco && window.monaco.editor) {
        const models = window.monaco.editor.getModels();
        if (models.length > 0) return models[0].getValue();
    }
    const cm = document.querySelector('.CodeMirror');
    if (cm && cm.CodeMirror) return cm.CodeMirror.getValue();
    return null;
}"""

_WRITE_API_JS = """(code) => {
    if (window.monaco && window.monaco.editor) {
        const models = window.monaco.editor.getModels();
        if (models.length > 0) { models[0].setValue(code); return true; }
    }
    const cm = document.querySelector('.CodeMirror');
    if (cm && cm.CodeMirror) { cm.CodeMirror.setValue(code); return true; }
    return false;
}"""

# Each rendered line with its computed top; the block fallback is a single fragment.
# textContent keeps leading whitespace.
_READ_DOM_JS = """() => {
    const editors = Array.from(document.querySelectorAll('.monaco-editor'));
    const visible = editors.filter(e => e.offsetParent !== null);
    const editor = visible.length
        ? visible.reduce((a, b) => (a.clientHeight >= b.clientHeight ? a : b))
        : editors[0];
    const lines = editor
        ? editor.querySelectorAll('.view-lines .view-line')
        : document.querySelectorAll('.view-lines .view-line');
    if (lines && lines.length) {
        return Array.from(lines).map(l => ({
            top: parseInt(window.getComputedStyle(l).top || '0', 10) || 0,
            text: l.textContent || '',
        }));
    }
    const block = document.querySelector('.view-lines');
    return block ? [{top: 0, text: block.textContent || ''}] : null;
}"""

_CHOICE_READ_JS = """([questionSel, optionSel, checkedClasses]) => {
    const out = [];
    document.querySelectorAll(questionSel).forEach((q, qi) => {
        const picked = [];
        q.querySelectorAll(optionSel).forEach((opt, oi) => {
            if (checkedClasses.some(c => opt.classList.contains(c))) picked.push(oi);
        });
        if (picked.length) out.push({questionIndex: qi, selectedOptions: picked});
    });
    return out;
}"""

_IS_CHECKED_JS = "(el, classes) => classes.some(c => el.classList.contains(c))"


def _page_of(ctx: Context) -> Page:
    return ctx.page if isinstance(ctx, Frame) else ctx


def _sub_frames(page: Page) -> list:
    return [f for f in page.frames if f is not page.main_frame]


async def classify_skip(page: Page) -> Optional[SkipReason]:
    """Levels that cannot be copied: no evaluate button, terminal-only, env start, locked."""
    try:
        reason = await page.evaluate(_SKIP_JS, list(LOCKED_TEXTS))
    except PlaywrightError as e:
        logger.debug("Skip classification failed: %s", e)
        return None
    return SkipReason(reason) if reason else None


async def is_choice_level(page: Page) -> bool:
    try:
        return await page.locator(".choose-container").first.is_visible()
    except PlaywrightError:
        return False


# ---- read channels ----


async def read_via_api(ctx: Context) -> Optional[str]:
    try:
        value = await ctx.evaluate(_READ_API_JS)
    except PlaywrightError as e:
        logger.debug("API read failed: %s", e)
        return None
    return value if isinstance(value, str) and value else None


async def read_via_clipboard(ctx: Context) -> Optional[str]:
    """Focus the editor, select-all + copy, read the clipboard back."""
    page = _page_of(ctx)
    try:
        await page.context.grant_permissions(["clipboard-read", "clipboard-write"])
    except PlaywrightError:
        pass
    try:
        element = await ctx.query_selector(EDITOR_SELECTOR)
        if element is None:
            logger.debug("Clipboard read skipped: no editor element")
            return None
        await element.click()
        await page.wait_for_timeout(500)
        await element.press("Control+A")
        await page.wait_for_timeout(300)
        await element.press("Control+C")
        await page.wait_for_timeout(500)
        value = await page.evaluate("() => navigator.clipboard.readText()")
    except PlaywrightError as e:
        logger.debug("Clipboard read failed: %s", e)
        return None
    return value if isinstance(value, str) and value.strip() else None


def join_view_lines(fragments: list) -> str:
    """
    Rebuild editor text from rendered line fragments. Lines are absolutely positioned and
    can sit out of order in the DOM, so they are ordered by `top`; nbsp becomes a space.
    """
    ordered = sorted(fragments, key=lambda f: f.get("top") or 0)
    return "\n".join((f.get("text") or "").replace("\u00a0", " ") for f in ordered)


async def read_via_dom(ctx: Context) -> Optional[str]:
    try:
        fragments = await ctx.evaluate(_READ_DOM_JS)
    except PlaywrightError as e:
        logger.debug("DOM read failed: %s", e)
        return None
    if not fragments:
        return None
    value = join_view_lines(fragments)
    return value if value.strip() else None


async def read_choice_answers(ctx: Context) -> ChoiceContent:
    raw = await ctx.evaluate(_CHOICE_READ_JS, [CHOICE_QUESTION, CHOICE_OPTION, list(CHOICE_CHECKED_CLASSES)])
    answers = tuple(
        ChoiceAnswer(question_index=int(a["questionIndex"]), selected_options=frozenset(int(o) for o in a["selectedOptions"]))
        for a in raw or []
    )
    return ChoiceContent(answers=answers)


async def read_code(page: Page) -> Optional[str]:
    """API, then clipboard, then DOM on the page; then API and clipboard in each frame."""
    for channel in (read_via_api, read_via_clipboard, read_via_dom):
        code = await channel(page)
        if code:
            logger.info("Read %d chars via %s", len(code), channel.__name__)
            return code
        logger.debug("%s returned nothing", channel.__name__)

    for frame in _sub_frames(page):
        for channel in (read_via_api, read_via_clipboard):
            code = await channel(frame)
            if code:
                logger.info("Read %d chars via %s in frame %s", len(code), channel.__name__, frame.url)
                return code
    return None


async def read_content(page: Page, settings: Settings) -> ExtractedContent:
    """Classify the level, then extract its code or chosen answers. Raises ExtractionFailure."""
    try:
        return await _read_level(page, settings)
    except PlaywrightError as e:
        raise ExtractionFailure(f"page error while reading {page.url}: {e}") from e


async def _read_level(page: Page, settings: Settings) -> ExtractedContent:
    await page.wait_for_timeout(settings.timeouts.editor_settle)

    reason = await classify_skip(page)
    if reason is not None:
        logger.info("Level needs no copy: %s", reason.value)
        return SkipContent(reason)

    if await is_choice_level(page):
        content = await read_choice_answers(page)
        logger.info("Choice level: %d answered questions", len(content.answers))
        return content

    try:
        await page.wait_for_selector(EDITOR_SELECTOR, timeout=settings.timeouts.element_wait)
    except PlaywrightError:
        logger.warning("Editor selector did not appear")

    code = await read_code(page)
    if code is None:
        raise ExtractionFailure(f"no editor content found on {page.url}")
    return CodeContent(code)


# ---- write channels ----


async def write_via_api(ctx: Context, text: str) -> bool:
    try:
        return bool(await ctx.evaluate(_WRITE_API_JS, text))
    except PlaywrightError as e:
        logger.debug("API write failed: %s", e)
        return False


async def _focus_editor(page: Page) -> None:
    try:
        await page.click(EDITOR_SELECTOR, timeout=3000)
    except PlaywrightError:
        pass
    await page.wait_for_timeout(300)


async def write_via_clipboard(page: Page, text: str) -> None:
    """Put `text` on the clipboard, select all, clear, paste."""
    try:
        await page.context.grant_permissions(["clipboard-read", "clipboard-write"])
    except PlaywrightError:
        pass
    await _focus_editor(page)
    await page.evaluate("(text) => navigator.clipboard.writeText(text)", text)
    await page.keyboard.press("Control+A")
    await page.keyboard.press("Backspace")
    await page.keyboard.press("Control+V")


async def write_via_keystrokes(page: Page, text: str) -> None:
    await _focus_editor(page)
    await page.keyboard.press("Control+A")
    await page.keyboard.press("Backspace")
    await page.keyboard.insert_text(text)


async def write_code(page: Page, text: str) -> str:
    """Write `text` into the editor; returns the channel name that was used."""
    await _focus_editor(page)
    if await write_via_api(page, text):
        return "api"
    for frame in _sub_frames(page):
        if await write_via_api(frame, text):
            logger.info("Wrote code via API in frame %s", frame.url)
            return "api-frame"

    logger.warning("Editor API unavailable; pasting through the clipboard")
    try:
        await write_via_clipboard(page, text)
        return "clipboard"
    except PlaywrightError as e:
        logger.warning("Clipboard paste failed (%s); typing the code instead", e)
    await write_via_keystrokes(page, text)
    return "keystrokes"


async def _choice_context(page: Page) -> Context:
    try:
        await page.wait_for_selector(CHOICE_CONTAINER, state="visible", timeout=5000)
        return page
    except PlaywrightError:
        pass
    for frame in _sub_frames(page):
        try:
            if await frame.locator(CHOICE_CONTAINER).first.is_visible():
                logger.info("Choice form found in frame %s", frame.url)
                return frame
        except PlaywrightError:
            continue
    logger.warning("Choice container not visible on %s; trying anyway", page.url)
    return page


async def write_choice_answers(page: Page, content: ChoiceContent) -> int:
    """Select every answer; options already selected are left alone. Returns clicks made."""
    ctx = await _choice_context(page)
    clicks = 0
    for answer in content.answers:
        question = ctx.locator(CHOICE_QUESTION).nth(answer.question_index)
        try:
            await question.wait_for(state="visible", timeout=5000)
        except PlaywrightError:
            logger.warning("Question %d not visible within 5s", answer.question_index + 1)
        for opt_index in sorted(answer.selected_options):
            option = question.locator(CHOICE_OPTION).nth(opt_index)
            try:
                await option.wait_for(state="attached", timeout=5000)
            except PlaywrightError:
                logger.warning("Option %d of question %d not found", opt_index, answer.question_index + 1)
                continue
            if await option.evaluate(_IS_CHECKED_JS, list(CHOICE_CHECKED_CLASSES)):
                continue
            await option.click()
            clicks += 1
            await page.wait_for_timeout(200)
    logger.info("Filled %d questions (%d clicks)", len(content.answers), clicks)
    return clicks


async def write_content(page: Page, content: ExtractedContent) -> Any:
    if isinstance(content, ChoiceContent):
        return await write_choice_answers(page, content)
    if isinstance(content, CodeContent):
        channel = await write_code(page, content.text)
        logger.info("Wrote %d chars via %s", len(content.text), channel)
        await page.wait_for_timeout(1000)
        return channel
    raise ValueError(f"cannot write {content!r}")
