"""Entering a lab's editor and moving between its levels."""
import logging
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from .config import Settings
from .locator import candidates, resolve
from .navigation import click_and_follow, wait_for_network_idle
from .site import EDITOR_SELECTOR, LEVEL_ENTRY, LOCKED_TEXTS, TASK_ITEM, TASK_LIST_TRIGGER, level_pattern

logger = logging.getLogger(__name__)

_LOCKED_JS = """(texts) => {
    const body = (document.body && document.body.innerText) || '';
    return texts.some(t => body.includes(t));
}"""


async def _text(loc: Locator, timeout_ms: int = 2000) -> str:
    try:
        return await loc.inner_text(timeout=timeout_ms)
    except PlaywrightError:
        return ""


async def _is_active(item: Locator) -> bool:
    try:
        cls = await item.get_attribute("class", timeout=2000)
    except PlaywrightError:
        return False
    return bool(cls) and "active" in cls


async def _is_visible(loc: Locator) -> bool:
    try:
        return await loc.is_visible()
    except PlaywrightError:
        return False


async def is_in_editor(page: Page) -> bool:
    try:
        return await page.locator(EDITOR_SELECTOR).count() > 0
    except PlaywrightError:
        return False


async def enter_level(page: Page, settings: Settings) -> Page:
    """
    From a lab detail view, reach the level editor. Returns the page holding the
    editor (a new tab if the entry link opened one). No entry found is not fatal:
    the page may already be the editor.
    """
    t = settings.timeouts
    await page.wait_for_timeout(t.probe)
    if await is_in_editor(page):
        logger.debug("Already in the level editor")
        return page

    async for match in candidates(page, LEVEL_ENTRY, timeout_ms=t.probe * len(LEVEL_ENTRY), probe_ms=1000):
        logger.info("Entering level via %s", match.descriptor.describe())
        try:
            active = await click_and_follow(page, match.locator, t.click, settle_ms=5000)
        except PlaywrightError as e:
            logger.debug("Level entry %s not clickable: %s", match.descriptor.describe(), e)
            continue
        await wait_for_network_idle(active, t.page_load)
        return active

    logger.warning("No level entry control found; assuming the editor is already open")
    return page


async def _open_task_list(page: Page, settings: Settings) -> None:
    items = page.locator(TASK_ITEM)
    if await _is_visible(items.first):
        return
    trigger = await resolve(page, TASK_LIST_TRIGGER, timeout_ms=settings.timeouts.probe * 2, probe_ms=1000)
    if not trigger:
        logger.debug("Task list trigger not found; looking for task items directly")
        return
    try:
        await trigger.locator.click(timeout=settings.timeouts.click)
        await items.first.wait_for(state="visible", timeout=5000)
    except PlaywrightError as e:
        logger.debug("Task list did not open: %s", e)


async def _click_item(page: Page, item: Locator, settings: Settings) -> None:
    link = item.locator("a").first
    if await _is_visible(link):
        await link.click(timeout=settings.timeouts.click)
    else:
        await item.click(timeout=settings.timeouts.click)
    await wait_for_network_idle(page, settings.timeouts.page_load)
    await page.wait_for_timeout(2000)


async def switch_to_level(page: Page, index: int, settings: Settings) -> bool:
    """
    Make level `index` (1-based) the current one. Already there is a no-op success.
    Items are matched by label first; the positional fallback refuses to click an item
    labelled as level 1 when asked for a later level.
    """
    heading = page.locator("h3").filter(has_text=f"第{index}关").first
    if await _is_visible(heading):
        logger.debug("Heading already shows level %d", index)
        return True

    await _open_task_list(page, settings)
    items = page.locator(TASK_ITEM)
    try:
        await items.first.wait_for(state="attached", timeout=5000)
    except PlaywrightError:
        pass
    count = await items.count()
    if count == 0:
        logger.warning("No task items on %s", page.url)
        return False

    pattern = level_pattern(index)
    target: Optional[Locator] = None
    for i in range(count):
        item = items.nth(i)
        text = await _text(item.locator("a").first) or await _text(item)
        if pattern.search(text):
            target = item
            break

    if target is None:
        if count < index:
            logger.warning("Level %d not in task list (%d items)", index, count)
            return False
        target = items.nth(index - 1)
        text = await _text(target)
        if index > 1 and level_pattern(1).search(text):
            logger.error(
                "Refusing positional click for level %d: item looks like level 1 (%r)",
                index,
                text.split("\n")[0],
            )
            return False
        logger.debug("Level %d chosen by position", index)

    if await _is_active(target):
        logger.debug("Level %d already active", index)
        return True

    logger.info("Switching to level %d", index)
    try:
        await _click_item(page, target, settings)
    except PlaywrightError as e:
        logger.warning("Could not click level %d: %s", index, e)
        return False
    return True


async def is_level_locked(page: Page) -> bool:
    """True when the page says the previous level must be finished first."""
    try:
        return bool(await page.evaluate(_LOCKED_JS, list(LOCKED_TEXTS)))
    except PlaywrightError:
        return False
