"""Lab discovery: list the course's labs and split them by completion marker."""
import logging
from dataclasses import dataclass, field

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from .config import Settings
from .locator import candidates, click_first
from .site import ALL_FILTER, HOMEWORK_TAB, LAB_COMPLETED_MARKER, LAB_ITEM, LAB_NAME, SUBMITTING_TAB

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LabEntry:
    name: str
    completed: bool


@dataclass
class LabListing:
    entries: list[LabEntry] = field(default_factory=list)

    @property
    def completed(self) -> list[LabEntry]:
        return [e for e in self.entries if e.completed]

    @property
    def incomplete(self) -> list[LabEntry]:
        return [e for e in self.entries if not e.completed]


async def _lab_name(item: Locator) -> str:
    for d in LAB_NAME:
        el = d.locate(item)
        try:
            if await el.count() > 0:
                name = (await el.inner_text()).strip()
                if name:
                    return name
        except PlaywrightError:
            continue
    text = await item.inner_text()
    return text.split("\n")[0].strip()


async def _show_all_homework(page: Page, settings: Settings) -> None:
    """Switch to the homework tab and its "all" filter when the page has them."""
    t = settings.timeouts
    tab = await click_first(page, HOMEWORK_TAB, timeout_ms=8000, probe_ms=5000, click_timeout_ms=t.click)
    if not tab:
        logger.debug("No homework tab; assuming the list is already shown")
        return
    logger.info("Opened homework tab")
    await page.wait_for_timeout(1000)
    if await click_first(page, ALL_FILTER, timeout_ms=3000, probe_ms=3000, click_timeout_ms=t.click):
        logger.info("Selected the 'all' filter")
    else:
        logger.warning("'All' filter not found; it may already be selected")
    await page.wait_for_timeout(2000)


async def _find_items(page: Page, probe_ms: int) -> tuple[Locator, int]:
    async for match in candidates(page, LAB_ITEM, timeout_ms=probe_ms * len(LAB_ITEM), probe_ms=probe_ms):
        items = match.descriptor.all_in(page)
        count = await items.count()
        if count > 0:
            logger.info("Lab items via %s: %d", match.descriptor.describe(), count)
            return items, count
    return page.locator(LAB_ITEM[0].selector), 0


async def find_labs(page: Page, settings: Settings) -> LabListing:
    """Return every lab on the course page, each flagged completed or not."""
    t = settings.timeouts
    logger.info("Looking for labs (refreshing the course page)")
    try:
        await page.reload(wait_until="networkidle", timeout=t.page_load)
    except PlaywrightError as e:
        logger.debug("Reload did not reach networkidle: %s", e)
    await page.wait_for_timeout(2000)

    await _show_all_homework(page, settings)

    items, count = await _find_items(page, t.probe)
    if count == 0:
        logger.warning("No lab items found; trying the 'submitting' tab")
        if await click_first(page, SUBMITTING_TAB, timeout_ms=t.probe, probe_ms=t.probe, click_timeout_ms=t.click):
            await page.wait_for_timeout(2000)
            items, count = await _find_items(page, t.probe)

    listing = LabListing()
    if count == 0:
        logger.warning("No labs found on %s", page.url)
        return listing

    for i in range(count):
        item = items.nth(i)
        try:
            completed = await item.locator(LAB_COMPLETED_MARKER).count() > 0
            name = await _lab_name(item)
        except PlaywrightError as e:
            logger.debug("Skipping unreadable lab item %d: %s", i, e)
            continue
        listing.entries.append(LabEntry(name=name, completed=completed))

    logger.info(
        "Labs: total %d | completed %d | incomplete %d",
        len(listing.entries),
        len(listing.completed),
        len(listing.incomplete),
    )
    return listing
