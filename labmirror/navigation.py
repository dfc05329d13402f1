"""Course and lab-detail navigation; every step may hand back a new active page."""
import logging
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from .config import Settings
from .errors import NavigationFailure, SessionExpired
from .locator import candidates, click_first, format_all, is_present, resolve
from .site import (
    AD_CLOSE,
    COURSE_LINK,
    DETAIL_URL_PATTERN,
    HOME_ENTRY,
    LAB_DETAIL_LINK,
    LOGIN_EVIDENCE,
    PAGE_CONTAINER,
    is_login_url,
)

logger = logging.getLogger(__name__)


async def click_and_follow(page: Page, locator: Locator, click_timeout_ms: int, settle_ms: int) -> Page:
    """
    Click `locator` and return the page the click landed on: a tab opened by the
    click if there was one, else `page` itself.
    """
    opened: list[Page] = []
    handler = opened.append
    page.context.on("page", handler)
    try:
        await locator.click(timeout=click_timeout_ms)
        await page.wait_for_timeout(settle_ms)
    finally:
        page.context.remove_listener("page", handler)
    if not opened:
        return page
    new_page = opened[-1]
    logger.info("Click opened a new tab: %s", new_page.url)
    try:
        await new_page.wait_for_load_state()
        await new_page.bring_to_front()
    except PlaywrightError as e:
        logger.debug("New tab did not settle: %s", e)
    return new_page


async def wait_for_network_idle(page: Page, timeout_ms: int) -> None:
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
    except PlaywrightError:
        logger.debug("networkidle not reached within %sms on %s", timeout_ms, page.url)


async def ensure_logged_in(page: Page, settings: Settings) -> None:
    """Raise SessionExpired if `page` was bounced to login or shows login controls."""
    if is_login_url(page.url):
        raise SessionExpired(page.url)
    if await is_present(page, LOGIN_EVIDENCE, probe_ms=min(1000, settings.timeouts.probe)):
        logger.warning("Login controls visible on %s; treating the session as expired", page.url)
        raise SessionExpired(page.url)


async def wait_for_page_container(page: Page, settings: Settings) -> bool:
    """Wait for the course page's layout; a miss is logged, not fatal."""
    t = settings.timeouts
    match = await resolve(page, PAGE_CONTAINER, timeout_ms=t.element_wait * len(PAGE_CONTAINER), probe_ms=t.element_wait)
    if match:
        logger.debug("Course page container ready: %s", match.descriptor.describe())
        return True
    logger.warning("No course page container detected; continuing anyway")
    return False


async def _enter_course_via_ui(page: Page, settings: Settings) -> Page:
    t = settings.timeouts
    if page.is_closed():
        raise NavigationFailure("page closed before course navigation")

    if await click_first(page, AD_CLOSE, timeout_ms=t.probe, probe_ms=t.probe, click_timeout_ms=t.click):
        logger.info("Closed advert popup")
        await page.wait_for_timeout(1000)

    home = await click_first(page, HOME_ENTRY, timeout_ms=t.probe * len(HOME_ENTRY), probe_ms=t.probe, click_timeout_ms=t.probe)
    if home:
        logger.info("Opened personal home via %s", home.descriptor.describe())
        await page.wait_for_timeout(1000)
    else:
        logger.warning("Could not open personal home; looking for the course directly")

    logger.info("Entering course %r", settings.course_name)
    descriptors = format_all(COURSE_LINK, course=settings.course_name)
    active: Optional[Page] = None
    async for match in candidates(page, descriptors, timeout_ms=t.probe * len(descriptors) + t.click, probe_ms=t.probe):
        try:
            landed = await click_and_follow(page, match.locator, t.probe, settle_ms=1000)
        except PlaywrightError as e:
            logger.debug("Course link %s not clickable: %s", match.descriptor.describe(), e)
            continue
        if landed is not page:
            active = landed
            break
        try:
            await page.wait_for_url(lambda url: "/users/" not in url, timeout=5000)
        except PlaywrightError:
            logger.warning("URL did not change after %s; trying the next route", match.descriptor.describe())
            continue
        active = page
        break

    if active is None:
        raise NavigationFailure(f"could not open course {settings.course_name!r}")

    await wait_for_network_idle(active, t.page_load)
    await wait_for_page_container(active, settings)
    await active.wait_for_timeout(1000)
    logger.info("Course page ready: %s", active.url)
    return active


async def navigate_to_course(page: Page, settings: Settings, direct_url: Optional[str] = None) -> Page:
    """
    Open the course's lab list and return the active page. A direct URL is tried first;
    a bounce to login raises SessionExpired, any other failure falls back to UI navigation.
    """
    t = settings.timeouts
    if direct_url:
        logger.info("Opening course directly: %s", direct_url)
        try:
            await page.goto(direct_url, timeout=t.page_load)
            await wait_for_network_idle(page, t.page_load)
            await ensure_logged_in(page, settings)
            await wait_for_page_container(page, settings)
            return page
        except PlaywrightError as e:
            logger.warning("Direct navigation failed (%s); falling back to UI navigation", e)
    return await _enter_course_via_ui(page, settings)


async def open_lab_detail(page: Page, lab_name: str, settings: Settings) -> Page:
    """Open `lab_name`'s detail view; returns the page showing it (maybe a new tab)."""
    t = settings.timeouts
    logger.info("Opening lab detail: %s", lab_name)
    descriptors = format_all(LAB_DETAIL_LINK, lab=lab_name)
    async for match in candidates(page, descriptors, mode="attached", timeout_ms=t.probe * len(descriptors) * 4, probe_ms=1000):
        try:
            active = await click_and_follow(page, match.locator, t.click, settle_ms=2000)
        except PlaywrightError as e:
            logger.debug("Lab link %s not clickable: %s", match.descriptor.describe(), e)
            continue
        try:
            await active.wait_for_url(DETAIL_URL_PATTERN, timeout=8000)
        except PlaywrightError:
            logger.debug("%s did not reach a detail URL; trying the next route", match.descriptor.describe())
            continue
        logger.info("Lab detail open: %s", active.url)
        return active
    raise NavigationFailure(f"could not open lab detail for {lab_name!r}")
