"""Browser process lifecycle: one browser, one isolated context and page per role."""
import logging
from dataclasses import dataclass, field

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from .config import Settings
from .errors import ConfigError

logger = logging.getLogger(__name__)

VIEWPORT = {"width": 1280, "height": 800}


@dataclass
class BrowserHandles:
    playwright: Playwright
    browser: Browser
    contexts: dict[str, BrowserContext] = field(default_factory=dict)
    pages: dict[str, Page] = field(default_factory=dict)


def _forward_console(role: str):
    def handler(msg) -> None:
        logger.debug("[Browser] %s %s: %s", role, msg.type, msg.text)

    return handler


async def acquire(settings: Settings, roles: tuple[str, ...] = ("source", "target")) -> BrowserHandles:
    """Start Playwright, launch the configured browser and open a page for each role."""
    p = await async_playwright().start()
    try:
        launcher = getattr(p, settings.browser_type, None)
        if launcher is None:
            raise ConfigError(f"unknown browser type {settings.browser_type!r}")
        browser = await launcher.launch(
            headless=settings.headless,
            args=["--start-maximized"] if settings.browser_type == "chromium" else None,
        )
    except Exception:
        await p.stop()
        raise
    logger.info("Launched %s (headless=%s)", settings.browser_type, settings.headless)
    handles = BrowserHandles(playwright=p, browser=browser)
    try:
        for role in roles:
            context = await browser.new_context(viewport=VIEWPORT)
            handles.contexts[role] = context
            if settings.browser_type == "chromium":
                await context.grant_permissions(["clipboard-read", "clipboard-write"])
            context.set_default_timeout(settings.timeouts.element_wait)
            context.set_default_navigation_timeout(settings.timeouts.page_load)
            page = await context.new_page()
            page.on("console", _forward_console(role))
            handles.pages[role] = page
    except Exception:
        logger.error("Browser setup failed; closing what was opened")
        await release(handles)
        raise
    return handles


async def release(handles: BrowserHandles) -> None:
    for role, context in handles.contexts.items():
        try:
            await context.close()
        except PlaywrightError as e:
            logger.debug("Closing %s context failed: %s", role, e)
    await handles.browser.close()
    await handles.playwright.stop()
    logger.info("Browser closed")
